"""
Unit of work for multi-step writes.

Wraps a session so that a block of statements either commits as a whole or
rolls back as a whole. When the bound connection runs in ``AUTOCOMMIT`` mode
(no transaction support, e.g. behind a statement pooler) the same block runs
sequentially without atomicity; this is detected from the connection, never
configured.
"""
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from webcms.core.exceptions import CmsError, classify_db_error

logger = logging.getLogger(__name__)

# sync engine -> whether it can run transactions
_transaction_support: "weakref.WeakKeyDictionary" = weakref.WeakKeyDictionary()


async def supports_transactions(session: AsyncSession) -> bool:
    """Check whether the session's connection can run multi-statement transactions."""
    conn = await session.connection()
    sync_engine = conn.sync_engine
    cached = _transaction_support.get(sync_engine)
    if cached is not None:
        return cached

    level = conn.sync_connection.get_execution_options().get("isolation_level")
    if level is None:
        try:
            level = await conn.get_isolation_level()
        except NotImplementedError:
            level = None

    supported = str(level).upper() != "AUTOCOMMIT"
    _transaction_support[sync_engine] = supported
    if not supported:
        logger.warning(
            f"Connection for {sync_engine.url.render_as_string(hide_password=True)} "
            "runs in AUTOCOMMIT mode; multi-step writes will not be atomic"
        )
    return supported


class UnitOfWork:
    """Commit-or-rollback scope around one session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.atomic: bool | None = None

    @asynccontextmanager
    async def begin(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        """Run a block of writes; any error rolls back and is re-raised typed."""
        try:
            self.atomic = await supports_transactions(self.session)
            yield self.session
            await self.session.commit()
        except CmsError:
            await self._rollback(operation)
            raise
        except Exception as exc:
            await self._rollback(operation)
            error = classify_db_error(exc, operation)
            if error.is_operational:
                logger.warning(f"{operation} aborted: {error}")
            else:
                logger.error(f"{operation} aborted: {error}", exc_info=exc)
            raise error from exc
        except BaseException:
            # Cancellation still has to leave no open transaction behind
            await self._rollback(operation)
            raise

    async def _rollback(self, operation: str) -> None:
        if self.atomic is False:
            logger.warning(f"{operation} failed without transaction support; earlier steps are not rolled back")
        await self.session.rollback()
