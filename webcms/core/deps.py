"""
FastAPI dependencies for authentication, database and the content services.
"""
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webcms.config import settings
from webcms.core.security import decode_token
from webcms.database import async_session_maker, get_db
from webcms.integrations.storage import AssetStore, get_asset_store
from webcms.services.asset_cleanup import AssetCleanupScheduler, get_cleanup_scheduler
from webcms.services.cascade_delete import CascadeDeletionEngine
from webcms.services.ordering import OrderingMaintainer
from webcms.services.tree_assembler import TreeAssembler

security = HTTPBearer()


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """Get the id of the calling principal from the bearer token's ``sub`` claim."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    subject = payload.get("sub")
    if subject is None:
        raise credentials_exception

    try:
        return UUID(str(subject))
    except ValueError:
        raise credentials_exception


def get_session_factory() -> async_sessionmaker:
    """Session factory for services that open their own transactions."""
    return async_session_maker


def get_asset_store_dep() -> AssetStore:
    return get_asset_store()


def get_cleanup_scheduler_dep() -> AssetCleanupScheduler:
    return get_cleanup_scheduler()


def get_tree_assembler(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TreeAssembler:
    return TreeAssembler(db)


def get_ordering_maintainer(
    session_factory: Annotated[async_sessionmaker, Depends(get_session_factory)],
) -> OrderingMaintainer:
    return OrderingMaintainer(session_factory, conflict_retries=settings.ORDER_CONFLICT_RETRIES)


def get_deletion_engine(
    session_factory: Annotated[async_sessionmaker, Depends(get_session_factory)],
    asset_store: Annotated[AssetStore, Depends(get_asset_store_dep)],
    cleanup_scheduler: Annotated[AssetCleanupScheduler, Depends(get_cleanup_scheduler_dep)],
) -> CascadeDeletionEngine:
    return CascadeDeletionEngine(session_factory, asset_store, cleanup_scheduler)


# Common dependencies
Principal = Annotated[UUID, Depends(get_current_principal)]
Assembler = Annotated[TreeAssembler, Depends(get_tree_assembler)]
Ordering = Annotated[OrderingMaintainer, Depends(get_ordering_maintainer)]
DeletionEngine = Annotated[CascadeDeletionEngine, Depends(get_deletion_engine)]
