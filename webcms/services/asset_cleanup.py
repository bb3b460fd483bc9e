"""
Asset cleanup after cascade deletes.

Assets referenced by deleted nodes are removed from the asset store in the
background, after the deleting transaction has committed. Failures are logged
and skipped: a leftover asset is an orphan, never a correctness problem.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from webcms.config import settings
from webcms.core.exceptions import ErrorKind
from webcms.integrations.storage import AssetStore, get_asset_store

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    """Outcome of one cleanup run."""

    requested: int = 0
    deleted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


class AssetCleanupScheduler:
    """Runs asset deletions as detached tasks."""

    def __init__(
        self,
        asset_store: AssetStore,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ):
        self.asset_store = asset_store
        self.batch_size = max(1, batch_size or settings.ASSET_CLEANUP_BATCH_SIZE)
        self.batch_delay = settings.asset_cleanup_batch_delay if batch_delay is None else batch_delay
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, asset_ids: list[str]) -> Optional[asyncio.Task]:
        """Start deleting ``asset_ids`` without waiting for it."""
        asset_ids = list(dict.fromkeys(a for a in asset_ids if a))
        if not asset_ids:
            return None

        task = asyncio.create_task(self.run(asset_ids))
        # The loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Scheduled cleanup of {len(asset_ids)} assets")
        return task

    async def run(self, asset_ids: list[str]) -> CleanupReport:
        """Delete assets in concurrent batches, pausing between batches."""
        report = CleanupReport(requested=len(asset_ids))

        for i in range(0, len(asset_ids), self.batch_size):
            batch = asset_ids[i:i + self.batch_size]

            results = await asyncio.gather(
                *(self.asset_store.delete(asset_id) for asset_id in batch),
                return_exceptions=True,
            )

            for asset_id, result in zip(batch, results):
                if isinstance(result, Exception):
                    report.failed[asset_id] = str(result)
                    logger.error(f"[{ErrorKind.EXTERNAL.value}] Failed to delete asset {asset_id}: {result}")
                elif result:
                    report.deleted.append(asset_id)
                else:
                    report.missing.append(asset_id)

            if i + self.batch_size < len(asset_ids):
                await asyncio.sleep(self.batch_delay)

        logger.info(
            f"Asset cleanup finished: {len(report.deleted)} deleted, "
            f"{len(report.missing)} missing, {len(report.failed)} failed"
        )
        return report

    async def drain(self) -> None:
        """Wait for every scheduled cleanup to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_default_scheduler: Optional[AssetCleanupScheduler] = None


def get_cleanup_scheduler() -> AssetCleanupScheduler:
    """Get or create the process-wide cleanup scheduler."""
    global _default_scheduler

    if _default_scheduler is None:
        _default_scheduler = AssetCleanupScheduler(get_asset_store())

    return _default_scheduler


def reset_cleanup_scheduler():
    """Forget the process-wide scheduler (tests)."""
    global _default_scheduler
    _default_scheduler = None
