"""Removal of per-upload staging state, on demand and in the background."""

import asyncio
import logging
import time
from typing import List, Optional

from common.constants import SWEEP_INTERVAL_SECONDS, UPLOAD_TTL_SECONDS
from staging.chunk_store import ChunkStore

logger = logging.getLogger(__name__)


class CleanupJanitor:
    """
    Best-effort cleanup of an upload namespace after a terminal outcome.
    """

    def __init__(self, store: ChunkStore):
        self.store = store

    async def cleanup(self, upload_id: str) -> bool:
        """
        Remove chunks, manifest and artifact of an upload.

        Never raises: a failed cleanup must not mask the upload's own result.

        Returns:
            True if the namespace is gone afterwards, False if removal failed
        """
        try:
            removed = await self.store.purge(upload_id)
        except Exception as e:
            logger.error(f"Failed to clean up staging area of upload {upload_id}: {e}", exc_info=True)
            return False

        if removed:
            logger.info(f"Cleaned up staging area of upload {upload_id}")
        else:
            logger.debug(f"No staging area to clean up for upload {upload_id}")
        return True


class StaleUploadSweeper:
    """
    Background task that periodically removes abandoned upload namespaces.
    """

    def __init__(
        self,
        janitor: CleanupJanitor,
        ttl_seconds: int = UPLOAD_TTL_SECONDS,
        interval_seconds: int = SWEEP_INTERVAL_SECONDS
    ):
        """
        Initialize sweeper task.

        Args:
            janitor: Janitor used to remove each stale namespace
            ttl_seconds: Idle time after which an upload counts as abandoned
            interval_seconds: Time between sweeps
        """
        self.janitor = janitor
        self.ttl_seconds = ttl_seconds
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Stale upload sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Started stale upload sweeper (ttl: {self.ttl_seconds}s, interval: {self.interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Stopped stale upload sweeper")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await self.sweep()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in stale upload sweeper: {e}", exc_info=True)

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """
        Execute one sweep.

        Returns:
            Upload ids whose namespaces were removed
        """
        if now is None:
            now = time.time()

        namespaces = await self.janitor.store.list_namespaces()
        stale = [
            upload_id for upload_id, modified_at in namespaces
            if now - modified_at > self.ttl_seconds
        ]

        if not stale:
            logger.debug("No stale uploads to sweep")
            return []

        removed = []
        for upload_id in stale:
            if await self.janitor.cleanup(upload_id):
                removed.append(upload_id)

        logger.info(f"Sweep complete: {len(removed)}/{len(stale)} stale uploads removed")
        return removed
