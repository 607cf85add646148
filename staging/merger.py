"""Concatenates staged chunks, in index order, into one artifact file."""

import asyncio
import hashlib
import logging
from functools import partial
from pathlib import Path
from typing import Iterable, Optional

from common.exceptions import MergeError
from common.types import Chunk
from staging.chunk_store import ChunkStore

logger = logging.getLogger(__name__)


class ChunkMerger:
    """
    Builds the artifact of an upload from its chunks.

    Input order never matters: chunks are always sorted by index before
    they are written.
    """

    def __init__(self, store: ChunkStore):
        self.store = store

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    async def merge_chunks_disk(
        self,
        upload_id: str,
        original_name: str,
        chunk_count: Optional[int] = None
    ) -> Path:
        """
        Merge chunks staged on disk, deleting each one once it is written.

        Args:
            upload_id: Upload whose namespace holds the chunks
            original_name: File name of the artifact
            chunk_count: If given, only indices below it are merged

        Returns:
            Path of the merged artifact

        Raises:
            MergeError: If any read, write or delete fails
        """
        artifact_path = self.store.artifact_path(upload_id, original_name)

        try:
            refs = await self.store.list_ordered(upload_id)

            if chunk_count is not None:
                stray = [ref.index for ref in refs if ref.index >= chunk_count]
                if stray:
                    logger.warning(
                        f"Upload {upload_id} has chunks beyond declared count {chunk_count}: {stray}"
                    )
                refs = [ref for ref in refs if ref.index < chunk_count]

            hasher = hashlib.sha256()
            total_bytes = 0

            artifact = await self._run(open, artifact_path, "wb")
            try:
                for ref in refs:
                    data = await self.store.read(ref)
                    await self._run(artifact.write, data)
                    hasher.update(data)
                    total_bytes += len(data)
                    await self.store.delete(upload_id, ref.index)
            finally:
                await self._run(artifact.close)

        except OSError as e:
            logger.error(f"Disk merge failed for upload {upload_id}: {e}")
            raise MergeError(f"Failed to merge chunks of upload {upload_id}: {e}") from e

        logger.info(
            f"Merged {len(refs)} chunks of upload {upload_id} into {artifact_path.name} "
            f"({total_bytes} bytes, sha256={hasher.hexdigest()})"
        )
        return artifact_path

    async def merge_chunks_from_buffers(
        self,
        upload_id: str,
        original_name: str,
        chunks: Iterable[Chunk]
    ) -> Path:
        """
        Merge chunks that are already in memory.

        Returns:
            Path of the merged artifact

        Raises:
            MergeError: If the artifact cannot be written
        """
        ordered = sorted(chunks, key=lambda chunk: chunk.index)
        artifact_path = self.store.artifact_path(upload_id, original_name)

        try:
            artifact_path.parent.mkdir(parents=True, exist_ok=True)

            hasher = hashlib.sha256()
            artifact = await self._run(open, artifact_path, "wb")
            try:
                for chunk in ordered:
                    await self._run(artifact.write, chunk.data)
                    hasher.update(chunk.data)
            finally:
                await self._run(artifact.close)

        except OSError as e:
            logger.error(f"Buffer merge failed for upload {upload_id}: {e}")
            raise MergeError(f"Failed to merge chunks of upload {upload_id}: {e}") from e

        logger.info(
            f"Merged {len(ordered)} buffered chunks of upload {upload_id} into {artifact_path.name} "
            f"(sha256={hasher.hexdigest()})"
        )
        return artifact_path
