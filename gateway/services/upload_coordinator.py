"""Upload coordinator: chunk persistence with retry, completeness checks, merge and handoff."""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Dict, List, Optional

from common.constants import MAX_CHUNKS_PER_UPLOAD
from common.exceptions import (
    ChunkPersistError,
    ChunkRelayError,
    ChunkTooLargeError,
    RemoteUploadError,
    UploadFailedError,
    UploadNotFoundError,
    ValidationError,
)
from common.types import (
    STATUS_FAIL,
    STATUS_SUCCESS,
    Chunk,
    ChunkAck,
    RemoteFile,
    UploadManifest,
    UploadProgress,
    UploadResult,
)
from gateway.config import UploadSettings
from gateway.remote import RemoteUploader, build_remote_uploader
from gateway.utils import clean_file_name, generate_uuid
from staging.chunk_store import ChunkStore, is_valid_upload_id, parse_chunk_index
from staging.janitor import CleanupJanitor
from staging.merger import ChunkMerger
from staging.splitter import count_chunks, effective_chunk_size, split_buffer

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """
    Runs the single-shot and resumable upload protocols on top of the
    staging area.

    Every public operation raises only ChunkRelayError subclasses; other
    internal errors are wrapped in UploadFailedError.
    """

    def __init__(
        self,
        settings: UploadSettings,
        store: Optional[ChunkStore] = None,
        remote: Optional[RemoteUploader] = None,
        merger: Optional[ChunkMerger] = None,
        janitor: Optional[CleanupJanitor] = None,
    ):
        self.settings = settings
        self.store = store or ChunkStore(settings.staging_dir)
        self.merger = merger or ChunkMerger(self.store)
        self.janitor = janitor or CleanupJanitor(self.store)
        self.remote = remote or build_remote_uploader(settings)

    async def close(self) -> None:
        await self.remote.close()

    async def upload_large_file(
        self,
        data: bytes,
        file_name: Optional[str],
        destination_id: Optional[str],
        chunk_size: Optional[int] = None,
    ) -> UploadResult:
        """
        Split a whole file into chunks, persist them, merge and upload.

        Args:
            data: File content
            file_name: Name given to the remote file
            destination_id: Remote folder receiving the file
            chunk_size: Requested chunk size; 0 or None uses the configured ceiling

        Returns:
            UploadResult with status "success"

        Raises:
            ValidationError: If the file, its name or the destination is missing
            ChunkPersistError: If a chunk exhausts its write attempts
            MergeError: If the artifact cannot be built
            RemoteUploadError: If the remote store rejects the artifact
        """
        if not data:
            raise ValidationError("File not found or empty")
        name = clean_file_name(file_name)
        if not name:
            raise ValidationError("File name is required")
        if not destination_id:
            raise ValidationError("folder_id is required")
        if chunk_size is not None and chunk_size < 0:
            raise ValidationError(f"chunk_size must not be negative, got {chunk_size}")

        upload_id = generate_uuid()
        real_chunk_size = effective_chunk_size(chunk_size, self.settings.max_chunk_size)
        if count_chunks(len(data), real_chunk_size) > MAX_CHUNKS_PER_UPLOAD:
            raise ValidationError(f"File needs more than {MAX_CHUNKS_PER_UPLOAD} chunks of {real_chunk_size} bytes")
        chunks = split_buffer(data, real_chunk_size)

        logger.info(
            f"Starting upload {upload_id} of {name}: {len(data)} bytes in "
            f"{len(chunks)} chunks of {real_chunk_size} bytes"
        )

        try:
            await self._persist_with_retry(upload_id, chunks)
            artifact_path = await self.merger.merge_chunks_from_buffers(upload_id, name, chunks)
            remote_file = await self._push_to_remote(artifact_path, destination_id)
        except ChunkRelayError as e:
            logger.error(f"Upload {upload_id} of {name} failed: {e}")
            raise
        except Exception as e:
            logger.error(f"Upload {upload_id} of {name} failed: {e}", exc_info=True)
            raise UploadFailedError(f"Upload of {name} failed: {e}") from e
        finally:
            await self.janitor.cleanup(upload_id)

        return self._success(upload_id, remote_file, destination_id, len(chunks))

    async def _persist_with_retry(self, upload_id: str, chunks: List[Chunk]) -> None:
        """
        Write all chunks concurrently, retrying failed ones in rounds.

        Each round writes every pending chunk and waits for all writes to
        settle; chunks that failed form the next round. Attempts are counted
        per chunk, and a chunk reaching the limit aborts the whole upload.
        """
        attempts: Dict[int, int] = {chunk.index: 0 for chunk in chunks}
        pending = list(chunks)
        round_number = 0

        while pending:
            round_number += 1
            results = await asyncio.gather(
                *(self._attempt_put(upload_id, chunk, attempts) for chunk in pending),
                return_exceptions=True
            )

            failed = []
            exhausted = []
            for chunk, result in zip(pending, results):
                if isinstance(result, ChunkPersistError):
                    exhausted.append(result)
                elif isinstance(result, Exception):
                    failed.append(chunk)
                elif isinstance(result, BaseException):
                    raise result

            if exhausted:
                exhausted.sort(key=lambda error: error.index)
                raise exhausted[0]

            if failed:
                logger.warning(
                    f"Upload {upload_id} round {round_number}: "
                    f"{len(failed)}/{len(pending)} chunk writes failed, retrying"
                )
            pending = failed

        logger.info(f"Persisted {len(chunks)} chunks of upload {upload_id} in {round_number} round(s)")

    async def _attempt_put(self, upload_id: str, chunk: Chunk, attempts: Dict[int, int]) -> None:
        try:
            await self.store.put(upload_id, chunk.index, chunk.data)
        except Exception as e:
            attempts[chunk.index] += 1
            attempt = attempts[chunk.index]

            if attempt >= self.settings.max_attempts:
                logger.error(f"Chunk {chunk.index} of upload {upload_id} failed after {attempt} attempts: {e}")
                raise ChunkPersistError(chunk.index, attempt, str(e)) from e

            delay = self.settings.backoff_seconds * attempt
            logger.warning(
                f"Failed to write chunk {chunk.index} of upload {upload_id} "
                f"(attempt {attempt}/{self.settings.max_attempts}), retrying in {delay}s: {e}"
            )
            await asyncio.sleep(delay)
            raise

    async def begin_upload(self, original_name: Optional[str]) -> UploadManifest:
        """
        Hand out a fresh upload id for a resumable upload.

        Raises:
            ValidationError: If the original name is missing or unusable
        """
        name = clean_file_name(original_name)
        if not name:
            raise ValidationError("original_name is required")

        upload_id = generate_uuid()
        try:
            manifest = await self.store.write_manifest(upload_id, name)
        except OSError as e:
            raise UploadFailedError(f"Failed to register upload of {name}: {e}") from e

        logger.info(f"Registered upload {upload_id} for {name}")
        return manifest

    async def upload_file_chunk(
        self,
        data: Optional[bytes],
        index: Optional[int],
        upload_id: Optional[str],
        original_name: Optional[str] = None,
    ) -> ChunkAck:
        """
        Persist one chunk posted by a client.

        No retry happens here; the client repeats the request on failure.

        Raises:
            ValidationError: If the chunk, its index or the upload id is missing or invalid
            ChunkTooLargeError: If the chunk exceeds the chunk size ceiling
        """
        self._require_upload_id(upload_id)
        if index is None or index < 0:
            raise ValidationError("index must be a non-negative integer")
        if index >= MAX_CHUNKS_PER_UPLOAD:
            raise ValidationError(f"index must be below {MAX_CHUNKS_PER_UPLOAD}")
        if not data:
            raise ValidationError("Chunk not found or empty")
        if len(data) > self.settings.max_chunk_size:
            raise ChunkTooLargeError(
                f"Chunk {index} is {len(data)} bytes, limit is {self.settings.max_chunk_size}"
            )

        name = self._clean_original_name(upload_id, original_name) if original_name else None

        try:
            ref = await self.store.put(upload_id, index, data)
            await self.store.write_manifest(upload_id, name)
        except OSError as e:
            logger.error(f"Failed to store chunk {index} of upload {upload_id}: {e}")
            raise UploadFailedError(f"Failed to store chunk {index} of upload {upload_id}: {e}") from e

        return ChunkAck(
            index=index,
            path=str(ref.path),
            size=len(data),
            checksum=hashlib.sha256(data).hexdigest(),
        )

    async def complete_upload(
        self,
        upload_id: Optional[str],
        destination_id: Optional[str],
        chunk_count: Optional[int],
        original_name: Optional[str] = None,
    ) -> UploadResult:
        """
        Merge and upload a resumable upload once all its chunks are present.

        Args:
            upload_id: Upload to complete
            destination_id: Remote folder receiving the file
            chunk_count: Number of chunks the client posted
            original_name: Overrides the name recorded for the upload

        Returns:
            UploadResult with status "success", or status "fail" listing the
            missing chunk indices (nothing is merged or deleted in that case)

        Raises:
            ValidationError: If a required parameter is missing or invalid
            MergeError: If the artifact cannot be built
            RemoteUploadError: If the remote store rejects the artifact
        """
        self._require_upload_id(upload_id)
        if not destination_id:
            raise ValidationError("folder_id is required")
        if chunk_count is None:
            raise ValidationError("chunk_count is required")
        if chunk_count < 1 or chunk_count > MAX_CHUNKS_PER_UPLOAD:
            raise ValidationError(f"chunk_count must be between 1 and {MAX_CHUNKS_PER_UPLOAD}")

        try:
            missing = await self.store.missing_indices(upload_id, chunk_count)
        except OSError as e:
            raise UploadFailedError(f"Failed to inspect upload {upload_id}: {e}") from e

        if missing:
            logger.info(f"Upload {upload_id} incomplete: {len(missing)}/{chunk_count} chunks missing")
            return UploadResult(
                status=STATUS_FAIL,
                upload_id=upload_id,
                chunk_count=chunk_count,
                missing_chunks=missing,
            )

        name = await self._resolve_name(upload_id, original_name)

        try:
            artifact_path = await self.merger.merge_chunks_disk(upload_id, name, chunk_count)
            remote_file = await self._push_to_remote(artifact_path, destination_id)
        except ChunkRelayError as e:
            logger.error(f"Completing upload {upload_id} failed: {e}")
            raise
        except Exception as e:
            logger.error(f"Completing upload {upload_id} failed: {e}", exc_info=True)
            raise UploadFailedError(f"Completing upload {upload_id} failed: {e}") from e
        finally:
            await self.janitor.cleanup(upload_id)

        return self._success(upload_id, remote_file, destination_id, chunk_count)

    async def get_upload_status(self, upload_id: Optional[str], chunk_count: Optional[int] = None) -> UploadProgress:
        """
        Report which chunks of a resumable upload have been received.

        Raises:
            UploadNotFoundError: If nothing is staged under the upload id
        """
        self._require_upload_id(upload_id)
        if chunk_count is not None and (chunk_count < 1 or chunk_count > MAX_CHUNKS_PER_UPLOAD):
            raise ValidationError(f"chunk_count must be between 1 and {MAX_CHUNKS_PER_UPLOAD}")

        manifest = await self.store.read_manifest(upload_id)
        refs = await self.store.list_ordered(upload_id)
        if manifest is None and not refs:
            raise UploadNotFoundError(f"Upload {upload_id} not found")

        received = [ref.index for ref in refs]
        missing = None
        if chunk_count is not None:
            present = set(received)
            missing = [index for index in range(chunk_count) if index not in present]

        return UploadProgress(
            upload_id=upload_id,
            original_name=manifest.original_name if manifest else None,
            received_chunks=received,
            missing_chunks=missing,
        )

    async def abort_upload(self, upload_id: Optional[str]) -> None:
        """
        Abandon a resumable upload and drop everything staged for it.

        Raises:
            UploadNotFoundError: If nothing is staged under the upload id
        """
        self._require_upload_id(upload_id)
        if not await self._has_staged_state(upload_id):
            raise UploadNotFoundError(f"Upload {upload_id} not found")

        logger.info(f"Aborting upload {upload_id}")
        await self.janitor.cleanup(upload_id)

    async def _has_staged_state(self, upload_id: str) -> bool:
        if await self.store.read_manifest(upload_id) is not None:
            return True
        return bool(await self.store.list_ordered(upload_id))

    async def _resolve_name(self, upload_id: str, original_name: Optional[str]) -> str:
        if original_name:
            return self._clean_original_name(upload_id, original_name)

        manifest = await self.store.read_manifest(upload_id)
        if manifest is None or not manifest.original_name:
            raise ValidationError(f"original_name is required: none recorded for upload {upload_id}")
        return manifest.original_name

    def _clean_original_name(self, upload_id: str, original_name: str) -> str:
        name = clean_file_name(original_name)
        if not name or parse_chunk_index(upload_id, name) is not None:
            raise ValidationError(f"Invalid original_name: {original_name!r}")
        return name

    def _require_upload_id(self, upload_id: Optional[str]) -> None:
        if not upload_id:
            raise ValidationError("upload_id is required")
        if not is_valid_upload_id(upload_id):
            raise ValidationError(f"Invalid upload_id: {upload_id!r}")

    async def _push_to_remote(self, artifact_path: Path, destination_id: str) -> RemoteFile:
        try:
            return await self.remote.upload(artifact_path, destination_id)
        except RemoteUploadError:
            raise
        except Exception as e:
            raise RemoteUploadError(f"Remote upload of {artifact_path.name} failed: {e}") from e

    def _success(
        self,
        upload_id: str,
        remote_file: RemoteFile,
        destination_id: str,
        chunk_count: int
    ) -> UploadResult:
        logger.info(
            f"Upload {upload_id} finished: {remote_file.file_name} -> {remote_file.remote_id} "
            f"({chunk_count} chunks)"
        )
        return UploadResult(
            status=STATUS_SUCCESS,
            upload_id=upload_id,
            file_name=remote_file.file_name,
            remote_id=remote_file.remote_id,
            link_to_file=self.settings.file_link(remote_file.remote_id),
            link_to_folder=self.settings.folder_link(destination_id),
            chunk_count=chunk_count,
        )
