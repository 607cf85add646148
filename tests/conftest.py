"""Shared pytest fixtures for all tests."""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from common.types import RemoteFile
from gateway.config import REMOTE_BACKEND_LOCAL, UploadSettings
from gateway.services.upload_coordinator import UploadCoordinator
from staging.chunk_store import ChunkStore


class RecordingUploader:
    """
    Remote uploader double that keeps the bytes it was handed.

    The artifact is deleted right after the upload, so its content is
    captured at call time.
    """

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[Tuple[str, str]] = []
        self.received: Dict[str, bytes] = {}
        self.closed = False

    async def upload(self, artifact_path: Path, container_id: str) -> RemoteFile:
        self.calls.append((artifact_path.name, container_id))
        if self.error is not None:
            raise self.error

        remote_id = f"remote-{len(self.calls)}"
        self.received[remote_id] = artifact_path.read_bytes()
        return RemoteFile(file_name=artifact_path.name, remote_id=remote_id)

    async def close(self) -> None:
        self.closed = True


class FlakyChunkStore(ChunkStore):
    """
    ChunkStore whose writes fail a configured number of times per index.
    """

    def __init__(self, root: Path, failures: Optional[Dict[int, int]] = None):
        super().__init__(root)
        self.failures = dict(failures or {})
        self.put_calls: Dict[int, int] = {}

    async def put(self, upload_id: str, index: int, data: bytes):
        self.put_calls[index] = self.put_calls.get(index, 0) + 1
        if self.failures.get(index, 0) > 0:
            self.failures[index] -= 1
            raise OSError(f"simulated write failure for chunk {index}")
        return await super().put(upload_id, index, data)


@pytest.fixture
def staging_dir(tmp_path):
    """
    Create the staging root for chunk namespaces.

    Returns:
        Path to an empty staging directory
    """
    path = tmp_path / 'staging'
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path, staging_dir):
    """
    Settings with a small chunk ceiling and no retry delay.
    """
    return UploadSettings(
        staging_dir=staging_dir,
        max_chunk_size=50,
        backoff_seconds=0,
        remote_backend=REMOTE_BACKEND_LOCAL,
        local_remote_root=tmp_path / 'remote',
    )


@pytest.fixture
def store(staging_dir):
    return ChunkStore(staging_dir)


@pytest.fixture
def remote():
    return RecordingUploader()


@pytest.fixture
def coordinator(settings, store, remote):
    return UploadCoordinator(settings, store=store, remote=remote)


@pytest.fixture
def payload_130():
    """
    130 distinct-looking bytes: splits into [50, 50, 30] at chunk size 50.
    """
    return bytes(i % 251 for i in range(130))


def staged_namespaces(staging_dir: Path) -> List[str]:
    return sorted(entry.name for entry in staging_dir.iterdir())
