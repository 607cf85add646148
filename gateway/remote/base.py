"""Interface of the remote object store receiving merged artifacts."""

from pathlib import Path
from typing import Protocol

from common.types import RemoteFile


class RemoteUploader(Protocol):
    async def upload(self, artifact_path: Path, container_id: str) -> RemoteFile: ...

    async def close(self) -> None: ...
