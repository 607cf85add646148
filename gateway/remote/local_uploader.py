"""Remote uploader that files artifacts into a local directory tree."""

import asyncio
import logging
import shutil
from functools import partial
from pathlib import Path

from common.exceptions import RemoteUploadError
from common.types import RemoteFile
from staging.chunk_store import is_valid_upload_id
from gateway.utils import generate_uuid

logger = logging.getLogger(__name__)


class LocalFolderUploader:
    """
    Stores artifacts as ``<root>/<container_id>/<remote_id>/<name>``.

    Stands in for the remote store in development setups and tests.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    async def upload(self, artifact_path: Path, container_id: str) -> RemoteFile:
        if not is_valid_upload_id(container_id):
            raise RemoteUploadError(f"Invalid container id: {container_id!r}")

        remote_id = generate_uuid()
        target = self.root / container_id / remote_id / artifact_path.name

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(_copy_into, artifact_path, target))
        except OSError as e:
            raise RemoteUploadError(f"Failed to store {artifact_path.name} in {container_id}: {e}") from e

        logger.info(f"Stored {artifact_path.name} as {remote_id} in local container {container_id}")
        return RemoteFile(file_name=artifact_path.name, remote_id=remote_id)

    async def close(self) -> None:
        pass


def _copy_into(source: Path, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, target)
