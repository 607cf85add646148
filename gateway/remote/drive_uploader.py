"""Google Drive client pushing merged artifacts through a resumable upload session."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiohttp

from common.constants import DRIVE_API_BASE, REMOTE_TIMEOUT_SECONDS
from common.exceptions import RemoteUploadError
from common.types import RemoteFile

logger = logging.getLogger(__name__)

UPLOAD_CONTENT_TYPE = "application/octet-stream"


class DriveUploader:
    """
    Drive v3 uploader.
    Handles session management and the two-step resumable protocol:
    a metadata POST that opens the session, then one PUT of the file body.
    """

    def __init__(
        self,
        access_token: Optional[str],
        api_base: str = DRIVE_API_BASE,
        timeout_seconds: float = REMOTE_TIMEOUT_SECONDS
    ):
        """Initialize uploader with lazy session creation."""
        self.access_token = access_token
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
            logger.info(f"Opened HTTP session to {self.api_base}")
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def upload(self, artifact_path: Path, container_id: str) -> RemoteFile:
        """
        Upload an artifact into a Drive folder.

        Args:
            artifact_path: Merged file to send; its name becomes the Drive file name
            container_id: Id of the parent Drive folder

        Returns:
            RemoteFile with the id Drive assigned

        Raises:
            RemoteUploadError: If the session cannot be opened or the upload fails
        """
        if not self.access_token:
            raise RemoteUploadError("Drive access token is not configured")

        file_name = artifact_path.name
        session = self._ensure_session()

        try:
            session_url = await self._open_upload_session(session, file_name, container_id)
            remote_id = await self._send_content(session, session_url, artifact_path)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Drive upload of {file_name} failed: {e}")
            raise RemoteUploadError(f"Drive upload of {file_name} failed: {e}") from e

        logger.info(f"Uploaded {file_name} to Drive folder {container_id} as {remote_id}")
        return RemoteFile(file_name=file_name, remote_id=remote_id)

    async def _open_upload_session(
        self,
        session: aiohttp.ClientSession,
        file_name: str,
        container_id: str
    ) -> str:
        async with session.post(
            f"{self.api_base}/upload/drive/v3/files",
            params={"uploadType": "resumable", "fields": "id"},
            json={"name": file_name, "parents": [container_id]},
            headers={"X-Upload-Content-Type": UPLOAD_CONTENT_TYPE},
        ) as resp:
            if resp.status != 200:
                detail = await resp.text()
                raise RemoteUploadError(
                    f"Drive refused upload session for {file_name} (status {resp.status}): {detail}"
                )

            location = resp.headers.get("Location")
            if not location:
                raise RemoteUploadError(f"Drive returned no session URL for {file_name}")
            return location

    async def _send_content(
        self,
        session: aiohttp.ClientSession,
        session_url: str,
        artifact_path: Path
    ) -> str:
        loop = asyncio.get_running_loop()
        body = await loop.run_in_executor(None, open, artifact_path, "rb")
        try:
            async with session.put(
                session_url,
                data=body,
                headers={"Content-Type": UPLOAD_CONTENT_TYPE},
            ) as resp:
                if resp.status not in (200, 201):
                    detail = await resp.text()
                    raise RemoteUploadError(
                        f"Drive rejected content of {artifact_path.name} (status {resp.status}): {detail}"
                    )
                payload = await resp.json(content_type=None)
        finally:
            await loop.run_in_executor(None, body.close)

        remote_id = payload.get("id") if isinstance(payload, dict) else None
        if not remote_id:
            raise RemoteUploadError(f"Drive response for {artifact_path.name} carried no file id")
        return remote_id
