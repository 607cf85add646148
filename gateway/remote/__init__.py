"""Remote object store clients."""

from gateway.config import REMOTE_BACKEND_LOCAL, UploadSettings
from gateway.remote.base import RemoteUploader
from gateway.remote.drive_uploader import DriveUploader
from gateway.remote.local_uploader import LocalFolderUploader


def build_remote_uploader(settings: UploadSettings) -> RemoteUploader:
    """Create the uploader selected by ``settings.remote_backend``."""
    if settings.remote_backend == REMOTE_BACKEND_LOCAL:
        return LocalFolderUploader(settings.local_remote_root)
    return DriveUploader(
        access_token=settings.drive_access_token,
        api_base=settings.drive_api_base,
        timeout_seconds=settings.remote_timeout_seconds,
    )


__all__ = [
    "RemoteUploader",
    "DriveUploader",
    "LocalFolderUploader",
    "build_remote_uploader",
]
