"""Service layer for upload orchestration."""

from gateway.services.upload_coordinator import UploadCoordinator

__all__ = [
    "UploadCoordinator",
]
