"""Process-wide coordinator instance used by the routes."""

from typing import Optional

from gateway.config import load_settings
from gateway.services.upload_coordinator import UploadCoordinator

_coordinator: Optional[UploadCoordinator] = None


def set_coordinator(coordinator: Optional[UploadCoordinator]) -> None:
    """Set global coordinator instance"""
    global _coordinator
    _coordinator = coordinator


def get_coordinator() -> UploadCoordinator:
    """Get global coordinator instance, building it from the environment on first use"""
    global _coordinator
    if _coordinator is None:
        _coordinator = UploadCoordinator(load_settings())
    return _coordinator
