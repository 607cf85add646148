"""Utility helper functions for the gateway."""

import uuid
from pathlib import PurePosixPath, PureWindowsPath
from typing import Optional

from common.constants import MANIFEST_FILENAME


def generate_uuid() -> str:
    """
    Generate a new UUID4 string usable as an upload id.

    Returns:
        32-character hex string
    """
    return uuid.uuid4().hex


def clean_file_name(name: Optional[str]) -> Optional[str]:
    """
    Reduce a client-supplied file name to its final path component.

    Args:
        name: Raw name, possibly with directories (either separator style)

    Returns:
        The bare file name, or None if nothing usable is left
    """
    if not name:
        return None

    base = PureWindowsPath(PurePosixPath(name.strip()).name).name
    if base in ("", ".", "..") or base == MANIFEST_FILENAME:
        return None
    return base
