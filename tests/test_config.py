"""Tests for settings loading."""

from pathlib import Path

import pytest

from common.constants import MAX_CHUNK_SIZE_BYTES
from gateway.config import UploadSettings, load_settings

ENV_VARS = [
    "CHUNKRELAY_STAGING_DIR",
    "MAX_CHUNK_SIZE",
    "CHUNK_WRITE_MAX_ATTEMPTS",
    "CHUNK_WRITE_BACKOFF_SECONDS",
    "REMOTE_BACKEND",
    "DRIVE_ACCESS_TOKEN",
    "DRIVE_LINK_HOST",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = load_settings()

    assert settings.max_chunk_size == MAX_CHUNK_SIZE_BYTES == 50 * 1024
    assert settings.max_attempts == 5
    assert settings.backoff_seconds == 0.5
    assert settings.remote_backend == "drive"
    assert settings.drive_access_token is None


def test_environment_overrides(clean_env, tmp_path):
    clean_env.setenv("CHUNKRELAY_STAGING_DIR", str(tmp_path))
    clean_env.setenv("MAX_CHUNK_SIZE", "1024")
    clean_env.setenv("CHUNK_WRITE_MAX_ATTEMPTS", "3")
    clean_env.setenv("REMOTE_BACKEND", "LOCAL")
    clean_env.setenv("DRIVE_ACCESS_TOKEN", "ya29.token")

    settings = load_settings()

    assert settings.staging_dir == Path(tmp_path)
    assert settings.max_chunk_size == 1024
    assert settings.max_attempts == 3
    assert settings.remote_backend == "local"
    assert settings.drive_access_token == "ya29.token"


def test_empty_max_chunk_size_uses_default(clean_env):
    clean_env.setenv("MAX_CHUNK_SIZE", "")

    assert load_settings().max_chunk_size == MAX_CHUNK_SIZE_BYTES


def test_links(clean_env):
    clean_env.setenv("DRIVE_LINK_HOST", "drive.example.com")
    settings = load_settings()

    assert settings.file_link("abc") == "https://drive.example.com/file/d/abc"
    assert settings.folder_link("fold") == "https://drive.example.com/drive/folders/fold"


@pytest.mark.parametrize("kwargs", [
    {"max_chunk_size": 0},
    {"max_attempts": 0},
    {"remote_backend": "s3"},
])
def test_invalid_settings_rejected(kwargs):
    with pytest.raises(ValueError):
        UploadSettings(**kwargs)
