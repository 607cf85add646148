"""Project-wide constants (chunk ceiling, retry policy, storage layout)."""

MAX_CHUNK_SIZE_BYTES: int = 50 * 1024  # 50 KiB default per-request ceiling

CHUNK_WRITE_MAX_ATTEMPTS: int = 5
CHUNK_WRITE_BACKOFF_SECONDS: float = 0.5

DEFAULT_STAGING_DIR: str = "./tmp"
DEFAULT_LOCAL_REMOTE_ROOT: str = "./remote"

CHUNK_NAME_SEPARATOR: str = "_chunk_"
MANIFEST_FILENAME: str = "upload.manifest.json"
PARTIAL_SUFFIX: str = ".part"

UPLOAD_TTL_SECONDS: int = 24 * 3600
SWEEP_INTERVAL_SECONDS: int = 3600

DRIVE_API_BASE: str = "https://www.googleapis.com"
DRIVE_LINK_HOST: str = "drive.google.com"
REMOTE_TIMEOUT_SECONDS: float = 300.0

MAX_CHUNKS_PER_UPLOAD: int = 100_000
