"""Project-wide constants (chunk ceiling, cache timings, MIME defaults, timeouts)."""

MAX_CHUNK_SIZE_BYTES: int = 4 * 1024 * 1024  # 4 MiB per-chunk ceiling
CLIENT_CHUNK_SIZE_BYTES: int = 2 * 1024 * 1024  # 2 MiB chunks sent by the CLI
STREAM_PIECE_SIZE_BYTES: int = 64 * 1024

LISTING_CACHE_TTL_SECONDS: float = 60.0
MIN_REFETCH_INTERVAL_SECONDS: float = 10.0

CHUNK_UPLOAD_TIMEOUT_SECONDS: float = 30.0
FINALIZE_TIMEOUT_SECONDS: float = 300.0
CONTENT_STORE_TIMEOUT_SECONDS: float = 120.0

DEFAULT_MIME_TYPE: str = "application/octet-stream"
FOLDER_MIME_TYPE: str = "application/folder"
ROOT_FOLDER_PATH: str = "/"

CHUNK_FILE_PREFIX: str = "chunk-"
DEFAULT_SERVICE_PORT: int = 8000
