"""Project-wide constants (e.g., CHUNK_SIZE, worker pool defaults)."""

CHUNK_SIZE_BYTES: int = 10 * 1024 * 1024  # 10 MiB default chunk size

DEFAULT_WORKER_COUNT: int = 4
DEFAULT_QUEUE_CAPACITY_PER_WORKER: int = 2

DEFAULT_MAX_ATTEMPTS: int = 3
DEFAULT_BACKOFF_BASE_SECONDS: float = 0.5
DEFAULT_BACKOFF_MULTIPLIER: float = 2.0
DEFAULT_BACKOFF_MAX_SECONDS: float = 8.0

KEY_SIZE_BYTES: int = 32
NONCE_SEED_SIZE_BYTES: int = 8
NONCE_SIZE_BYTES: int = 12
MAX_CHUNK_INDEX: int = 2 ** 32 - 1

DEFAULT_DATABASE_PATH: str = "./data/catalog.db"
DEFAULT_BACKUP_ROOT: str = "./backup"
DEFAULT_PROVIDERS = ("GoogleDrive", "Dropbox", "OneDrive")

REMOTE_KEY_TEMPLATE: str = "file_{file_id}_chunk_{index}.enc"

BLOBSTORE_HOST: str = "0.0.0.0"
BLOBSTORE_PORT: int = 8100
HTTP_BACKEND_TIMEOUT_SECONDS: float = 30.0
