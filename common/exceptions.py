"""Exception hierarchy shared by the vault, blobstore and CLI."""

from typing import Dict, Iterable, Optional


class BackupSystemError(Exception):
    """
    Base exception class for all backup-related errors.
    """
    pass


class BackupIOError(BackupSystemError, OSError):
    """
    Raised when a source file cannot be read or a destination cannot be written.
    """
    pass


class CryptoError(BackupSystemError):
    """
    Raised when key or nonce material is malformed or decryption fails.
    """

    def __init__(self, message: str, kind: str = "invalid_material"):
        super().__init__(message)
        self.kind = kind


class AuthenticationFailure(CryptoError):
    """
    Raised when a ciphertext was tampered with or decrypted with the wrong key/nonce.
    """

    def __init__(self, message: str):
        super().__init__(message, kind="authentication_failure")


class BackendError(BackupSystemError):
    """
    Raised when a storage backend fails to store or return a blob.
    """

    def __init__(self, message: str, backend_name: str = "", transient: bool = True):
        super().__init__(message)
        self.backend_name = backend_name
        self.transient = transient


class BlobNotFoundError(BackendError):
    """
    Raised when a requested key does not exist on a backend.
    """

    def __init__(self, key: str, backend_name: str = ""):
        super().__init__(f"Blob not found: {key}", backend_name=backend_name, transient=False)
        self.key = key


class ChunkUploadFailed(BackupSystemError):
    """
    Raised when a chunk could not be uploaded after exhausting retries.
    """

    def __init__(self, chunk_index: int, backend_name: str, attempts: int, cause: Optional[BaseException] = None):
        super().__init__(
            f"Chunk {chunk_index} failed on backend {backend_name} after {attempts} attempt(s): {cause}"
        )
        self.chunk_index = chunk_index
        self.backend_name = backend_name
        self.attempts = attempts
        self.cause = cause


class UploadCancelledError(BackupSystemError):
    """
    Raised inside a worker when the scheduler was cancelled before a chunk finished.
    """
    pass


class ValidationError(BackupSystemError):
    """
    Raised when file or chunk metadata is malformed.
    """
    pass


class InvalidStatusTransitionError(ValidationError):
    """
    Raised when a file status would move backwards.
    """
    pass


class FileRecordNotFoundError(BackupSystemError):
    """
    Raised when a requested file_id does not exist in the catalog.
    """
    pass


class ChecksumMismatchError(BackupSystemError):
    """
    Raised when a fetched chunk does not match its recorded checksum.
    """

    def __init__(self, chunk_index: int, backend_name: str):
        super().__init__(f"Checksum mismatch for chunk {chunk_index} on backend {backend_name}")
        self.chunk_index = chunk_index
        self.backend_name = backend_name


class IncompleteBackup(BackupSystemError):
    """
    Raised when a restore finds missing chunks, backends or blobs.

    Attributes:
        missing_indices: Sorted chunk indices that could not be restored
        missing_backends: Chunk index -> backend name it was expected on (None when it cannot be determined)
    """

    def __init__(self, file_id: str, missing_indices: Iterable[int], missing_backends: Optional[Dict[int, Optional[str]]] = None):
        self.file_id = file_id
        self.missing_indices = sorted(missing_indices)
        self.missing_backends = dict(missing_backends or {})
        super().__init__(
            f"Backup {file_id} is incomplete: missing chunk indices {self.missing_indices}"
        )
