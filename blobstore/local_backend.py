"""Backend that stores blobs as files in a local directory."""

import os
import tempfile
import time
from pathlib import Path
from typing import List

from blobstore.base import StorageBackend, validate_key
from common.exceptions import BackendError, BlobNotFoundError
from common.logging_config import get_logger

logger = get_logger(__name__)


class LocalDirectoryBackend(StorageBackend):
    """
    Stores each blob as one file under `root`.

    Writes go to a temporary file in the same directory and are renamed into
    place, so a reader never sees a partially written blob.
    """

    def __init__(self, name: str, root: str, latency_seconds: float = 0.0):
        """
        Args:
            name: Backend name recorded in chunk metadata
            root: Directory holding the blobs (created if missing)
            latency_seconds: Artificial delay per put, to simulate a remote provider
        """
        super().__init__(name)
        self.root = Path(root)
        self.latency_seconds = latency_seconds
        self.root.mkdir(parents=True, exist_ok=True)

    def get_blob_path(self, key: str) -> Path:
        return self.root / validate_key(key, self.name)

    def put(self, key: str, data: bytes) -> None:
        path = self.get_blob_path(key)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".upload-", suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise BackendError(f"Failed to write {key}: {e}", backend_name=self.name) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        if self.latency_seconds > 0:
            time.sleep(self.latency_seconds)
        logger.debug(f"Stored blob [backend={self.name}] [key={key}] [size={len(data)}]")

    def get(self, key: str) -> bytes:
        path = self.get_blob_path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise BlobNotFoundError(key, backend_name=self.name)
        except OSError as e:
            raise BackendError(f"Failed to read {key}: {e}", backend_name=self.name) from e

    def exists(self, key: str) -> bool:
        return self.get_blob_path(key).is_file()

    def list_keys(self) -> List[str]:
        """
        List all blob keys in the directory, skipping in-progress uploads.
        """
        if not self.root.exists():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_file() and not p.name.startswith("."))
