"""Thread-safe in-memory backend, used by the blob server default and tests."""

import threading
from typing import Dict, List

from blobstore.base import StorageBackend, validate_key
from common.exceptions import BlobNotFoundError


class InMemoryBackend(StorageBackend):

    def __init__(self, name: str):
        super().__init__(name)
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes) -> None:
        validate_key(key, self.name)
        with self._lock:
            self._blobs[key] = bytes(data)

    def get(self, key: str) -> bytes:
        validate_key(key, self.name)
        with self._lock:
            try:
                return self._blobs[key]
            except KeyError:
                raise BlobNotFoundError(key, backend_name=self.name)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._blobs

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._blobs.pop(key, None) is not None

    def list_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._blobs)
