"""Storage backend capability shared by every blob store variant."""

import re
from abc import ABC, abstractmethod

from common.exceptions import BackendError

_VALID_KEY = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,254}$")


def validate_key(key: str, backend_name: str = "") -> str:
    """
    Reject keys that could escape a backend's namespace.

    Raises:
        BackendError: Non-transient, if the key is empty or contains path separators
    """
    if not isinstance(key, str) or not _VALID_KEY.match(key) or ".." in key:
        raise BackendError(f"Invalid blob key: {key!r}", backend_name=backend_name, transient=False)
    return key


class StorageBackend(ABC):
    """
    Durable key -> bytes store.

    put() must be safe to retry: storing the same bytes under the same key
    again is not an error. get() raises BlobNotFoundError for absent keys.
    Failures raise BackendError; `transient` tells the caller whether a
    retry may succeed.
    """

    def __init__(self, name: str):
        if not name:
            raise ValueError("Backend name must not be empty")
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r})"
