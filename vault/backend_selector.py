"""Chunk placement across storage backends."""

from collections import Counter
from typing import Dict, List, Sequence

from blobstore.base import StorageBackend
from common.exceptions import ValidationError


class RoundRobinSelector:
    """
    Deterministic round-robin placement: chunk i goes to backends[i mod N].

    Placement can be recomputed from the chunk index alone, although the
    catalog's recorded backend_name stays authoritative for restores.
    """

    def __init__(self, backends: Sequence[StorageBackend]):
        if not backends:
            raise ValidationError("At least one storage backend is required")
        self._backends: List[StorageBackend] = list(backends)
        self._by_name: Dict[str, StorageBackend] = {}
        for backend in self._backends:
            if backend.name in self._by_name:
                raise ValidationError(f"Duplicate backend name: {backend.name}")
            self._by_name[backend.name] = backend

    @property
    def backends(self) -> List[StorageBackend]:
        return list(self._backends)

    def select(self, index: int) -> StorageBackend:
        if index < 0:
            raise ValueError(f"chunk index must be >= 0, got {index}")
        return self._backends[index % len(self._backends)]

    def get(self, name: str) -> StorageBackend:
        """
        Look up a backend by name.

        Raises:
            KeyError: If no configured backend has this name
        """
        return self._by_name[name]

    def placement(self, chunk_count: int) -> Dict[str, int]:
        """
        Number of chunks each backend receives for a file of `chunk_count` chunks.
        """
        counts = Counter(self.select(i).name for i in range(chunk_count))
        return {backend.name: counts.get(backend.name, 0) for backend in self._backends}
