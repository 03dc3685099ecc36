"""Builds StorageBackend instances from configuration."""

from typing import List

from blobstore.base import StorageBackend
from blobstore.http_backend import HttpBackend
from blobstore.local_backend import LocalDirectoryBackend
from blobstore.memory_backend import InMemoryBackend
from vault.config import BackendSettings


def build_backend(settings: BackendSettings) -> StorageBackend:
    if settings.kind == "local":
        return LocalDirectoryBackend(settings.name, settings.path, latency_seconds=settings.latency_seconds)
    if settings.kind == "http":
        return HttpBackend(settings.name, settings.url, timeout=settings.timeout_seconds)
    return InMemoryBackend(settings.name)


def build_backends(settings: List[BackendSettings]) -> List[StorageBackend]:
    return [build_backend(s) for s in settings]
