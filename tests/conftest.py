"""Shared pytest fixtures for all tests."""

import threading
from typing import List, Optional

import pytest

from blobstore.memory_backend import InMemoryBackend
from cli.config import Config
from common.exceptions import BackendError
from vault.catalog import MetadataCatalog
from vault.config import BackendSettings, BackupSettings, RetrySettings
from vault.services import BackupOrchestrator

SMALL_CHUNK = 1024


class FlakyBackend(InMemoryBackend):
    """
    In-memory backend that fails puts on demand.

    Args:
        fail_times: Number of initial puts per key that raise a transient error
        fail_keys: Keys whose puts always fail
        transient: Whether the permanent failures for fail_keys are transient
    """

    def __init__(self, name: str, fail_times: int = 0, fail_keys=(), transient: bool = True):
        super().__init__(name)
        self.fail_times = fail_times
        self.fail_keys = set(fail_keys)
        self.transient = transient
        self.put_calls: List[str] = []
        self._attempts = {}
        self._calls_lock = threading.Lock()

    def put(self, key: str, data: bytes) -> None:
        with self._calls_lock:
            self.put_calls.append(key)
            attempt = self._attempts.get(key, 0) + 1
            self._attempts[key] = attempt
        if key in self.fail_keys:
            raise BackendError(f"put {key} refused", backend_name=self.name, transient=self.transient)
        if attempt <= self.fail_times:
            raise BackendError(f"put {key} timed out", backend_name=self.name, transient=True)
        super().put(key, data)


def make_settings(tmp_path, chunk_size: int = SMALL_CHUNK, worker_count: int = 4,
                  queue_capacity: Optional[int] = None, max_attempts: int = 3) -> BackupSettings:
    return BackupSettings(
        database_path=str(tmp_path / "catalog.db"),
        chunk_size_bytes=chunk_size,
        worker_count=worker_count,
        queue_capacity=queue_capacity,
        retry=RetrySettings(max_attempts=max_attempts, backoff_base_seconds=0.0, backoff_max_seconds=0.0),
        backends=[BackendSettings(name=name, kind="memory") for name in ("A", "B", "C")],
    )


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .shardvault directory
    """
    config_dir = tmp_path / '.shardvault'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def settings(tmp_path):
    """BackupSettings with 1 KiB chunks, three memory backends and no backoff."""
    return make_settings(tmp_path)


@pytest.fixture
def catalog(tmp_path):
    return MetadataCatalog(str(tmp_path / "catalog.db"))


@pytest.fixture
def backends():
    """Three in-memory backends named A, B and C."""
    return [InMemoryBackend("A"), InMemoryBackend("B"), InMemoryBackend("C")]


@pytest.fixture
def orchestrator(settings, catalog, backends):
    orch = BackupOrchestrator(settings, catalog=catalog, backends=backends)
    yield orch
    orch.close()


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file spanning three 1 KiB chunks (1024 + 1024 + 500 bytes).

    Returns:
        Path to sample file
    """
    file_path = tmp_path / 'sample.bin'
    file_path.write_bytes(bytes(i % 251 for i in range(2 * SMALL_CHUNK + 500)))
    return file_path


@pytest.fixture
def flaky_backend_cls():
    """The FlakyBackend class, for tests that build their own failing backends."""
    return FlakyBackend


@pytest.fixture
def settings_factory(tmp_path):
    """Build BackupSettings under tmp_path with overridden chunk size, pool size or retries."""
    def factory(**kwargs) -> BackupSettings:
        return make_settings(tmp_path, **kwargs)
    return factory
