"""Configuration models for the backup pipeline.

Settings are always passed explicitly to the vault components; only the CLI
and blob server entry points read the environment.
"""

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from common.constants import (
    CHUNK_SIZE_BYTES,
    DEFAULT_BACKOFF_BASE_SECONDS,
    DEFAULT_BACKOFF_MAX_SECONDS,
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BACKUP_ROOT,
    DEFAULT_DATABASE_PATH,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_PROVIDERS,
    DEFAULT_QUEUE_CAPACITY_PER_WORKER,
    DEFAULT_WORKER_COUNT,
    HTTP_BACKEND_TIMEOUT_SECONDS,
)


class RetrySettings(BaseModel):
    """Retry policy for transient backend failures."""
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    backoff_base_seconds: float = Field(default=DEFAULT_BACKOFF_BASE_SECONDS, ge=0)
    backoff_multiplier: float = Field(default=DEFAULT_BACKOFF_MULTIPLIER, ge=1)
    backoff_max_seconds: float = Field(default=DEFAULT_BACKOFF_MAX_SECONDS, ge=0)

    def delay_for(self, attempt: int) -> float:
        """
        Backoff before the retry following `attempt` (0-based).
        """
        delay = self.backoff_base_seconds * (self.backoff_multiplier ** attempt)
        return min(delay, self.backoff_max_seconds)


class BackendSettings(BaseModel):
    """One storage backend."""
    name: str = Field(min_length=1)
    kind: Literal["local", "memory", "http"] = "local"
    path: Optional[str] = None
    url: Optional[str] = None
    timeout_seconds: float = Field(default=HTTP_BACKEND_TIMEOUT_SECONDS, gt=0)
    latency_seconds: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def check_location(self) -> "BackendSettings":
        if self.kind == "local" and not self.path:
            raise ValueError(f"local backend '{self.name}' requires a path")
        if self.kind == "http" and not self.url:
            raise ValueError(f"http backend '{self.name}' requires a url")
        return self


def default_backends(root: str = DEFAULT_BACKUP_ROOT) -> List[BackendSettings]:
    """
    Three local-directory providers under `root`, one directory per provider.
    """
    return [
        BackendSettings(name=name, kind="local", path=str(Path(root) / name.lower()))
        for name in DEFAULT_PROVIDERS
    ]


class BackupSettings(BaseModel):
    """Everything the vault core consumes."""
    database_path: str = DEFAULT_DATABASE_PATH
    chunk_size_bytes: int = Field(default=CHUNK_SIZE_BYTES, gt=0)
    worker_count: int = Field(default=DEFAULT_WORKER_COUNT, ge=1)
    queue_capacity: Optional[int] = Field(default=None, ge=1)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    backends: List[BackendSettings] = Field(default_factory=default_backends)

    @field_validator("database_path")
    @classmethod
    def check_database_path(cls, database_path: str) -> str:
        if database_path.strip() in ("", ":memory:"):
            raise ValueError("database_path must name a file on disk")
        return database_path

    @field_validator("backends")
    @classmethod
    def check_backends(cls, backends: List[BackendSettings]) -> List[BackendSettings]:
        if not backends:
            raise ValueError("at least one backend is required")
        names = [b.name for b in backends]
        if len(set(names)) != len(names):
            raise ValueError(f"backend names must be unique: {names}")
        return backends

    @property
    def effective_queue_capacity(self) -> int:
        if self.queue_capacity is not None:
            return self.queue_capacity
        return self.worker_count * DEFAULT_QUEUE_CAPACITY_PER_WORKER
