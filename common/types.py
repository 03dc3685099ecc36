"""Shared data type definitions (FileRecord, ChunkRecord, status enums)."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class FileStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


class ChunkStatus(str, Enum):
    QUEUED = "queued"
    UPLOADED = "uploaded"
    FAILED = "failed"


@dataclass(frozen=True)
class FileRecord:
    """
    Metadata for a backed-up file, including the key material for all its chunks.
    """
    file_id: str
    original_path: str
    file_size: int
    chunk_count: int
    chunk_size: int
    encryption_key: bytes = field(repr=False)
    encryption_nonce_seed: bytes = field(repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: FileStatus = FileStatus.PENDING


@dataclass(frozen=True)
class ChunkRecord:
    """
    Metadata for a single uploaded chunk of a file.
    """
    chunk_id: str
    file_id: str
    chunk_index: int
    chunk_size: int
    backend_name: str
    remote_key: str
    checksum: str
    status: ChunkStatus = ChunkStatus.UPLOADED
