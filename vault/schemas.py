"""Pydantic schemas for backup, restore and verify results."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from common.types import FileRecord, FileStatus


class FailedChunk(BaseModel):
    """A chunk that did not reach the uploaded state."""
    chunk_index: int
    backend_name: str
    attempts: int = 0
    error: Optional[str] = None


class BackupReport(BaseModel):
    """Result of a backup or resume run."""
    file_id: str
    status: FileStatus
    chunk_count: int
    uploaded_count: int
    skipped_count: int = 0
    failed_chunks: List[FailedChunk] = []

    @property
    def failed_indices(self) -> List[int]:
        return [c.chunk_index for c in self.failed_chunks]


class RestoreReport(BaseModel):
    """Result of a successful restore."""
    file_id: str
    destination: str
    bytes_written: int
    chunk_count: int
    sha256: str


class ChunkProblem(BaseModel):
    """A chunk that failed verification."""
    chunk_index: int
    backend_name: Optional[str] = None
    reason: str


class VerifyReport(BaseModel):
    """Result of checking every stored chunk of a file."""
    file_id: str
    checked_count: int
    problems: List[ChunkProblem] = []

    @property
    def ok(self) -> bool:
        return not self.problems

    @property
    def bad_indices(self) -> List[int]:
        return [p.chunk_index for p in self.problems]


class FileSummary(BaseModel):
    """Catalog view of one backed-up file."""
    file_id: str
    original_path: str
    file_size: int
    chunk_count: int
    chunk_size: int
    status: FileStatus
    created_at: datetime
    uploaded_count: int
    placement: Dict[str, int] = {}

    @classmethod
    def from_record(cls, record: FileRecord, uploaded_count: int, placement: Dict[str, int]) -> "FileSummary":
        return cls(
            file_id=record.file_id,
            original_path=record.original_path,
            file_size=record.file_size,
            chunk_count=record.chunk_count,
            chunk_size=record.chunk_size,
            status=record.status,
            created_at=record.created_at,
            uploaded_count=uploaded_count,
            placement=placement,
        )
