"""Durable metadata catalog for file and chunk records.

The catalog is the single writer of durable state. Every write goes through
one internal lock and one SQLite transaction, so concurrent upload workers
never need external locking.
"""

import sqlite3
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Set

from common.constants import KEY_SIZE_BYTES, NONCE_SEED_SIZE_BYTES
from common.exceptions import FileRecordNotFoundError, InvalidStatusTransitionError, ValidationError
from common.logging_config import get_logger
from common.types import ChunkRecord, ChunkStatus, FileRecord, FileStatus
from vault.chunker import chunk_count_for, expected_chunk_size
from vault.database import get_db_connection, init_database
from vault.repositories import ChunkRepository, FileRepository

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: Dict[FileStatus, Set[FileStatus]] = {
    FileStatus.PENDING: {FileStatus.UPLOADING, FileStatus.FAILED},
    FileStatus.UPLOADING: {FileStatus.COMPLETED, FileStatus.FAILED},
    FileStatus.FAILED: {FileStatus.UPLOADING},
    FileStatus.COMPLETED: set(),
}


class MetadataCatalog:
    """
    SQLite-backed store of FileRecords and ChunkRecords.
    """

    def __init__(self, db_path: str):
        """
        Args:
            db_path: Path to the SQLite database file (created if missing)

        Raises:
            ValidationError: If db_path does not name a file on disk
        """
        if db_path.strip() in ("", ":memory:"):
            raise ValidationError(f"Catalog database must be a file path, got {db_path!r}")
        self.db_path = db_path
        self._write_lock = threading.Lock()
        init_database(db_path)
        logger.info(f"Metadata catalog ready [path={db_path}]")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._write_lock, get_db_connection(self.db_path) as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def create_file(self, record: FileRecord) -> str:
        """
        Persist a new FileRecord.

        Returns:
            The record's file_id

        Raises:
            ValidationError: If size, chunk count or key material are inconsistent
        """
        self._validate_file(record)
        try:
            with self._transaction() as conn:
                FileRepository.create_file(record, conn)
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"File {record.file_id} already exists") from e
        logger.info(
            f"Created file record [file_id={record.file_id}] [size={record.file_size}] "
            f"[chunks={record.chunk_count}]"
        )
        return record.file_id

    def record_chunk(self, chunk: ChunkRecord) -> bool:
        """
        Record an uploaded chunk.

        Returns:
            True if recorded, False if the chunk index already had a row (never overwritten)

        Raises:
            FileRecordNotFoundError: If the owning file does not exist
            ValidationError: If index or size do not fit the owning file
        """
        with self._transaction() as conn:
            record = FileRepository.get_by_id(chunk.file_id, conn)
            if record is None:
                raise FileRecordNotFoundError(f"File {chunk.file_id} not found")
            self._validate_chunk(record, chunk)
            inserted = ChunkRepository.insert_chunk(chunk, conn)

        if inserted:
            logger.debug(
                f"Recorded chunk [file_id={chunk.file_id}] [index={chunk.chunk_index}] "
                f"[backend={chunk.backend_name}]"
            )
        else:
            logger.info(
                f"Chunk already recorded, keeping existing row "
                f"[file_id={chunk.file_id}] [index={chunk.chunk_index}]"
            )
        return inserted

    def set_file_status(self, file_id: str, status: FileStatus) -> None:
        """
        Move a file to a new status.

        Raises:
            FileRecordNotFoundError: If the file does not exist
            InvalidStatusTransitionError: If the move is not forward, or if
                completing a file whose chunks are not all uploaded
        """
        status = FileStatus(status)
        with self._transaction() as conn:
            record = FileRepository.get_by_id(file_id, conn)
            if record is None:
                raise FileRecordNotFoundError(f"File {file_id} not found")

            if record.status == status:
                return
            if status not in ALLOWED_TRANSITIONS[record.status]:
                raise InvalidStatusTransitionError(
                    f"Cannot move file {file_id} from {record.status.value} to {status.value}"
                )
            if status == FileStatus.COMPLETED:
                uploaded = ChunkRepository.get_uploaded_indices(file_id, conn)
                if uploaded != set(range(record.chunk_count)):
                    raise InvalidStatusTransitionError(
                        f"Cannot complete file {file_id}: "
                        f"{record.chunk_count - len(uploaded)} chunk(s) not uploaded"
                    )

            FileRepository.update_status(file_id, status, conn)

        logger.info(f"File status changed [file_id={file_id}] {record.status.value} -> {status.value}")

    def get_file(self, file_id: str) -> FileRecord:
        with get_db_connection(self.db_path) as conn:
            record = FileRepository.get_by_id(file_id, conn)
        if record is None:
            raise FileRecordNotFoundError(f"File {file_id} not found")
        return record

    def list_chunks(self, file_id: str) -> List[ChunkRecord]:
        """
        Chunks recorded for a file, ordered by chunk_index.
        """
        with get_db_connection(self.db_path) as conn:
            return ChunkRepository.get_chunks_by_file(file_id, conn)

    def uploaded_indices(self, file_id: str) -> Set[int]:
        with get_db_connection(self.db_path) as conn:
            return ChunkRepository.get_uploaded_indices(file_id, conn)

    def list_files(self) -> List[FileRecord]:
        """
        All file records, newest first.
        """
        with get_db_connection(self.db_path) as conn:
            return FileRepository.list_files(conn)

    @staticmethod
    def _validate_file(record: FileRecord) -> None:
        if record.file_size < 0:
            raise ValidationError(f"file_size must be >= 0, got {record.file_size}")
        if record.chunk_size <= 0:
            raise ValidationError(f"chunk_size must be > 0, got {record.chunk_size}")
        expected = chunk_count_for(record.file_size, record.chunk_size)
        if record.chunk_count != expected:
            raise ValidationError(
                f"chunk_count {record.chunk_count} inconsistent with file_size {record.file_size} "
                f"and chunk_size {record.chunk_size} (expected {expected})"
            )
        if len(record.encryption_key) != KEY_SIZE_BYTES:
            raise ValidationError(f"encryption_key must be {KEY_SIZE_BYTES} bytes")
        if len(record.encryption_nonce_seed) != NONCE_SEED_SIZE_BYTES:
            raise ValidationError(f"encryption_nonce_seed must be {NONCE_SEED_SIZE_BYTES} bytes")
        if record.status != FileStatus.PENDING:
            raise ValidationError(f"New files must be pending, got {record.status.value}")

    @staticmethod
    def _validate_chunk(record: FileRecord, chunk: ChunkRecord) -> None:
        if not 0 <= chunk.chunk_index < record.chunk_count:
            raise ValidationError(
                f"chunk_index {chunk.chunk_index} out of range [0, {record.chunk_count})"
            )
        expected = expected_chunk_size(record.file_size, record.chunk_size, chunk.chunk_index)
        if chunk.chunk_size != expected:
            raise ValidationError(
                f"chunk {chunk.chunk_index} size {chunk.chunk_size} != expected {expected}"
            )
        if chunk.status != ChunkStatus.UPLOADED:
            raise ValidationError(f"Only uploaded chunks are recorded, got {chunk.status.value}")
        if not chunk.checksum or not chunk.remote_key or not chunk.backend_name:
            raise ValidationError(f"chunk {chunk.chunk_index} is missing location or checksum")
