"""File repository for database operations."""

import sqlite3
from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from common.types import FileRecord, FileStatus

logger = get_logger(__name__)

_FILE_COLUMNS = """
    file_id, original_path, file_size, chunk_count, chunk_size,
    encryption_key, encryption_nonce_seed, created_at, status
"""


def _row_to_file(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        file_id=row["file_id"],
        original_path=row["original_path"],
        file_size=row["file_size"],
        chunk_count=row["chunk_count"],
        chunk_size=row["chunk_size"],
        encryption_key=bytes(row["encryption_key"]),
        encryption_nonce_seed=bytes(row["encryption_nonce_seed"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        status=FileStatus(row["status"]),
    )


class FileRepository:
    @staticmethod
    def create_file(record: FileRecord, conn: sqlite3.Connection) -> None:
        cursor = conn.cursor()
        try:
            cursor.execute(
                f"""
                INSERT INTO files ({_FILE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.file_id,
                    record.original_path,
                    record.file_size,
                    record.chunk_count,
                    record.chunk_size,
                    record.encryption_key,
                    record.encryption_nonce_seed,
                    record.created_at.isoformat(),
                    record.status.value,
                )
            )
        except sqlite3.Error as e:
            logger.error(f"Failed to insert file row [file_id={record.file_id}]: {e}", exc_info=True)
            raise
        logger.debug(f"Inserted file row [file_id={record.file_id}] [chunks={record.chunk_count}]")

    @staticmethod
    def get_by_id(file_id: str, conn: sqlite3.Connection) -> Optional[FileRecord]:
        cursor = conn.cursor()
        cursor.execute(f"SELECT {_FILE_COLUMNS} FROM files WHERE file_id = ?", (file_id,))
        row = cursor.fetchone()

        if row is None:
            return None

        return _row_to_file(row)

    @staticmethod
    def update_status(file_id: str, status: FileStatus, conn: sqlite3.Connection) -> None:
        cursor = conn.cursor()
        try:
            cursor.execute(
                "UPDATE files SET status = ? WHERE file_id = ?",
                (status.value, file_id)
            )
        except sqlite3.Error as e:
            logger.error(f"Failed to update file status [file_id={file_id}] [status={status.value}]: {e}", exc_info=True)
            raise

    @staticmethod
    def list_files(conn: sqlite3.Connection) -> List[FileRecord]:
        cursor = conn.cursor()
        cursor.execute(f"SELECT {_FILE_COLUMNS} FROM files ORDER BY created_at DESC")
        return [_row_to_file(row) for row in cursor.fetchall()]
