"""Chunk repository for database operations."""

import sqlite3
from typing import List, Set

from common.logging_config import get_logger
from common.types import ChunkRecord, ChunkStatus

logger = get_logger(__name__)


class ChunkRepository:
    @staticmethod
    def insert_chunk(chunk: ChunkRecord, conn: sqlite3.Connection) -> bool:
        """
        Insert a chunk row unless its (file_id, chunk_index) is already recorded.

        Returns:
            True if a row was inserted, False if one already existed
        """
        cursor = conn.cursor()
        try:
            cursor.execute(
                """
                INSERT INTO chunks (chunk_id, file_id, chunk_index, chunk_size,
                                    backend_name, remote_key, checksum, status)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(file_id, chunk_index) DO NOTHING
                """,
                (
                    chunk.chunk_id,
                    chunk.file_id,
                    chunk.chunk_index,
                    chunk.chunk_size,
                    chunk.backend_name,
                    chunk.remote_key,
                    chunk.checksum,
                    chunk.status.value,
                )
            )
        except sqlite3.Error as e:
            logger.error(
                f"Failed to insert chunk [file_id={chunk.file_id}] [index={chunk.chunk_index}]: {e}",
                exc_info=True,
            )
            raise
        return cursor.rowcount == 1

    @staticmethod
    def get_chunks_by_file(file_id: str, conn: sqlite3.Connection) -> List[ChunkRecord]:
        cursor = conn.cursor()
        cursor.execute(
            """
            SELECT chunk_id, file_id, chunk_index, chunk_size,
                   backend_name, remote_key, checksum, status
            FROM chunks
            WHERE file_id = ?
            ORDER BY chunk_index
            """,
            (file_id,)
        )
        rows = cursor.fetchall()

        return [
            ChunkRecord(
                chunk_id=row["chunk_id"],
                file_id=row["file_id"],
                chunk_index=row["chunk_index"],
                chunk_size=row["chunk_size"],
                backend_name=row["backend_name"],
                remote_key=row["remote_key"],
                checksum=row["checksum"],
                status=ChunkStatus(row["status"]),
            )
            for row in rows
        ]

    @staticmethod
    def get_uploaded_indices(file_id: str, conn: sqlite3.Connection) -> Set[int]:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT chunk_index FROM chunks WHERE file_id = ? AND status = ?",
            (file_id, ChunkStatus.UPLOADED.value)
        )
        return {row["chunk_index"] for row in cursor.fetchall()}
