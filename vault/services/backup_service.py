"""Backup service: drives chunking, encryption, upload and restore."""

import os
import stat
import uuid
from collections import Counter
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Optional, Sequence, Tuple

from blobstore.base import StorageBackend
from common.checksum import IncrementalChecksumCalculator, verify_checksum
from common.constants import REMOTE_KEY_TEMPLATE
from common.exceptions import (
    BackendError,
    BackupIOError,
    BackupSystemError,
    ChecksumMismatchError,
    CryptoError,
    IncompleteBackup,
    ValidationError,
)
from common.logging_config import get_logger
from common.types import ChunkRecord, ChunkStatus, FileRecord, FileStatus
from vault.backend_selector import RoundRobinSelector
from vault.backends import build_backends
from vault.catalog import MetadataCatalog
from vault.chunker import chunk_count_for, expected_chunk_size, iter_chunks, read_chunk
from vault.cipher import CipherEngine, generate_key_material
from vault.config import BackupSettings
from vault.scheduler import CancellationToken, UploadScheduler, UploadTask
from vault.schemas import BackupReport, ChunkProblem, FailedChunk, FileSummary, RestoreReport, VerifyReport

logger = get_logger(__name__)


def remote_key_for(file_id: str, index: int) -> str:
    return REMOTE_KEY_TEMPLATE.format(file_id=file_id, index=index)


class BackupOrchestrator:
    """
    Backs up one file at a time: Init -> Chunking/Uploading -> Finalizing -> Completed | Failed.

    Chunks are produced lazily and handed to the upload scheduler as they
    are read, so at most a queue's worth of chunks (plus one per worker) is
    held in memory. The catalog decides the final status: a file is
    completed only if every index in [0, chunk_count) has an uploaded row.
    """

    def __init__(
        self,
        settings: BackupSettings,
        catalog: Optional[MetadataCatalog] = None,
        backends: Optional[Sequence[StorageBackend]] = None,
        cipher: Optional[CipherEngine] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        """
        Args:
            settings: Chunk size, pool size, retry policy and backend configuration
            catalog: Metadata catalog (defaults to one at settings.database_path)
            backends: Storage backends (defaults to those built from settings.backends)
            cipher: Cipher engine (testing)
            cancel_token: Shared cancellation token for the upload workers
        """
        self.settings = settings
        self.catalog = catalog or MetadataCatalog(settings.database_path)
        if backends is None:
            backends = build_backends(settings.backends)
        self.selector = RoundRobinSelector(backends)
        self.cipher = cipher or CipherEngine()
        self.scheduler = UploadScheduler(
            catalog=self.catalog,
            cipher=self.cipher,
            retry=settings.retry,
            worker_count=settings.worker_count,
            queue_capacity=settings.effective_queue_capacity,
            cancel_token=cancel_token,
        )

    def __enter__(self) -> "BackupOrchestrator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Drain and stop the worker pool and release backend clients."""
        self.scheduler.shutdown()
        for backend in self.selector.backends:
            close = getattr(backend, "close", None)
            if callable(close):
                close()

    def backup(self, path: str) -> str:
        """
        Back up a file.

        Returns:
            The new file_id; check the catalog (or use run_backup) for the outcome
        """
        return self.run_backup(path).file_id

    def run_backup(self, path: str, resume_file_id: Optional[str] = None) -> BackupReport:
        """
        Back up a file, or resume an earlier backup of it.

        Raises:
            BackupIOError: If the source cannot be opened or read
            ValidationError: If the metadata is inconsistent
        """
        if resume_file_id is not None:
            return self.resume(resume_file_id)

        source_path = Path(path)
        logger.info(f"Starting backup of {source_path}")

        with self._open_source(source_path) as source:
            file_size = self._source_size(source, source_path)
            chunk_size = self.settings.chunk_size_bytes
            key, nonce_seed = generate_key_material()

            record = FileRecord(
                file_id=str(uuid.uuid4()),
                original_path=str(source_path.resolve()),
                file_size=file_size,
                chunk_count=chunk_count_for(file_size, chunk_size),
                chunk_size=chunk_size,
                encryption_key=key,
                encryption_nonce_seed=nonce_seed,
            )
            self.catalog.create_file(record)
            logger.info(
                f"File size: {file_size} bytes, will create {record.chunk_count} chunks "
                f"[file_id={record.file_id}]"
            )

            return self._upload(record, self._stream_chunks(record, source), skipped_count=0)

    def resume(self, file_id: str) -> BackupReport:
        """
        Upload only the chunks of an earlier backup that have no catalog row yet.

        The source is re-read from the recorded original_path with random
        access, one missing index at a time.

        Raises:
            FileRecordNotFoundError: If the file_id is unknown
            BackupIOError: If the original file cannot be read
            ValidationError: If the original file's size changed since the backup began
        """
        record = self.catalog.get_file(file_id)
        uploaded = self.catalog.uploaded_indices(file_id)

        if record.status == FileStatus.COMPLETED:
            logger.info(f"Backup already completed, nothing to resume [file_id={file_id}]")
            return BackupReport(
                file_id=file_id,
                status=record.status,
                chunk_count=record.chunk_count,
                uploaded_count=len(uploaded),
                skipped_count=len(uploaded),
            )

        missing = [i for i in range(record.chunk_count) if i not in uploaded]
        logger.info(
            f"Resuming backup [file_id={file_id}]: {len(uploaded)} chunk(s) present, "
            f"{len(missing)} to upload"
        )

        source_path = Path(record.original_path)
        with self._open_source(source_path) as source:
            file_size = self._source_size(source, source_path)
            if file_size != record.file_size:
                raise ValidationError(
                    f"Source {source_path} changed size since backup began "
                    f"({record.file_size} -> {file_size} bytes)"
                )
            return self._upload(record, self._read_missing(record, source, missing), skipped_count=len(uploaded))

    def restore(self, file_id: str, destination: str) -> RestoreReport:
        """
        Rebuild a backed-up file at `destination`.

        Every chunk is fetched from its recorded backend, its checksum is
        verified before decryption, and plaintext is written in index order
        to a temporary file that replaces `destination` only on success.

        Raises:
            FileRecordNotFoundError: If the file_id is unknown
            IncompleteBackup: If chunks, backends or blobs are missing
            ChecksumMismatchError: If a stored blob does not match its checksum
            AuthenticationFailure: If a blob fails decryption
            BackupIOError: If the destination cannot be written
        """
        record = self.catalog.get_file(file_id)
        chunks = self._uploaded_chunks(file_id)

        missing: Dict[int, Optional[str]] = {
            i: self.selector.select(i).name for i in range(record.chunk_count) if i not in chunks
        }
        for index, chunk in chunks.items():
            if not self._has_backend(chunk.backend_name):
                missing[index] = chunk.backend_name
        if missing:
            logger.error(f"Restore aborted, backup incomplete [file_id={file_id}] [missing={sorted(missing)}]")
            raise IncompleteBackup(file_id, missing.keys(), missing)

        dest = Path(destination)
        tmp_path = dest.with_name(dest.name + ".partial")
        logger.info(f"Restoring {record.chunk_count} chunk(s) to {dest} [file_id={file_id}]")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            written, digest = self._write_restored(record, chunks, tmp_path)
            os.replace(tmp_path, dest)
        except BackupSystemError:
            tmp_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise BackupIOError(f"Cannot write restore destination {dest}: {e}") from e

        logger.info(f"Restore completed [file_id={file_id}] [bytes={written}]")
        return RestoreReport(
            file_id=file_id,
            destination=str(dest),
            bytes_written=written,
            chunk_count=record.chunk_count,
            sha256=digest,
        )

    def verify(self, file_id: str) -> VerifyReport:
        """
        Fetch and authenticate every chunk without writing anything.
        """
        record = self.catalog.get_file(file_id)
        chunks = self._uploaded_chunks(file_id)
        problems: List[ChunkProblem] = []

        for index in range(record.chunk_count):
            chunk = chunks.get(index)
            if chunk is None:
                problems.append(ChunkProblem(chunk_index=index, reason="not recorded in catalog"))
                continue
            if not self._has_backend(chunk.backend_name):
                problems.append(ChunkProblem(chunk_index=index, backend_name=chunk.backend_name, reason="backend not configured"))
                continue
            try:
                self._fetch_plaintext(record, chunk)
            except (BackendError, ChecksumMismatchError, CryptoError, ValidationError) as e:
                problems.append(ChunkProblem(chunk_index=index, backend_name=chunk.backend_name, reason=str(e)))

        if problems:
            logger.warning(f"Verification found {len(problems)} bad chunk(s) [file_id={file_id}]")
        else:
            logger.info(f"Verification passed [file_id={file_id}] [chunks={record.chunk_count}]")
        return VerifyReport(file_id=file_id, checked_count=record.chunk_count, problems=problems)

    def describe(self, file_id: str) -> FileSummary:
        record = self.catalog.get_file(file_id)
        return self._summarize(record)

    def list_backups(self) -> List[FileSummary]:
        return [self._summarize(record) for record in self.catalog.list_files()]

    def _summarize(self, record: FileRecord) -> FileSummary:
        chunks = self.catalog.list_chunks(record.file_id)
        uploaded = [c for c in chunks if c.status == ChunkStatus.UPLOADED]
        placement = dict(Counter(c.backend_name for c in uploaded))
        return FileSummary.from_record(record, uploaded_count=len(uploaded), placement=placement)

    def _upload(self, record: FileRecord, chunks: Iterator[Tuple[int, bytes]], skipped_count: int) -> BackupReport:
        self.catalog.set_file_status(record.file_id, FileStatus.UPLOADING)
        tasks: List[UploadTask] = []

        try:
            for index, data in chunks:
                backend = self.selector.select(index)
                task = UploadTask(
                    file_id=record.file_id,
                    chunk_index=index,
                    plaintext=data,
                    backend=backend,
                    remote_key=remote_key_for(record.file_id, index),
                    encryption_key=record.encryption_key,
                    nonce_seed=record.encryption_nonce_seed,
                )
                self.scheduler.submit(task)
                tasks.append(task)
                logger.debug(f"Queued chunk {index} for {backend.name} [file_id={record.file_id}]")
        except Exception:
            logger.error(f"Chunking aborted, waiting for queued uploads [file_id={record.file_id}]")
            self.scheduler.await_idle()
            self.catalog.set_file_status(record.file_id, FileStatus.FAILED)
            raise

        return self._finalize(record, tasks, skipped_count)

    def _finalize(self, record: FileRecord, tasks: List[UploadTask], skipped_count: int) -> BackupReport:
        self.scheduler.await_idle()

        uploaded = {c.chunk_index for c in self.catalog.list_chunks(record.file_id) if c.status == ChunkStatus.UPLOADED}
        expected = set(range(record.chunk_count))

        failed_chunks = [
            FailedChunk(
                chunk_index=task.chunk_index,
                backend_name=task.backend_name,
                attempts=task.attempts,
                error=str(task.error) if task.error else None,
            )
            for task in tasks
            if task.chunk_index not in uploaded
        ]
        reported = {c.chunk_index for c in failed_chunks}
        for index in sorted(expected - uploaded - reported):
            failed_chunks.append(
                FailedChunk(chunk_index=index, backend_name=self.selector.select(index).name, error="not uploaded")
            )
        failed_chunks.sort(key=lambda c: c.chunk_index)

        status = FileStatus.COMPLETED if uploaded == expected else FileStatus.FAILED
        self.catalog.set_file_status(record.file_id, status)

        if status == FileStatus.COMPLETED:
            logger.info(f"Backup completed successfully [file_id={record.file_id}] [chunks={record.chunk_count}]")
        else:
            logger.error(
                f"Backup failed [file_id={record.file_id}] "
                f"[failed_indices={[c.chunk_index for c in failed_chunks]}]"
            )

        return BackupReport(
            file_id=record.file_id,
            status=status,
            chunk_count=record.chunk_count,
            uploaded_count=len(uploaded),
            skipped_count=skipped_count,
            failed_chunks=failed_chunks,
        )

    def _stream_chunks(self, record: FileRecord, source: BinaryIO) -> Iterator[Tuple[int, bytes]]:
        for index, data in iter_chunks(source, record.chunk_size):
            if index >= record.chunk_count:
                raise ValidationError(f"Source {record.original_path} grew during backup")
            yield index, data

    def _read_missing(self, record: FileRecord, source: BinaryIO, missing: List[int]) -> Iterator[Tuple[int, bytes]]:
        for index in missing:
            data = read_chunk(source, record.chunk_size, index)
            if len(data) != expected_chunk_size(record.file_size, record.chunk_size, index):
                raise ValidationError(f"Source {record.original_path} changed during resume at chunk {index}")
            yield index, data

    def _uploaded_chunks(self, file_id: str) -> Dict[int, ChunkRecord]:
        return {
            c.chunk_index: c
            for c in self.catalog.list_chunks(file_id)
            if c.status == ChunkStatus.UPLOADED
        }

    def _has_backend(self, name: str) -> bool:
        try:
            self.selector.get(name)
        except KeyError:
            return False
        return True

    def _fetch_plaintext(self, record: FileRecord, chunk: ChunkRecord) -> bytes:
        backend = self.selector.get(chunk.backend_name)
        ciphertext = backend.get(chunk.remote_key)
        if not verify_checksum(ciphertext, chunk.checksum):
            raise ChecksumMismatchError(chunk.chunk_index, chunk.backend_name)
        plaintext = self.cipher.decrypt_chunk(
            record.encryption_key, record.encryption_nonce_seed, chunk.chunk_index, ciphertext
        )
        if len(plaintext) != chunk.chunk_size:
            raise ValidationError(
                f"Chunk {chunk.chunk_index} decrypted to {len(plaintext)} bytes, expected {chunk.chunk_size}"
            )
        return plaintext

    def _write_restored(self, record: FileRecord, chunks: Dict[int, ChunkRecord], tmp_path: Path) -> Tuple[int, str]:
        hasher = IncrementalChecksumCalculator()
        missing: Dict[int, Optional[str]] = {}
        written = 0

        with open(tmp_path, "wb") as out:
            for index in range(record.chunk_count):
                chunk = chunks[index]
                if missing:
                    # Already incomplete: only probe the remaining blobs for the report.
                    if not self._blob_exists(chunk):
                        missing[index] = chunk.backend_name
                    continue
                try:
                    plaintext = self._fetch_plaintext(record, chunk)
                except BackendError as e:
                    logger.warning(f"Chunk {index} unavailable on {chunk.backend_name}: {e}")
                    missing[index] = chunk.backend_name
                    continue
                out.write(plaintext)
                hasher.update(plaintext)
                written += len(plaintext)

        if missing:
            raise IncompleteBackup(record.file_id, missing.keys(), missing)
        if written != record.file_size:
            raise ValidationError(f"Restored {written} bytes, expected {record.file_size}")
        return written, hasher.finalize()

    def _blob_exists(self, chunk: ChunkRecord) -> bool:
        try:
            return self.selector.get(chunk.backend_name).exists(chunk.remote_key)
        except BackendError:
            return False

    @staticmethod
    def _open_source(path: Path) -> BinaryIO:
        try:
            return open(path, "rb")
        except OSError as e:
            raise BackupIOError(f"Cannot open file: {path}: {e}") from e

    @staticmethod
    def _source_size(source: BinaryIO, path: Path) -> int:
        try:
            st = os.fstat(source.fileno())
        except OSError as e:
            raise BackupIOError(f"Cannot stat file: {path}: {e}") from e
        if not stat.S_ISREG(st.st_mode):
            raise BackupIOError(f"Not a regular file: {path}")
        return st.st_size
