"""Bounded upload queue consumed by a fixed pool of worker threads."""

import queue
import threading
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from blobstore.base import StorageBackend
from common.checksum import compute_checksum
from common.exceptions import BackendError, ChunkUploadFailed, UploadCancelledError
from common.logging_config import get_logger
from common.types import ChunkRecord, ChunkStatus
from vault.catalog import MetadataCatalog
from vault.cipher import CipherEngine
from vault.config import RetrySettings

logger = get_logger(__name__)

_STOP = object()


class CancellationToken:
    """
    Shared cancellation flag observed cooperatively by workers between tasks
    and while waiting out retry backoff.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """
        Sleep up to `timeout` seconds, returning early (True) on cancellation.
        """
        return self._event.wait(timeout)


@dataclass(eq=False)
class UploadTask:
    """
    One chunk upload: encrypt, checksum, put, record.

    The index and backend are fixed before submission; the worker fills in
    status, attempts, checksum and error.
    """
    file_id: str
    chunk_index: int
    plaintext: bytes = field(repr=False)
    backend: StorageBackend
    remote_key: str
    encryption_key: bytes = field(repr=False)
    nonce_seed: bytes = field(repr=False)
    status: ChunkStatus = ChunkStatus.QUEUED
    attempts: int = 0
    checksum: Optional[str] = None
    error: Optional[BaseException] = None
    chunk_size: int = field(init=False)

    def __post_init__(self):
        self.chunk_size = len(self.plaintext)

    @property
    def backend_name(self) -> str:
        return self.backend.name


class UploadScheduler:
    """
    Executes UploadTasks on a fixed pool of worker threads.

    submit() blocks while the queue is full, await_idle() blocks until every
    submitted task is uploaded or failed, and shutdown() drains the queue and
    joins the workers. Catalog writes happen on worker threads; the catalog
    serializes them itself.
    """

    def __init__(
        self,
        catalog: MetadataCatalog,
        cipher: CipherEngine,
        retry: RetrySettings,
        worker_count: int,
        queue_capacity: int,
        cancel_token: Optional[CancellationToken] = None,
        name: str = "upload",
    ):
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")
        if queue_capacity < 1:
            raise ValueError(f"queue_capacity must be >= 1, got {queue_capacity}")

        self.catalog = catalog
        self.cipher = cipher
        self.retry = retry
        self.worker_count = worker_count
        self.name = name
        self.cancel_token = cancel_token or CancellationToken()

        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_capacity)
        self._idle = threading.Condition()
        self._outstanding = 0
        self._workers: List[threading.Thread] = []
        self._started = False
        self._closed = False

    @property
    def outstanding(self) -> int:
        with self._idle:
            return self._outstanding

    def start(self) -> None:
        """Start the worker threads (no-op if already started)."""
        with self._idle:
            if self._started:
                return
            self._started = True

        for i in range(self.worker_count):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"{self.name}-worker-{i}",
                daemon=True,
            )
            worker.start()
            self._workers.append(worker)
        logger.info(f"Started upload scheduler [workers={self.worker_count}] [capacity={self._queue.maxsize}]")

    def submit(self, task: UploadTask) -> None:
        """
        Enqueue a task, blocking while the queue is at capacity.

        Raises:
            RuntimeError: If the scheduler is shutting down
        """
        with self._idle:
            if self._closed:
                raise RuntimeError("Upload scheduler is shut down")
            self._outstanding += 1
        self.start()
        self._queue.put(task)

    def await_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every submitted task is uploaded or failed.

        Returns:
            True when idle, False if `timeout` elapsed first
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout=timeout)

    def cancel(self) -> None:
        """
        Ask workers to stop: running tasks finish their current step, queued tasks fail unexecuted.
        """
        logger.warning("Upload scheduler cancelled")
        self.cancel_token.cancel()

    def shutdown(self) -> None:
        """
        Stop accepting tasks, let queued ones drain, then join the workers.
        """
        with self._idle:
            if self._closed:
                return
            self._closed = True

        self.await_idle()
        for _ in self._workers:
            self._queue.put(_STOP)
        for worker in self._workers:
            worker.join()
        logger.info("Upload scheduler stopped")

    def __enter__(self) -> "UploadScheduler":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def _worker_loop(self) -> None:
        while True:
            task = self._queue.get()
            try:
                if task is _STOP:
                    return
                self._run_task(task)
            finally:
                self._queue.task_done()

    def _run_task(self, task: UploadTask) -> None:
        try:
            if self.cancel_token.cancelled:
                raise UploadCancelledError(f"Chunk {task.chunk_index} cancelled before upload")
            self._execute(task)
            task.status = ChunkStatus.UPLOADED
        except UploadCancelledError as e:
            task.error = e
            task.status = ChunkStatus.FAILED
            logger.info(f"Chunk cancelled [file_id={task.file_id}] [index={task.chunk_index}]")
        except Exception as e:
            task.error = e
            task.status = ChunkStatus.FAILED
            logger.error(
                f"Chunk upload failed [file_id={task.file_id}] [index={task.chunk_index}] "
                f"[backend={task.backend_name}]: {e}",
                exc_info=not isinstance(e, ChunkUploadFailed),
            )
        finally:
            task.plaintext = b""
            with self._idle:
                self._outstanding -= 1
                if self._outstanding == 0:
                    self._idle.notify_all()

    def _execute(self, task: UploadTask) -> None:
        ciphertext = self.cipher.encrypt_chunk(
            task.encryption_key, task.nonce_seed, task.chunk_index, task.plaintext
        )
        task.checksum = compute_checksum(ciphertext)

        self._put_with_retry(task, ciphertext)

        self.catalog.record_chunk(
            ChunkRecord(
                chunk_id=str(uuid.uuid4()),
                file_id=task.file_id,
                chunk_index=task.chunk_index,
                chunk_size=task.chunk_size,
                backend_name=task.backend_name,
                remote_key=task.remote_key,
                checksum=task.checksum,
                status=ChunkStatus.UPLOADED,
            )
        )
        logger.info(
            f"Chunk {task.chunk_index} uploaded to {task.backend_name} "
            f"[file_id={task.file_id}] [attempts={task.attempts}]"
        )

    def _put_with_retry(self, task: UploadTask, ciphertext: bytes) -> None:
        """
        Retry transient backend failures with exponential backoff.

        Raises:
            ChunkUploadFailed: On a permanent failure or after the last attempt
            UploadCancelledError: If cancelled between attempts
        """
        max_attempts = self.retry.max_attempts
        last_error: Optional[BackendError] = None

        for attempt in range(max_attempts):
            if self.cancel_token.cancelled:
                raise UploadCancelledError(f"Chunk {task.chunk_index} cancelled during retry")

            task.attempts = attempt + 1
            try:
                task.backend.put(task.remote_key, ciphertext)
                return
            except BackendError as e:
                last_error = e
                if not e.transient or attempt == max_attempts - 1:
                    break

                delay = self.retry.delay_for(attempt)
                logger.warning(
                    f"Transient failure on {task.backend_name}, retrying chunk {task.chunk_index} "
                    f"in {delay:.2f}s (attempt {attempt + 1}/{max_attempts}): {e}"
                )
                if self.cancel_token.wait(delay):
                    raise UploadCancelledError(f"Chunk {task.chunk_index} cancelled during backoff")

        raise ChunkUploadFailed(task.chunk_index, task.backend_name, task.attempts, last_error)
