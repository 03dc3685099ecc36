"""Splits a byte stream into ordered fixed-size chunks."""

import io
from typing import BinaryIO, Iterator, Tuple

from common.exceptions import BackupIOError


def chunk_count_for(file_size: int, chunk_size: int) -> int:
    """
    Number of chunks a file of `file_size` bytes splits into (ceil division).
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
    if file_size < 0:
        raise ValueError(f"file_size must be >= 0, got {file_size}")
    return -(-file_size // chunk_size)


def expected_chunk_size(file_size: int, chunk_size: int, index: int) -> int:
    """
    Plaintext length of chunk `index`; only the last chunk may be shorter.
    """
    return max(0, min(chunk_size, file_size - index * chunk_size))


def _read_exactly(source: BinaryIO, size: int) -> bytes:
    # Raw and unbuffered streams may return short reads before EOF.
    parts = []
    remaining = size
    while remaining > 0:
        piece = source.read(remaining)
        if not piece:
            break
        parts.append(piece)
        remaining -= len(piece)
    return b"".join(parts)


def _seek_to(source: BinaryIO, offset: int) -> None:
    try:
        source.seek(offset, io.SEEK_SET)
    except (AttributeError, io.UnsupportedOperation) as e:
        raise BackupIOError(f"Source does not support random access: {e}") from e
    except OSError as e:
        raise BackupIOError(f"Cannot seek source to offset {offset}: {e}") from e


def iter_chunks(source: BinaryIO, chunk_size: int, start_index: int = 0) -> Iterator[Tuple[int, bytes]]:
    """
    Lazily yield (index, bytes) pairs covering the source exactly once.

    Args:
        source: Readable binary stream
        chunk_size: Chunk size in bytes
        start_index: First chunk to produce; requires a seekable source when > 0

    Yields:
        (chunk_index, chunk_bytes), the last chunk possibly shorter

    Raises:
        BackupIOError: If the source cannot be read or positioned
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
    if start_index < 0:
        raise ValueError(f"start_index must be >= 0, got {start_index}")

    if start_index > 0:
        _seek_to(source, start_index * chunk_size)

    index = start_index
    while True:
        try:
            data = _read_exactly(source, chunk_size)
        except OSError as e:
            raise BackupIOError(f"Failed to read chunk {index}: {e}") from e
        if not data:
            break
        yield index, data
        index += 1


def read_chunk(source: BinaryIO, chunk_size: int, index: int) -> bytes:
    """
    Random-access read of a single chunk.

    Raises:
        BackupIOError: If the source cannot be positioned or read
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
    _seek_to(source, index * chunk_size)
    try:
        return _read_exactly(source, chunk_size)
    except OSError as e:
        raise BackupIOError(f"Failed to read chunk {index}: {e}") from e
