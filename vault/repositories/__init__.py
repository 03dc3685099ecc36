"""Repository layer for catalog persistence."""

from vault.repositories.chunk_repository import ChunkRepository
from vault.repositories.file_repository import FileRepository

__all__ = ["ChunkRepository", "FileRepository"]
