"""Service layer for backup and restore."""

from vault.services.backup_service import BackupOrchestrator

__all__ = [
    "BackupOrchestrator",
]
