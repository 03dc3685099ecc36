"""Configuration management for ShardVault CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from common.constants import (
    CHUNK_SIZE_BYTES,
    DEFAULT_BACKUP_ROOT,
    DEFAULT_DATABASE_PATH,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_WORKER_COUNT,
)
from common.exceptions import ValidationError
from common.logging_config import get_logger
from vault.config import BackupSettings, RetrySettings, default_backends

logger = get_logger(__name__)


def _default_config() -> Dict[str, Any]:
    return {
        "database_path": os.environ.get("SHARDVAULT_DATABASE_PATH", DEFAULT_DATABASE_PATH),
        "backup_root": os.environ.get("SHARDVAULT_BACKUP_ROOT", DEFAULT_BACKUP_ROOT),
        "chunk_size_bytes": int(os.environ.get("SHARDVAULT_CHUNK_SIZE", str(CHUNK_SIZE_BYTES))),
        "worker_count": int(os.environ.get("SHARDVAULT_WORKERS", str(DEFAULT_WORKER_COUNT))),
        "queue_capacity": None,
        "max_retries": DEFAULT_MAX_ATTEMPTS,
        "retry_backoff_multiplier": 2,
        "backends": None,
    }


class Config:
    """Manages CLI configuration stored in JSON file."""

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.shardvault/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.shardvault' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        config = _default_config()
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Unreadable config file {self.config_path}, using defaults: {e}")
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config file: {copy_error}")
                return config

        try:
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not write default config to {self.config_path}: {e}")
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config to {self.config_path}: {e}")

    def get_database_path(self) -> str:
        return self.data.get('database_path', DEFAULT_DATABASE_PATH)

    def get_backup_root(self) -> str:
        return self.data.get('backup_root', DEFAULT_BACKUP_ROOT)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', DEFAULT_MAX_ATTEMPTS),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }

    def get_backends(self) -> Optional[List[dict]]:
        """
        Explicit backend list, or None to use the default local providers.
        """
        return self.data.get('backends')

    def to_settings(self) -> BackupSettings:
        """
        Build validated BackupSettings from this configuration.

        Raises:
            ValidationError: If any value is out of range or inconsistent
        """
        retry = self.get_retry_config()
        backends = self.get_backends()
        try:
            return BackupSettings(
                database_path=self.get_database_path(),
                chunk_size_bytes=self.data.get('chunk_size_bytes', CHUNK_SIZE_BYTES),
                worker_count=self.data.get('worker_count', DEFAULT_WORKER_COUNT),
                queue_capacity=self.data.get('queue_capacity'),
                retry=RetrySettings(
                    max_attempts=retry['max_retries'],
                    backoff_multiplier=retry['retry_backoff_multiplier'],
                ),
                backends=backends if backends is not None else default_backends(self.get_backup_root()),
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid configuration in {self.config_path}: {e}") from e
