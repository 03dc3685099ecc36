"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class BackupCommand:
    """Back up a file."""

    path: str
    command: Literal["backup"] = "backup"


@dataclass(frozen=True)
class ResumeCommand:
    """Upload the missing chunks of an earlier backup."""

    file_id: str
    command: Literal["resume"] = "resume"


@dataclass(frozen=True)
class RestoreCommand:
    """Restore a backed-up file to a destination path."""

    file_id: str
    destination: str
    command: Literal["restore"] = "restore"


@dataclass(frozen=True)
class VerifyCommand:
    """Check every stored chunk of a backup."""

    file_id: str
    command: Literal["verify"] = "verify"


@dataclass(frozen=True)
class StatusCommand:
    """Show catalog details of one backup."""

    file_id: str
    command: Literal["status"] = "status"


@dataclass(frozen=True)
class ListCommand:
    """List all backups."""

    command: Literal["list"] = "list"


CommandRequest = (
    BackupCommand
    | ResumeCommand
    | RestoreCommand
    | VerifyCommand
    | StatusCommand
    | ListCommand
)
