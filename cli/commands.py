"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.exceptions import BackupSystemError, IncompleteBackup
from common.logging_config import get_logger
from common.types import FileStatus
from cli.config import Config
from cli.constants import GREEN, RED, RESET
from cli.models import (
    BackupCommand,
    ListCommand,
    RestoreCommand,
    ResumeCommand,
    StatusCommand,
    VerifyCommand,
)
from cli.utils import format_file_size, format_placement, format_timestamp
from vault.schemas import BackupReport
from vault.services import BackupOrchestrator

logger = get_logger(__name__)


_orchestrator: Optional[BackupOrchestrator] = None


def get_orchestrator() -> BackupOrchestrator:
    """
    Get or create global BackupOrchestrator instance.

    Returns:
        BackupOrchestrator built from ~/.shardvault/config.json
    """
    global _orchestrator
    if _orchestrator is None:
        logger.debug("Creating new BackupOrchestrator instance")
        config = Config(Path.home() / '.shardvault' / 'config.json')
        _orchestrator = BackupOrchestrator(config.to_settings())
    return _orchestrator


def close_orchestrator() -> None:
    """Stop the global orchestrator's workers, if one was created."""
    global _orchestrator
    if _orchestrator is not None:
        _orchestrator.close()
        _orchestrator = None


def _format_report(report: BackupReport) -> str:
    if report.status == FileStatus.COMPLETED:
        lines = [
            f"{GREEN}Backup completed{RESET} [file_id={report.file_id}]",
            f"  chunks: {report.chunk_count} ({report.uploaded_count} uploaded, {report.skipped_count} already stored)",
        ]
        return "\n".join(lines)

    lines = [
        f"{RED}Backup failed{RESET} [file_id={report.file_id}]",
        f"  {len(report.failed_chunks)} of {report.chunk_count} chunks not uploaded:",
    ]
    for failed in report.failed_chunks:
        lines.append(
            f"  - chunk {failed.chunk_index} on {failed.backend_name} "
            f"after {failed.attempts} attempt(s): {failed.error}"
        )
    lines.append(f"Run 'resume {report.file_id}' to upload the missing chunks.")
    return "\n".join(lines)


def handle_backup(cmd: BackupCommand, orchestrator: Optional[BackupOrchestrator] = None) -> str:
    """
    Handle 'backup' command.

    Args:
        cmd: BackupCommand with the source path
        orchestrator: Optional BackupOrchestrator for dependency injection (testing)

    Returns:
        Backup summary or error message
    """
    logger.info(f"Executing backup command: path={cmd.path}")
    if orchestrator is None:
        orchestrator = get_orchestrator()
    try:
        report = orchestrator.run_backup(cmd.path)
    except BackupSystemError as e:
        logger.error(f"Backup of {cmd.path} failed: {e}")
        return f"Error: {e}"
    return _format_report(report)


def handle_resume(cmd: ResumeCommand, orchestrator: Optional[BackupOrchestrator] = None) -> str:
    """
    Handle 'resume' command.

    Args:
        cmd: ResumeCommand with file_id
        orchestrator: Optional BackupOrchestrator for dependency injection (testing)

    Returns:
        Backup summary or error message
    """
    logger.info(f"Executing resume command: file_id={cmd.file_id}")
    if orchestrator is None:
        orchestrator = get_orchestrator()
    try:
        report = orchestrator.resume(cmd.file_id)
    except BackupSystemError as e:
        logger.error(f"Resume of {cmd.file_id} failed: {e}")
        return f"Error: {e}"
    return _format_report(report)


def handle_restore(cmd: RestoreCommand, orchestrator: Optional[BackupOrchestrator] = None) -> str:
    """
    Handle 'restore' command.

    Args:
        cmd: RestoreCommand with file_id and destination
        orchestrator: Optional BackupOrchestrator for dependency injection (testing)

    Returns:
        Restore summary or error message
    """
    logger.info(f"Executing restore command: file_id={cmd.file_id} destination={cmd.destination}")
    if orchestrator is None:
        orchestrator = get_orchestrator()
    try:
        report = orchestrator.restore(cmd.file_id, cmd.destination)
    except IncompleteBackup as e:
        missing = ", ".join(
            f"{index} ({e.missing_backends.get(index) or 'no record'})" for index in e.missing_indices
        )
        return f"Error: backup {e.file_id} is incomplete, missing chunks: {missing}"
    except BackupSystemError as e:
        logger.error(f"Restore of {cmd.file_id} failed: {e}")
        return f"Error: {e}"
    return (
        f"{GREEN}Restored{RESET} {format_file_size(report.bytes_written)} to {report.destination}\n"
        f"  sha256: {report.sha256}"
    )


def handle_verify(cmd: VerifyCommand, orchestrator: Optional[BackupOrchestrator] = None) -> str:
    """
    Handle 'verify' command.

    Args:
        cmd: VerifyCommand with file_id
        orchestrator: Optional BackupOrchestrator for dependency injection (testing)

    Returns:
        Verification summary or error message
    """
    if orchestrator is None:
        orchestrator = get_orchestrator()
    try:
        report = orchestrator.verify(cmd.file_id)
    except BackupSystemError as e:
        return f"Error: {e}"

    if report.ok:
        return f"{GREEN}OK{RESET}: all {report.checked_count} chunks verified [file_id={report.file_id}]"

    lines = [f"{RED}{len(report.problems)} bad chunk(s){RESET} [file_id={report.file_id}]"]
    for problem in report.problems:
        backend = problem.backend_name or "-"
        lines.append(f"  - chunk {problem.chunk_index} on {backend}: {problem.reason}")
    return "\n".join(lines)


def handle_status(cmd: StatusCommand, orchestrator: Optional[BackupOrchestrator] = None) -> str:
    """
    Handle 'status' command.

    Args:
        cmd: StatusCommand with file_id
        orchestrator: Optional BackupOrchestrator for dependency injection (testing)

    Returns:
        File details or error message
    """
    if orchestrator is None:
        orchestrator = get_orchestrator()
    try:
        summary = orchestrator.describe(cmd.file_id)
    except BackupSystemError as e:
        return f"Error: {e}"

    return "\n".join([
        f"file_id:    {summary.file_id}",
        f"path:       {summary.original_path}",
        f"size:       {format_file_size(summary.file_size)}",
        f"status:     {summary.status.value}",
        f"chunks:     {summary.uploaded_count}/{summary.chunk_count} uploaded "
        f"({format_file_size(summary.chunk_size)} each)",
        f"placement:  {format_placement(summary.placement)}",
        f"created:    {format_timestamp(summary.created_at)}",
    ])


def handle_list(cmd: ListCommand, orchestrator: Optional[BackupOrchestrator] = None) -> str:
    """
    Handle 'list' command.

    Args:
        cmd: ListCommand
        orchestrator: Optional BackupOrchestrator for dependency injection (testing)

    Returns:
        Formatted list of backups
    """
    logger.info("Executing list command")
    if orchestrator is None:
        orchestrator = get_orchestrator()
    try:
        summaries = orchestrator.list_backups()
    except BackupSystemError as e:
        return f"Error: {e}"

    if not summaries:
        return "No backups found"

    lines = []
    for summary in summaries:
        lines.append(
            f"{summary.file_id}  {summary.status.value:<9}  "
            f"{format_file_size(summary.file_size):>10}  "
            f"{summary.uploaded_count}/{summary.chunk_count}  {summary.original_path}"
        )
    return "\n".join(lines)
