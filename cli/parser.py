"""Command parser for CLI input."""

import shlex

from cli.models import (
    BackupCommand,
    CommandRequest,
    ListCommand,
    RestoreCommand,
    ResumeCommand,
    StatusCommand,
    VerifyCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL or command line

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0].lower()
    args = tokens[1:]

    if command_name == "backup":
        return _parse_backup(args)
    elif command_name == "resume":
        return ResumeCommand(file_id=_single_file_id("resume", args))
    elif command_name == "restore":
        return _parse_restore(args)
    elif command_name == "verify":
        return VerifyCommand(file_id=_single_file_id("verify", args))
    elif command_name == "status":
        return StatusCommand(file_id=_single_file_id("status", args))
    elif command_name == "list":
        if args:
            raise ParseError("list takes no arguments")
        return ListCommand()
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_backup(args: list[str]) -> BackupCommand:
    """Parse 'backup <path>' command."""
    if len(args) != 1:
        raise ParseError("backup requires exactly 1 argument: <path>")
    return BackupCommand(path=args[0])


def _parse_restore(args: list[str]) -> RestoreCommand:
    """Parse 'restore <file_id> <destination>' command."""
    if len(args) != 2:
        raise ParseError("restore requires exactly 2 arguments: <file_id> <destination>")

    file_id, destination = args
    return RestoreCommand(file_id=file_id, destination=destination)


def _single_file_id(command: str, args: list[str]) -> str:
    if len(args) != 1:
        raise ParseError(f"{command} requires exactly 1 argument: <file_id>")
    return args[0]
