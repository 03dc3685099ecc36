"""REPL with prompt_toolkit for user interaction."""

import os
import sys
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from cli.commands import (
    handle_backup,
    handle_list,
    handle_restore,
    handle_resume,
    handle_status,
    handle_verify,
)
from cli.completer import ShardVaultCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.models import (
    BackupCommand,
    CommandRequest,
    ListCommand,
    RestoreCommand,
    ResumeCommand,
    StatusCommand,
    VerifyCommand,
)
from cli.parser import ParseError, parse_command

HANDLERS = {
    BackupCommand: handle_backup,
    ResumeCommand: handle_resume,
    RestoreCommand: handle_restore,
    VerifyCommand: handle_verify,
    StatusCommand: handle_status,
    ListCommand: handle_list,
}


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    os.system("cls" if sys.platform == "win32" else "clear")


def show_welcome() -> None:
    """Display the ShardVault logo and welcome banner."""
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


def dispatch_command(cmd_obj: CommandRequest) -> str:
    """Dispatch parsed command to appropriate handler."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    return handler(cmd_obj)


def run_builtin(line: str) -> bool:
    """
    Run a REPL-only command (help, clear).

    Returns:
        True if the line was a builtin and has been handled
    """
    if line == "help":
        print(HELP_TEXT)
        return True
    if line == "clear":
        clear_screen()
        show_welcome()
        return True
    return False


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    session: PromptSession = PromptSession(
        completer=ShardVaultCompleter(), history=InMemoryHistory(), style=STYLE
    )

    clear_screen()
    show_welcome()

    while True:
        try:
            line = session.prompt([("class:prompt", PROMPT_TEXT)]).strip()
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break

        if not line:
            continue
        if line == "exit":
            print("Goodbye!")
            break
        if run_builtin(line):
            continue

        try:
            print(dispatch_command(parse_command(line)))
        except ParseError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            print("Interrupted")
