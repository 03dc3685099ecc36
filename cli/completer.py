"""Custom completer for ShardVault CLI with path autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS

# Command -> positions (1-based) of arguments that are local paths.
PATH_ARGUMENTS = {
    "backup": {1},
    "restore": {2},
}


class ShardVaultCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local path completion for 'backup <path>' and the destination of 'restore'
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        position = len(tokens) if is_typing_new_token else len(tokens) - 1
        if position not in PATH_ARGUMENTS.get(command, set()):
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_paths(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str) -> Iterable[Completion]:
        """
        Complete entries of the directory the partial path points into.

        Directories are suggested with a trailing '/'; hidden entries only
        when the partial name starts with '.'.
        """
        if partial.endswith("/"):
            directory_part, name_part = partial, ""
        else:
            directory_part = partial.rpartition("/")[0] + "/" if "/" in partial else ""
            name_part = partial.rpartition("/")[2]

        directory = Path(directory_part).expanduser() if directory_part else Path.cwd()
        if not directory.is_dir():
            return

        entries = []
        for item in directory.iterdir():
            if item.name.startswith(".") and not name_part.startswith("."):
                continue
            if not item.name.startswith(name_part):
                continue
            suffix = "/" if item.is_dir() else ""
            entries.append(f"{directory_part}{item.name}{suffix}")

        for entry in sorted(entries):
            yield Completion(entry, start_position=-len(partial))
