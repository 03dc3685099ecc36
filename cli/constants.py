"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["backup", "resume", "restore", "verify", "status", "list", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2E9E6B bold",
        "command": "#0088ff bold",
    }
)

GREEN = "\033[38;2;46;158;107m"
RED = "\033[38;2;220;50;47m"
RESET = "\033[0m"

LOGO = f"""{GREEN}
 ███████╗██╗  ██╗ █████╗ ██████╗ ██████╗ ██╗   ██╗ █████╗ ██╗   ██╗██╗  ████████╗
 ██╔════╝██║  ██║██╔══██╗██╔══██╗██╔══██╗██║   ██║██╔══██╗██║   ██║██║  ╚══██╔══╝
 ███████╗███████║███████║██████╔╝██║  ██║██║   ██║███████║██║   ██║██║     ██║
 ╚════██║██╔══██║██╔══██║██╔══██╗██║  ██║╚██╗ ██╔╝██╔══██║██║   ██║██║     ██║
 ███████║██║  ██║██║  ██║██║  ██║██████╔╝ ╚████╔╝ ██║  ██║╚██████╔╝███████╗██║
 ╚══════╝╚═╝  ╚═╝╚═╝  ╚═╝╚═╝  ╚═╝╚═════╝   ╚═══╝  ╚═╝  ╚═╝ ╚═════╝ ╚══════╝╚═╝
{RESET}"""

WELCOME_TITLE = "ShardVault CLI - Encrypted Chunked Backups"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "shardvault> "

HELP_TEXT = """Available commands:
  backup <path>                       Chunk, encrypt and upload a file
  resume <file_id>                    Upload only the chunks an earlier backup is missing
  restore <file_id> <destination>     Restore a completed backup to a new file
  verify <file_id>                    Fetch and check every stored chunk
  status <file_id>                    Show catalog details of one backup
  list                                List all backups, newest first
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Examples:
  backup reports/q3.tar
  status 3f2c9a1e-...
  resume 3f2c9a1e-...
  restore 3f2c9a1e-... restored/q3.tar"""
