"""CLI entry point."""

import shlex
import sys
import os

from common.logging_config import setup_logging
from cli.commands import close_orchestrator
from cli.parser import ParseError, parse_command
from cli.repl import dispatch_command, repl_loop


def main() -> None:
    """
    Entry point for CLI.

    With arguments, runs that single command (e.g. 'shardvault backup file.bin')
    and exits; otherwise starts the interactive REPL.
    """
    log_level = 'DEBUG' if '--debug' in sys.argv else os.getenv('LOG_LEVEL', 'INFO')

    logger = setup_logging('cli', log_level=log_level)
    setup_logging('vault', log_level=log_level)
    setup_logging('common', log_level=log_level)
    setup_logging('blobstore', log_level=log_level)

    if '--debug' in sys.argv:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    logger.info("CLI starting...")
    try:
        if len(sys.argv) > 1:
            try:
                cmd_obj = parse_command(shlex.join(sys.argv[1:]))
            except ParseError as e:
                print(f"Error: {e}")
                sys.exit(2)
            print(dispatch_command(cmd_obj))
        else:
            repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        close_orchestrator()
        logger.info("CLI exiting")


if __name__ == "__main__":
    main()
