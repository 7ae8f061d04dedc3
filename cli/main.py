"""HashVault CLI entry point."""

import os
import sys

from common.logging_config import setup_logging
from cli.repl import repl_loop


def main() -> None:
    """
    Entry point for the hashvault command.

    Logging stays at WARNING unless --debug or LOG_LEVEL says otherwise,
    so request logs do not interleave with REPL output.
    """
    debug = '--debug' in sys.argv
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)

    if debug:
        logger.debug("Debug logging enabled")
        sys.argv.remove('--debug')

    logger.info("HashVault CLI starting...")
    try:
        repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("HashVault CLI exiting")


if __name__ == "__main__":
    main()
