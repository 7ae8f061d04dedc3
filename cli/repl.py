"""Interactive HashVault shell built on prompt_toolkit."""

from pathlib import Path
from typing import Callable, Dict, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory, History, InMemoryHistory
from prompt_toolkit.shortcuts import clear

from common.logging_config import get_logger
from cli.commands import (
    handle_check,
    handle_config,
    handle_delete,
    handle_download,
    handle_info,
    handle_list,
    handle_purchase,
    handle_upload,
    handle_wallet,
)
from cli.constants import (
    COMMANDS,
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.models import (
    CheckCommand,
    CommandRequest,
    ConfigCommand,
    DeleteCommand,
    DownloadCommand,
    InfoCommand,
    ListCommand,
    PurchaseCommand,
    UploadCommand,
    WalletCommand,
)
from cli.parser import ParseError, parse_command

logger = get_logger(__name__)

HISTORY_PATH = Path.home() / '.hashvault' / 'history'

HANDLERS: Dict[type, Callable[[CommandRequest], str]] = {
    WalletCommand: handle_wallet,
    UploadCommand: handle_upload,
    ListCommand: handle_list,
    DeleteCommand: handle_delete,
    InfoCommand: handle_info,
    CheckCommand: handle_check,
    PurchaseCommand: handle_purchase,
    DownloadCommand: handle_download,
    ConfigCommand: handle_config,
}


def show_banner() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


def dispatch_command(cmd_obj: CommandRequest) -> str:
    """Run the handler registered for the parsed command's type."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj).__name__}"
    return handler(cmd_obj)


def run_builtin(word: str) -> Optional[bool]:
    """
    Handle shell-level commands that never reach the service.

    Returns:
        None if word is not a builtin, False to leave the shell, True otherwise
    """
    if word == "exit":
        print("Goodbye!")
        return False
    if word == "help":
        print(HELP_TEXT)
        return True
    if word == "clear":
        clear()
        show_banner()
        return True
    return None


def open_history(path: Path = HISTORY_PATH) -> History:
    """Command history kept across sessions, or in memory if the file cannot be used."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=True)
    except OSError as e:
        logger.warning(f"History file unavailable, keeping history in memory: {e}")
        return InMemoryHistory()
    return FileHistory(str(path))


def handle_line(line: str) -> bool:
    """
    Process one line of input.

    Returns:
        False when the shell should exit
    """
    stripped = line.strip()
    if not stripped:
        return True

    builtin = run_builtin(stripped)
    if builtin is not None:
        return builtin

    try:
        print(dispatch_command(parse_command(stripped)))
    except ParseError as e:
        print(f"Error: {e}")
    return True


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    session: PromptSession = PromptSession(
        completer=WordCompleter(COMMANDS, ignore_case=True),
        history=open_history(),
        style=STYLE,
    )

    clear()
    show_banner()

    while True:
        try:
            line = session.prompt([("class:prompt", PROMPT_TEXT)])
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break

        if not handle_line(line):
            break
