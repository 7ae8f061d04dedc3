"""Command parser for CLI input."""

import shlex

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


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

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

    command_name = tokens[0]

    if command_name == "wallet":
        return _parse_wallet(tokens[1:])
    elif command_name == "upload":
        return _parse_upload(tokens[1:])
    elif command_name == "list":
        return _parse_list(tokens[1:])
    elif command_name == "delete":
        return _parse_delete(tokens[1:])
    elif command_name == "info":
        return _parse_info(tokens[1:])
    elif command_name == "check":
        return _parse_check(tokens[1:])
    elif command_name == "purchase":
        return _parse_purchase(tokens[1:])
    elif command_name == "download":
        return _parse_download(tokens[1:])
    elif command_name == "config":
        return _parse_config(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_wallet(args: list[str]) -> WalletCommand:
    """Parse 'wallet [address]' command."""
    if len(args) > 1:
        raise ParseError("wallet takes at most 1 argument: [address]")

    return WalletCommand(address=args[0] if args else None)


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path> [mime-type]' command."""
    if not args or len(args) > 2:
        raise ParseError("upload requires 1 or 2 arguments: <path> [mime-type]")

    mime_type = args[1] if len(args) > 1 else None
    if mime_type is not None and "/" not in mime_type:
        raise ParseError(f"Invalid MIME type: {mime_type}")

    return UploadCommand(file_path=args[0], mime_type=mime_type)


def _parse_list(args: list[str]) -> ListCommand:
    """Parse 'list [--refresh]' command."""
    if not args:
        return ListCommand()
    if args == ["--refresh"]:
        return ListCommand(refresh=True)

    raise ParseError("list takes only the optional flag --refresh")


def _parse_delete(args: list[str]) -> DeleteCommand:
    """Parse 'delete <cid>' command."""
    if len(args) != 1:
        raise ParseError("delete requires exactly 1 argument: <cid>")

    return DeleteCommand(cid=args[0])


def _parse_info(args: list[str]) -> InfoCommand:
    """Parse 'info' command."""
    if args:
        raise ParseError("info takes no arguments")

    return InfoCommand()


def _parse_check(args: list[str]) -> CheckCommand:
    """Parse 'check <bytes>' command."""
    if len(args) != 1:
        raise ParseError("check requires exactly 1 argument: <bytes>")
    if not args[0].isdigit():
        raise ParseError(f"Invalid size: {args[0]} (expected a whole number of bytes)")

    return CheckCommand(file_size=int(args[0]))


def _parse_purchase(args: list[str]) -> PurchaseCommand:
    """Parse 'purchase <tx-hash> [method] [network]' command."""
    if not args or len(args) > 3:
        raise ParseError("purchase requires 1 to 3 arguments: <tx-hash> [method] [network]")

    transaction_hash = args[0]
    payment_method = args[1] if len(args) > 1 else "USDT"
    network = args[2] if len(args) > 2 else "Base"

    return PurchaseCommand(
        transaction_hash=transaction_hash,
        payment_method=payment_method,
        network=network,
    )


def _parse_download(args: list[str]) -> DownloadCommand:
    """Parse 'download <cid> [output_path]' command."""
    if len(args) < 1 or len(args) > 2:
        raise ParseError("download requires 1 or 2 arguments: <cid> [output_path]")

    cid = args[0]
    output_path = args[1] if len(args) > 1 else None

    return DownloadCommand(cid=cid, output_path=output_path)


def _parse_config(args: list[str]) -> ConfigCommand:
    """Parse 'config [name [value]]' or 'config --reset <name>' command."""
    if args and args[0] == "--reset":
        if len(args) != 2:
            raise ParseError("config --reset requires exactly 1 argument: <name>")
        return ConfigCommand(name=args[1], reset=True)

    if len(args) > 2:
        raise ParseError("config takes at most 2 arguments: [name [value]]")

    return ConfigCommand(
        name=args[0] if args else None,
        value=args[1] if len(args) > 1 else None,
    )
