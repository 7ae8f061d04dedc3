"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.models import (
    CheckCommand,
    ConfigCommand,
    DeleteCommand,
    DownloadCommand,
    InfoCommand,
    ListCommand,
    PurchaseCommand,
    UploadCommand,
    WalletCommand,
)
from cli.config import SETTINGS, Config, ConfigError
from cli.vault_client import VaultClient

logger = get_logger(__name__)


_client: Optional[VaultClient] = None

RESTART_SETTINGS = {"vault_url", "timeout"}


def get_client() -> VaultClient:
    """
    Get or create global VaultClient instance.

    Returns:
        VaultClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new VaultClient instance")
        config = Config(Path.home() / '.hashvault' / 'config.json')
        _client = VaultClient(config)
    return _client


def handle_wallet(cmd: WalletCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'wallet' command.

    Args:
        cmd: WalletCommand with optional address
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Current or updated wallet
    """
    if client is None:
        client = get_client()
    return client.set_wallet(cmd.address)


def handle_upload(cmd: UploadCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with file_path and optional mime_type
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Success or error message with upload result
    """
    logger.info(f"Executing upload command: path={cmd.file_path}")
    if client is None:
        client = get_client()
    result = client.upload_file(cmd.file_path, cmd.mime_type)
    logger.debug("Upload command completed")
    return result


def handle_list(cmd: ListCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'list' command.

    Args:
        cmd: ListCommand with refresh flag
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Formatted list of files
    """
    if client is None:
        client = get_client()
    return client.list_files(refresh=cmd.refresh)


def handle_delete(cmd: DeleteCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'delete' command.

    Args:
        cmd: DeleteCommand with cid
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Success or error message with deletion results
    """
    if client is None:
        client = get_client()
    return client.delete_file(cmd.cid)


def handle_info(cmd: InfoCommand, client: Optional[VaultClient] = None) -> str:
    """Handle 'info' command."""
    if client is None:
        client = get_client()
    return client.storage_info()


def handle_check(cmd: CheckCommand, client: Optional[VaultClient] = None) -> str:
    """Handle 'check' command."""
    if client is None:
        client = get_client()
    return client.check_storage(cmd.file_size)


def handle_purchase(cmd: PurchaseCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'purchase' command.

    Args:
        cmd: PurchaseCommand with transaction hash, payment method and network
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing purchase command: network={cmd.network} method={cmd.payment_method}")
    if client is None:
        client = get_client()
    return client.purchase(cmd.transaction_hash, cmd.payment_method, cmd.network)


def handle_download(cmd: DownloadCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with cid and optional output_path
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Success or error message with download results
    """
    logger.info(f"Executing download command: cid={cmd.cid} output_path={cmd.output_path}")
    if client is None:
        client = get_client()
    result = client.download(cmd.cid, cmd.output_path)
    logger.debug("Download command completed")
    return result


def _describe_settings(config: Config) -> str:
    width = max(len(name) for name in SETTINGS)
    lines = []
    for name, setting in SETTINGS.items():
        value = config.get(name)
        shown = "(not set)" if value is None else value
        lines.append(f"  {name:<{width}}  {shown}    {setting.description}")
    return "Settings:\n" + "\n".join(lines)


def handle_config(cmd: ConfigCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'config' command.

    Without a name all settings are listed; with a name only that one.
    A value stores the setting; --reset restores its default.

    Args:
        cmd: ConfigCommand with optional name, value and reset flag
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Settings listing or confirmation message
    """
    if client is None:
        client = get_client()
    config = client.config

    try:
        if cmd.name is None:
            return _describe_settings(config)
        if cmd.reset:
            value = config.reset(cmd.name)
        elif cmd.value is None:
            value = config.get(cmd.name)
            return f"{cmd.name} = {'(not set)' if value is None else value}"
        else:
            value = config.set(cmd.name, cmd.value)
    except ConfigError as e:
        return f"Error: {e}"

    if cmd.name == "chunk_size":
        client.chunk_size = value
    logger.info(f"Setting {cmd.name} updated")

    message = f"{cmd.name} set to {value}"
    if cmd.name in RESTART_SETTINGS:
        message += " (takes effect after restarting the CLI)"
    return message
