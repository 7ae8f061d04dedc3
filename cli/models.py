"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class WalletCommand:
    """Show or set the wallet address."""

    address: str | None = None
    command: Literal["wallet"] = "wallet"


@dataclass(frozen=True)
class UploadCommand:
    """Upload a local file."""

    file_path: str
    mime_type: str | None = None
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class ListCommand:
    """List the wallet's files."""

    refresh: bool = False
    command: Literal["list"] = "list"


@dataclass(frozen=True)
class DeleteCommand:
    """Delete a file or folder by content id."""

    cid: str
    command: Literal["delete"] = "delete"


@dataclass(frozen=True)
class InfoCommand:
    """Show storage figures."""

    command: Literal["info"] = "info"


@dataclass(frozen=True)
class CheckCommand:
    """Check whether a file size fits."""

    file_size: int
    command: Literal["check"] = "check"


@dataclass(frozen=True)
class PurchaseCommand:
    """Apply a storage plan purchase."""

    transaction_hash: str
    payment_method: str = "USDT"
    network: str = "Base"
    command: Literal["purchase"] = "purchase"


@dataclass(frozen=True)
class DownloadCommand:
    """Download content by content id."""

    cid: str
    output_path: str | None = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class ConfigCommand:
    """Show, change or reset CLI settings."""

    name: str | None = None
    value: str | None = None
    reset: bool = False
    command: Literal["config"] = "config"


CommandRequest = (
    WalletCommand
    | UploadCommand
    | ListCommand
    | DeleteCommand
    | InfoCommand
    | CheckCommand
    | PurchaseCommand
    | DownloadCommand
    | ConfigCommand
)
