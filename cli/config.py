"""Persistent settings for the HashVault CLI (~/.hashvault/config.json)."""

import json
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from common.constants import CLIENT_CHUNK_SIZE_BYTES, DEFAULT_MIME_TYPE, MAX_CHUNK_SIZE_BYTES
from common.logging_config import get_logger
from cli.constants import DOWNLOADS_DIR

logger = get_logger(__name__)


class ConfigError(Exception):
    """Raised when a setting name or value is rejected."""

    pass


@dataclass(frozen=True)
class Setting:
    kind: type
    default: Any
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    description: str = ""

    def parse(self, name: str, raw: Any) -> Any:
        if raw is None:
            return None

        if self.kind is int:
            try:
                value = int(raw)
            except (TypeError, ValueError):
                raise ConfigError(f"{name} must be an integer, got {raw!r}")
            if self.minimum is not None and value < self.minimum:
                raise ConfigError(f"{name} must be at least {self.minimum}")
            if self.maximum is not None and value > self.maximum:
                raise ConfigError(f"{name} must be at most {self.maximum}")
            return value

        value = str(raw).strip()
        if not value:
            raise ConfigError(f"{name} cannot be empty")
        return value


SETTINGS: Dict[str, Setting] = {
    "vault_url": Setting(
        str, os.environ.get("HASHVAULT_URL", "http://localhost:8000"),
        description="HashVault service base URL",
    ),
    "wallet_address": Setting(str, None, description="Wallet the requests are made for"),
    "chunk_size": Setting(
        int, CLIENT_CHUNK_SIZE_BYTES, minimum=1, maximum=MAX_CHUNK_SIZE_BYTES,
        description="Bytes per chunk; larger files are uploaded in chunks",
    ),
    "default_mime_type": Setting(
        str, DEFAULT_MIME_TYPE,
        description="MIME type used when none is given and none can be guessed",
    ),
    "download_dir": Setting(str, DOWNLOADS_DIR, description="Where downloads go without an explicit path"),
    "timeout": Setting(int, 30, minimum=1, description="Request timeout in seconds"),
    "max_retries": Setting(int, 3, minimum=0, description="Retries on network errors and 5xx"),
    "retry_backoff_multiplier": Setting(int, 2, minimum=1, description="Base of the exponential retry delay"),
}


def default_settings() -> Dict[str, Any]:
    return {name: setting.default for name, setting in SETTINGS.items()}


class Config:
    """
    Validated CLI settings backed by a JSON file.

    Unknown keys and invalid values found on disk are dropped in favor of
    the defaults; values set through set() are validated before saving.
    """

    def __init__(self, config_path: Path):
        self.config_path = config_path
        self.data = self._load()

    def _prepare_directory(self) -> None:
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.hashvault' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

    def _read_file(self) -> Optional[Dict[str, Any]]:
        try:
            with open(self.config_path, 'r') as f:
                stored = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Config file unreadable, using defaults: {e}")
            try:
                shutil.copy(self.config_path, self.config_path.with_suffix('.json.bak'))
            except OSError as backup_error:
                logger.warning(f"Could not back up config file: {backup_error}")
            return None

        if not isinstance(stored, dict):
            logger.warning("Config file does not hold an object, using defaults")
            return None
        return stored

    def _load(self) -> Dict[str, Any]:
        self._prepare_directory()
        data = default_settings()

        if not self.config_path.exists():
            self.data = data
            self.save()
            return data

        stored = self._read_file()
        for name, raw in (stored or {}).items():
            setting = SETTINGS.get(name)
            if setting is None:
                logger.warning(f"Ignoring unknown config key {name!r}")
                continue
            try:
                data[name] = setting.parse(name, raw)
            except ConfigError as e:
                logger.warning(f"Ignoring invalid config value: {e}")

        return data

    def save(self) -> None:
        """Write settings to a temp file and move it into place."""
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.config_path.parent, suffix='.tmp')
            with os.fdopen(fd, 'w') as f:
                json.dump(self.data, f, indent=2)
            os.replace(tmp_name, self.config_path)
        except OSError as e:
            logger.warning(f"Could not save config: {e}")

    def get(self, name: str) -> Any:
        if name not in SETTINGS:
            raise ConfigError(f"Unknown setting: {name}")
        return self.data.get(name)

    def set(self, name: str, raw: Any) -> Any:
        """
        Validate and persist one setting.

        Returns:
            The stored value

        Raises:
            ConfigError: If the name is unknown or the value is invalid
        """
        setting = SETTINGS.get(name)
        if setting is None:
            raise ConfigError(f"Unknown setting: {name}")
        value = setting.parse(name, raw)
        self.data[name] = value
        self.save()
        return value

    def reset(self, name: str) -> Any:
        """Restore one setting to its default."""
        if name not in SETTINGS:
            raise ConfigError(f"Unknown setting: {name}")
        self.data[name] = SETTINGS[name].default
        self.save()
        return self.data[name]

    def get_wallet_address(self) -> Optional[str]:
        return self.data.get('wallet_address')

    def set_wallet_address(self, address: str) -> None:
        self.set('wallet_address', address)

    def get_base_url(self) -> str:
        return str(self.data['vault_url']).rstrip('/')

    def get_timeout(self) -> int:
        return self.data['timeout']

    def get_chunk_size(self) -> int:
        return self.data['chunk_size']

    def get_default_mime_type(self) -> str:
        return self.data['default_mime_type']

    def get_download_dir(self) -> Path:
        return Path(self.data['download_dir']).expanduser()

    def get_retry_config(self) -> dict:
        return {
            'max_retries': self.data['max_retries'],
            'retry_backoff_multiplier': self.data['retry_backoff_multiplier'],
        }
