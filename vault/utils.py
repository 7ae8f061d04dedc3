"""Utility helper functions for the HashVault service."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from common.constants import ROOT_FOLDER_PATH
from vault.exceptions import InvalidParameterError, MissingParameterError, SizeParseError


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_current_timestamp() -> str:
    """
    Get current timestamp in ISO format.

    Returns:
        Current UTC timestamp as ISO format string
    """
    return utcnow().isoformat()


def normalize_identity(identity: Optional[str]) -> str:
    """
    Normalize a wallet identity for storage and comparison.

    Strips whitespace and a leading "Bearer " prefix, then lowercases.

    Args:
        identity: Raw wallet address as received from a caller

    Returns:
        Normalized identity, or an empty string if none was given
    """
    if not identity:
        return ""
    value = identity.strip()
    if value.lower().startswith("bearer "):
        value = value[7:].strip()
    return value.lower()


def parse_size(value: Any) -> int:
    """
    Parse a declared byte size.

    Sizes are persisted as decimal strings; arithmetic happens on ints.

    Args:
        value: int or decimal string

    Returns:
        Non-negative integer size

    Raises:
        SizeParseError: If the value is absent, non-numeric or negative
    """
    if value is None or isinstance(value, bool):
        raise SizeParseError(value)
    if isinstance(value, int):
        size = value
    elif isinstance(value, float) and value.is_integer():
        size = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        size = int(value.strip())
    else:
        raise SizeParseError(value)
    if size < 0:
        raise SizeParseError(value)
    return size


def folder_path_from_relative(relative_path: Optional[str]) -> str:
    """
    Derive the materialized folder path of a file from its relative path.

    "photos/2024/a.jpg" -> "/photos/2024", "a.jpg" -> "/"
    """
    if not relative_path:
        return ROOT_FOLDER_PATH
    parts = [part for part in relative_path.replace("\\", "/").split("/") if part]
    if len(parts) <= 1:
        return ROOT_FOLDER_PATH
    return "/" + "/".join(parts[:-1])


def parse_int_param(value: Any, name: str) -> int:
    """
    Parse an integer request parameter that may arrive as a form string.

    Raises:
        MissingParameterError: If the value is absent or blank
        InvalidParameterError: If the value is not an integer
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingParameterError(name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(name, f"expected an integer, got {value!r}")
