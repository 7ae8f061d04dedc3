"""Wallet identity extraction for request handlers."""

from typing import Optional

from fastapi import Header, HTTPException, status

from vault.utils import normalize_identity


def require_identity(*candidates: Optional[str]) -> str:
    """
    Return the first non-empty candidate, normalized.

    Raises:
        HTTPException: 401 if no candidate carries an identity
    """
    for candidate in candidates:
        identity = normalize_identity(candidate)
        if identity:
            return identity

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authorization header missing",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_wallet_identity(
    authorization: Optional[str] = Header(None),
    x_wallet_address: Optional[str] = Header(None),
) -> str:
    """
    FastAPI dependency resolving the caller's wallet from headers.

    Args:
        authorization: Wallet address, optionally as "Bearer <address>"
        x_wallet_address: Alternative header carrying the wallet address

    Returns:
        Normalized wallet identity

    Raises:
        HTTPException: 401 if neither header is present
    """
    return require_identity(authorization, x_wallet_address)


async def get_optional_identity(
    authorization: Optional[str] = Header(None),
    x_wallet_address: Optional[str] = Header(None),
) -> str:
    """
    Like get_wallet_identity, but an absent identity yields "" so the
    handler can fall back to a body or query value.
    """
    return normalize_identity(authorization) or normalize_identity(x_wallet_address)
