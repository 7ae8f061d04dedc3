"""Identity account repository: atomic storage counters per wallet."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from vault.database import connection_scope
from vault.utils import get_current_timestamp

logger = get_logger(__name__)

_COLUMNS = (
    "wallet_address, total_storage_used, total_storage_purchased, "
    "total_storage_reserved, last_storage_check, created_at, updated_at"
)


@dataclass
class Account:
    wallet_address: str
    total_storage_used: int
    total_storage_purchased: int
    total_storage_reserved: int
    last_storage_check: Optional[datetime]
    created_at: datetime
    updated_at: datetime


def _row_to_account(row) -> Account:
    return Account(
        wallet_address=row["wallet_address"],
        total_storage_used=row["total_storage_used"],
        total_storage_purchased=row["total_storage_purchased"],
        total_storage_reserved=row["total_storage_reserved"],
        last_storage_check=datetime.fromisoformat(row["last_storage_check"]) if row["last_storage_check"] else None,
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _ensure_account(active, wallet_address: str, now: str) -> None:
    active.execute(
        """
        INSERT INTO accounts (wallet_address, created_at, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(wallet_address) DO NOTHING
        """,
        (wallet_address, now, now)
    )


class AccountRepository:
    """
    All counter mutations are single UPDATE/UPSERT statements so concurrent
    writers never interleave a read-modify-write in Python.
    """

    @staticmethod
    def get(wallet_address: str, conn=None) -> Optional[Account]:
        with connection_scope(conn) as active:
            row = active.execute(
                f"SELECT {_COLUMNS} FROM accounts WHERE wallet_address = ?",
                (wallet_address,)
            ).fetchone()
            return _row_to_account(row) if row else None

    @staticmethod
    def get_or_create(wallet_address: str, conn=None) -> Account:
        now = get_current_timestamp()
        with connection_scope(conn) as active:
            _ensure_account(active, wallet_address, now)
            row = active.execute(
                f"SELECT {_COLUMNS} FROM accounts WHERE wallet_address = ?",
                (wallet_address,)
            ).fetchone()
            return _row_to_account(row)

    @staticmethod
    def apply_delta(wallet_address: str, delta_bytes: int, conn=None) -> int:
        """
        Atomically add delta_bytes to the used counter, creating the account if needed.

        The counter is clamped at zero.

        Returns:
            New used byte count
        """
        now = get_current_timestamp()
        with connection_scope(conn) as active:
            active.execute(
                """
                INSERT INTO accounts (wallet_address, total_storage_used, created_at, updated_at)
                VALUES (?, MAX(0, ?), ?, ?)
                ON CONFLICT(wallet_address) DO UPDATE SET
                    total_storage_used = MAX(0, total_storage_used + ?),
                    updated_at = excluded.updated_at
                """,
                (wallet_address, delta_bytes, now, now, delta_bytes)
            )
            row = active.execute(
                "SELECT total_storage_used FROM accounts WHERE wallet_address = ?",
                (wallet_address,)
            ).fetchone()

        logger.debug(f"Applied storage delta {delta_bytes} [wallet={wallet_address}] -> {row['total_storage_used']}")
        return row["total_storage_used"]

    @staticmethod
    def set_used(wallet_address: str, used_bytes: int, checked_at: str, conn=None) -> None:
        """
        Overwrite the used counter with a recomputed value.
        """
        with connection_scope(conn) as active:
            _ensure_account(active, wallet_address, checked_at)
            active.execute(
                """
                UPDATE accounts
                SET total_storage_used = ?, last_storage_check = ?, updated_at = ?
                WHERE wallet_address = ?
                """,
                (used_bytes, checked_at, checked_at, wallet_address)
            )

    @staticmethod
    def mark_checked(wallet_address: str, checked_at: str, conn=None) -> None:
        with connection_scope(conn) as active:
            active.execute(
                "UPDATE accounts SET last_storage_check = ? WHERE wallet_address = ?",
                (checked_at, wallet_address)
            )

    @staticmethod
    def add_purchased(wallet_address: str, amount_bytes: int, conn=None) -> Account:
        now = get_current_timestamp()
        with connection_scope(conn) as active:
            active.execute(
                """
                INSERT INTO accounts (wallet_address, total_storage_purchased, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(wallet_address) DO UPDATE SET
                    total_storage_purchased = total_storage_purchased + excluded.total_storage_purchased,
                    updated_at = excluded.updated_at
                """,
                (wallet_address, amount_bytes, now, now)
            )
            row = active.execute(
                f"SELECT {_COLUMNS} FROM accounts WHERE wallet_address = ?",
                (wallet_address,)
            ).fetchone()
            return _row_to_account(row)

    @staticmethod
    def try_reserve(wallet_address: str, size_bytes: int, free_tier_limit: int, conn=None) -> bool:
        """
        Reserve capacity if used + reserved + size fits within free tier + purchased.

        Returns:
            True if the reservation was taken
        """
        now = get_current_timestamp()
        with connection_scope(conn) as active:
            _ensure_account(active, wallet_address, now)
            cursor = active.execute(
                """
                UPDATE accounts
                SET total_storage_reserved = total_storage_reserved + ?, updated_at = ?
                WHERE wallet_address = ?
                  AND total_storage_used + total_storage_reserved + ? <= ? + total_storage_purchased
                """,
                (size_bytes, now, wallet_address, size_bytes, free_tier_limit)
            )
            reserved = cursor.rowcount == 1

        logger.debug(f"Reservation of {size_bytes} bytes {'taken' if reserved else 'refused'} [wallet={wallet_address}]")
        return reserved

    @staticmethod
    def commit_reservation(wallet_address: str, reserved_bytes: int, used_bytes: int, conn=None) -> int:
        """
        Move a reservation into the used counter in one statement.

        Returns:
            New used byte count
        """
        now = get_current_timestamp()
        with connection_scope(conn) as active:
            active.execute(
                """
                UPDATE accounts
                SET total_storage_reserved = MAX(0, total_storage_reserved - ?),
                    total_storage_used = total_storage_used + ?,
                    updated_at = ?
                WHERE wallet_address = ?
                """,
                (reserved_bytes, used_bytes, now, wallet_address)
            )
            row = active.execute(
                "SELECT total_storage_used FROM accounts WHERE wallet_address = ?",
                (wallet_address,)
            ).fetchone()
            return row["total_storage_used"]

    @staticmethod
    def release_reservation(wallet_address: str, reserved_bytes: int, conn=None) -> None:
        now = get_current_timestamp()
        with connection_scope(conn) as active:
            active.execute(
                """
                UPDATE accounts
                SET total_storage_reserved = MAX(0, total_storage_reserved - ?), updated_at = ?
                WHERE wallet_address = ?
                """,
                (reserved_bytes, now, wallet_address)
            )

    @staticmethod
    def clear_reserved(wallet_address: str, conn=None) -> None:
        now = get_current_timestamp()
        with connection_scope(conn) as active:
            active.execute(
                "UPDATE accounts SET total_storage_reserved = 0, updated_at = ? WHERE wallet_address = ?",
                (now, wallet_address)
            )
