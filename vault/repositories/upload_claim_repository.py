"""Upload claim repository: cross-process marker for finalize of one upload id."""

import sqlite3
from dataclasses import dataclass
from typing import List, Optional

from common.logging_config import get_logger
from vault.database import connection_scope
from vault.utils import get_current_timestamp

logger = get_logger(__name__)

CLAIM_PENDING = "pending"
CLAIM_COMPLETED = "completed"


@dataclass
class UploadClaim:
    upload_id: str
    wallet_address: str
    status: str
    cid: Optional[str]
    file_name: Optional[str]
    size: Optional[int]


def _row_to_claim(row) -> UploadClaim:
    return UploadClaim(
        upload_id=row["upload_id"],
        wallet_address=row["wallet_address"],
        status=row["status"],
        cid=row["cid"],
        file_name=row["file_name"],
        size=row["size"],
    )


class UploadClaimRepository:
    @staticmethod
    def claim(upload_id: str, wallet_address: str, conn=None) -> bool:
        """
        Insert a pending claim for upload_id.

        Returns:
            True if this caller now owns finalize for the upload
        """
        try:
            with connection_scope(conn) as active:
                active.execute(
                    """
                    INSERT INTO upload_claims (upload_id, wallet_address, status, claimed_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (upload_id, wallet_address, CLAIM_PENDING, get_current_timestamp())
                )
        except sqlite3.IntegrityError:
            logger.debug(f"Upload already claimed [upload_id={upload_id}]")
            return False
        return True

    @staticmethod
    def get(upload_id: str, conn=None) -> Optional[UploadClaim]:
        with connection_scope(conn) as active:
            row = active.execute(
                """
                SELECT upload_id, wallet_address, status, cid, file_name, size
                FROM upload_claims WHERE upload_id = ?
                """,
                (upload_id,)
            ).fetchone()

        return _row_to_claim(row) if row else None

    @staticmethod
    def complete(upload_id: str, cid: str, file_name: str, size: int, conn=None) -> None:
        with connection_scope(conn) as active:
            active.execute(
                """
                UPDATE upload_claims
                SET status = ?, cid = ?, file_name = ?, size = ?, completed_at = ?
                WHERE upload_id = ?
                """,
                (CLAIM_COMPLETED, cid, file_name, size, get_current_timestamp(), upload_id)
            )

    @staticmethod
    def release(upload_id: str, conn=None) -> None:
        with connection_scope(conn) as active:
            active.execute(
                "DELETE FROM upload_claims WHERE upload_id = ? AND status = ?",
                (upload_id, CLAIM_PENDING)
            )

    @staticmethod
    def count_pending(wallet_address: str, conn=None) -> int:
        with connection_scope(conn) as active:
            row = active.execute(
                "SELECT COUNT(*) AS pending FROM upload_claims WHERE wallet_address = ? AND status = ?",
                (wallet_address, CLAIM_PENDING)
            ).fetchone()
            return row["pending"]

    @staticmethod
    def expire_pending(claimed_before: str, conn=None) -> List[UploadClaim]:
        """
        Delete pending claims taken before the given ISO timestamp.

        Returns:
            The claims that were removed
        """
        with connection_scope(conn) as active:
            rows = active.execute(
                """
                SELECT upload_id, wallet_address, status, cid, file_name, size
                FROM upload_claims WHERE status = ? AND claimed_at < ?
                """,
                (CLAIM_PENDING, claimed_before)
            ).fetchall()
            active.execute(
                "DELETE FROM upload_claims WHERE status = ? AND claimed_at < ?",
                (CLAIM_PENDING, claimed_before)
            )

        return [_row_to_claim(row) for row in rows]

    @staticmethod
    def prune_completed(completed_before: str, conn=None) -> int:
        with connection_scope(conn) as active:
            cursor = active.execute(
                "DELETE FROM upload_claims WHERE status = ? AND completed_at < ?",
                (CLAIM_COMPLETED, completed_before)
            )
            return cursor.rowcount
