"""Storage purchase repository."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List

from common.logging_config import get_logger
from vault.database import connection_scope
from vault.exceptions import DuplicatePurchaseError

logger = get_logger(__name__)


@dataclass
class Purchase:
    transaction_hash: str
    wallet_address: str
    payment_method: str
    network: str
    amount_bytes: int
    status: str
    purchased_at: datetime


class PurchaseRepository:
    @staticmethod
    def record_purchase(purchase: Purchase, conn=None) -> Purchase:
        try:
            with connection_scope(conn) as active:
                active.execute(
                    """
                    INSERT INTO purchases (transaction_hash, wallet_address, payment_method,
                                           network, amount_bytes, status, purchased_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        purchase.transaction_hash,
                        purchase.wallet_address,
                        purchase.payment_method,
                        purchase.network,
                        purchase.amount_bytes,
                        purchase.status,
                        purchase.purchased_at.isoformat(),
                    )
                )
        except sqlite3.IntegrityError as e:
            logger.warning(f"Purchase already recorded [tx={purchase.transaction_hash}]")
            raise DuplicatePurchaseError(
                f"Transaction {purchase.transaction_hash} was already applied"
            ) from e

        return purchase

    @staticmethod
    def list_by_wallet(wallet_address: str, conn=None) -> List[Purchase]:
        with connection_scope(conn) as active:
            rows = active.execute(
                """
                SELECT transaction_hash, wallet_address, payment_method, network,
                       amount_bytes, status, purchased_at
                FROM purchases WHERE wallet_address = ?
                ORDER BY purchased_at DESC
                """,
                (wallet_address,)
            ).fetchall()

        return [
            Purchase(
                transaction_hash=row["transaction_hash"],
                wallet_address=row["wallet_address"],
                payment_method=row["payment_method"],
                network=row["network"],
                amount_bytes=row["amount_bytes"],
                status=row["status"],
                purchased_at=datetime.fromisoformat(row["purchased_at"]),
            )
            for row in rows
        ]
