"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from vault.config import DATABASE_PATH


def init_database() -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    db_path = Path(DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS files (
                id TEXT PRIMARY KEY,
                cid TEXT UNIQUE NOT NULL,
                file_name TEXT NOT NULL,
                size TEXT NOT NULL,
                mime_type TEXT NOT NULL,
                wallet_address TEXT NOT NULL,
                is_folder INTEGER NOT NULL DEFAULT 0,
                parent_folder TEXT,
                folder_path TEXT NOT NULL DEFAULT '/',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS accounts (
                wallet_address TEXT PRIMARY KEY,
                total_storage_used INTEGER NOT NULL DEFAULT 0,
                total_storage_purchased INTEGER NOT NULL DEFAULT 0,
                total_storage_reserved INTEGER NOT NULL DEFAULT 0,
                last_storage_check TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS purchases (
                transaction_hash TEXT PRIMARY KEY,
                wallet_address TEXT NOT NULL,
                payment_method TEXT NOT NULL,
                network TEXT NOT NULL,
                amount_bytes INTEGER NOT NULL,
                status TEXT NOT NULL,
                purchased_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS upload_claims (
                upload_id TEXT PRIMARY KEY,
                wallet_address TEXT NOT NULL,
                status TEXT NOT NULL,
                cid TEXT,
                file_name TEXT,
                size INTEGER,
                claimed_at TEXT NOT NULL,
                completed_at TEXT
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_wallet_created ON files(wallet_address, created_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_parent ON files(parent_folder)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_purchases_wallet ON purchases(wallet_address)
        """)

        conn.commit()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(DATABASE_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def connection_scope(conn: Optional[sqlite3.Connection] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Reuse the caller's connection, or open one that commits on success.

    A borrowed connection is neither committed nor closed here; the caller
    owns its transaction.
    """
    if conn is not None:
        yield conn
        return

    with get_db_connection() as own_conn:
        try:
            yield own_conn
            own_conn.commit()
        except Exception:
            own_conn.rollback()
            raise
