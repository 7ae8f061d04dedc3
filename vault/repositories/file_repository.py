"""File record repository for database operations."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from common.constants import ROOT_FOLDER_PATH
from common.logging_config import get_logger
from vault.database import connection_scope
from vault.exceptions import DuplicateContentError

logger = get_logger(__name__)

_COLUMNS = (
    "id, cid, file_name, size, mime_type, wallet_address, is_folder, "
    "parent_folder, folder_path, created_at, updated_at"
)

UPDATABLE_FIELDS = {
    "file_name": "file_name",
    "mime_type": "mime_type",
    "is_folder": "is_folder",
}


@dataclass
class FileRecord:
    id: str
    cid: str
    file_name: str
    size: str
    mime_type: str
    wallet_address: str
    is_folder: bool
    parent_folder: Optional[str]
    folder_path: str
    created_at: datetime
    updated_at: datetime

    @property
    def size_bytes(self) -> int:
        return int(self.size)


def _row_to_record(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        id=row["id"],
        cid=row["cid"],
        file_name=row["file_name"],
        size=row["size"],
        mime_type=row["mime_type"],
        wallet_address=row["wallet_address"],
        is_folder=bool(row["is_folder"]),
        parent_folder=row["parent_folder"],
        folder_path=row["folder_path"] or ROOT_FOLDER_PATH,
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class FileRepository:
    @staticmethod
    def create_file(record: FileRecord, conn=None) -> FileRecord:
        logger.debug(f"Creating file record [cid={record.cid}] [wallet={record.wallet_address}]")
        try:
            with connection_scope(conn) as active:
                active.execute(
                    f"""
                    INSERT INTO files ({_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.cid,
                        record.file_name,
                        record.size,
                        record.mime_type,
                        record.wallet_address,
                        1 if record.is_folder else 0,
                        record.parent_folder,
                        record.folder_path,
                        record.created_at.isoformat(),
                        record.updated_at.isoformat(),
                    )
                )
        except sqlite3.IntegrityError as e:
            logger.warning(f"Duplicate content id rejected [cid={record.cid}]: {e}")
            raise DuplicateContentError(record.cid) from e

        logger.info(f"File record created [cid={record.cid}] [id={record.id}]")
        return record

    @staticmethod
    def get_by_cid(cid: str, conn=None) -> Optional[FileRecord]:
        with connection_scope(conn) as active:
            row = active.execute(
                f"SELECT {_COLUMNS} FROM files WHERE cid = ?",
                (cid,)
            ).fetchone()
            return _row_to_record(row) if row else None

    @staticmethod
    def get_by_id(record_id: str, conn=None) -> Optional[FileRecord]:
        with connection_scope(conn) as active:
            row = active.execute(
                f"SELECT {_COLUMNS} FROM files WHERE id = ?",
                (record_id,)
            ).fetchone()
            return _row_to_record(row) if row else None

    @staticmethod
    def find_by_owner(wallet_address: str, conn=None) -> List[FileRecord]:
        with connection_scope(conn) as active:
            rows = active.execute(
                f"""
                SELECT {_COLUMNS} FROM files
                WHERE wallet_address = ?
                ORDER BY created_at DESC
                """,
                (wallet_address,)
            ).fetchall()
            return [_row_to_record(row) for row in rows]

    @staticmethod
    def find_children(folder_id: str, conn=None) -> List[FileRecord]:
        with connection_scope(conn) as active:
            rows = active.execute(
                f"SELECT {_COLUMNS} FROM files WHERE parent_folder = ?",
                (folder_id,)
            ).fetchall()
            return [_row_to_record(row) for row in rows]

    @staticmethod
    def delete_records(record_ids: List[str], conn=None) -> int:
        if not record_ids:
            return 0

        placeholders = ",".join("?" for _ in record_ids)
        with connection_scope(conn) as active:
            cursor = active.execute(
                f"DELETE FROM files WHERE id IN ({placeholders})",
                record_ids
            )
            deleted = cursor.rowcount

        logger.info(f"Deleted {deleted} file records")
        return deleted

    @staticmethod
    def update_metadata(
        cid: str,
        wallet_address: str,
        patch: Dict[str, Any],
        updated_at: datetime,
        conn=None
    ) -> Optional[FileRecord]:
        """
        Apply a metadata patch to a record owned by wallet_address.

        Unknown keys in the patch are ignored.

        Returns:
            Updated record, or None if no owned record matches
        """
        assignments = []
        values: List[Any] = []
        for key, value in patch.items():
            column = UPDATABLE_FIELDS.get(key)
            if column is None or value is None:
                continue
            assignments.append(f"{column} = ?")
            values.append((1 if value else 0) if column == "is_folder" else value)

        assignments.append("updated_at = ?")
        values.append(updated_at.isoformat())

        with connection_scope(conn) as active:
            cursor = active.execute(
                f"UPDATE files SET {', '.join(assignments)} WHERE cid = ? AND wallet_address = ?",
                values + [cid, wallet_address]
            )
            if cursor.rowcount == 0:
                return None
            row = active.execute(
                f"SELECT {_COLUMNS} FROM files WHERE cid = ?",
                (cid,)
            ).fetchone()
            return _row_to_record(row)

    @staticmethod
    def sum_sizes_by_owner(wallet_address: str, conn=None) -> int:
        """
        Sum record sizes owned by wallet_address with arbitrary precision.

        Records whose stored size is not a decimal string are skipped.
        """
        total = 0
        with connection_scope(conn) as active:
            rows = active.execute(
                "SELECT cid, size FROM files WHERE wallet_address = ?",
                (wallet_address,)
            ).fetchall()

        for row in rows:
            size = (row["size"] or "").strip()
            if not size.isdigit():
                logger.warning(f"Skipping unparseable size {size!r} [cid={row['cid']}]")
                continue
            total += int(size)
        return total

    @staticmethod
    def count_by_owner(wallet_address: str, conn=None) -> int:
        with connection_scope(conn) as active:
            row = active.execute(
                "SELECT COUNT(*) AS total FROM files WHERE wallet_address = ?",
                (wallet_address,)
            ).fetchone()
            return row["total"]
