"""File service: metadata tree mutations kept coherent with the ledger and the listing cache."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from common.constants import DEFAULT_MIME_TYPE, FOLDER_MIME_TYPE, ROOT_FOLDER_PATH
from common.logging_config import get_logger
from common.types import ExtractedEntry, StoredContent
from vault.archive import ArchiveExpander, DisabledArchiveExpander
from vault.cache import ListingCache
from vault.content_store import ContentStore
from vault.database import get_db_connection
from vault.exceptions import (
    DuplicateContentError,
    InvalidParameterError,
    MissingParameterError,
    NotFoundOrUnauthorizedError,
)
from vault.repositories.file_repository import FileRecord, FileRepository
from vault.services.quota_service import QuotaService
from vault.utils import folder_path_from_relative, generate_uuid, parse_size, utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class FolderEntry:
    """
    One child declared by a folder registration.
    """
    file_name: str
    cid: str
    size: int
    mime_type: str = DEFAULT_MIME_TYPE
    relative_path: Optional[str] = None


@dataclass(frozen=True)
class DeleteResult:
    deleted_count: int
    freed_bytes: int


def _require(value: Any, name: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingParameterError(name)


def _record_size(record: FileRecord) -> int:
    size = (record.size or "").strip()
    if not size.isdigit():
        logger.warning(f"Record has unparseable size {record.size!r}, counting 0 [cid={record.cid}]")
        return 0
    return int(size)


class FileService:
    def __init__(
        self,
        cache: ListingCache,
        quota: QuotaService,
        content_store: Optional[ContentStore] = None,
        archive_expander: Optional[ArchiveExpander] = None,
    ):
        self.cache = cache
        self.quota = quota
        self.content_store = content_store
        self.archive_expander = archive_expander or DisabledArchiveExpander()

    def _new_record(
        self,
        identity: str,
        cid: str,
        file_name: str,
        size: int,
        mime_type: Optional[str],
        is_folder: bool = False,
        parent_folder: Optional[str] = None,
        folder_path: str = ROOT_FOLDER_PATH,
    ) -> FileRecord:
        now = utcnow()
        return FileRecord(
            id=generate_uuid(),
            cid=cid,
            file_name=file_name,
            size=str(size),
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            wallet_address=identity,
            is_folder=is_folder,
            parent_folder=parent_folder,
            folder_path=folder_path,
            created_at=now,
            updated_at=now,
        )

    def _insert_charged(self, identity: str, records: Sequence[FileRecord], reserved: int, charge: int) -> int:
        """
        Insert records and move the reservation into the used counter in one transaction.

        When reserved is 0 the capacity check happens inside the same
        transaction instead. A charge above the reservation extends it
        first, so the ledger never goes past the available capacity.

        Returns:
            New used byte count
        """
        with get_db_connection() as conn:
            try:
                if reserved == 0:
                    self.quota.reserve(identity, charge, conn=conn)
                    reserved = charge
                elif charge > reserved:
                    self.quota.reserve_additional(identity, charge - reserved, conn=conn)
                    reserved = charge
                for record in records:
                    FileRepository.create_file(record, conn=conn)
                used = self.quota.commit_reservation(identity, reserved, charge, conn=conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        self.cache.invalidate(identity)
        logger.info(f"Registered {len(records)} record(s) charging {charge} bytes -> used={used} [wallet={identity}]")
        return used

    def _new_archive_entries(self, entries: Sequence[ExtractedEntry], archive_cid: str) -> List[ExtractedEntry]:
        """
        Keep one entry per content id, leaving out content that is already
        registered, including the archive itself.
        """
        seen = {archive_cid}
        kept = []
        for entry in entries:
            if entry.content_id in seen:
                logger.debug(f"Archive member repeats content, not recorded [path={entry.relative_path}]")
                continue
            seen.add(entry.content_id)
            if FileRepository.get_by_cid(entry.content_id) is not None:
                logger.info(
                    f"Archive member content already registered, not recorded "
                    f"[path={entry.relative_path}] [cid={entry.content_id}]"
                )
                continue
            kept.append(entry)
        return kept

    def create(
        self,
        identity: str,
        file_name: str,
        cid: str,
        size: Any,
        mime_type: Optional[str] = None,
    ) -> FileRecord:
        """
        Register content the client already stored upstream.

        Raises:
            MissingParameterError: If fileName, cid or size is absent
            SizeParseError: If size is not an integer
            OverFreeTierLimitError: If the object exceeds the free-tier ceiling
            InsufficientCapacityError: If the identity has no room left
            DuplicateContentError: If the cid is already registered
        """
        _require(file_name, "fileName")
        _require(cid, "cid")
        _require(size, "size")
        size_bytes = parse_size(size)

        record = self._new_record(identity, cid, file_name, size_bytes, mime_type)
        self._insert_charged(identity, [record], reserved=0, charge=size_bytes)
        return record

    async def store_and_register(
        self,
        identity: str,
        file_name: str,
        size_bytes: int,
        mime_type: Optional[str],
        submit,
        artifact: Optional[Path] = None,
    ) -> FileRecord:
        """
        Reserve capacity, submit content via submit(), then record it.

        If artifact is given and the archive expander accepts the upload,
        extracted members are recorded as children of the archive and
        charged in the same transaction.

        Args:
            submit: Zero-argument coroutine function returning StoredContent

        Raises:
            OverFreeTierLimitError, InsufficientCapacityError: Before any upload,
                or when extracted members do not fit the remaining capacity
            UpstreamStorageError: If the content store fails
        """
        mime_type = mime_type or DEFAULT_MIME_TYPE
        self.quota.reserve(identity, size_bytes)
        committed = False
        try:
            stored: StoredContent = await submit()

            existing = FileRepository.get_by_cid(stored.content_id)
            if existing is not None:
                if existing.wallet_address != identity:
                    raise DuplicateContentError(stored.content_id)
                logger.info(f"Content already registered, returning existing record [cid={stored.content_id}]")
                return existing

            entries: List[ExtractedEntry] = []
            if artifact is not None and self.archive_expander.accepts(file_name, mime_type):
                entries = await self.archive_expander.expand(artifact, self.content_store)
                entries = self._new_archive_entries(entries, stored.content_id)

            record = self._new_record(
                identity,
                stored.content_id,
                file_name,
                stored.size,
                mime_type,
                is_folder=bool(entries),
            )
            children = [
                self._new_record(
                    identity,
                    entry.content_id,
                    entry.file_name,
                    entry.size,
                    entry.mime_type,
                    parent_folder=record.id,
                    folder_path=folder_path_from_relative(entry.relative_path),
                )
                for entry in entries
            ]
            charge = stored.size + sum(entry.size for entry in entries)

            self._insert_charged(identity, [record] + children, reserved=size_bytes, charge=charge)
            committed = True
            return record
        finally:
            if not committed:
                self.quota.release_reservation(identity, size_bytes)

    async def upload(self, identity: str, file_name: str, data: bytes, mime_type: Optional[str]) -> FileRecord:
        """
        Single-request upload: the bytes go straight to the content store.
        """
        _require(file_name, "fileName")
        if self.content_store is None:
            raise RuntimeError("FileService has no content store configured")

        async def submit() -> StoredContent:
            return await self.content_store.put_bytes(data, file_name, mime_type or DEFAULT_MIME_TYPE)

        return await self.store_and_register(identity, file_name, len(data), mime_type, submit)

    def list_files(self, identity: str, refresh: bool = False) -> Tuple[FileRecord, ...]:
        """
        Owned records, newest first, served from the listing cache when possible.

        A refresh request bypasses the cache only if the cached entry is
        older than the minimum refetch interval.
        """
        if refresh and self.cache.allow_refresh(identity):
            self.cache.invalidate(identity)
        else:
            cached = self.cache.get(identity)
            if cached is not None:
                logger.debug(f"Listing served from cache [wallet={identity}]")
                return cached

        records = tuple(FileRepository.find_by_owner(identity))
        self.cache.put(identity, records)
        return records

    def _collect_subtree(self, root: FileRecord, conn) -> List[FileRecord]:
        collected = [root]
        pending = [root]
        seen = {root.id}
        while pending:
            current = pending.pop()
            if not current.is_folder:
                continue
            for child in FileRepository.find_children(current.id, conn=conn):
                if child.id in seen:
                    continue
                seen.add(child.id)
                collected.append(child)
                pending.append(child)
        return collected

    def delete(self, identity: str, cid: str) -> DeleteResult:
        """
        Remove a record and, for folders, every record beneath it.

        The ledger is debited by the combined size in the same transaction.

        Raises:
            NotFoundOrUnauthorizedError: If no record with cid is owned by identity
        """
        _require(cid, "cid")

        with get_db_connection() as conn:
            try:
                record = FileRepository.get_by_cid(cid, conn=conn)
                if record is None or record.wallet_address != identity:
                    raise NotFoundOrUnauthorizedError("File not found or unauthorized")

                doomed = self._collect_subtree(record, conn)
                freed = sum(_record_size(item) for item in doomed)
                deleted = FileRepository.delete_records([item.id for item in doomed], conn=conn)
                self.quota.apply_delta(identity, -freed, conn=conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        self.cache.invalidate(identity)
        logger.info(f"Deleted {deleted} record(s) freeing {freed} bytes [cid={cid}] [wallet={identity}]")
        return DeleteResult(deleted_count=deleted, freed_bytes=freed)

    def update_meta(self, identity: str, cid: str, patch: Dict[str, Any]) -> FileRecord:
        """
        Raises:
            InvalidParameterError: If the patch changes nothing
            NotFoundOrUnauthorizedError: If no record with cid is owned by identity
        """
        changes = {key: value for key, value in patch.items() if value is not None}
        if not changes:
            raise InvalidParameterError("body", "no updatable fields supplied")
        if "file_name" in changes and not str(changes["file_name"]).strip():
            raise InvalidParameterError("fileName", "must not be empty")

        record = FileRepository.update_metadata(cid, identity, changes, utcnow())
        if record is None:
            raise NotFoundOrUnauthorizedError("File not found or unauthorized")

        self.cache.invalidate(identity)
        logger.info(f"Updated metadata {sorted(changes)} [cid={cid}] [wallet={identity}]")
        return record

    def create_folder(
        self,
        identity: str,
        folder_name: str,
        cid: str,
        size: Any,
        files: Sequence[FolderEntry],
    ) -> Tuple[FileRecord, List[FileRecord]]:
        """
        Register a folder and its children in one transaction.

        The ledger is charged for the folder's own size plus every child.

        Raises:
            MissingParameterError: If folderName or cid is absent
            SizeParseError: If any size is not an integer
            InsufficientCapacityError: If the total does not fit
        """
        _require(folder_name, "folderName")
        _require(cid, "cid")
        folder_size = parse_size(size if size is not None else 0)

        folder = self._new_record(
            identity, cid, folder_name, folder_size, FOLDER_MIME_TYPE, is_folder=True
        )
        children = []
        for entry in files:
            _require(entry.cid, "files.cid")
            _require(entry.file_name, "files.fileName")
            children.append(self._new_record(
                identity,
                entry.cid,
                entry.file_name,
                parse_size(entry.size),
                entry.mime_type,
                parent_folder=folder.id,
                folder_path=folder_path_from_relative(entry.relative_path),
            ))

        total = folder_size + sum(child.size_bytes for child in children)
        self._insert_charged(identity, [folder] + children, reserved=0, charge=total)
        return folder, children

    async def open_content(self, cid: str) -> Tuple[Optional[FileRecord], AsyncIterator[bytes]]:
        """
        Open a content stream, priming it so lookup failures raise here.

        Returns:
            Tuple of (registered record if any, byte iterator)

        Raises:
            NotFoundOrUnauthorizedError: If the content store has no such content
            UpstreamStorageError: On any other content store failure
        """
        _require(cid, "cid")
        if self.content_store is None:
            raise RuntimeError("FileService has no content store configured")

        record = FileRepository.get_by_cid(cid)
        stream = self.content_store.open_stream(cid)
        try:
            first = await stream.__anext__()
        except StopAsyncIteration:
            first = b""

        async def body() -> AsyncIterator[bytes]:
            if first:
                yield first
            async for piece in stream:
                yield piece

        return record, body()
