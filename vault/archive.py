"""Archive expanders: turn an uploaded archive into child entries, or do nothing."""

import asyncio
import mimetypes
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import List, Optional

from common.constants import DEFAULT_MIME_TYPE
from common.logging_config import get_logger
from common.types import ExtractedEntry
from vault.content_store import ContentStore

logger = get_logger(__name__)

ZIP_MIME_TYPES = {"application/zip", "application/x-zip-compressed"}


def is_zip_upload(file_name: str, mime_type: str) -> bool:
    return (mime_type or "").lower() in ZIP_MIME_TYPES or file_name.lower().endswith(".zip")


class ArchiveExpander(ABC):
    """
    Capability consulted after an archive has been stored.

    Implementations return the entries to record as children of the archive.
    """

    @abstractmethod
    def accepts(self, file_name: str, mime_type: str) -> bool:
        """Whether this expander handles the upload."""

    @abstractmethod
    async def expand(self, artifact: Path, content_store: ContentStore) -> List[ExtractedEntry]:
        """Extract members, submit them to the content store and describe them."""


class DisabledArchiveExpander(ArchiveExpander):
    """Archives are stored as single opaque files."""

    def accepts(self, file_name: str, mime_type: str) -> bool:
        return False

    async def expand(self, artifact: Path, content_store: ContentStore) -> List[ExtractedEntry]:
        return []


class ZipArchiveExpander(ArchiveExpander):
    """
    Real zip extraction. Directory members, unsafe paths and members whose
    uncompressed size exceeds max_member_bytes are skipped; at most
    max_entries members are stored.
    """

    def __init__(self, max_entries: int, max_member_bytes: Optional[int] = None):
        self.max_entries = max_entries
        self.max_member_bytes = max_member_bytes

    def accepts(self, file_name: str, mime_type: str) -> bool:
        return is_zip_upload(file_name, mime_type)

    def _list_members(self, artifact: Path) -> List[zipfile.ZipInfo]:
        with zipfile.ZipFile(artifact) as archive:
            members = []
            for info in archive.infolist():
                if info.is_dir():
                    continue
                path = PurePosixPath(info.filename)
                if path.is_absolute() or ".." in path.parts:
                    logger.warning(f"Skipping unsafe archive member {info.filename!r}")
                    continue
                if self.max_member_bytes is not None and info.file_size > self.max_member_bytes:
                    logger.warning(
                        f"Skipping archive member {info.filename!r}: {info.file_size} bytes "
                        f"exceeds {self.max_member_bytes}"
                    )
                    continue
                members.append(info)
            return members

    def _read_member(self, artifact: Path, info: zipfile.ZipInfo) -> bytes:
        with zipfile.ZipFile(artifact) as archive:
            return archive.read(info)

    async def expand(self, artifact: Path, content_store: ContentStore) -> List[ExtractedEntry]:
        try:
            members = await asyncio.to_thread(self._list_members, artifact)
        except zipfile.BadZipFile as e:
            logger.warning(f"Archive could not be read, storing it unexpanded: {e}")
            return []

        if len(members) > self.max_entries:
            logger.warning(f"Archive has {len(members)} members, expanding the first {self.max_entries}")
            members = members[:self.max_entries]

        entries = []
        for info in members:
            data = await asyncio.to_thread(self._read_member, artifact, info)
            name = PurePosixPath(info.filename).name
            mime_type = mimetypes.guess_type(name)[0] or DEFAULT_MIME_TYPE
            stored = await content_store.put_bytes(data, name, mime_type)
            entries.append(ExtractedEntry(
                file_name=name,
                relative_path=info.filename,
                content_id=stored.content_id,
                size=stored.size,
                mime_type=mime_type,
            ))

        logger.info(f"Expanded archive into {len(entries)} entries")
        return entries


def build_archive_expander(mode: str, max_entries: int, max_member_bytes: Optional[int] = None) -> ArchiveExpander:
    """
    Raises:
        ValueError: If mode is unknown
    """
    if mode == "disabled":
        return DisabledArchiveExpander()
    if mode == "zip":
        return ZipArchiveExpander(max_entries=max_entries, max_member_bytes=max_member_bytes)
    raise ValueError(f"Unknown archive expansion mode: {mode}")
