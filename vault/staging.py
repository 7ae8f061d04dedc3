"""Session-scoped staging area for chunked uploads: write, verify, assemble, clean up."""

import os
import re
import shutil
import time
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from common.constants import CHUNK_FILE_PREFIX, STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from vault.exceptions import IncompleteUploadError, InvalidUploadIdError

logger = get_logger(__name__)

UPLOAD_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}$")
ASSEMBLED_PREFIX = "assembled-"
PARTIAL_SUFFIX = ".part"


class StagingArea:
    """
    Chunks live at <root>/<upload_id>/chunk-<index>.

    Writes go to a uniquely named partial file that is renamed over the
    final chunk path, so concurrent writes of the same index resolve to
    whichever rename lands last and readers never see a torn chunk.
    """

    def __init__(self, root: Path, piece_size: int = STREAM_PIECE_SIZE_BYTES):
        self.root = Path(root)
        self.piece_size = piece_size

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def session_dir(self, upload_id: str) -> Path:
        """
        Get the staging directory for an upload session.

        Raises:
            InvalidUploadIdError: If upload_id could escape the staging root
        """
        if not upload_id or not UPLOAD_ID_PATTERN.match(upload_id):
            raise InvalidUploadIdError(f"Invalid upload id: {upload_id!r}")
        return self.root / upload_id

    def chunk_path(self, upload_id: str, chunk_index: int) -> Path:
        return self.session_dir(upload_id) / f"{CHUNK_FILE_PREFIX}{chunk_index}"

    def write_chunk(self, upload_id: str, chunk_index: int, data: bytes) -> Path:
        """
        Persist one chunk, replacing any earlier bytes for the same index.

        Args:
            upload_id: Session id
            chunk_index: Position of the chunk in the file
            data: Raw chunk bytes

        Returns:
            Path of the stored chunk

        Raises:
            OSError: If the write fails
        """
        target = self.chunk_path(upload_id, chunk_index)
        target.parent.mkdir(parents=True, exist_ok=True)

        partial = target.with_name(f"{target.name}.{uuid.uuid4().hex}{PARTIAL_SUFFIX}")
        try:
            with open(partial, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(partial, target)
        finally:
            if partial.exists():
                partial.unlink()

        return target

    def find_missing_chunk(self, upload_id: str, total_chunks: int) -> Optional[int]:
        """
        Return the lowest chunk index in [0, total_chunks) not yet staged.
        """
        for index in range(total_chunks):
            if not self.chunk_path(upload_id, index).is_file():
                return index
        return None

    def assemble(self, upload_id: str, total_chunks: int) -> Tuple[Path, int]:
        """
        Stream chunks 0..total_chunks-1 in order into one artifact.

        The artifact is written inside the session directory and is removed
        by cleanup() together with the chunks.

        Returns:
            Tuple of (artifact path, total bytes written)

        Raises:
            IncompleteUploadError: If any chunk is missing
        """
        missing = self.find_missing_chunk(upload_id, total_chunks)
        if missing is not None:
            raise IncompleteUploadError(upload_id, missing)

        artifact = self.session_dir(upload_id) / f"{ASSEMBLED_PREFIX}{uuid.uuid4().hex}"
        written = 0

        with open(artifact, "wb") as out:
            for index in range(total_chunks):
                try:
                    with open(self.chunk_path(upload_id, index), "rb") as src:
                        while True:
                            piece = src.read(self.piece_size)
                            if not piece:
                                break
                            out.write(piece)
                            written += len(piece)
                except FileNotFoundError as e:
                    raise IncompleteUploadError(upload_id, index) from e

        logger.info(f"Assembled {total_chunks} chunks into {artifact.name} ({written} bytes) [upload_id={upload_id}]")
        return artifact, written

    def cleanup(self, upload_id: str) -> bool:
        """
        Delete every staged chunk and artifact of a session.

        Failures are logged and swallowed; the caller's result is already decided.

        Returns:
            True if the session directory is gone afterwards
        """
        try:
            session = self.session_dir(upload_id)
        except InvalidUploadIdError:
            return True

        if not session.exists():
            return True

        try:
            shutil.rmtree(session)
            logger.debug(f"Removed staging data [upload_id={upload_id}]")
            return True
        except OSError as e:
            logger.error(f"Failed to remove staging data [upload_id={upload_id}]: {e}", exc_info=True)
            return False

    def list_sessions(self) -> List[str]:
        if not self.root.exists():
            return []
        return [entry.name for entry in self.root.iterdir() if entry.is_dir()]

    def session_last_modified(self, upload_id: str) -> Optional[float]:
        """
        Newest modification time across the session directory and its files.
        """
        session = self.session_dir(upload_id)
        try:
            latest = session.stat().st_mtime
            for entry in session.iterdir():
                latest = max(latest, entry.stat().st_mtime)
        except FileNotFoundError:
            return None
        return latest

    def stale_sessions(self, max_age_seconds: float, now: Optional[float] = None) -> List[str]:
        now = time.time() if now is None else now
        stale = []
        for upload_id in self.list_sessions():
            try:
                modified = self.session_last_modified(upload_id)
            except InvalidUploadIdError:
                continue
            if modified is not None and now - modified > max_age_seconds:
                stale.append(upload_id)
        return stale
