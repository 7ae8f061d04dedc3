"""Chunk ingestion: validate one chunk of a resumable upload and stage it."""

import asyncio
from typing import Any, Optional

from common.constants import MAX_CHUNK_SIZE_BYTES
from common.logging_config import get_logger
from common.types import ChunkAck
from vault.exceptions import ChunkTooLargeError, InvalidParameterError, MissingParameterError
from vault.staging import StagingArea
from vault.utils import parse_int_param

logger = get_logger(__name__)


class ChunkIngestionService:
    def __init__(self, staging: StagingArea, max_chunk_size: int = MAX_CHUNK_SIZE_BYTES):
        self.staging = staging
        self.max_chunk_size = max_chunk_size

    async def ingest_chunk(
        self,
        upload_id: Optional[str],
        chunk_index: Any,
        total_chunks: Any,
        file_name: Optional[str],
        data: Optional[bytes],
    ) -> ChunkAck:
        """
        Stage one chunk. Re-sending an index replaces the earlier bytes.

        Raises:
            MissingParameterError: If the chunk or any metadata field is absent
            ChunkTooLargeError: If the chunk exceeds the per-chunk ceiling
            InvalidParameterError: If the indices are not integers or out of range
            InvalidUploadIdError: If upload_id is not a safe staging key
        """
        if data is None:
            raise MissingParameterError("chunk")
        if len(data) > self.max_chunk_size:
            logger.warning(f"Rejected chunk of {len(data)} bytes [upload_id={upload_id}]")
            raise ChunkTooLargeError(len(data), self.max_chunk_size)

        if not upload_id:
            raise MissingParameterError("uploadId")
        if not file_name:
            raise MissingParameterError("fileName")
        index = parse_int_param(chunk_index, "chunkIndex")
        total = parse_int_param(total_chunks, "totalChunks")

        if total < 1:
            raise InvalidParameterError("totalChunks", "must be at least 1")
        if index < 0 or index >= total:
            raise InvalidParameterError("chunkIndex", f"must be in [0, {total})")

        await asyncio.to_thread(self.staging.write_chunk, upload_id, index, data)
        logger.debug(f"Staged chunk {index + 1}/{total} ({len(data)} bytes) [upload_id={upload_id}]")

        return ChunkAck(upload_id=upload_id, chunk_index=index, total_chunks=total, size=len(data))
