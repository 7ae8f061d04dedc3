"""
Tests for chunk ingestion validation.
"""

import pytest

from vault.exceptions import (
    ChunkTooLargeError,
    InvalidParameterError,
    InvalidUploadIdError,
    MissingParameterError,
)
from vault.services.chunk_service import ChunkIngestionService


@pytest.fixture
def chunk_service(staging):
    return ChunkIngestionService(staging, max_chunk_size=16)


@pytest.mark.asyncio
async def test_chunk_staged_and_acknowledged(chunk_service, staging):
    ack = await chunk_service.ingest_chunk("u1", "0", "2", "a.bin", b"hello")

    assert ack.chunk_index == 0
    assert ack.total_chunks == 2
    assert ack.message == "Chunk 0 of 2 received"
    assert staging.chunk_path("u1", 0).read_bytes() == b"hello"


@pytest.mark.asyncio
async def test_chunk_at_ceiling_accepted(chunk_service):
    ack = await chunk_service.ingest_chunk("u1", 0, 1, "a.bin", b"x" * 16)

    assert ack.size == 16


@pytest.mark.asyncio
async def test_oversized_chunk_rejected(chunk_service, staging):
    with pytest.raises(ChunkTooLargeError) as exc_info:
        await chunk_service.ingest_chunk("u1", 0, 1, "a.bin", b"x" * 17)

    assert exc_info.value.limit == 16
    assert not staging.session_dir("u1").exists()


@pytest.mark.asyncio
async def test_missing_chunk_data(chunk_service):
    with pytest.raises(MissingParameterError) as exc_info:
        await chunk_service.ingest_chunk("u1", 0, 1, "a.bin", None)

    assert exc_info.value.parameter == "chunk"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "upload_id, chunk_index, total_chunks, file_name, parameter",
    [
        (None, 0, 1, "a.bin", "uploadId"),
        ("u1", 0, 1, "", "fileName"),
        ("u1", None, 1, "a.bin", "chunkIndex"),
        ("u1", 0, " ", "a.bin", "totalChunks"),
    ],
)
async def test_missing_metadata(chunk_service, upload_id, chunk_index, total_chunks, file_name, parameter):
    with pytest.raises(MissingParameterError) as exc_info:
        await chunk_service.ingest_chunk(upload_id, chunk_index, total_chunks, file_name, b"a")

    assert exc_info.value.parameter == parameter


@pytest.mark.asyncio
@pytest.mark.parametrize("chunk_index, total_chunks", [("x", 2), (2, 2), (-1, 2), (0, 0)])
async def test_invalid_indices(chunk_service, chunk_index, total_chunks):
    with pytest.raises(InvalidParameterError):
        await chunk_service.ingest_chunk("u1", chunk_index, total_chunks, "a.bin", b"a")


@pytest.mark.asyncio
async def test_path_traversal_upload_id(chunk_service):
    with pytest.raises(InvalidUploadIdError):
        await chunk_service.ingest_chunk("../escape", 0, 1, "a.bin", b"a")
