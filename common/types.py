"""Shared data type definitions (StoredContent, ChunkAck, FinalizeResult, etc.)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StoredContent:
    """
    Result of submitting bytes to a content store.
    """
    content_id: str
    size: int


@dataclass(frozen=True)
class ChunkAck:
    """
    Acknowledgement for one staged chunk.
    """
    upload_id: str
    chunk_index: int
    total_chunks: int
    size: int

    @property
    def message(self) -> str:
        return f"Chunk {self.chunk_index} of {self.total_chunks} received"


@dataclass(frozen=True)
class FinalizeResult:
    """
    Outcome of reassembling a chunked upload.
    """
    content_id: str
    name: str
    size: int


@dataclass(frozen=True)
class ExtractedEntry:
    """
    One member produced by an archive expander.
    """
    file_name: str
    relative_path: str
    content_id: str
    size: int
    mime_type: str
