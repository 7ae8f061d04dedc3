"""Pydantic schemas for upload, listing and metadata endpoints."""

from typing import Any, List, Optional, Union

from vault.schemas.common import CamelModel


class ChunkUploadResponse(CamelModel):
    """Response model for a staged chunk."""
    success: bool = True
    message: str


class FinalizeUploadRequest(CamelModel):
    """Request model for finalizing a chunked upload."""
    upload_id: Optional[str] = None
    file_name: Optional[str] = None
    total_chunks: Optional[Union[int, str]] = None
    wallet_address: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[Any] = None


class FinalizeUploadResponse(CamelModel):
    """Response model for a finalized upload."""
    success: bool = True
    cid: str
    name: str
    size: int


class RegisterFileRequest(CamelModel):
    """Request model for registering content the client already stored."""
    file_name: Optional[str] = None
    cid: Optional[str] = None
    size: Optional[Any] = None
    mime_type: Optional[str] = None
    wallet_address: Optional[str] = None


class FileRecordResponse(CamelModel):
    """A stored file or folder."""
    id: str
    cid: str
    file_name: str
    size: str
    mime_type: str
    wallet_address: str
    is_folder: bool
    parent_folder: Optional[str] = None
    folder_path: str
    created_at: str
    updated_at: str


class FileListingEntry(FileRecordResponse):
    """A listing entry with display fields."""
    formatted_size: str
    last_update: str


class FileResponse(CamelModel):
    """Response model for a single created or updated record."""
    success: bool = True
    file: FileRecordResponse


class ListFilesResponse(CamelModel):
    """Response model for file listing."""
    success: bool = True
    files: List[FileListingEntry]


class DeleteFileResponse(CamelModel):
    """Response model for file deletion."""
    success: bool = True
    deleted_count: int
    freed_bytes: int


class UpdateFileRequest(CamelModel):
    """Request model for metadata edits."""
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    is_folder: Optional[bool] = None


class FolderFileEntry(CamelModel):
    """One child of a folder registration."""
    file_name: Optional[str] = None
    cid: Optional[str] = None
    size: Optional[Any] = None
    mime_type: Optional[str] = None
    relative_path: Optional[str] = None


class CreateFolderRequest(CamelModel):
    """Request model for folder registration."""
    folder_name: Optional[str] = None
    cid: Optional[str] = None
    size: Optional[Any] = None
    wallet_address: Optional[str] = None
    files: List[FolderFileEntry] = []


class CreateFolderResponse(CamelModel):
    """Response model for folder registration."""
    success: bool = True
    folder: FileRecordResponse
    files: List[FileRecordResponse]
