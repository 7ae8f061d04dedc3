"""Pydantic schemas for API requests and responses."""

from vault.schemas.common import CamelModel, ErrorResponse
from vault.schemas.files import (
    ChunkUploadResponse,
    FinalizeUploadRequest,
    FinalizeUploadResponse,
    RegisterFileRequest,
    FileRecordResponse,
    FileListingEntry,
    FileResponse,
    ListFilesResponse,
    DeleteFileResponse,
    UpdateFileRequest,
    FolderFileEntry,
    CreateFolderRequest,
    CreateFolderResponse
)
from vault.schemas.storage import (
    StorageCheckRequest,
    StorageCheckResponse,
    StorageInfoResponse,
    PurchaseRequest,
    PaymentRecord,
    PurchaseResponse,
    PurchaseHistoryResponse,
    StoragePlanResponse
)

__all__ = [
    "CamelModel",
    "ErrorResponse",
    "ChunkUploadResponse",
    "FinalizeUploadRequest",
    "FinalizeUploadResponse",
    "RegisterFileRequest",
    "FileRecordResponse",
    "FileListingEntry",
    "FileResponse",
    "ListFilesResponse",
    "DeleteFileResponse",
    "UpdateFileRequest",
    "FolderFileEntry",
    "CreateFolderRequest",
    "CreateFolderResponse",
    "StorageCheckRequest",
    "StorageCheckResponse",
    "StorageInfoResponse",
    "PurchaseRequest",
    "PaymentRecord",
    "PurchaseResponse",
    "PurchaseHistoryResponse",
    "StoragePlanResponse"
]
