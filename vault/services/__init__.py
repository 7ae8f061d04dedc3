"""Service layer for business logic."""

from vault.services.quota_service import QuotaService, CapacityCheck, StorageInfo
from vault.services.file_service import FileService, FolderEntry, DeleteResult
from vault.services.chunk_service import ChunkIngestionService
from vault.services.finalize_service import UploadFinalizer

__all__ = [
    "QuotaService",
    "CapacityCheck",
    "StorageInfo",
    "FileService",
    "FolderEntry",
    "DeleteResult",
    "ChunkIngestionService",
    "UploadFinalizer",
]
