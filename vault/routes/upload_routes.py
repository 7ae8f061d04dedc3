"""Upload, listing and metadata API routes."""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from pydantic import ValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile

from common.constants import (
    CHUNK_UPLOAD_TIMEOUT_SECONDS,
    DEFAULT_MIME_TYPE,
    FINALIZE_TIMEOUT_SECONDS,
    MAX_CHUNK_SIZE_BYTES,
)
from common.formatting import format_file_size
from common.logging_config import get_logger
from vault.auth import get_optional_identity, get_wallet_identity, require_identity
from vault.exceptions import InvalidParameterError, MissingParameterError, OverFreeTierLimitError
from vault.repositories.file_repository import FileRecord
from vault.schemas.common import ERROR_RESPONSES
from vault.schemas.files import (
    ChunkUploadResponse,
    CreateFolderRequest,
    CreateFolderResponse,
    DeleteFileResponse,
    FileListingEntry,
    FileRecordResponse,
    FileResponse,
    FinalizeUploadRequest,
    FinalizeUploadResponse,
    ListFilesResponse,
    RegisterFileRequest,
    UpdateFileRequest,
)
from vault.service_container import ServiceContainer, get_file_service, get_services
from vault.services.file_service import FileService, FolderEntry

logger = get_logger(__name__)

router = APIRouter(tags=["Uploads"], responses=ERROR_RESPONSES)


def record_to_response(record: FileRecord) -> FileRecordResponse:
    return FileRecordResponse(
        id=record.id,
        cid=record.cid,
        file_name=record.file_name,
        size=record.size,
        mime_type=record.mime_type,
        wallet_address=record.wallet_address,
        is_folder=record.is_folder,
        parent_folder=record.parent_folder,
        folder_path=record.folder_path,
        created_at=record.created_at.isoformat(),
        updated_at=record.updated_at.isoformat(),
    )


def _listing_entry(record: FileRecord) -> FileListingEntry:
    size = record.size.strip()
    formatted = format_file_size(int(size)) if size.isdigit() else record.size
    return FileListingEntry(
        **record_to_response(record).model_dump(),
        formatted_size=formatted,
        last_update=record.updated_at.isoformat(),
    )


@router.post("/upload-chunk", response_model=ChunkUploadResponse)
async def upload_chunk(
    file: Optional[UploadFile] = File(None),
    upload_id: Optional[str] = Form(None, alias="uploadId"),
    chunk_index: Optional[str] = Form(None, alias="chunkIndex"),
    total_chunks: Optional[str] = Form(None, alias="totalChunks"),
    file_name: Optional[str] = Form(None, alias="fileName"),
    services: ServiceContainer = Depends(get_services),
):
    """
    Stage one chunk of a resumable upload.

    Parameters:
        - file: Chunk bytes (multipart/form-data), at most 4 MiB
        - uploadId, chunkIndex, totalChunks, fileName: Session metadata

    Raises:
        - 400: Missing or invalid parameter
        - 413: Chunk too large
        - 504: Chunk write timed out
    """
    data = None
    if file is not None:
        data = await file.read(MAX_CHUNK_SIZE_BYTES + 1)

    ack = await asyncio.wait_for(
        services.chunk_service().ingest_chunk(upload_id, chunk_index, total_chunks, file_name, data),
        timeout=CHUNK_UPLOAD_TIMEOUT_SECONDS,
    )
    return ChunkUploadResponse(message=ack.message)


@router.post("/finalize-upload", response_model=FinalizeUploadResponse)
async def finalize_upload(
    body: FinalizeUploadRequest,
    header_identity: str = Depends(get_optional_identity),
    services: ServiceContainer = Depends(get_services),
):
    """
    Reassemble staged chunks, store the result and record it.

    Repeating the call for a finalized upload returns the recorded result.

    Raises:
        - 400: Missing parameter or capacity exceeded
        - 401: No wallet address
        - 409: Missing chunk, or upload being finalized elsewhere
        - 500: Content store failure
        - 504: Finalize timed out
    """
    identity = require_identity(body.wallet_address, header_identity)

    result = await asyncio.wait_for(
        services.finalizer().finalize(
            upload_id=body.upload_id,
            file_name=body.file_name,
            total_chunks=body.total_chunks,
            identity=identity,
            mime_type=body.file_type,
            declared_size=body.file_size,
        ),
        timeout=FINALIZE_TIMEOUT_SECONDS,
    )
    return FinalizeUploadResponse(cid=result.content_id, name=result.name, size=result.size)


@router.post("/upload", response_model=FileResponse)
async def upload_file(
    request: Request,
    header_identity: str = Depends(get_optional_identity),
    file_service: FileService = Depends(get_file_service),
):
    """
    Direct (non-chunked) upload.

    A multipart body with a "file" part is stored through the content store.
    A JSON body {fileName, cid, size, mimeType, walletAddress} registers
    content the client already stored.

    Raises:
        - 400: Missing parameter, invalid size or capacity exceeded
        - 401: No wallet address
        - 409: Content already registered by another wallet
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, StarletteUploadFile):
            raise MissingParameterError("file")

        identity = require_identity(form.get("walletAddress"), header_identity)
        limit = file_service.quota.free_tier_limit
        data = await upload.read(limit + 1)
        if len(data) > limit:
            raise OverFreeTierLimitError(upload.size or len(data), limit)
        mime_type = form.get("mimeType") or upload.content_type or DEFAULT_MIME_TYPE
        file_name = form.get("fileName") or upload.filename
        record = await file_service.upload(identity, file_name, data, mime_type)
    else:
        try:
            body = RegisterFileRequest.model_validate(await request.json())
        except (ValueError, ValidationError) as e:
            raise InvalidParameterError("body", "expected a JSON object or multipart form") from e

        identity = require_identity(body.wallet_address, header_identity)
        record = file_service.create(
            identity=identity,
            file_name=body.file_name,
            cid=body.cid,
            size=body.size,
            mime_type=body.mime_type,
        )

    return FileResponse(file=record_to_response(record))


@router.get("/upload", response_model=ListFilesResponse)
async def list_files(
    wallet_address: Optional[str] = Query(None, alias="walletAddress"),
    refresh: bool = Query(False),
    header_identity: str = Depends(get_optional_identity),
    file_service: FileService = Depends(get_file_service),
):
    """
    List the wallet's files, newest first.

    Parameters:
        - walletAddress: Owner (or Authorization header)
        - refresh: Bypass the listing cache if the cached entry is old enough
    """
    identity = require_identity(wallet_address, header_identity)
    records = file_service.list_files(identity, refresh=refresh)
    return ListFilesResponse(files=[_listing_entry(record) for record in records])


@router.delete("/upload", response_model=DeleteFileResponse)
async def delete_file(
    cid: Optional[str] = Query(None),
    wallet_address: Optional[str] = Query(None, alias="walletAddress"),
    header_identity: str = Depends(get_optional_identity),
    file_service: FileService = Depends(get_file_service),
):
    """
    Delete a file, or a folder together with everything beneath it.

    Raises:
        - 400: Missing cid
        - 401: No wallet address
        - 404: File not found or not owned by the wallet
    """
    identity = require_identity(wallet_address, header_identity)
    result = file_service.delete(identity, cid)
    return DeleteFileResponse(deleted_count=result.deleted_count, freed_bytes=result.freed_bytes)


@router.post("/upload/folder", response_model=CreateFolderResponse)
async def create_folder(
    body: CreateFolderRequest,
    header_identity: str = Depends(get_optional_identity),
    file_service: FileService = Depends(get_file_service),
):
    """
    Register a folder and its files in one step.

    Raises:
        - 400: Missing parameter, invalid size or capacity exceeded
        - 401: No wallet address
        - 409: A cid is already registered
    """
    identity = require_identity(body.wallet_address, header_identity)
    entries = [
        FolderEntry(
            file_name=entry.file_name,
            cid=entry.cid,
            size=entry.size,
            mime_type=entry.mime_type or DEFAULT_MIME_TYPE,
            relative_path=entry.relative_path,
        )
        for entry in body.files
    ]

    folder, children = file_service.create_folder(
        identity=identity,
        folder_name=body.folder_name,
        cid=body.cid,
        size=body.size,
        files=entries,
    )
    return CreateFolderResponse(
        folder=record_to_response(folder),
        files=[record_to_response(child) for child in children],
    )


@router.patch("/upload/{cid}", response_model=FileResponse)
async def update_file(
    cid: str,
    body: UpdateFileRequest,
    identity: str = Depends(get_wallet_identity),
    file_service: FileService = Depends(get_file_service),
):
    """
    Edit a file's name, MIME type or folder flag.

    Raises:
        - 400: Nothing to update
        - 401: No wallet address
        - 404: File not found or not owned by the wallet
    """
    record = file_service.update_meta(identity, cid, body.model_dump(exclude_none=True))
    return FileResponse(file=record_to_response(record))
