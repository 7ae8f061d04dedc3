"""Content retrieval API route."""

from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from common.constants import DEFAULT_MIME_TYPE
from vault.schemas.common import ERROR_RESPONSES
from vault.service_container import get_file_service
from vault.services.file_service import FileService

router = APIRouter(tags=["Retrieve"], responses=ERROR_RESPONSES)


@router.get("/retrieve/{cid}")
async def retrieve_file(cid: str, file_service: FileService = Depends(get_file_service)):
    """
    Stream stored content by content identifier.

    Raises:
        - 404: Content not found
        - 500: Content store failure
    """
    record, body = await file_service.open_content(cid)

    headers = {}
    media_type = DEFAULT_MIME_TYPE
    if record is not None:
        media_type = record.mime_type or DEFAULT_MIME_TYPE
        headers["Content-Disposition"] = f"inline; filename*=UTF-8''{quote(record.file_name)}"

    return StreamingResponse(body, media_type=media_type, headers=headers)
