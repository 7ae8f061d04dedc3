"""Upload finalizer: reassemble staged chunks, store them once, record and charge once."""

import asyncio
from typing import Any, Optional

from common.logging_config import get_logger
from common.types import FinalizeResult, StoredContent
from vault.content_store import ContentStore
from vault.exceptions import (
    InvalidParameterError,
    MissingParameterError,
    NotFoundOrUnauthorizedError,
    UpstreamStorageError,
    UploadInProgressError,
    VaultException,
)
from vault.repositories.upload_claim_repository import CLAIM_COMPLETED, UploadClaimRepository
from vault.services.file_service import FileService
from vault.single_flight import SingleFlight
from vault.staging import StagingArea
from vault.utils import parse_int_param, parse_size

logger = get_logger(__name__)


class UploadFinalizer:
    """
    Finalize runs at most once per upload id.

    Concurrent calls in this process share one execution through
    SingleFlight; a claim row in the database keeps other processes out.
    A completed claim answers retries with the recorded result.
    """

    def __init__(
        self,
        staging: StagingArea,
        content_store: ContentStore,
        file_service: FileService,
        single_flight: SingleFlight,
    ):
        self.staging = staging
        self.content_store = content_store
        self.file_service = file_service
        self.single_flight = single_flight

    async def finalize(
        self,
        upload_id: Optional[str],
        file_name: Optional[str],
        total_chunks: Any,
        identity: str,
        mime_type: Optional[str] = None,
        declared_size: Any = None,
    ) -> FinalizeResult:
        """
        Raises:
            MissingParameterError: If uploadId, fileName or totalChunks is absent
            InvalidParameterError: If totalChunks is below 1
            IncompleteUploadError: If a chunk index is missing from staging
            SizeParseError: If a declared size is given but is not an integer
            OverFreeTierLimitError, InsufficientCapacityError: Before any upload
            UpstreamStorageError: If the content store fails
            UploadInProgressError: If another process or wallet is finalizing the upload
        """
        if not upload_id:
            raise MissingParameterError("uploadId")
        if not file_name:
            raise MissingParameterError("fileName")
        total = parse_int_param(total_chunks, "totalChunks")
        if total < 1:
            raise InvalidParameterError("totalChunks", "must be at least 1")
        # validates the id before it becomes a claim key
        self.staging.session_dir(upload_id)

        if self.single_flight.in_flight(upload_id):
            if self.single_flight.owner_of(upload_id) != identity:
                raise UploadInProgressError(f"Upload {upload_id} is being finalized by another wallet")
            logger.info(f"Finalize already running, joining [upload_id={upload_id}]")

        return await self.single_flight.run(
            upload_id,
            lambda: self._finalize_once(upload_id, file_name, total, identity, mime_type, declared_size),
            owner=identity,
        )

    def _completed_result(self, upload_id: str, identity: str) -> Optional[FinalizeResult]:
        claim = UploadClaimRepository.get(upload_id)
        if claim is None or claim.status != CLAIM_COMPLETED:
            return None
        if claim.wallet_address != identity:
            raise NotFoundOrUnauthorizedError("Upload not found or unauthorized")
        logger.info(f"Upload already finalized, returning recorded result [upload_id={upload_id}]")
        return FinalizeResult(content_id=claim.cid, name=claim.file_name, size=claim.size)

    async def _finalize_once(
        self,
        upload_id: str,
        file_name: str,
        total_chunks: int,
        identity: str,
        mime_type: Optional[str],
        declared_size: Any,
    ) -> FinalizeResult:
        previous = self._completed_result(upload_id, identity)
        if previous is not None:
            return previous

        if not UploadClaimRepository.claim(upload_id, identity):
            previous = self._completed_result(upload_id, identity)
            if previous is not None:
                return previous
            raise UploadInProgressError(f"Upload {upload_id} is being finalized elsewhere")

        completed = False
        try:
            artifact, size = await asyncio.to_thread(self.staging.assemble, upload_id, total_chunks)

            if declared_size is not None:
                declared = parse_size(declared_size)
                if declared != size:
                    logger.warning(
                        f"Declared size {declared} differs from assembled size {size} [upload_id={upload_id}]"
                    )

            async def submit() -> StoredContent:
                return await self.content_store.put_file(artifact, file_name, mime_type)

            try:
                record = await self.file_service.store_and_register(
                    identity, file_name, size, mime_type, submit, artifact=artifact
                )
            except VaultException:
                raise
            except OSError as e:
                raise UpstreamStorageError(f"Failed to read assembled upload: {e}") from e

            UploadClaimRepository.complete(upload_id, record.cid, record.file_name, record.size_bytes)
            completed = True

            logger.info(f"Finalized upload [upload_id={upload_id}] [cid={record.cid}] ({size} bytes)")
            return FinalizeResult(content_id=record.cid, name=record.file_name, size=record.size_bytes)
        finally:
            if not completed:
                UploadClaimRepository.release(upload_id)
            await asyncio.to_thread(self.staging.cleanup, upload_id)
