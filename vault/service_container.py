"""Process-wide service wiring held on app.state."""

from dataclasses import dataclass, field
from pathlib import Path

from fastapi import Request

from common.logging_config import get_logger
from vault.archive import ArchiveExpander, build_archive_expander
from vault.cache import ListingCache
from vault.config import (
    ARCHIVE_EXPANSION,
    CONTENT_STORE_API_KEY,
    CONTENT_STORE_BACKEND,
    CONTENT_STORE_URL,
    FREE_STORAGE_LIMIT,
    GATEWAY_URL,
    LOCAL_STORE_DIR,
    MAX_ARCHIVE_ENTRIES,
    STAGING_DIR,
)
from vault.content_store import ContentStore, build_content_store
from vault.services.chunk_service import ChunkIngestionService
from vault.services.file_service import FileService
from vault.services.finalize_service import UploadFinalizer
from vault.services.quota_service import QuotaService
from vault.single_flight import SingleFlight
from vault.staging import StagingArea

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """
    Long-lived collaborators shared by every request.

    Request handlers build short-lived services from these.
    """
    staging: StagingArea
    content_store: ContentStore
    archive_expander: ArchiveExpander
    cache: ListingCache = field(default_factory=ListingCache)
    quota: QuotaService = field(default_factory=QuotaService)
    single_flight: SingleFlight = field(default_factory=SingleFlight)

    def file_service(self) -> FileService:
        return FileService(
            cache=self.cache,
            quota=self.quota,
            content_store=self.content_store,
            archive_expander=self.archive_expander,
        )

    def chunk_service(self) -> ChunkIngestionService:
        return ChunkIngestionService(self.staging)

    def finalizer(self) -> UploadFinalizer:
        return UploadFinalizer(
            staging=self.staging,
            content_store=self.content_store,
            file_service=self.file_service(),
            single_flight=self.single_flight,
        )

    async def close(self) -> None:
        self.cache.clear()
        await self.content_store.close()


def build_service_container() -> ServiceContainer:
    """
    Wire services from environment configuration.

    Raises:
        ValueError: If a configured backend name is unknown
    """
    staging = StagingArea(Path(STAGING_DIR))
    staging.ensure_root()

    content_store = build_content_store(
        backend=CONTENT_STORE_BACKEND,
        base_url=CONTENT_STORE_URL,
        api_key=CONTENT_STORE_API_KEY,
        gateway_url=GATEWAY_URL,
        local_dir=LOCAL_STORE_DIR,
    )
    archive_expander = build_archive_expander(ARCHIVE_EXPANSION, MAX_ARCHIVE_ENTRIES, FREE_STORAGE_LIMIT)

    logger.info(
        f"Services configured: content_store={content_store.name} "
        f"archive_expansion={ARCHIVE_EXPANSION} staging={staging.root}"
    )
    return ServiceContainer(
        staging=staging,
        content_store=content_store,
        archive_expander=archive_expander,
    )


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container installed at startup."""
    return request.app.state.services


def get_file_service(request: Request) -> FileService:
    return get_services(request).file_service()


def get_quota_service(request: Request) -> QuotaService:
    return get_services(request).quota
