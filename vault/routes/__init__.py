"""API route handlers."""

from vault.routes.upload_routes import router as upload_router
from vault.routes.storage_routes import router as storage_router
from vault.routes.retrieve_routes import router as retrieve_router

__all__ = [
    "upload_router",
    "storage_router",
    "retrieve_router",
]
