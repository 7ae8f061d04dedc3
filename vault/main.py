"""Entry point for the HashVault service."""

import asyncio
import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from common.logging_config import setup_logging
from vault.cleanup_task import StaleUploadCleaner
from vault.config import VAULT_HOST, VAULT_PORT
from vault.database import get_db_connection, init_database
from vault.exceptions import (
    ChunkTooLargeError,
    DuplicateContentError,
    DuplicatePurchaseError,
    IncompleteUploadError,
    InsufficientCapacityError,
    InvalidParameterError,
    InvalidUploadIdError,
    MissingParameterError,
    NotFoundOrUnauthorizedError,
    OverFreeTierLimitError,
    SizeParseError,
    UploadInProgressError,
    UpstreamStorageError,
    VaultException,
)
from vault.routes.retrieve_routes import router as retrieve_router
from vault.routes.storage_routes import router as storage_router
from vault.routes.upload_routes import router as upload_router
from vault.service_container import build_service_container

logger = setup_logging('vault')

app = FastAPI(
    title="HashVault",
    description="Wallet-keyed storage gateway over a content-addressed store",
    version="1.0.0"
)

app.state.services = None
app.state.cleaner = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize database, wire services and start the staging cleaner.
    """
    logger.info("HashVault service starting up...")

    init_database()
    logger.info("Database initialized")

    if app.state.services is None:
        app.state.services = build_service_container()

    services = app.state.services
    app.state.cleaner = StaleUploadCleaner(services.staging, services.single_flight, services.quota)
    await app.state.cleaner.start()
    logger.info("Background cleanup task started")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup resources on application shutdown.
    """
    logger.info("HashVault service shutting down...")

    if app.state.cleaner is not None:
        await app.state.cleaner.stop()
        logger.info("Cleanup task stopped")

    if app.state.services is not None:
        await app.state.services.close()
        logger.info("Services closed")


def _error_response(
    request: Request,
    exc: Exception,
    status_code: int,
    code: str,
    server_fault: bool = False,
) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    message = f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}"
    if server_fault:
        logger.error(message, exc_info=exc)
    else:
        logger.warning(message)

    content = {"success": False, "detail": str(exc), "code": code}
    if isinstance(exc, VaultException):
        content.update(exc.extra())
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(MissingParameterError)
async def missing_parameter_handler(request: Request, exc: MissingParameterError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "MISSING_PARAMETER")


@app.exception_handler(ChunkTooLargeError)
async def chunk_too_large_handler(request: Request, exc: ChunkTooLargeError):
    return _error_response(request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "CHUNK_TOO_LARGE")


@app.exception_handler(IncompleteUploadError)
async def incomplete_upload_handler(request: Request, exc: IncompleteUploadError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "INCOMPLETE_UPLOAD")


@app.exception_handler(SizeParseError)
async def size_parse_handler(request: Request, exc: SizeParseError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_SIZE")


@app.exception_handler(OverFreeTierLimitError)
async def over_free_tier_handler(request: Request, exc: OverFreeTierLimitError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "OVER_FREE_TIER_LIMIT")


@app.exception_handler(InsufficientCapacityError)
async def insufficient_capacity_handler(request: Request, exc: InsufficientCapacityError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INSUFFICIENT_CAPACITY")


@app.exception_handler(UpstreamStorageError)
async def upstream_storage_handler(request: Request, exc: UpstreamStorageError):
    return _error_response(
        request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "UPSTREAM_STORAGE_ERROR", server_fault=True
    )


@app.exception_handler(NotFoundOrUnauthorizedError)
async def not_found_handler(request: Request, exc: NotFoundOrUnauthorizedError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "NOT_FOUND")


@app.exception_handler(DuplicateContentError)
async def duplicate_content_handler(request: Request, exc: DuplicateContentError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "DUPLICATE_CONTENT")


@app.exception_handler(UploadInProgressError)
async def upload_in_progress_handler(request: Request, exc: UploadInProgressError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "UPLOAD_IN_PROGRESS")


@app.exception_handler(DuplicatePurchaseError)
async def duplicate_purchase_handler(request: Request, exc: DuplicatePurchaseError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "DUPLICATE_PURCHASE")


@app.exception_handler(InvalidUploadIdError)
async def invalid_upload_id_handler(request: Request, exc: InvalidUploadIdError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_UPLOAD_ID")


@app.exception_handler(InvalidParameterError)
async def invalid_parameter_handler(request: Request, exc: InvalidParameterError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_PARAMETER")


@app.exception_handler(VaultException)
async def vault_exception_handler(request: Request, exc: VaultException):
    return _error_response(
        request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", server_fault=True
    )


@app.exception_handler(asyncio.TimeoutError)
async def timeout_handler(request: Request, exc: asyncio.TimeoutError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Request timed out [request_id={request_id}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content={"success": False, "detail": "Request timed out", "code": "TIMEOUT"}
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"HTTP {exc.status_code}: {exc.detail} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.detail, "code": "UNAUTHORIZED" if exc.status_code == 401 else "HTTP_ERROR"},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Request validation failed: {exc.errors()} [request_id={request_id}] path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "detail": "Invalid request body", "code": "INVALID_PARAMETER"}
    )


app.include_router(upload_router)
app.include_router(storage_router)
app.include_router(retrieve_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "HashVault API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "vault"}


@app.get("/ready")
async def ready_check():
    """
    Readiness check endpoint.
    Verifies database and content store connectivity.
    """
    try:
        with get_db_connection() as conn:
            conn.execute("SELECT 1")
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    services = app.state.services
    try:
        if services is None:
            content_store_status = "error: services not initialized"
        elif await services.content_store.ping():
            content_store_status = "ok"
        else:
            content_store_status = "error: unreachable"
    except Exception as e:
        content_store_status = f"error: {str(e)}"

    ready = db_status == "ok" and content_store_status == "ok"
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "database": db_status,
            "content_store": content_store_status
        }
    )


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "vault.main:app",
        host=VAULT_HOST,
        port=VAULT_PORT
    )


if __name__ == "__main__":
    main()
