"""Content store adapters: submit bytes, get back a content identifier and size."""

import asyncio
import hashlib
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx

from common.constants import CONTENT_STORE_TIMEOUT_SECONDS, DEFAULT_MIME_TYPE, STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from common.types import StoredContent
from vault.exceptions import NotFoundOrUnauthorizedError, UpstreamStorageError

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = {502, 503, 504}


class ContentStore(ABC):
    """
    Contract every storage backend implements.

    Backends accept bytes and return the content identifier they derived
    plus the byte length that was stored.
    """

    name = "abstract"

    @abstractmethod
    async def put_file(self, path: Path, file_name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredContent:
        """
        Submit the file at path.

        Raises:
            UpstreamStorageError: If the backend rejects or fails the upload
        """

    @abstractmethod
    async def put_bytes(self, data: bytes, file_name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredContent:
        """Submit an in-memory payload."""

    @abstractmethod
    def open_stream(self, cid: str) -> AsyncIterator[bytes]:
        """
        Stream stored content.

        Raises:
            NotFoundOrUnauthorizedError: If the backend has no such content
            UpstreamStorageError: On any other backend failure
        """

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class WebHashContentStore(ContentStore):
    """
    HTTP IPFS pinning backend.

    Uploads go to POST {base_url}/ipfs/upload with the API key in x-api-key;
    retrieval goes through a public gateway at {gateway_url}/ipfs/{cid}.
    """

    name = "webhash"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        gateway_url: str,
        timeout: float = CONTENT_STORE_TIMEOUT_SECONDS,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            logger.warning("Content store API key not configured")
        self.base_url = base_url.rstrip("/")
        self.gateway_url = gateway_url.rstrip("/")
        self.max_retries = max_retries
        self._api_key = api_key
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def _retry_with_backoff(self, operation, *args, **kwargs):
        """
        Retry operation with exponential backoff for transient failures.

        Raises:
            UpstreamStorageError: When retries are exhausted or the failure is permanent
        """
        for attempt in range(self.max_retries):
            try:
                response = await operation(*args, **kwargs)
            except httpx.TransportError as e:
                if attempt < self.max_retries - 1:
                    delay = 2 ** attempt
                    logger.warning(f"Content store unreachable, retrying in {delay}s (attempt {attempt + 1}/{self.max_retries}): {e}")
                    await asyncio.sleep(delay)
                    continue
                raise UpstreamStorageError(f"Content store unreachable: {e}") from e

            if response.status_code in RETRYABLE_STATUS_CODES and attempt < self.max_retries - 1:
                delay = 2 ** attempt
                logger.warning(f"Content store returned {response.status_code}, retrying in {delay}s")
                await asyncio.sleep(delay)
                continue

            return response

    async def _post_upload(self, payload, file_name: str, mime_type: str) -> httpx.Response:
        return await self._client.post(
            f"{self.base_url}/ipfs/upload",
            headers={"x-api-key": self._api_key},
            files={"file": (file_name, payload, mime_type or DEFAULT_MIME_TYPE)},
        )

    async def _post_file(self, path: Path, file_name: str, mime_type: str) -> httpx.Response:
        with open(path, "rb") as f:
            return await self._post_upload(f, file_name, mime_type)

    def _parse_upload_response(self, response: httpx.Response, submitted_size: int) -> StoredContent:
        if response.status_code >= 400:
            raise UpstreamStorageError(
                f"Content store upload failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamStorageError(f"Invalid response from content store: {response.text}") from e

        cid = body.get("Hash") or body.get("cid") or body.get("IpfsHash")
        if not cid:
            raise UpstreamStorageError(f"Invalid response from content store: {body}")

        logger.info(f"Content stored upstream [cid={cid}] ({submitted_size} bytes)")
        return StoredContent(content_id=cid, size=submitted_size)

    async def put_file(self, path: Path, file_name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredContent:
        size = os.path.getsize(path)
        response = await self._retry_with_backoff(self._post_file, path, file_name, mime_type)
        return self._parse_upload_response(response, size)

    async def put_bytes(self, data: bytes, file_name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredContent:
        response = await self._retry_with_backoff(self._post_upload, data, file_name, mime_type)
        return self._parse_upload_response(response, len(data))

    async def open_stream(self, cid: str) -> AsyncIterator[bytes]:
        url = f"{self.gateway_url}/ipfs/{cid}"
        try:
            async with self._client.stream("GET", url) as response:
                if response.status_code == 404:
                    raise NotFoundOrUnauthorizedError(f"Content {cid} not found")
                if response.status_code >= 400:
                    await response.aread()
                    raise UpstreamStorageError(
                        f"Content retrieval failed: {response.status_code} - {response.text}",
                        status_code=response.status_code,
                    )
                async for piece in response.aiter_bytes(STREAM_PIECE_SIZE_BYTES):
                    yield piece
        except httpx.TransportError as e:
            raise UpstreamStorageError(f"Content gateway unreachable: {e}") from e

    async def ping(self) -> bool:
        try:
            response = await self._client.head(self.base_url)
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.warning(f"Content store ping failed: {e}")
            return False


class LocalContentStore(ContentStore):
    """
    Content-addressed directory backend for development and tests.

    The content id is the SHA-256 of the bytes, prefixed with "local-".
    """

    name = "local"

    def __init__(self, root: Path, piece_size: int = STREAM_PIECE_SIZE_BYTES):
        self.root = Path(root)
        self.piece_size = piece_size

    def _object_path(self, cid: str) -> Path:
        if not cid.startswith("local-") or not cid[6:].isalnum():
            raise NotFoundOrUnauthorizedError(f"Content {cid} not found")
        return self.root / cid

    def _store_file(self, path: Path) -> StoredContent:
        self.root.mkdir(parents=True, exist_ok=True)
        digest = hashlib.sha256()
        size = 0
        partial = self.root / f".{uuid.uuid4().hex}.part"
        try:
            with open(path, "rb") as src, open(partial, "wb") as dst:
                while True:
                    piece = src.read(self.piece_size)
                    if not piece:
                        break
                    digest.update(piece)
                    dst.write(piece)
                    size += len(piece)
            cid = f"local-{digest.hexdigest()}"
            os.replace(partial, self.root / cid)
        finally:
            if partial.exists():
                partial.unlink()
        return StoredContent(content_id=cid, size=size)

    def _store_bytes(self, data: bytes) -> StoredContent:
        self.root.mkdir(parents=True, exist_ok=True)
        cid = f"local-{hashlib.sha256(data).hexdigest()}"
        (self.root / cid).write_bytes(data)
        return StoredContent(content_id=cid, size=len(data))

    async def put_file(self, path: Path, file_name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredContent:
        try:
            return await asyncio.to_thread(self._store_file, path)
        except OSError as e:
            raise UpstreamStorageError(f"Local store write failed: {e}") from e

    async def put_bytes(self, data: bytes, file_name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredContent:
        try:
            return await asyncio.to_thread(self._store_bytes, data)
        except OSError as e:
            raise UpstreamStorageError(f"Local store write failed: {e}") from e

    async def open_stream(self, cid: str) -> AsyncIterator[bytes]:
        path = self._object_path(cid)
        if not path.is_file():
            raise NotFoundOrUnauthorizedError(f"Content {cid} not found")
        with open(path, "rb") as f:
            while True:
                piece = f.read(self.piece_size)
                if not piece:
                    break
                yield piece

    async def ping(self) -> bool:
        self.root.mkdir(parents=True, exist_ok=True)
        return os.access(self.root, os.W_OK)


def build_content_store(
    backend: str,
    base_url: str,
    api_key: str,
    gateway_url: str,
    local_dir: str,
) -> ContentStore:
    """
    Create the configured content store backend.

    Raises:
        ValueError: If backend is unknown
    """
    if backend == "webhash":
        return WebHashContentStore(base_url=base_url, api_key=api_key, gateway_url=gateway_url)
    if backend == "local":
        return LocalContentStore(Path(local_dir))
    raise ValueError(f"Unknown content store backend: {backend}")
