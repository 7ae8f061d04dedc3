"""Shared pytest fixtures for all tests."""

import asyncio
import hashlib
from pathlib import Path
from typing import AsyncIterator, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from cli.config import Config
from common.constants import DEFAULT_MIME_TYPE
from common.types import StoredContent
from vault.archive import DisabledArchiveExpander
from vault.cache import ListingCache
from vault.content_store import ContentStore
from vault.database import init_database
from vault.exceptions import NotFoundOrUnauthorizedError
from vault.service_container import ServiceContainer
from vault.services.quota_service import QuotaService
from vault.staging import StagingArea

MiB = 1024 * 1024
TEST_FREE_TIER = 10 * MiB
TEST_PLAN_SIZE = 20 * MiB
WALLET = "0xabc123"


class InMemoryContentStore(ContentStore):
    """
    Content store keeping objects in a dict, keyed by a sha256-derived cid.

    Tests can make the next submissions fail, or hold them until released.
    """

    name = "memory"

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.put_calls = 0
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    async def put_file(self, path: Path, file_name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredContent:
        return await self.put_bytes(Path(path).read_bytes(), file_name, mime_type)

    async def put_bytes(self, data: bytes, file_name: str, mime_type: str = DEFAULT_MIME_TYPE) -> StoredContent:
        self.put_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        cid = f"mem-{hashlib.sha256(data).hexdigest()[:32]}"
        self.objects[cid] = data
        return StoredContent(content_id=cid, size=len(data))

    async def open_stream(self, cid: str) -> AsyncIterator[bytes]:
        if cid not in self.objects:
            raise NotFoundOrUnauthorizedError(f"Content {cid} not found")
        data = self.objects[cid]
        for start in range(0, len(data), 4):
            yield data[start:start + 4]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .hashvault directory
    """
    config_dir = tmp_path / '.hashvault'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create a temporary test database for each test.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setattr("vault.database.DATABASE_PATH", str(db_path))
    monkeypatch.setattr("vault.config.DATABASE_PATH", str(db_path))
    init_database()
    return db_path


@pytest.fixture
def staging(tmp_path):
    area = StagingArea(tmp_path / "staging", piece_size=1024)
    area.ensure_root()
    return area


@pytest.fixture
def content_store():
    return InMemoryContentStore()


@pytest.fixture
def quota(test_db):
    return QuotaService(free_tier_limit=TEST_FREE_TIER, plan_size=TEST_PLAN_SIZE)


@pytest.fixture
def cache():
    return ListingCache()


@pytest.fixture
def services(test_db, staging, content_store, quota, cache):
    return ServiceContainer(
        staging=staging,
        content_store=content_store,
        archive_expander=DisabledArchiveExpander(),
        cache=cache,
        quota=quota,
    )


@pytest.fixture
def file_service(services):
    return services.file_service()


@pytest.fixture
def api_client(services):
    """
    FastAPI test client over an app wired with the test services.
    """
    from vault.main import app

    app.state.services = services
    with TestClient(app) as client:
        yield client
    app.state.services = None
