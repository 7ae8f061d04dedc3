"""
Tests for archive expansion.
"""

import io
import zipfile

import pytest

from vault.archive import (
    DisabledArchiveExpander,
    ZipArchiveExpander,
    build_archive_expander,
    is_zip_upload,
)
from vault.exceptions import InsufficientCapacityError
from vault.repositories.account_repository import AccountRepository
from vault.repositories.file_repository import FileRepository
from vault.repositories.upload_claim_repository import UploadClaimRepository
from vault.services.finalize_service import UploadFinalizer
from vault.services.quota_service import QuotaService

WALLET = "0xabc123"


def make_zip(members, compression=zipfile.ZIP_STORED):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=compression) as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def zip_artifact(tmp_path):
    path = tmp_path / "bundle.zip"
    path.write_bytes(make_zip({
        "readme.txt": b"read me",
        "images/logo.png": b"\x89PNG....",
        "images/": b"",
        "../escape.txt": b"nope",
    }))
    return path


def test_zip_detection():
    assert is_zip_upload("bundle.ZIP", "")
    assert is_zip_upload("bundle", "application/zip")
    assert not is_zip_upload("notes.txt", "text/plain")


def test_build_archive_expander():
    assert isinstance(build_archive_expander("disabled", 10), DisabledArchiveExpander)
    assert isinstance(build_archive_expander("zip", 10), ZipArchiveExpander)
    assert build_archive_expander("zip", 10, 2048).max_member_bytes == 2048
    with pytest.raises(ValueError):
        build_archive_expander("tar", 10)


@pytest.mark.asyncio
async def test_disabled_expander_returns_nothing(zip_artifact, content_store):
    expander = DisabledArchiveExpander()

    assert expander.accepts("bundle.zip", "application/zip") is False
    assert await expander.expand(zip_artifact, content_store) == []


@pytest.mark.asyncio
async def test_zip_expander_stores_safe_members(zip_artifact, content_store):
    entries = await ZipArchiveExpander(max_entries=10).expand(zip_artifact, content_store)

    by_path = {entry.relative_path: entry for entry in entries}
    assert set(by_path) == {"readme.txt", "images/logo.png"}
    assert by_path["images/logo.png"].file_name == "logo.png"
    assert by_path["images/logo.png"].mime_type == "image/png"
    assert content_store.objects[by_path["readme.txt"].content_id] == b"read me"


@pytest.mark.asyncio
async def test_zip_expander_caps_entries(zip_artifact, content_store):
    entries = await ZipArchiveExpander(max_entries=1).expand(zip_artifact, content_store)

    assert len(entries) == 1


@pytest.mark.asyncio
async def test_corrupt_zip_stored_unexpanded(tmp_path, content_store):
    path = tmp_path / "broken.zip"
    path.write_bytes(b"not a zip")

    assert await ZipArchiveExpander(max_entries=10).expand(path, content_store) == []


@pytest.mark.asyncio
async def test_finalize_records_archive_members(services, staging, content_store):
    services.archive_expander = ZipArchiveExpander(max_entries=10)
    finalizer = UploadFinalizer(staging, content_store, services.file_service(), services.single_flight)
    payload = make_zip({"a.txt": b"aaaa", "docs/b.txt": b"bb"})
    staging.write_chunk("zip-1", 0, payload)

    result = await finalizer.finalize("zip-1", "bundle.zip", 1, WALLET, mime_type="application/zip")

    archive = FileRepository.get_by_cid(result.content_id)
    children = FileRepository.find_children(archive.id)
    assert archive.is_folder is True
    assert {child.folder_path for child in children} == {"/", "/docs"}
    assert AccountRepository.get(WALLET).total_storage_used == len(payload) + 6


@pytest.mark.asyncio
async def test_zip_expander_skips_oversized_members(tmp_path, content_store):
    path = tmp_path / "mixed.zip"
    path.write_bytes(make_zip({"small.txt": b"tiny", "big.bin": b"x" * 500}, zipfile.ZIP_DEFLATED))

    entries = await ZipArchiveExpander(max_entries=10, max_member_bytes=100).expand(path, content_store)

    assert [entry.relative_path for entry in entries] == ["small.txt"]
    assert b"x" * 500 not in content_store.objects.values()


def zip_finalizer(services, staging, content_store):
    services.archive_expander = ZipArchiveExpander(max_entries=10)
    return UploadFinalizer(staging, content_store, services.file_service(), services.single_flight)


@pytest.mark.asyncio
async def test_repeated_member_content_recorded_once(services, staging, content_store):
    finalizer = zip_finalizer(services, staging, content_store)
    payload = make_zip({"a/__init__.py": b"", "b/__init__.py": b"", "c.txt": b"cc"})
    staging.write_chunk("zip-1", 0, payload)

    result = await finalizer.finalize("zip-1", "pkg.zip", 1, WALLET, mime_type="application/zip")

    children = FileRepository.find_children(FileRepository.get_by_cid(result.content_id).id)
    assert sorted(child.file_name for child in children) == ["__init__.py", "c.txt"]
    assert AccountRepository.get(WALLET).total_storage_used == len(payload) + 2


@pytest.mark.asyncio
async def test_member_registered_elsewhere_not_recorded(services, staging, content_store):
    finalizer = zip_finalizer(services, staging, content_store)
    staging.write_chunk("plain", 0, b"shared")
    shared = await finalizer.finalize("plain", "shared.txt", 1, "0xother")
    payload = make_zip({"copy.txt": b"shared", "own.txt": b"own"})
    staging.write_chunk("zip-1", 0, payload)

    result = await finalizer.finalize("zip-1", "bundle.zip", 1, WALLET, mime_type="application/zip")

    children = FileRepository.find_children(FileRepository.get_by_cid(result.content_id).id)
    assert [child.file_name for child in children] == ["own.txt"]
    assert FileRepository.get_by_cid(shared.content_id).wallet_address == "0xother"
    assert AccountRepository.get(WALLET).total_storage_used == len(payload) + 3


@pytest.mark.asyncio
async def test_members_beyond_capacity_rejected(services, staging, content_store):
    services.quota = QuotaService(free_tier_limit=1000, plan_size=1000)
    finalizer = zip_finalizer(services, staging, content_store)
    payload = make_zip({"a.txt": b"a" * 600, "b.txt": b"b" * 600}, zipfile.ZIP_DEFLATED)
    staging.write_chunk("zip-1", 0, payload)

    with pytest.raises(InsufficientCapacityError):
        await finalizer.finalize("zip-1", "bundle.zip", 1, WALLET, mime_type="application/zip")

    account = AccountRepository.get(WALLET)
    assert account.total_storage_used == 0
    assert account.total_storage_reserved == 0
    assert FileRepository.find_by_owner(WALLET) == []
    assert UploadClaimRepository.get("zip-1") is None
