"""
Tests for file record mutations, cascade deletes and listing cache coherence.
"""

import pytest

from vault.exceptions import (
    DuplicateContentError,
    InsufficientCapacityError,
    InvalidParameterError,
    MissingParameterError,
    NotFoundOrUnauthorizedError,
    SizeParseError,
)
from vault.repositories.account_repository import AccountRepository
from vault.repositories.file_repository import FileRepository
from vault.services.file_service import FolderEntry

MiB = 1024 * 1024
WALLET = "0xabc123"
OTHER = "0xdef456"


def used(identity=WALLET):
    return AccountRepository.get(identity).total_storage_used


class TestCreate:
    def test_create_charges_ledger(self, file_service):
        record = file_service.create(WALLET, "a.txt", "cid-a", "1500", "text/plain")

        assert record.size == "1500"
        assert record.folder_path == "/"
        assert used() == 1500

    @pytest.mark.parametrize("field", ["file_name", "cid", "size"])
    def test_create_requires_fields(self, file_service, field):
        args = {"file_name": "a.txt", "cid": "cid-a", "size": 10}
        args[field] = None

        with pytest.raises(MissingParameterError):
            file_service.create(WALLET, **args)

    def test_create_rejects_bad_size(self, file_service):
        with pytest.raises(SizeParseError):
            file_service.create(WALLET, "a.txt", "cid-a", "12kb")

    def test_duplicate_cid_rolls_back_charge(self, file_service):
        file_service.create(WALLET, "a.txt", "cid-a", 100)

        with pytest.raises(DuplicateContentError):
            file_service.create(OTHER, "b.txt", "cid-a", 100)

        account = AccountRepository.get_or_create(OTHER)
        assert account.total_storage_used == 0
        assert account.total_storage_reserved == 0

    def test_create_over_capacity(self, file_service):
        file_service.create(WALLET, "a.bin", "cid-a", 9 * MiB)

        with pytest.raises(InsufficientCapacityError):
            file_service.create(WALLET, "b.bin", "cid-b", 2 * MiB)

        assert FileRepository.get_by_cid("cid-b") is None


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_stores_and_records(self, file_service, content_store):
        record = await file_service.upload(WALLET, "note.txt", b"hello", "text/plain")

        assert content_store.objects[record.cid] == b"hello"
        assert record.size == "5"
        assert used() == 5

    @pytest.mark.asyncio
    async def test_same_owner_reupload_is_idempotent(self, file_service, content_store):
        first = await file_service.upload(WALLET, "note.txt", b"hello", "text/plain")
        second = await file_service.upload(WALLET, "note.txt", b"hello", "text/plain")

        assert second.id == first.id
        assert used() == 5
        assert AccountRepository.get(WALLET).total_storage_reserved == 0

    @pytest.mark.asyncio
    async def test_other_owner_reupload_conflicts(self, file_service):
        await file_service.upload(WALLET, "note.txt", b"hello", "text/plain")

        with pytest.raises(DuplicateContentError):
            await file_service.upload(OTHER, "copy.txt", b"hello", "text/plain")

        assert AccountRepository.get(OTHER).total_storage_reserved == 0


class TestDelete:
    def test_delete_file_credits_ledger(self, file_service):
        file_service.create(WALLET, "a.txt", "cid-a", 300)
        file_service.create(WALLET, "b.txt", "cid-b", 200)

        result = file_service.delete(WALLET, "cid-a")

        assert result.deleted_count == 1
        assert result.freed_bytes == 300
        assert used() == 200

    def test_delete_folder_cascades(self, file_service):
        file_service.create_folder(
            WALLET,
            "photos",
            "cid-folder",
            0,
            [
                FolderEntry("a.jpg", "cid-1", 100, "image/jpeg", "photos/a.jpg"),
                FolderEntry("b.jpg", "cid-2", 250, "image/jpeg", "photos/2024/b.jpg"),
            ],
        )

        result = file_service.delete(WALLET, "cid-folder")

        assert result.deleted_count == 3
        assert result.freed_bytes == 350
        assert used() == 0
        assert FileRepository.find_by_owner(WALLET) == []

    def test_delete_nested_folders(self, file_service):
        outer, _ = file_service.create_folder(WALLET, "outer", "cid-outer", 0, [])
        inner = file_service._new_record(
            WALLET, "cid-inner", "inner", 0, "application/folder", is_folder=True, parent_folder=outer.id
        )
        leaf = file_service._new_record(WALLET, "cid-leaf", "x.txt", 40, "text/plain", parent_folder=inner.id)
        file_service._insert_charged(WALLET, [inner, leaf], reserved=0, charge=40)

        result = file_service.delete(WALLET, "cid-outer")

        assert result.deleted_count == 3
        assert result.freed_bytes == 40
        assert used() == 0
        assert FileRepository.get_by_cid("cid-leaf") is None

    def test_delete_requires_ownership(self, file_service):
        file_service.create(WALLET, "a.txt", "cid-a", 300)

        with pytest.raises(NotFoundOrUnauthorizedError):
            file_service.delete(OTHER, "cid-a")

        assert FileRepository.get_by_cid("cid-a") is not None

    def test_delete_unknown_cid(self, file_service):
        with pytest.raises(NotFoundOrUnauthorizedError):
            file_service.delete(WALLET, "missing")

    def test_delete_requires_cid(self, file_service):
        with pytest.raises(MissingParameterError):
            file_service.delete(WALLET, None)


class TestFolders:
    def test_folder_charges_children(self, file_service):
        folder, children = file_service.create_folder(
            WALLET,
            "docs",
            "cid-folder",
            "10",
            [
                FolderEntry("a.pdf", "cid-1", "100", "application/pdf", "docs/sub/a.pdf"),
                FolderEntry("b.pdf", "cid-2", 200),
            ],
        )

        assert folder.is_folder is True
        assert folder.mime_type == "application/folder"
        assert [child.parent_folder for child in children] == [folder.id, folder.id]
        assert children[0].folder_path == "/docs/sub"
        assert children[1].folder_path == "/"
        assert used() == 310

    def test_folder_over_capacity_records_nothing(self, file_service):
        entries = [FolderEntry(f"f{i}.bin", f"cid-{i}", 3 * MiB) for i in range(3)]
        file_service.create(WALLET, "big.bin", "cid-big", 2 * MiB)

        with pytest.raises(InsufficientCapacityError):
            file_service.create_folder(WALLET, "bulk", "cid-bulk", 0, entries)

        assert FileRepository.count_by_owner(WALLET) == 1
        assert used() == 2 * MiB


class TestUpdateMeta:
    def test_rename(self, file_service):
        file_service.create(WALLET, "a.txt", "cid-a", 10)

        record = file_service.update_meta(WALLET, "cid-a", {"file_name": "renamed.txt"})

        assert record.file_name == "renamed.txt"
        assert FileRepository.get_by_cid("cid-a").file_name == "renamed.txt"

    def test_empty_patch_rejected(self, file_service):
        file_service.create(WALLET, "a.txt", "cid-a", 10)

        with pytest.raises(InvalidParameterError):
            file_service.update_meta(WALLET, "cid-a", {"file_name": None})

    def test_update_requires_ownership(self, file_service):
        file_service.create(WALLET, "a.txt", "cid-a", 10)

        with pytest.raises(NotFoundOrUnauthorizedError):
            file_service.update_meta(OTHER, "cid-a", {"mime_type": "text/markdown"})


class TestListingCache:
    def test_listing_newest_first(self, file_service):
        file_service.create(WALLET, "a.txt", "cid-a", 10)
        file_service.create(WALLET, "b.txt", "cid-b", 10)

        assert [record.cid for record in file_service.list_files(WALLET)] == ["cid-b", "cid-a"]

    def test_listing_served_from_cache(self, file_service, monkeypatch):
        file_service.create(WALLET, "a.txt", "cid-a", 10)
        file_service.list_files(WALLET)

        def fail(*args, **kwargs):
            raise AssertionError("database should not be read")

        monkeypatch.setattr("vault.services.file_service.FileRepository.find_by_owner", fail)

        assert len(file_service.list_files(WALLET)) == 1

    def test_mutations_invalidate_listing(self, file_service):
        file_service.create(WALLET, "a.txt", "cid-a", 10)
        assert len(file_service.list_files(WALLET)) == 1

        file_service.create(WALLET, "b.txt", "cid-b", 10)
        assert len(file_service.list_files(WALLET)) == 2

        file_service.update_meta(WALLET, "cid-b", {"file_name": "c.txt"})
        assert {record.file_name for record in file_service.list_files(WALLET)} == {"a.txt", "c.txt"}

        file_service.delete(WALLET, "cid-a")
        assert [record.cid for record in file_service.list_files(WALLET)] == ["cid-b"]

    def test_refresh_throttled(self, file_service):
        file_service.create(WALLET, "a.txt", "cid-a", 10)
        file_service.list_files(WALLET)
        FileRepository.delete_records([FileRepository.get_by_cid("cid-a").id])

        assert len(file_service.list_files(WALLET, refresh=True)) == 1


class TestOpenContent:
    @pytest.mark.asyncio
    async def test_streams_registered_content(self, file_service):
        uploaded = await file_service.upload(WALLET, "note.txt", b"hello world", "text/plain")

        record, body = await file_service.open_content(uploaded.cid)
        data = b"".join([piece async for piece in body])

        assert record.file_name == "note.txt"
        assert data == b"hello world"

    @pytest.mark.asyncio
    async def test_unknown_content_raises_before_streaming(self, file_service):
        with pytest.raises(NotFoundOrUnauthorizedError):
            await file_service.open_content("mem-unknown")
