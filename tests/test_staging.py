"""
Tests for the chunk staging area.
"""

import os
import time

import pytest

from vault.exceptions import IncompleteUploadError, InvalidUploadIdError


class TestSessionIds:
    @pytest.mark.parametrize("upload_id", ["", "../etc", "a/b", ".hidden", "x" * 200])
    def test_unsafe_upload_ids_rejected(self, staging, upload_id):
        with pytest.raises(InvalidUploadIdError):
            staging.session_dir(upload_id)

    def test_safe_upload_id_maps_under_root(self, staging):
        session = staging.session_dir("upload_123-abc")
        assert session.parent == staging.root


class TestWriteAndAssemble:
    def test_assembles_in_index_order(self, staging):
        staging.write_chunk("u1", 2, b"ccc")
        staging.write_chunk("u1", 0, b"a")
        staging.write_chunk("u1", 1, b"bb")

        artifact, size = staging.assemble("u1", 3)

        assert artifact.read_bytes() == b"abbccc"
        assert size == 6

    def test_rewriting_a_chunk_replaces_bytes(self, staging):
        staging.write_chunk("u1", 0, b"old-bytes")
        staging.write_chunk("u1", 0, b"new")

        artifact, size = staging.assemble("u1", 1)

        assert artifact.read_bytes() == b"new"
        assert size == 3

    def test_no_partial_files_left_behind(self, staging):
        staging.write_chunk("u1", 0, b"data")

        names = [entry.name for entry in staging.session_dir("u1").iterdir()]

        assert names == ["chunk-0"]

    def test_missing_chunk_reports_lowest_index(self, staging):
        staging.write_chunk("u1", 0, b"a")
        staging.write_chunk("u1", 3, b"d")

        with pytest.raises(IncompleteUploadError) as exc_info:
            staging.assemble("u1", 4)

        assert exc_info.value.missing_index == 1

    def test_assembles_pieces_larger_than_read_buffer(self, staging):
        first = os.urandom(5000)
        second = os.urandom(3000)
        staging.write_chunk("big", 0, first)
        staging.write_chunk("big", 1, second)

        artifact, size = staging.assemble("big", 2)

        assert artifact.read_bytes() == first + second
        assert size == 8000


class TestCleanup:
    def test_cleanup_removes_session(self, staging):
        staging.write_chunk("u1", 0, b"a")
        staging.assemble("u1", 1)

        assert staging.cleanup("u1") is True
        assert not staging.session_dir("u1").exists()

    def test_cleanup_of_unknown_session_is_noop(self, staging):
        assert staging.cleanup("never-staged") is True

    def test_stale_sessions(self, staging):
        staging.write_chunk("old", 0, b"a")
        staging.write_chunk("fresh", 0, b"b")
        long_ago = time.time() - 3600
        for path in [staging.session_dir("old"), staging.chunk_path("old", 0)]:
            os.utime(path, (long_ago, long_ago))

        assert staging.stale_sessions(max_age_seconds=600) == ["old"]
