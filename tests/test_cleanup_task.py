"""
Tests for the stale upload cleanup task.
"""

import asyncio
import os
import time

import pytest

from vault.cleanup_task import StaleUploadCleaner
from vault.database import connection_scope
from vault.repositories.account_repository import AccountRepository
from vault.repositories.upload_claim_repository import UploadClaimRepository
from vault.single_flight import SingleFlight

WALLET = "0xabc123"
LONG_AGO = "2000-01-01T00:00:00+00:00"


def age_session(staging, upload_id, seconds):
    then = time.time() - seconds
    session = staging.session_dir(upload_id)
    for path in [session, *session.iterdir()]:
        os.utime(path, (then, then))


def backdate_claim(upload_id, column):
    with connection_scope() as conn:
        conn.execute(f"UPDATE upload_claims SET {column} = ? WHERE upload_id = ?", (LONG_AGO, upload_id))


@pytest.mark.asyncio
async def test_sweep_removes_only_stale_sessions(test_db, staging):
    staging.write_chunk("stale", 0, b"a")
    staging.write_chunk("active", 0, b"b")
    age_session(staging, "stale", 7200)
    cleaner = StaleUploadCleaner(staging, max_age_seconds=3600, interval_seconds=60)

    removed = await cleaner.sweep()

    assert removed == ["stale"]
    assert not staging.session_dir("stale").exists()
    assert staging.session_dir("active").exists()


@pytest.mark.asyncio
async def test_sweep_skips_sessions_being_finalized(test_db, staging):
    flight = SingleFlight()
    release = asyncio.Event()
    staging.write_chunk("busy", 0, b"a")
    age_session(staging, "busy", 7200)
    cleaner = StaleUploadCleaner(staging, single_flight=flight, max_age_seconds=3600)

    task = asyncio.create_task(flight.run("busy", release.wait))
    await asyncio.sleep(0)

    assert await cleaner.sweep() == []
    assert staging.session_dir("busy").exists()

    release.set()
    await task


@pytest.mark.asyncio
async def test_start_and_stop(staging):
    cleaner = StaleUploadCleaner(staging, max_age_seconds=3600, interval_seconds=3600)

    await cleaner.start()
    assert cleaner._running is True

    await cleaner.stop()
    assert cleaner._running is False
    assert cleaner._task.done()


@pytest.mark.asyncio
async def test_sweep_expires_abandoned_claim_and_clears_reservation(test_db, staging, quota):
    UploadClaimRepository.claim("crashed", WALLET)
    backdate_claim("crashed", "claimed_at")
    assert AccountRepository.try_reserve(WALLET, 500, quota.free_tier_limit)
    cleaner = StaleUploadCleaner(staging, quota=quota, max_age_seconds=3600)

    await cleaner.sweep()

    assert UploadClaimRepository.get("crashed") is None
    assert AccountRepository.get(WALLET).total_storage_reserved == 0


def test_recent_pending_claim_keeps_reservation(test_db, staging, quota):
    UploadClaimRepository.claim("running", WALLET)
    assert AccountRepository.try_reserve(WALLET, 500, quota.free_tier_limit)
    cleaner = StaleUploadCleaner(staging, quota=quota, max_age_seconds=3600)

    assert cleaner.expire_claims() == []
    assert UploadClaimRepository.get("running").status == "pending"
    assert AccountRepository.get(WALLET).total_storage_reserved == 500


def test_expired_claims_reported_without_quota(test_db, staging):
    UploadClaimRepository.claim("old", WALLET)
    backdate_claim("old", "claimed_at")

    assert StaleUploadCleaner(staging, max_age_seconds=3600).expire_claims() == ["old"]


def test_completed_claims_pruned_after_retention(test_db, staging):
    for upload_id in ("done-old", "done-new"):
        UploadClaimRepository.claim(upload_id, WALLET)
        UploadClaimRepository.complete(upload_id, f"cid-{upload_id}", "a.txt", 3)
    backdate_claim("done-old", "completed_at")
    cleaner = StaleUploadCleaner(staging, max_age_seconds=3600, claim_retention_seconds=86400)

    cleaner.expire_claims()

    assert UploadClaimRepository.get("done-old") is None
    assert UploadClaimRepository.get("done-new").cid == "cid-done-new"
