"""Background task for purging abandoned chunk staging sessions and finalize claims."""

import asyncio
from datetime import timedelta
from typing import List, Optional

from common.logging_config import get_logger
from vault.config import CLAIM_RETENTION_SECONDS, STALE_UPLOAD_SECONDS, STALE_UPLOAD_SWEEP_SECONDS
from vault.repositories.upload_claim_repository import UploadClaimRepository
from vault.services.quota_service import QuotaService
from vault.single_flight import SingleFlight
from vault.staging import StagingArea
from vault.utils import utcnow

logger = get_logger(__name__)


class StaleUploadCleaner:
    """
    Background task that periodically removes staging sessions nobody finalized.

    Pending finalize claims older than the staging age limit belong to a
    process that died mid-finalize; they are dropped and the owner's
    reservation is reconciled. Completed claims are kept for retries until
    the retention period ends.
    """

    def __init__(
        self,
        staging: StagingArea,
        single_flight: Optional[SingleFlight] = None,
        quota: Optional[QuotaService] = None,
        max_age_seconds: int = STALE_UPLOAD_SECONDS,
        interval_seconds: int = STALE_UPLOAD_SWEEP_SECONDS,
        claim_retention_seconds: int = CLAIM_RETENTION_SECONDS,
    ):
        """
        Initialize cleaner task.

        Args:
            staging: Staging area to sweep
            single_flight: Finalize guard; sessions being finalized are skipped
            quota: Ledger used to reconcile wallets whose claims expired
            max_age_seconds: Age after which an untouched session or pending claim is abandoned
            interval_seconds: Time between sweeps
            claim_retention_seconds: How long completed claims answer finalize retries
        """
        self.staging = staging
        self.single_flight = single_flight
        self.quota = quota
        self.max_age_seconds = max_age_seconds
        self.interval_seconds = interval_seconds
        self.claim_retention_seconds = claim_retention_seconds
        self._running = False
        self._task = None

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._running:
            logger.warning("Cleanup task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Started stale upload cleanup task "
            f"(interval: {self.interval_seconds}s, max age: {self.max_age_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped stale upload cleanup task")

    async def _run(self) -> None:
        """Main loop for cleanup task."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await self.sweep()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in cleanup task: {e}", exc_info=True)

    async def sweep(self) -> List[str]:
        """
        Execute one cleanup cycle.

        Returns:
            Upload ids whose staging data was removed
        """
        stale = await asyncio.to_thread(self.staging.stale_sessions, self.max_age_seconds)
        removed = []

        for upload_id in stale:
            if self.single_flight is not None and self.single_flight.in_flight(upload_id):
                logger.debug(f"Skipping session being finalized [upload_id={upload_id}]")
                continue
            if await asyncio.to_thread(self.staging.cleanup, upload_id):
                removed.append(upload_id)

        if removed:
            logger.info(f"Removed {len(removed)} abandoned upload sessions")
        else:
            logger.debug("No abandoned upload sessions found")

        await asyncio.to_thread(self.expire_claims)
        return removed

    def expire_claims(self) -> List[str]:
        """
        Drop abandoned pending claims and prune old completed ones.

        Returns:
            Upload ids whose pending claims were dropped
        """
        now = utcnow()
        expired = UploadClaimRepository.expire_pending(
            (now - timedelta(seconds=self.max_age_seconds)).isoformat()
        )
        pruned = UploadClaimRepository.prune_completed(
            (now - timedelta(seconds=self.claim_retention_seconds)).isoformat()
        )

        for claim in expired:
            logger.warning(f"Expired abandoned finalize claim [upload_id={claim.upload_id}] [wallet={claim.wallet_address}]")

        if self.quota is not None:
            for wallet_address in sorted({claim.wallet_address for claim in expired}):
                self.quota.recompute_used(wallet_address)

        if pruned:
            logger.info(f"Pruned {pruned} completed finalize claims")

        return [claim.upload_id for claim in expired]
