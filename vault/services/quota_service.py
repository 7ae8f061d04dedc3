"""Storage quota ledger: capacity checks, atomic deltas, reconciliation, purchases."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from common.constants import MIN_REFETCH_INTERVAL_SECONDS
from common.logging_config import get_logger
from vault.config import FREE_STORAGE_LIMIT, STORAGE_PLAN_SIZE
from vault.database import get_db_connection
from vault.exceptions import InsufficientCapacityError, OverFreeTierLimitError
from vault.repositories.account_repository import Account, AccountRepository
from vault.repositories.file_repository import FileRepository
from vault.repositories.purchase_repository import Purchase, PurchaseRepository
from vault.repositories.upload_claim_repository import UploadClaimRepository
from vault.utils import get_current_timestamp, utcnow

logger = get_logger(__name__)

PURCHASE_COMPLETED = "completed"


@dataclass(frozen=True)
class CapacityCheck:
    ok: bool
    remaining: int
    limit: int
    available: int
    used: int


@dataclass(frozen=True)
class StorageInfo:
    total_storage_used: int
    total_storage_purchased: int
    total_available_storage: int
    remaining_storage: int
    files_count: int
    estimated: bool = False


class QuotaService:
    def __init__(
        self,
        free_tier_limit: int = FREE_STORAGE_LIMIT,
        plan_size: int = STORAGE_PLAN_SIZE,
        reconcile_interval_seconds: float = MIN_REFETCH_INTERVAL_SECONDS,
    ):
        self.free_tier_limit = free_tier_limit
        self.plan_size = plan_size
        self.reconcile_interval = timedelta(seconds=reconcile_interval_seconds)

    def available_capacity(self, account: Account) -> int:
        return self.free_tier_limit + account.total_storage_purchased

    def remaining_capacity(self, account: Account) -> int:
        return max(0, self.available_capacity(account) - account.total_storage_used)

    def check_capacity(self, identity: str, requested_bytes: int) -> CapacityCheck:
        """
        Verify that identity may store requested_bytes more.

        A single object may never exceed the free-tier ceiling, whatever
        capacity has been purchased.

        Raises:
            OverFreeTierLimitError: If requested_bytes > free-tier ceiling
            InsufficientCapacityError: If requested_bytes > remaining capacity
        """
        if requested_bytes > self.free_tier_limit:
            logger.warning(f"Request of {requested_bytes} bytes exceeds free tier [wallet={identity}]")
            raise OverFreeTierLimitError(requested_bytes, self.free_tier_limit)

        account = AccountRepository.get_or_create(identity)
        remaining = self.remaining_capacity(account)

        if requested_bytes > remaining:
            logger.warning(f"Insufficient capacity: requested={requested_bytes} remaining={remaining} [wallet={identity}]")
            raise InsufficientCapacityError(requested_bytes, remaining)

        return CapacityCheck(
            ok=True,
            remaining=remaining,
            limit=self.free_tier_limit,
            available=self.available_capacity(account),
            used=account.total_storage_used,
        )

    def apply_delta(self, identity: str, delta_bytes: int, conn=None) -> int:
        new_used = AccountRepository.apply_delta(identity, delta_bytes, conn=conn)
        logger.info(f"Storage usage changed by {delta_bytes} bytes -> {new_used} [wallet={identity}]")
        return new_used

    def reserve(self, identity: str, size_bytes: int, conn=None) -> None:
        """
        Atomically set aside size_bytes of capacity for an upload in progress.

        Raises:
            OverFreeTierLimitError: If size_bytes > free-tier ceiling
            InsufficientCapacityError: If the reservation does not fit
        """
        if size_bytes > self.free_tier_limit:
            raise OverFreeTierLimitError(size_bytes, self.free_tier_limit)

        self.reserve_additional(identity, size_bytes, conn=conn)

    def reserve_additional(self, identity: str, size_bytes: int, conn=None) -> None:
        """
        Set aside size_bytes more for an upload that already holds a
        reservation. Only the total capacity applies, not the per-object ceiling.

        Raises:
            InsufficientCapacityError: If the reservation does not fit
        """
        if not AccountRepository.try_reserve(identity, size_bytes, self.free_tier_limit, conn=conn):
            account = AccountRepository.get(identity, conn=conn)
            remaining = 0
            if account is not None:
                remaining = max(
                    0,
                    self.available_capacity(account)
                    - account.total_storage_used
                    - account.total_storage_reserved,
                )
            raise InsufficientCapacityError(size_bytes, remaining)

    def commit_reservation(self, identity: str, reserved_bytes: int, used_bytes: int, conn=None) -> int:
        return AccountRepository.commit_reservation(identity, reserved_bytes, used_bytes, conn=conn)

    def release_reservation(self, identity: str, reserved_bytes: int) -> None:
        """
        Give back an unused reservation. Failures are logged, not raised;
        recompute_used clears a leftover reservation later.
        """
        try:
            AccountRepository.release_reservation(identity, reserved_bytes)
        except Exception as e:
            logger.error(f"Failed to release reservation of {reserved_bytes} bytes [wallet={identity}]: {e}", exc_info=True)

    def recompute_used(self, identity: str) -> int:
        """
        Re-derive used bytes from the owned file records and overwrite the
        stored counter when it disagrees.

        A reservation with no pending finalize claim behind it was left by a
        crashed upload and is cleared.

        Returns:
            Recomputed used byte count
        """
        actual = FileRepository.sum_sizes_by_owner(identity)
        account = AccountRepository.get_or_create(identity)
        checked_at = get_current_timestamp()

        if account.total_storage_used != actual:
            logger.warning(
                f"Storage counter drift: stored={account.total_storage_used} actual={actual} [wallet={identity}]"
            )
            AccountRepository.set_used(identity, actual, checked_at)
        else:
            AccountRepository.mark_checked(identity, checked_at)

        if account.total_storage_reserved > 0 and UploadClaimRepository.count_pending(identity) == 0:
            logger.warning(
                f"Clearing orphaned reservation of {account.total_storage_reserved} bytes [wallet={identity}]"
            )
            AccountRepository.clear_reserved(identity)

        return actual

    def _reconcile_due(self, account: Account, now: datetime) -> bool:
        if account.last_storage_check is None:
            return True
        return now - account.last_storage_check >= self.reconcile_interval

    def get_storage_info(self, identity: str) -> StorageInfo:
        """
        Storage figures for display.

        Reconciles the counter at most once per interval. Any internal
        failure degrades to an estimate instead of raising.
        """
        account: Optional[Account] = None
        try:
            account = AccountRepository.get_or_create(identity)
            if self._reconcile_due(account, utcnow()):
                self.recompute_used(identity)
                account = AccountRepository.get(identity) or account

            files_count = FileRepository.count_by_owner(identity)
            return StorageInfo(
                total_storage_used=account.total_storage_used,
                total_storage_purchased=account.total_storage_purchased,
                total_available_storage=self.available_capacity(account),
                remaining_storage=self.remaining_capacity(account),
                files_count=files_count,
            )
        except Exception as e:
            logger.error(f"Storage info degraded to estimate [wallet={identity}]: {e}", exc_info=True)
            return self._estimate(account)

    def _estimate(self, account: Optional[Account]) -> StorageInfo:
        used = account.total_storage_used if account else 0
        purchased = account.total_storage_purchased if account else 0
        available = self.free_tier_limit + purchased
        return StorageInfo(
            total_storage_used=used,
            total_storage_purchased=purchased,
            total_available_storage=available,
            remaining_storage=max(0, available - used),
            files_count=0,
            estimated=True,
        )

    def purchase(
        self,
        identity: str,
        transaction_hash: str,
        payment_method: str = "USDT",
        network: str = "Base",
    ) -> Tuple[Account, Purchase]:
        """
        Record a plan purchase and grant its capacity in one transaction.

        Raises:
            DuplicatePurchaseError: If transaction_hash was already applied
        """
        purchase = Purchase(
            transaction_hash=transaction_hash,
            wallet_address=identity,
            payment_method=payment_method,
            network=network,
            amount_bytes=self.plan_size,
            status=PURCHASE_COMPLETED,
            purchased_at=utcnow(),
        )

        with get_db_connection() as conn:
            try:
                PurchaseRepository.record_purchase(purchase, conn=conn)
                account = AccountRepository.add_purchased(identity, self.plan_size, conn=conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        logger.info(
            f"Storage purchase applied [wallet={identity}] [tx={transaction_hash}] "
            f"purchased={account.total_storage_purchased}"
        )
        return account, purchase
