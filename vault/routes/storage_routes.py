"""Storage quota and purchase API routes."""

from fastapi import APIRouter, Depends

from vault.auth import get_wallet_identity
from vault.config import STORAGE_PLAN_NAME, STORAGE_PLAN_PRICE
from vault.exceptions import MissingParameterError
from vault.repositories.purchase_repository import Purchase, PurchaseRepository
from vault.schemas.common import ERROR_RESPONSES
from vault.schemas.storage import (
    PaymentRecord,
    PurchaseHistoryResponse,
    PurchaseRequest,
    PurchaseResponse,
    StorageCheckRequest,
    StorageCheckResponse,
    StorageInfoResponse,
    StoragePlanResponse,
)
from vault.service_container import get_quota_service
from vault.services.quota_service import QuotaService
from vault.utils import parse_size

router = APIRouter(prefix="/storage", tags=["Storage"], responses=ERROR_RESPONSES)


def _payment_record(purchase: Purchase) -> PaymentRecord:
    return PaymentRecord(
        transaction_hash=purchase.transaction_hash,
        payment_method=purchase.payment_method,
        network=purchase.network,
        amount=purchase.amount_bytes,
        status=purchase.status,
        purchased_at=purchase.purchased_at.isoformat(),
    )


@router.post("/check", response_model=StorageCheckResponse)
async def check_storage(
    body: StorageCheckRequest,
    identity: str = Depends(get_wallet_identity),
    quota: QuotaService = Depends(get_quota_service),
):
    """
    Check whether a file of fileSize bytes fits.

    Raises:
        - 400: Invalid size, over the free-tier limit, or not enough space
        - 401: No wallet address
    """
    if body.file_size is None:
        raise MissingParameterError("fileSize")

    check = quota.check_capacity(identity, parse_size(body.file_size))
    return StorageCheckResponse(
        remaining_storage=check.remaining,
        total_available_storage=check.available,
        total_storage_used=check.used,
    )


@router.get("/info", response_model=StorageInfoResponse)
async def storage_info(
    identity: str = Depends(get_wallet_identity),
    quota: QuotaService = Depends(get_quota_service),
):
    """
    Storage figures for the wallet. Never fails on internal errors;
    degraded answers carry "estimated": true.
    """
    info = quota.get_storage_info(identity)
    return StorageInfoResponse(
        total_storage_used=info.total_storage_used,
        total_storage_purchased=info.total_storage_purchased,
        total_available_storage=info.total_available_storage,
        remaining_storage=info.remaining_storage,
        files_count=info.files_count,
        estimated=info.estimated,
    )


@router.post("/purchase", response_model=PurchaseResponse)
async def purchase_storage(
    body: PurchaseRequest,
    identity: str = Depends(get_wallet_identity),
    quota: QuotaService = Depends(get_quota_service),
):
    """
    Apply a storage plan purchase.

    Raises:
        - 400: Missing transactionHash
        - 401: No wallet address
        - 409: Transaction already applied
    """
    if not body.transaction_hash or not body.transaction_hash.strip():
        raise MissingParameterError("transactionHash")

    account, purchase = quota.purchase(
        identity,
        transaction_hash=body.transaction_hash.strip(),
        payment_method=body.payment_method,
        network=body.network,
    )
    return PurchaseResponse(
        total_storage_purchased=account.total_storage_purchased,
        total_available_storage=quota.available_capacity(account),
        payment_record=_payment_record(purchase),
    )


@router.get("/purchases", response_model=PurchaseHistoryResponse)
async def list_purchases(identity: str = Depends(get_wallet_identity)):
    """Purchases applied to the wallet, newest first."""
    purchases = PurchaseRepository.list_by_wallet(identity)
    return PurchaseHistoryResponse(purchases=[_payment_record(purchase) for purchase in purchases])


@router.get("/plan", response_model=StoragePlanResponse)
async def storage_plan(quota: QuotaService = Depends(get_quota_service)):
    """The storage plan offered for purchase."""
    return StoragePlanResponse(
        name=STORAGE_PLAN_NAME,
        size_in_bytes=quota.plan_size,
        price_in_usd=STORAGE_PLAN_PRICE,
    )
