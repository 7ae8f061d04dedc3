"""Pydantic schemas for storage quota endpoints."""

from typing import Any, List, Optional

from pydantic import Field

from vault.schemas.common import CamelModel


class StorageCheckRequest(CamelModel):
    """Request model for a capacity check."""
    file_size: Optional[Any] = None


class StorageCheckResponse(CamelModel):
    """Response model for a passed capacity check."""
    success: bool = True
    remaining_storage: int
    total_available_storage: int
    total_storage_used: int


class StorageInfoResponse(CamelModel):
    """Response model for storage figures."""
    success: bool = True
    total_storage_used: int
    total_storage_purchased: int
    total_available_storage: int
    remaining_storage: int
    files_count: int
    estimated: bool = False


class PurchaseRequest(CamelModel):
    """Request model for a storage plan purchase."""
    transaction_hash: Optional[str] = None
    payment_method: str = "USDT"
    network: str = "Base"


class PaymentRecord(CamelModel):
    """A recorded purchase."""
    transaction_hash: str
    payment_method: str
    network: str
    amount: int
    status: str
    purchased_at: str


class PurchaseResponse(CamelModel):
    """Response model for a storage plan purchase."""
    success: bool = True
    total_storage_purchased: int
    total_available_storage: int
    payment_record: PaymentRecord


class PurchaseHistoryResponse(CamelModel):
    """Response model for an identity's purchases."""
    success: bool = True
    purchases: List[PaymentRecord]


class StoragePlanResponse(CamelModel):
    """Response model for the configured storage plan."""
    name: str
    size_in_bytes: int
    price_in_usd: float = Field(alias="priceInUSD")
