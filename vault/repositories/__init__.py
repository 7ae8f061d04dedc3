"""Repository layer for data access."""

from vault.repositories.file_repository import FileRepository, FileRecord
from vault.repositories.account_repository import AccountRepository, Account
from vault.repositories.purchase_repository import PurchaseRepository, Purchase
from vault.repositories.upload_claim_repository import UploadClaimRepository, UploadClaim

__all__ = [
    "FileRepository",
    "FileRecord",
    "AccountRepository",
    "Account",
    "PurchaseRepository",
    "Purchase",
    "UploadClaimRepository",
    "UploadClaim",
]
