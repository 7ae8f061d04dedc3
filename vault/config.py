"""Configuration settings for the HashVault service."""

import os
import tempfile

from common.constants import DEFAULT_SERVICE_PORT


DATABASE_PATH = os.environ.get("VAULT_DATABASE_PATH", "/app/data/vault.db")

VAULT_HOST = os.environ.get("VAULT_HOST", "0.0.0.0")

VAULT_PORT = int(os.environ.get("VAULT_PORT", str(DEFAULT_SERVICE_PORT)))

STAGING_DIR = os.environ.get(
    "VAULT_STAGING_DIR",
    os.path.join(tempfile.gettempdir(), "hashvault-uploads")
)

FREE_STORAGE_LIMIT = int(os.environ.get("VAULT_FREE_STORAGE_LIMIT", str(500 * 1024 * 1024)))

STORAGE_PLAN_NAME = os.environ.get("VAULT_STORAGE_PLAN_NAME", "5GB Storage Plan")

STORAGE_PLAN_SIZE = int(os.environ.get("VAULT_STORAGE_PLAN_SIZE", str(5 * 1024 * 1024 * 1024)))

STORAGE_PLAN_PRICE = float(os.environ.get("VAULT_STORAGE_PLAN_PRICE", "20"))

CONTENT_STORE_BACKEND = os.environ.get("VAULT_CONTENT_STORE", "webhash")

CONTENT_STORE_URL = os.environ.get("VAULT_CONTENT_STORE_URL", "https://api.webhash.io")

CONTENT_STORE_API_KEY = os.environ.get("VAULT_CONTENT_STORE_API_KEY", "")

GATEWAY_URL = os.environ.get("VAULT_GATEWAY_URL", "https://ipfs.io")

LOCAL_STORE_DIR = os.environ.get("VAULT_LOCAL_STORE_DIR", "/app/data/objects")

ARCHIVE_EXPANSION = os.environ.get("VAULT_ARCHIVE_EXPANSION", "disabled")

MAX_ARCHIVE_ENTRIES = int(os.environ.get("VAULT_MAX_ARCHIVE_ENTRIES", "256"))

STALE_UPLOAD_SECONDS = int(os.environ.get("VAULT_STALE_UPLOAD_SECONDS", str(6 * 3600)))

STALE_UPLOAD_SWEEP_SECONDS = int(os.environ.get("VAULT_STALE_UPLOAD_SWEEP_SECONDS", "3600"))

CLAIM_RETENTION_SECONDS = int(os.environ.get("VAULT_CLAIM_RETENTION_SECONDS", str(7 * 24 * 3600)))
