# src/storage/store_factory.py - v1
"""Factory: instantiate the blob store from configuration."""

from __future__ import annotations

from batchocr.config.settings import Settings
from batchocr.storage.base_blob_store import BaseBlobStore


def create_blob_store(settings: Settings) -> BaseBlobStore:
    """Create the blob store selected by STORAGE_BACKEND.

    Args:
        settings: Application settings.

    Returns:
        BaseBlobStore instance.

    Raises:
        ConfigurationError: If the Azure account is not configured.
        ValueError: If the backend is not supported.
    """
    if settings.storage_backend == "azure":
        from batchocr.storage.azure_blob_store import AzureBlobStore

        settings.require_storage_credentials()
        return AzureBlobStore(
            account_url=settings.resolved_storage_url,
            account_key=settings.storage_account_key,
            account_name=settings.storage_account_name or None,
        )

    if settings.storage_backend == "s3":
        from batchocr.storage.s3_blob_store import S3BlobStore

        return S3BlobStore(
            region=settings.s3_region or None,
            endpoint_url=settings.s3_endpoint_url or None,
        )

    raise ValueError(f"Unsupported storage backend: {settings.storage_backend!r}")
