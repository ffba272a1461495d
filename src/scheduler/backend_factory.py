# src/scheduler/backend_factory.py - v1
"""Factory: instantiate the scheduling backend from configuration."""

from __future__ import annotations

from batchocr.config.settings import Settings
from batchocr.scheduler.base_backend import BaseBatchBackend


def create_backend(settings: Settings) -> BaseBatchBackend:
    """Create the Azure Batch backend for the configured account.

    Args:
        settings: Application settings (BATCH_* and POOL_IMAGE_* vars).

    Returns:
        BaseBatchBackend instance.

    Raises:
        ConfigurationError: If account name, key or region is missing.
    """
    from batchocr.scheduler.azure_batch_backend import AzureBatchBackend, PoolImage

    settings.require_batch_credentials()
    image = PoolImage(
        publisher=settings.pool_image_publisher,
        offer=settings.pool_image_offer,
        sku=settings.pool_image_sku,
        node_agent_sku=settings.pool_node_agent_sku,
    )
    return AzureBatchBackend(
        account_url=settings.resolved_batch_url,
        account_name=settings.batch_account_name,
        account_key=settings.batch_account_key,
        image=image,
        poll_interval=settings.wait_poll_interval_seconds,
    )
