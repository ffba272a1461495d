# src/storage/azure_blob_store.py - v1
"""Azure Blob Storage backend (STORAGE_BACKEND=azure).

Requires 'azure-storage-blob'. Read grants are blob-scoped SAS tokens
signed with the account key.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlparse

from batchocr.storage.base_blob_store import BaseBlobStore

logger = logging.getLogger(__name__)


def _account_name_from_url(account_url: str) -> str:
    """Extract 'myaccount' from https://myaccount.blob.core.windows.net."""
    host = urlparse(account_url).hostname or ""
    return host.split(".", 1)[0]


class AzureBlobStore(BaseBlobStore):
    """Blob store backed by an Azure storage account."""

    def __init__(
        self,
        account_url: str,
        account_key: str,
        account_name: str | None = None,
    ) -> None:
        """Initialize the Azure blob store.

        Args:
            account_url: Blob service endpoint.
            account_key: Shared account key (used for requests and SAS).
            account_name: Storage account name; parsed from the URL if omitted.
        """
        from azure.storage.blob import BlobServiceClient

        self._account_url = account_url.rstrip("/")
        self._account_key = account_key
        self._account_name = account_name or _account_name_from_url(account_url)
        self._service = BlobServiceClient(
            account_url=self._account_url, credential=account_key,
        )

    async def list_names(self, container: str) -> list[str]:
        """List blob names in a flat listing."""
        client = self._service.get_container_client(container)
        names = [blob.name for blob in client.list_blobs()]
        logger.debug("Listed %d blobs in %s", len(names), container)
        return names

    async def sign_read_url(
        self, container: str, name: str, expires_at: datetime,
    ) -> str:
        """Mint a read SAS for one blob and append it to the blob URL."""
        from azure.storage.blob import BlobSasPermissions, generate_blob_sas

        sas = generate_blob_sas(
            account_name=self._account_name,
            container_name=container,
            blob_name=name,
            account_key=self._account_key,
            permission=BlobSasPermissions(read=True),
            start=datetime.now(timezone.utc),
            expiry=expires_at,
        )
        blob_url = self._service.get_blob_client(container, name).url
        return f"{blob_url}?{sas}"

    async def ensure_container(self, container: str) -> None:
        """Create the container, tolerating that it already exists."""
        from azure.core.exceptions import ResourceExistsError

        try:
            self._service.create_container(container)
            logger.info("Created container %s", container)
        except ResourceExistsError:
            logger.debug("Container %s already exists", container)

    async def upload_file(self, container: str, name: str, local_path: Path) -> None:
        """Upload a local file as a block blob."""
        blob = self._service.get_blob_client(container, name)
        with open(local_path, "rb") as fh:
            blob.upload_blob(fh, overwrite=True)
        logger.debug("Uploaded %s to %s/%s", local_path, container, name)
