# src/storage/base_blob_store.py - v1
"""Abstract blob store interface.

Covers what the orchestrator and the worker need from object storage:
flat listing, minting time-bounded read URLs, ensuring a container exists
and uploading a local file. Downloads go through the signed URL over HTTP
and are not part of this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path


class BaseBlobStore(ABC):
    """Unified interface for object storage backends."""

    @abstractmethod
    async def list_names(self, container: str) -> list[str]:
        """List object names in the container (flat, backend order)."""

    @abstractmethod
    async def sign_read_url(
        self, container: str, name: str, expires_at: datetime,
    ) -> str:
        """Return a fetch URL carrying a read grant valid until expires_at."""

    @abstractmethod
    async def ensure_container(self, container: str) -> None:
        """Create the container if it does not exist yet."""

    @abstractmethod
    async def upload_file(self, container: str, name: str, local_path: Path) -> None:
        """Upload a local file to container/name, overwriting."""
