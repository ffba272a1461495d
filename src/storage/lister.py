# src/storage/lister.py - v1
"""Artifact lister: enumerate a container and mint read references.

Feeds the pool manager (binaries staged by the start task) and the job
dispatcher (one task per input image).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Literal

from batchocr.storage.base_blob_store import BaseBlobStore
from batchocr.storage.models import ArtifactReference, normalize_path

logger = logging.getLogger(__name__)

DEFAULT_GRANT_LIFETIME = timedelta(days=365)


class ArtifactLister:
    """Produce ArtifactReferences for every object in a container.

    Each reference carries its own read grant with an expiry fixed at
    issuance. Listing order is the backend's; no sort is applied.
    """

    def __init__(
        self,
        store: BaseBlobStore,
        node_os: Literal["linux", "windows"] = "linux",
        grant_lifetime: timedelta = DEFAULT_GRANT_LIFETIME,
    ) -> None:
        self._store = store
        self._node_os = node_os
        self._grant_lifetime = grant_lifetime

    async def iter_artifacts(self, container: str) -> AsyncIterator[ArtifactReference]:
        """Yield one reference per object in the container.

        Calling again re-lists the container. A failing listing call
        propagates to the caller; there is no partial-list recovery.
        """
        names = await self._store.list_names(container)
        logger.debug("Container %s holds %d objects", container, len(names))

        for name in names:
            expires_at = datetime.now(timezone.utc) + self._grant_lifetime
            uri = await self._store.sign_read_url(container, name, expires_at)
            yield ArtifactReference(
                name=name,
                path=normalize_path(name, self._node_os),
                uri=uri,
                expires_at=expires_at,
            )

    async def list_artifacts(self, container: str) -> list[ArtifactReference]:
        """Drain iter_artifacts into a list."""
        return [ref async for ref in self.iter_artifacts(container)]
