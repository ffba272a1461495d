# src/orchestrator/pool_manager.py - v1
"""Pool manager: ensure a named worker pool exists, or does not.

A created pool carries a start task that stages the shared binaries on
every node; a node that fails or never finishes the start task receives
no tasks. Existence check and create/delete are two separate backend
calls, so concurrent operators can still race each other.
"""

from __future__ import annotations

import logging

from batchocr.scheduler.base_backend import BaseBatchBackend
from batchocr.scheduler.models import PoolAction, PoolLookup, PoolSpec

logger = logging.getLogger(__name__)


class PoolLookupError(Exception):
    """The backend could not tell whether the pool exists."""

    def __init__(self, pool_name: str) -> None:
        self.pool_name = pool_name
        super().__init__(
            f"Could not determine whether pool '{pool_name}' exists; "
            "refusing to create or delete it"
        )


class PoolManager:
    """Create and delete pools through a scheduling backend.

    Args:
        backend: Scheduling backend that owns the pools.
    """

    def __init__(self, backend: BaseBatchBackend) -> None:
        self._backend = backend

    async def lookup_pool(self, name: str) -> PoolLookup:
        """Tri-state existence check: exists, absent or lookup_failed."""
        return await self._backend.lookup_pool(name)

    async def pool_exists(self, name: str) -> bool:
        """True only when the backend confirms the pool.

        A failed lookup reads as False here; use lookup_pool to tell the
        two apart.
        """
        return await self.lookup_pool(name) == "exists"

    async def create_pool(self, spec: PoolSpec) -> PoolAction:
        """Create the pool unless it already exists.

        Returns:
            "created", or "skipped" when a pool of that name exists.

        Raises:
            PoolLookupError: If the existence check itself failed.
        """
        lookup = await self._checked_lookup(spec.name)
        if lookup == "exists":
            logger.info("Pool %s already exists, not creating", spec.name)
            return "skipped"

        logger.info(
            "Creating pool %s: %d x %s, %d bootstrap file(s)",
            spec.name, spec.node_count, spec.vm_size, len(spec.bootstrap_files),
        )
        await self._backend.create_pool(spec)
        return "created"

    async def delete_pool(self, name: str) -> PoolAction:
        """Delete the pool if it exists. In-flight tasks are abandoned.

        Returns:
            "deleted", or "skipped" when no pool of that name exists.

        Raises:
            PoolLookupError: If the existence check itself failed.
        """
        lookup = await self._checked_lookup(name)
        if lookup == "absent":
            logger.info("Pool %s does not exist, nothing to delete", name)
            return "skipped"

        logger.info("Deleting pool %s", name)
        await self._backend.delete_pool(name)
        return "deleted"

    async def _checked_lookup(self, name: str) -> PoolLookup:
        lookup = await self.lookup_pool(name)
        if lookup == "lookup_failed":
            raise PoolLookupError(name)
        return lookup
