"""
Per-tenant job guard and cooperative cancellation

Only one sync/reconciliation job may run per tenant at a time: an
overlapping run would check existence against a store the other run is
mutating and could insert duplicates. Jobs for different tenants are
independent.
"""
import logging
from contextlib import asynccontextmanager
from typing import Set

from storesync.core.exceptions import SyncInProgressError

logger = logging.getLogger(__name__)


class TenantJobGuard:
    """
    Reentrancy guard keyed on tenant identity.

    A second acquisition for a tenant that already has an active job fails
    immediately with SyncInProgressError instead of waiting.

    Usage:
        guard = TenantJobGuard()
        async with guard.hold(tenant_id):
            ...
    """

    def __init__(self):
        self._active: Set[str] = set()

    def is_active(self, tenant_id: str) -> bool:
        return tenant_id in self._active

    @asynccontextmanager
    async def hold(self, tenant_id: str):
        # check-and-add has no await in between, so it is atomic on the loop
        if tenant_id in self._active:
            logger.warning(f"Rejected overlapping sync job for tenant {tenant_id}")
            raise SyncInProgressError(tenant_id)

        self._active.add(tenant_id)
        try:
            yield
        finally:
            self._active.discard(tenant_id)


class CancellationToken:
    """Cooperative cancellation flag checked between records."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


# Shared by every service in the process
default_guard = TenantJobGuard()
