"""
Session Sync Service - "sync everything local" run on session start

Runs the order migration, a catalog PUSH (never pruning) and the proposed
price migration one after the other under a single hold of the tenant's job
guard. A step with no local data is skipped; a failing step does not stop
the ones after it.

Author: StoreSync
"""
import time
import logging
from dataclasses import dataclass
from typing import Optional

from storesync.core.auth import require_tenant
from storesync.core.concurrency import CancellationToken, TenantJobGuard, default_guard
from storesync.core.events import InvalidationBus, invalidation_bus
from storesync.repositories.base import LocalCollectionStore, RemoteStores
from storesync.repositories.local_store import PRODUCTS, PROPOSED_PRICES
from storesync.services.catalog_sync_service import CatalogReconciler, CatalogSyncResult, SyncDirection
from storesync.services.order_sync_service import OrderSyncEngine, OrderSyncResult, pending_local_orders
from storesync.services.price_sync_service import PriceSyncResult, ProposedPriceSync

logger = logging.getLogger(__name__)


@dataclass
class SessionSyncResult:
    success: bool
    message: str
    orders: Optional[OrderSyncResult] = None
    catalog: Optional[CatalogSyncResult] = None
    prices: Optional[PriceSyncResult] = None
    cancelled: bool = False
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'message': self.message,
            'orders': self.orders.to_dict() if self.orders else None,
            'catalog': self.catalog.to_dict() if self.catalog else None,
            'prices': self.prices.to_dict() if self.prices else None,
            'cancelled': self.cancelled,
            'duration_seconds': self.duration_seconds,
        }


class SessionSyncService:
    """Orchestrates every local-to-remote migration for one tenant"""

    def __init__(
        self,
        stores: RemoteStores,
        local_store: LocalCollectionStore,
        guard: TenantJobGuard = default_guard,
        bus: InvalidationBus = invalidation_bus
    ):
        self.local_store = local_store
        self.guard = guard
        self.orders = OrderSyncEngine(stores, local_store, guard, bus)
        self.catalog = CatalogReconciler(stores, local_store, guard, bus)
        self.prices = ProposedPriceSync(stores, local_store, guard, bus)

    def _has(self, name: str) -> bool:
        return bool(self.local_store.load(name, None))

    def _has_pending_orders(self) -> bool:
        return bool(pending_local_orders(self.local_store))

    def has_local_data(self) -> bool:
        """True when orders await migration or a local catalog or price list exists"""
        return self._has_pending_orders() or self._has(PRODUCTS) or self._has(PROPOSED_PRICES)

    async def sync_all(self, tenant_id: str, cancel_token: Optional[CancellationToken] = None) -> SessionSyncResult:
        """
        Run all migrations for a tenant.

        Raises:
            NotAuthenticatedError: no tenant
            SyncInProgressError: another job is running for the tenant
        """
        tenant_id = require_tenant(tenant_id)
        start_time = time.time()
        result = SessionSyncResult(success=True, message="")

        async with self.guard.hold(tenant_id):
            logger.info(f"Starting session sync for tenant {tenant_id}")

            if self._has_pending_orders():
                result.orders = await self.orders.migrate_orders(tenant_id, cancel_token=cancel_token)

            if self._has(PRODUCTS) and not _cancelled(cancel_token):
                result.catalog = await self.catalog.run(
                    tenant_id, SyncDirection.PUSH, prune=False, cancel_token=cancel_token
                )

            if self._has(PROPOSED_PRICES) and not _cancelled(cancel_token):
                result.prices = await self.prices.migrate_prices(tenant_id, cancel_token=cancel_token)

        steps = [step for step in (result.orders, result.catalog, result.prices) if step is not None]
        result.cancelled = _cancelled(cancel_token)
        result.success = all(step.success for step in steps) and not result.cancelled

        if not steps:
            result.message = "No local data to sync"
        else:
            result.message = "; ".join(step.message for step in steps)

        result.duration_seconds = round(time.time() - start_time, 3)
        logger.info(f"Session sync complete for tenant {tenant_id}: success={result.success}")
        return result


def _cancelled(cancel_token: Optional[CancellationToken]) -> bool:
    return cancel_token is not None and cancel_token.cancelled
