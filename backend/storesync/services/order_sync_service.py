"""
Order Sync Engine - migrates locally created orders into the authoritative store

Each order is migrated at most once. The tenant-scoped serial is the
idempotency key: existence is checked right before every insert, so running
the engine again over the same input inserts nothing new. One order's failure
is logged and recorded; the batch always runs to the end.

Author: StoreSync
"""
import time
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from storesync.core.auth import require_tenant
from storesync.core.concurrency import CancellationToken, TenantJobGuard, default_guard
from storesync.core.events import InvalidationBus, invalidation_bus, ORDERS as ORDERS_TOPIC
from storesync.core.exceptions import StoreSyncError
from storesync.domain.order import Order, normalize_order
from storesync.repositories.base import LocalCollectionStore, RemoteStores
from storesync.repositories.local_store import ORDERS, SYNCED_ORDER_SERIALS
from storesync.services.financials import reconcile
from storesync.services.results import RecordFailure, describe_failure

logger = logging.getLogger(__name__)

MIGRATED = "migrated"
SKIPPED = "skipped"


@dataclass
class OrderSyncResult:
    success: bool
    message: str
    migrated: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[RecordFailure] = field(default_factory=list)
    migrated_serials: List[str] = field(default_factory=list)
    cancelled: bool = False
    archived_as: Optional[str] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'message': self.message,
            'migrated': self.migrated,
            'skipped': self.skipped,
            'failed': self.failed,
            'failures': [f.to_dict() for f in self.failures],
            'migrated_serials': list(self.migrated_serials),
            'cancelled': self.cancelled,
            'archived_as': self.archived_as,
            'duration_seconds': self.duration_seconds,
        }


class OrderSyncEngine:
    """
    Migrates the local order cache of one tenant into the remote store

    Args:
        stores: Remote record stores
        local_store: Session-owned local collections
        guard: Per-tenant job guard (shared across services)
        bus: Invalidation bus notified after remote orders change
    """

    def __init__(
        self,
        stores: RemoteStores,
        local_store: LocalCollectionStore,
        guard: TenantJobGuard = default_guard,
        bus: InvalidationBus = invalidation_bus
    ):
        self.stores = stores
        self.local_store = local_store
        self.guard = guard
        self.bus = bus

    async def sync_orders(
        self,
        tenant_id: str,
        orders: Optional[Sequence[Any]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> OrderSyncResult:
        """
        Migrate orders for a tenant, holding the tenant's job guard.

        Args:
            tenant_id: Tenant the orders belong to
            orders: Orders in migration order; None reads the local cache
            cancel_token: Checked between orders

        Raises:
            NotAuthenticatedError: no tenant
            SyncInProgressError: another job is running for the tenant
        """
        tenant_id = require_tenant(tenant_id)
        async with self.guard.hold(tenant_id):
            return await self.migrate_orders(tenant_id, orders, cancel_token)

    async def migrate_orders(
        self,
        tenant_id: str,
        orders: Optional[Sequence[Any]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> OrderSyncResult:
        """Migration loop; the caller must already hold the tenant's guard"""
        start_time = time.time()

        from_local = orders is None
        if from_local:
            orders = pending_local_orders(self.local_store)

        if not orders:
            return OrderSyncResult(
                success=True,
                message="No local orders to sync",
                duration_seconds=round(time.time() - start_time, 3)
            )

        logger.info(f"Starting order sync for tenant {tenant_id}: {len(orders)} local orders")
        result = OrderSyncResult(success=False, message="")
        synced: List[str] = []

        for raw in orders:
            if cancel_token is not None and cancel_token.cancelled:
                logger.warning(f"Order sync cancelled for tenant {tenant_id} "
                               f"after {result.migrated + result.skipped + result.failed} orders")
                result.cancelled = True
                break

            serial = _serial_of(raw)
            try:
                order = normalize_order(raw)
                outcome = await self._migrate_one(tenant_id, order)
            except StoreSyncError as e:
                logger.error(f"Failed to sync order {serial}: {e.message}")
                result.failed += 1
                result.failures.append(RecordFailure(serial, describe_failure(e), e.retryable))
                continue
            except Exception as e:
                logger.error(f"Unexpected error syncing order {serial}: {e}")
                result.failed += 1
                result.failures.append(RecordFailure(serial, describe_failure(e), False))
                continue

            if outcome == SKIPPED:
                result.skipped += 1
            else:
                result.migrated += 1
                result.migrated_serials.append(order.serial)
            synced.append(order.serial)

        if from_local and result.migrated > 0:
            # keep the local copy as a recovery backup
            result.archived_as = self._archive_local_orders(tenant_id)
        if from_local and synced:
            self._remember_synced(tenant_id, synced)
        if result.migrated > 0:
            self.bus.publish(ORDERS_TOPIC, tenant_id)

        result.success = result.failed == 0 and not result.cancelled
        result.message = _summary(result, len(orders))
        result.duration_seconds = round(time.time() - start_time, 3)

        logger.info(f"Order sync complete for tenant {tenant_id}: {result.migrated} migrated, "
                    f"{result.skipped} skipped, {result.failed} failed")
        return result

    async def _migrate_one(self, tenant_id: str, order: Order) -> str:
        orders_store = self.stores.orders

        if await orders_store.exists(tenant_id, order.serial):
            logger.debug(f"Order {order.serial} already synced, skipping")
            return SKIPPED

        header = order.to_remote_row(tenant_id)
        # stored totals in the cache may hold the remaining balance
        header['total'] = float(reconcile(order).total)

        remote_id = await orders_store.insert(tenant_id, header)

        if order.items:
            try:
                await self.stores.order_items.bulk_insert(tenant_id, order.item_rows(remote_id))
            except StoreSyncError:
                await self._remove_partial_order(remote_id, order.serial)
                raise

        return MIGRATED

    def _archive_local_orders(self, tenant_id: str) -> Optional[str]:
        try:
            return self.local_store.archive(ORDERS)
        except OSError as e:
            logger.error(f"Could not archive local orders for tenant {tenant_id}: {e}")
            return None

    def _remember_synced(self, tenant_id: str, serials: List[str]):
        """Record serials known to exist remotely so they stop counting as pending"""
        try:
            known = set(self.local_store.load(SYNCED_ORDER_SERIALS, []))
            self.local_store.save(SYNCED_ORDER_SERIALS, sorted(known | set(serials)))
        except OSError as e:
            logger.error(f"Could not record synced order serials for tenant {tenant_id}: {e}")

    async def _remove_partial_order(self, remote_id: str, serial: str):
        """
        Delete a header whose items failed to insert, so that the next run
        sees the serial as missing and migrates the order whole.
        """
        try:
            await self.stores.orders.delete(remote_id)
            logger.warning(f"Rolled back header of order {serial} after item insert failure")
        except StoreSyncError as e:
            logger.error(f"Order {serial} left without items remotely (header {remote_id}): {e.message}")


def pending_local_orders(local_store: LocalCollectionStore) -> List[Any]:
    """Local orders whose serial has not yet been seen in the remote store"""
    synced = set(local_store.load(SYNCED_ORDER_SERIALS, []))
    return [raw for raw in local_store.load(ORDERS, []) if _serial_of(raw) not in synced]


def _serial_of(raw: Any) -> str:
    if isinstance(raw, Order):
        return raw.serial
    if isinstance(raw, Mapping) and raw.get('serial'):
        return str(raw['serial'])
    return "<unknown>"


def _summary(result: OrderSyncResult, total: int) -> str:
    if result.cancelled:
        return (f"Sync cancelled: {result.migrated} migrated, {result.skipped} already synced, "
                f"{result.failed} failed before cancellation")
    if result.migrated == 0 and result.failed == 0:
        return f"All {total} local orders are already synchronized"
    if result.failed == 0:
        return f"Migrated {result.migrated} orders ({result.skipped} already synced)"
    return (f"Migrated {result.migrated} orders, {result.skipped} already synced, "
            f"{result.failed} failed")
