"""
Proposed Price Sync - migrates the local proposed-price map

The local map is {product_type: {size: {cost, price}}}; (product_type, size)
is the natural key remotely. Entries already present remotely are left
alone, so the migration is safe to repeat.

Author: StoreSync
"""
import time
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from storesync.core.auth import require_tenant
from storesync.core.concurrency import CancellationToken, TenantJobGuard, default_guard
from storesync.core.events import InvalidationBus, invalidation_bus, PROPOSED_PRICES as PRICES_TOPIC
from storesync.core.exceptions import StoreSyncError, StoreValidationError
from storesync.repositories.base import LocalCollectionStore, RemoteStores
from storesync.repositories.local_store import PROPOSED_PRICES
from storesync.services.results import RecordFailure, describe_failure

logger = logging.getLogger(__name__)


@dataclass
class PriceSyncResult:
    success: bool
    message: str
    migrated: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[RecordFailure] = field(default_factory=list)
    cancelled: bool = False
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'message': self.message,
            'migrated': self.migrated,
            'skipped': self.skipped,
            'failed': self.failed,
            'failures': [f.to_dict() for f in self.failures],
            'cancelled': self.cancelled,
            'duration_seconds': self.duration_seconds,
        }


def _money(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise StoreValidationError(f"{field_name} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise StoreValidationError(f"{field_name} must be a number, got {value!r}")
    if not amount.is_finite() or amount < 0:
        raise StoreValidationError(f"{field_name} must be a non-negative number, got {value!r}")
    return amount


def flatten_proposed_prices(prices: Dict[str, Any]) -> List[tuple]:
    """[(product_type, size, entry)] in map order"""
    flat = []
    for product_type, sizes in (prices or {}).items():
        if not isinstance(sizes, dict):
            flat.append((product_type, "", sizes))
            continue
        for size, entry in sizes.items():
            flat.append((product_type, size, entry))
    return flat


class ProposedPriceSync:
    """Migrates proposed prices from the local cache to the remote store"""

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

    async def sync_prices(
        self,
        tenant_id: str,
        prices: Optional[Dict[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> PriceSyncResult:
        tenant_id = require_tenant(tenant_id)
        async with self.guard.hold(tenant_id):
            return await self.migrate_prices(tenant_id, prices, cancel_token)

    async def migrate_prices(
        self,
        tenant_id: str,
        prices: Optional[Dict[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> PriceSyncResult:
        """Migration loop; the caller must already hold the tenant's guard"""
        start_time = time.time()

        if prices is None:
            prices = self.local_store.load(PROPOSED_PRICES, {})

        entries = flatten_proposed_prices(prices)
        result = PriceSyncResult(success=True, message="")
        if not entries:
            result.message = "No local proposed prices to sync"
            return result

        logger.info(f"Starting proposed price sync for tenant {tenant_id}: {len(entries)} entries")
        store = self.stores.proposed_prices

        for product_type, size, entry in entries:
            if cancel_token is not None and cancel_token.cancelled:
                result.cancelled = True
                break

            key = f"{product_type}/{size}"
            try:
                if not isinstance(entry, dict) or not size:
                    raise StoreValidationError(f"Malformed proposed price entry {entry!r}")
                cost = _money(entry.get('cost'), 'cost')
                price = _money(entry.get('price'), 'price')

                if await store.exists(tenant_id, (product_type, size)):
                    result.skipped += 1
                    continue

                await store.insert(tenant_id, {
                    'product_type': product_type,
                    'size': size,
                    'cost': float(cost),
                    'price': float(price),
                })
                result.migrated += 1
            except StoreSyncError as e:
                logger.error(f"Failed to sync proposed price {key}: {e.message}")
                result.failed += 1
                result.failures.append(RecordFailure(key, describe_failure(e), e.retryable))

        if result.migrated > 0:
            self.bus.publish(PRICES_TOPIC, tenant_id)

        result.success = result.failed == 0 and not result.cancelled
        result.message = (f"Proposed prices: {result.migrated} migrated, {result.skipped} already synced, "
                          f"{result.failed} failed")
        result.duration_seconds = round(time.time() - start_time, 3)
        logger.info(result.message)
        return result
