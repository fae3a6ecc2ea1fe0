"""
Catalog Reconciler - converges the local product catalog with its remote mirror

Products are matched by name. The direction is always explicit:

    PUSH  local catalog is canonical; remote products are created/updated
          to match it. Remote products missing locally are deleted only when
          prune=True, and never when the local catalog is empty (an empty
          cache is far more likely stale than intentionally empty).
    PULL  remote catalog is canonical; the local collection is rewritten.

Running PUSH twice with no local change performs no writes the second time.

Author: StoreSync
"""
import time
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from storesync.core.auth import require_tenant
from storesync.core.concurrency import CancellationToken, TenantJobGuard, default_guard
from storesync.core.events import InvalidationBus, invalidation_bus, PRODUCTS as PRODUCTS_TOPIC
from storesync.core.exceptions import StoreSyncError, StoreValidationError
from storesync.domain.product import Product
from storesync.repositories.base import LocalCollectionStore, RemoteStores
from storesync.repositories.local_store import PRODUCTS
from storesync.services.results import RecordFailure, describe_failure

logger = logging.getLogger(__name__)


class SyncDirection(str, Enum):
    PUSH = "push"
    PULL = "pull"


@dataclass
class CatalogDiff:
    """
    Differences between a local and a remote catalog, by product name

    to_create: local products missing remotely
    to_update: (local, remote) pairs whose content differs
    to_delete: remote products missing locally
    unchanged: names identical on both sides
    """
    to_create: List[Product] = field(default_factory=list)
    to_update: List[Tuple[Product, Product]] = field(default_factory=list)
    to_delete: List[Product] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.to_create or self.to_update or self.to_delete)


@dataclass
class CatalogSyncResult:
    success: bool
    message: str
    direction: SyncDirection
    created: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    remote_only: int = 0
    failed: int = 0
    failures: List[RecordFailure] = field(default_factory=list)
    prune_refused: bool = False
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def writes(self) -> int:
        return self.created + self.updated + self.deleted

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'message': self.message,
            'direction': self.direction.value,
            'created': self.created,
            'updated': self.updated,
            'deleted': self.deleted,
            'unchanged': self.unchanged,
            'remote_only': self.remote_only,
            'failed': self.failed,
            'failures': [f.to_dict() for f in self.failures],
            'prune_refused': self.prune_refused,
            'cancelled': self.cancelled,
            'duration_seconds': self.duration_seconds,
        }


def _index_by_name(products: List[Product], side: str) -> Dict[str, Product]:
    indexed: Dict[str, Product] = {}
    for product in products:
        if product.name in indexed:
            logger.warning(f"Duplicate product name '{product.name}' in {side} catalog; keeping the first")
            continue
        indexed[product.name] = product
    return indexed


def diff_catalogs(local: List[Product], remote: List[Product]) -> CatalogDiff:
    """Compute the set differences between two catalogs"""
    local_by_name = _index_by_name(local, 'local')
    remote_by_name = _index_by_name(remote, 'remote')
    diff = CatalogDiff()

    for name, product in local_by_name.items():
        remote_product = remote_by_name.get(name)
        if remote_product is None:
            diff.to_create.append(product)
        elif product.same_content(remote_product):
            diff.unchanged.append(name)
        else:
            diff.to_update.append((product, remote_product))

    for name, product in remote_by_name.items():
        if name not in local_by_name:
            diff.to_delete.append(product)

    return diff


class CatalogReconciler:
    """
    Applies catalog differences in an explicit direction

    Args:
        stores: Remote record stores
        local_store: Session-owned local collections
        guard: Per-tenant job guard (shared across services)
        bus: Invalidation bus notified after a catalog changes
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

    # =========================================================================
    # Catalog loading
    # =========================================================================

    def load_local_catalog(self) -> Tuple[List[Product], List[RecordFailure]]:
        """Local products, plus failures for records that do not validate"""
        products: List[Product] = []
        failures: List[RecordFailure] = []

        for record in self.local_store.load(PRODUCTS, []):
            try:
                products.append(Product.from_local_record(record))
            except (ValidationError, AttributeError) as e:
                name = record.get('name') if isinstance(record, dict) else None
                logger.error(f"Invalid local product {name!r}: {e}")
                failures.append(RecordFailure(str(name or "<unnamed>"), f"Invalid product: {e}", False))

        return products, failures

    async def load_remote_catalog(self, tenant_id: str) -> Tuple[List[Product], Dict[str, List[str]]]:
        """
        Remote products with their sizes.

        Returns:
            (products, size row ids per product id)
        """
        products: List[Product] = []
        size_ids: Dict[str, List[str]] = {}

        for row in await self.stores.products.list(tenant_id):
            product_id = str(row['id'])
            size_rows = await self.stores.product_sizes.list(tenant_id, {'product_id': product_id})
            size_ids[product_id] = [str(s['id']) for s in size_rows if s.get('id') is not None]
            try:
                products.append(Product.from_remote_row(row, size_rows))
            except ValidationError as e:
                logger.error(f"Skipping malformed remote product {product_id}: {e}")

        return products, size_ids

    async def diff(self, tenant_id: str) -> CatalogDiff:
        """Current local-vs-remote differences for a tenant (read only)"""
        tenant_id = require_tenant(tenant_id)
        local, _ = self.load_local_catalog()
        remote, _ = await self.load_remote_catalog(tenant_id)
        return diff_catalogs(local, remote)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def reconcile(
        self,
        tenant_id: str,
        direction,
        prune: bool = False,
        cancel_token: Optional[CancellationToken] = None
    ) -> CatalogSyncResult:
        """
        Converge the catalogs for a tenant, holding the tenant's job guard.

        Args:
            tenant_id: Tenant whose catalog to reconcile
            direction: SyncDirection or "push"/"pull"; required
            prune: PUSH only - delete remote products absent locally
            cancel_token: Checked between products
        """
        tenant_id = require_tenant(tenant_id)
        direction = _parse_direction(direction)

        async with self.guard.hold(tenant_id):
            return await self.run(tenant_id, direction, prune, cancel_token)

    async def run(
        self,
        tenant_id: str,
        direction: SyncDirection,
        prune: bool = False,
        cancel_token: Optional[CancellationToken] = None
    ) -> CatalogSyncResult:
        """Reconciliation body; the caller must already hold the tenant's guard"""
        start_time = time.time()
        result = CatalogSyncResult(success=False, message="", direction=direction)
        logger.info(f"Starting catalog {direction.value} for tenant {tenant_id} (prune={prune})")

        local, invalid = self.load_local_catalog()

        try:
            remote, size_ids = await self.load_remote_catalog(tenant_id)
        except StoreSyncError as e:
            logger.error(f"Could not load remote catalog for tenant {tenant_id}: {e.message}")
            result.failed += 1
            result.failures.append(RecordFailure("<remote catalog>", describe_failure(e), e.retryable))
            result.message = "Remote catalog unavailable; nothing was changed"
            result.duration_seconds = round(time.time() - start_time, 3)
            return result

        diff = diff_catalogs(local, remote)
        result.unchanged = len(diff.unchanged)

        if direction == SyncDirection.PUSH:
            result.failures.extend(invalid)
            result.failed += len(invalid)
            await self._push(tenant_id, diff, size_ids, prune, bool(local) or bool(invalid), result, cancel_token)
        else:
            self._pull(remote, diff, result)

        if result.writes > 0:
            self.bus.publish(PRODUCTS_TOPIC, tenant_id)

        result.success = result.failed == 0 and not result.cancelled
        result.message = _summary(result)
        result.duration_seconds = round(time.time() - start_time, 3)

        logger.info(f"Catalog {direction.value} complete for tenant {tenant_id}: {result.created} created, "
                    f"{result.updated} updated, {result.deleted} deleted, {result.failed} failed")
        return result

    async def _push(
        self,
        tenant_id: str,
        diff: CatalogDiff,
        size_ids: Dict[str, List[str]],
        prune: bool,
        has_local_catalog: bool,
        result: CatalogSyncResult,
        cancel_token: Optional[CancellationToken]
    ):
        operations = (
            [('create', product, None) for product in diff.to_create]
            + [('update', local, remote) for local, remote in diff.to_update]
        )

        result.remote_only = len(diff.to_delete)
        if diff.to_delete and prune:
            if has_local_catalog:
                operations += [('delete', remote, None) for remote in diff.to_delete]
                result.remote_only = 0
            else:
                logger.warning(f"Refusing to prune {len(diff.to_delete)} remote products for tenant "
                               f"{tenant_id}: local catalog is empty")
                result.prune_refused = True

        for action, product, remote in operations:
            if cancel_token is not None and cancel_token.cancelled:
                logger.warning(f"Catalog push cancelled for tenant {tenant_id}")
                result.cancelled = True
                return

            try:
                if action == 'create':
                    created = await self._create_remote(tenant_id, product)
                    if created:
                        result.created += 1
                    else:
                        result.unchanged += 1
                elif action == 'update':
                    await self._update_remote(tenant_id, product, remote, size_ids.get(remote.id, []))
                    result.updated += 1
                else:
                    await self.stores.products.delete(product.id)
                    result.deleted += 1
            except StoreSyncError as e:
                logger.error(f"Failed to {action} product '{product.name}': {e.message}")
                result.failed += 1
                result.failures.append(RecordFailure(product.name, describe_failure(e), e.retryable))
            except Exception as e:
                logger.error(f"Unexpected error on {action} of product '{product.name}': {e}")
                result.failed += 1
                result.failures.append(RecordFailure(product.name, describe_failure(e), False))

    async def _create_remote(self, tenant_id: str, product: Product) -> bool:
        # the listing may be stale by now; the name is the natural key
        if await self.stores.products.exists(tenant_id, product.name):
            logger.warning(f"Product '{product.name}' appeared remotely since listing, not creating")
            return False

        product_id = await self.stores.products.insert(tenant_id, product.to_remote_row(tenant_id))
        if product.sizes:
            try:
                await self.stores.product_sizes.bulk_insert(tenant_id, product.size_rows(product_id))
            except StoreSyncError:
                await self._remove_partial_product(product_id, product.name)
                raise
        return True

    async def _update_remote(self, tenant_id: str, local: Product, remote: Product, old_size_ids: List[str]):
        await self.stores.products.update(remote.id, {
            'name': local.name,
            'category_id': local.category_id,
            'is_active': local.is_visible,
        })

        if local.size_grid == remote.size_grid:
            return

        # replace the size grid; a partial failure leaves a difference the next run repairs
        for size_id in old_size_ids:
            await self.stores.product_sizes.delete(size_id)
        if local.sizes:
            await self.stores.product_sizes.bulk_insert(tenant_id, local.size_rows(remote.id))

    async def _remove_partial_product(self, product_id: str, name: str):
        try:
            await self.stores.products.delete(product_id)
            logger.warning(f"Rolled back product '{name}' after size insert failure")
        except StoreSyncError as e:
            logger.error(f"Product '{name}' left without sizes remotely ({product_id}): {e.message}")

    def _pull(self, remote: List[Product], diff: CatalogDiff, result: CatalogSyncResult):
        # from the local side: remote-only products arrive, local-only ones go
        result.created = len(diff.to_delete)
        result.updated = len(diff.to_update)
        result.deleted = len(diff.to_create)

        if result.updated or result.deleted:
            self.local_store.archive(PRODUCTS)

        self.local_store.save(PRODUCTS, [product.to_local_record() for product in remote])


def _parse_direction(direction) -> SyncDirection:
    try:
        return SyncDirection(direction)
    except ValueError:
        raise StoreValidationError(
            f"Unknown sync direction {direction!r}; use 'push' or 'pull'",
            payload={'direction': str(direction)}
        )


def _summary(result: CatalogSyncResult) -> str:
    if result.cancelled:
        return f"Catalog {result.direction.value} cancelled after {result.writes} changes"

    parts = [f"{result.created} created", f"{result.updated} updated", f"{result.deleted} deleted"]
    message = f"Catalog {result.direction.value}: " + ", ".join(parts)
    if result.remote_only:
        message += f"; {result.remote_only} remote-only products kept"
    if result.prune_refused:
        message += " (prune refused: local catalog is empty)"
    if result.failed:
        message += f"; {result.failed} failed"
    return message
