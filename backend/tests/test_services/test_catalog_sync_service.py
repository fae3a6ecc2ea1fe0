"""
Tests for catalog reconciliation

Author: StoreSync
"""
import asyncio

import pytest

from storesync.core.exceptions import StoreValidationError, SyncInProgressError, TransientStoreError
from storesync.domain.product import Product
from storesync.repositories.local_store import PRODUCTS
from storesync.services.catalog_sync_service import CatalogReconciler, SyncDirection, diff_catalogs

from conftest import TENANT


def local_product(name, sizes, category_id=None, visible=True):
    return {
        "id": None,
        "name": name,
        "categoryId": category_id,
        "isVisible": visible,
        "sizes": [{"size": size, "cost": cost, "price": price} for size, cost, price in sizes],
    }


def seed_remote_product(stores, name, sizes, category_id=None, active=True):
    product_id = stores.products.seed(TENANT, {"name": name, "category_id": category_id, "is_active": active})
    for size, cost, price in sizes:
        stores.product_sizes.seed(TENANT, {"product_id": product_id, "size": size, "cost": cost, "price": price})
    return product_id


@pytest.fixture
def reconciler(remote_stores, local_store, guard, bus):
    return CatalogReconciler(remote_stores, local_store, guard, bus)


class TestDiffCatalogs:

    def test_set_differences_by_name(self):
        local = [Product(name="Hoodie"), Product(name="Cap", sizes=[{"size": "M", "price": 60}])]
        remote = [Product(name="Cap", sizes=[{"size": "M", "price": 50}]), Product(name="Mug")]

        diff = diff_catalogs(local, remote)

        assert [p.name for p in diff.to_create] == ["Hoodie"]
        assert [(l.name, r.name) for l, r in diff.to_update] == [("Cap", "Cap")]
        assert [p.name for p in diff.to_delete] == ["Mug"]
        assert diff.unchanged == []
        assert diff.has_changes

    def test_equal_prices_with_different_precision_are_unchanged(self):
        local = [Product(name="Cap", sizes=[{"size": "M", "cost": 20, "price": 60}])]
        remote = [Product(name="Cap", sizes=[{"size": "M", "cost": "20.00", "price": "60.0"}])]

        diff = diff_catalogs(local, remote)

        assert diff.unchanged == ["Cap"]
        assert not diff.has_changes


class TestCatalogPush:

    def test_push_converges_remote_to_local(self, reconciler, remote_stores, local_store):
        # Arrange
        local_store.save(PRODUCTS, [
            local_product("Hoodie", [("M", 150, 350), ("L", 160, 380)]),
            local_product("Cap", [("One size", 20, 60)]),
        ])
        seed_remote_product(remote_stores, "Cap", [("One size", 20, 50)])

        # Act
        result = asyncio.run(reconciler.reconcile(TENANT, SyncDirection.PUSH))

        # Assert
        assert result.created == 1
        assert result.updated == 1
        assert result.failed == 0
        diff = asyncio.run(reconciler.diff(TENANT))
        assert not diff.has_changes

    def test_second_push_performs_no_writes(self, reconciler, remote_stores, local_store):
        local_store.save(PRODUCTS, [local_product("Hoodie", [("M", 150, 350)])])
        asyncio.run(reconciler.reconcile(TENANT, "push"))
        writes = remote_stores.products.writes + remote_stores.product_sizes.writes

        result = asyncio.run(reconciler.reconcile(TENANT, "push"))

        assert result.writes == 0
        assert result.unchanged == 1
        assert remote_stores.products.writes + remote_stores.product_sizes.writes == writes

    def test_push_without_prune_keeps_remote_only_products(self, reconciler, remote_stores, local_store):
        local_store.save(PRODUCTS, [local_product("Hoodie", [("M", 150, 350)])])
        seed_remote_product(remote_stores, "Mug", [("Std", 30, 90)])

        result = asyncio.run(reconciler.reconcile(TENANT, "push"))

        assert result.deleted == 0
        assert result.remote_only == 1
        assert "delete" not in remote_stores.products.calls
        names = {row['name'] for row in remote_stores.products.rows_for(TENANT)}
        assert names == {"Hoodie", "Mug"}

    def test_push_with_prune_deletes_remote_only_products(self, reconciler, remote_stores, local_store):
        local_store.save(PRODUCTS, [local_product("Hoodie", [("M", 150, 350)])])
        seed_remote_product(remote_stores, "Mug", [("Std", 30, 90)])

        result = asyncio.run(reconciler.reconcile(TENANT, "push", prune=True))

        assert result.deleted == 1
        names = {row['name'] for row in remote_stores.products.rows_for(TENANT)}
        assert names == {"Hoodie"}

    def test_prune_refused_for_empty_local_catalog(self, reconciler, remote_stores, local_store):
        seed_remote_product(remote_stores, "Mug", [("Std", 30, 90)])

        result = asyncio.run(reconciler.reconcile(TENANT, "push", prune=True))

        assert result.prune_refused is True
        assert result.deleted == 0
        assert len(remote_stores.products.rows_for(TENANT)) == 1

    def test_size_grid_replaced_on_update(self, reconciler, remote_stores, local_store):
        product_id = seed_remote_product(remote_stores, "Hoodie", [("M", 150, 350), ("XL", 170, 400)])
        local_store.save(PRODUCTS, [local_product("Hoodie", [("M", 150, 360)])])

        asyncio.run(reconciler.reconcile(TENANT, "push"))

        sizes = [row for row in remote_stores.product_sizes.rows.values() if row['product_id'] == product_id]
        assert [(s['size'], s['price']) for s in sizes] == [("M", 360.0)]

    def test_visibility_change_is_an_update(self, reconciler, remote_stores, local_store):
        product_id = seed_remote_product(remote_stores, "Hoodie", [("M", 150, 350)])
        local_store.save(PRODUCTS, [local_product("Hoodie", [("M", 150, 350)], visible=False)])

        result = asyncio.run(reconciler.reconcile(TENANT, "push"))

        assert result.updated == 1
        assert remote_stores.products.rows[product_id]['is_active'] is False
        assert "bulk_insert" not in remote_stores.product_sizes.calls

    def test_size_insert_failure_rolls_back_created_product(self, reconciler, remote_stores, local_store):
        local_store.save(PRODUCTS, [local_product("Hoodie", [("M", 150, 350)])])
        remote_stores.product_sizes.fail_once('bulk_insert', TransientStoreError("timeout"))

        result = asyncio.run(reconciler.reconcile(TENANT, "push"))

        assert result.failed == 1
        assert result.failures[0].key == "Hoodie"
        assert result.failures[0].retryable is True
        assert remote_stores.products.rows_for(TENANT) == []

    def test_invalid_local_product_reported(self, reconciler, local_store):
        local_store.save(PRODUCTS, [
            local_product("   ", [("M", 1, 2)]),
            local_product("Cap", [("M", 20, 60)]),
        ])

        result = asyncio.run(reconciler.reconcile(TENANT, "push"))

        assert result.failed == 1
        assert result.created == 1

    def test_remote_catalog_unavailable(self, reconciler, remote_stores, local_store):
        local_store.save(PRODUCTS, [local_product("Cap", [("M", 20, 60)])])
        remote_stores.products.fail_once('list', TransientStoreError("connection refused"))

        result = asyncio.run(reconciler.reconcile(TENANT, "push"))

        assert result.success is False
        assert result.failures[0].retryable is True
        assert remote_stores.products.writes == 0

    def test_publishes_products_invalidation(self, reconciler, local_store, invalidations):
        local_store.save(PRODUCTS, [local_product("Cap", [("M", 20, 60)])])

        asyncio.run(reconciler.reconcile(TENANT, "push"))

        assert invalidations == [('products', TENANT)]


class TestCatalogPull:

    def test_pull_rewrites_local_catalog(self, reconciler, remote_stores, local_store):
        # Arrange
        local_store.save(PRODUCTS, [local_product("Hoodie", [("M", 150, 350)])])
        seed_remote_product(remote_stores, "Cap", [("One size", 20, 60)])

        # Act
        result = asyncio.run(reconciler.reconcile(TENANT, "pull"))

        # Assert
        assert result.created == 1
        assert result.deleted == 1
        assert remote_stores.products.writes == 0
        names = [record['name'] for record in local_store.load(PRODUCTS, [])]
        assert names == ["Cap"]

    def test_pull_archives_previous_local_catalog(self, reconciler, remote_stores, local_store):
        local_store.save(PRODUCTS, [local_product("Hoodie", [("M", 150, 350)])])
        seed_remote_product(remote_stores, "Cap", [("One size", 20, 60)])

        asyncio.run(reconciler.reconcile(TENANT, "pull"))

        backups = [name for name in local_store.names() if name.startswith("products.backup-")]
        assert len(backups) == 1


class TestReconcilerGuards:

    def test_unknown_direction_rejected(self, reconciler):
        with pytest.raises(StoreValidationError):
            asyncio.run(reconciler.reconcile(TENANT, "sideways"))

    def test_overlapping_job_rejected(self, reconciler, guard):
        async def run():
            async with guard.hold(TENANT):
                await reconciler.reconcile(TENANT, "push")

        with pytest.raises(SyncInProgressError):
            asyncio.run(run())
