"""
Pytest fixtures and configuration for StoreSync backend tests

Remote stores are replaced by an in-memory RecordStore so the sync services
can be exercised end to end without a Supabase project; the local store is a
real JsonFileLocalStore in a temporary folder.

Author: StoreSync
"""
import itertools
from typing import Any, Dict, List, Optional

import pytest

from storesync.core.concurrency import TenantJobGuard
from storesync.core.events import InvalidationBus
from storesync.core.exceptions import StoreValidationError
from storesync.repositories.base import NaturalKey, RecordStore, RemoteStores
from storesync.repositories.local_store import JsonFileLocalStore

TENANT = "tenant-1"
OTHER_TENANT = "tenant-2"

WRITE_METHODS = ('insert', 'bulk_insert', 'update', 'delete')


class InMemoryRecordStore(RecordStore):
    """
    RecordStore over a dict, with call recording and one-shot failure injection

    Usage:
        store.fail_once('bulk_insert', TransientStoreError("boom"))
    """

    def __init__(self, kind: str, natural_key: tuple, tenant_column: Optional[str] = 'user_id'):
        self.kind = kind
        self.natural_key = natural_key
        self.tenant_column = tenant_column
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self._failures: Dict[str, Exception] = {}
        self._ids = itertools.count(1)
        self._serials = itertools.count(1)

    def fail_once(self, method: str, error: Exception):
        self._failures[method] = error

    def _record_call(self, method: str):
        self.calls.append(method)
        error = self._failures.pop(method, None)
        if error is not None:
            raise error

    @property
    def writes(self) -> int:
        return sum(1 for call in self.calls if call in WRITE_METHODS)

    def _visible(self, row: Dict[str, Any], tenant_id: str) -> bool:
        return self.tenant_column is None or row.get(self.tenant_column) == tenant_id

    def _add(self, tenant_id: str, record: Dict[str, Any]) -> str:
        remote_id = f"{self.kind}-{next(self._ids)}"
        row = dict(record, id=remote_id)
        if self.tenant_column:
            row[self.tenant_column] = tenant_id
        self.rows[remote_id] = row
        return remote_id

    def seed(self, tenant_id: str, record: Dict[str, Any]) -> str:
        """Insert directly, without recording a call"""
        return self._add(tenant_id, record)

    def rows_for(self, tenant_id: str) -> List[Dict[str, Any]]:
        return [row for row in self.rows.values() if self._visible(row, tenant_id)]

    async def exists(self, tenant_id: str, key: NaturalKey) -> bool:
        self._record_call('exists')
        return self._lookup(tenant_id, key) is not None

    async def find_id(self, tenant_id: str, key: NaturalKey) -> Optional[str]:
        self._record_call('find_id')
        return self._lookup(tenant_id, key)

    def _lookup(self, tenant_id: str, key: NaturalKey) -> Optional[str]:
        values = self.key_values(key)
        for remote_id, row in self.rows.items():
            if self._visible(row, tenant_id) and all(
                row.get(column) == value for column, value in zip(self.natural_key, values)
            ):
                return remote_id
        return None

    async def insert(self, tenant_id: str, record: Dict[str, Any]) -> str:
        self._record_call('insert')
        return self._add(tenant_id, record)

    async def bulk_insert(self, tenant_id: str, records: List[Dict[str, Any]]) -> List[str]:
        self._record_call('bulk_insert')
        return [self._add(tenant_id, record) for record in records]

    async def update(self, remote_id: str, patch: Dict[str, Any]) -> None:
        self._record_call('update')
        if remote_id not in self.rows:
            raise StoreValidationError(f"{self.kind} {remote_id} does not exist")
        self.rows[remote_id].update(patch)

    async def delete(self, remote_id: str) -> None:
        self._record_call('delete')
        self.rows.pop(remote_id, None)

    async def list(self, tenant_id: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        self._record_call('list')
        return [
            dict(row) for row in self.rows.values()
            if self._visible(row, tenant_id)
            and all(row.get(column) == value for column, value in (filters or {}).items())
        ]

    async def next_serial(self, tenant_id: str) -> str:
        self._record_call('next_serial')
        return f"S-{next(self._serials):04d}"


@pytest.fixture
def remote_stores():
    """In-memory stand-ins for every remote table"""
    return RemoteStores(
        orders=InMemoryRecordStore('orders', ('serial',)),
        order_items=InMemoryRecordStore('order_items', ('order_id',), tenant_column=None),
        products=InMemoryRecordStore('products', ('name',)),
        product_sizes=InMemoryRecordStore('product_sizes', ('product_id', 'size'), tenant_column=None),
        proposed_prices=InMemoryRecordStore('proposed_prices', ('product_type', 'size')),
    )


@pytest.fixture
def local_store(tmp_path):
    """Local collections in a fresh temporary folder"""
    return JsonFileLocalStore(str(tmp_path / "local"))


@pytest.fixture
def guard():
    return TenantJobGuard()


@pytest.fixture
def bus():
    return InvalidationBus()


@pytest.fixture
def invalidations(bus):
    """Every (topic, tenant) published on the bus during the test"""
    received = []
    for topic in ('orders', 'products', 'proposed_prices'):
        bus.subscribe(topic, lambda t, tenant: received.append((t, tenant)))
    return received


@pytest.fixture
def local_order_1001():
    """
    Offline-cache order whose stored total holds the remaining balance
    (270) instead of the real total (320)
    """
    return {
        "serial": "1001",
        "clientName": "Mona Adel",
        "phone": "01000000000",
        "paymentMethod": "cash",
        "deliveryMethod": "courier",
        "address": "12 Nile St",
        "governorate": "Cairo",
        "items": [
            {"productType": "Hoodie", "size": "L", "quantity": 2, "cost": 40, "price": 100, "itemDiscount": 0},
            {"productType": "T-Shirt", "size": "M", "quantity": 1, "cost": 30, "price": 100, "itemDiscount": 0},
        ],
        "shippingCost": 20,
        "discount": 0,
        "deposit": 50,
        "paymentsReceived": 0,
        "total": 270,
        "profit": 0,
        "status": "pending",
        "dateCreated": "2026-03-14T10:30:00+00:00",
    }


@pytest.fixture
def local_order_1002():
    return {
        "serial": "1002",
        "clientName": "Karim Samy",
        "items": [
            {"productType": "Cap", "size": "One size", "quantity": 3, "cost": 20, "price": 60, "itemDiscount": 10},
        ],
        "shippingCost": 30,
        "discount": 5,
        "deposit": 0,
        "paymentsReceived": 0,
        "total": 195,
        "status": "confirmed",
    }
