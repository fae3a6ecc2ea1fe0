"""
Tests for offline order capture

Author: StoreSync
"""
import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from storesync.core.exceptions import StoreValidationError, TransientStoreError
from storesync.repositories.local_store import ORDERS, SERIAL_COUNTERS
from storesync.services.financials import reconcile
from storesync.services.local_order_book import LocalOrderBook

MARCH = datetime(2026, 3, 14, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def book(local_store):
    return LocalOrderBook(local_store)


@pytest.fixture
def draft():
    return {
        "clientName": "Mona Adel",
        "items": [
            {"productType": "Hoodie", "size": "L", "quantity": 2, "cost": 40, "price": 100, "itemDiscount": 0},
            {"productType": "T-Shirt", "size": "M", "quantity": 1, "cost": 30, "price": 100, "itemDiscount": 0},
        ],
        "shippingCost": 20,
        "deposit": 50,
    }


class TestLocalOrderBook:

    def test_add_order_assigns_month_serial(self, book, draft):
        order = book.add_order(draft, now=MARCH)

        assert order.serial == "Mar-001"
        assert book.add_order(draft, now=MARCH).serial == "Mar-002"

    def test_stores_real_total_not_remaining(self, book, local_store, draft):
        book.add_order(draft, now=MARCH)

        stored = local_store.load(ORDERS, [])[0]
        assert stored['total'] == 320.0
        assert stored['deposit'] == 50.0

    def test_line_total_override_survives_storage(self, book, draft):
        draft["items"] = [{"productType": "Hoodie", "size": "L", "quantity": 2, "price": 100, "total_price": 150}]
        draft["deposit"] = 0

        added = book.add_order(draft, now=MARCH)

        stored = book.get_order(added.serial)
        assert added.total == Decimal("170")
        assert reconcile(stored).total == added.total

    def test_deposit_defaults_to_zero(self, book, draft):
        del draft['deposit']

        order = book.add_order(draft, now=MARCH)

        assert order.deposit == Decimal('0')

    def test_serial_not_reused_after_delete(self, book, local_store, draft):
        first = book.add_order(draft, now=MARCH)
        book.delete_order(first.serial)

        second = book.add_order(draft, now=MARCH)

        assert second.serial == "Mar-002"
        assert local_store.load(SERIAL_COUNTERS, {}) == {"Mar": 2}

    def test_invalid_draft_consumes_no_serial(self, book, local_store, draft):
        draft['items'][0]['quantity'] = 0

        with pytest.raises(StoreValidationError):
            book.add_order(draft, now=MARCH)

        assert local_store.load(SERIAL_COUNTERS, {}) == {}
        assert local_store.load(ORDERS, []) == []

    def test_update_order_recomputes_total(self, book, draft):
        order = book.add_order(draft, now=MARCH)

        updated = book.update_order(order.serial, {"shippingCost": 40, "paymentsReceived": 100})

        assert updated.total == Decimal('340')
        assert updated.serial == order.serial
        assert book.get_order(order.serial).payments_received == Decimal('100')

    def test_update_cannot_change_serial(self, book, draft):
        order = book.add_order(draft, now=MARCH)

        book.update_order(order.serial, {"serial": "Hacked-1"})

        assert book.get_order(order.serial) is not None
        assert book.get_order("Hacked-1") is None

    def test_update_status(self, book, draft):
        order = book.add_order(draft, now=MARCH)

        assert book.update_status(order.serial, "shipped").status == "shipped"

    def test_unknown_serial(self, book):
        assert book.get_order("Mar-404") is None
        with pytest.raises(StoreValidationError):
            book.delete_order("Mar-404")
        with pytest.raises(StoreValidationError):
            book.update_order("Mar-404", {"status": "shipped"})

    def test_list_orders_skips_invalid_records(self, book, local_store, draft):
        book.add_order(draft, now=MARCH)
        records = local_store.load(ORDERS, [])
        records.append({"serial": "", "clientName": "broken"})
        local_store.save(ORDERS, records)

        orders = book.list_orders()

        assert [o.serial for o in orders] == ["Mar-001"]

    def test_reserve_serial_prefers_store_sequence(self, book):
        orders_store = MagicMock()
        orders_store.next_serial = AsyncMock(return_value="S-0042")

        serial = asyncio.run(book.reserve_serial(orders_store, "tenant-1", now=MARCH))

        assert serial == "S-0042"
        orders_store.next_serial.assert_awaited_once_with("tenant-1")

    def test_reserve_serial_falls_back_to_local_counter(self, book, draft):
        orders_store = MagicMock()
        orders_store.next_serial = AsyncMock(side_effect=TransientStoreError("offline"))

        serial = asyncio.run(book.reserve_serial(orders_store, "tenant-1", now=MARCH))
        order = book.add_order(draft, now=MARCH, serial=serial)

        assert order.serial == "Mar-001"

    def test_duplicate_reserved_serial_rejected(self, book, draft):
        book.add_order(draft, now=MARCH, serial="S-0001")

        with pytest.raises(StoreValidationError):
            book.add_order(draft, now=MARCH, serial="S-0001")
