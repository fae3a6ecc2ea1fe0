"""
Local Order Book - offline order capture with serial assignment

Orders taken while offline get a serial "<Mon>-<NNN>" from a per-month
counter persisted in the local cache. The counter is saved before the order
so a serial is never handed out twice, even if the order is later deleted.
When the authoritative store is reachable, serials come from its sequence
instead.

Author: StoreSync
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from storesync.core.exceptions import StoreValidationError, TransientStoreError
from storesync.domain.order import Order, normalize_order
from storesync.repositories.base import LocalCollectionStore, RecordStore
from storesync.repositories.local_store import ORDERS, SERIAL_COUNTERS
from storesync.services.financials import reconcile

logger = logging.getLogger(__name__)

MONTHS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')

_PLACEHOLDER_SERIAL = "__unassigned__"


class LocalOrderBook:
    """Orders held in the local cache before they are migrated"""

    def __init__(self, local_store: LocalCollectionStore):
        self.local_store = local_store

    def _records(self) -> List[dict]:
        return self.local_store.load(ORDERS, [])

    def _index_of(self, records: List[dict], serial: str) -> int:
        for index, record in enumerate(records):
            if isinstance(record, dict) and record.get('serial') == serial:
                return index
        raise StoreValidationError(f"No local order with serial {serial}", payload={'serial': serial})

    def next_local_serial(self, now: Optional[datetime] = None) -> str:
        """Consume and persist the next serial for the current month"""
        now = now or datetime.now(timezone.utc)
        month = MONTHS[now.month - 1]

        counters: Dict[str, int] = self.local_store.load(SERIAL_COUNTERS, {})
        counters[month] = int(counters.get(month, 0)) + 1
        self.local_store.save(SERIAL_COUNTERS, counters)

        return f"{month}-{counters[month]:03d}"

    async def reserve_serial(self, orders_store: RecordStore, tenant_id: str,
                             now: Optional[datetime] = None) -> str:
        """
        Serial from the authoritative store's sequence, or the local counter
        when the store is unreachable.
        """
        try:
            return await orders_store.next_serial(tenant_id)
        except TransientStoreError as e:
            logger.warning(f"Serial sequence unavailable ({e.message}); using local counter")
            return self.next_local_serial(now)

    def _validated(self, record: Mapping[str, Any]) -> Order:
        order = normalize_order(dict(record))
        # the cached total is always the real total, never the remaining balance
        return order.model_copy(update={'total': reconcile(order).total})

    def add_order(self, draft: Mapping[str, Any], now: Optional[datetime] = None,
                  serial: Optional[str] = None) -> Order:
        """
        Validate a draft order and append it to the local cache.

        Args:
            draft: Order fields in local (camelCase) or canonical shape
            now: Creation time (defaults to current UTC time)
            serial: Pre-reserved serial; a local one is assigned otherwise

        Raises:
            StoreValidationError: draft is invalid (nothing is written)
        """
        now = now or datetime.now(timezone.utc)
        candidate = dict(draft)
        candidate['serial'] = _PLACEHOLDER_SERIAL
        order = self._validated(candidate)

        records = self._records()
        assigned = serial or self.next_local_serial(now)
        if any(isinstance(r, dict) and r.get('serial') == assigned for r in records):
            raise StoreValidationError(f"Serial {assigned} is already used locally", payload={'serial': assigned})

        order = order.model_copy(update={'serial': assigned, 'date_created': order.date_created or now})
        records.append(order.to_local_record())
        self.local_store.save(ORDERS, records)

        logger.info(f"Added local order {assigned}")
        return order

    def update_order(self, serial: str, changes: Mapping[str, Any]) -> Order:
        """Apply changes (local field names) to a cached order; serial is immutable"""
        records = self._records()
        index = self._index_of(records, serial)

        merged = dict(records[index])
        merged.update(changes)
        merged['serial'] = serial
        order = self._validated(merged)

        records[index] = order.to_local_record()
        self.local_store.save(ORDERS, records)
        return order

    def update_status(self, serial: str, status: str) -> Order:
        return self.update_order(serial, {'status': status})

    def delete_order(self, serial: str):
        records = self._records()
        index = self._index_of(records, serial)
        del records[index]
        self.local_store.save(ORDERS, records)
        logger.info(f"Deleted local order {serial}")

    def get_order(self, serial: str) -> Optional[Order]:
        for record in self._records():
            if isinstance(record, dict) and record.get('serial') == serial:
                return normalize_order(record)
        return None

    def list_orders(self) -> List[Order]:
        orders = []
        for record in self._records():
            try:
                orders.append(normalize_order(record))
            except StoreValidationError as e:
                logger.warning(f"Skipping invalid local order: {e.message}")
        return orders
