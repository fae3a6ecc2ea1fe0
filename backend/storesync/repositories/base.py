"""
Record Store Contract

Abstract capabilities the sync layer is written against:

- RecordStore: tenant-scoped CRUD over one entity kind of the authoritative
  store. Every method is a coroutine and may raise TransientStoreError
  (retryable) or StoreValidationError (not retryable).
- LocalCollectionStore: named JSON collections persisted by the client
  session. A missing collection is an empty default, never an error.

Author: StoreSync
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

NaturalKey = Union[str, Tuple[str, ...]]


class RecordStore(ABC):
    """
    Tenant-scoped CRUD over one entity kind.

    natural_key names the column(s) used for existence checks, e.g.
    ('serial',) for orders or ('product_type', 'size') for proposed prices.
    """

    kind: str = ""
    natural_key: Tuple[str, ...] = ()

    @abstractmethod
    async def exists(self, tenant_id: str, key: NaturalKey) -> bool:
        """True if a record with this natural key exists for the tenant"""

    @abstractmethod
    async def find_id(self, tenant_id: str, key: NaturalKey) -> Optional[str]:
        """Remote id of the record with this natural key, or None"""

    @abstractmethod
    async def insert(self, tenant_id: str, record: Dict[str, Any]) -> str:
        """Insert one record and return its remote id"""

    @abstractmethod
    async def bulk_insert(self, tenant_id: str, records: List[Dict[str, Any]]) -> List[str]:
        """Insert records in one call and return their remote ids in order"""

    @abstractmethod
    async def update(self, remote_id: str, patch: Dict[str, Any]) -> None:
        """Apply a partial update to one record"""

    @abstractmethod
    async def delete(self, remote_id: str) -> None:
        """Delete one record"""

    @abstractmethod
    async def list(self, tenant_id: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """List the tenant's records matching equality filters"""

    async def next_serial(self, tenant_id: str) -> str:
        """
        Allocate the next order serial for a tenant.

        Only stores that own a serial sequence (the orders kind) implement this.
        """
        raise NotImplementedError(f"{self.kind} store does not allocate serials")

    def key_values(self, key: NaturalKey) -> Tuple[str, ...]:
        """Normalize a natural key to a tuple matching natural_key"""
        values = key if isinstance(key, tuple) else (key,)
        if len(values) != len(self.natural_key):
            raise ValueError(
                f"{self.kind} natural key needs {len(self.natural_key)} values, got {len(values)}"
            )
        return values


@dataclass
class RemoteStores:
    """The entity kinds the sync layer touches"""
    orders: RecordStore
    order_items: RecordStore
    products: RecordStore
    product_sizes: RecordStore
    proposed_prices: RecordStore


class LocalCollectionStore(ABC):
    """Named, JSON-serializable collections owned by the client session"""

    @abstractmethod
    def load(self, name: str, default: Any) -> Any:
        """
        Return the stored collection, or default when it is missing.

        A collection that cannot be decoded is reset to default.
        """

    @abstractmethod
    def save(self, name: str, value: Any) -> None:
        """Persist a collection"""

    @abstractmethod
    def archive(self, name: str) -> Optional[str]:
        """Copy a collection to a timestamped backup; returns the backup name"""

    @abstractmethod
    def clear(self, name: str) -> None:
        """Remove a collection"""

    @abstractmethod
    def names(self) -> List[str]:
        """Names of the collections currently stored"""
