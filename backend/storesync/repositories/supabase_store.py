"""
Supabase Record Store - RecordStore over PostgREST tables

Each instance wraps one table. Tenant scoping is applied on every read and
stamped on every insert through the tenant column; child tables
(order_items, product_sizes) have no tenant column and rely on row-level
security through their parent row.

Author: StoreSync
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from storesync.core.exceptions import StoreValidationError, TransientStoreError
from storesync.repositories.base import NaturalKey, RecordStore, RemoteStores

logger = logging.getLogger(__name__)

# SQLSTATE classes that mean "try again later" rather than "bad data":
# 08 connection exception, 40 transaction rollback, 53 insufficient
# resources, 57 operator intervention (query canceled, shutdown)
TRANSIENT_SQLSTATE_CLASSES = ('08', '40', '53', '57')


def classify_api_error(error: APIError, action: str):
    """Map a PostgREST error to the store error taxonomy"""
    code = str(getattr(error, 'code', '') or '')
    message = getattr(error, 'message', None) or str(error)
    payload = {'code': code or None, 'action': action}

    if code[:2] in TRANSIENT_SQLSTATE_CLASSES:
        return TransientStoreError(f"{action} failed: {message}", payload)
    return StoreValidationError(f"{action} rejected: {message}", payload)


class SupabaseRecordStore(RecordStore):
    """
    RecordStore backed by one Supabase table

    Args:
        client: Async Supabase client
        table: Table name
        natural_key: Column(s) identifying a record for the tenant
        tenant_column: Column holding the tenant id, None for child tables
        order_by: Optional column to sort list() results by
    """

    def __init__(
        self,
        client: AsyncClient,
        table: str,
        natural_key: Tuple[str, ...],
        tenant_column: Optional[str] = 'user_id',
        order_by: Optional[str] = None
    ):
        self.client = client
        self.kind = table
        self.natural_key = natural_key
        self.tenant_column = tenant_column
        self.order_by = order_by

    async def _execute(self, query, action: str):
        try:
            return await query.execute()
        except APIError as e:
            raise classify_api_error(e, action)
        except httpx.HTTPStatusError as e:
            if e.response.status_code >= 500:
                raise TransientStoreError(f"{action} failed: HTTP {e.response.status_code}")
            raise StoreValidationError(f"{action} rejected: HTTP {e.response.status_code}")
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise TransientStoreError(f"{action} failed: {e.__class__.__name__}: {e}")

    def _scoped(self, query, tenant_id: str):
        if self.tenant_column:
            query = query.eq(self.tenant_column, tenant_id)
        return query

    def _stamp(self, tenant_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(record)
        if self.tenant_column:
            row[self.tenant_column] = tenant_id
        return row

    async def exists(self, tenant_id: str, key: NaturalKey) -> bool:
        return await self.find_id(tenant_id, key) is not None

    async def find_id(self, tenant_id: str, key: NaturalKey) -> Optional[str]:
        query = self.client.table(self.kind).select('id')
        for column, value in zip(self.natural_key, self.key_values(key)):
            query = query.eq(column, value)
        query = self._scoped(query, tenant_id).limit(1)

        response = await self._execute(query, f"lookup {self.kind}")
        rows = response.data or []
        return str(rows[0]['id']) if rows else None

    async def insert(self, tenant_id: str, record: Dict[str, Any]) -> str:
        query = self.client.table(self.kind).insert(self._stamp(tenant_id, record))
        response = await self._execute(query, f"insert {self.kind}")

        rows = response.data or []
        if not rows:
            raise StoreValidationError(f"insert {self.kind} returned no row")
        return str(rows[0]['id'])

    async def bulk_insert(self, tenant_id: str, records: List[Dict[str, Any]]) -> List[str]:
        if not records:
            return []

        rows = [self._stamp(tenant_id, record) for record in records]
        response = await self._execute(self.client.table(self.kind).insert(rows), f"bulk insert {self.kind}")

        inserted = response.data or []
        if len(inserted) != len(rows):
            raise StoreValidationError(
                f"bulk insert {self.kind} returned {len(inserted)} rows for {len(rows)} records"
            )
        return [str(row['id']) for row in inserted]

    async def update(self, remote_id: str, patch: Dict[str, Any]) -> None:
        query = self.client.table(self.kind).update(patch).eq('id', remote_id)
        await self._execute(query, f"update {self.kind}")

    async def delete(self, remote_id: str) -> None:
        query = self.client.table(self.kind).delete().eq('id', remote_id)
        await self._execute(query, f"delete {self.kind}")

    async def list(self, tenant_id: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        query = self._scoped(self.client.table(self.kind).select('*'), tenant_id)
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if self.order_by:
            query = query.order(self.order_by)

        response = await self._execute(query, f"list {self.kind}")
        return list(response.data or [])


class SupabaseOrderStore(SupabaseRecordStore):
    """orders table; also owns the per-tenant serial sequence"""

    SERIAL_FUNCTION = 'next_order_serial'

    async def next_serial(self, tenant_id: str) -> str:
        """
        Allocate the next serial from the database sequence function.

        The function increments a per-tenant counter in the same database, so
        a serial handed out here is never handed out again.
        """
        query = self.client.rpc(self.SERIAL_FUNCTION, {'p_user_id': tenant_id})
        response = await self._execute(query, "allocate serial")
        if response.data is None:
            raise StoreValidationError("allocate serial returned nothing")
        return str(response.data)


def build_supabase_stores(client: AsyncClient) -> RemoteStores:
    """Wire every entity kind to its Supabase table"""
    return RemoteStores(
        orders=SupabaseOrderStore(client, 'orders', ('serial',), order_by='date_created'),
        order_items=SupabaseRecordStore(client, 'order_items', ('order_id',), tenant_column=None),
        products=SupabaseRecordStore(client, 'products', ('name',), order_by='name'),
        product_sizes=SupabaseRecordStore(client, 'product_sizes', ('product_id', 'size'), tenant_column=None),
        proposed_prices=SupabaseRecordStore(client, 'proposed_prices', ('product_type', 'size')),
    )
