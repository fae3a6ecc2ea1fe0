"""
FastAPI dependencies wiring the sync services to their stores

Routers declare the authenticated user first, so a missing or invalid token
is rejected before any store is touched.
"""
import os

from fastapi import Depends
from supabase import AsyncClient

from storesync.core.auth import TokenUser, get_current_user
from storesync.core.config import settings
from storesync.core.database import get_supabase
from storesync.core.exceptions import StoreValidationError
from storesync.repositories.base import LocalCollectionStore, RemoteStores
from storesync.repositories.local_store import JsonFileLocalStore, is_valid_collection_name
from storesync.repositories.supabase_store import build_supabase_stores
from storesync.services.catalog_sync_service import CatalogReconciler
from storesync.services.order_sync_service import OrderSyncEngine
from storesync.services.price_sync_service import ProposedPriceSync
from storesync.services.session_sync_service import SessionSyncService


async def get_remote_stores(
    user: TokenUser = Depends(get_current_user),
    client: AsyncClient = Depends(get_supabase)
) -> RemoteStores:
    # user is resolved first so unauthenticated calls never open a client
    return build_supabase_stores(client)


def get_local_store(user: TokenUser = Depends(get_current_user)) -> LocalCollectionStore:
    """Each tenant's collections live in their own folder under LOCAL_STATE_DIR"""
    if not is_valid_collection_name(user.tenant_id):
        raise StoreValidationError("Tenant id cannot be used as a folder name")
    return JsonFileLocalStore(os.path.join(settings.LOCAL_STATE_DIR, user.tenant_id))


def get_order_sync_engine(
    stores: RemoteStores = Depends(get_remote_stores),
    local_store: LocalCollectionStore = Depends(get_local_store)
) -> OrderSyncEngine:
    return OrderSyncEngine(stores, local_store)


def get_catalog_reconciler(
    stores: RemoteStores = Depends(get_remote_stores),
    local_store: LocalCollectionStore = Depends(get_local_store)
) -> CatalogReconciler:
    return CatalogReconciler(stores, local_store)


def get_price_sync(
    stores: RemoteStores = Depends(get_remote_stores),
    local_store: LocalCollectionStore = Depends(get_local_store)
) -> ProposedPriceSync:
    return ProposedPriceSync(stores, local_store)


def get_session_sync(
    stores: RemoteStores = Depends(get_remote_stores),
    local_store: LocalCollectionStore = Depends(get_local_store)
) -> SessionSyncService:
    return SessionSyncService(stores, local_store)
