"""
Sync API - migrate local data and reconcile the catalog

Endpoints:
- POST /api/v1/sync/orders   - Migrate local orders
- POST /api/v1/sync/catalog  - Reconcile the product catalog (direction required)
- POST /api/v1/sync/prices   - Migrate local proposed prices
- POST /api/v1/sync/all      - Session-start sync of everything local
- GET  /api/v1/sync/status   - Pending local data and running jobs

Security:
- Every endpoint requires a bearer token; the token subject is the tenant

Author: StoreSync
"""
from fastapi import APIRouter, HTTPException, Query, Depends
from pydantic import BaseModel
from typing import Optional, List, Dict
import logging

from storesync.api.dependencies import (
    get_catalog_reconciler,
    get_local_store,
    get_order_sync_engine,
    get_price_sync,
    get_session_sync,
)
from storesync.core.auth import TokenUser, get_current_user
from storesync.core.concurrency import default_guard
from storesync.core.exceptions import StoreSyncError
from storesync.repositories.base import LocalCollectionStore
from storesync.repositories.local_store import PRODUCTS, PROPOSED_PRICES
from storesync.services.catalog_sync_service import CatalogReconciler
from storesync.services.order_sync_service import OrderSyncEngine, pending_local_orders
from storesync.services.price_sync_service import ProposedPriceSync, flatten_proposed_prices
from storesync.services.session_sync_service import SessionSyncService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sync", tags=["Sync"])


# ============================================================================
# Response Models
# ============================================================================

class FailureResponse(BaseModel):
    key: str
    reason: str
    retryable: bool


class OrderSyncResponse(BaseModel):
    """Response model for order migration"""
    success: bool
    message: str
    migrated: int
    skipped: int
    failed: int
    failures: List[FailureResponse]
    migrated_serials: List[str]
    cancelled: bool
    archived_as: Optional[str]
    duration_seconds: float


class CatalogSyncResponse(BaseModel):
    """Response model for catalog reconciliation"""
    success: bool
    message: str
    direction: str
    created: int
    updated: int
    deleted: int
    unchanged: int
    remote_only: int
    failed: int
    failures: List[FailureResponse]
    prune_refused: bool
    cancelled: bool
    duration_seconds: float


class PriceSyncResponse(BaseModel):
    """Response model for proposed price migration"""
    success: bool
    message: str
    migrated: int
    skipped: int
    failed: int
    failures: List[FailureResponse]
    cancelled: bool
    duration_seconds: float


class SessionSyncResponse(BaseModel):
    """Response model for the full session sync"""
    success: bool
    message: str
    orders: Optional[OrderSyncResponse]
    catalog: Optional[CatalogSyncResponse]
    prices: Optional[PriceSyncResponse]
    cancelled: bool
    duration_seconds: float


class SyncStatusResponse(BaseModel):
    """Response model for sync status"""
    has_local_data: bool
    job_running: bool
    pending: Dict[str, int]


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(
    user: TokenUser = Depends(get_current_user),
    local_store: LocalCollectionStore = Depends(get_local_store)
):
    """
    Local data still waiting to be migrated, and whether a job is running
    for the tenant. Never touches the remote store.
    """
    pending = {
        'orders': len(pending_local_orders(local_store)),
        'products': len(local_store.load(PRODUCTS, [])),
        'proposed_prices': len(flatten_proposed_prices(local_store.load(PROPOSED_PRICES, {}))),
    }
    return SyncStatusResponse(
        has_local_data=any(pending.values()),
        job_running=default_guard.is_active(user.tenant_id),
        pending=pending
    )


@router.post("/orders", response_model=OrderSyncResponse)
async def sync_orders(
    user: TokenUser = Depends(get_current_user),
    engine: OrderSyncEngine = Depends(get_order_sync_engine)
):
    """
    Migrate the tenant's local orders

    Orders whose serial already exists remotely are skipped; per-order
    failures are reported in the response instead of aborting the run.
    """
    try:
        result = await engine.sync_orders(user.tenant_id)
        return OrderSyncResponse(**result.to_dict())
    except StoreSyncError:
        raise
    except Exception as e:
        logger.error(f"Error syncing orders: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/catalog", response_model=CatalogSyncResponse)
async def sync_catalog(
    direction: str = Query(..., description="push (local wins) or pull (remote wins)"),
    prune: bool = Query(default=False, description="PUSH only: delete remote products missing locally"),
    user: TokenUser = Depends(get_current_user),
    reconciler: CatalogReconciler = Depends(get_catalog_reconciler)
):
    """
    Reconcile the product catalog in an explicit direction

    Args:
        direction: "push" or "pull"
        prune: Allow remote deletes on PUSH (refused for an empty local catalog)
    """
    try:
        result = await reconciler.reconcile(user.tenant_id, direction, prune=prune)
        return CatalogSyncResponse(**result.to_dict())
    except StoreSyncError:
        raise
    except Exception as e:
        logger.error(f"Error reconciling catalog: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/prices", response_model=PriceSyncResponse)
async def sync_prices(
    user: TokenUser = Depends(get_current_user),
    price_sync: ProposedPriceSync = Depends(get_price_sync)
):
    """Migrate the tenant's local proposed prices"""
    try:
        result = await price_sync.sync_prices(user.tenant_id)
        return PriceSyncResponse(**result.to_dict())
    except StoreSyncError:
        raise
    except Exception as e:
        logger.error(f"Error syncing proposed prices: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/all", response_model=SessionSyncResponse)
async def sync_all(
    user: TokenUser = Depends(get_current_user),
    session_sync: SessionSyncService = Depends(get_session_sync)
):
    """
    Run every migration for the tenant (orders, catalog PUSH without prune,
    proposed prices). This is what the client calls on sign-in.
    """
    try:
        result = await session_sync.sync_all(user.tenant_id)
        return SessionSyncResponse(**result.to_dict())
    except StoreSyncError:
        raise
    except Exception as e:
        logger.error(f"Error running session sync: {e}")
        raise HTTPException(status_code=500, detail=str(e))
