"""
Order Status API - per-tenant status vocabulary

Endpoints:
- GET   /api/v1/order-statuses          - Full configuration in display order
- GET   /api/v1/order-statuses/options  - Enabled statuses for selection lists
- PUT   /api/v1/order-statuses/order    - Reorder the whole vocabulary
- PATCH /api/v1/order-statuses/{key}    - Relabel, enable/disable or move one status
- POST  /api/v1/order-statuses/reset    - Restore the default vocabulary

Author: StoreSync
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import Optional, List, Literal
import logging

from storesync.api.dependencies import get_local_store
from storesync.core.auth import TokenUser, get_current_user
from storesync.domain.status import StatusConfig
from storesync.repositories.base import LocalCollectionStore
from storesync.services.status_registry import StatusRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/order-statuses", tags=["Order Statuses"])


# ============================================================================
# Request / Response Models
# ============================================================================

class StatusOption(BaseModel):
    value: str
    label: str
    color: str
    enabled: bool


class ReorderRequest(BaseModel):
    keys: List[str] = Field(..., min_length=1, description="Every status key, in the new order")


class StatusUpdateRequest(BaseModel):
    label: Optional[str] = None
    enabled: Optional[bool] = None
    move: Optional[Literal["up", "down"]] = None


def get_registry(
    user: TokenUser = Depends(get_current_user),
    local_store: LocalCollectionStore = Depends(get_local_store)
) -> StatusRegistry:
    return StatusRegistry(user.tenant_id, local_store)


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=List[StatusConfig])
async def list_statuses(registry: StatusRegistry = Depends(get_registry)):
    """All configured statuses, disabled ones included"""
    return registry.configs


@router.get("/options", response_model=List[StatusOption])
async def list_status_options(registry: StatusRegistry = Depends(get_registry)):
    """Enabled statuses with label and color, for order status dropdowns"""
    return registry.options_for_selection()


@router.put("/order", response_model=List[StatusConfig])
async def reorder_statuses(request: ReorderRequest, registry: StatusRegistry = Depends(get_registry)):
    registry.reorder(request.keys)
    registry.save()
    return registry.configs


@router.patch("/{key}", response_model=List[StatusConfig])
async def update_status(key: str, request: StatusUpdateRequest, registry: StatusRegistry = Depends(get_registry)):
    """
    Update one status. Fields left out are unchanged; a move is applied after
    the label and enabled flag.
    """
    if request.label is not None:
        registry.relabel(key, request.label)
    if request.enabled is not None:
        registry.set_enabled(key, request.enabled)
    if request.move == "up":
        registry.move_up(key)
    elif request.move == "down":
        registry.move_down(key)

    registry.save()
    logger.info(f"Updated status '{key}' for tenant {registry.tenant_id}")
    return registry.configs


@router.post("/reset", response_model=List[StatusConfig])
async def reset_statuses(registry: StatusRegistry = Depends(get_registry)):
    registry.reset()
    registry.save()
    return registry.configs
