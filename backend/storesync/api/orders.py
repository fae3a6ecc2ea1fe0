"""
Orders API - trusted financial figures for an order

Endpoints:
- POST /api/v1/orders/financials - Reconcile a posted order in any schema version

Author: StoreSync
"""
from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel
from typing import Any, Dict, List
import logging

from storesync.core.auth import TokenUser, get_current_user
from storesync.services.financials import reconcile

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders"])


class OrderFinancialsResponse(BaseModel):
    """Response model for order financials (money as floats)"""
    items: List[Dict[str, Any]]
    subtotal: float
    shipping: float
    discount: float
    total: float
    paid: float
    remaining: float
    deposit: float
    payments_received: float
    cost: float
    profit: float
    is_fully_paid: bool


@router.post("/financials", response_model=OrderFinancialsResponse)
async def get_order_financials(
    order: Dict[str, Any] = Body(..., description="Order in local, remote, admin or canonical shape"),
    user: TokenUser = Depends(get_current_user)
):
    """
    Recompute total, paid and remaining balance for one order

    The stored total is ignored whenever the order has line items, so legacy
    rows that saved the remaining balance as the total come out right.
    """
    financials = reconcile(order)
    logger.debug(f"Reconciled order {order.get('serial')} for tenant {user.tenant_id}")
    return OrderFinancialsResponse(**financials.to_dict(), is_fully_paid=financials.is_fully_paid)
