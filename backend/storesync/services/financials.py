"""
Order Financials - trusted totals for one order

Stored aggregate fields are not trusted: historical rows exist whose stored
total holds the post-deposit remaining balance instead of the real total.
Line items are always internally consistent, so whenever an order has items
its total is recomputed from them. Reports, invoices and dashboards all go
through reconcile() instead of deriving totals themselves.

Author: StoreSync
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List

from storesync.domain.order import Order, OrderItem, normalize_order

ZERO = Decimal('0')


@dataclass(frozen=True)
class OrderFinancials:
    items: List[OrderItem] = field(default_factory=list)
    subtotal: Decimal = ZERO
    shipping: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO
    paid: Decimal = ZERO
    remaining: Decimal = ZERO
    deposit: Decimal = ZERO
    payments_received: Decimal = ZERO
    cost: Decimal = ZERO
    profit: Decimal = ZERO

    @property
    def is_fully_paid(self) -> bool:
        return self.remaining == ZERO

    def to_dict(self) -> dict:
        """JSON-friendly view with money as floats"""
        return {
            'items': [item.model_dump(mode='json') for item in self.items],
            'subtotal': float(self.subtotal),
            'shipping': float(self.shipping),
            'discount': float(self.discount),
            'total': float(self.total),
            'paid': float(self.paid),
            'remaining': float(self.remaining),
            'deposit': float(self.deposit),
            'payments_received': float(self.payments_received),
            'cost': float(self.cost),
            'profit': float(self.profit),
        }


def item_total(item: OrderItem, discount_mode: str = "absolute") -> Decimal:
    """
    Line total: the explicit total when present, otherwise price * quantity
    less the item discount (absolute, or per unit in "per_unit" mode).
    """
    if item.total_price is not None:
        return Decimal(item.total_price)

    gross = item.price * item.quantity
    if discount_mode == "per_unit":
        return gross - item.item_discount * item.quantity
    return gross - item.item_discount


def reconcile(order: Any) -> OrderFinancials:
    """
    Derive trustworthy totals and the remaining balance for one order.

    Args:
        order: Canonical Order or a raw record in any known schema version

    Returns:
        OrderFinancials

    Raises:
        StoreValidationError: the record cannot be normalized
    """
    canonical: Order = normalize_order(order)
    items = canonical.items

    subtotal = sum((item_total(item, canonical.item_discount_mode) for item in items), ZERO)
    shipping = canonical.shipping_cost
    discount = canonical.discount
    computed_total = subtotal + shipping - discount

    if items:
        total = max(ZERO, computed_total)
    else:
        stored_total = canonical.total if canonical.total is not None else ZERO
        total = stored_total if stored_total else max(ZERO, computed_total)

    deposit = canonical.deposit
    payments_received = canonical.payments_received
    paid = deposit + payments_received
    remaining = max(ZERO, total - paid)

    cost = sum((item.cost * item.quantity for item in items), ZERO)
    profit = total - shipping - cost if items else (canonical.profit or ZERO)

    return OrderFinancials(
        items=list(items),
        subtotal=subtotal,
        shipping=shipping,
        discount=discount,
        total=total,
        paid=paid,
        remaining=remaining,
        deposit=deposit,
        payments_received=payments_received,
        cost=cost,
        profit=profit,
    )
