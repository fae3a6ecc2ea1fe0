"""
Order Domain Models

Canonical order/line-item shape plus the legacy record shapes it is
normalized from. Orders reach the system in three schema versions:

    local   - camelCase rows from the offline cache (items, shippingCost, ...)
    remote  - rows of the orders table with embedded order_items
    admin   - rows of the admin_orders table with admin_order_items and
              total_amount

Each version has its own model; normalize_order() detects the version,
validates it and returns one canonical Order. Calculations only ever see the
canonical shape.

Author: StoreSync
"""
from pydantic import BaseModel, Field, ConfigDict, ValidationError
from typing import Optional, List, Literal, Any, Mapping, Union
from datetime import datetime
from decimal import Decimal
from enum import Enum

from storesync.core.exceptions import StoreValidationError


DiscountMode = Literal["absolute", "per_unit"]


class OrderSchema(str, Enum):
    """Known schema versions of order records"""
    CANONICAL = "canonical"
    LOCAL = "local"
    REMOTE = "remote"
    ADMIN = "admin"


# ============================================================================
# Canonical models
# ============================================================================

class OrderItem(BaseModel):
    """
    Order line item

    Fields:
        product_type: Product name at order time
        size: Size label
        quantity: Units ordered (> 0)
        cost: Unit cost
        price: Unit price
        profit: Stored line profit (informational)
        item_discount: Line discount; absolute or per unit depending on the
            order's item_discount_mode
        total_price: Pre-computed line total, trusted when present
    """

    product_type: str = Field("", description="Product type / name")
    size: str = Field("", description="Size label")
    quantity: int = Field(1, description="Quantity ordered", ge=1)
    cost: Decimal = Field(Decimal('0'), description="Unit cost", ge=0)
    price: Decimal = Field(Decimal('0'), description="Unit price", ge=0)
    profit: Optional[Decimal] = Field(None, description="Stored line profit")
    item_discount: Decimal = Field(Decimal('0'), description="Line discount", ge=0)
    total_price: Optional[Decimal] = Field(None, description="Pre-computed line total")

    model_config = ConfigDict(from_attributes=True)


class Order(BaseModel):
    """
    Canonical order

    serial is the tenant-scoped natural key used for deduplication; remote_id
    is only known once the order exists in the authoritative store.
    """

    serial: str = Field(..., min_length=1, description="Tenant-scoped order serial")
    remote_id: Optional[str] = Field(None, description="Id in the authoritative store")

    # Customer
    client_name: str = Field("", description="Customer name")
    phone: str = Field("", description="Customer phone")
    payment_method: str = Field("", description="Payment method")
    delivery_method: str = Field("", description="Delivery method")
    address: str = Field("", description="Delivery address")
    governorate: str = Field("", description="Governorate / region")

    # Financial information
    shipping_cost: Decimal = Field(Decimal('0'), ge=0)
    discount: Decimal = Field(Decimal('0'), ge=0)
    deposit: Decimal = Field(Decimal('0'), ge=0)
    payments_received: Decimal = Field(Decimal('0'), ge=0)
    total: Optional[Decimal] = Field(None, description="Stored total (may be stale)")
    profit: Optional[Decimal] = Field(None, description="Stored profit (may be stale)")

    status: str = Field("pending", description="Status key from the tenant's registry")
    date_created: Optional[datetime] = Field(None, description="Creation timestamp")

    items: List[OrderItem] = Field(default_factory=list)
    item_discount_mode: DiscountMode = Field("absolute", description="How item_discount applies")
    schema_version: OrderSchema = Field(OrderSchema.CANONICAL)

    model_config = ConfigDict(from_attributes=True)

    @property
    def item_count(self) -> int:
        return len(self.items)

    def to_remote_row(self, tenant_id: str) -> dict:
        """Header row for the orders table (items are inserted separately)"""
        return {
            'user_id': tenant_id,
            'serial': self.serial,
            'payment_method': self.payment_method,
            'client_name': self.client_name,
            'phone': self.phone,
            'delivery_method': self.delivery_method,
            'address': self.address,
            'governorate': self.governorate,
            'shipping_cost': float(self.shipping_cost),
            'discount': float(self.discount),
            'deposit': float(self.deposit),
            'payments_received': float(self.payments_received),
            'total': float(self.total) if self.total is not None else 0.0,
            'profit': float(self.profit) if self.profit is not None else 0.0,
            'status': self.status,
            'date_created': self.date_created.isoformat() if self.date_created else None,
            'item_discount_mode': self.item_discount_mode,
        }

    def item_rows(self, order_id: str) -> List[dict]:
        """order_items rows tagged with the remote order id"""
        rows = []
        for item in self.items:
            row = {
                'order_id': order_id,
                'product_type': item.product_type,
                'size': item.size,
                'quantity': item.quantity,
                'cost': float(item.cost),
                'price': float(item.price),
                'profit': float(item.profit) if item.profit is not None else 0.0,
                'item_discount': float(item.item_discount),
            }
            if item.total_price is not None:
                row['total_price'] = float(item.total_price)
            rows.append(row)
        return rows

    def to_local_record(self) -> dict:
        """camelCase shape stored in the offline cache"""
        return {
            'serial': self.serial,
            'paymentMethod': self.payment_method,
            'clientName': self.client_name,
            'phone': self.phone,
            'deliveryMethod': self.delivery_method,
            'address': self.address,
            'governorate': self.governorate,
            'items': [_local_item(item) for item in self.items],
            'shippingCost': float(self.shipping_cost),
            'discount': float(self.discount),
            'deposit': float(self.deposit),
            'paymentsReceived': float(self.payments_received),
            'total': float(self.total) if self.total is not None else 0.0,
            'profit': float(self.profit) if self.profit is not None else 0.0,
            'status': self.status,
            'dateCreated': self.date_created.isoformat() if self.date_created else None,
            'itemDiscountMode': self.item_discount_mode,
        }


def _local_item(item: OrderItem) -> dict:
    record = {
        'productType': item.product_type,
        'size': item.size,
        'quantity': item.quantity,
        'cost': float(item.cost),
        'price': float(item.price),
        'profit': float(item.profit) if item.profit is not None else 0.0,
        'itemDiscount': float(item.item_discount),
    }
    if item.total_price is not None:
        record['total_price'] = float(item.total_price)
    return record


# ============================================================================
# Legacy record shapes
# ============================================================================

class _LegacyModel(BaseModel):
    # legacy rows carry plenty of columns we don't use
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LocalOrderItem(_LegacyModel):
    productType: str = ""
    size: str = ""
    quantity: int = Field(1, ge=1)
    cost: Decimal = Field(Decimal('0'), ge=0)
    price: Decimal = Field(Decimal('0'), ge=0)
    profit: Optional[Decimal] = None
    itemDiscount: Optional[Decimal] = Field(None, ge=0)
    total_price: Optional[Decimal] = None


class LocalOrderRecord(_LegacyModel):
    """Order as written to the offline cache by the storefront client"""
    serial: str = Field(..., min_length=1)
    paymentMethod: Optional[str] = None
    clientName: Optional[str] = None
    phone: Optional[str] = None
    deliveryMethod: Optional[str] = None
    address: Optional[str] = None
    governorate: Optional[str] = None
    items: List[LocalOrderItem] = Field(default_factory=list)
    shippingCost: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[Decimal] = Field(None, ge=0)
    deposit: Optional[Decimal] = Field(None, ge=0)
    paymentsReceived: Optional[Decimal] = Field(None, ge=0)
    total: Optional[Decimal] = None
    profit: Optional[Decimal] = None
    status: Optional[str] = None
    dateCreated: Optional[datetime] = None
    itemDiscountMode: DiscountMode = "absolute"

    def to_canonical(self) -> Order:
        return Order(
            serial=self.serial,
            client_name=self.clientName or "",
            phone=self.phone or "",
            payment_method=self.paymentMethod or "",
            delivery_method=self.deliveryMethod or "",
            address=self.address or "",
            governorate=self.governorate or "",
            shipping_cost=self.shippingCost or 0,
            discount=self.discount or 0,
            deposit=self.deposit or 0,
            payments_received=self.paymentsReceived or 0,
            total=self.total,
            profit=self.profit,
            status=self.status or "pending",
            date_created=self.dateCreated,
            items=[
                OrderItem(
                    product_type=item.productType,
                    size=item.size,
                    quantity=item.quantity,
                    cost=item.cost,
                    price=item.price,
                    profit=item.profit,
                    item_discount=item.itemDiscount or 0,
                    total_price=item.total_price,
                )
                for item in self.items
            ],
            item_discount_mode=self.itemDiscountMode,
            schema_version=OrderSchema.LOCAL,
        )


class RemoteOrderItemRow(_LegacyModel):
    product_type: str = ""
    size: str = ""
    quantity: int = Field(1, ge=1)
    cost: Decimal = Field(Decimal('0'), ge=0)
    price: Decimal = Field(Decimal('0'), ge=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    profit: Optional[Decimal] = None
    item_discount: Optional[Decimal] = Field(None, ge=0)
    total_price: Optional[Decimal] = None


class RemoteOrderRow(_LegacyModel):
    """Row of the orders table, optionally with embedded order_items"""
    id: Optional[Union[str, int]] = None
    serial: str = Field(..., min_length=1)
    client_name: Optional[str] = None
    phone: Optional[str] = None
    payment_method: Optional[str] = None
    delivery_method: Optional[str] = None
    address: Optional[str] = None
    governorate: Optional[str] = None
    shipping_cost: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[Decimal] = Field(None, ge=0)
    deposit: Optional[Decimal] = Field(None, ge=0)
    payments_received: Optional[Decimal] = Field(None, ge=0)
    total: Optional[Decimal] = None
    profit: Optional[Decimal] = None
    status: Optional[str] = None
    date_created: Optional[datetime] = None
    item_discount_mode: Optional[DiscountMode] = None
    order_items: List[RemoteOrderItemRow] = Field(default_factory=list)

    def to_canonical(self) -> Order:
        return Order(
            serial=self.serial,
            remote_id=str(self.id) if self.id is not None else None,
            client_name=self.client_name or "",
            phone=self.phone or "",
            payment_method=self.payment_method or "",
            delivery_method=self.delivery_method or "",
            address=self.address or "",
            governorate=self.governorate or "",
            shipping_cost=self.shipping_cost or 0,
            discount=self.discount or 0,
            deposit=self.deposit or 0,
            payments_received=self.payments_received or 0,
            total=self.total,
            profit=self.profit,
            status=self.status or "pending",
            date_created=self.date_created,
            items=[
                OrderItem(
                    product_type=item.product_type,
                    size=item.size,
                    quantity=item.quantity,
                    cost=item.cost,
                    price=item.unit_price if item.unit_price is not None else item.price,
                    profit=item.profit,
                    item_discount=item.item_discount or 0,
                    total_price=item.total_price,
                )
                for item in self.order_items
            ],
            item_discount_mode=self.item_discount_mode or "absolute",
            schema_version=OrderSchema.REMOTE,
        )


class AdminOrderItemRow(_LegacyModel):
    product_name: str = ""
    product_size: str = ""
    quantity: int = Field(1, ge=1)
    unit_cost: Decimal = Field(Decimal('0'), ge=0)
    unit_price: Decimal = Field(Decimal('0'), ge=0)
    profit: Optional[Decimal] = None
    item_discount: Optional[Decimal] = Field(None, ge=0)
    total_price: Optional[Decimal] = None


class AdminOrderRow(_LegacyModel):
    """Row of the admin_orders table with embedded admin_order_items"""
    id: Optional[Union[str, int]] = None
    serial: str = Field(..., min_length=1)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_method: Optional[str] = None
    delivery_method: Optional[str] = None
    shipping_address: Optional[str] = None
    governorate: Optional[str] = None
    shipping_cost: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[Decimal] = Field(None, ge=0)
    deposit: Optional[Decimal] = Field(None, ge=0)
    payments_received: Optional[Decimal] = Field(None, ge=0)
    total_amount: Optional[Decimal] = None
    profit: Optional[Decimal] = None
    status: Optional[str] = None
    order_date: Optional[datetime] = None
    admin_order_items: List[AdminOrderItemRow] = Field(default_factory=list)

    def to_canonical(self) -> Order:
        return Order(
            serial=self.serial,
            remote_id=str(self.id) if self.id is not None else None,
            client_name=self.customer_name or "",
            phone=self.customer_phone or "",
            payment_method=self.payment_method or "",
            delivery_method=self.delivery_method or "",
            address=self.shipping_address or "",
            governorate=self.governorate or "",
            shipping_cost=self.shipping_cost or 0,
            discount=self.discount or 0,
            deposit=self.deposit or 0,
            payments_received=self.payments_received or 0,
            total=self.total_amount,
            profit=self.profit,
            status=self.status or "pending",
            date_created=self.order_date,
            items=[
                OrderItem(
                    product_type=item.product_name,
                    size=item.product_size,
                    quantity=item.quantity,
                    cost=item.unit_cost,
                    price=item.unit_price,
                    profit=item.profit,
                    item_discount=item.item_discount or 0,
                    total_price=item.total_price,
                )
                for item in self.admin_order_items
            ],
            schema_version=OrderSchema.ADMIN,
        )


_LEGACY_MODELS = {
    OrderSchema.LOCAL: LocalOrderRecord,
    OrderSchema.REMOTE: RemoteOrderRow,
    OrderSchema.ADMIN: AdminOrderRow,
}

_LOCAL_MARKERS = ('shippingCost', 'clientName', 'dateCreated', 'paymentMethod', 'paymentsReceived')


def detect_schema(record: Mapping[str, Any]) -> OrderSchema:
    """
    Work out which schema version a raw order record was written in.

    Item-list field names are checked first since they are unambiguous;
    header field names decide for orders without items.
    """
    if 'admin_order_items' in record or 'total_amount' in record:
        return OrderSchema.ADMIN
    if 'order_items' in record:
        return OrderSchema.REMOTE
    if 'items' in record and any(
        isinstance(item, Mapping) and ('productType' in item or 'itemDiscount' in item)
        for item in record.get('items') or []
    ):
        return OrderSchema.LOCAL
    if any(marker in record for marker in _LOCAL_MARKERS):
        return OrderSchema.LOCAL
    if 'items' in record:
        return OrderSchema.CANONICAL
    return OrderSchema.REMOTE


def normalize_order(record: Any) -> Order:
    """
    Convert any known order shape into a canonical Order.

    Args:
        record: Order instance or a raw mapping in any supported schema version

    Returns:
        Canonical Order

    Raises:
        StoreValidationError: record is not a mapping or fails validation
    """
    if isinstance(record, Order):
        return record

    if not isinstance(record, Mapping):
        raise StoreValidationError(f"Order record must be a mapping, got {type(record).__name__}")

    schema = detect_schema(record)
    try:
        if schema == OrderSchema.CANONICAL:
            return Order.model_validate(dict(record))
        return _LEGACY_MODELS[schema].model_validate(dict(record)).to_canonical()
    except ValidationError as e:
        raise StoreValidationError(
            f"Invalid {schema.value} order record: {_first_error(e)}",
            payload={'serial': record.get('serial'), 'schema': schema.value}
        )


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get('loc', ()))
    return f"{location}: {first.get('msg')}" if location else first.get('msg', str(error))
