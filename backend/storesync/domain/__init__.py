"""
Domain Layer - Business Entities

This layer contains Pydantic models representing business entities.
These models enforce type safety and validation across the application.
"""
from storesync.domain.order import Order, OrderItem, OrderSchema, normalize_order
from storesync.domain.product import Product, ProductSize
from storesync.domain.status import StatusConfig

__all__ = [
    'Order',
    'OrderItem',
    'OrderSchema',
    'normalize_order',
    'Product',
    'ProductSize',
    'StatusConfig',
]
