"""
Product Domain Model

A catalog product with its size/price grid. The product name is the natural
key used to match local and remote catalogs.

Author: StoreSync
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Dict, Tuple
from decimal import Decimal


class ProductSize(BaseModel):
    """One size of a product with its cost and sale price"""

    size: str = Field(..., min_length=1, description="Size label")
    cost: Decimal = Field(Decimal('0'), description="Unit cost", ge=0)
    price: Decimal = Field(Decimal('0'), description="Unit sale price", ge=0)

    model_config = ConfigDict(from_attributes=True)


class Product(BaseModel):
    """
    Product domain model

    Fields:
        id: Local or remote id (None for products never stored remotely)
        name: Product name, unique per tenant catalog
        sizes: Size grid; labels are unique within a product
        category_id: Optional category reference
        is_visible: Whether the product is shown in the storefront
    """

    id: Optional[str] = Field(None, description="Product id")
    name: str = Field(..., min_length=1, description="Product name")
    sizes: List[ProductSize] = Field(default_factory=list)
    category_id: Optional[str] = Field(None, description="Category id")
    is_visible: bool = Field(True, description="Shown in the storefront")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Product name cannot be blank")
        return v

    @field_validator('sizes')
    @classmethod
    def unique_size_labels(cls, v: List[ProductSize]) -> List[ProductSize]:
        seen = set()
        for size in v:
            if size.size in seen:
                raise ValueError(f"Duplicate size label '{size.size}'")
            seen.add(size.size)
        return v

    @property
    def size_grid(self) -> Dict[str, Tuple[Decimal, Decimal]]:
        """size label -> (cost, price), used to compare catalogs"""
        return {s.size: (s.cost, s.price) for s in self.sizes}

    def same_content(self, other: "Product") -> bool:
        """True when sizes, category and visibility match (ids are ignored)"""
        return (
            self.size_grid == other.size_grid
            and self.category_id == other.category_id
            and self.is_visible == other.is_visible
        )

    def to_remote_row(self, tenant_id: str) -> dict:
        return {
            'user_id': tenant_id,
            'name': self.name,
            'category_id': self.category_id,
            'is_active': self.is_visible,
        }

    def size_rows(self, product_id: str) -> List[dict]:
        return [
            {
                'product_id': product_id,
                'size': s.size,
                'cost': float(s.cost),
                'price': float(s.price),
            }
            for s in self.sizes
        ]

    def to_local_record(self) -> dict:
        """camelCase shape stored in the offline cache"""
        return {
            'id': self.id,
            'name': self.name,
            'categoryId': self.category_id,
            'isVisible': self.is_visible,
            'sizes': [
                {'size': s.size, 'cost': float(s.cost), 'price': float(s.price)}
                for s in self.sizes
            ],
        }

    @classmethod
    def from_local_record(cls, record: dict) -> "Product":
        return cls(
            id=record.get('id'),
            name=record.get('name') or "",
            sizes=record.get('sizes') or [],
            category_id=record.get('categoryId'),
            is_visible=record.get('isVisible', True) is not False,
        )

    @classmethod
    def from_remote_row(cls, row: dict, size_rows: List[dict]) -> "Product":
        return cls(
            id=str(row['id']) if row.get('id') is not None else None,
            name=row.get('name') or "",
            sizes=[
                {'size': s['size'], 'cost': s.get('cost') or 0, 'price': s.get('price') or 0}
                for s in size_rows
            ],
            category_id=row.get('category_id'),
            is_visible=row.get('is_active') is not False,
        )
