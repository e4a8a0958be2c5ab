from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime


class DiscoveryModel(BaseModel):
    """Immutable model, snake_case in Mongo, camelCase on the wire."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ProductStatus(str, Enum):
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class Category(DiscoveryModel):
    category_id: int
    name: str
    description: Optional[str] = None


class Product(DiscoveryModel):
    product_id: int
    name: str
    description: Optional[str] = None
    price: float
    original_price: Optional[float] = None
    discount: float = Field(default=0, ge=0, le=100)
    stock: int = Field(default=0, ge=0)
    status: ProductStatus = ProductStatus.IN_STOCK
    views: int = Field(default=0, ge=0)
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    rating_count: int = Field(default=0, ge=0)
    category_id: int
    image_url: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    category: Optional[Category] = None   # joined from `categories` when requested

    @property
    def category_name(self) -> Optional[str]:
        return self.category.name if self.category else None


class ProductSummary(DiscoveryModel):
    product_id: int
    name: str
    price: float
    rating: Optional[float] = None
    views: int = 0
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def of(cls, product: Product) -> "ProductSummary":
        return cls(
            product_id=product.product_id,
            name=product.name,
            price=product.price,
            rating=product.rating,
            views=product.views,
            category_id=product.category_id,
            category_name=product.category_name,
            image_url=product.image_url,
        )
