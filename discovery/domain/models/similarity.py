from typing import List, Optional

from discovery.domain.models.product import DiscoveryModel, Product, ProductSummary


class NumericRange(DiscoveryModel):
    min: float
    max: float


class SimilarityCriteria(DiscoveryModel):
    """What a candidate had to match (any one of) to count as similar."""
    category_id: int
    price_range: NumericRange
    rating_range: Optional[NumericRange] = None
    backfilled: int = 0     # items appended by the popularity pass


class SimilarProductsResult(DiscoveryModel):
    original_product: ProductSummary
    similar_products: List[Product]
    total_found: int
    criteria: SimilarityCriteria

