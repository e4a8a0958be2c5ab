# discovery/domain/services/similar_products_svc.py
import logging
import time
from typing import Optional

from discovery.core.errors import InvalidStateError, NotFoundError, ValidationError
from discovery.domain.models.product import Product, ProductSummary
from discovery.domain.models.similarity import NumericRange, SimilarityCriteria, SimilarProductsResult
from discovery.domain.services.constants import (
    DEFAULT_SIMILAR_LIMIT,
    MAX_RATING,
    MAX_SIMILAR_LIMIT,
    MIN_RATING,
    PRICE_BAND_RATIO,
    RATING_BAND,
)

logger = logging.getLogger(__name__)


def price_band(price: float) -> NumericRange:
    return NumericRange(
        min=round(price * (1 - PRICE_BAND_RATIO), 2),
        max=round(price * (1 + PRICE_BAND_RATIO), 2),
    )


def rating_band(rating: Optional[float]) -> Optional[NumericRange]:
    """+-0.5 clamped to [0, 5]; unrated (or zero-rated) seeds get no rating criterion."""
    if rating is None or not MIN_RATING < rating <= MAX_RATING:
        return None
    return NumericRange(
        min=max(MIN_RATING, round(rating - RATING_BAND, 1)),
        max=min(MAX_RATING, round(rating + RATING_BAND, 1)),
    )


def build_criteria(seed: Product) -> SimilarityCriteria:
    if seed.price is None or seed.price <= 0:
        raise InvalidStateError(
            "Product price must be positive to compute similar products",
            diagnostic=f"product_id={seed.product_id} price={seed.price}",
        )
    return SimilarityCriteria(
        category_id=seed.category_id,
        price_range=price_band(seed.price),
        rating_range=rating_band(seed.rating),
    )


class SimilarProductsService:
    def __init__(self, product_repo):
        self.products = product_repo

    async def similar(self, product_id: int, limit: int = DEFAULT_SIMILAR_LIMIT) -> SimilarProductsResult:
        """
        Any-of matching on category, price band and rating band, ranked
        same-category first, then by views and recency. Short lists are
        backfilled with the most viewed active products.
        """
        if not 1 <= limit <= MAX_SIMILAR_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_SIMILAR_LIMIT}")
        t0 = time.perf_counter()

        seed = await self.products.get_by_id(product_id)
        if seed is None:
            raise NotFoundError(diagnostic=f"product_id={product_id}")
        criteria = build_criteria(seed)

        items = await self.products.find_similar(product_id, criteria, limit)
        backfilled = 0
        if len(items) < limit:
            exclude = [product_id, *(p.product_id for p in items)]
            extra = await self.products.find_popular(exclude, limit - len(items))
            backfilled = len(extra)
            items = [*items, *extra]
            if backfilled:
                criteria = criteria.model_copy(update={"backfilled": backfilled})

        logger.info(
            "similar done product_id=%s n=%s backfilled=%s time=%.3fs",
            product_id, len(items), backfilled, time.perf_counter() - t0,
        )
        return SimilarProductsResult(
            original_product=ProductSummary.of(seed),
            similar_products=items,
            total_found=len(items),
            criteria=criteria,
        )
