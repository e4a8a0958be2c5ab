# discovery/domain/models/query.py
from __future__ import annotations
import math
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple, Union

from pydantic import Field

from discovery.core.errors import ValidationError
from discovery.domain.models.product import DiscoveryModel, Product, ProductStatus

MAX_PAGE_SIZE = 100
MAX_SUGGESTIONS = 20


class SortField(str, Enum):
    RELEVANCE = "relevance"
    NAME = "name"
    PRICE = "price"
    CREATED_AT = "createdAt"
    VIEWS = "views"
    RATING = "rating"
    DISCOUNT = "discount"

    @property
    def storage_path(self) -> Optional[str]:
        """Document field this sort maps to; None for relevance (score order)."""
        return _SORT_PATHS.get(self)


_SORT_PATHS = {
    SortField.NAME: "name",
    SortField.PRICE: "price",
    SortField.CREATED_AT: "created_at",
    SortField.VIEWS: "views",
    SortField.RATING: "rating",
    SortField.DISCOUNT: "discount",
}


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @property
    def direction(self) -> int:
        return 1 if self is SortOrder.ASC else -1


# ---------- Filters (tagged union) ------------------------------------------

class CategoryFilter(DiscoveryModel):
    kind: Literal["category"] = "category"
    category_id: int


class PriceRangeFilter(DiscoveryModel):
    kind: Literal["price_range"] = "price_range"
    min_price: Optional[float] = None
    max_price: Optional[float] = None


class MinRatingFilter(DiscoveryModel):
    kind: Literal["min_rating"] = "min_rating"
    min_rating: float


class StatusFilter(DiscoveryModel):
    kind: Literal["status"] = "status"
    status: ProductStatus


SearchFilter = Union[CategoryFilter, PriceRangeFilter, MinRatingFilter, StatusFilter]


class SearchFilters(DiscoveryModel):
    """
    Validated filter set shared by every backend. `is_active = true` is not
    part of it: each backend always adds it.
    """
    clauses: Tuple[SearchFilter, ...] = ()

    @classmethod
    def build(
        cls,
        *,
        category_id: Optional[int] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        min_rating: Optional[float] = None,
        status: Optional[str] = None,
    ) -> "SearchFilters":
        items: List[SearchFilter] = []
        if category_id is not None:
            if category_id < 1:
                raise ValidationError("categoryId must be a positive integer")
            items.append(CategoryFilter(category_id=category_id))
        if min_price is not None and min_price < 0:
            raise ValidationError("minPrice must be >= 0")
        if max_price is not None and max_price < 0:
            raise ValidationError("maxPrice must be >= 0")
        if min_price is not None and max_price is not None and min_price > max_price:
            raise ValidationError("minPrice must not exceed maxPrice")
        if min_price is not None or max_price is not None:
            items.append(PriceRangeFilter(min_price=min_price, max_price=max_price))
        if min_rating is not None:
            if not 0 <= min_rating <= 5:
                raise ValidationError("minRating must be between 0 and 5")
            items.append(MinRatingFilter(min_rating=min_rating))
        if status:
            try:
                items.append(StatusFilter(status=ProductStatus(status)))
            except ValueError:
                allowed = ", ".join(s.value for s in ProductStatus)
                raise ValidationError(f"status must be one of: {allowed}")
        return cls(clauses=tuple(items))


# ---------- Requests -----------------------------------------------------------

def _validate_page(page: int, page_size: int, max_size: int = MAX_PAGE_SIZE) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if not 1 <= page_size <= max_size:
        raise ValidationError(f"limit must be between 1 and {max_size}")


def _parse_sort_order(sort_order: str) -> SortOrder:
    try:
        return SortOrder(str(sort_order).lower())
    except ValueError:
        raise ValidationError("sortOrder must be asc or desc")


class SearchRequest(DiscoveryModel):
    query: str
    page: int = 1
    page_size: int = 10
    filters: SearchFilters = SearchFilters()
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    @classmethod
    def build(
        cls,
        query: Optional[str],
        *,
        page: int = 1,
        page_size: int = 10,
        sort_by: str = SortField.CREATED_AT.value,
        sort_order: str = SortOrder.DESC.value,
        **filters,
    ) -> "SearchRequest":
        text = (query or "").strip()
        if not text:
            raise ValidationError("Search query must not be empty")
        _validate_page(page, page_size)
        try:
            sort_field = SortField(sort_by)
        except ValueError:
            allowed = ", ".join(s.value for s in SortField)
            raise ValidationError(f"sortBy must be one of: {allowed}")
        order = _parse_sort_order(sort_order)
        return cls(
            query=text,
            page=page,
            page_size=page_size,
            filters=SearchFilters.build(**filters),
            sort_by=sort_field,
            sort_order=order,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


LISTING_SORTS = (SortField.NAME, SortField.PRICE, SortField.CREATED_AT)


class ListingRequest(DiscoveryModel):
    """Browse active products by category and optional name fragment; no scoring."""
    page: int = 1
    page_size: int = 10
    category_id: Optional[int] = None
    name: Optional[str] = None
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    @classmethod
    def build(
        cls,
        *,
        page: int = 1,
        page_size: int = 10,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        sort_by: str = SortField.CREATED_AT.value,
        sort_order: str = SortOrder.DESC.value,
    ) -> "ListingRequest":
        _validate_page(page, page_size)
        if category_id is not None and category_id < 1:
            raise ValidationError("categoryId must be a positive integer")
        if sort_by not in {s.value for s in LISTING_SORTS}:
            allowed = ", ".join(s.value for s in LISTING_SORTS)
            raise ValidationError(f"sortBy must be one of: {allowed}")
        return cls(
            page=page,
            page_size=page_size,
            category_id=category_id,
            name=(search or "").strip() or None,
            sort_by=SortField(sort_by),
            sort_order=_parse_sort_order(sort_order),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class SuggestionRequest(DiscoveryModel):
    prefix: str
    limit: int = 5

    @classmethod
    def build(cls, prefix: Optional[str], limit: int = 5) -> "SuggestionRequest":
        text = (prefix or "").strip()
        if not text:
            raise ValidationError("Suggestion query must contain at least one character")
        if not 1 <= limit <= MAX_SUGGESTIONS:
            raise ValidationError(f"limit must be between 1 and {MAX_SUGGESTIONS}")
        return cls(prefix=text, limit=limit)


# ---------- Results ------------------------------------------------------------

class Pagination(DiscoveryModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / page_size) if page_size else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_items=total,
            items_per_page=page_size,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class SearchHit(Product):
    score: float = 1.0
    highlight: Dict[str, List[str]] = Field(default_factory=dict)


class ProductPage(DiscoveryModel):
    products: List[Product]
    pagination: Pagination


class SearchPage(DiscoveryModel):
    products: List[SearchHit]
    pagination: Pagination
    backend: str = Field(default="fulltext", exclude=True)   # diagnostics only, not on the wire


class Suggestion(DiscoveryModel):
    text: str
    score: float
