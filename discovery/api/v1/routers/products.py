# discovery/api/v1/routers/products.py
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query

from discovery.api.deps import catalog_service, facet_service, search_service, suggestion_service
from discovery.api.v1.schemas.envelope import ok
from discovery.domain.services.catalog_svc import CatalogService
from discovery.domain.services.facets_svc import FacetService
from discovery.domain.services.search_svc import SearchService
from discovery.domain.services.suggestion_svc import SuggestionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["search"])


@router.get("")
async def list_products(
    page: int = Query(1),
    limit: int = Query(10),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    search: Optional[str] = Query(None, description="Name fragment, case-insensitive"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    svc: CatalogService = Depends(catalog_service),
):
    start_time = time.perf_counter()
    res = await svc.list_products(
        page=page,
        limit=limit,
        category_id=category_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    logger.info("Response: list_products total=%s elapsed_time=%.4fs", res.pagination.total_items, time.perf_counter() - start_time)
    return ok(res.model_dump(mode="json", by_alias=True))


@router.get("/fuzzy-search")
async def fuzzy_search(
    q: Optional[str] = Query(None, description="Free-text query"),
    page: int = Query(1),
    limit: int = Query(10),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    min_rating: Optional[float] = Query(None, alias="minRating"),
    status: Optional[str] = Query(None),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    svc: SearchService = Depends(search_service),
):
    """
    Weighted full-text search with highlights. Falls back to substring
    matching on the record store when the search index is unreachable; the
    response shape is the same either way.
    """
    logger.info("Request: fuzzy_search q=%r page=%s limit=%s sort=%s:%s", q, page, limit, sort_by, sort_order)
    start_time = time.perf_counter()

    res = await svc.search(
        q,
        page=page,
        limit=limit,
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        status=status,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    logger.info(
        "Response: fuzzy_search total=%s backend=%s elapsed_time=%.4fs",
        res.pagination.total_items, res.backend, time.perf_counter() - start_time,
    )
    return ok(res.model_dump(mode="json", by_alias=True))


@router.get("/search-suggestions")
async def search_suggestions(
    q: Optional[str] = Query(None),
    limit: int = Query(5),
    svc: SuggestionService = Depends(suggestion_service),
):
    start_time = time.perf_counter()
    items = await svc.suggest(q, limit)
    logger.info("Response: search_suggestions q=%r count=%s elapsed_time=%.4fs", q, len(items), time.perf_counter() - start_time)
    return ok([s.model_dump(mode="json", by_alias=True) for s in items])


@router.get("/view-count-ranges")
async def view_count_ranges(svc: FacetService = Depends(facet_service)):
    facet = await svc.view_count_ranges()
    return ok(facet.model_dump(mode="json", by_alias=True)["buckets"])


@router.get("/discount-ranges")
async def discount_ranges(svc: FacetService = Depends(facet_service)):
    facet = await svc.discount_ranges()
    return ok(facet.model_dump(mode="json", by_alias=True)["buckets"])


# declared last so the fixed paths above win
@router.get("/{product_id}")
async def get_product(product_id: int, svc: CatalogService = Depends(catalog_service)):
    product = await svc.get_product(product_id)
    return ok(product.model_dump(mode="json", by_alias=True))
