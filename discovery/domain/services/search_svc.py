# discovery/domain/services/search_svc.py
import logging
import time
from typing import Optional

from discovery.domain.models.query import SearchPage, SearchRequest
from discovery.domain.services.search_backends import BackendSelector

logger = logging.getLogger(__name__)


class SearchService:
    """Query engine entry point: validate once, then let the selector pick the store."""

    def __init__(self, selector: BackendSelector):
        self.selector = selector

    async def search(
        self,
        query: Optional[str],
        *,
        page: int = 1,
        limit: int = 10,
        category_id: Optional[int] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        min_rating: Optional[float] = None,
        status: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> SearchPage:
        # raises ValidationError before any store is touched
        request = SearchRequest.build(
            query,
            page=page,
            page_size=limit,
            sort_by=sort_by,
            sort_order=sort_order,
            category_id=category_id,
            min_price=min_price,
            max_price=max_price,
            min_rating=min_rating,
            status=status,
        )
        t0 = time.perf_counter()
        result = await self.selector.run(lambda backend: backend.search(request))
        logger.info(
            "search done q=%r backend=%s page=%s total=%s time=%.3fs",
            request.query, result.backend, request.page,
            result.pagination.total_items, time.perf_counter() - t0,
        )
        return result
