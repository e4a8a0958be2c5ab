# discovery/domain/services/catalog_svc.py
import logging
import time
from typing import Optional

from discovery.core.errors import NotFoundError
from discovery.domain.models.product import Product
from discovery.domain.models.query import ListingRequest, Pagination, ProductPage

logger = logging.getLogger(__name__)


class CatalogService:
    """Plain browsing over the record store: filtered listing and single-product lookup."""

    def __init__(self, product_repo):
        self.products = product_repo

    async def list_products(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> ProductPage:
        request = ListingRequest.build(
            page=page,
            page_size=limit,
            category_id=category_id,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        t0 = time.perf_counter()
        items, total = await self.products.list_active(request)
        logger.info(
            "listing done category_id=%s name=%r page=%s total=%s time=%.3fs",
            request.category_id, request.name, request.page, total, time.perf_counter() - t0,
        )
        return ProductPage(products=items, pagination=Pagination.build(request.page, request.page_size, total))

    async def get_product(self, product_id: int) -> Product:
        product = await self.products.get_by_id(product_id)
        if product is None:
            raise NotFoundError(diagnostic=f"product_id={product_id}")
        return product
