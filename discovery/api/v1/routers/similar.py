# discovery/api/v1/routers/similar.py
import logging
import time

from fastapi import APIRouter, Depends, Query

from discovery.api.deps import similar_service
from discovery.api.v1.schemas.envelope import ok
from discovery.domain.services.constants import DEFAULT_SIMILAR_LIMIT
from discovery.domain.services.similar_products_svc import SimilarProductsService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["similar"])


@router.get("/products/{product_id}/similar")
async def similar_products(
    product_id: int,
    limit: int = Query(DEFAULT_SIMILAR_LIMIT),
    svc: SimilarProductsService = Depends(similar_service),
):
    """
    Other active products sharing the category, the +-20% price band or the
    +-0.5 rating band, topped up with popular products when short.
    """
    logger.info("Request: similar_products product_id=%s limit=%s", product_id, limit)
    start_time = time.perf_counter()

    res = await svc.similar(product_id, limit)

    logger.info(
        "Response: similar_products product_id=%s count=%s elapsed_time=%.4fs",
        product_id, res.total_found, time.perf_counter() - start_time,
    )
    return ok(res.model_dump(mode="json", by_alias=True))
