# discovery/api/v1/routers/admin.py
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query

from discovery.api.deps import index_synchronizer, view_analytics
from discovery.api.v1.schemas.envelope import ok
from discovery.domain.services.index_sync_svc import IndexSynchronizer
from discovery.domain.services.view_tracking_svc import ViewAnalytics

logger = logging.getLogger(__name__)

# Operator endpoints; admin authorization happens in front of this service
router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/search-index/schema")
async def ensure_schema(sync: IndexSynchronizer = Depends(index_synchronizer)):
    res = await sync.ensure_schema()
    return ok(res.model_dump(mode="json", by_alias=True))


@router.post("/search-index/resync")
async def resync_index(sync: IndexSynchronizer = Depends(index_synchronizer)):
    logger.info("Request: resync_index")
    start_time = time.perf_counter()
    report = await sync.resync_all()
    logger.info("Response: resync_index written=%s elapsed_time=%.4fs", report.written, time.perf_counter() - start_time)
    return ok(report.model_dump(mode="json", by_alias=True))


@router.put("/search-index/products/{product_id}")
async def upsert_index_document(product_id: int, sync: IndexSynchronizer = Depends(index_synchronizer)):
    res = await sync.upsert_one(product_id)
    return ok(res.model_dump(mode="json", by_alias=True))


@router.delete("/search-index/products/{product_id}")
async def delete_index_document(product_id: int, sync: IndexSynchronizer = Depends(index_synchronizer)):
    res = await sync.delete_one(product_id)
    return ok(res.model_dump(mode="json", by_alias=True))


@router.get("/viewed-products/statistics")
async def global_view_statistics(
    days: Optional[int] = Query(None),
    svc: ViewAnalytics = Depends(view_analytics),
):
    res = await svc.statistics(None, days=days)
    return ok(res.model_dump(mode="json", by_alias=True))


@router.get("/viewed-products/most-viewed")
async def most_viewed_products(
    page: int = Query(1),
    limit: int = Query(20),
    days: Optional[int] = Query(None),
    svc: ViewAnalytics = Depends(view_analytics),
):
    res = await svc.most_viewed(page=page, limit=limit, days=days)
    return ok(res.model_dump(mode="json", by_alias=True))
