# discovery/api/v1/routers/viewed.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from discovery.api.deps import (
    client_ip,
    request_identity,
    require_user_id,
    session_id,
    user_agent,
    view_analytics,
    view_tracker,
)
from discovery.api.v1.schemas.envelope import ok
from discovery.api.v1.schemas.views import TrackViewIn
from discovery.domain.models.identity import Identity
from discovery.domain.services.view_tracking_svc import ViewAnalytics, ViewTracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/viewed-products", tags=["viewed-products"])


@router.post("")
async def track_view(
    payload: TrackViewIn,
    request: Request,
    identity: Identity = Depends(request_identity),
    session: str = Depends(session_id),
    tracker: ViewTracker = Depends(view_tracker),
):
    """Records a view; repeats from the same visitor inside the dedup window are acknowledged but not counted."""
    res = await tracker.track(
        payload.product_id,
        identity,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
        session_id=session,
    )
    message = "View recorded" if res.is_new_view else "Duplicate view ignored"
    return ok(res.model_dump(mode="json", by_alias=True), message=message)


@router.get("")
async def viewed_products(
    page: int = Query(1),
    limit: int = Query(20),
    sort_by: str = Query("viewedAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    days: Optional[int] = Query(None),
    user_id: int = Depends(require_user_id),
    svc: ViewAnalytics = Depends(view_analytics),
):
    res = await svc.user_history(
        user_id, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order, days=days,
    )
    return ok(res.model_dump(mode="json", by_alias=True))


@router.get("/guest")
async def guest_viewed_products(
    page: int = Query(1),
    limit: int = Query(20),
    days: Optional[int] = Query(None),
    session: str = Depends(session_id),
    svc: ViewAnalytics = Depends(view_analytics),
):
    res = await svc.guest_history(session, page=page, limit=limit, days=days)
    return ok(res.model_dump(mode="json", by_alias=True))


@router.delete("")
async def clear_viewed_history(
    product_id: Optional[int] = Query(None, alias="productId"),
    user_id: int = Depends(require_user_id),
    svc: ViewAnalytics = Depends(view_analytics),
):
    res = await svc.clear_history(user_id, product_id)
    return ok(res.model_dump(mode="json", by_alias=True), message="View history cleared")


@router.get("/statistics")
async def view_statistics(
    days: Optional[int] = Query(None),
    user_id: int = Depends(require_user_id),
    svc: ViewAnalytics = Depends(view_analytics),
):
    res = await svc.statistics(user_id, days=days)
    return ok(res.model_dump(mode="json", by_alias=True))
