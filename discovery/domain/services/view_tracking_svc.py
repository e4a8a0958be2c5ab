# discovery/domain/services/view_tracking_svc.py
from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from discovery.core.errors import NotFoundError, StoreError, ValidationError
from discovery.domain.models.identity import AuthenticatedIdentity, Identity
from discovery.domain.models.query import MAX_PAGE_SIZE, Pagination, SortOrder
from discovery.domain.models.views import (
    ClearHistoryResult,
    HistoryWindow,
    MostViewedPage,
    ViewHistoryPage,
    ViewResult,
    ViewStatistics,
)
from discovery.domain.repositories.view_event_repo import HISTORY_SORT_PATHS, guest_window, user_window
from discovery.domain.services.constants import MAX_HISTORY_DAYS, TOP_VIEWED_LIMIT
from discovery.utils.locks import WindowLock

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ViewTracker:
    """
    Accepts view events and suppresses repeats from the same identity inside
    the dedup window.

    Reference mode looks at the latest event for the product in the window
    (whoever made it) and only treats the request as a duplicate when that
    event belongs to the same identity. It is check-then-insert and races
    under concurrent requests.

    Atomic mode (a WindowLock is given) claims a Redis key per
    (product, identity) instead, so A -> B -> A inside the window counts once
    for A. When Redis fails the tracker drops back to reference mode.
    """

    def __init__(
        self,
        product_repo,
        view_repo,
        *,
        window_s: int = 10,
        clock: Clock = utcnow,
        guard: Optional[WindowLock] = None,
    ):
        self.products = product_repo
        self.views = view_repo
        self.window = timedelta(seconds=window_s)
        self.clock = clock
        self.guard = guard

    async def _claim(self, product_id: int, identity: Identity) -> Optional[bool]:
        """True/False from the atomic guard, None when it is off or broken."""
        if self.guard is None:
            return None
        key = self.guard.key(product_id, identity.key)
        try:
            return await self.guard.claim(key, int(self.window.total_seconds() * 1000))
        except Exception as e:
            logger.warning("view dedup guard failed key=%s err=%s; using window lookup", key, e)
            return None

    async def _release(self, product_id: int, identity: Identity) -> None:
        """Drops the claim taken for a view that was never stored."""
        key = self.guard.key(product_id, identity.key)
        try:
            await self.guard.release(key)
        except Exception as e:
            logger.warning("view dedup guard release failed key=%s err=%s", key, e)

    async def track(
        self,
        product_id: int,
        identity: Identity,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ViewResult:
        if await self.products.get_by_id(product_id) is None:
            raise NotFoundError(diagnostic=f"product_id={product_id}")
        now = self.clock()

        claimed = await self._claim(product_id, identity)
        if claimed is False:
            logger.debug("view duplicate (guard) product_id=%s who=%s", product_id, identity.key)
            return ViewResult(product_id=product_id, is_new_view=False)
        if claimed is None:
            recent = await self.views.most_recent_for_product(product_id, now - self.window)
            if recent is not None and identity.matches(recent):
                logger.debug("view duplicate product_id=%s who=%s", product_id, identity.key)
                return ViewResult(view_id=recent.view_id, product_id=product_id, is_new_view=False)

        try:
            event = await self.views.insert(
                product_id=product_id,
                viewed_at=now,
                user_id=identity.user_id if isinstance(identity, AuthenticatedIdentity) else None,
                ip_address=ip_address,
                user_agent=user_agent,
                session_id=session_id,
            )
        except StoreError:
            if claimed:
                await self._release(product_id, identity)
            raise
        await self.products.increment_views(product_id)
        logger.info("view recorded product_id=%s view_id=%s", product_id, event.view_id)
        return ViewResult(view_id=event.view_id, product_id=product_id, is_new_view=True)


def _check_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")


def _check_days(days: int) -> None:
    if not 1 <= days <= MAX_HISTORY_DAYS:
        raise ValidationError(f"days must be between 1 and {MAX_HISTORY_DAYS}")


class ViewAnalytics:
    """Read side of view events: histories, clears, statistics."""

    def __init__(
        self,
        view_repo,
        *,
        user_days: int = 30,
        guest_days: int = 7,
        clock: Clock = utcnow,
    ):
        self.views = view_repo
        self.user_days = user_days
        self.guest_days = guest_days
        self.clock = clock

    def window(self, days: int) -> HistoryWindow:
        end = self.clock()
        return HistoryWindow(days=days, start_date=end - timedelta(days=days), end_date=end)

    async def user_history(
        self,
        user_id: int,
        *,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "viewedAt",
        sort_order: str = "desc",
        days: Optional[int] = None,
    ) -> ViewHistoryPage:
        days = self.user_days if days is None else days
        _check_paging(page, limit)
        _check_days(days)
        if sort_by not in HISTORY_SORT_PATHS:
            raise ValidationError(f"sortBy must be one of: {', '.join(HISTORY_SORT_PATHS)}")
        try:
            order = SortOrder(str(sort_order).lower())
        except ValueError:
            raise ValidationError("sortOrder must be asc or desc")

        period = self.window(days)
        entries, total = await self.views.history(
            user_window(user_id, period.start_date),
            sort_by=sort_by,
            sort_order=order.direction,
            skip=(page - 1) * limit,
            limit=limit,
        )
        return ViewHistoryPage(
            viewed_products=entries,
            pagination=Pagination.build(page, limit, total),
            filters=period,
        )

    async def guest_history(
        self,
        session_id: str,
        *,
        page: int = 1,
        limit: int = 20,
        days: Optional[int] = None,
    ) -> ViewHistoryPage:
        """Session-keyed; events that carry a user id never show up here."""
        days = self.guest_days if days is None else days
        if not session_id:
            raise ValidationError("A session id is required for guest history")
        _check_paging(page, limit)
        _check_days(days)

        period = self.window(days)
        entries, total = await self.views.history(
            guest_window(session_id, period.start_date),
            sort_by="viewedAt",
            sort_order=-1,
            skip=(page - 1) * limit,
            limit=limit,
        )
        return ViewHistoryPage(
            viewed_products=entries,
            pagination=Pagination.build(page, limit, total),
            filters=period,
        )

    async def clear_history(self, user_id: int, product_id: Optional[int] = None) -> ClearHistoryResult:
        deleted = await self.views.delete_for_user(user_id, product_id)
        logger.info("history cleared user_id=%s product_id=%s deleted=%s", user_id, product_id, deleted)
        return ClearHistoryResult(deleted_count=deleted, product_id=product_id)

    async def statistics(self, user_id: Optional[int] = None, *, days: Optional[int] = None) -> ViewStatistics:
        """Per-user statistics; user_id None aggregates every user."""
        days = self.user_days if days is None else days
        _check_days(days)
        period = self.window(days)
        match = user_window(user_id, period.start_date)

        total, unique, (top, _), daily = await asyncio.gather(
            self.views.count(match),
            self.views.count_distinct_products(match),
            self.views.top_products(match, limit=TOP_VIEWED_LIMIT),
            self.views.daily_counts(match),
        )
        return ViewStatistics(
            total_views=total,
            unique_products=unique,
            most_viewed=top,
            daily_stats=daily,
            period=period,
        )

    async def most_viewed(self, *, page: int = 1, limit: int = 20, days: Optional[int] = None) -> MostViewedPage:
        days = self.user_days if days is None else days
        _check_paging(page, limit)
        _check_days(days)
        period = self.window(days)
        entries, total = await self.views.top_products(
            user_window(None, period.start_date),
            skip=(page - 1) * limit,
            limit=limit,
            active_only=True,
        )
        return MostViewedPage(most_viewed=entries, pagination=Pagination.build(page, limit, total))
