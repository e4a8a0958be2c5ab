from datetime import datetime
from typing import List, Optional

from discovery.domain.models.product import DiscoveryModel, Product, ProductSummary
from discovery.domain.models.query import Pagination


class ViewEvent(DiscoveryModel):
    view_id: str
    user_id: Optional[int] = None
    product_id: int
    viewed_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None


class ViewResult(DiscoveryModel):
    view_id: Optional[str] = None
    product_id: int
    is_new_view: bool


class HistoryWindow(DiscoveryModel):
    days: int
    start_date: datetime
    end_date: datetime


class ViewedProductEntry(DiscoveryModel):
    view_id: str
    viewed_at: datetime
    product: Product


class ViewHistoryPage(DiscoveryModel):
    viewed_products: List[ViewedProductEntry]
    pagination: Pagination
    filters: HistoryWindow


class MostViewedEntry(DiscoveryModel):
    product: ProductSummary
    view_count: int
    last_viewed_at: Optional[datetime] = None


class MostViewedPage(DiscoveryModel):
    most_viewed: List[MostViewedEntry]
    pagination: Pagination


class DailyStat(DiscoveryModel):
    date: str           # YYYY-MM-DD, UTC calendar day
    view_count: int


class ViewStatistics(DiscoveryModel):
    total_views: int
    unique_products: int
    most_viewed: List[MostViewedEntry]
    daily_stats: List[DailyStat]
    period: HistoryWindow


class ClearHistoryResult(DiscoveryModel):
    deleted_count: int
    product_id: Optional[int] = None
