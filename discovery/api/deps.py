# discovery/api/deps.py
import hashlib
import time
from typing import Optional

from fastapi import Depends, Header, Request

from discovery.core.config import Settings, get_settings
from discovery.core.errors import AuthenticationRequiredError
from discovery.db.mongo import get_db
from discovery.db.redis import get_redis
from discovery.db.search import get_search_db
from discovery.domain.models.identity import Identity, resolve_identity
from discovery.domain.repositories.product_repo import ProductRepo
from discovery.domain.repositories.product_search_repo import ProductSearchRepo
from discovery.domain.repositories.search_index_repo import SearchIndexRepo
from discovery.domain.repositories.view_event_repo import ViewEventRepo
from discovery.domain.services.catalog_svc import CatalogService
from discovery.domain.services.facets_svc import FacetService
from discovery.domain.services.index_sync_svc import IndexSynchronizer
from discovery.domain.services.search_backends import BackendSelector, FullTextBackend, SubstringBackend
from discovery.domain.services.search_svc import SearchService
from discovery.domain.services.similar_products_svc import SimilarProductsService
from discovery.domain.services.suggestion_svc import SuggestionService
from discovery.domain.services.view_tracking_svc import ViewAnalytics, ViewTracker
from discovery.utils.locks import WindowLock


# Dependency for injecting the record-store database into endpoints/services
async def mongo_db(db = Depends(get_db)):
    return db


# Dependency for injecting the Atlas Search database
async def search_db(db = Depends(get_search_db)):
    return db


# Redis client or None
def redis_dep():
    return get_redis()


# ---------- Repositories ------------------------------------------------------

def product_repo(db = Depends(mongo_db)) -> ProductRepo:
    return ProductRepo(db)


def view_repo(db = Depends(mongo_db)) -> ViewEventRepo:
    return ViewEventRepo(db)


def product_search_repo(
    db = Depends(search_db),
    settings: Settings = Depends(get_settings),
) -> ProductSearchRepo:
    return ProductSearchRepo(db, settings.SEARCH_COLLECTION, settings.SEARCH_INDEX_NAME)


def search_index_repo(
    db = Depends(search_db),
    settings: Settings = Depends(get_settings),
) -> SearchIndexRepo:
    return SearchIndexRepo(db, settings.SEARCH_COLLECTION, settings.SEARCH_INDEX_NAME)


# ---------- Services ----------------------------------------------------------

def backend_selector(
    products: ProductRepo = Depends(product_repo),
    search: ProductSearchRepo = Depends(product_search_repo),
    settings: Settings = Depends(get_settings),
) -> BackendSelector:
    return BackendSelector(
        primary=FullTextBackend(search),
        fallback=SubstringBackend(products),
        probe=lambda: search.is_available(settings.search_probe_timeout_s),
    )


def search_service(selector: BackendSelector = Depends(backend_selector)) -> SearchService:
    return SearchService(selector)


def suggestion_service(
    selector: BackendSelector = Depends(backend_selector),
    redis = Depends(redis_dep),
    settings: Settings = Depends(get_settings),
) -> SuggestionService:
    return SuggestionService(selector, redis=redis, cache_ttl=settings.suggestion_cache_ttl)


def similar_service(products: ProductRepo = Depends(product_repo)) -> SimilarProductsService:
    return SimilarProductsService(products)


def facet_service(products: ProductRepo = Depends(product_repo)) -> FacetService:
    return FacetService(products)


def catalog_service(products: ProductRepo = Depends(product_repo)) -> CatalogService:
    return CatalogService(products)


def index_synchronizer(
    products: ProductRepo = Depends(product_repo),
    index: SearchIndexRepo = Depends(search_index_repo),
    settings: Settings = Depends(get_settings),
) -> IndexSynchronizer:
    return IndexSynchronizer(products, index, batch_size=settings.search_sync_batch_size)


def view_tracker(
    products: ProductRepo = Depends(product_repo),
    views: ViewEventRepo = Depends(view_repo),
    redis = Depends(redis_dep),
    settings: Settings = Depends(get_settings),
) -> ViewTracker:
    guard = WindowLock(redis) if settings.VIEW_DEDUP_ATOMIC and redis is not None else None
    return ViewTracker(products, views, window_s=settings.view_dedup_window_s, guard=guard)


def view_analytics(
    views: ViewEventRepo = Depends(view_repo),
    settings: Settings = Depends(get_settings),
) -> ViewAnalytics:
    return ViewAnalytics(views, user_days=settings.user_history_days, guest_days=settings.guest_history_days)


# ---------- Request identity --------------------------------------------------

def client_ip(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent")


async def optional_user_id(x_user_id: Optional[int] = Header(default=None)) -> Optional[int]:
    """User id set by the auth gateway; None for anonymous visitors."""
    return x_user_id


async def require_user_id(user_id: Optional[int] = Depends(optional_user_id)) -> int:
    if user_id is None:
        raise AuthenticationRequiredError(diagnostic="missing X-User-Id header")
    return user_id


async def request_identity(
    request: Request,
    user_id: Optional[int] = Depends(optional_user_id),
) -> Identity:
    return resolve_identity(user_id, client_ip(request), user_agent(request))


def generated_session_id(ip: Optional[str], ua: Optional[str], now: Optional[float] = None) -> str:
    raw = f"{ip or ''}{ua or ''}{int((now if now is not None else time.time()) * 1000)}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()[:16]


async def session_id(
    request: Request,
    x_session_id: Optional[str] = Header(default=None),
) -> str:
    """Guest session token; generated when the client did not send one."""
    if x_session_id:
        return x_session_id
    return generated_session_id(client_ip(request), user_agent(request))
