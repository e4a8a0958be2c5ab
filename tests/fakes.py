"""
In-memory stand-ins for the repositories and Redis
"""
from __future__ import annotations
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from discovery.core.errors import BackendUnavailableError, StoreError
from discovery.domain.models.product import Category, Product, ProductSummary
from discovery.domain.models.query import SearchHit, SearchRequest, Suggestion
from discovery.domain.models.views import DailyStat, MostViewedEntry, ViewedProductEntry, ViewEvent
from discovery.domain.repositories.product_repo import substring_pattern
from discovery.domain.repositories.product_search_repo import hit_from_document
from discovery.domain.repositories.view_event_repo import HISTORY_SORT_PATHS
from discovery.domain.services.filters import atlas_filters, mql_filters

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

PHONES = Category(category_id=1, name="Phones", description="Mobile phones")
LAPTOPS = Category(category_id=2, name="Laptops", description="Portable computers")
AUDIO = Category(category_id=3, name="Audio", description="Headphones and speakers")


def make_product(product_id: int, name: str, *, category: Category = PHONES, **kw) -> Product:
    fields = dict(
        product_id=product_id,
        name=name,
        description=kw.pop("description", f"{name} description"),
        price=kw.pop("price", 100.0),
        category_id=category.category_id,
        category=category,
        created_at=kw.pop("created_at", T0 - timedelta(days=product_id)),
    )
    fields.update(kw)
    return Product(**fields)


class Clock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# ---------- MQL-ish matching ----------------------------------------------------

def _get(doc: Dict[str, Any], path: str) -> Any:
    cur: Any = doc
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def matches(doc: Dict[str, Any], match: Dict[str, Any]) -> bool:
    """Enough of MQL for the matches the services build."""
    for path, cond in match.items():
        value = _get(doc, path)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$gte" and (value is None or value < arg):
                    return False
                if op == "$lte" and (value is None or value > arg):
                    return False
                if op == "$gt" and (value is None or value <= arg):
                    return False
                if op == "$lt" and (value is None or value >= arg):
                    return False
                if op == "$ne" and value == arg:
                    return False
                if op == "$in" and value not in arg:
                    return False
                if op == "$nin" and value in arg:
                    return False
        elif value != cond:
            return False
    return True


def _product_doc(p: Product) -> Dict[str, Any]:
    return p.model_dump(mode="python")


def _within(rng, value: Optional[float]) -> bool:
    return rng is not None and value is not None and rng.min <= value <= rng.max


# ---------- Record store --------------------------------------------------------

class FakeProductRepo:
    def __init__(self, products: Iterable[Product] = ()):
        self.items: Dict[int, Product] = {p.product_id: p for p in products}
        self.calls: List[str] = []

    def add(self, *products: Product) -> None:
        for p in products:
            self.items[p.product_id] = p

    def _active(self) -> List[Product]:
        return [p for p in self.items.values() if p.is_active]

    async def get_by_id(self, product_id: int, *, active_only: bool = True) -> Optional[Product]:
        self.calls.append("get_by_id")
        p = self.items.get(product_id)
        if p is None or (active_only and not p.is_active):
            return None
        return p

    async def search_substring(self, query, filters, sort_by, sort_order, skip, limit) -> Tuple[List[Product], int]:
        self.calls.append("search_substring")
        rx = substring_pattern(query)
        match = mql_filters(filters)
        found = [
            p for p in self.items.values()
            if matches(_product_doc(p), match)
            and (rx.search(p.name) or rx.search(p.description or "") or rx.search(p.category_name or ""))
        ]
        found.sort(key=lambda p: p.product_id)
        path = sort_by.storage_path
        if path is not None:
            found.sort(key=lambda p: getattr(p, path) or 0, reverse=sort_order.direction < 0)
        return found[skip: skip + limit], len(found)

    async def list_active(self, request) -> Tuple[List[Product], int]:
        self.calls.append("list_active")
        found = [
            p for p in self._active()
            if (request.category_id is None or p.category_id == request.category_id)
            and (request.name is None or substring_pattern(request.name).search(p.name))
        ]
        found.sort(key=lambda p: p.product_id)
        path = request.sort_by.storage_path
        found.sort(key=lambda p: getattr(p, path), reverse=request.sort_order.direction < 0)
        return found[request.offset: request.offset + request.page_size], len(found)

    async def suggest_names(self, query: str, limit: int) -> List[str]:
        self.calls.append("suggest_names")
        rx = substring_pattern(query)
        names = [p for p in self._active() if rx.search(p.name)]
        names.sort(key=lambda p: -p.views)
        return [p.name for p in names[:limit]]

    async def find_similar(self, seed_id, criteria, limit) -> List[Product]:
        def qualifies(p: Product) -> bool:
            return (
                p.category_id == criteria.category_id
                or _within(criteria.price_range, p.price)
                or _within(criteria.rating_range, p.rating)
            )

        found = [p for p in self._active() if p.product_id != seed_id and qualifies(p)]
        found.sort(key=lambda p: (
            p.category_id != criteria.category_id,
            -p.views,
            -(p.created_at.timestamp() if p.created_at else 0),
            p.product_id,
        ))
        return found[:limit]

    async def find_popular(self, exclude_ids: Sequence[int], limit: int) -> List[Product]:
        found = [p for p in self._active() if p.product_id not in set(exclude_ids)]
        found.sort(key=lambda p: (-p.views, p.product_id))
        return found[:limit]

    async def increment_views(self, product_id: int, by: int = 1) -> Optional[int]:
        p = self.items.get(product_id)
        if p is None:
            return None
        self.items[product_id] = p.model_copy(update={"views": p.views + by})
        return p.views + by

    async def count_active(self, match=None) -> int:
        return sum(1 for p in self._active() if matches(_product_doc(p), match or {}))

    async def iter_with_category(self, batch_size: int = 500):
        for pid in sorted(self.items):
            yield self.items[pid]


class FakeViewRepo:
    def __init__(self, products: FakeProductRepo):
        self.products = products
        self.events: List[ViewEvent] = []
        self._seq = 0
        self.fail_inserts = False

    async def most_recent_for_product(self, product_id: int, since: datetime) -> Optional[ViewEvent]:
        inside = [e for e in self.events if e.product_id == product_id and e.viewed_at >= since]
        return max(inside, key=lambda e: e.viewed_at) if inside else None

    async def insert(self, *, product_id, viewed_at, user_id=None, ip_address=None, user_agent=None, session_id=None) -> ViewEvent:
        if self.fail_inserts:
            raise StoreError(diagnostic="write concern timeout")
        self._seq += 1
        event = ViewEvent(
            view_id=f"v{self._seq}",
            user_id=user_id,
            product_id=product_id,
            viewed_at=viewed_at,
            ip_address=ip_address,
            user_agent=user_agent,
            session_id=session_id,
        )
        self.events.append(event)
        return event

    def _select(self, match: Dict[str, Any]) -> List[ViewEvent]:
        return [e for e in self.events if matches(e.model_dump(), match)]

    async def history(self, match, *, sort_by, sort_order, skip, limit) -> Tuple[List[ViewedProductEntry], int]:
        latest: Dict[int, ViewEvent] = {}
        for e in sorted(self._select(match), key=lambda e: e.viewed_at, reverse=True):
            latest.setdefault(e.product_id, e)
        entries = [
            ViewedProductEntry(view_id=e.view_id, viewed_at=e.viewed_at, product=self.products.items[pid])
            for pid, e in latest.items()
            if pid in self.products.items and self.products.items[pid].is_active
        ]
        path = HISTORY_SORT_PATHS[sort_by]
        entries.sort(key=lambda x: x.product.product_id)
        entries.sort(key=lambda x: _get(x.model_dump(), path) or 0, reverse=sort_order < 0)
        return entries[skip: skip + limit], len(entries)

    async def delete_for_user(self, user_id: int, product_id: Optional[int] = None) -> int:
        keep = [
            e for e in self.events
            if not (e.user_id == user_id and (product_id is None or e.product_id == product_id))
        ]
        deleted = len(self.events) - len(keep)
        self.events = keep
        return deleted

    async def count(self, match) -> int:
        return len(self._select(match))

    async def count_distinct_products(self, match) -> int:
        return len({e.product_id for e in self._select(match)})

    async def top_products(self, match, *, skip=0, limit=5, active_only=False) -> Tuple[List[MostViewedEntry], int]:
        groups: Dict[int, List[ViewEvent]] = defaultdict(list)
        for e in self._select(match):
            groups[e.product_id].append(e)
        rows = []
        for pid, evs in groups.items():
            p = self.products.items.get(pid)
            if p is None or (active_only and not p.is_active):
                continue
            rows.append(MostViewedEntry(
                product=ProductSummary.of(p),
                view_count=len(evs),
                last_viewed_at=max(e.viewed_at for e in evs),
            ))
        rows.sort(key=lambda r: (-r.view_count, -r.last_viewed_at.timestamp(), r.product.product_id))
        return rows[skip: skip + limit], len(rows)

    async def daily_counts(self, match) -> List[DailyStat]:
        days: Dict[str, int] = defaultdict(int)
        for e in self._select(match):
            days[e.viewed_at.astimezone(timezone.utc).strftime("%Y-%m-%d")] += 1
        return [DailyStat(date=d, view_count=n) for d, n in sorted(days.items())]


# ---------- Secondary index -----------------------------------------------------

class FakeSearchRepo:
    """Scripted full-text side: fixed hits per query, switchable outages."""

    def __init__(self, hits: Optional[Dict[str, List[SearchHit]]] = None, *, available: bool = True):
        self.hits = hits or {}
        self.available = available
        self.fail_queries = False
        self.requests: List[SearchRequest] = []

    async def is_available(self, timeout_s: float = 1.0) -> bool:
        return self.available

    async def search(self, request: SearchRequest) -> Tuple[List[SearchHit], int]:
        self.requests.append(request)
        if self.fail_queries:
            raise BackendUnavailableError(diagnostic="connection reset")
        found = self.hits.get(request.query.lower(), [])
        return found[request.offset: request.offset + request.page_size], len(found)

    async def autocomplete(self, prefix: str, limit: int) -> List[Suggestion]:
        if self.fail_queries:
            raise BackendUnavailableError(diagnostic="connection reset")
        names = [h.name for hits in self.hits.values() for h in hits if h.name.lower().startswith(prefix.lower())]
        return [Suggestion(text=n, score=10.0 - i) for i, n in enumerate(names[:limit])]


class IndexedSearchRepo:
    """Full-text side answered from synchronized SearchDocuments, Atlas filter rules."""

    def __init__(self, index: "FakeIndexRepo"):
        self.index = index

    async def is_available(self, timeout_s: float = 1.0) -> bool:
        return True

    async def search(self, request: SearchRequest) -> Tuple[List[SearchHit], int]:
        rx = substring_pattern(request.query)
        clauses = atlas_filters(request.filters)
        found = [
            d for _, d in sorted(self.index.docs.items())
            if all(_atlas_clause_matches(d, c) for c in clauses)
            and any(rx.search(d.get(f) or "") for f in ("name", "description", "category_name"))
        ]
        path = request.sort_by.storage_path
        if path is not None:
            found.sort(key=lambda d: d.get(path) or 0, reverse=request.sort_order.direction < 0)
        page = found[request.offset: request.offset + request.page_size]
        return [hit_from_document({**d, "score": 2.0}) for d in page], len(found)


def _atlas_clause_matches(doc: Dict[str, Any], clause: Dict[str, Any]) -> bool:
    # null and missing fields are not indexed, so no range clause matches them
    if "equals" in clause:
        return doc.get(clause["equals"]["path"]) == clause["equals"]["value"]
    rng = clause["range"]
    value = doc.get(rng["path"])
    if value is None:
        return False
    return value >= rng.get("gte", value) and value <= rng.get("lte", value)


class FakeIndexRepo:
    def __init__(self, *, exists: bool = False, reachable: bool = True):
        self.index = "products_search"
        self.exists = exists
        self.reachable = reachable
        self.docs: Dict[int, Dict[str, Any]] = {}
        self.reject_ids: set = set()
        self.create_calls = 0

    def _check(self) -> None:
        if not self.reachable:
            raise BackendUnavailableError(diagnostic="No servers found yet")

    async def index_exists(self) -> bool:
        self._check()
        return self.exists

    async def create_index(self) -> str:
        self._check()
        self.create_calls += 1
        self.exists = True
        return self.index

    async def upsert_many(self, docs) -> Tuple[int, int, List[str]]:
        self._check()
        written, errors = 0, []
        for d in docs:
            if d["_id"] in self.reject_ids:
                errors.append(f"product_id={d['_id']}: document too large")
                continue
            self.docs[d["_id"]] = d
            written += 1
        return written, len(errors), errors

    async def delete_one(self, product_id: int) -> bool:
        self._check()
        return self.docs.pop(product_id, None) is not None

    async def delete_except(self, keep_ids) -> int:
        self._check()
        keep = set(keep_ids)
        gone = [k for k in self.docs if k not in keep]
        for k in gone:
            del self.docs[k]
        return len(gone)


# ---------- Redis ---------------------------------------------------------------

class FakeRedis:
    """get/set with NX and PX/EX expiry against an injectable clock."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or Clock()
        self.store: Dict[str, Tuple[str, Optional[datetime]]] = {}

    def _live(self, key: str) -> bool:
        if key not in self.store:
            return False
        _, expires = self.store[key]
        if expires is not None and self.clock() >= expires:
            del self.store[key]
            return False
        return True

    async def get(self, key: str):
        return self.store[key][0] if self._live(key) else None

    async def set(self, key: str, value, *, nx: bool = False, px: Optional[int] = None, ex: Optional[int] = None):
        if nx and self._live(key):
            return None
        expires = None
        if px is not None:
            expires = self.clock() + timedelta(milliseconds=px)
        elif ex is not None:
            expires = self.clock() + timedelta(seconds=ex)
        self.store[key] = (value, expires)
        return True

    async def delete(self, key: str) -> int:
        return 1 if self.store.pop(key, None) is not None else 0


class BrokenRedis:
    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, value, **kw):
        raise ConnectionError("redis down")

    async def delete(self, key):
        raise ConnectionError("redis down")
