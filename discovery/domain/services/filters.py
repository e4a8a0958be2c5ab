# discovery/domain/services/filters.py
from typing import Any, Dict, List, Optional

from discovery.domain.models.query import (
    CategoryFilter,
    MinRatingFilter,
    PriceRangeFilter,
    SearchFilters,
    StatusFilter,
)

ACTIVE_ONLY = {"equals": {"path": "is_active", "value": True}}


def _clause(f) -> Dict[str, Any]:
    """One structured filter -> one Atlas Search filter clause."""
    if isinstance(f, CategoryFilter):
        return {"equals": {"path": "category_id", "value": f.category_id}}
    if isinstance(f, PriceRangeFilter):
        rng: Dict[str, Any] = {"path": "price"}
        if f.min_price is not None:
            rng["gte"] = f.min_price
        if f.max_price is not None:
            rng["lte"] = f.max_price
        return {"range": rng}
    if isinstance(f, MinRatingFilter):
        return {"range": {"path": "rating", "gte": f.min_rating}}
    if isinstance(f, StatusFilter):
        return {"equals": {"path": "status", "value": f.status.value}}
    raise TypeError(f"Unsupported filter: {f!r}")


def atlas_filters(filters: SearchFilters) -> List[Dict[str, Any]]:
    """
    Atlas Search `compound.filter` clauses. Active-only is always first;
    the list is never empty, so `filter: []` can't reach $search.
    """
    return [ACTIVE_ONLY] + [_clause(f) for f in filters.clauses]


def to_mql(clause: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Converts an equals/range clause to MQL for $match."""
    if "equals" in clause:
        eq = clause["equals"]
        return {eq["path"]: eq.get("value")}
    if "range" in clause:
        r = clause["range"]
        ops: Dict[str, Any] = {}
        if "gte" in r: ops["$gte"] = r["gte"]
        if "lte" in r: ops["$lte"] = r["lte"]
        return {r["path"]: ops} if ops else None
    return None


def mql_filters(filters: SearchFilters) -> Dict[str, Any]:
    """
    Record-store equivalent of atlas_filters(), derived from the same clauses
    so both backends always filter on the same set.
    """
    match: Dict[str, Any] = {}
    for clause in atlas_filters(filters):
        conv = to_mql(clause)
        if not conv:
            continue
        for path, cond in conv.items():
            if isinstance(cond, dict) and isinstance(match.get(path), dict):
                match[path] = {**match[path], **cond}
            else:
                match[path] = cond
    return match
