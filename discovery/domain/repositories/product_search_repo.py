# discovery/domain/repositories/product_search_repo.py
from __future__ import annotations
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from discovery.core.errors import BackendUnavailableError, translate_driver_errors
from discovery.domain.models.product import Category
from discovery.domain.models.query import SearchHit, SearchRequest, SortField, Suggestion
from discovery.domain.services.constants import (
    CATEGORY_NAME_BOOST,
    DESCRIPTION_BOOST,
    FUZZY_MAX_EXPANSIONS,
    HIGHLIGHT_FIELDS,
    HIGHLIGHT_POST_TAG,
    HIGHLIGHT_PRE_TAG,
    NAME_PHRASE_BOOST,
)
from discovery.domain.services.filters import ACTIVE_ONLY, atlas_filters

logger = logging.getLogger(__name__)


# ---------- Query builders ----------------------------------------------------

def fuzzy_max_edits(query: str) -> int:
    """
    Edit distance scaled to term length: 0 for 1-2 chars, 1 for 3-5, 2 beyond
    (Atlas caps maxEdits at 2). Uses the longest term of the query.
    """
    longest = max((len(t) for t in query.split()), default=0)
    if longest <= 2:
        return 0
    if longest <= 5:
        return 1
    return 2


def _boost(value: float) -> Dict[str, Any]:
    return {"score": {"boost": {"value": value}}}


def build_compound(request: SearchRequest) -> Dict[str, Any]:
    """
    Weighted disjunction over name/description/category plus the conjunctive
    filter set. At least one `should` clause has to match.
    """
    q = request.query
    name_match: Dict[str, Any] = {"query": q, "path": "name"}
    edits = fuzzy_max_edits(q)
    if edits:
        name_match["fuzzy"] = {"maxEdits": edits, "maxExpansions": FUZZY_MAX_EXPANSIONS}

    return {
        "should": [
            {"text": name_match},
            {"phrase": {"query": q, "path": "name", **_boost(NAME_PHRASE_BOOST)}},
            {"text": {"query": q, "path": "description", **_boost(DESCRIPTION_BOOST)}},
            {"text": {"query": q, "path": "category_name", **_boost(CATEGORY_NAME_BOOST)}},
        ],
        "minimumShouldMatch": 1,
        "filter": atlas_filters(request.filters),
    }


def build_search_stage(index: str, request: SearchRequest) -> Dict[str, Any]:
    stage: Dict[str, Any] = {
        "index": index,
        "compound": build_compound(request),
        "highlight": {"path": list(HIGHLIGHT_FIELDS)},
        "count": {"type": "total"},
    }
    path = request.sort_by.storage_path
    if request.sort_by is not SortField.RELEVANCE and path:
        # explicit field order replaces score order; ties by id ascending
        stage["sort"] = {path: request.sort_order.direction, "product_id": 1}
    return stage


def build_search_pipeline(index: str, request: SearchRequest) -> List[Dict[str, Any]]:
    """
    One execution yields both the page and the exact total ($$SEARCH_META).
    """
    return [
        {"$search": build_search_stage(index, request)},
        {"$facet": {
            "docs": [
                {"$skip": request.offset},
                {"$limit": request.page_size},
                {"$addFields": {
                    "score": {"$meta": "searchScore"},
                    "highlights": {"$meta": "searchHighlights"},
                }},
                {"$project": {"_id": 0}},
            ],
            "meta": [{"$replaceWith": "$$SEARCH_META"}, {"$limit": 1}],
        }},
    ]


def build_autocomplete_pipeline(index: str, prefix: str, limit: int) -> List[Dict[str, Any]]:
    return [
        {"$search": {
            "index": index,
            "compound": {
                "must": [{"autocomplete": {"query": prefix, "path": "name"}}],
                "filter": [ACTIVE_ONLY],
            },
        }},
        {"$limit": limit},
        {"$project": {"_id": 0, "text": "$name", "score": {"$meta": "searchScore"}}},
    ]


def render_highlights(raw: Optional[List[Dict[str, Any]]]) -> Dict[str, List[str]]:
    """
    Atlas `searchHighlights` -> {field: [fragment, ...]} with hits wrapped in
    the highlight marker.
    """
    out: Dict[str, List[str]] = {}
    for hl in raw or []:
        path = hl.get("path")
        if isinstance(path, dict):           # multi-analyzer path: {"value": "name", "multi": ...}
            path = path.get("value")
        if not path:
            continue
        fragment = "".join(
            f"{HIGHLIGHT_PRE_TAG}{t.get('value', '')}{HIGHLIGHT_POST_TAG}" if t.get("type") == "hit"
            else t.get("value", "")
            for t in hl.get("texts") or []
        )
        if fragment:
            out.setdefault(path, []).append(fragment)
    return out


def hit_from_document(doc: Dict[str, Any]) -> SearchHit:
    """Flattened SearchDocument -> SearchHit with the category re-nested."""
    doc = dict(doc)
    category_name = doc.pop("category_name", None)
    category_description = doc.pop("category_description", None)
    highlights = doc.pop("highlights", None)
    score = float(doc.pop("score", 0.0) or 0.0)
    if category_name is not None and doc.get("category_id") is not None:
        doc["category"] = Category(
            category_id=doc["category_id"],
            name=category_name,
            description=category_description or None,
        )
    return SearchHit.model_validate({**doc, "score": score, "highlight": render_highlights(highlights)})


# ---------- Repository --------------------------------------------------------

class ProductSearchRepo:
    """
    Read side of the Atlas Search index on the denormalized `search_products`
    collection. Driver failures surface as BackendUnavailableError.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str, index_name: str):
        self.col: AsyncIOMotorCollection = db[collection_name]
        self.index = index_name

    async def is_available(self, timeout_s: float) -> bool:
        """
        Liveness probe: the search index must be listed and queryable within
        `timeout_s`. Never raises.
        """
        async def _probe() -> bool:
            cursor = self.col.aggregate(
                [{"$listSearchIndexes": {"name": self.index}}],
                maxTimeMS=int(timeout_s * 1000),
            )
            docs = await cursor.to_list(length=1)
            return bool(docs) and bool(docs[0].get("queryable", False))

        try:
            return await asyncio.wait_for(_probe(), timeout=timeout_s)
        except Exception as e:
            logger.debug("search probe failed index=%s err=%r", self.index, e)
            return False

    @translate_driver_errors(BackendUnavailableError)
    async def search(self, request: SearchRequest) -> Tuple[List[SearchHit], int]:
        docs = await self.col.aggregate(build_search_pipeline(self.index, request)).to_list(length=1)
        if not docs:
            return [], 0
        head = docs[0]
        meta = (head.get("meta") or [{}])[0]
        total = int(((meta.get("count") or {}).get("total")) or 0)
        return [hit_from_document(d) for d in head.get("docs") or []], total

    @translate_driver_errors(BackendUnavailableError)
    async def autocomplete(self, prefix: str, limit: int) -> List[Suggestion]:
        cursor = self.col.aggregate(build_autocomplete_pipeline(self.index, prefix, limit))
        return [Suggestion(text=d["text"], score=float(d.get("score", 0.0))) async for d in cursor]
