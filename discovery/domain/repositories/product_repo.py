# discovery/domain/repositories/product_repo.py

from __future__ import annotations
import re
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pydantic import ValidationError as DocumentShapeError
from pymongo.errors import PyMongoError

from discovery.core.errors import StoreError, short_diagnostic, translate_driver_errors
from discovery.domain.models.product import Product
from discovery.domain.models.query import ListingRequest, SearchFilters, SortField, SortOrder
from discovery.domain.models.similarity import SimilarityCriteria
from discovery.domain.services.filters import mql_filters


# ---------- Pipeline builders ---------------------------------------------------

def category_lookup(local_field: str = "category_id", as_field: str = "category") -> List[Dict[str, Any]]:
    """Joins the product's category as an embedded sub-document (kept when missing)."""
    return [
        {"$lookup": {
            "from": "categories",
            "localField": local_field,
            "foreignField": "category_id",
            "as": as_field,
        }},
        {"$unwind": {"path": f"${as_field}", "preserveNullAndEmptyArrays": True}},
    ]


def substring_pattern(query: str) -> re.Pattern:
    """Case-insensitive literal "contains" pattern; no wildcard or typo tolerance."""
    return re.compile(re.escape(query.strip()), re.IGNORECASE)


def substring_match(query: str) -> Dict[str, Any]:
    rx = {"$regex": substring_pattern(query).pattern, "$options": "i"}
    return {"$or": [{"name": rx}, {"description": rx}, {"category.name": rx}]}


def substring_sort(sort_by: SortField, sort_order: SortOrder) -> Dict[str, int]:
    """
    Relevance has no meaning without scoring: every row scores the same, so
    the tiebreak (product id ascending) is the whole order.
    """
    path = sort_by.storage_path
    if path is None:
        return {"product_id": 1}
    return {path: sort_order.direction, "product_id": 1}


def paged_facet(skip: int, limit: int, tail: Sequence[Dict[str, Any]] = ()) -> Dict[str, Any]:
    """Page and total from one execution of the same pipeline; `tail` runs on the page rows only."""
    return {"$facet": {
        "items": [{"$skip": skip}, {"$limit": limit}, *tail],
        "total": [{"$count": "n"}],
    }}


def unpack_paged(docs: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], int]:
    if not docs:
        return [], 0
    head = docs[0]
    total = head.get("total") or []
    return head.get("items") or [], int(total[0]["n"]) if total else 0


def build_substring_pipeline(
    query: str,
    filters: SearchFilters,
    sort_by: SortField,
    sort_order: SortOrder,
    skip: int,
    limit: int,
) -> List[Dict[str, Any]]:
    return [
        {"$match": mql_filters(filters)},
        *category_lookup(),
        {"$match": substring_match(query)},
        {"$sort": substring_sort(sort_by, sort_order)},
        paged_facet(skip, limit),
    ]


def listing_match(request: ListingRequest) -> Dict[str, Any]:
    match: Dict[str, Any] = {"is_active": True}
    if request.category_id is not None:
        match["category_id"] = request.category_id
    if request.name:
        match["name"] = {"$regex": substring_pattern(request.name).pattern, "$options": "i"}
    return match


def build_listing_pipeline(request: ListingRequest) -> List[Dict[str, Any]]:
    return [
        {"$match": listing_match(request)},
        {"$sort": {request.sort_by.storage_path: request.sort_order.direction, "product_id": 1}},
        paged_facet(request.offset, request.page_size, [*category_lookup(), {"$project": {"_id": 0}}]),
    ]


def similar_match(seed_id: int, criteria: SimilarityCriteria) -> Dict[str, Any]:
    """Active products other than the seed matching ANY of the criteria."""
    anyof: List[Dict[str, Any]] = [
        {"category_id": criteria.category_id},
        {"price": {"$gte": criteria.price_range.min, "$lte": criteria.price_range.max}},
    ]
    if criteria.rating_range is not None:
        anyof.append({"rating": {"$gte": criteria.rating_range.min, "$lte": criteria.rating_range.max}})
    return {"is_active": True, "product_id": {"$ne": seed_id}, "$or": anyof}


def build_similar_pipeline(seed_id: int, criteria: SimilarityCriteria, limit: int) -> List[Dict[str, Any]]:
    return [
        {"$match": similar_match(seed_id, criteria)},
        {"$addFields": {"_same_category": {
            "$cond": [{"$eq": ["$category_id", criteria.category_id]}, 1, 0],
        }}},
        {"$sort": {"_same_category": -1, "views": -1, "created_at": -1, "product_id": 1}},
        {"$limit": limit},
        *category_lookup(),
        {"$project": {"_id": 0, "_same_category": 0}},
    ]


def build_popular_pipeline(exclude_ids: Sequence[int], limit: int) -> List[Dict[str, Any]]:
    return [
        {"$match": {"is_active": True, "product_id": {"$nin": list(exclude_ids)}}},
        {"$sort": {"views": -1, "product_id": 1}},
        {"$limit": limit},
        *category_lookup(),
        {"$project": {"_id": 0}},
    ]


# ---------- Repository --------------------------------------------------------

class ProductRepo:
    """
    Record-store adapter over the 'products' and 'categories' collections.
    Everything the discovery core reads from the primary store goes through here.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    @translate_driver_errors(StoreError)
    async def get_by_id(self, product_id: int, *, active_only: bool = True) -> Optional[Product]:
        match: Dict[str, Any] = {"product_id": product_id}
        if active_only:
            match["is_active"] = True
        pipeline = [{"$match": match}, {"$limit": 1}, *category_lookup(), {"$project": {"_id": 0}}]
        docs = await self.col.aggregate(pipeline).to_list(length=1)
        return Product.model_validate(docs[0]) if docs else None

    @translate_driver_errors(StoreError)
    async def search_substring(
        self,
        query: str,
        filters: SearchFilters,
        sort_by: SortField,
        sort_order: SortOrder,
        skip: int,
        limit: int,
    ) -> Tuple[List[Product], int]:
        pipeline = build_substring_pipeline(query, filters, sort_by, sort_order, skip, limit)
        docs = await self.col.aggregate(pipeline).to_list(length=1)
        items, total = unpack_paged(docs)
        return [Product.model_validate(d) for d in items], total

    @translate_driver_errors(StoreError)
    async def list_active(self, request: ListingRequest) -> Tuple[List[Product], int]:
        docs = await self.col.aggregate(build_listing_pipeline(request)).to_list(length=1)
        items, total = unpack_paged(docs)
        return [Product.model_validate(d) for d in items], total

    @translate_driver_errors(StoreError)
    async def suggest_names(self, query: str, limit: int) -> List[str]:
        rx = {"$regex": substring_pattern(query).pattern, "$options": "i"}
        cursor = (
            self.col.find({"is_active": True, "name": rx}, {"_id": 0, "name": 1})
            .sort("views", -1)
            .limit(limit)
        )
        return [doc["name"] async for doc in cursor]

    @translate_driver_errors(StoreError)
    async def find_similar(self, seed_id: int, criteria: SimilarityCriteria, limit: int) -> List[Product]:
        docs = await self.col.aggregate(build_similar_pipeline(seed_id, criteria, limit)).to_list(length=limit)
        return [Product.model_validate(d) for d in docs]

    @translate_driver_errors(StoreError)
    async def find_popular(self, exclude_ids: Sequence[int], limit: int) -> List[Product]:
        docs = await self.col.aggregate(build_popular_pipeline(exclude_ids, limit)).to_list(length=limit)
        return [Product.model_validate(d) for d in docs]

    @translate_driver_errors(StoreError)
    async def increment_views(self, product_id: int, by: int = 1) -> Optional[int]:
        """Atomic $inc; returns the new counter, None if the product is gone."""
        doc = await self.col.find_one_and_update(
            {"product_id": product_id},
            {"$inc": {"views": by}},
            projection={"_id": 0, "views": 1},
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["views"]) if doc else None

    @translate_driver_errors(StoreError)
    async def count_active(self, match: Optional[Dict[str, Any]] = None) -> int:
        return await self.col.count_documents({"is_active": True, **(match or {})})

    async def iter_with_category(self, batch_size: int = 500) -> AsyncIterator[Product]:
        """
        Every product (active or not) joined with its category, streamed.
        """
        pipeline = [{"$sort": {"product_id": 1}}, *category_lookup(), {"$project": {"_id": 0}}]
        try:
            async for doc in self.col.aggregate(pipeline, batchSize=batch_size):
                yield Product.model_validate(doc)
        except (PyMongoError, DocumentShapeError) as e:
            raise StoreError(diagnostic=short_diagnostic(e)) from e
