# discovery/domain/repositories/view_event_repo.py
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase

from discovery.core.errors import StoreError, translate_driver_errors
from discovery.domain.models.product import ProductSummary, Product
from discovery.domain.models.views import DailyStat, MostViewedEntry, ViewEvent, ViewedProductEntry
from discovery.domain.repositories.product_repo import category_lookup, paged_facet, unpack_paged

HISTORY_SORT_PATHS = {
    "viewedAt": "viewed_at",
    "name": "product.name",
    "price": "product.price",
    "rating": "product.rating",
}


# ---------- Match / pipeline builders -------------------------------------------

def user_window(user_id: Optional[int], since: datetime) -> Dict[str, Any]:
    """Events since `since`; user_id None means every user (admin aggregates)."""
    match: Dict[str, Any] = {"viewed_at": {"$gte": since}}
    if user_id is not None:
        match["user_id"] = user_id
    return match


def guest_window(session_id: str, since: datetime) -> Dict[str, Any]:
    return {"session_id": session_id, "user_id": None, "viewed_at": {"$gte": since}}


def _join_product(active_only: bool) -> List[Dict[str, Any]]:
    stages: List[Dict[str, Any]] = [
        {"$lookup": {"from": "products", "localField": "_id", "foreignField": "product_id", "as": "product"}},
        {"$unwind": "$product"},
    ]
    if active_only:
        stages.append({"$match": {"product.is_active": True}})
    stages += category_lookup(local_field="product.category_id", as_field="product.category")
    return stages


def build_history_pipeline(
    match: Dict[str, Any],
    sort_by: str,
    sort_order: int,
    skip: int,
    limit: int,
) -> List[Dict[str, Any]]:
    """
    Collapses to the latest event per product, keeps only active products,
    then sorts and pages the collapsed list.
    """
    path = HISTORY_SORT_PATHS.get(sort_by, "viewed_at")
    return [
        {"$match": match},
        {"$sort": {"viewed_at": -1}},
        {"$group": {"_id": "$product_id", "view_id": {"$first": "$_id"}, "viewed_at": {"$first": "$viewed_at"}}},
        *_join_product(active_only=True),
        {"$sort": {path: sort_order, "_id": 1}},
        paged_facet(skip, limit),
    ]


def build_top_products_pipeline(
    match: Dict[str, Any],
    skip: int,
    limit: int,
    *,
    active_only: bool,
) -> List[Dict[str, Any]]:
    return [
        {"$match": match},
        {"$group": {"_id": "$product_id", "view_count": {"$sum": 1}, "last_viewed_at": {"$max": "$viewed_at"}}},
        *_join_product(active_only=active_only),
        {"$sort": {"view_count": -1, "last_viewed_at": -1, "_id": 1}},
        paged_facet(skip, limit),
    ]


def build_daily_pipeline(match: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"$match": match},
        {"$group": {
            "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$viewed_at", "timezone": "UTC"}},
            "view_count": {"$sum": 1},
        }},
        {"$sort": {"_id": 1}},
    ]


def _event_from_doc(doc: Dict[str, Any]) -> ViewEvent:
    doc = dict(doc)
    doc["view_id"] = str(doc.pop("_id"))
    return ViewEvent.model_validate(doc)


def _top_entry(doc: Dict[str, Any]) -> MostViewedEntry:
    return MostViewedEntry(
        product=ProductSummary.of(Product.model_validate(doc["product"])),
        view_count=int(doc["view_count"]),
        last_viewed_at=doc.get("last_viewed_at"),
    )


# ---------- Repository --------------------------------------------------------

class ViewEventRepo:
    """
    Append-only store of ViewEvents ('viewed_products'). Events are never
    updated; deletes only happen through a user-scoped history clear.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "viewed_products"):
        self.col = db[collection_name]

    @translate_driver_errors(StoreError)
    async def most_recent_for_product(self, product_id: int, since: datetime) -> Optional[ViewEvent]:
        doc = await self.col.find_one(
            {"product_id": product_id, "viewed_at": {"$gte": since}},
            sort=[("viewed_at", -1)],
        )
        return _event_from_doc(doc) if doc else None

    @translate_driver_errors(StoreError)
    async def insert(
        self,
        *,
        product_id: int,
        viewed_at: datetime,
        user_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ViewEvent:
        doc = {
            "user_id": user_id,
            "product_id": product_id,
            "viewed_at": viewed_at,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "session_id": session_id,
        }
        res = await self.col.insert_one(doc)
        return ViewEvent(view_id=str(res.inserted_id), **doc)

    @translate_driver_errors(StoreError)
    async def history(
        self,
        match: Dict[str, Any],
        *,
        sort_by: str,
        sort_order: int,
        skip: int,
        limit: int,
    ) -> Tuple[List[ViewedProductEntry], int]:
        pipeline = build_history_pipeline(match, sort_by, sort_order, skip, limit)
        docs = await self.col.aggregate(pipeline).to_list(length=1)
        items, total = unpack_paged(docs)
        entries = [
            ViewedProductEntry(view_id=str(d["view_id"]), viewed_at=d["viewed_at"], product=Product.model_validate(d["product"]))
            for d in items
        ]
        return entries, total

    @translate_driver_errors(StoreError)
    async def delete_for_user(self, user_id: int, product_id: Optional[int] = None) -> int:
        match: Dict[str, Any] = {"user_id": user_id}
        if product_id is not None:
            match["product_id"] = product_id
        res = await self.col.delete_many(match)
        return res.deleted_count

    @translate_driver_errors(StoreError)
    async def count(self, match: Dict[str, Any]) -> int:
        return await self.col.count_documents(match)

    @translate_driver_errors(StoreError)
    async def count_distinct_products(self, match: Dict[str, Any]) -> int:
        pipeline = [{"$match": match}, {"$group": {"_id": "$product_id"}}, {"$count": "n"}]
        docs = await self.col.aggregate(pipeline).to_list(length=1)
        return int(docs[0]["n"]) if docs else 0

    @translate_driver_errors(StoreError)
    async def top_products(
        self,
        match: Dict[str, Any],
        *,
        skip: int = 0,
        limit: int = 5,
        active_only: bool = False,
    ) -> Tuple[List[MostViewedEntry], int]:
        pipeline = build_top_products_pipeline(match, skip, limit, active_only=active_only)
        docs = await self.col.aggregate(pipeline).to_list(length=1)
        items, total = unpack_paged(docs)
        return [_top_entry(d) for d in items], total

    @translate_driver_errors(StoreError)
    async def daily_counts(self, match: Dict[str, Any]) -> List[DailyStat]:
        cursor = self.col.aggregate(build_daily_pipeline(match))
        return [DailyStat(date=d["_id"], view_count=int(d["view_count"])) async for d in cursor]
