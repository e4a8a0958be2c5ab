# discovery/domain/repositories/search_index_repo.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReplaceOne
from pymongo.errors import BulkWriteError
from pymongo.operations import SearchIndexModel

from discovery.core.errors import MAX_DIAGNOSTIC_LEN, BackendUnavailableError, translate_driver_errors
from discovery.domain.models.product import Product

"""
Note:
    - Write side of the secondary index: schema + SearchDocument upserts/deletes.
    - The synchronizer is the only caller; queries live in ProductSearchRepo.
"""

_NUMBER = {"type": "number"}
_INT = {"type": "number", "representation": "int64"}
_TEXT = {"type": "string", "analyzer": "lucene.standard"}


def search_index_definition() -> Dict[str, Any]:
    """
    Atlas Search mapping for SearchDocuments. `name` is indexed three ways:
    analyzed text (+ `exact` keyword sub-field), edge-gram autocomplete, and
    a lowercase token so it can be sorted on.
    """
    return {
        "mappings": {
            "dynamic": False,
            "fields": {
                "product_id": _INT,
                "category_id": _INT,
                "name": [
                    {**_TEXT, "multi": {"exact": {"type": "string", "analyzer": "lucene.keyword"}}},
                    {"type": "autocomplete", "tokenization": "edgeGram",
                     "minGrams": 1, "maxGrams": 25, "foldDiacritics": True},
                    {"type": "token", "normalizer": "lowercase"},
                ],
                "description": _TEXT,
                "category_name": _TEXT,
                "category_description": _TEXT,
                "price": _NUMBER,
                "original_price": _NUMBER,
                "discount": _NUMBER,
                "views": _NUMBER,
                "rating": _NUMBER,
                "rating_count": _NUMBER,
                "stock": _NUMBER,
                "status": {"type": "token"},
                "image_url": {"type": "token"},
                "is_active": {"type": "boolean"},
                "created_at": {"type": "date"},
                "updated_at": {"type": "date"},
            },
        }
    }


def _number(value: Optional[float]) -> Optional[float]:
    return None if value is None else float(value)


def to_search_document(product: Product) -> Dict[str, Any]:
    """
    Flattened, read-optimized projection of one product plus its category.
    Absent values stay null: Atlas leaves null fields unindexed, so range
    filters skip them the same way a $match on the record store does.
    """
    category = product.category
    return {
        "_id": product.product_id,
        "product_id": product.product_id,
        "name": product.name,
        "description": product.description,
        "price": float(product.price),
        "original_price": _number(product.original_price),
        "discount": float(product.discount or 0),
        "views": product.views,
        "rating": _number(product.rating),
        "rating_count": product.rating_count,
        "status": product.status.value,
        "stock": product.stock,
        "image_url": product.image_url,
        "category_id": product.category_id,
        "category_name": category.name if category else None,
        "category_description": category.description if category else None,
        "is_active": product.is_active,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
        "indexed_at": datetime.now(timezone.utc),
    }


class SearchIndexRepo:
    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str, index_name: str):
        self.db = db
        self.collection_name = collection_name
        self.col = db[collection_name]
        self.index = index_name

    @translate_driver_errors(BackendUnavailableError)
    async def index_exists(self) -> bool:
        docs = await self.col.aggregate([{"$listSearchIndexes": {"name": self.index}}]).to_list(length=1)
        return bool(docs)

    @translate_driver_errors(BackendUnavailableError)
    async def create_index(self) -> str:
        # Atlas refuses search indexes on collections that don't exist yet
        if self.collection_name not in await self.db.list_collection_names():
            await self.db.create_collection(self.collection_name)
        model = SearchIndexModel(definition=search_index_definition(), name=self.index)
        return await self.col.create_search_index(model)

    @translate_driver_errors(BackendUnavailableError)
    async def upsert_many(self, docs: Iterable[Dict[str, Any]]) -> Tuple[int, int, List[str]]:
        """
        Keyed replace-with-upsert, unordered. Returns (written, failed, errors);
        documents written before a failure stay written.
        """
        docs = list(docs)
        ops = [ReplaceOne({"_id": d["_id"]}, d, upsert=True) for d in docs]
        if not ops:
            return 0, 0, []
        try:
            res = await self.col.bulk_write(ops, ordered=False)
            return res.matched_count + res.upserted_count, 0, []
        except BulkWriteError as e:
            details = e.details or {}
            write_errors = details.get("writeErrors") or []
            written = int(details.get("nMatched", 0)) + int(details.get("nUpserted", 0))
            errors = [
                f"product_id={docs[w.get('index', 0)]['_id']}: {str(w.get('errmsg', ''))[:MAX_DIAGNOSTIC_LEN]}"
                for w in write_errors
            ]
            return written, len(write_errors), errors

    @translate_driver_errors(BackendUnavailableError)
    async def delete_one(self, product_id: int) -> bool:
        res = await self.col.delete_one({"_id": product_id})
        return res.deleted_count > 0

    @translate_driver_errors(BackendUnavailableError)
    async def delete_except(self, keep_ids: Iterable[int]) -> int:
        """Drops documents whose product is no longer active (or no longer exists)."""
        res = await self.col.delete_many({"_id": {"$nin": list(keep_ids)}})
        return res.deleted_count
