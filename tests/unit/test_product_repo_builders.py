"""
Unit Tests - Record-store pipelines
"""
import pytest

from discovery.core.errors import InvalidStateError, StoreError
from discovery.domain.models.query import SearchFilters, SortField, SortOrder
from discovery.domain.models.similarity import NumericRange, SimilarityCriteria
from discovery.domain.repositories.product_repo import (
    ProductRepo,
    build_popular_pipeline,
    build_similar_pipeline,
    build_substring_pipeline,
    similar_match,
    substring_match,
    substring_pattern,
    substring_sort,
    unpack_paged,
)
from discovery.domain.services.similar_products_svc import SimilarProductsService


class TestSubstring:
    def test_literal_and_case_insensitive(self):
        rx = substring_pattern("usb-c (2m)")

        assert rx.search("Cable USB-C (2M) braided")
        assert not rx.search("usb-c 2m")

    def test_match_covers_three_fields(self):
        match = substring_match("phone")
        paths = [next(iter(c)) for c in match["$or"]]

        assert paths == ["name", "description", "category.name"]
        assert match["$or"][0]["name"] == {"$regex": "phone", "$options": "i"}

    def test_regex_metacharacters_escaped(self):
        assert substring_match("a.b")["$or"][0]["name"]["$regex"] == r"a\.b"

    def test_relevance_sorts_by_id(self):
        assert substring_sort(SortField.RELEVANCE, SortOrder.DESC) == {"product_id": 1}

    def test_field_sort_with_tiebreak(self):
        assert substring_sort(SortField.VIEWS, SortOrder.DESC) == {"views": -1, "product_id": 1}

    def test_pipeline_shape(self):
        pipeline = build_substring_pipeline(
            "phone", SearchFilters.build(category_id=1), SortField.PRICE, SortOrder.ASC, 20, 10,
        )
        stages = [next(iter(s)) for s in pipeline]

        assert stages == ["$match", "$lookup", "$unwind", "$match", "$sort", "$facet"]
        assert pipeline[0]["$match"] == {"is_active": True, "category_id": 1}
        assert pipeline[-1]["$facet"]["items"] == [{"$skip": 20}, {"$limit": 10}]


class TestPaged:
    def test_unpack(self):
        docs = [{"items": [{"a": 1}], "total": [{"n": 31}]}]
        assert unpack_paged(docs) == ([{"a": 1}], 31)

    def test_unpack_empty(self):
        assert unpack_paged([]) == ([], 0)
        assert unpack_paged([{"items": [], "total": []}]) == ([], 0)


class TestSimilarPipeline:
    criteria = SimilarityCriteria(
        category_id=2,
        price_range=NumericRange(min=80, max=120),
        rating_range=NumericRange(min=3.5, max=4.5),
    )

    def test_any_of_criteria(self):
        match = similar_match(10, self.criteria)

        assert match["is_active"] is True
        assert match["product_id"] == {"$ne": 10}
        assert match["$or"] == [
            {"category_id": 2},
            {"price": {"$gte": 80, "$lte": 120}},
            {"rating": {"$gte": 3.5, "$lte": 4.5}},
        ]

    def test_no_rating_criterion(self):
        criteria = self.criteria.model_copy(update={"rating_range": None})
        assert len(similar_match(10, criteria)["$or"]) == 2

    def test_same_category_ranked_first(self):
        pipeline = build_similar_pipeline(10, self.criteria, 8)
        sort = next(s["$sort"] for s in pipeline if "$sort" in s)

        assert list(sort) == ["_same_category", "views", "created_at", "product_id"]
        assert sort["_same_category"] == -1
        assert {"$limit": 8} in pipeline

    def test_popular_excludes(self):
        pipeline = build_popular_pipeline([1, 2], 3)

        assert pipeline[0]["$match"] == {"is_active": True, "product_id": {"$nin": [1, 2]}}
        assert pipeline[1]["$sort"] == {"views": -1, "product_id": 1}


class _Cursor:
    def __init__(self, docs):
        self.docs = docs

    async def to_list(self, length=None):
        return self.docs[:length]


class _Collection:
    """Answers every aggregate with the same stored documents"""

    def __init__(self, docs):
        self.docs = docs

    def aggregate(self, pipeline, **kw):
        return _Cursor(self.docs)


class TestStoredDocuments:
    async def test_out_of_range_document_is_store_error(self):
        repo = ProductRepo({"products": _Collection([
            {"product_id": 8, "name": "Broken", "price": 10.0, "rating": 7.5, "category_id": 1},
        ])})

        with pytest.raises(StoreError) as exc:
            await repo.get_by_id(8)
        assert exc.value.status_code == 500
        assert "rating" in exc.value.diagnostic

    async def test_negative_price_reaches_state_check(self):
        repo = ProductRepo({"products": _Collection([
            {"product_id": 8, "name": "Refund voucher", "price": -5.0, "category_id": 1},
        ])})

        with pytest.raises(InvalidStateError):
            await SimilarProductsService(repo).similar(8)
