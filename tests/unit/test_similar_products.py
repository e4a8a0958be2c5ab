"""
Unit Tests - Similarity recommender
"""
import pytest

from discovery.core.errors import InvalidStateError, NotFoundError, ValidationError
from discovery.domain.services.similar_products_svc import SimilarProductsService, build_criteria, rating_band

from tests.fakes import AUDIO, LAPTOPS, FakeProductRepo, make_product


class TestCriteria:
    def test_bands(self):
        criteria = build_criteria(make_product(1, "Seed", price=100.0, rating=4.8))

        assert (criteria.price_range.min, criteria.price_range.max) == (80.0, 120.0)
        assert (criteria.rating_range.min, criteria.rating_range.max) == (4.3, 5.0)

    def test_rating_band_clamped_low(self):
        band = rating_band(0.3)
        assert (band.min, band.max) == (0.0, 0.8)

    @pytest.mark.parametrize("rating", [None, 0.0])
    def test_no_rating_criterion(self, rating):
        assert rating_band(rating) is None

    def test_non_positive_price(self):
        with pytest.raises(InvalidStateError):
            build_criteria(make_product(1, "Freebie", price=0.0))


class TestSimilarProductsService:
    """Tests for SimilarProductsService.similar"""

    async def test_disjunctive_match_and_ordering(self, catalog):
        res = await SimilarProductsService(catalog).similar(2, limit=3)

        # same category first (views desc), then AirPods via rating band
        assert [p.product_id for p in res.similar_products] == [1, 3, 6]
        assert res.original_product.product_id == 2
        assert res.total_found == 3
        assert res.criteria.backfilled == 0

    async def test_seed_and_inactive_excluded(self, catalog):
        res = await SimilarProductsService(catalog).similar(1, limit=50)
        ids = [p.product_id for p in res.similar_products]

        assert 1 not in ids
        assert 7 not in ids
        assert len(ids) == len(set(ids))

    async def test_backfill_with_popular(self):
        repo = FakeProductRepo([
            make_product(1, "Desk lamp", category=AUDIO, price=20.0),
            make_product(2, "Gaming laptop", category=LAPTOPS, price=2000.0, views=50),
            make_product(3, "Office laptop", category=LAPTOPS, price=900.0, views=500),
            make_product(4, "Travel laptop", category=LAPTOPS, price=1100.0, views=500),
        ])

        res = await SimilarProductsService(repo).similar(1, limit=2)

        # nothing qualifies; backfill by views desc then id asc
        assert [p.product_id for p in res.similar_products] == [3, 4]
        assert res.criteria.backfilled == 2

    async def test_small_pool_not_padded(self):
        repo = FakeProductRepo([
            make_product(1, "A", price=10.0),
            make_product(2, "B", price=10.0),
            make_product(3, "C", price=10.0, is_active=False),
        ])

        res = await SimilarProductsService(repo).similar(1, limit=8)

        assert [p.product_id for p in res.similar_products] == [2]
        assert res.total_found == 1

    async def test_missing_seed(self, catalog):
        with pytest.raises(NotFoundError):
            await SimilarProductsService(catalog).similar(999)

    async def test_inactive_seed(self, catalog):
        with pytest.raises(NotFoundError):
            await SimilarProductsService(catalog).similar(7)

    async def test_zero_price_seed(self, catalog):
        catalog.add(make_product(20, "Sample", price=0.0))
        with pytest.raises(InvalidStateError):
            await SimilarProductsService(catalog).similar(20)

    @pytest.mark.parametrize("limit", [0, 51])
    async def test_limit_bounds(self, catalog, limit):
        with pytest.raises(ValidationError):
            await SimilarProductsService(catalog).similar(1, limit=limit)
