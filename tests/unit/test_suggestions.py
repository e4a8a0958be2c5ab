"""
Unit Tests - Suggestion engine
"""
import pytest

from discovery.core.errors import ValidationError
from discovery.domain.models.query import SearchHit, SuggestionRequest
from discovery.domain.services.suggestion_svc import SuggestionService, suggestion_cache_key

from tests.fakes import BrokenRedis, FakeRedis


@pytest.fixture
def completions(catalog, search_repo):
    search_repo.hits["ip"] = [
        SearchHit.model_validate({**catalog.items[1].model_dump(), "score": 2.0}),
    ]
    return search_repo


class TestSuggestionService:
    async def test_primary_completion(self, selector, completions):
        items = await SuggestionService(selector).suggest("iP", 5)

        assert [s.text for s in items] == ["iPhone 15"]
        assert items[0].score == 10.0

    async def test_fallback_substring_by_views(self, selector, completions):
        completions.available = False

        items = await SuggestionService(selector).suggest("o", 3)

        # AirPods Pro (7000) > iPhone 15 (5200) > MacBook Air (4100); inactive iPhone 12 excluded
        assert [s.text for s in items] == ["AirPods Pro", "iPhone 15", "MacBook Air"]
        assert all(s.score == 1.0 for s in items)

    async def test_fallback_after_failed_query(self, selector, completions):
        completions.fail_queries = True
        items = await SuggestionService(selector).suggest("pix", 5)
        assert [s.text for s in items] == ["Pixel 8"]

    async def test_rejects_empty_prefix(self, selector):
        with pytest.raises(ValidationError):
            await SuggestionService(selector).suggest(" ", 5)

    async def test_cached_per_backend(self, selector, completions):
        redis = FakeRedis()
        svc = SuggestionService(selector, redis=redis, cache_ttl=60)

        first = await svc.suggest("ip", 5)
        completions.hits.clear()
        second = await svc.suggest("IP", 5)

        assert second == first
        assert suggestion_cache_key("fulltext", SuggestionRequest.build("ip", 5)) in redis.store

    async def test_degraded_answer_not_served_as_primary(self, selector, completions):
        redis = FakeRedis()
        svc = SuggestionService(selector, redis=redis)

        completions.available = False
        degraded = await svc.suggest("ip", 5)
        completions.available = True
        primary = await svc.suggest("ip", 5)

        assert degraded[0].score == 1.0
        assert primary[0].score == 10.0

    async def test_broken_cache_is_a_miss(self, selector, completions):
        items = await SuggestionService(selector, redis=BrokenRedis()).suggest("ip", 5)
        assert [s.text for s in items] == ["iPhone 15"]
