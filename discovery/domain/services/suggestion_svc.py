# discovery/domain/services/suggestion_svc.py
import logging
import time
from typing import List, Optional

from discovery.domain.models.query import Suggestion, SuggestionRequest
from discovery.domain.services.search_backends import BackendSelector
from discovery.utils.cache import cache_get, cache_set

logger = logging.getLogger(__name__)


def suggestion_cache_key(backend: str, request: SuggestionRequest) -> str:
    # keyed by backend so degraded answers never outlive the outage
    return f"sugg:{backend}:{request.limit}:{request.prefix.lower()}"


class SuggestionService:
    def __init__(self, selector: BackendSelector, redis=None, cache_ttl: int = 60):
        self.selector = selector
        self.redis = redis
        self.cache_ttl = cache_ttl

    async def suggest(self, query: Optional[str], limit: int = 5) -> List[Suggestion]:
        request = SuggestionRequest.build(query, limit)
        t0 = time.perf_counter()

        backend = await self.selector.select()
        key = suggestion_cache_key(backend.name, request)
        if (cached := await cache_get(self.redis, key)) is not None:
            logger.debug("suggest cache_hit key=%s", key)
            return [Suggestion.model_validate(x) for x in cached]

        items, used = await self.selector.execute(backend, lambda b: b.suggest(request))
        await cache_set(
            self.redis,
            suggestion_cache_key(used.name, request),
            [s.model_dump() for s in items],
            ex=self.cache_ttl,
        )
        logger.info(
            "suggest done q=%r backend=%s n=%s time=%.3fs",
            request.prefix, used.name, len(items), time.perf_counter() - t0,
        )
        return items
