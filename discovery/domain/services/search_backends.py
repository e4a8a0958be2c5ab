# discovery/domain/services/search_backends.py
from __future__ import annotations
import logging
from typing import Awaitable, Callable, List, Protocol, Tuple, TypeVar

from discovery.core.errors import BackendUnavailableError
from discovery.domain.models.product import Product
from discovery.domain.models.query import (
    Pagination,
    SearchHit,
    SearchPage,
    SearchRequest,
    Suggestion,
    SuggestionRequest,
)
from discovery.domain.services.constants import BACKEND_FULLTEXT, BACKEND_SUBSTRING, FALLBACK_SCORE

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SearchBackend(Protocol):
    """One query contract, whichever store answers it."""

    name: str

    async def search(self, request: SearchRequest) -> SearchPage: ...

    async def suggest(self, request: SuggestionRequest) -> List[Suggestion]: ...


class FullTextBackend:
    """Atlas Search: weighted fuzzy/phrase scoring, real highlights, completion field."""

    name = BACKEND_FULLTEXT

    def __init__(self, search_repo):
        self.repo = search_repo

    async def search(self, request: SearchRequest) -> SearchPage:
        hits, total = await self.repo.search(request)
        return SearchPage(
            products=hits,
            pagination=Pagination.build(request.page, request.page_size, total),
            backend=self.name,
        )

    async def suggest(self, request: SuggestionRequest) -> List[Suggestion]:
        return await self.repo.autocomplete(request.prefix, request.limit)


def fallback_hit(product: Product) -> SearchHit:
    """Uniform score and the literal field values standing in for highlights."""
    highlight = {"name": [product.name]}
    if product.description:
        highlight["description"] = [product.description]
    return SearchHit.model_validate({**product.model_dump(), "score": FALLBACK_SCORE, "highlight": highlight})


class SubstringBackend:
    """
    Record-store rendition: case-insensitive "contains" on name/description/
    category name, same filters, same sort and pagination contract.
    """

    name = BACKEND_SUBSTRING

    def __init__(self, product_repo):
        self.repo = product_repo

    async def search(self, request: SearchRequest) -> SearchPage:
        products, total = await self.repo.search_substring(
            request.query,
            request.filters,
            request.sort_by,
            request.sort_order,
            request.offset,
            request.page_size,
        )
        return SearchPage(
            products=[fallback_hit(p) for p in products],
            pagination=Pagination.build(request.page, request.page_size, total),
            backend=self.name,
        )

    async def suggest(self, request: SuggestionRequest) -> List[Suggestion]:
        names = await self.repo.suggest_names(request.prefix, request.limit)
        return [Suggestion(text=n, score=FALLBACK_SCORE) for n in names]


class BackendSelector:
    """
    Picks the backend for one request. The probe runs once per request and is
    injectable; a full-text failure after a passing probe still degrades.
    """

    def __init__(
        self,
        primary: SearchBackend,
        fallback: SearchBackend,
        probe: Callable[[], Awaitable[bool]],
    ):
        self.primary = primary
        self.fallback = fallback
        self.probe = probe

    async def select(self) -> SearchBackend:
        if await self.probe():
            return self.primary
        logger.warning("search index unreachable, degrading to %s backend", self.fallback.name)
        return self.fallback

    async def execute(
        self,
        backend: SearchBackend,
        op: Callable[[SearchBackend], Awaitable[T]],
    ) -> Tuple[T, SearchBackend]:
        if backend is self.fallback:
            return await op(self.fallback), self.fallback
        try:
            return await op(backend), backend
        except BackendUnavailableError as e:
            logger.warning(
                "%s backend failed mid-request (%s), degrading to %s",
                backend.name, e.diagnostic, self.fallback.name,
            )
            return await op(self.fallback), self.fallback

    async def run(self, op: Callable[[SearchBackend], Awaitable[T]]) -> T:
        result, _ = await self.execute(await self.select(), op)
        return result
