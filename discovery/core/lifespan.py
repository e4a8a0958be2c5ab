# discovery/core/lifespan.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from discovery.db import mongo, search, redis as r
from discovery.core.config import get_settings
from discovery.core.errors import DiscoveryError

logger = logging.getLogger(__name__)


async def _ensure_search_schema(settings) -> None:
    # imported here so the db modules stay free of domain imports at startup
    from discovery.domain.repositories.product_repo import ProductRepo
    from discovery.domain.repositories.search_index_repo import SearchIndexRepo
    from discovery.domain.services.index_sync_svc import IndexSynchronizer

    sync = IndexSynchronizer(
        ProductRepo(mongo.get_db()),
        SearchIndexRepo(search.get_search_db(), settings.SEARCH_COLLECTION, settings.SEARCH_INDEX_NAME),
    )
    try:
        await sync.ensure_schema()
    except DiscoveryError as e:
        # search is optional at runtime: queries fall back to the record store
        logger.error("Search index schema not ensured: %s (%s)", e.message, e.diagnostic)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    # Mongo is mandatory
    try:
        await mongo.connect()
    except Exception as e:
        logger.error("Mongo connection failed: %s", e)
        raise
    try:
        await mongo.ensure_indexes()
    except Exception as e:
        logger.warning("Mongo index creation skipped: %s", e)

    # Search cluster: lazily connected, probed per request
    await search.connect()
    if settings.SEARCH_ENSURE_SCHEMA_ON_STARTUP:
        await _ensure_search_schema(settings)

    # Redis optional
    await r.connect()

    # Application runs
    yield

    # --- Shutdown ---
    try:
        await r.disconnect()
    except Exception as e:
        logger.warning("Redis disconnect failed: %s", e)

    await search.disconnect()
    await mongo.disconnect()
    logger.info("Mongo disconnected")
