# discovery/db/search.py
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from discovery.core.config import get_settings
from discovery.db.mongo import client_options

logger = logging.getLogger(__name__)
settings = get_settings()

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None


def get_search_db() -> AsyncIOMotorDatabase:
    assert _db is not None, "Search client not initialized"
    return _db


async def connect():
    """
    Client for the Atlas Search cluster holding the denormalized index.
    Short server-selection timeout: an unreachable search cluster must fail
    fast so requests degrade to the record store instead of hanging.
    """
    global _client, _db
    timeout_ms = max(int(settings.search_probe_timeout_s * 1000), 500)
    _client = AsyncIOMotorClient(
        settings.search_uri,
        **client_options(tls=settings.MONGO_TLS, timeout_ms=timeout_ms),
    )
    _db = _client[settings.search_db_name]
    logger.info("Search client ready db=%s collection=%s index=%s",
                settings.search_db_name, settings.SEARCH_COLLECTION, settings.SEARCH_INDEX_NAME)


async def disconnect():
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
