# discovery/db/mongo.py
import logging
from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from discovery.core.config import get_settings
import certifi

logger = logging.getLogger(__name__)
settings = get_settings()

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None


def client_options(*, tls: bool, timeout_ms: int = 6000) -> Dict[str, Any]:
    """Shared Motor options for the record store and the search cluster."""
    opts: Dict[str, Any] = {
        "uuidRepresentation": "standard",
        "serverSelectionTimeoutMS": timeout_ms,
        "connectTimeoutMS": timeout_ms,
    }
    if tls:
        opts["tls"] = True
        opts["tlsCAFile"] = certifi.where()
    return opts


def get_db() -> AsyncIOMotorDatabase:
    assert _db is not None, "Mongo DB not initialized"
    return _db


async def connect():
    """
    Create the record-store client.
    A failed startup ping is logged, not fatal: Motor connects lazily and the
    first real query retries.
    """
    global _client, _db
    _client = AsyncIOMotorClient(settings.MONGO_URI, **client_options(tls=settings.MONGO_TLS))
    _db = _client[settings.MONGO_DB]
    try:
        await _client.admin.command("ping")
        logger.info("Mongo connected (ping ok) db=%s", settings.MONGO_DB)
    except Exception as e:
        logger.warning("Mongo ping at startup failed, lazy connection on first query: %s", e)


async def ensure_indexes():
    """B-tree indexes backing the view-tracking and discovery queries."""
    db = get_db()
    await db["products"].create_index("product_id", unique=True)
    await db["products"].create_index([("is_active", 1), ("category_id", 1), ("views", -1)])
    await db["categories"].create_index("category_id", unique=True)
    events = db["viewed_products"]
    await events.create_index([("user_id", 1), ("viewed_at", -1)])
    await events.create_index([("product_id", 1), ("viewed_at", -1)])
    await events.create_index([("session_id", 1), ("viewed_at", -1)])
    await events.create_index("viewed_at")


async def disconnect():
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
