# discovery/api/v1/routers/health.py
import asyncio
import subprocess
import time

from fastapi import APIRouter

from discovery.core.config import get_settings
from discovery.db import mongo, search
from discovery.db.redis import get_redis
from discovery.domain.repositories.product_search_repo import ProductSearchRepo
from discovery.domain.services.constants import BACKEND_FULLTEXT, BACKEND_SUBSTRING

router = APIRouter(tags=["health"])
START_TIME = time.time()


def _git_sha() -> str:
    try:
        return subprocess.check_output(["git", "rev-parse", "--short", "HEAD"]).decode().strip()
    except Exception:
        return "unknown"


async def _record_store() -> str:
    try:
        await mongo.get_db().command("ping")
        return "ok"
    except Exception as e:
        return f"error: {e}"


async def _search_backend(settings) -> str:
    """Which backend a query issued now would be served by."""
    try:
        repo = ProductSearchRepo(search.get_search_db(), settings.SEARCH_COLLECTION, settings.SEARCH_INDEX_NAME)
        up = await repo.is_available(settings.search_probe_timeout_s)
    except Exception as e:
        return f"error: {e}"
    return BACKEND_FULLTEXT if up else BACKEND_SUBSTRING


async def _redis() -> str:
    r = get_redis()
    if r is None:
        return "skipped"
    try:
        await r.ping()
        return "ok"
    except Exception as e:
        return f"error: {e}"


def overall_status(record_store: str, search_backend: str, redis: str) -> str:
    """
    "error" when the record store (or a configured Redis) fails, "degraded"
    when searches are answered by the substring fallback.
    """
    if record_store != "ok" or redis.startswith("error"):
        return "error"
    if search_backend != BACKEND_FULLTEXT:
        return "degraded"
    return "ok"


@router.get("/health")
async def health():
    settings = get_settings()
    record_store, search_backend, redis = await asyncio.gather(
        _record_store(), _search_backend(settings), _redis(),
    )
    return {
        "status": overall_status(record_store, search_backend, redis),
        "checks": {
            "app_name": settings.APP_NAME,
            "env": settings.APP_ENV,
            "version": settings.GIT_SHA if settings.GIT_SHA != "unknown" else _git_sha(),
            "uptime_seconds": int(time.time() - START_TIME),
            "mongodb": record_store,
            "search_backend": search_backend,
            "search_index": settings.SEARCH_INDEX_NAME,
            "redis": redis,
        },
        "timestamp": int(time.time()),
    }
