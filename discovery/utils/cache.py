import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


async def cache_get(redis: Optional[Redis], key: str) -> Any:
    """Cached JSON value or None. A broken cache reads as a miss."""
    if redis is None:
        return None
    try:
        if val := await redis.get(key):
            return json.loads(val)
    except Exception as e:
        logger.warning("cache get failed key=%s err=%s", key, e)
    return None


async def cache_set(redis: Optional[Redis], key: str, value, ex: int = 60) -> None:
    if redis is None:
        return
    try:
        await redis.set(key, json.dumps(value, default=str), ex=ex)
    except Exception as e:
        logger.warning("cache set failed key=%s err=%s", key, e)
