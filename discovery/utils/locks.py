# discovery/utils/locks.py
from __future__ import annotations
from redis.asyncio import Redis


class WindowLock:
    """
    Single-instance, self-expiring claim using SET NX PX.
    The first caller inside the window wins; the TTL releases it unless the
    owner gives it back early with release().
    """
    def __init__(self, redis: Redis, prefix: str = "viewdedup"):
        self.redis = redis
        self.prefix = prefix

    def key(self, *parts: object) -> str:
        return ":".join([self.prefix, *(str(p) for p in parts)])

    async def claim(self, key: str, window_ms: int) -> bool:
        """True when this caller took the key; False when someone holds it."""
        ok = await self.redis.set(key, "1", nx=True, px=window_ms)
        return bool(ok)

    async def release(self, key: str) -> None:
        await self.redis.delete(key)
