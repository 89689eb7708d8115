import asyncio
import json
import logging
from typing import Any, Optional

import redis.asyncio as redis_async

from app.core.config import settings

logger = logging.getLogger(__name__)


class IdempotencyStore:
    """Simple pluggable idempotency store.

    Uses Redis when REDIS_URL is provided. Otherwise it keeps an in-memory
    store with TTL cleanup, which is enough for a single-process deployment.
    """

    def __init__(self, redis_url: Optional[str] = None):
        self._use_redis = bool(redis_url)
        self._cleanup_task = None
        if self._use_redis:
            self._client = redis_async.from_url(redis_url)
        else:
            # in-memory store: key -> (value_json, expire_at)
            self._store = {}
            self._lock = asyncio.Lock()

    def _ensure_cleanup(self):
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())

    async def get(self, key: str) -> Optional[Any]:
        if self._use_redis:
            raw = await self._client.get(key)
            if not raw:
                return None
            try:
                return json.loads(raw)
            except ValueError:
                logger.warning(f"Discarding unreadable idempotency entry for key {key[:8]}...")
                return None

        self._ensure_cleanup()
        async with self._lock:
            entry = self._store.get(key)
            if not entry:
                return None
            value_json, expire_at = entry
            if expire_at and expire_at < asyncio.get_running_loop().time():
                del self._store[key]
                return None
            return json.loads(value_json)

    async def set(self, key: str, value: Any, ttl_seconds: int = 24 * 3600):
        raw = json.dumps(value, default=str)
        if self._use_redis:
            await self._client.set(key, raw, ex=ttl_seconds)
            return

        self._ensure_cleanup()
        async with self._lock:
            expire_at = asyncio.get_running_loop().time() + ttl_seconds if ttl_seconds else None
            self._store[key] = (raw, expire_at)

    async def close(self):
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
        if self._use_redis:
            await self._client.aclose()

    async def _cleanup_loop(self):
        try:
            while True:
                await asyncio.sleep(60)
                now = asyncio.get_running_loop().time()
                async with self._lock:
                    keys_to_delete = [k for k, (_, exp) in self._store.items() if exp and exp < now]
                    for k in keys_to_delete:
                        del self._store[k]
        except asyncio.CancelledError:
            return


# Singleton instance
_STORE: Optional[IdempotencyStore] = None

def get_idempotency_store() -> IdempotencyStore:
    global _STORE
    if _STORE is None:
        _STORE = IdempotencyStore(settings.REDIS_URL)
    return _STORE
