"""
Redis Connection Management

Redis connection singleton and the server-side browser session store.
Gracefully degrades to an in-process store when Redis is unavailable.
"""

import json
import logging
import time
from datetime import timedelta
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, TimeoutError, RedisError

from turnero.config import settings

logger = logging.getLogger(__name__)

# App prefix for namespacing (allows multiple apps/versions on same Redis)
APP_PREFIX = "turnero:v1:"


class RedisClient:
    """
    Manages Redis connection as a singleton.

    Features:
    - Connection pooling
    - Automatic retries
    - Timeouts
    - Graceful failure handling (returns None instead of raising)
    """

    _client: Optional[Redis] = None
    _connected: bool = False

    @classmethod
    async def get_client(cls) -> Optional[Redis]:
        """
        Get or create Redis client.

        Returns:
            Redis client or None if connection fails
        """
        if cls._client is not None and cls._connected:
            return cls._client

        try:
            retry = Retry(ExponentialBackoff(), retries=3)

            cls._client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5.0,
                socket_timeout=5.0,
                retry_on_timeout=True,
                retry=retry,
            )

            await cls._client.ping()
            cls._connected = True
            logger.info("Redis connection established successfully")
            return cls._client

        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            cls._connected = False
            cls._client = None
            return None

    @classmethod
    async def close(cls) -> None:
        """Close Redis connection."""
        if cls._client is not None:
            try:
                await cls._client.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error(f"Error closing Redis connection: {e}")
            finally:
                cls._client = None
                cls._connected = False

    @classmethod
    def is_connected(cls) -> bool:
        """Check if Redis is connected."""
        return cls._connected


async def get_redis() -> Optional[Redis]:
    """Return the Redis client, or None when Redis is unreachable."""
    return await RedisClient.get_client()


class SessionStore:
    """
    Key-value store for browser sessions.

    Keys (with namespace):
    - turnero:v1:session:{session_key} -> session data (JSON)

    Only `get`, `put` and `delete` are exposed. Values are plain dicts.
    Falls back to an in-process dict when Redis is unavailable, which
    keeps a single-worker development server usable. Fallback entries
    expire after the same TTL and stale ones are dropped on every access.
    """

    SESSION_PREFIX = f"{APP_PREFIX}session:"

    def __init__(self, redis_client: Optional[Redis], ttl: Optional[int] = None):
        self.redis = redis_client
        self.ttl = ttl or settings.session_ttl
        # key -> (monotonic expiry, value)
        self._in_memory_fallback: dict[str, tuple[float, dict[str, Any]]] = {}

    def _key(self, key: str) -> str:
        return f"{self.SESSION_PREFIX}{key}"

    def _evict_expired(self) -> None:
        now = time.monotonic()
        for key in [k for k, (expires_at, _) in self._in_memory_fallback.items() if expires_at <= now]:
            del self._in_memory_fallback[key]

    def _remember(self, key: str, value: dict[str, Any]) -> None:
        self._evict_expired()
        self._in_memory_fallback[key] = (time.monotonic() + self.ttl, dict(value))

    def _recall(self, key: str) -> Optional[dict[str, Any]]:
        self._evict_expired()
        entry = self._in_memory_fallback.get(key)
        return entry[1] if entry else None

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        """
        Get session data.

        Args:
            key: Opaque session key (cookie value)

        Returns:
            Session data dict or None if not found
        """
        if self.redis is None:
            return self._recall(key)

        try:
            data = await self.redis.get(self._key(key))
            if data is None:
                return None
            return json.loads(data)
        except RedisError as e:
            logger.error(f"Failed to get session: {e}")
            return self._recall(key)

    async def put(self, key: str, value: dict[str, Any]) -> bool:
        """
        Store session data, resetting its TTL.

        Args:
            key: Opaque session key (cookie value)
            value: JSON-serializable session data

        Returns:
            True if stored in Redis, False if only kept in memory
        """
        if self.redis is None:
            logger.warning("Redis unavailable - keeping session in memory")
            self._remember(key, value)
            return False

        try:
            await self.redis.setex(
                self._key(key),
                timedelta(seconds=self.ttl),
                json.dumps(value),
            )
            return True
        except RedisError as e:
            logger.error(f"Failed to store session: {e}")
            self._remember(key, value)
            return False

    async def delete(self, key: str) -> bool:
        """Delete a session. Returns True if something was removed."""
        removed = self._in_memory_fallback.pop(key, None) is not None

        if self.redis is None:
            return removed

        try:
            deleted = await self.redis.delete(self._key(key))
            return bool(deleted) or removed
        except RedisError as e:
            logger.error(f"Failed to delete session: {e}")
            return removed


_session_store: Optional[SessionStore] = None


async def get_session_store() -> SessionStore:
    """
    FastAPI dependency that provides the browser session store.

    The store is rebuilt when Redis comes back after a degraded start.
    """
    global _session_store
    client = await get_redis()
    if _session_store is None:
        _session_store = SessionStore(client)
    elif _session_store.redis is None and client is not None:
        _session_store.redis = client
    return _session_store


async def check_redis_health() -> bool:
    """
    Check Redis connectivity for health checks.

    Returns:
        bool: True if Redis responds to PING
    """
    client = await get_redis()
    if client is None:
        return False
    try:
        return bool(await client.ping())
    except RedisError:
        return False
