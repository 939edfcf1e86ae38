"""Tests for the browser session store."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from turnero.infra import redis as redis_module
from turnero.infra.redis import SessionStore, get_session_store


class TestSessionStore:
    """Test Redis-backed session storage."""

    @pytest.fixture
    def mock_redis(self):
        """Create mock Redis client."""
        mock = AsyncMock()
        mock.get = AsyncMock(return_value=None)
        mock.setex = AsyncMock()
        mock.delete = AsyncMock(return_value=1)
        return mock

    @pytest.mark.asyncio
    async def test_put_and_get(self, mock_redis):
        """Test values are stored as JSON under the namespaced key."""
        store = SessionStore(mock_redis, ttl=60)

        assert await store.put("abc", {"user_email": "ana@x.com"}) is True

        key, ttl, payload = mock_redis.setex.await_args.args
        assert key == "turnero:v1:session:abc"
        assert ttl.total_seconds() == 60
        assert json.loads(payload) == {"user_email": "ana@x.com"}

        mock_redis.get = AsyncMock(return_value=payload)
        assert await store.get("abc") == {"user_email": "ana@x.com"}

    @pytest.mark.asyncio
    async def test_get_missing(self, mock_redis):
        """Test an unknown key returns None."""
        store = SessionStore(mock_redis)

        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_fallback_without_redis(self):
        """Test sessions are kept in memory when Redis is unavailable."""
        store = SessionStore(None)

        assert await store.put("abc", {"x": 1}) is False
        assert await store.get("abc") == {"x": 1}
        assert await store.delete("abc") is True
        assert await store.get("abc") is None

    @pytest.mark.asyncio
    async def test_fallback_entries_expire(self):
        """Test in-memory sessions are dropped once their TTL has passed."""
        store = SessionStore(None, ttl=60)
        clock = MagicMock()

        with patch.object(redis_module, "time", clock):
            clock.monotonic.return_value = 1000.0
            await store.put("abc", {"x": 1})

            clock.monotonic.return_value = 1059.0
            assert await store.get("abc") == {"x": 1}

            clock.monotonic.return_value = 1060.0
            assert await store.get("abc") is None

        assert "abc" not in store._in_memory_fallback

    @pytest.mark.asyncio
    async def test_put_evicts_other_stale_entries(self):
        """Test writing one session clears every expired one."""
        store = SessionStore(None, ttl=60)
        clock = MagicMock()

        with patch.object(redis_module, "time", clock):
            clock.monotonic.return_value = 1000.0
            await store.put("old", {"x": 1})

            clock.monotonic.return_value = 2000.0
            await store.put("new", {"x": 2})

        assert list(store._in_memory_fallback) == ["new"]

    @pytest.mark.asyncio
    async def test_fallback_on_redis_error(self, mock_redis):
        """Test a failing Redis degrades to memory instead of raising."""
        mock_redis.setex = AsyncMock(side_effect=RedisConnectionError("down"))
        mock_redis.get = AsyncMock(side_effect=RedisConnectionError("down"))
        store = SessionStore(mock_redis)

        assert await store.put("abc", {"x": 1}) is False
        assert await store.get("abc") == {"x": 1}

    @pytest.mark.asyncio
    async def test_delete(self, mock_redis):
        """Test delete removes the namespaced key."""
        store = SessionStore(mock_redis)

        assert await store.delete("abc") is True
        mock_redis.delete.assert_awaited_once_with("turnero:v1:session:abc")

    @pytest.mark.asyncio
    async def test_get_session_store_picks_up_redis(self, mock_redis):
        """Test the shared store starts using Redis once it is reachable."""
        with patch.object(redis_module, "_session_store", None):
            with patch("turnero.infra.redis.get_redis", AsyncMock(return_value=None)):
                store = await get_session_store()
                assert store.redis is None

            with patch("turnero.infra.redis.get_redis", AsyncMock(return_value=mock_redis)):
                again = await get_session_store()

            assert again is store
            assert store.redis is mock_redis
