"""
Unit tests for the Redis feature store.
"""

import json

import pytest
import redis.asyncio as redis
from unittest.mock import AsyncMock, patch

from service_visibility.app.gateway.redis_store import RedisFeatureStore
from shared.errors import ExternalServiceError
from shared.test_helpers import VisibilityDataFactory


class TestRedisFeatureStore:
    """Test cases for RedisFeatureStore."""

    @pytest.fixture
    def mock_redis(self):
        """Create mock Redis client."""
        mock_redis = AsyncMock()
        mock_redis.ping.return_value = True
        return mock_redis

    @pytest.fixture
    def store(self, mock_redis):
        store = RedisFeatureStore("redis://localhost:6379")
        store.redis = mock_redis
        return store

    @pytest.mark.asyncio
    async def test_start(self, mock_redis):
        store = RedisFeatureStore("redis://localhost:6379")

        with patch("redis.asyncio.from_url", return_value=mock_redis):
            await store.start()

        assert store.redis is mock_redis
        mock_redis.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_failure(self, mock_redis):
        store = RedisFeatureStore("redis://localhost:6379")
        mock_redis.ping.side_effect = redis.ConnectionError("refused")

        with patch("redis.asyncio.from_url", return_value=mock_redis):
            with pytest.raises(ExternalServiceError):
                await store.start()

    @pytest.mark.asyncio
    async def test_stop(self, store, mock_redis):
        await store.stop()

        mock_redis.aclose.assert_awaited_once()
        assert store.redis is None

    @pytest.mark.asyncio
    async def test_not_started(self):
        store = RedisFeatureStore("redis://localhost:6379")

        with pytest.raises(ExternalServiceError):
            await store.load_roles()

    @pytest.mark.asyncio
    async def test_load_feature_categories(self, store, mock_redis):
        categories = VisibilityDataFactory.create_categories()
        mock_redis.get.return_value = json.dumps(categories)

        result = await store.load_feature_categories()

        assert result == categories
        mock_redis.get.assert_awaited_once_with("visibility:categories")

    @pytest.mark.asyncio
    async def test_missing_key_is_empty(self, store, mock_redis):
        mock_redis.get.return_value = None

        assert await store.load_roles() == []

    @pytest.mark.asyncio
    async def test_corrupt_document(self, store, mock_redis):
        mock_redis.get.return_value = "{not json"

        with pytest.raises(ExternalServiceError):
            await store.load_feature_categories()

    @pytest.mark.asyncio
    async def test_load_role_features(self, store, mock_redis):
        mock_redis.hgetall.return_value = {
            "viewer": json.dumps(["navigation"]),
            "officer": json.dumps(["expenses", "navigation"]),
        }

        result = await store.load_role_features()

        assert result == {"viewer": ["navigation"], "officer": ["expenses", "navigation"]}
        mock_redis.hgetall.assert_awaited_once_with("visibility:role_features")

    @pytest.mark.asyncio
    async def test_count_users_with_role(self, store, mock_redis):
        mock_redis.hget.return_value = "4"

        assert await store.count_users_with_role("officer") == 4
        mock_redis.hget.assert_awaited_once_with("visibility:role_user_counts", "officer")

        mock_redis.hget.return_value = None
        assert await store.count_users_with_role("ghost") == 0

    @pytest.mark.asyncio
    async def test_write_role_features(self, store, mock_redis):
        await store.write_role_features("viewer", ["navigation", "expenses"])

        mock_redis.hset.assert_awaited_once_with(
            "visibility:role_features", "viewer", json.dumps(["navigation", "expenses"])
        )

    @pytest.mark.asyncio
    async def test_write_error_wrapped(self, store, mock_redis):
        mock_redis.hset.side_effect = redis.RedisError("READONLY")

        with pytest.raises(ExternalServiceError) as exc_info:
            await store.write_role_features("viewer", ["navigation"])

        assert exc_info.value.message == "redis: READONLY"

    @pytest.mark.asyncio
    async def test_save_catalog(self, store, mock_redis):
        categories = VisibilityDataFactory.create_categories()
        roles = VisibilityDataFactory.create_roles()

        await store.save_catalog(categories, roles, {"viewer": 3})

        mock_redis.set.assert_any_await("visibility:categories", json.dumps(categories))
        mock_redis.set.assert_any_await("visibility:roles", json.dumps(roles))
        mock_redis.hset.assert_awaited_once_with("visibility:role_user_counts", mapping={"viewer": 3})

    @pytest.mark.asyncio
    async def test_custom_key_prefix(self, mock_redis):
        store = RedisFeatureStore("redis://localhost:6379", key_prefix="tenant-1:")
        store.redis = mock_redis
        mock_redis.get.return_value = None

        await store.load_roles()

        mock_redis.get.assert_awaited_once_with("tenant-1:roles")

    @pytest.mark.asyncio
    async def test_health_check(self, store, mock_redis):
        assert await store.health_check() is True

        mock_redis.ping.side_effect = redis.ConnectionError("gone")
        assert await store.health_check() is False
