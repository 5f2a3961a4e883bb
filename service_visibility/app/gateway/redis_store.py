"""
Redis-backed feature store.
"""

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional

import redis.asyncio as redis

from shared.logging import get_logger
from shared.errors import ExternalServiceError
from .base import FeatureStoreGateway


class RedisFeatureStore(FeatureStoreGateway):
    """Stores catalog, roles and the role-feature matrix as JSON in Redis.

    Layout under the key prefix:
    - ``categories``: JSON list of category documents
    - ``roles``: JSON list of role documents
    - ``role_features``: hash of role id -> JSON list of feature ids
    - ``role_user_counts``: hash of role id -> user count
    """

    def __init__(self, redis_url: str, key_prefix: str = "visibility:"):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.logger = get_logger("visibility.gateway.redis")
        self.redis: Optional[redis.Redis] = None

        self.CATEGORIES_KEY = f"{key_prefix}categories"
        self.ROLES_KEY = f"{key_prefix}roles"
        self.ROLE_FEATURES_KEY = f"{key_prefix}role_features"
        self.USER_COUNTS_KEY = f"{key_prefix}role_user_counts"

    async def start(self):
        """Connect to Redis."""
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis feature store started")

        except Exception as e:
            self.logger.error("Failed to start Redis feature store", error=str(e))
            raise ExternalServiceError("redis", str(e))

    async def stop(self):
        """Close the Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis feature store stopped")

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise ExternalServiceError("redis", "Feature store not started")
        return self.redis

    async def _get_json_list(self, key: str) -> List[Any]:
        try:
            raw = await self._client().get(key)
        except redis.RedisError as e:
            self.logger.error("Error reading key", key=key, error=str(e))
            raise ExternalServiceError("redis", str(e))

        if raw is None:
            return []
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ExternalServiceError("redis", f"Corrupt document at {key}", {"error": str(e)})

    async def load_feature_categories(self) -> List[Any]:
        return await self._get_json_list(self.CATEGORIES_KEY)

    async def load_roles(self) -> List[Any]:
        return await self._get_json_list(self.ROLES_KEY)

    async def load_role_features(self) -> Dict[str, List[str]]:
        try:
            raw = await self._client().hgetall(self.ROLE_FEATURES_KEY)
        except redis.RedisError as e:
            self.logger.error("Error reading role features", error=str(e))
            raise ExternalServiceError("redis", str(e))

        matrix: Dict[str, List[str]] = {}
        for role_id, encoded in raw.items():
            try:
                matrix[role_id] = json.loads(encoded)
            except json.JSONDecodeError as e:
                raise ExternalServiceError("redis", f"Corrupt feature list for role {role_id}", {"error": str(e)})
        return matrix

    async def count_users_with_role(self, role_id: str) -> int:
        try:
            raw = await self._client().hget(self.USER_COUNTS_KEY, role_id)
        except redis.RedisError as e:
            self.logger.error("Error reading user count", role_id=role_id, error=str(e))
            raise ExternalServiceError("redis", str(e))
        return int(raw) if raw is not None else 0

    async def write_role_features(self, role_id: str, enabled_feature_ids: List[str]) -> None:
        try:
            await self._client().hset(self.ROLE_FEATURES_KEY, role_id, json.dumps(list(enabled_feature_ids)))
        except redis.RedisError as e:
            self.logger.error("Error writing role features", role_id=role_id, error=str(e))
            raise ExternalServiceError("redis", str(e))

        self.logger.debug("Role features written", role_id=role_id, count=len(enabled_feature_ids))

    async def save_catalog(
        self,
        categories: Iterable[Any],
        roles: Iterable[Any],
        user_counts: Optional[Mapping[str, int]] = None
    ):
        """Seed catalog, roles and user counts."""
        client = self._client()
        try:
            await client.set(self.CATEGORIES_KEY, json.dumps(list(categories)))
            await client.set(self.ROLES_KEY, json.dumps(list(roles)))
            if user_counts:
                await client.hset(self.USER_COUNTS_KEY, mapping={k: int(v) for k, v in user_counts.items()})
        except redis.RedisError as e:
            self.logger.error("Error seeding catalog", error=str(e))
            raise ExternalServiceError("redis", str(e))

        self.logger.info("Catalog seeded")

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self._client().ping()
            return True
        except Exception:
            return False
