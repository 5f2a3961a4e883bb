"""
Feature Visibility Engine runtime wiring.
"""

import time
from typing import Dict, Optional

from shared.logging import configure_logging, get_logger
from .config import VisibilityConfig, get_config
from .engine import FeatureVisibilityEngine
from .gateway.base import FeatureStoreGateway
from .gateway.redis_store import RedisFeatureStore
from .notifications import Notifier


class VisibilityService:
    """Owns the store connection and engine lifecycle."""

    def __init__(
        self,
        config: Optional[VisibilityConfig] = None,
        gateway: Optional[FeatureStoreGateway] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.config = config or get_config()
        self.logger = get_logger(self.config.service_name)

        # Configure logging
        configure_logging(self.config.service_name, self.config.log_level)

        self.gateway = gateway or RedisFeatureStore(self.config.redis_url, self.config.redis_key_prefix)
        self.engine = FeatureVisibilityEngine(self.gateway, notifier=notifier, config=self.config)
        self._start_time: Optional[float] = None

    async def start(self) -> bool:
        """Connect the store and load the catalog."""
        self._start_time = time.time()
        if isinstance(self.gateway, RedisFeatureStore):
            await self.gateway.start()

        loaded = await self.engine.load()
        self.logger.info("Visibility service started", env=self.config.env, loaded=loaded)
        return loaded

    async def stop(self):
        """Write out pending changes, then release the store."""
        outcomes = await self.engine.flush()
        failed = [outcome.role_id for outcome in outcomes if not outcome.success]
        if failed:
            self.logger.warning("Pending changes not persisted on shutdown", roles=failed)

        await self.engine.close()
        if isinstance(self.gateway, RedisFeatureStore):
            await self.gateway.stop()
        self.logger.info("Visibility service stopped")

    async def health(self) -> Dict[str, object]:
        dependencies = {}
        if isinstance(self.gateway, RedisFeatureStore):
            dependencies["redis"] = "ok" if await self.gateway.health_check() else "error"

        return {
            "service": self.config.service_name,
            "status": "ok" if self.engine.error is None and all(v == "ok" for v in dependencies.values()) else "error",
            "uptime_seconds": time.time() - self._start_time if self._start_time else 0.0,
            "dependencies": dependencies,
            "error": self.engine.error,
        }
