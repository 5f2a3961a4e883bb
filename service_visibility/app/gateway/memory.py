"""
In-memory feature store.
"""

import copy
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from shared.logging import get_logger
from ..graph.catalog import DEFAULT_FEATURE_CATEGORIES
from .base import FeatureStoreGateway


class InMemoryFeatureStore(FeatureStoreGateway):
    """Dictionary-backed store that records every write."""

    def __init__(
        self,
        categories: Optional[Iterable[Any]] = None,
        roles: Optional[Iterable[Any]] = None,
        role_features: Optional[Mapping[str, Iterable[str]]] = None,
        user_counts: Optional[Mapping[str, int]] = None,
    ):
        self.logger = get_logger("visibility.gateway.memory")
        self.categories: List[Any] = copy.deepcopy(
            list(categories) if categories is not None else DEFAULT_FEATURE_CATEGORIES
        )
        self.roles: List[Any] = list(roles or [])
        self.role_features: Dict[str, List[str]] = {
            role_id: list(feature_ids) for role_id, feature_ids in (role_features or {}).items()
        }
        self.user_counts: Dict[str, int] = dict(user_counts or {})
        self.writes: List[Tuple[str, List[str]]] = []

    async def load_feature_categories(self) -> List[Any]:
        return copy.deepcopy(self.categories)

    async def load_roles(self) -> List[Any]:
        return copy.deepcopy(self.roles)

    async def load_role_features(self) -> Dict[str, List[str]]:
        return {role_id: list(feature_ids) for role_id, feature_ids in self.role_features.items()}

    async def count_users_with_role(self, role_id: str) -> int:
        return self.user_counts.get(role_id, 0)

    async def write_role_features(self, role_id: str, enabled_feature_ids: List[str]) -> None:
        self.role_features[role_id] = list(enabled_feature_ids)
        self.writes.append((role_id, list(enabled_feature_ids)))
        self.logger.debug("Role features written", role_id=role_id, count=len(enabled_feature_ids))

    def writes_for(self, role_id: str) -> List[List[str]]:
        return [features for written_role, features in self.writes if written_role == role_id]
