"""
Persistence gateway contract.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class FeatureStoreGateway(ABC):
    """What the engine needs from a persistent store.

    Load methods may return loosely shaped documents; the engine validates
    them. Any method may raise, or return an ``Exception`` instance, to
    signal failure.
    """

    @abstractmethod
    async def load_feature_categories(self) -> List[Any]:
        """Feature categories with their features."""

    @abstractmethod
    async def load_roles(self) -> List[Any]:
        """Known roles."""

    @abstractmethod
    async def load_role_features(self) -> Dict[str, List[str]]:
        """Role id -> enabled feature ids."""

    @abstractmethod
    async def count_users_with_role(self, role_id: str) -> int:
        """Number of users currently assigned the role."""

    @abstractmethod
    async def write_role_features(self, role_id: str, enabled_feature_ids: List[str]) -> None:
        """Replace the enabled feature list for a role."""
