"""
Feature, category and role models.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple, FrozenSet


@dataclass(frozen=True)
class Feature:
    """A gate-able unit of product functionality."""
    id: str
    name: str
    category_id: str
    description: Optional[str] = None
    dependencies: FrozenSet[str] = field(default_factory=frozenset)
    dependents: FrozenSet[str] = field(default_factory=frozenset)
    is_core: bool = False
    admin_only: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "dependencies": sorted(self.dependencies),
            "dependents": sorted(self.dependents),
            "isCore": self.is_core,
            "adminOnly": self.admin_only,
        }


@dataclass(frozen=True)
class Category:
    """Ordered group of features."""
    id: str
    name: str
    description: Optional[str] = None
    features: Tuple[Feature, ...] = ()

    @property
    def feature_ids(self) -> Tuple[str, ...]:
        return tuple(f.id for f in self.features)

    @property
    def has_core_features(self) -> bool:
        return any(f.is_core for f in self.features)


@dataclass(frozen=True)
class Role:
    """User role. Permissions are display-only."""
    id: str
    name: str
    display_name: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def label(self) -> str:
        return self.display_name or self.name
