"""
Dependency graph over a loaded feature catalog.
"""

from typing import Dict, Any, Iterable, List, Optional, Tuple, FrozenSet

from .models import Category, Feature


class DependencyGraph:
    """Read-only directed graph of feature dependencies.

    Edges point from a feature to the features it depends on. The graph is
    rebuilt whenever the catalog reloads and may contain cycles; every walk
    keeps a visited set so malformed data cannot loop forever.
    """

    def __init__(self, categories: Iterable[Category] = ()):
        self.categories: Tuple[Category, ...] = tuple(categories)
        self._features: Dict[str, Feature] = {}
        self._category_by_id: Dict[str, Category] = {}
        inverse: Dict[str, set] = {}

        for category in self.categories:
            self._category_by_id[category.id] = category
            for feature in category.features:
                self._features[feature.id] = feature

        for feature in self._features.values():
            for dep_id in feature.dependencies:
                inverse.setdefault(dep_id, set()).add(feature.id)

        self._dependents: Dict[str, FrozenSet[str]] = {
            feature_id: frozenset(feature.dependents | inverse.get(feature_id, set()))
            for feature_id, feature in self._features.items()
        }
        self._closure_cache: Dict[str, Tuple[str, ...]] = {}

    @classmethod
    def from_categories(cls, categories: Iterable[Category]) -> "DependencyGraph":
        return cls(categories)

    def __contains__(self, feature_id: str) -> bool:
        return feature_id in self._features

    def __len__(self) -> int:
        return len(self._features)

    @property
    def features(self) -> List[Feature]:
        """Features in catalog order."""
        return list(self._features.values())

    @property
    def feature_ids(self) -> List[str]:
        return list(self._features.keys())

    def get(self, feature_id: str) -> Optional[Feature]:
        return self._features.get(feature_id)

    def name_of(self, feature_id: str) -> str:
        """Display name, falling back to the id for unknown features."""
        feature = self._features.get(feature_id)
        return feature.name if feature else feature_id

    def category(self, category_id: str) -> Optional[Category]:
        return self._category_by_id.get(category_id)

    def direct_dependencies(self, feature_id: str) -> FrozenSet[str]:
        feature = self._features.get(feature_id)
        return feature.dependencies if feature else frozenset()

    def direct_dependents(self, feature_id: str) -> FrozenSet[str]:
        """Declared dependents plus every feature that lists this one as a dependency."""
        return self._dependents.get(feature_id, frozenset())

    def transitive_dependencies(self, feature_id: str) -> Tuple[str, ...]:
        """Full dependency closure in breadth-first order, excluding the feature itself."""
        if feature_id in self._closure_cache:
            return self._closure_cache[feature_id]

        closure: List[str] = []
        seen = {feature_id}
        frontier = sorted(self.direct_dependencies(feature_id))

        while frontier:
            next_frontier: List[str] = []
            for dep_id in frontier:
                if dep_id in seen:
                    continue
                seen.add(dep_id)
                closure.append(dep_id)
                next_frontier.extend(sorted(self.direct_dependencies(dep_id)))
            frontier = next_frontier

        result = tuple(closure)
        self._closure_cache[feature_id] = result
        return result

    def to_tree(self) -> Dict[str, Dict[str, Any]]:
        """Feature id -> feature fields with category and closure information."""
        tree: Dict[str, Dict[str, Any]] = {}
        for category in self.categories:
            for feature in category.features:
                entry = feature.to_dict()
                entry["dependents"] = sorted(self.direct_dependents(feature.id))
                entry["transitiveDependencies"] = list(self.transitive_dependencies(feature.id))
                entry["categoryId"] = category.id
                entry["categoryName"] = category.name
                tree[feature.id] = entry
        return tree
