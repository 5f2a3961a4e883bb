"""
Role interface preview generator.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, FrozenSet, Mapping, Optional, Tuple

from shared.logging import get_logger
from ..graph.dependency_graph import DependencyGraph

LIMITED_ACCESS_WARNING = "Limited feature access may impact user experience"
NAVIGATION_DISABLED_WARNING = "Navigation disabled - users may have difficulty accessing features"


class AccessibilityLevel:
    FULL = "full"
    STANDARD = "standard"
    LIMITED = "limited"
    NONE = "none"


@dataclass(frozen=True)
class NavigationItem:
    id: str
    name: str


@dataclass(frozen=True)
class RolePreview:
    """What a role's interface would contain."""
    role_id: str
    available_features: Tuple[str, ...]
    navigation_structure: Dict[str, Tuple[NavigationItem, ...]]
    accessible_apps: Tuple[str, ...]
    feature_count: int
    accessibility_level: str
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "availableFeatures": list(self.available_features),
            "navigationStructure": {
                category_id: [{"id": item.id, "name": item.name} for item in items]
                for category_id, items in self.navigation_structure.items()
            },
            "accessibleApps": list(self.accessible_apps),
            "featureCount": self.feature_count,
            "accessibilityLevel": self.accessibility_level,
            "warnings": list(self.warnings),
        }


def apply_pending(committed: FrozenSet[str], pending: Mapping[str, bool]) -> FrozenSet[str]:
    """Committed set with pending enables added and pending disables removed."""
    enables = {feature_id for feature_id, enabled in pending.items() if enabled}
    disables = {feature_id for feature_id, enabled in pending.items() if not enabled}
    return (committed | enables) - disables


class PreviewGenerator:
    """Builds role previews from (graph, committed set, pending changes).

    Results are cached per role under the key
    ``(role_id, matrix_version, pending_version, overlay_version)``; asking
    again with the same versions returns the very same object. A new
    catalog means a new generator, so the cache never outlives its graph.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        limited_coverage_threshold: float = 0.5,
        apps_category_id: str = "core-apps",
        navigation_feature_id: Optional[str] = "navigation",
    ):
        self.logger = get_logger("visibility.preview.generator")
        self.graph = graph
        self.limited_coverage_threshold = limited_coverage_threshold
        self.apps_category_id = apps_category_id
        self.navigation_feature_id = navigation_feature_id
        self._memo: Dict[str, Tuple[Tuple[int, int, int], RolePreview]] = {}

    def preview(
        self,
        role_id: str,
        committed: FrozenSet[str],
        pending: Mapping[str, bool],
        matrix_version: int,
        pending_version: int,
        overlay_version: int = 0,
    ) -> RolePreview:
        key = (matrix_version, pending_version, overlay_version)
        cached = self._memo.get(role_id)
        if cached is not None and cached[0] == key:
            return cached[1]

        result = self.generate(role_id, committed, pending)
        self._memo[role_id] = (key, result)
        return result

    def generate(self, role_id: str, committed: FrozenSet[str], pending: Mapping[str, bool]) -> RolePreview:
        effective = apply_pending(committed, pending)
        available = tuple(f.id for f in self.graph.features if f.id in effective)

        navigation: Dict[str, Tuple[NavigationItem, ...]] = {}
        for category in self.graph.categories:
            navigation[category.id] = tuple(
                NavigationItem(id=f.id, name=f.name) for f in category.features if f.id in effective
            )

        apps_category = self.graph.category(self.apps_category_id)
        accessible_apps = tuple(
            f.id for f in (apps_category.features if apps_category else ()) if f.id in effective
        )

        level = self._accessibility_level(len(available))

        warnings = []
        if level == AccessibilityLevel.LIMITED:
            warnings.append(LIMITED_ACCESS_WARNING)
        if (
            self.navigation_feature_id
            and self.navigation_feature_id in self.graph
            and self.navigation_feature_id not in effective
        ):
            warnings.append(NAVIGATION_DISABLED_WARNING)

        self.logger.debug(
            "Role preview generated",
            role_id=role_id,
            feature_count=len(available),
            accessibility_level=level,
            pending=len(pending)
        )

        return RolePreview(
            role_id=role_id,
            available_features=available,
            navigation_structure=navigation,
            accessible_apps=accessible_apps,
            feature_count=len(available),
            accessibility_level=level,
            warnings=tuple(warnings),
        )

    def _accessibility_level(self, available_count: int) -> str:
        total = len(self.graph)
        if available_count == 0:
            return AccessibilityLevel.NONE
        if available_count >= total:
            return AccessibilityLevel.FULL
        if available_count / total < self.limited_coverage_threshold:
            return AccessibilityLevel.LIMITED
        return AccessibilityLevel.STANDARD

