"""
Dependency validator for feature visibility changes.
"""

from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

from shared.logging import get_logger
from ..graph.dependency_graph import DependencyGraph
from ..graph.matrix import RoleFeatureMatrix
from ..graph.models import Role
from .models import BulkOperation, CycleReport, ValidationResult

CORE_DISABLE_ERROR = "Cannot disable core functionality"
CORE_BULK_DISABLE_ERROR = "Cannot disable core features for all users"
ADMIN_ONLY_ERROR = "Admin-only features cannot be enabled for non-administrator roles"
FEATURE_NOT_FOUND_ERROR = "Feature not found"
CATEGORY_NOT_FOUND_ERROR = "Category not found"


def detect_circular_dependencies(graph: DependencyGraph) -> CycleReport:
    """Find dependency cycles with an iterative depth-first walk.

    Each cycle is reported once, as the ids on the path from the
    re-encountered feature to the feature that closed the loop. Unknown
    dependency ids are leaves. The walk keeps its own frame stack, so chain
    length is not bounded by the interpreter's recursion limit.
    """
    visited: Set[str] = set()
    on_stack: Set[str] = set()
    path: List[str] = []
    cycles: List[List[str]] = []
    seen_cycles: Set[FrozenSet[str]] = set()

    for root_id in graph.feature_ids:
        if root_id in visited:
            continue

        visited.add(root_id)
        on_stack.add(root_id)
        path.append(root_id)
        frames: List[Tuple[str, Iterator[str]]] = [
            (root_id, iter(sorted(graph.direct_dependencies(root_id))))
        ]

        while frames:
            feature_id, deps = frames[-1]
            dep_id = next(deps, None)

            if dep_id is None:
                frames.pop()
                path.pop()
                on_stack.discard(feature_id)
            elif dep_id in on_stack:
                cycle = path[path.index(dep_id):]
                key = frozenset(cycle)
                if key not in seen_cycles:
                    seen_cycles.add(key)
                    cycles.append(list(cycle))
            elif dep_id not in visited:
                visited.add(dep_id)
                on_stack.add(dep_id)
                path.append(dep_id)
                frames.append((dep_id, iter(sorted(graph.direct_dependencies(dep_id)))))

    return CycleReport(has_circular_dependencies=bool(cycles), cycles=cycles)


class FeatureValidator:
    """Pure checks over a dependency graph and a role-feature matrix.

    The matrix handed in is whatever state changes should be judged
    against; the engine passes committed state with pending changes
    applied. Nothing here mutates its inputs.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        matrix: RoleFeatureMatrix,
        roles: Iterable[Role] = (),
        admin_role_names: Iterable[str] = ("Administrator", "admin"),
    ):
        self.logger = get_logger("visibility.rules.validator")
        self.graph = graph
        self.matrix = matrix
        self.roles: Dict[str, Role] = {role.id: role for role in roles}
        self.admin_role_names = frozenset(admin_role_names)

    def is_admin_role(self, role_id: str) -> bool:
        role = self.roles.get(role_id)
        if role is None:
            return role_id in self.admin_role_names
        return role.id in self.admin_role_names or role.name in self.admin_role_names

    def role_label(self, role_id: str) -> str:
        role = self.roles.get(role_id)
        return role.label if role else role_id

    def unmet_dependency_links(self, feature_id: str, enabled: FrozenSet[str]) -> List[str]:
        """One message per feature in the closure whose direct dependencies are not all enabled.

        The feature being checked counts as enabled so a cycle through it
        does not report the feature as its own missing prerequisite.
        """
        satisfied = enabled | {feature_id}
        messages: List[str] = []

        for link_id in (feature_id,) + self.graph.transitive_dependencies(feature_id):
            missing = sorted(
                dep_id for dep_id in self.graph.direct_dependencies(link_id)
                if dep_id not in satisfied
            )
            if missing:
                names = ", ".join(self.graph.name_of(dep_id) for dep_id in missing)
                messages.append(f"{self.graph.name_of(link_id)} requires {names} access")

        return messages

    def validate_change(self, role_id: str, feature_id: str, enabling: bool) -> ValidationResult:
        """Check enabling or disabling one feature for one role."""
        feature = self.graph.get(feature_id)
        if feature is None:
            return ValidationResult(is_valid=False, errors=[FEATURE_NOT_FOUND_ERROR])

        current = self.matrix.features_for(role_id)
        errors: List[str] = []
        warnings: List[str] = []
        requires_confirmation = False

        if enabling:
            if feature.admin_only and not self.is_admin_role(role_id):
                errors.append(ADMIN_ONLY_ERROR)
            errors.extend(self.unmet_dependency_links(feature_id, current))
        else:
            if feature.is_core:
                errors.append(CORE_DISABLE_ERROR)

            # Dependents are never disabled along with it, only reported
            affected = sorted(
                dep_id for dep_id in self.graph.direct_dependents(feature_id)
                if dep_id in current
            )
            if affected:
                names = ", ".join(self.graph.name_of(dep_id) for dep_id in affected)
                warnings.append(f"Disabling {feature.name} will also disable {names}")
                requires_confirmation = True

        result = ValidationResult.from_messages(errors, warnings, requires_confirmation)
        self.logger.debug(
            "Feature change validated",
            role_id=role_id,
            feature_id=feature_id,
            enabling=enabling,
            is_valid=result.is_valid,
            error_count=len(errors),
            warning_count=len(warnings)
        )
        return result

    def detect_circular_dependencies(self, graph: Optional[DependencyGraph] = None) -> CycleReport:
        return detect_circular_dependencies(graph or self.graph)

    def validate_bulk_operation(self, operation: BulkOperation) -> ValidationResult:
        """Check enabling or disabling a whole category across roles."""
        errors: List[str] = []
        warnings: List[str] = []

        if not operation.role_ids:
            errors.append("No roles selected for bulk operation")

        unknown_roles = [role_id for role_id in operation.role_ids if role_id not in self.roles]
        for role_id in unknown_roles:
            errors.append(f"Role not found: {role_id}")

        category = self.graph.category(operation.category_id)
        if category is None:
            errors.append(CATEGORY_NOT_FOUND_ERROR)
            return ValidationResult.from_messages(errors, warnings)

        if operation.enabling:
            for role_id in operation.role_ids:
                errors.extend(self._bulk_enable_errors(role_id, category.feature_ids))
        else:
            core_features = [f for f in category.features if f.is_core]
            covers_all_roles = bool(self.roles) and set(self.roles) <= set(operation.role_ids)

            if core_features and covers_all_roles:
                errors.append(CORE_BULK_DISABLE_ERROR)
            elif core_features:
                names = ", ".join(f.name for f in core_features)
                warnings.append(f"Core features will remain enabled: {names}")

            for role_id in operation.role_ids:
                warnings.extend(self._bulk_disable_warnings(role_id, category.feature_ids))

        result = ValidationResult.from_messages(errors, warnings, requires_confirmation=bool(warnings))
        self.logger.debug(
            "Bulk operation validated",
            category_id=operation.category_id,
            action=operation.action.value,
            role_count=len(operation.role_ids),
            is_valid=result.is_valid
        )
        return result

    def _bulk_enable_errors(self, role_id: str, category_feature_ids: Iterable[str]) -> List[str]:
        ordered = tuple(category_feature_ids)
        category_ids = frozenset(ordered)
        enabled = self.matrix.features_for(role_id) | category_ids
        label = self.role_label(role_id)
        errors: List[str] = []
        seen: Set[str] = set()

        for feature_id in ordered:
            feature = self.graph.get(feature_id)
            if feature.admin_only and not self.is_admin_role(role_id):
                message = f"{label}: {feature.name}: {ADMIN_ONLY_ERROR}"
                if message not in seen:
                    seen.add(message)
                    errors.append(message)

        for feature_id in ordered:
            for link in self.unmet_dependency_links(feature_id, enabled):
                message = f"{label}: {link}"
                if message not in seen:
                    seen.add(message)
                    errors.append(message)
        return errors

    def _bulk_disable_warnings(self, role_id: str, category_feature_ids: Iterable[str]) -> List[str]:
        category_ids = frozenset(category_feature_ids)
        current = self.matrix.features_for(role_id)
        label = self.role_label(role_id)
        warnings: List[str] = []

        for feature_id in sorted(category_ids):
            feature = self.graph.get(feature_id)
            if feature.is_core or feature_id not in current:
                continue
            broken = sorted(
                dep_id for dep_id in self.graph.direct_dependents(feature_id)
                if dep_id in current and dep_id not in category_ids
            )
            if broken:
                names = ", ".join(self.graph.name_of(dep_id) for dep_id in broken)
                warnings.append(f"{label}: disabling {feature.name} will leave {names} non-functional")
        return warnings

    def plan_bulk_operation(self, operation: BulkOperation) -> Dict[str, FrozenSet[str]]:
        """Resulting enabled feature set per role. Core features are never removed."""
        if self.graph.category(operation.category_id) is None:
            return {}

        return {
            role_id: self.bulk_target(operation, self.matrix.features_for(role_id))
            for role_id in dict.fromkeys(operation.role_ids)
        }

    def bulk_target(self, operation: BulkOperation, current: FrozenSet[str]) -> FrozenSet[str]:
        """One role's enabled set after the operation, starting from ``current``."""
        category = self.graph.category(operation.category_id)
        if category is None:
            return current
        if operation.enabling:
            return current | frozenset(category.feature_ids)
        removable = frozenset(f.id for f in category.features if not f.is_core)
        return current - removable
