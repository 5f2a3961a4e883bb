"""
Feature Visibility Engine façade.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, FrozenSet, Iterable, List, Optional, Union

from shared.errors import AccessLayerException, ExternalServiceError
from shared.logging import get_logger
from shared.metrics import VisibilityMetrics
from .config import VisibilityConfig
from .events.emitter import EventEmitter, EventHandler, ROLE_UPDATE
from .gateway.base import FeatureStoreGateway
from .gateway.records import parse_categories, parse_role_features, parse_roles
from .graph.dependency_graph import DependencyGraph
from .graph.matrix import RoleFeatureMatrix
from .graph.models import Category, Role
from .notifications import LoggingNotifier, Notifier
from .preview.generator import PreviewGenerator, RolePreview, apply_pending
from .queue.change_queue import ChangeQueue, FlushOutcome
from .rules.models import BulkOperation, CycleReport, ValidationResult
from .rules.validator import FeatureValidator, detect_circular_dependencies

LOAD_ERROR_MESSAGE = "Failed to load feature configuration"


@dataclass
class AffectedUsers:
    count: int


@dataclass
class BulkOperationImpact:
    """Blast radius of a bulk operation before it is applied."""
    affected_users: int
    features_changed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "affectedUsers": self.affected_users,
            "featuresChanged": list(self.features_changed),
            "warnings": list(self.warnings),
        }


@dataclass
class BulkUpdateResult:
    validation: ValidationResult
    outcomes: List[FlushOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.validation.is_valid and all(outcome.success for outcome in self.outcomes)


class FeatureVisibilityEngine:
    """Public surface for feature visibility management.

    Owns the catalog, roles and committed matrix; every change goes
    through validation, then the change queue, then the gateway. Load and
    write failures are reported through ``error`` and the notifier rather
    than raised.
    """

    def __init__(
        self,
        gateway: FeatureStoreGateway,
        notifier: Optional[Notifier] = None,
        config: Optional[VisibilityConfig] = None,
        metrics: Optional[VisibilityMetrics] = None,
    ):
        self.config = config or VisibilityConfig()
        self.logger = get_logger(f"{self.config.service_name}.engine")
        self.gateway = gateway
        self.notifier = notifier or LoggingNotifier()
        self.metrics = metrics or VisibilityMetrics(self.config.service_name)
        self.events = EventEmitter()
        self.queue = ChangeQueue(self._flush_role, debounce_seconds=self.config.debounce_seconds)

        self.loading = True
        self.loaded = False
        self.error: Optional[str] = None
        self.feature_categories: List[Category] = []
        self.roles: List[Role] = []
        self.role_feature_matrix = RoleFeatureMatrix()
        # Preview-only changes; never validated, queued or written
        self._preview_changes: Dict[str, Dict[str, bool]] = {}
        self._preview_versions: Dict[str, int] = {}

        self._load_lock = asyncio.Lock()
        self._set_catalog([])

    # Loading

    def _set_catalog(self, categories: List[Category]):
        self.feature_categories = list(categories)
        self.graph = DependencyGraph.from_categories(self.feature_categories)
        self._dependency_map: Optional[Dict[str, Dict[str, Any]]] = None
        self.preview_generator = PreviewGenerator(
            self.graph,
            limited_coverage_threshold=self.config.limited_coverage_threshold,
            apps_category_id=self.config.apps_category_id,
            navigation_feature_id=self.config.navigation_feature_id,
        )

    async def _call_gateway(self, operation: str, awaitable: Awaitable) -> Any:
        """Await a gateway call under the configured timeout.

        Timeouts, raised exceptions and returned exceptions all surface as
        ExternalServiceError.
        """
        try:
            result = await asyncio.wait_for(awaitable, timeout=self.config.gateway_timeout_seconds)
        except asyncio.TimeoutError:
            raise ExternalServiceError("feature store", f"{operation} timed out")
        except AccessLayerException:
            raise
        except Exception as e:
            raise ExternalServiceError("feature store", f"{operation} failed: {e}")

        if isinstance(result, Exception):
            raise ExternalServiceError("feature store", f"{operation} failed: {result}")
        return result

    async def load(self) -> bool:
        """Load catalog, roles and matrix. Fails closed to an empty state."""
        self.loading = True
        try:
            results = await asyncio.gather(
                self._call_gateway("load_feature_categories", self.gateway.load_feature_categories()),
                self._call_gateway("load_roles", self.gateway.load_roles()),
                self._call_gateway("load_role_features", self.gateway.load_role_features()),
                return_exceptions=True
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            raw_categories, raw_roles, raw_matrix = results
            categories = parse_categories(raw_categories)
            roles = parse_roles(raw_roles)
            matrix = parse_role_features(raw_matrix)
        except AccessLayerException as e:
            self.logger.error("Error loading feature visibility data", code=e.code, error=e.message)
            self.metrics.record_load_failure()
            self._set_catalog([])
            self.roles = []
            self.role_feature_matrix = RoleFeatureMatrix(version=self.role_feature_matrix.version + 1)
            self.error = LOAD_ERROR_MESSAGE
            self.notifier.error(LOAD_ERROR_MESSAGE)
            return False
        finally:
            self.loading = False
            self.loaded = True

        self._set_catalog(categories)
        self.roles = roles
        self.role_feature_matrix = RoleFeatureMatrix(matrix, version=self.role_feature_matrix.version + 1)
        self.error = None

        cycles = detect_circular_dependencies(self.graph)
        if cycles.has_circular_dependencies:
            self.logger.warning("Circular feature dependencies loaded", cycles=cycles.cycles)

        self.logger.info(
            "Feature visibility data loaded",
            categories=len(categories),
            features=len(self.graph),
            roles=len(roles)
        )
        return True

    async def ensure_loaded(self):
        """Load on first use."""
        if self.loaded:
            return
        async with self._load_lock:
            if not self.loaded:
                await self.load()

    async def reload(self) -> bool:
        async with self._load_lock:
            return await self.load()

    async def close(self):
        await self.queue.close()

    # State views

    def role(self, role_id: str) -> Optional[Role]:
        return next((role for role in self.roles if role.id == role_id), None)

    def effective_features(self, role_id: str) -> FrozenSet[str]:
        """Committed features with the role's pending changes applied."""
        return apply_pending(
            self.role_feature_matrix.features_for(role_id),
            self.queue.pending_for(role_id)
        )

    def _effective_matrix(self) -> RoleFeatureMatrix:
        role_ids = set(self.role_feature_matrix.role_ids()) | set(self.queue.pending_roles())
        return RoleFeatureMatrix(
            {role_id: self.effective_features(role_id) for role_id in role_ids},
            version=self.role_feature_matrix.version
        )

    def _validator(self) -> FeatureValidator:
        return FeatureValidator(
            self.graph,
            self._effective_matrix(),
            roles=self.roles,
            admin_role_names=self.config.admin_role_names,
        )

    def get_feature_dependencies(self) -> Dict[str, Dict[str, Any]]:
        """Dependency tree for the loaded catalog. Same object until the catalog reloads."""
        if self._dependency_map is None:
            self._dependency_map = self.graph.to_tree()
        return self._dependency_map

    def _ordered(self, feature_ids: Iterable[str]) -> List[str]:
        """Catalog order first, then unknown ids sorted."""
        wanted = set(feature_ids)
        ordered = [feature_id for feature_id in self.graph.feature_ids if feature_id in wanted]
        ordered.extend(sorted(wanted - set(ordered)))
        return ordered

    # Validation

    def validate_feature_change(self, role_id: str, feature_id: str, enabled: bool) -> ValidationResult:
        result = self._validator().validate_change(role_id, feature_id, enabled)
        self.metrics.record_validation("change", result.is_valid)
        return result

    def validate_bulk_operation(self, operation: Union[BulkOperation, Dict[str, Any]]) -> ValidationResult:
        operation = self._as_operation(operation)
        result = self._validator().validate_bulk_operation(operation)
        self.metrics.record_validation("bulk", result.is_valid)
        return result

    def validate_feature_dependencies(self) -> CycleReport:
        return detect_circular_dependencies(self.graph)

    def detect_circular_dependencies(self, graph: Optional[DependencyGraph] = None) -> CycleReport:
        return detect_circular_dependencies(graph or self.graph)

    @staticmethod
    def _as_operation(operation: Union[BulkOperation, Dict[str, Any]]) -> BulkOperation:
        if isinstance(operation, BulkOperation):
            return operation
        return BulkOperation.model_validate(operation)

    # Changes

    async def update_role_features(self, role_id: str, feature_id: str, enabled: bool) -> ValidationResult:
        """Validate a change and queue it for a debounced write."""
        await self.ensure_loaded()

        validation = self.validate_feature_change(role_id, feature_id, enabled)
        if not validation.is_valid:
            self.logger.info(
                "Feature change rejected",
                role_id=role_id,
                feature_id=feature_id,
                enabled=enabled,
                errors=validation.errors
            )
            return validation

        for warning in validation.warnings:
            self.notifier.warning(warning)

        self.queue.stage(role_id, feature_id, enabled)
        return validation

    async def toggle_feature(self, role_id: str, feature_id: str) -> ValidationResult:
        """Flip a feature's effective state for a role."""
        await self.ensure_loaded()
        enabled = feature_id not in self.effective_features(role_id)
        return await self.update_role_features(role_id, feature_id, enabled)

    def add_pending_change(self, role_id: str, feature_id: str, enabled: bool):
        """Stage a preview-only change.

        It shapes ``preview_role_interface`` and nothing else: it is not
        validated, not seen by validation of later changes and never written.
        """
        changes = self._preview_changes.setdefault(role_id, {})
        changes.pop(feature_id, None)
        changes[feature_id] = enabled
        self._bump_preview(role_id)

    def preview_changes(self, role_id: str) -> Dict[str, bool]:
        return dict(self._preview_changes.get(role_id, {}))

    def clear_preview_changes(self, role_id: str) -> int:
        dropped = len(self._preview_changes.pop(role_id, {}))
        self._bump_preview(role_id)
        return dropped

    def _bump_preview(self, role_id: str):
        self._preview_versions[role_id] = self._preview_versions.get(role_id, 0) + 1

    def discard_pending_changes(self, role_id: str) -> int:
        """Drop queued and preview-only changes for a role."""
        return self.queue.discard(role_id) + self.clear_preview_changes(role_id)

    def pending_changes(self, role_id: str) -> Dict[str, bool]:
        return self.queue.pending_for(role_id)

    async def flush(self, role_id: Optional[str] = None) -> List[FlushOutcome]:
        """Write pending changes now instead of waiting for the quiet period."""
        if role_id is not None:
            outcome = await self.queue.flush(role_id)
            return [outcome] if outcome is not None else []
        return await self.queue.flush_all()

    async def _write(self, role_id: str, feature_ids: List[str]) -> Optional[str]:
        """Persist a role's feature list. Returns an error message on failure."""
        try:
            with self.metrics.time_flush():
                await self._call_gateway(
                    "write_role_features",
                    self.gateway.write_role_features(role_id, feature_ids)
                )
        except AccessLayerException as e:
            message = f"Failed to update feature visibility for {role_id}: {e.message}"
            self.logger.error("Role feature write failed", role_id=role_id, error=e.message)
            self.metrics.record_flush("failure")
            self.error = message
            self.notifier.error(message)
            return message

        self.metrics.record_flush("success")
        return None

    async def _commit(self, role_id: str, feature_ids: Iterable[str], changes: Dict[str, bool]):
        """Replace a role's committed set and announce each change."""
        self.role_feature_matrix = self.role_feature_matrix.with_role(role_id, feature_ids)
        for feature_id, enabled in changes.items():
            await self.events.emit(ROLE_UPDATE, {"roleId": role_id, "feature": feature_id, "enabled": enabled})

    async def _flush_role(self, role_id: str) -> FlushOutcome:
        """Flush handler run by the change queue under the role's lock."""
        pending = self.queue.pending_for(role_id)
        committed = self.role_feature_matrix.features_for(role_id)
        changes = {
            feature_id: enabled for feature_id, enabled in pending.items()
            if (feature_id in committed) != enabled
        }

        if not changes:
            # Intents cancelled each other out
            self.queue.acknowledge(role_id, pending)
            self.metrics.record_flush("skipped")
            self.logger.debug("Nothing to flush", role_id=role_id)
            return FlushOutcome(role_id=role_id, success=True)

        target = self._ordered(apply_pending(committed, changes))
        error = await self._write(role_id, target)
        if error is not None:
            return FlushOutcome(role_id=role_id, success=False, changes=changes, error=error)

        self.queue.acknowledge(role_id, pending)
        await self._commit(role_id, target, changes)

        affected = await self.get_affected_users(role_id, next(iter(changes)))
        self.notifier.success(f"Feature visibility updated successfully ({affected.count} users affected)")
        self.logger.info("Role features flushed", role_id=role_id, changes=changes)
        return FlushOutcome(role_id=role_id, success=True, changes=changes, written=target)

    # Bulk

    async def bulk_update_features(self, operation: Union[BulkOperation, Dict[str, Any]]) -> BulkUpdateResult:
        """Validate, then issue one write per role."""
        await self.ensure_loaded()
        operation = self._as_operation(operation)

        validation = self.validate_bulk_operation(operation)
        if not validation.is_valid:
            self.notifier.error(f"Bulk operation failed: {validation.errors[0]}")
            self.logger.info(
                "Bulk operation rejected",
                category_id=operation.category_id,
                action=operation.action.value,
                errors=validation.errors
            )
            return BulkUpdateResult(validation=validation)

        for warning in validation.warnings:
            self.notifier.warning(warning)

        validator = self._validator()
        role_ids = list(dict.fromkeys(operation.role_ids))

        async def apply(role_id: str) -> FlushOutcome:
            # Queued intents folded in; ones staged during the write keep their own flush
            snapshot = self.queue.pending_for(role_id)
            committed = self.role_feature_matrix.features_for(role_id)
            planned = validator.bulk_target(operation, apply_pending(committed, snapshot))
            target = self._ordered(planned)
            changes = {
                feature_id: feature_id in planned
                for feature_id in self._ordered(committed ^ planned)
            }

            error = await self._write(role_id, target)
            if error is not None:
                return FlushOutcome(role_id=role_id, success=False, changes=changes, error=error)

            self.queue.acknowledge(role_id, snapshot)
            await self._commit(role_id, target, changes)
            if self.queue.has_pending(role_id):
                self.queue.schedule(role_id)
            return FlushOutcome(role_id=role_id, success=True, changes=changes, written=target)

        outcomes = await asyncio.gather(
            *(self.queue.run_exclusive(role_id, lambda role_id=role_id: apply(role_id)) for role_id in role_ids)
        )
        result = BulkUpdateResult(validation=validation, outcomes=list(outcomes))

        if result.success:
            self.notifier.success(f"Bulk {operation.action.value} operation completed successfully")
        self.logger.info(
            "Bulk operation applied",
            category_id=operation.category_id,
            action=operation.action.value,
            roles=len(role_ids),
            failures=sum(1 for outcome in outcomes if not outcome.success)
        )
        return result

    async def get_affected_users(self, role_id: str, feature_id: Optional[str] = None) -> AffectedUsers:
        """Users currently assigned the role. Zero when the store cannot say."""
        try:
            count = await self._call_gateway(
                "count_users_with_role",
                self.gateway.count_users_with_role(role_id)
            )
            return AffectedUsers(count=int(count))
        except (AccessLayerException, TypeError, ValueError) as e:
            self.logger.error("Error getting affected users count", role_id=role_id, feature_id=feature_id, error=str(e))
            return AffectedUsers(count=0)

    async def calculate_bulk_operation_impact(self, operation: Union[BulkOperation, Dict[str, Any]]) -> BulkOperationImpact:
        await self.ensure_loaded()
        operation = self._as_operation(operation)

        validator = self._validator()
        validation = validator.validate_bulk_operation(operation)
        plan = validator.plan_bulk_operation(operation)

        changed = set()
        for role_id, target in plan.items():
            changed |= validator.matrix.features_for(role_id) ^ target

        counts = await asyncio.gather(
            *(self.get_affected_users(role_id, "bulk") for role_id in dict.fromkeys(operation.role_ids))
        )
        total_users = sum(affected.count for affected in counts)

        warnings = list(validation.errors) + list(validation.warnings)
        if total_users > self.config.impact_user_warning_threshold:
            warnings.append(f"This will affect {total_users} users across {len(operation.role_ids)} roles")

        return BulkOperationImpact(
            affected_users=total_users,
            features_changed=self._ordered(changed),
            warnings=warnings,
        )

    # Preview

    def preview_role_interface(self, role_id: str) -> RolePreview:
        """Committed state with queued changes, then preview-only changes, applied."""
        pending = self.queue.pending_for(role_id)
        pending.update(self._preview_changes.get(role_id, {}))
        return self.preview_generator.preview(
            role_id,
            self.role_feature_matrix.features_for(role_id),
            pending,
            matrix_version=self.role_feature_matrix.version,
            pending_version=self.queue.pending_version(role_id),
            overlay_version=self._preview_versions.get(role_id, 0),
        )

    # Pub/sub

    def subscribe(self, event_name: str, handler: EventHandler) -> str:
        return self.events.subscribe(event_name, handler)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self.events.unsubscribe(subscription_id)
