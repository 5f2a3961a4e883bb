"""
Shared metrics configuration for the Feature Visibility Engine.
"""

import time
from contextlib import contextmanager
from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Info, CollectorRegistry


class VisibilityMetrics:
    """Prometheus metrics for validation, flush and load activity."""

    def __init__(self, service_name: str = "visibility", registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # A private registry keeps several engines in one process from colliding
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up the metrics exported by the engine."""
        self._metrics["service_info"] = Info(
            "visibility_service",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        self._metrics["validations_total"] = Counter(
            "visibility_validations_total",
            "Feature change validations",
            ["kind", "outcome"],
            registry=self.registry
        )

        self._metrics["flushes_total"] = Counter(
            "visibility_flushes_total",
            "Persistence flushes per role",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["flush_duration_seconds"] = Histogram(
            "visibility_flush_duration_seconds",
            "Duration of role feature writes",
            registry=self.registry
        )

        self._metrics["load_failures_total"] = Counter(
            "visibility_load_failures_total",
            "Failed catalog/role/matrix loads",
            registry=self.registry
        )

    def record_validation(self, kind: str, is_valid: bool):
        self._metrics["validations_total"].labels(
            kind=kind,
            outcome="valid" if is_valid else "invalid"
        ).inc()

    def record_flush(self, outcome: str):
        self._metrics["flushes_total"].labels(outcome=outcome).inc()

    def record_load_failure(self):
        self._metrics["load_failures_total"].inc()

    @contextmanager
    def time_flush(self):
        """Observe the duration of a persistence write."""
        start_time = time.time()
        try:
            yield
        finally:
            self._metrics["flush_duration_seconds"].observe(time.time() - start_time)

    def get_sample_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read a sample back from the registry."""
        return self.registry.get_sample_value(name, labels or {})
