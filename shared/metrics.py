"""
Shared metrics configuration for the Field Condition service.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, Info, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Each collector owns its registry so several app instances can coexist
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "field_condition":
            self._setup_field_condition_metrics()

    def _setup_field_condition_metrics(self):
        """Set up field-condition-specific metrics."""
        self._metrics["condition_evaluations_total"] = Counter(
            "condition_evaluations_total",
            "Total field condition evaluations",
            ["result"],
            registry=self.registry
        )

        self._metrics["condition_evaluation_duration_seconds"] = Histogram(
            "condition_evaluation_duration_seconds",
            "Field condition evaluation duration in seconds",
            registry=self.registry
        )

        self._metrics["stale_selections_total"] = Counter(
            "stale_selections_total",
            "Total stale selections discarded during resolution",
            ["level"],
            registry=self.registry
        )

        self._metrics["resolution_rounds_total"] = Counter(
            "resolution_rounds_total",
            "Total configuration resolution rounds",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_evaluation(self, result: str, duration: float):
        """Record a field condition evaluation."""
        self.increment_counter("condition_evaluations_total", result=result)
        if "condition_evaluation_duration_seconds" in self._metrics:
            self._metrics["condition_evaluation_duration_seconds"].observe(duration)

    def record_resolution(self, stale_levels=()):
        """Record one resolution round and the levels it found stale."""
        if "resolution_rounds_total" in self._metrics:
            self._metrics["resolution_rounds_total"].inc()
        for level in stale_levels:
            self.increment_counter("stale_selections_total", level=level)

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            if operation_name in self._metrics:
                metric = self._metrics[operation_name]
                (metric.labels(**labels) if labels else metric).observe(duration)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
