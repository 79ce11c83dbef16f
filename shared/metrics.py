"""
Shared metrics configuration for the Mini App Auth Bridge.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector owns its registry so several application instances can
    live in one process (tests build one per fixture).
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
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

        self._setup_auth_metrics()

    def _setup_auth_metrics(self):
        """Set up auth-specific metrics.

        Verification outcomes and upstream call outcomes are separate series
        so signature rejections are never counted as provider failures.
        """
        self._metrics["initdata_verifications_total"] = Counter(
            "initdata_verifications_total",
            "Total initData verifications",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["accounts_provisioned_total"] = Counter(
            "accounts_provisioned_total",
            "Total account provisioning decisions",
            ["result"],
            registry=self.registry
        )

        self._metrics["upstream_calls_total"] = Counter(
            "upstream_calls_total",
            "Total identity provider calls",
            ["operation", "status"],
            registry=self.registry
        )

        self._metrics["upstream_call_duration_seconds"] = Histogram(
            "upstream_call_duration_seconds",
            "Identity provider call duration in seconds",
            ["operation"],
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

    def record_verification(self, outcome: str):
        """Record an initData verification outcome (``verified`` or an error code)."""
        self._metrics["initdata_verifications_total"].labels(outcome=outcome).inc()

    def record_provisioning(self, result: str):
        """Record whether an account was created, already existed or failed."""
        self._metrics["accounts_provisioned_total"].labels(result=result).inc()

    def record_upstream_call(self, operation: str, status: str, duration: float):
        """Record an identity provider call."""
        self._metrics["upstream_calls_total"].labels(operation=operation, status=status).inc()
        self._metrics["upstream_call_duration_seconds"].labels(operation=operation).observe(duration)

    def sample_value(self, metric_name: str, **labels) -> float:
        """Read the current value of a counter sample, 0.0 when absent."""
        value = self.registry.get_sample_value(metric_name, labels)
        return value or 0.0


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)

