"""
Shared metrics configuration for the Wallet Access Layer.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector owns its registry so several app instances (tests,
    workers) can coexist in one process.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

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

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_gateway_metrics()

    def _setup_gateway_metrics(self):
        """Set up wallet gateway metrics."""
        self._metrics["gateway_calls_total"] = Counter(
            "gateway_calls_total",
            "Total wallet gateway calls",
            ["operation", "result_status"],
            registry=self.registry
        )

        self._metrics["gateway_call_duration_seconds"] = Histogram(
            "gateway_call_duration_seconds",
            "Wallet gateway call duration in seconds",
            ["operation"],
            registry=self.registry
        )

        self._metrics["reconciliation_outcomes_total"] = Counter(
            "reconciliation_outcomes_total",
            "Reconciliation loop outcomes",
            ["kind", "outcome"],
            registry=self.registry
        )

        self._metrics["claims_tokens_total"] = Counter(
            "claims_tokens_total",
            "Claims tokens issued and rejected",
            ["event"],
            registry=self.registry
        )

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

    def record_gateway_call(self, operation: str, result_status: str, duration: float):
        """Record one gateway round trip. Transport failures use result_status='transport_error'."""
        self._metrics["gateway_calls_total"].labels(
            operation=operation,
            result_status=result_status
        ).inc()
        self._metrics["gateway_call_duration_seconds"].labels(operation=operation).observe(duration)

    def record_reconciliation(self, kind: str, outcome: str):
        """Record the final state of a reconciliation loop."""
        self._metrics["reconciliation_outcomes_total"].labels(kind=kind, outcome=outcome).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
