"""
Prometheus metrics for the Vara catalog backend.
"""

from typing import Any, Dict, Optional, Sequence, Tuple

from prometheus_client import CollectorRegistry, Counter, Histogram, Info


# name -> (help, labels)
COMMON_COUNTERS: Dict[str, Tuple[str, Sequence[str]]] = {
    "http_requests_total": ("HTTP requests", ("method", "endpoint", "status_code")),
    "health_check_total": ("Health check requests", ("status",)),
    "errors_total": ("Errors returned to clients", ("error_type", "service")),
}

CATALOG_COUNTERS: Dict[str, Tuple[str, Sequence[str]]] = {
    "response_cache_total": ("Read-through response cache lookups by outcome", ("route", "result")),
    "content_version_bumps_total": ("Content version bumps", ("collection", "status")),
    "object_store_deletes_total": ("Media object deletions", ("status",)),
}


class MetricsCollector:
    """Metrics of one service instance.

    Each collector owns its registry so that several service instances (one
    per test, for example) never collide on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        info = Info("service", "Service information", registry=self.registry)
        info.info({"service": service_name, "version": "1.0.0"})

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        counters = dict(COMMON_COUNTERS)
        if service_name == "catalog":
            counters.update(CATALOG_COUNTERS)
        for name, (documentation, labels) in counters.items():
            self._metrics[name] = Counter(name, documentation, list(labels), registry=self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self.increment_counter(
            "http_requests_total",
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        )
        self._metrics["http_request_duration_seconds"].labels(method=method, endpoint=endpoint).observe(duration)

    def record_health_check(self, status: str):
        self.increment_counter("health_check_total", status=status)

    def record_error(self, error_type: str, service: Optional[str] = None):
        self.increment_counter("errors_total", error_type=error_type, service=service or self.service_name)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter; unknown names are ignored."""
        counter = self._metrics.get(metric_name)
        if counter is not None:
            counter.labels(**labels).inc()

    def get_sample_value(self, metric_name: str, **labels) -> Optional[float]:
        """Read back a sample from this collector's registry."""
        return self.registry.get_sample_value(metric_name, labels)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
