"""Prometheus metrics for vault services.

One ``MetricsCollector`` owns one ``CollectorRegistry``. HTTP metrics keep
the plain ``http_*`` names shared by every service; search and embedding
metrics live under the ``vault`` namespace. Label sets are fixed here so
callers can only pick values from small, known vocabularies (strategy,
failure reason, degradation reason, model name).
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
import structlog

logger = structlog.get_logger("metrics")

NAMESPACE = "vault"
RESULT_COUNT_BUCKETS = (0, 1, 5, 10, 20, 50, 100)


class MetricsCollector:
    """Metrics for one service.

    Parameters
    - service_name: Name of the owning service
    - registry: Registry to register on; a fresh one is created when omitted
      so that tests can build isolated collectors
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        reg = self.registry

        self.request_count = Counter(
            "http_requests_total", "Total HTTP requests",
            labelnames=("method", "endpoint", "status"), registry=reg,
        )
        self.request_duration = Histogram(
            "http_request_duration_seconds", "HTTP request duration",
            labelnames=("method", "endpoint"), registry=reg,
        )

        self.search_requests = Counter(
            "search_requests_total", "Completed searches by strategy used",
            labelnames=("strategy",), namespace=NAMESPACE, registry=reg,
        )
        self.search_duration = Histogram(
            "search_duration_seconds", "End-to-end search latency",
            labelnames=("strategy",), namespace=NAMESPACE, registry=reg,
        )
        self.search_results = Histogram(
            "search_results", "Results returned on the requested page",
            labelnames=("strategy",), namespace=NAMESPACE,
            buckets=RESULT_COUNT_BUCKETS, registry=reg,
        )
        self.search_failures = Counter(
            "search_failures_total", "Searches rejected or failed",
            labelnames=("reason",), namespace=NAMESPACE, registry=reg,
        )
        self.semantic_degradations = Counter(
            "semantic_degradations_total", "Semantic path recovered to an empty result set",
            labelnames=("reason",), namespace=NAMESPACE, registry=reg,
        )

        self.analytics_dropped = Counter(
            "analytics_events_dropped_total", "Usage events dropped before reaching Redis",
            labelnames=("reason",), namespace=NAMESPACE, registry=reg,
        )

        self.embedding_requests = Counter(
            "embedding_requests_total", "Query embedding requests",
            labelnames=("model_name", "status"), namespace=NAMESPACE, registry=reg,
        )
        self.embedding_duration = Histogram(
            "embedding_duration_seconds", "Query embedding latency",
            labelnames=("model_name",), namespace=NAMESPACE, registry=reg,
        )

    def record_http_request(self, method: str, endpoint: str, status: int, duration: float) -> None:
        """Count one HTTP request; ``duration`` is in seconds."""
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_search(self, strategy: str, duration: float, results_count: int = 0) -> None:
        self.search_requests.labels(strategy=strategy).inc()
        self.search_duration.labels(strategy=strategy).observe(duration)
        self.search_results.labels(strategy=strategy).observe(results_count)

    def record_search_failure(self, reason: str) -> None:
        self.search_failures.labels(reason=reason).inc()

    def record_semantic_degradation(self, reason: str) -> None:
        self.semantic_degradations.labels(reason=reason).inc()

    def record_analytics_dropped(self, reason: str) -> None:
        self.analytics_dropped.labels(reason=reason).inc()

    def record_embedding(self, model_name: str, status: str, duration: float) -> None:
        self.embedding_requests.labels(model_name=model_name, status=status).inc()
        self.embedding_duration.labels(model_name=model_name).observe(duration)

    def get_metrics(self) -> str:
        """Registry contents in the Prometheus text exposition format."""
        return generate_latest(self.registry).decode("utf-8")


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Process-wide collector; the first caller's ``service_name`` wins."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
        logger.debug("Metrics collector created", service=service_name)
    return _metrics_collector
