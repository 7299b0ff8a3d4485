"""Prometheus metrics for the subscriber service."""

from prometheus_client import CollectorRegistry, Counter, generate_latest

# Create a custom registry for the subscriber service
subscriber_registry = CollectorRegistry()

# Define metrics
hub_requests_total = Counter(
    'websub_hub_requests_total',
    'Total number of subscription requests sent to hubs',
    ['mode', 'outcome'],
    registry=subscriber_registry
)

verifications_total = Counter(
    'websub_verifications_total',
    'Total number of hub verification attempts',
    ['mode', 'outcome'],
    registry=subscriber_registry
)

notifications_total = Counter(
    'websub_notifications_total',
    'Total number of content notifications received',
    ['outcome'],
    registry=subscriber_registry
)

discoveries_total = Counter(
    'websub_discoveries_total',
    'Total number of hub discovery attempts',
    ['outcome'],
    registry=subscriber_registry
)


class MetricsCollector:
    """Collector for subscriber metrics."""

    def record_hub_request(self, mode: str, outcome: str) -> None:
        """Record a subscription request sent to a hub."""
        hub_requests_total.labels(mode=mode, outcome=outcome).inc()

    def record_verification(self, mode: str, outcome: str) -> None:
        """Record a verification attempt from a hub."""
        verifications_total.labels(mode=mode, outcome=outcome).inc()

    def record_notification(self, outcome: str) -> None:
        """Record a content notification."""
        notifications_total.labels(outcome=outcome).inc()

    def record_discovery(self, outcome: str) -> None:
        """Record a discovery attempt."""
        discoveries_total.labels(outcome=outcome).inc()

    def get_metrics_text(self) -> str:
        """Get metrics in Prometheus text format."""
        return generate_latest(subscriber_registry).decode('utf-8')


# Global metrics collector
metrics = MetricsCollector()
