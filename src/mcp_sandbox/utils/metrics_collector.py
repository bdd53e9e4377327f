"""Prometheus metrics collection for MCP Sandbox."""

from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)


class MetricsCollector:
    """Collects and exposes Prometheus metrics for sandbox container operations."""

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize metrics collector with all metrics.

        Args:
            registry: Registry to register metrics with (defaults to the global registry)
        """
        self.registry = registry if registry is not None else REGISTRY

        self.active_containers = Gauge(
            "mcp_sandbox_active_containers",
            "Number of containers tracked by the container registry",
            registry=self.registry,
        )

        self.container_starts_total = Counter(
            "mcp_sandbox_container_starts_total",
            "Total number of container start attempts",
            ["status"],
            registry=self.registry,
        )

        self.containers_reaped_total = Counter(
            "mcp_sandbox_containers_reaped_total",
            "Total number of idle containers destroyed by the registry",
            registry=self.registry,
        )

        self.container_requests_total = Counter(
            "mcp_sandbox_container_requests_total",
            "Total number of requests proxied into containers",
            ["operation", "status"],
            registry=self.registry,
        )

    def set_active_containers(self, count: int) -> None:
        """
        Set the number of active containers.

        Args:
            count: Number of active containers
        """
        self.active_containers.set(count)

    def record_container_start(self, status: str) -> None:
        """
        Record a container start attempt.

        Args:
            status: Outcome of the start (success, failure, capacity)
        """
        self.container_starts_total.labels(status=status).inc()

    def record_reaped(self, count: int) -> None:
        """
        Record reaped containers.

        Args:
            count: Number of containers reaped in one sweep
        """
        if count:
            self.containers_reaped_total.inc(count)

    def record_container_request(self, operation: str, status: str) -> None:
        """
        Record a proxied container request.

        Args:
            operation: Session operation (ping, exec, ls, read, write, delete)
            status: Outcome (success, failure)
        """
        self.container_requests_total.labels(operation=operation, status=status).inc()

    def get_metrics(self) -> bytes:
        """
        Get current metrics in Prometheus format.

        Returns:
            Metrics data in bytes
        """
        return generate_latest(self.registry)


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """
    Get the global metrics collector instance.

    Returns:
        MetricsCollector instance
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector
