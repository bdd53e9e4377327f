"""Unit tests for metrics collector."""

import pytest
from prometheus_client import CollectorRegistry

from mcp_sandbox.utils.metrics_collector import MetricsCollector, get_metrics_collector


@pytest.fixture
def metrics_collector():
    """Create metrics collector on an isolated registry."""
    return MetricsCollector(registry=CollectorRegistry())


def test_metrics_collector_singleton():
    """Test that get_metrics_collector returns singleton instance."""
    collector1 = get_metrics_collector()
    collector2 = get_metrics_collector()
    assert collector1 is collector2


def test_set_active_containers(metrics_collector):
    metrics_collector.set_active_containers(3)
    metrics_collector.set_active_containers(2)

    value = metrics_collector.registry.get_sample_value("mcp_sandbox_active_containers")
    assert value == 2


def test_record_container_start(metrics_collector):
    """Test recording container start outcomes."""
    metrics_collector.record_container_start("success")
    metrics_collector.record_container_start("success")
    metrics_collector.record_container_start("capacity")

    registry = metrics_collector.registry
    name = "mcp_sandbox_container_starts_total"
    assert registry.get_sample_value(name, {"status": "success"}) == 2
    assert registry.get_sample_value(name, {"status": "capacity"}) == 1
    assert registry.get_sample_value(name, {"status": "failure"}) is None


def test_record_reaped(metrics_collector):
    metrics_collector.record_reaped(0)
    metrics_collector.record_reaped(3)

    value = metrics_collector.registry.get_sample_value("mcp_sandbox_containers_reaped_total")
    assert value == 3


def test_record_container_request(metrics_collector):
    """Test recording proxied requests."""
    metrics_collector.record_container_request("exec", "success")
    metrics_collector.record_container_request("read", "failure")

    metrics_data = metrics_collector.get_metrics().decode("utf-8")

    assert "mcp_sandbox_container_requests_total" in metrics_data
    assert 'operation="exec"' in metrics_data
    assert 'status="failure"' in metrics_data


def test_get_metrics_format(metrics_collector):
    """Test that get_metrics returns Prometheus text format."""
    metrics_collector.set_active_containers(1)

    metrics_data = metrics_collector.get_metrics()

    assert isinstance(metrics_data, bytes)
    assert b"# HELP mcp_sandbox_active_containers" in metrics_data
    assert b"# TYPE mcp_sandbox_active_containers gauge" in metrics_data
