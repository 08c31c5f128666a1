"""
Pytest configuration and fixtures for metrix tests.
"""

import pytest

from metrix.config import OtlpConfig
from metrix.telemetry.schemas import (
    DataPoint,
    Metric,
    MetricBatch,
    MetricType,
    ResourceAttributes,
)


def make_metric(
    name: str = "test.metric",
    metric_type: MetricType = MetricType.GAUGE,
    value: float = 1.0,
    timestamp: int = 1_700_000_000_000,
    attributes=None,
) -> Metric:
    """Build a single-point metric."""
    return Metric(
        name=name,
        type=metric_type,
        unit="1",
        description=f"{name} description",
        data_points=[DataPoint(timestamp=timestamp, value=value, attributes=attributes or {})],
    )


@pytest.fixture
def resource():
    """Resource attributes for a fake host."""
    return ResourceAttributes(hostname="test-host", username="tester")


@pytest.fixture
def sample_batch(resource):
    """Batch with one gauge and one counter."""
    return MetricBatch(
        resource=resource,
        metrics=[
            make_metric("system.cpu.utilization", MetricType.GAUGE, 0.25),
            make_metric(
                "system.network.io",
                MetricType.COUNTER,
                1024,
                attributes={"device": "en0", "direction": "receive"},
            ),
        ],
    )


@pytest.fixture
def otlp_config():
    """Export settings pointing at a local collector."""
    return OtlpConfig(endpoint="http://localhost:4318/v1/metrics")


@pytest.fixture
def metric_factory():
    """Factory for single-point metrics."""
    return make_metric
