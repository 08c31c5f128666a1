"""
Metrix telemetry pipeline.

Collects host metrics, encodes them as OTLP and exports them to a collector
on a fixed interval.

Principles:
- One cycle in flight at a time; slow cycles shed ticks instead of piling up
- A failing collector never costs the others their metrics
- A failed export is logged and skipped, never retried or queued

Usage:
    from metrix.config import MetrixConfig
    from metrix.telemetry import MetrixService

    service = MetrixService(MetrixConfig.from_file())
    await service.run()
"""

from metrix.config import ExportFormat
from metrix.telemetry.base import BaseCollector, CollectorRegistry, FunctionCollector
from metrix.telemetry.exporter import OtlpExporter, export_metrics
from metrix.telemetry.otlp import build_payload, encode_binary, encode_json
from metrix.telemetry.scheduler import GracefulShutdown, MetricsScheduler
from metrix.telemetry.schemas import (
    DataPoint,
    ExportResult,
    Metric,
    MetricBatch,
    MetricType,
    ResourceAttributes,
)
from metrix.telemetry.service import MetrixService, run_agent

__all__ = [
    # Service
    "MetrixService",
    "run_agent",
    # Scheduling
    "MetricsScheduler",
    "GracefulShutdown",
    # Collection
    "BaseCollector",
    "CollectorRegistry",
    "FunctionCollector",
    # Export
    "OtlpExporter",
    "export_metrics",
    "build_payload",
    "encode_json",
    "encode_binary",
    # Core schemas
    "DataPoint",
    "Metric",
    "MetricType",
    "MetricBatch",
    "ResourceAttributes",
    "ExportFormat",
    "ExportResult",
]
