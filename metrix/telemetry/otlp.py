"""
OTLP wire encoder.

Converts a MetricBatch into the OpenTelemetry ExportMetricsServiceRequest
envelope. The JSON form follows the OTLP/JSON mapping (lowerCamelCase keys,
64-bit integers as decimal strings); the binary form is the protobuf
serialization of the same envelope using the official message classes from
opentelemetry-proto, so field numbers and fixed64 timestamps match what any
standard collector expects.

Envelope nesting is fixed: one ResourceMetrics, holding one ScopeMetrics,
holding every metric of the batch.
"""

import json
import logging
from typing import Any, Dict, List, Mapping

from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2 import (
    ExportMetricsServiceRequest,
)
from opentelemetry.proto.common.v1.common_pb2 import AnyValue, InstrumentationScope, KeyValue
from opentelemetry.proto.metrics.v1.metrics_pb2 import (
    Gauge,
    Metric as PbMetric,
    NumberDataPoint,
    ResourceMetrics,
    ScopeMetrics,
    Sum,
)
from opentelemetry.proto.resource.v1.resource_pb2 import Resource

from metrix import __version__
from metrix.exceptions import EncodingError
from metrix.telemetry.schemas import DataPoint, Metric, MetricBatch, MetricType

logger = logging.getLogger(__name__)

OtlpPayload = Dict[str, Any]

SCOPE_NAME = "metrix"
SCOPE_VERSION = __version__

NANOS_PER_MILLI = 1_000_000

# AggregationTemporality.AGGREGATION_TEMPORALITY_CUMULATIVE
AGGREGATION_TEMPORALITY_CUMULATIVE = 2


# ============================================================================
# TIMESTAMPS
# ============================================================================


def to_unix_nanos(timestamp_ms: int) -> int:
    """Convert epoch milliseconds to epoch nanoseconds using integer arithmetic."""
    return int(timestamp_ms) * NANOS_PER_MILLI


def from_unix_nanos(timestamp_ns: int) -> int:
    """Convert epoch nanoseconds back to epoch milliseconds."""
    return int(timestamp_ns) // NANOS_PER_MILLI


# ============================================================================
# JSON ENVELOPE
# ============================================================================


def _string_attributes(attributes: Mapping[str, str]) -> List[Dict[str, Any]]:
    return [{"key": key, "value": {"stringValue": value}} for key, value in attributes.items()]


def _data_point(dp: DataPoint) -> Dict[str, Any]:
    point: Dict[str, Any] = {
        "asDouble": dp.value,
        "timeUnixNano": str(to_unix_nanos(dp.timestamp)),
    }
    if dp.attributes:
        point["attributes"] = _string_attributes(dp.attributes)
    return point


def _cumulative_data_point(dp: DataPoint) -> Dict[str, Any]:
    # No per-series start time is tracked: every counter sample is reported
    # as a zero-length window starting at its own timestamp.
    point = _data_point(dp)
    point["startTimeUnixNano"] = point["timeUnixNano"]
    return point


def _metric(metric: Metric) -> Dict[str, Any]:
    encoded: Dict[str, Any] = {
        "name": metric.name,
        "unit": metric.unit,
        "description": metric.description,
    }

    if metric.type is MetricType.GAUGE:
        encoded["gauge"] = {"dataPoints": [_data_point(dp) for dp in metric.data_points]}
    elif metric.type is MetricType.COUNTER:
        encoded["sum"] = {
            "aggregationTemporality": AGGREGATION_TEMPORALITY_CUMULATIVE,
            "isMonotonic": True,
            "dataPoints": [_cumulative_data_point(dp) for dp in metric.data_points],
        }
    else:
        raise EncodingError(f"Unsupported metric type for {metric.name}: {metric.type!r}")

    return encoded


def build_payload(batch: MetricBatch) -> OtlpPayload:
    """
    Build the OTLP/JSON envelope for a batch.

    Args:
        batch: Metrics collected in one cycle

    Returns:
        Envelope dictionary, ready for json.dumps() or encode_binary()
    """
    resource_attributes = _string_attributes(
        {"host.name": batch.resource.hostname, "user.name": batch.resource.username}
    )

    return {
        "resourceMetrics": [
            {
                "resource": {"attributes": resource_attributes},
                "scopeMetrics": [
                    {
                        "scope": {"name": SCOPE_NAME, "version": SCOPE_VERSION},
                        "metrics": [_metric(m) for m in batch.metrics],
                    }
                ],
            }
        ]
    }


def encode_json(payload: OtlpPayload, pretty: bool = False) -> str:
    """Serialize an envelope as OTLP/JSON text."""
    if pretty:
        return json.dumps(payload, indent=2)
    return json.dumps(payload, separators=(",", ":"))


# ============================================================================
# BINARY (PROTOBUF) ENVELOPE
# ============================================================================


def _pb_any_value(value: Mapping[str, Any]) -> AnyValue:
    if "stringValue" in value:
        return AnyValue(string_value=value["stringValue"])
    if "intValue" in value:
        return AnyValue(int_value=int(value["intValue"]))
    if "doubleValue" in value:
        return AnyValue(double_value=float(value["doubleValue"]))
    if "boolValue" in value:
        return AnyValue(bool_value=bool(value["boolValue"]))
    raise EncodingError(f"Unsupported attribute value: {value!r}")


def _pb_attributes(attributes: List[Mapping[str, Any]]) -> List[KeyValue]:
    return [KeyValue(key=a["key"], value=_pb_any_value(a["value"])) for a in attributes]


def _pb_data_point(point: Mapping[str, Any]) -> NumberDataPoint:
    pb_point = NumberDataPoint(
        as_double=float(point["asDouble"]),
        time_unix_nano=int(point["timeUnixNano"]),
        attributes=_pb_attributes(point.get("attributes", [])),
    )
    if "startTimeUnixNano" in point:
        pb_point.start_time_unix_nano = int(point["startTimeUnixNano"])
    return pb_point


def _pb_metric(metric: Mapping[str, Any]) -> PbMetric:
    common = {
        "name": metric["name"],
        "unit": metric["unit"],
        "description": metric["description"],
    }

    if "gauge" in metric:
        return PbMetric(
            **common,
            gauge=Gauge(data_points=[_pb_data_point(p) for p in metric["gauge"]["dataPoints"]]),
        )
    if "sum" in metric:
        total = metric["sum"]
        return PbMetric(
            **common,
            sum=Sum(
                aggregation_temporality=total["aggregationTemporality"],
                is_monotonic=total["isMonotonic"],
                data_points=[_pb_data_point(p) for p in total["dataPoints"]],
            ),
        )
    raise EncodingError(f"Metric {metric['name']} has neither gauge nor sum data")


def to_protobuf(payload: OtlpPayload) -> ExportMetricsServiceRequest:
    """Convert an OTLP/JSON envelope into the protobuf request message."""
    request = ExportMetricsServiceRequest()
    for resource_metrics in payload["resourceMetrics"]:
        request.resource_metrics.append(
            ResourceMetrics(
                resource=Resource(
                    attributes=_pb_attributes(resource_metrics["resource"]["attributes"])
                ),
                scope_metrics=[
                    ScopeMetrics(
                        scope=InstrumentationScope(
                            name=scope_metrics["scope"]["name"],
                            version=scope_metrics["scope"]["version"],
                        ),
                        metrics=[_pb_metric(m) for m in scope_metrics["metrics"]],
                    )
                    for scope_metrics in resource_metrics["scopeMetrics"]
                ],
            )
        )
    return request


def encode_binary(payload: OtlpPayload) -> bytes:
    """Serialize an envelope as binary protobuf (application/x-protobuf)."""
    return to_protobuf(payload).SerializeToString()


def decode_binary(data: bytes) -> ExportMetricsServiceRequest:
    """Parse a binary envelope back into the protobuf request message."""
    request = ExportMetricsServiceRequest()
    request.ParseFromString(data)
    return request
