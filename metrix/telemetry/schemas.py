"""
Type-safe telemetry schemas for metrix.

These schemas define the internal metric model that collectors produce and
the OTLP encoder consumes. Instances are immutable once created.
"""

import time
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# ENUMS - No magic strings
# ============================================================================


class MetricType(str, Enum):
    """Kind of metric; selects the OTLP data shape (gauge or sum)."""

    GAUGE = "gauge"  # Point-in-time reading
    COUNTER = "counter"  # Monotonic cumulative count


class SchedulerState(str, Enum):
    """Scheduler lifecycle states. STOPPED is terminal."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


# ============================================================================
# METRIC MODEL
# ============================================================================


class DataPoint(BaseModel):
    """One sampled value."""

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(ge=0, description="Milliseconds since the Unix epoch")
    value: float
    attributes: Dict[str, str] = Field(default_factory=dict)


class Metric(BaseModel):
    """A named metric with one or more data points."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Dotted name, e.g. system.cpu.utilization")
    type: MetricType
    unit: str
    description: str
    data_points: List[DataPoint] = Field(min_length=1)


class ResourceAttributes(BaseModel):
    """Identifies the machine and user a batch originates from."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    username: str


class MetricBatch(BaseModel):
    """Output of one collect cycle - the unit of export."""

    model_config = ConfigDict(frozen=True)

    resource: ResourceAttributes
    metrics: List[Metric]


class ExportResult(BaseModel):
    """Outcome of a single delivery attempt."""

    model_config = ConfigDict(frozen=True)

    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


# ============================================================================
# STATISTICS MODELS
# ============================================================================


class CollectorStats(BaseModel):
    """Statistics for a single collector."""

    name: str
    collections: int = Field(ge=0)
    errors: int = Field(ge=0)
    error_rate: float = Field(ge=0, le=1)
    last_collection: Optional[str] = None  # ISO timestamp
    last_error: Optional[str] = None


class RegistryStats(BaseModel):
    """Statistics for every registered collector."""

    collectors: Dict[str, CollectorStats]


class SchedulerStats(BaseModel):
    """Counters for the scheduler's cycles."""

    state: SchedulerState
    interval_seconds: float
    cycles_started: int = Field(ge=0)
    cycles_failed: int = Field(ge=0)
    ticks_skipped: int = Field(ge=0)
    exports: int = Field(ge=0)
    empty_cycles: int = Field(ge=0)
    last_cycle_at: Optional[str] = None  # ISO timestamp
    last_error: Optional[str] = None


def current_time_ms() -> int:
    """Return the current time as integer milliseconds since the epoch."""
    return time.time_ns() // 1_000_000
