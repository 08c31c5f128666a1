"""
Helpers shared by the host collectors.
"""

import asyncio
import functools
from typing import Any, Callable, List, TypeVar

from metrix.telemetry.schemas import DataPoint, Metric, MetricType

T = TypeVar("T")


async def run_blocking(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking call (psutil, file reads) in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))


def clamp_ratio(value: float) -> float:
    """Clamp a ratio into [0, 1]."""
    return min(1.0, max(0.0, value))


def safe_ratio(part: float, whole: float) -> float:
    """part / whole clamped into [0, 1]; 0 when whole is not positive."""
    return clamp_ratio(part / whole) if whole > 0 else 0.0


def gauge(name: str, unit: str, description: str, data_points: List[DataPoint]) -> Metric:
    return Metric(
        name=name,
        type=MetricType.GAUGE,
        unit=unit,
        description=description,
        data_points=data_points,
    )


def counter(name: str, unit: str, description: str, data_points: List[DataPoint]) -> Metric:
    return Metric(
        name=name,
        type=MetricType.COUNTER,
        unit=unit,
        description=description,
        data_points=data_points,
    )
