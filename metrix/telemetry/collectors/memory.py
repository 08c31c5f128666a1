"""
Memory and swap collectors.
"""

from typing import List

import psutil

from metrix.telemetry.base import BaseCollector
from metrix.telemetry.collectors.common import gauge, run_blocking, safe_ratio
from metrix.telemetry.schemas import DataPoint, Metric, current_time_ms


class MemoryCollector(BaseCollector):
    """Reports physical memory usage, availability and utilization."""

    def __init__(self):
        super().__init__(name="memory")

    async def collect(self) -> List[Metric]:
        vm = await run_blocking(psutil.virtual_memory)
        if vm.total <= 0:
            raise RuntimeError("Failed to read total memory")

        timestamp = current_time_ms()
        return [
            gauge(
                "system.memory.usage",
                "bytes",
                "Memory currently in use",
                [DataPoint(timestamp=timestamp, value=vm.used)],
            ),
            gauge(
                "system.memory.available",
                "bytes",
                "Memory available",
                [DataPoint(timestamp=timestamp, value=vm.available)],
            ),
            gauge(
                "system.memory.utilization",
                "ratio",
                "Memory usage percentage",
                [DataPoint(timestamp=timestamp, value=safe_ratio(vm.used, vm.total))],
            ),
        ]


class SwapCollector(BaseCollector):
    """Reports swap usage, availability and utilization."""

    def __init__(self):
        super().__init__(name="swap")

    async def collect(self) -> List[Metric]:
        swap = await run_blocking(psutil.swap_memory)
        timestamp = current_time_ms()
        return [
            gauge(
                "system.swap.usage",
                "bytes",
                "Swap space used",
                [DataPoint(timestamp=timestamp, value=swap.used)],
            ),
            gauge(
                "system.swap.available",
                "bytes",
                "Swap space available",
                [DataPoint(timestamp=timestamp, value=swap.free)],
            ),
            gauge(
                "system.swap.utilization",
                "ratio",
                "Swap usage percentage",
                [DataPoint(timestamp=timestamp, value=safe_ratio(swap.used, swap.total))],
            ),
        ]
