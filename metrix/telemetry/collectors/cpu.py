"""
CPU utilization and load average collectors.
"""

import logging
from typing import List

import psutil

from metrix.telemetry.base import BaseCollector
from metrix.telemetry.collectors.common import clamp_ratio, gauge, run_blocking
from metrix.telemetry.schemas import DataPoint, Metric, current_time_ms

logger = logging.getLogger(__name__)


class CpuCollector(BaseCollector):
    """Reports overall CPU utilization as a ratio."""

    def __init__(self, sample_seconds: float = 0.5):
        """
        Args:
            sample_seconds: Window psutil measures utilization over
        """
        super().__init__(name="cpu")
        self.sample_seconds = sample_seconds

    async def collect(self) -> List[Metric]:
        percent = await run_blocking(psutil.cpu_percent, interval=self.sample_seconds)
        return [
            gauge(
                "system.cpu.utilization",
                "ratio",
                "CPU usage percentage",
                [DataPoint(timestamp=current_time_ms(), value=clamp_ratio(percent / 100))],
            )
        ]


class LoadCollector(BaseCollector):
    """Reports 1, 5 and 15 minute load averages."""

    PERIODS = ("1m", "5m", "15m")

    def __init__(self):
        super().__init__(name="load")

    async def collect(self) -> List[Metric]:
        averages = await run_blocking(psutil.getloadavg)
        timestamp = current_time_ms()
        return [
            gauge(
                "system.cpu.load_average",
                "1",
                "System load average",
                [
                    DataPoint(timestamp=timestamp, value=value, attributes={"period": period})
                    for period, value in zip(self.PERIODS, averages)
                ],
            )
        ]
