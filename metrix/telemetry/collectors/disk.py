"""
Disk space and disk I/O collectors.
"""

import logging
from dataclasses import dataclass
from typing import List

import psutil

from metrix.telemetry.base import BaseCollector
from metrix.telemetry.collectors.common import counter, gauge, run_blocking, safe_ratio
from metrix.telemetry.schemas import DataPoint, Metric, current_time_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiskUsage:
    mountpoint: str
    used: int
    available: int

    @property
    def utilization(self) -> float:
        return safe_ratio(self.used, self.used + self.available)


@dataclass(frozen=True)
class DiskIOStats:
    device: str
    bytes_read: int
    bytes_written: int
    operations_read: int
    operations_write: int

    @property
    def is_idle(self) -> bool:
        return not (
            self.bytes_read or self.bytes_written or self.operations_read or self.operations_write
        )


def read_disk_usage() -> List[DiskUsage]:
    """
    Usage of every mounted physical filesystem.

    Raises:
        RuntimeError: If no filesystem could be read
    """
    stats: List[DiskUsage] = []
    seen = set()
    for partition in psutil.disk_partitions(all=False):
        if partition.mountpoint in seen:
            continue
        seen.add(partition.mountpoint)
        try:
            usage = psutil.disk_usage(partition.mountpoint)
        except OSError as e:
            logger.debug(f"Skipping {partition.mountpoint}: {e}")
            continue
        stats.append(DiskUsage(partition.mountpoint, usage.used, usage.free))

    if not stats:
        raise RuntimeError("No disk statistics found")
    return stats


def read_disk_io() -> List[DiskIOStats]:
    """
    Cumulative I/O counters per disk, skipping disks with no activity.

    Raises:
        RuntimeError: If no counters are available
    """
    counters = psutil.disk_io_counters(perdisk=True) or {}
    stats = [
        DiskIOStats(
            device=device,
            bytes_read=io.read_bytes,
            bytes_written=io.write_bytes,
            operations_read=io.read_count,
            operations_write=io.write_count,
        )
        for device, io in sorted(counters.items())
    ]
    stats = [s for s in stats if not s.is_idle]

    if not stats:
        raise RuntimeError("No disk I/O statistics found")
    return stats


class DiskCollector(BaseCollector):
    """Reports used/available space per mount point."""

    def __init__(self):
        super().__init__(name="disk")

    async def collect(self) -> List[Metric]:
        stats = await run_blocking(read_disk_usage)
        timestamp = current_time_ms()

        def points(attr: str) -> List[DataPoint]:
            return [
                DataPoint(
                    timestamp=timestamp,
                    value=getattr(s, attr),
                    attributes={"device": s.mountpoint},
                )
                for s in stats
            ]

        return [
            gauge("system.disk.usage", "bytes", "Disk space used", points("used")),
            gauge("system.disk.available", "bytes", "Disk space available", points("available")),
            gauge(
                "system.disk.utilization", "ratio", "Disk usage percentage", points("utilization")
            ),
        ]


class DiskIOCollector(BaseCollector):
    """Reports cumulative bytes and operations read/written per disk."""

    def __init__(self):
        super().__init__(name="disk_io")

    async def collect(self) -> List[Metric]:
        stats = await run_blocking(read_disk_io)
        timestamp = current_time_ms()

        io_points: List[DataPoint] = []
        op_points: List[DataPoint] = []
        for s in stats:
            read_attrs = {"device": s.device, "direction": "read"}
            write_attrs = {"device": s.device, "direction": "write"}
            io_points.append(
                DataPoint(timestamp=timestamp, value=s.bytes_read, attributes=read_attrs)
            )
            io_points.append(
                DataPoint(timestamp=timestamp, value=s.bytes_written, attributes=write_attrs)
            )
            op_points.append(
                DataPoint(timestamp=timestamp, value=s.operations_read, attributes=read_attrs)
            )
            op_points.append(
                DataPoint(timestamp=timestamp, value=s.operations_write, attributes=write_attrs)
            )

        return [
            counter("system.disk.io", "bytes", "Bytes read/written", io_points),
            counter("system.disk.operations", "operations", "Read/write operations", op_points),
        ]
