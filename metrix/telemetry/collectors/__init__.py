"""
Host metric collector implementations.

These collectors gather operating-system metrics from psutil and from
platform tools.
"""

from metrix.telemetry.base import CollectorRegistry
from metrix.telemetry.collectors.cpu import CpuCollector, LoadCollector
from metrix.telemetry.collectors.disk import DiskCollector, DiskIOCollector
from metrix.telemetry.collectors.memory import MemoryCollector, SwapCollector
from metrix.telemetry.collectors.network import NetworkCollector, WifiCollector
from metrix.telemetry.collectors.peripherals import BluetoothCollector, DisplayCollector
from metrix.telemetry.collectors.power import (
    BatteryCollector,
    FanCollector,
    ThermalCollector,
    UptimeCollector,
)


def build_default_registry() -> CollectorRegistry:
    """Registry holding one instance of every built-in collector."""
    return CollectorRegistry(
        [
            CpuCollector(),
            MemoryCollector(),
            DiskCollector(),
            NetworkCollector(),
            LoadCollector(),
            SwapCollector(),
            BatteryCollector(),
            DiskIOCollector(),
            UptimeCollector(),
            ThermalCollector(),
            WifiCollector(),
            BluetoothCollector(),
            DisplayCollector(),
            FanCollector(),
        ]
    )


__all__ = [
    "build_default_registry",
    "BatteryCollector",
    "BluetoothCollector",
    "CpuCollector",
    "DiskCollector",
    "DiskIOCollector",
    "DisplayCollector",
    "FanCollector",
    "LoadCollector",
    "MemoryCollector",
    "NetworkCollector",
    "SwapCollector",
    "ThermalCollector",
    "UptimeCollector",
    "WifiCollector",
]
