"""
Uptime, battery, thermal and fan collectors.

Battery, thermal and fan sensors are optional hardware: when the sensor or
the tool reading it is missing these collectors report nothing.
"""

import logging
import re
import time
from typing import List, Optional

import psutil

from metrix.exceptions import CommandError
from metrix.telemetry.base import BaseCollector
from metrix.telemetry.collectors.common import clamp_ratio, gauge, run_blocking
from metrix.telemetry.schemas import DataPoint, Metric, current_time_ms
from metrix.utils.command import command_exists, run_command

logger = logging.getLogger(__name__)

_CYCLE_COUNT_RE = re.compile(r'"CycleCount"\s*=\s*(\d+)')
_SPEED_LIMIT_RE = re.compile(r"CPU_Speed_Limit\s*=\s*(\d+)")
_WARNING_LEVEL_RE = re.compile(r"warning level[^\d]*(\d+)", re.IGNORECASE)
_FAN_RE = re.compile(r"Fan:\s*(\d+)\s*rpm", re.IGNORECASE)


def parse_cycle_count(output: str) -> Optional[int]:
    """Battery cycle count from `ioreg` output, if present."""
    match = _CYCLE_COUNT_RE.search(output)
    return int(match.group(1)) if match else None


def parse_thermal_state(output: str) -> int:
    """
    Map `pmset -g therm` output to a thermal state.

    0=nominal, 1=fair, 2=serious, 3=critical. A CPU speed limit below 100%
    raises the state; an explicit warning level can raise it further.
    """
    state = 0

    match = _SPEED_LIMIT_RE.search(output)
    if match:
        speed_limit = int(match.group(1))
        if speed_limit < 50:
            state = 3
        elif speed_limit < 75:
            state = 2
        elif speed_limit < 100:
            state = 1

    if "thermal warning level" in output or "performance warning level" in output:
        match = _WARNING_LEVEL_RE.search(output)
        if match:
            state = max(state, min(int(match.group(1)), 3))

    return state


def parse_fan_speeds(output: str) -> List[int]:
    """Fan speeds (rpm) from `powermetrics --samplers smc` output."""
    return [int(speed) for speed in _FAN_RE.findall(output)]


class UptimeCollector(BaseCollector):
    """Reports whole seconds since boot."""

    def __init__(self):
        super().__init__(name="uptime")

    async def collect(self) -> List[Metric]:
        boot_time = await run_blocking(psutil.boot_time)
        uptime_seconds = max(0, int(time.time() - boot_time))
        return [
            gauge(
                "system.uptime",
                "s",
                "Time since boot",
                [DataPoint(timestamp=current_time_ms(), value=uptime_seconds)],
            )
        ]


class BatteryCollector(BaseCollector):
    """Reports battery charge, charging state and, on macOS, cycle count."""

    def __init__(self):
        super().__init__(name="battery")

    async def is_available(self) -> bool:
        return hasattr(psutil, "sensors_battery")

    async def _read_cycle_count(self) -> Optional[int]:
        if not command_exists("ioreg"):
            return None
        try:
            output = await run_command("ioreg", "-r", "-c", "AppleSmartBattery")
        except CommandError as e:
            logger.debug(f"Battery cycle count unavailable: {e}")
            return None
        return parse_cycle_count(output)

    async def collect(self) -> List[Metric]:
        if not await self.is_available():
            return []

        battery = await run_blocking(psutil.sensors_battery)
        if battery is None:
            return []

        timestamp = current_time_ms()
        charging = bool(battery.power_plugged) and battery.percent < 100

        metrics = [
            gauge(
                "system.battery.charge",
                "ratio",
                "Current charge level",
                [DataPoint(timestamp=timestamp, value=clamp_ratio(battery.percent / 100))],
            ),
            gauge(
                "system.battery.charging",
                "boolean",
                "Whether plugged in and charging",
                [DataPoint(timestamp=timestamp, value=1 if charging else 0)],
            ),
        ]

        cycle_count = await self._read_cycle_count()
        if cycle_count is not None:
            metrics.append(
                gauge(
                    "system.battery.cycle_count",
                    "cycles",
                    "Battery cycle count",
                    [DataPoint(timestamp=timestamp, value=cycle_count)],
                )
            )
        return metrics


class ThermalCollector(BaseCollector):
    """Reports the macOS thermal pressure state (0-3)."""

    def __init__(self):
        super().__init__(name="thermal")

    async def is_available(self) -> bool:
        return command_exists("pmset")

    async def collect(self) -> List[Metric]:
        if not await self.is_available():
            return []

        try:
            output = await run_command("pmset", "-g", "therm")
        except CommandError as e:
            logger.debug(f"Thermal state unavailable: {e}")
            return []

        return [
            gauge(
                "system.thermal.state",
                "enum",
                "Thermal state (0=nominal, 1=fair, 2=serious, 3=critical)",
                [DataPoint(timestamp=current_time_ms(), value=parse_thermal_state(output))],
            )
        ]


class FanCollector(BaseCollector):
    """Reports fan speeds from psutil sensors (Linux) or powermetrics (macOS)."""

    def __init__(self):
        super().__init__(name="fan")

    async def is_available(self) -> bool:
        return hasattr(psutil, "sensors_fans") or command_exists("powermetrics")

    async def _read_speeds(self) -> List[int]:
        if hasattr(psutil, "sensors_fans"):
            fans = await run_blocking(psutil.sensors_fans)
            speeds = [int(fan.current) for entries in fans.values() for fan in entries]
            if speeds:
                return speeds

        if not command_exists("powermetrics"):
            return []

        try:
            # -n: never prompt for a password
            output = await run_command(
                "sudo", "-n", "powermetrics", "--samplers", "smc", "-i", "1", "-n", "1"
            )
        except CommandError as e:
            logger.debug(f"Fan speeds unavailable: {e}")
            return []
        return parse_fan_speeds(output)

    async def collect(self) -> List[Metric]:
        speeds = await self._read_speeds()
        if not speeds:
            return []

        timestamp = current_time_ms()
        return [
            gauge(
                "system.fan.speed",
                "rpm",
                "Fan speed in revolutions per minute",
                [
                    DataPoint(timestamp=timestamp, value=speed, attributes={"fan": f"fan{index}"})
                    for index, speed in enumerate(speeds)
                ],
            )
        ]
