"""
Bluetooth and display collectors (macOS).

Both read text reports from system tools and parse them; the parsers are
plain functions so they can be exercised with captured output.
"""

import logging
import re
from dataclasses import dataclass
from typing import List

from metrix.exceptions import CommandError
from metrix.telemetry.base import BaseCollector
from metrix.telemetry.collectors.common import clamp_ratio, gauge
from metrix.telemetry.schemas import DataPoint, Metric, current_time_ms
from metrix.utils.command import command_exists, run_command

logger = logging.getLogger(__name__)

DEFAULT_BRIGHTNESS_SCALE = 65536

_SCALE_RE = re.compile(r'"Brightness_Scale"\s*=\s*(\d+)')
_LEVEL_RE = re.compile(r'"IOMFBBrightnessLevel"\s*=\s*(\d+)')
_NAME_RE = re.compile(r'"IONameMatched"\s*=\s*"([^"]+)"')

# Device names sit at exactly 10 spaces; their properties are indented further
_DEVICE_INDENT = " " * 10
_PROPERTY_INDENT = " " * 12


@dataclass(frozen=True)
class DisplayBlock:
    name: str
    brightness_level: int
    brightness_scale: int

    @property
    def brightness(self) -> float:
        return clamp_ratio(self.brightness_level / (self.brightness_scale * 100))


def parse_connected_devices(output: str) -> int:
    """Count devices listed under "Connected:" in `system_profiler SPBluetoothDataType`."""
    in_connected = False
    count = 0

    for line in output.splitlines():
        stripped = line.strip()
        if stripped == "Connected:":
            in_connected = True
            continue
        if stripped in ("Not Connected:", "Bluetooth Controller:"):
            in_connected = False
            continue

        is_device = line.startswith(_DEVICE_INDENT) and not line.startswith(_PROPERTY_INDENT)
        if in_connected and stripped.endswith(":") and is_device:
            count += 1

    return count


def parse_display_blocks(output: str) -> List[DisplayBlock]:
    """
    Extract framebuffer brightness from `ioreg -r -c IOMobileFramebuffer`.

    Scale and level precede the IONameMatched line that closes each block.
    Blocks without a brightness level are dropped.
    """
    blocks: List[DisplayBlock] = []
    pending_scale = DEFAULT_BRIGHTNESS_SCALE
    pending_level = -1

    for line in output.splitlines():
        scale_match = _SCALE_RE.search(line)
        if scale_match:
            pending_scale = int(scale_match.group(1))
            continue

        level_match = _LEVEL_RE.search(line)
        if level_match and pending_level < 0:
            pending_level = int(level_match.group(1))
            continue

        name_match = _NAME_RE.search(line)
        if name_match:
            if pending_level >= 0 and pending_scale > 0:
                blocks.append(DisplayBlock(name_match.group(1), pending_level, pending_scale))
            pending_scale = DEFAULT_BRIGHTNESS_SCALE
            pending_level = -1

    return blocks


class BluetoothCollector(BaseCollector):
    """Reports the number of connected Bluetooth devices."""

    def __init__(self):
        super().__init__(name="bluetooth")

    async def is_available(self) -> bool:
        return command_exists("system_profiler")

    async def collect(self) -> List[Metric]:
        if not await self.is_available():
            return []

        try:
            output = await run_command("system_profiler", "SPBluetoothDataType", timeout=30.0)
        except CommandError as e:
            logger.debug(f"Bluetooth report unavailable: {e}")
            return []

        return [
            gauge(
                "system.bluetooth.connected_devices",
                "count",
                "Number of connected Bluetooth devices",
                [DataPoint(timestamp=current_time_ms(), value=parse_connected_devices(output))],
            )
        ]


class DisplayCollector(BaseCollector):
    """Reports brightness per built-in display."""

    def __init__(self):
        super().__init__(name="display")

    async def is_available(self) -> bool:
        return command_exists("ioreg")

    async def collect(self) -> List[Metric]:
        if not await self.is_available():
            return []

        try:
            output = await run_command("ioreg", "-r", "-c", "IOMobileFramebuffer", "-d", "3")
        except CommandError as e:
            logger.debug(f"Display brightness unavailable: {e}")
            return []

        blocks = parse_display_blocks(output)
        if not blocks:
            return []

        timestamp = current_time_ms()
        return [
            gauge(
                "system.display.brightness",
                "ratio",
                "Screen brightness level",
                [
                    DataPoint(
                        timestamp=timestamp,
                        value=block.brightness,
                        attributes={"display": block.name},
                    )
                    for block in blocks
                ],
            )
        ]
