"""
Network I/O and Wi-Fi collectors.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import psutil

from metrix.exceptions import CommandError
from metrix.telemetry.base import BaseCollector
from metrix.telemetry.collectors.common import counter, gauge, run_blocking
from metrix.telemetry.schemas import DataPoint, Metric, current_time_ms
from metrix.utils.command import command_exists, run_command

logger = logging.getLogger(__name__)

AIRPORT_PATH = (
    "/System/Library/PrivateFrameworks/Apple80211.framework/Versions/Current/Resources/airport"
)


@dataclass(frozen=True)
class WifiInfo:
    ssid: str
    signal_strength: int
    interface: str = "en0"


def parse_airport_output(output: str) -> Optional[WifiInfo]:
    """
    Extract SSID and RSSI from `airport -I` output.

    Returns:
        WifiInfo, or None when not associated or the output is incomplete
    """
    ssid = ""
    signal_strength: Optional[int] = None

    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith("SSID:"):
            ssid = stripped[len("SSID:") :].strip()
        elif stripped.startswith("agrCtlRSSI:"):
            try:
                signal_strength = int(stripped[len("agrCtlRSSI:") :].strip())
            except ValueError:
                continue

    if not ssid or signal_strength is None:
        return None
    return WifiInfo(ssid=ssid, signal_strength=signal_strength)


class NetworkCollector(BaseCollector):
    """Reports cumulative bytes received/transmitted per interface."""

    def __init__(self):
        super().__init__(name="network")

    async def collect(self) -> List[Metric]:
        counters = await run_blocking(psutil.net_io_counters, pernic=True)
        if not counters:
            raise RuntimeError("No network statistics found")

        timestamp = current_time_ms()
        data_points: List[DataPoint] = []
        for device, io in sorted(counters.items()):
            data_points.append(
                DataPoint(
                    timestamp=timestamp,
                    value=io.bytes_recv,
                    attributes={"device": device, "direction": "receive"},
                )
            )
            data_points.append(
                DataPoint(
                    timestamp=timestamp,
                    value=io.bytes_sent,
                    attributes={"device": device, "direction": "transmit"},
                )
            )

        return [counter("system.network.io", "bytes", "Bytes transmitted/received", data_points)]


class WifiCollector(BaseCollector):
    """Reports RSSI of the current Wi-Fi connection (macOS)."""

    def __init__(self, airport_path: str = AIRPORT_PATH):
        super().__init__(name="wifi")
        self.airport_path = airport_path

    async def is_available(self) -> bool:
        return command_exists(self.airport_path)

    async def collect(self) -> List[Metric]:
        if not await self.is_available():
            return []

        try:
            output = await run_command(self.airport_path, "-I")
        except CommandError as e:
            logger.debug(f"Wi-Fi unavailable: {e}")
            return []

        info = parse_airport_output(output)
        if info is None:
            return []

        return [
            gauge(
                "system.wifi.signal_strength",
                "dBm",
                "RSSI of current Wi-Fi connection",
                [
                    DataPoint(
                        timestamp=current_time_ms(),
                        value=info.signal_strength,
                        attributes={"ssid": info.ssid, "interface": info.interface},
                    )
                ],
            )
        ]
