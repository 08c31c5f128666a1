"""
Status command.

Reports whether the launchd agent is installed and running, and which
collectors have their data source on this host.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Dict, NamedTuple, Optional

from metrix.exceptions import CommandError
from metrix.telemetry.base import CollectorRegistry
from metrix.telemetry.collectors import build_default_registry
from metrix.utils.command import command_exists, run_command

logger = logging.getLogger(__name__)

SERVICE_LABEL = "co.metrix.agent"
PID_PATTERN = re.compile(r'"PID"\s*=\s*(\d+)')


class ServiceStatus(NamedTuple):
    running: bool
    pid: Optional[int] = None
    error: Optional[str] = None


def plist_path() -> Path:
    return Path.home() / "Library" / "LaunchAgents" / f"{SERVICE_LABEL}.plist"


def parse_launchctl_pid(output: str) -> Optional[int]:
    """Extract the PID from `launchctl list <label>` output."""
    match = PID_PATTERN.search(output)
    return int(match.group(1)) if match else None


async def check_launchd_service() -> ServiceStatus:
    """Query launchd for the agent's job."""
    if not command_exists("launchctl"):
        return ServiceStatus(running=False, error="launchctl not available")

    try:
        output = await run_command("launchctl", "list", SERVICE_LABEL)
    except CommandError as e:
        if e.exit_code is not None:
            # Job not loaded
            return ServiceStatus(running=False)
        return ServiceStatus(running=False, error=str(e))

    pid = parse_launchctl_pid(output)
    return ServiceStatus(running=pid is not None, pid=pid)


async def check_collectors(registry: CollectorRegistry) -> Dict[str, bool]:
    """Availability of each collector's data source."""
    names = registry.names
    results = await asyncio.gather(
        *(registry.collectors[name].is_available() for name in names),
        return_exceptions=True,
    )
    return {name: result is True for name, result in zip(names, results)}


async def status_command(registry: Optional[CollectorRegistry] = None) -> int:
    """
    Print service and collector status.

    Returns:
        Process exit code
    """
    print("Metrix Status")
    print("─" * 40)

    plist_installed = plist_path().exists()
    service = await check_launchd_service()

    print(f"Service plist: {'installed' if plist_installed else 'not installed'}")

    if service.error:
        print(f"Service status: error ({service.error})")
    elif service.running:
        print(f"Service status: running (PID {service.pid})")
    else:
        print("Service status: not running")

    availability = await check_collectors(registry or build_default_registry())
    print("\nCollectors:")
    for name, available in availability.items():
        print(f"  {name:<10} {'available' if available else 'unavailable'}")

    if not plist_installed:
        print(f"\nTo install the service, copy {SERVICE_LABEL}.plist to {plist_path().parent}")
    elif not service.running:
        print(f"\nTo start the service, run: launchctl load {plist_path()}")

    return 0
