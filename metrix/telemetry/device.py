"""
Resource attributes identifying this host.

Computed once at startup and passed by reference into the scheduler.
"""

import getpass
import logging
import os
import socket

from metrix.telemetry.schemas import ResourceAttributes

logger = logging.getLogger(__name__)


def get_username() -> str:
    """Current login name, falling back to $USER, then "unknown"."""
    try:
        return getpass.getuser()
    except (KeyError, OSError) as e:
        logger.debug(f"Could not determine username: {e}")
        return os.environ.get("USER") or "unknown"


def get_device_info() -> ResourceAttributes:
    """Build the resource attributes for this process."""
    return ResourceAttributes(hostname=socket.gethostname(), username=get_username())
