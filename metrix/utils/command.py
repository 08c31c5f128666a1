"""
Utility to run external commands for collectors.

Commands run as asyncio subprocesses so several collectors can wait on their
tools at once. Each command has its own timeout; on expiry the process is
killed.
"""

import asyncio
import logging
import shutil
from typing import Optional

from metrix.exceptions import CommandError

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 10.0


def command_exists(command: str) -> bool:
    """Check whether a command is on PATH (or is an existing executable path)."""
    return shutil.which(command) is not None


async def run_command(
    command: str, *args: str, timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT
) -> str:
    """
    Run a command and return its stdout.

    stderr is discarded.

    Args:
        command: Executable name or path
        *args: Arguments passed to the command
        timeout: Seconds before the process is killed (None: no limit)

    Returns:
        Decoded stdout

    Raises:
        CommandError: If the command is missing, exits non-zero, or times out
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except FileNotFoundError:
        raise CommandError(command, "command not found")
    except PermissionError as e:
        raise CommandError(command, f"permission denied: {e}")

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise CommandError(command, f"timed out after {timeout}s")

    if proc.returncode != 0:
        raise CommandError(
            command,
            f"command failed with exit code {proc.returncode}",
            exit_code=proc.returncode,
        )

    logger.debug(f"{command} {' '.join(args)} produced {len(stdout)} bytes")
    return stdout.decode(errors="replace")
