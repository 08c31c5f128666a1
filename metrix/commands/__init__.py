"""Interactive and diagnostic subcommands of the metrix CLI."""

from metrix.commands.setup import setup_command
from metrix.commands.status import status_command

__all__ = ["setup_command", "status_command"]
