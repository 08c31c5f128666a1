"""
Interactive setup wizard.

Asks for the export endpoint, headers and interval, then writes the
configuration file.
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Optional, Union

from metrix.config import (
    DEFAULT_ENDPOINT,
    DEFAULT_INTERVAL,
    MetrixConfig,
    OtlpConfig,
    get_config_path,
    parse_headers,
    validate_endpoint,
)

logger = logging.getLogger(__name__)

RULE = "─" * 40


def prompt(question: str, default: str = "", input_fn: Callable[[str], str] = input) -> str:
    """Ask a question; an empty answer (or EOF) returns the default."""
    suffix = f" ({default})" if default else ""
    try:
        answer = input_fn(f"{question}{suffix}: ").strip()
    except EOFError:
        answer = ""
    return answer or default


def parse_interval(text: str) -> Optional[int]:
    """Positive integer seconds, or None if invalid."""
    try:
        value = int(text.strip())
    except ValueError:
        return None
    return value if value > 0 else None


def setup_command(
    config_path: Optional[Union[str, Path]] = None,
    input_fn: Callable[[str], str] = input,
) -> int:
    """
    Run the setup wizard.

    Returns:
        Process exit code
    """
    print("Metrix Setup")
    print(RULE)
    print("This will configure your OTLP export settings.\n")

    endpoint = prompt("OTLP endpoint URL", DEFAULT_ENDPOINT, input_fn)
    try:
        validate_endpoint(endpoint)
    except ValueError:
        print("Invalid URL. Please run setup again with a valid endpoint.", file=sys.stderr)
        return 1

    print("\nEnter headers as comma-separated key=value pairs.")
    print("Example: Authorization=Bearer token123, X-Axiom-Dataset=metrics")
    headers = parse_headers(prompt("Headers", "", input_fn))

    interval = parse_interval(
        prompt("\nCollection interval (seconds)", str(DEFAULT_INTERVAL), input_fn)
    )
    if interval is None:
        print("Invalid interval. Please enter a positive integer.", file=sys.stderr)
        return 1

    config = MetrixConfig(interval=interval, otlp=OtlpConfig(endpoint=endpoint, headers=headers))

    try:
        saved_path = config.save(config_path or get_config_path())
    except OSError as e:
        print(f"Failed to write config: {e}", file=sys.stderr)
        return 1

    print(f"\n{RULE}")
    print(f"Configuration saved to {saved_path}")
    print("\nTo start collecting metrics, run: metrix")
    print("To run in dry-run mode first: metrix --dry-run")
    return 0
