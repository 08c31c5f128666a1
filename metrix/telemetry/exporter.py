"""
OTLP/HTTP export transport.

Sends one encoded envelope per cycle to the configured collector. There is
no retry and no queueing: at most one delivery attempt per batch.
"""

import logging
import shlex
from pathlib import Path
from typing import Dict, Optional, Union

import aiofiles
import httpx

from metrix.config import ExportFormat, OtlpConfig
from metrix.telemetry.otlp import build_payload, encode_binary, encode_json
from metrix.telemetry.schemas import ExportResult, MetricBatch

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.BINARY: "application/x-protobuf",
}

DEFAULT_DEBUG_DIR = Path.home() / ".local" / "state" / "metrix"
DEBUG_SCRIPT_NAME = "last-request.sh"


def build_headers(export_format: ExportFormat, custom: Dict[str, str]) -> Dict[str, str]:
    """
    Merge the default Content-Type with user headers.

    User headers win, including a user-supplied Content-Type in any casing.
    """
    headers = {"Content-Type": CONTENT_TYPES[export_format]}
    for key, value in custom.items():
        if key.lower() == "content-type":
            headers.pop("Content-Type", None)
        headers[key] = value
    return headers


def build_curl_command(endpoint: str, headers: Dict[str, str], body_file: Path) -> str:
    """Render a curl command that replays a request from a saved body file."""
    lines = [f"curl -sS -X POST {shlex.quote(endpoint)}"]
    for key, value in headers.items():
        lines.append(f"-H {shlex.quote(f'{key}: {value}')}")
    lines.append(f"--data-binary @{shlex.quote(str(body_file))}")
    return " \\\n  ".join(lines) + "\n"


class OtlpExporter:
    """Encodes batches and POSTs them to an OTLP/HTTP endpoint."""

    def __init__(
        self,
        config: OtlpConfig,
        dry_run: bool = False,
        debug: bool = False,
        debug_dir: Union[str, Path] = DEFAULT_DEBUG_DIR,
        timeout: float = 30.0,
    ):
        """
        Initialize exporter.

        Args:
            config: Endpoint, headers and wire format
            dry_run: Print the JSON envelope instead of sending it
            debug: Always write a replay artifact, not only on failure
            debug_dir: Directory for replay artifacts
            timeout: HTTP timeout in seconds
        """
        self.config = config
        self.dry_run = dry_run
        self.debug = debug
        self.debug_dir = Path(debug_dir)
        self.timeout = timeout

    async def send(self, batch: MetricBatch) -> ExportResult:
        """
        Export one batch.

        Returns:
            ExportResult; network and HTTP failures are reported, never raised
        """
        payload = build_payload(batch)

        if self.dry_run:
            print(encode_json(payload, pretty=True))
            return ExportResult(success=True)

        export_format = self.config.format
        body: Union[str, bytes]
        if export_format is ExportFormat.BINARY:
            body = encode_binary(payload)
        else:
            body = encode_json(payload)
        headers = build_headers(export_format, self.config.headers)

        result = await self._post(body, headers)

        if self.debug or not result.success:
            await self._write_debug_artifact(body, headers, export_format)

        return result

    async def _post(self, body: Union[str, bytes], headers: Dict[str, str]) -> ExportResult:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.config.endpoint, content=body, headers=headers)
        except (httpx.HTTPError, OSError) as e:
            message = str(e) or type(e).__name__
            logger.debug(f"Export to {self.config.endpoint} failed: {message}")
            return ExportResult(success=False, error=message)

        status = response.status_code
        if 200 <= status < 300:
            logger.debug(f"Exported {len(body)} bytes to {self.config.endpoint} (HTTP {status})")
            return ExportResult(success=True, status_code=status)

        error_text = ""
        try:
            error_text = response.text
        except Exception as e:
            logger.debug(f"Could not read error body: {e}")

        return ExportResult(
            success=False,
            status_code=status,
            error=f"HTTP {status}: {error_text}".strip(),
        )

    async def _write_debug_artifact(
        self, body: Union[str, bytes], headers: Dict[str, str], export_format: ExportFormat
    ) -> Optional[Path]:
        """
        Persist a replayable curl command and the request body.

        Best effort: failures are logged and never affect the export result.
        """
        suffix = ".bin" if export_format is ExportFormat.BINARY else ".json"
        body_file = self.debug_dir / f"last-request{suffix}"
        script_file = self.debug_dir / DEBUG_SCRIPT_NAME

        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            if isinstance(body, bytes):
                async with aiofiles.open(body_file, "wb") as f:
                    await f.write(body)
            else:
                async with aiofiles.open(body_file, "w") as f:
                    await f.write(body)

            async with aiofiles.open(script_file, "w") as f:
                await f.write("#!/bin/sh\n")
                await f.write(build_curl_command(self.config.endpoint, headers, body_file))
            script_file.chmod(0o700)
        except Exception as e:
            logger.warning(f"Failed to write debug artifact: {e}")
            return None

        logger.info(f"Wrote replay command to {script_file}")
        return script_file


async def export_metrics(
    batch: MetricBatch,
    config: OtlpConfig,
    dry_run: bool = False,
    debug: bool = False,
) -> ExportResult:
    """Export a single batch with a one-off exporter."""
    return await OtlpExporter(config, dry_run=dry_run, debug=debug).send(batch)
