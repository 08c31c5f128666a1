"""
Metrix service that wires collectors, exporter and scheduler together.

This is what the CLI runs: it owns the process lifetime, computes the
resource attributes once, and handles graceful shutdown.
"""

import logging
from typing import List, Optional

from metrix.config import MetrixConfig
from metrix.telemetry.base import CollectorRegistry
from metrix.telemetry.collectors import build_default_registry
from metrix.telemetry.device import get_device_info
from metrix.telemetry.exporter import OtlpExporter
from metrix.telemetry.scheduler import GracefulShutdown, MetricsScheduler
from metrix.telemetry.schemas import ExportResult, Metric, MetricBatch, ResourceAttributes

logger = logging.getLogger(__name__)


class MetrixService:
    """
    Main agent service.

    This service:
    - Builds the collector registry
    - Runs collect/export cycles on the configured interval
    - Stops cleanly on SIGINT/SIGTERM
    """

    def __init__(
        self,
        config: MetrixConfig,
        dry_run: bool = False,
        debug: bool = False,
        registry: Optional[CollectorRegistry] = None,
        resource: Optional[ResourceAttributes] = None,
        exporter: Optional[OtlpExporter] = None,
    ):
        """
        Initialize the service.

        Args:
            config: Resolved configuration
            dry_run: Print envelopes instead of sending them
            debug: Write a replay artifact for every export
            registry: Collector registry (defaults to all built-in collectors)
            resource: Resource attributes (defaults to this host/user)
            exporter: Exporter (defaults to one built from config.otlp)
        """
        self.config = config
        self.dry_run = dry_run
        self.registry = registry or build_default_registry()
        self.resource = resource or get_device_info()
        self.exporter = exporter or OtlpExporter(config.otlp, dry_run=dry_run, debug=debug)

        self.scheduler = MetricsScheduler(
            interval_seconds=config.interval,
            resource=self.resource,
            collect=self.collect,
            export=self.export,
        )
        self._shutdown: Optional[GracefulShutdown] = None

    async def collect(self) -> List[Metric]:
        """Run every enabled collector once."""
        return await self.registry.collect_all(self.config.metrics.as_mapping())

    async def export(self, batch: MetricBatch) -> ExportResult:
        """Export one batch and log the outcome."""
        result = await self.exporter.send(batch)
        if result.success:
            logger.info(
                f"Exported {len(batch.metrics)} metrics"
                + (f" (HTTP {result.status_code})" if result.status_code else "")
            )
        return result

    async def run_once(self) -> Optional[ExportResult]:
        """
        Perform a single collect/export pass outside the scheduler.

        Returns:
            Export result, or None if nothing was collected
        """
        metrics = await self.collect()
        if not metrics:
            logger.warning("No metrics collected")
            return None

        result = await self.export(MetricBatch(resource=self.resource, metrics=metrics))
        if not result.success:
            logger.error(f"Export failed: {result.error}")
        return result

    async def run(self) -> None:
        """Start scheduling and block until a termination signal has been handled."""
        mode = "dry-run" if self.dry_run else self.config.otlp.endpoint
        logger.info(
            f"Metrix starting with interval {self.config.interval}s "
            f"({self.resource.hostname}, {mode})"
        )

        self._shutdown = GracefulShutdown(self.scheduler)
        self._shutdown.install()
        self.scheduler.start()

        await self._shutdown.wait()

    async def stop(self) -> None:
        """Stop the scheduler (same path as a termination signal)."""
        if self._shutdown is not None:
            await self._shutdown.trigger("stop request")
        else:
            await self.scheduler.stop()

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running


async def run_agent(
    config: MetrixConfig, dry_run: bool = False, debug: bool = False, once: bool = False
) -> int:
    """
    Run the agent until shutdown.

    Returns:
        Process exit code
    """
    service = MetrixService(config, dry_run=dry_run, debug=debug)

    if once:
        result = await service.run_once()
        return 0 if result is not None and result.success else 1

    await service.run()
    return 0
