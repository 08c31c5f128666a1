"""
Periodic collect/export scheduler.

Drives one collect -> export cycle per interval. At most one cycle is ever in
flight: a tick that fires while a cycle is still running is skipped, never
queued. stop() prevents new cycles and waits for the running one to finish.
"""

import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional

from metrix.exceptions import InvalidConfigurationError, SchedulerError
from metrix.telemetry.schemas import (
    ExportResult,
    Metric,
    MetricBatch,
    ResourceAttributes,
    SchedulerState,
    SchedulerStats,
)

logger = logging.getLogger(__name__)

CollectFn = Callable[[], Awaitable[List[Metric]]]
ExportFn = Callable[[MetricBatch], Awaitable[Any]]


class MetricsScheduler:
    """
    Fixed-rate scheduler for collect/export cycles.

    The ticker task is the only code that starts cycles, and it owns the
    handle of the in-flight cycle.
    """

    def __init__(
        self,
        interval_seconds: float,
        resource: ResourceAttributes,
        collect: CollectFn,
        export: ExportFn,
    ):
        """
        Initialize scheduler.

        Args:
            interval_seconds: Seconds between ticks (must be > 0)
            resource: Host/user attributes attached to every batch
            collect: Coroutine function returning this cycle's metrics
            export: Coroutine function shipping one batch

        Raises:
            InvalidConfigurationError: If interval_seconds is not positive
        """
        if interval_seconds <= 0:
            raise InvalidConfigurationError(
                f"interval_seconds must be positive, got {interval_seconds}"
            )

        self.interval_seconds = interval_seconds
        self.resource = resource
        self._collect = collect
        self._export = export

        self._state = SchedulerState.IDLE
        self._ticker: Optional[asyncio.Task] = None
        self._current_cycle: Optional[asyncio.Task] = None

        self._cycles_started = 0
        self._cycles_failed = 0
        self._ticks_skipped = 0
        self._exports = 0
        self._empty_cycles = 0
        self._last_cycle_at: Optional[datetime] = None
        self._last_error: Optional[str] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def cycle_in_flight(self) -> bool:
        return self._current_cycle is not None and not self._current_cycle.done()

    def start(self) -> None:
        """
        Run the first cycle immediately and arm the repeating ticker.

        Must be called from inside a running event loop. Calling start() on a
        running scheduler is a no-op.

        Raises:
            SchedulerError: If the scheduler has been stopped
        """
        if self._state is SchedulerState.RUNNING:
            return
        if self._state is SchedulerState.STOPPED:
            raise SchedulerError("Scheduler has been stopped and cannot be restarted")

        self._state = SchedulerState.RUNNING
        self._try_start_cycle()
        self._ticker = asyncio.create_task(self._tick_loop(), name="metrix-ticker")
        logger.info(f"Scheduler started (interval={self.interval_seconds}s)")

    async def stop(self) -> None:
        """
        Stop scheduling and wait for the in-flight cycle, if any.

        Once this returns no cycle is running. Safe to call more than once.
        """
        already_stopped = self._state is SchedulerState.STOPPED
        self._state = SchedulerState.STOPPED

        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None

        if self._current_cycle is not None:
            await self._current_cycle
            self._current_cycle = None

        if not already_stopped:
            logger.info("Scheduler stopped")

    def _try_start_cycle(self) -> bool:
        """Start a cycle unless one is in flight. Returns True if started."""
        if self.cycle_in_flight:
            self._ticks_skipped += 1
            logger.debug("Previous cycle still running, skipping tick")
            return False

        self._current_cycle = asyncio.create_task(self._run_cycle(), name="metrix-cycle")
        return True

    async def _tick_loop(self) -> None:
        """Fire a tick every interval on a fixed-rate schedule."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while self._state is SchedulerState.RUNNING:
            next_tick += self.interval_seconds
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            if self._state is not SchedulerState.RUNNING:
                break
            self._try_start_cycle()

    async def _run_cycle(self) -> None:
        """Collect, then export if anything was collected. Never raises."""
        self._cycles_started += 1
        self._last_cycle_at = datetime.now(timezone.utc)

        try:
            metrics = await self._collect()
            if not metrics:
                self._empty_cycles += 1
                logger.debug("No metrics collected, skipping export")
                return

            result = await self._export(MetricBatch(resource=self.resource, metrics=metrics))
            self._exports += 1

            if isinstance(result, ExportResult) and not result.success:
                self._cycles_failed += 1
                self._last_error = result.error
                logger.error(f"Export failed: {result.error}")

        except Exception as e:
            self._cycles_failed += 1
            self._last_error = str(e)
            logger.error(f"Collection/export cycle failed: {e}")

    def get_stats(self) -> SchedulerStats:
        """Get cycle statistics."""
        return SchedulerStats(
            state=self._state,
            interval_seconds=self.interval_seconds,
            cycles_started=self._cycles_started,
            cycles_failed=self._cycles_failed,
            ticks_skipped=self._ticks_skipped,
            exports=self._exports,
            empty_cycles=self._empty_cycles,
            last_cycle_at=self._last_cycle_at.isoformat() if self._last_cycle_at else None,
            last_error=self._last_error,
        )


class GracefulShutdown:
    """
    Stops the scheduler once on SIGINT/SIGTERM.

    Duplicate or concurrent signals collapse into a single shutdown sequence.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, scheduler: MetricsScheduler):
        self.scheduler = scheduler
        self._shutdown_task: Optional[asyncio.Task] = None
        self._done = asyncio.Event()

    def install(self) -> None:
        """Register signal handlers on the running event loop."""
        loop = asyncio.get_running_loop()
        for sig in self.SIGNALS:
            try:
                loop.add_signal_handler(sig, self.trigger, sig.name)
            except NotImplementedError:
                # Event loops without add_signal_handler (e.g. Windows)
                signal.signal(
                    sig,
                    lambda signum, frame: loop.call_soon_threadsafe(
                        self.trigger, signal.Signals(signum).name
                    ),
                )

    def trigger(self, signal_name: str = "shutdown") -> asyncio.Task:
        """Begin shutdown; later calls return the same task."""
        if self._shutdown_task is None:
            logger.info(f"Received {signal_name}, shutting down...")
            self._shutdown_task = asyncio.get_running_loop().create_task(self._shutdown())
        return self._shutdown_task

    async def _shutdown(self) -> None:
        try:
            await self.scheduler.stop()
            logger.info("Shutdown complete")
        finally:
            self._done.set()

    @property
    def triggered(self) -> bool:
        return self._shutdown_task is not None

    async def wait(self) -> None:
        """Wait until a triggered shutdown has completed."""
        await self._done.wait()
