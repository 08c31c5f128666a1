"""
Unit tests for the collect/export scheduler and graceful shutdown.
"""

import asyncio
import signal
from unittest.mock import AsyncMock, patch

import pytest

from metrix.exceptions import InvalidConfigurationError, SchedulerError
from metrix.telemetry.scheduler import GracefulShutdown, MetricsScheduler
from metrix.telemetry.schemas import ExportResult, SchedulerState


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestSchedulerConstruction:
    """Test constructor validation."""

    @pytest.mark.parametrize("interval", [0, -1])
    def test_rejects_non_positive_interval(self, resource, interval):
        with pytest.raises(InvalidConfigurationError):
            MetricsScheduler(interval, resource, AsyncMock(), AsyncMock())

    def test_starts_idle(self, resource):
        scheduler = MetricsScheduler(1, resource, AsyncMock(), AsyncMock())

        assert scheduler.state is SchedulerState.IDLE
        assert not scheduler.is_running


class TestSchedulerCycles:
    """Test cycle behaviour."""

    @pytest.mark.asyncio
    async def test_first_cycle_runs_immediately(self, resource, metric_factory):
        collect = AsyncMock(return_value=[metric_factory()])
        export = AsyncMock(return_value=ExportResult(success=True))
        scheduler = MetricsScheduler(60, resource, collect, export)

        scheduler.start()
        await _wait_for(lambda: export.await_count == 1)
        await scheduler.stop()

        batch = export.call_args.args[0]
        assert batch.resource == resource
        assert [m.name for m in batch.metrics] == ["test.metric"]

    @pytest.mark.asyncio
    async def test_empty_collection_skips_export(self, resource):
        collect = AsyncMock(return_value=[])
        export = AsyncMock()
        scheduler = MetricsScheduler(60, resource, collect, export)

        scheduler.start()
        await _wait_for(lambda: collect.await_count == 1)
        await scheduler.stop()

        export.assert_not_called()
        assert scheduler.get_stats().empty_cycles == 1

    @pytest.mark.asyncio
    async def test_cycles_never_overlap(self, resource, metric_factory):
        active = 0
        max_active = 0
        collects = 0

        async def slow_collect():
            nonlocal active, max_active, collects
            active += 1
            collects += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.25)
            active -= 1
            return [metric_factory()]

        export = AsyncMock(return_value=ExportResult(success=True))
        scheduler = MetricsScheduler(0.05, resource, slow_collect, export)

        scheduler.start()
        await asyncio.sleep(0.6)
        await scheduler.stop()

        assert max_active == 1
        assert collects <= 4
        assert scheduler.get_stats().ticks_skipped > 0

    @pytest.mark.asyncio
    async def test_repeats_on_interval(self, resource, metric_factory):
        collect = AsyncMock(return_value=[metric_factory()])
        export = AsyncMock(return_value=ExportResult(success=True))
        scheduler = MetricsScheduler(0.05, resource, collect, export)

        scheduler.start()
        await _wait_for(lambda: export.await_count >= 3)
        await scheduler.stop()

        assert scheduler.get_stats().exports >= 3

    @pytest.mark.asyncio
    async def test_export_failure_is_logged(self, resource, metric_factory, caplog):
        collect = AsyncMock(return_value=[metric_factory()])
        export = AsyncMock(return_value=ExportResult(success=False, error="HTTP 500: boom"))
        scheduler = MetricsScheduler(60, resource, collect, export)

        scheduler.start()
        await _wait_for(lambda: export.await_count == 1)
        await scheduler.stop()

        assert "Export failed: HTTP 500: boom" in caplog.text
        stats = scheduler.get_stats()
        assert stats.cycles_failed == 1
        assert stats.last_error == "HTTP 500: boom"

    @pytest.mark.asyncio
    async def test_cycle_exception_is_contained(self, resource, metric_factory, caplog):
        calls = 0

        async def flaky_collect():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("collector exploded")
            return [metric_factory()]

        export = AsyncMock(return_value=ExportResult(success=True))
        scheduler = MetricsScheduler(0.05, resource, flaky_collect, export)

        scheduler.start()
        await _wait_for(lambda: export.await_count >= 1)
        await scheduler.stop()

        assert "Collection/export cycle failed: collector exploded" in caplog.text
        assert scheduler.get_stats().cycles_failed >= 1


class TestSchedulerLifecycle:
    """Test start/stop semantics."""

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, resource):
        collect = AsyncMock(return_value=[])
        scheduler = MetricsScheduler(60, resource, collect, AsyncMock())

        scheduler.start()
        scheduler.start()
        await _wait_for(lambda: collect.await_count >= 1)
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert collect.await_count == 1

    @pytest.mark.asyncio
    async def test_restart_after_stop_rejected(self, resource):
        scheduler = MetricsScheduler(60, resource, AsyncMock(return_value=[]), AsyncMock())

        scheduler.start()
        await scheduler.stop()

        with pytest.raises(SchedulerError):
            scheduler.start()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, resource):
        scheduler = MetricsScheduler(60, resource, AsyncMock(return_value=[]), AsyncMock())

        scheduler.start()
        await scheduler.stop()
        await scheduler.stop()

        assert scheduler.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_before_start(self, resource):
        scheduler = MetricsScheduler(60, resource, AsyncMock(), AsyncMock())

        await scheduler.stop()

        assert scheduler.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_export(self, resource, metric_factory):
        export_started = asyncio.Event()
        release_export = asyncio.Event()
        finished = []

        async def slow_export(batch):
            export_started.set()
            await release_export.wait()
            finished.append(batch)
            return ExportResult(success=True)

        collect = AsyncMock(return_value=[metric_factory()])
        scheduler = MetricsScheduler(60, resource, collect, slow_export)

        scheduler.start()
        await asyncio.wait_for(export_started.wait(), timeout=2)

        stop_task = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0.05)
        assert not stop_task.done()
        assert scheduler.cycle_in_flight

        release_export.set()
        await asyncio.wait_for(stop_task, timeout=2)

        assert len(finished) == 1
        assert not scheduler.cycle_in_flight
        assert collect.await_count == 1


class TestGracefulShutdown:
    """Test signal-driven shutdown."""

    @pytest.mark.asyncio
    async def test_trigger_stops_scheduler(self, resource):
        scheduler = MetricsScheduler(60, resource, AsyncMock(return_value=[]), AsyncMock())
        shutdown = GracefulShutdown(scheduler)
        scheduler.start()

        shutdown.trigger("SIGTERM")
        await asyncio.wait_for(shutdown.wait(), timeout=2)

        assert shutdown.triggered
        assert scheduler.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_duplicate_signals_collapse(self, resource):
        scheduler = MetricsScheduler(60, resource, AsyncMock(return_value=[]), AsyncMock())
        shutdown = GracefulShutdown(scheduler)
        scheduler.start()

        with patch.object(scheduler, "stop", wraps=scheduler.stop) as stop:
            first = shutdown.trigger("SIGINT")
            second = shutdown.trigger("SIGTERM")
            await first

        assert first is second
        stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_install_registers_handlers(self, resource):
        scheduler = MetricsScheduler(60, resource, AsyncMock(), AsyncMock())
        shutdown = GracefulShutdown(scheduler)
        loop = asyncio.get_running_loop()

        with patch.object(loop, "add_signal_handler") as add_handler:
            shutdown.install()

        registered = {call.args[0] for call in add_handler.call_args_list}
        assert registered == {signal.SIGINT, signal.SIGTERM}
