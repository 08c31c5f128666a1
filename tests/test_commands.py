"""
Tests for the setup and status subcommands.
"""

from typing import List
from unittest.mock import AsyncMock, patch

import pytest

from metrix.commands.setup import parse_interval, setup_command
from metrix.commands.status import (
    ServiceStatus,
    check_launchd_service,
    parse_launchctl_pid,
    status_command,
)
from metrix.config import DEFAULT_ENDPOINT, MetrixConfig
from metrix.exceptions import CommandError
from metrix.telemetry.base import BaseCollector, CollectorRegistry
from metrix.telemetry.schemas import Metric

LAUNCHCTL_OUTPUT = """\
{
	"LimitLoadToSessionType" = "Aqua";
	"Label" = "co.metrix.agent";
	"OnDemand" = false;
	"LastExitStatus" = 0;
	"PID" = 4242;
	"Program" = "/usr/local/bin/metrix";
};
"""


def _answers(*values: str):
    iterator = iter(values)
    return lambda prompt: next(iterator)


class TestSetup:
    """Test the setup wizard."""

    def test_writes_config(self, tmp_path, capsys):
        path = tmp_path / "config.yml"
        answers = _answers(
            "http://localhost:4318/v1/metrics",
            "Authorization=Bearer abc, X-Axiom-Dataset=metrics",
            "30",
        )

        assert setup_command(path, input_fn=answers) == 0

        config = MetrixConfig.from_file(path)
        assert config.interval == 30
        assert config.otlp.endpoint == "http://localhost:4318/v1/metrics"
        assert config.otlp.headers == {"Authorization": "Bearer abc", "X-Axiom-Dataset": "metrics"}
        assert f"Configuration saved to {path}" in capsys.readouterr().out

    def test_defaults_on_empty_answers(self, tmp_path):
        path = tmp_path / "config.yml"

        assert setup_command(path, input_fn=_answers("", "", "")) == 0

        config = MetrixConfig.from_file(path)
        assert config.otlp.endpoint == DEFAULT_ENDPOINT
        assert config.otlp.headers == {}
        assert config.interval == 10

    def test_invalid_endpoint(self, tmp_path, capsys):
        path = tmp_path / "config.yml"

        assert setup_command(path, input_fn=_answers("not a url")) == 1
        assert "Invalid URL" in capsys.readouterr().err
        assert not path.exists()

    def test_invalid_interval(self, tmp_path, capsys):
        path = tmp_path / "config.yml"

        assert setup_command(path, input_fn=_answers("", "", "-5")) == 1
        assert "Invalid interval" in capsys.readouterr().err
        assert not path.exists()

    def test_eof_uses_defaults(self, tmp_path):
        def closed_stdin(prompt):
            raise EOFError

        assert setup_command(tmp_path / "config.yml", input_fn=closed_stdin) == 0

    @pytest.mark.parametrize("text,expected", [("10", 10), (" 5 ", 5), ("0", None), ("x", None)])
    def test_parse_interval(self, text, expected):
        assert parse_interval(text) == expected


class FixedAvailability(BaseCollector):
    def __init__(self, name: str, available: bool):
        super().__init__(name)
        self.available = available

    async def is_available(self) -> bool:
        return self.available

    async def collect(self) -> List[Metric]:
        return []


class TestStatus:
    """Test the status command."""

    def test_parse_pid(self):
        assert parse_launchctl_pid(LAUNCHCTL_OUTPUT) == 4242
        assert parse_launchctl_pid('{\n\t"Label" = "co.metrix.agent";\n};') is None

    @pytest.mark.asyncio
    async def test_running_service(self):
        with patch("metrix.commands.status.command_exists", return_value=True), patch(
            "metrix.commands.status.run_command", new=AsyncMock(return_value=LAUNCHCTL_OUTPUT)
        ):
            status = await check_launchd_service()

        assert status == ServiceStatus(running=True, pid=4242)

    @pytest.mark.asyncio
    async def test_job_not_loaded(self):
        error = CommandError("launchctl", "command failed with exit code 113", exit_code=113)
        with patch("metrix.commands.status.command_exists", return_value=True), patch(
            "metrix.commands.status.run_command", new=AsyncMock(side_effect=error)
        ):
            status = await check_launchd_service()

        assert status == ServiceStatus(running=False)

    @pytest.mark.asyncio
    async def test_launchctl_missing(self):
        with patch("metrix.commands.status.command_exists", return_value=False):
            status = await check_launchd_service()

        assert not status.running
        assert status.error == "launchctl not available"

    @pytest.mark.asyncio
    async def test_report(self, tmp_path, capsys):
        registry = CollectorRegistry(
            [FixedAvailability("cpu", True), FixedAvailability("wifi", False)]
        )
        with patch(
            "metrix.commands.status.plist_path", return_value=tmp_path / "missing.plist"
        ), patch(
            "metrix.commands.status.check_launchd_service",
            new=AsyncMock(return_value=ServiceStatus(running=False)),
        ):
            assert await status_command(registry) == 0

        out = capsys.readouterr().out
        assert "Service plist: not installed" in out
        assert "Service status: not running" in out
        assert "cpu        available" in out
        assert "wifi       unavailable" in out
