"""
Tests for configuration loading, validation and CLI overrides.
"""

import pytest
import yaml

from metrix.config import (
    DEFAULT_ENDPOINT,
    ExportFormat,
    MetricsToggle,
    MetrixConfig,
    OtlpConfig,
    get_config_path,
    parse_header,
    parse_headers,
    validate_endpoint,
)
from metrix.exceptions import ConfigurationError


class TestDefaults:
    """Test default configuration."""

    def test_defaults(self):
        config = MetrixConfig()

        assert config.interval == 10
        assert config.otlp.endpoint == DEFAULT_ENDPOINT
        assert config.otlp.headers == {}
        assert config.otlp.format is ExportFormat.JSON
        assert all(config.metrics.as_mapping().values())

    def test_toggle_names(self):
        assert set(MetricsToggle().as_mapping()) == {
            "cpu",
            "memory",
            "disk",
            "network",
            "load",
            "swap",
            "battery",
            "disk_io",
            "uptime",
            "thermal",
            "wifi",
            "bluetooth",
            "display",
            "fan",
        }

    def test_config_path_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("METRIX_CONFIG", str(tmp_path / "custom.yml"))

        assert get_config_path() == tmp_path / "custom.yml"

    def test_default_config_path(self, monkeypatch):
        monkeypatch.delenv("METRIX_CONFIG", raising=False)

        assert get_config_path().parts[-3:] == (".config", "metrix", "config.yml")


class TestValidation:
    """Test value validation."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            MetrixConfig(interval=0)

    @pytest.mark.parametrize("url", ["not a url", "ftp://example.com", "http://"])
    def test_rejects_bad_endpoint(self, url):
        with pytest.raises(ValueError, match="Invalid endpoint URL"):
            validate_endpoint(url)

    def test_protobuf_alias(self):
        assert OtlpConfig(format="protobuf").format is ExportFormat.BINARY

    def test_parse_header(self):
        assert parse_header("Authorization=Bearer a=b") == ("Authorization", "Bearer a=b")

    @pytest.mark.parametrize("text", ["NoEquals", "=value"])
    def test_parse_header_rejects(self, text):
        with pytest.raises(ValueError, match="Expected \"Key=Value\""):
            parse_header(text)

    def test_parse_headers_skips_malformed(self):
        headers = parse_headers("Authorization=Bearer abc, junk, X-Axiom-Dataset=metrics, Empty=")

        assert headers == {"Authorization": "Bearer abc", "X-Axiom-Dataset": "metrics"}


class TestFileLoading:
    """Test from_file() and save()."""

    def test_missing_file_gives_defaults(self, tmp_path):
        assert MetrixConfig.from_file(tmp_path / "missing.yml") == MetrixConfig()

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(
            yaml.safe_dump(
                {
                    "interval": 30,
                    "otlp": {
                        "endpoint": "http://collector:4318/v1/metrics",
                        "headers": {"Authorization": "Bearer X"},
                        "format": "binary",
                    },
                    "metrics": {"diskIo": False, "wifi": False},
                }
            )
        )

        config = MetrixConfig.from_file(path)

        assert config.interval == 30
        assert config.otlp.headers == {"Authorization": "Bearer X"}
        assert config.otlp.format is ExportFormat.BINARY
        assert config.metrics.disk_io is False
        assert config.metrics.wifi is False
        assert config.metrics.cpu is True

    def test_load_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"interval": 5, "otlp": {"headers": {"X-Test": "1"}}}')

        config = MetrixConfig.from_file(path)

        assert config.interval == 5
        assert config.otlp.endpoint == DEFAULT_ENDPOINT

    def test_invalid_values_raise(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("interval: -5\n")

        with pytest.raises(ConfigurationError):
            MetrixConfig.from_file(path)

    def test_unparseable_file_raises(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("interval: [unclosed\n")

        with pytest.raises(ConfigurationError):
            MetrixConfig.from_file(path)

    def test_non_mapping_raises(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            MetrixConfig.from_file(path)

    def test_save_and_reload(self, tmp_path):
        config = MetrixConfig(
            interval=15, otlp=OtlpConfig(headers={"Authorization": "Bearer X"}, format="binary")
        )

        path = config.save(tmp_path / "nested" / "config.yml")

        assert path.exists()
        assert MetrixConfig.from_file(path) == config


class TestOverrides:
    """Test merging CLI values over file values."""

    def test_cli_values_win(self):
        base = MetrixConfig(interval=10)

        merged = base.with_overrides(
            interval=5, endpoint="http://localhost:4318/v1/metrics", export_format="binary"
        )

        assert merged.interval == 5
        assert merged.otlp.endpoint == "http://localhost:4318/v1/metrics"
        assert merged.otlp.format is ExportFormat.BINARY

    def test_headers_merged(self):
        base = MetrixConfig(otlp=OtlpConfig(headers={"Authorization": "old", "X-Keep": "1"}))

        merged = base.with_overrides(headers={"Authorization": "new"})

        assert merged.otlp.headers == {"Authorization": "new", "X-Keep": "1"}

    def test_no_overrides_keeps_values(self):
        base = MetrixConfig(interval=42, metrics=MetricsToggle(fan=False))

        assert base.with_overrides() == base

    def test_invalid_override_raises(self):
        with pytest.raises(ConfigurationError):
            MetrixConfig().with_overrides(endpoint="nope")
