"""
Configuration for metrix.

The agent reads a YAML file (JSON files parse as well) into pydantic models.
CLI flags override file values. Invalid configuration is rejected here,
before any scheduling starts.
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple, Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from metrix.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.axiom.co/v1/metrics"
DEFAULT_INTERVAL = 10
CONFIG_ENV_VAR = "METRIX_CONFIG"


class ExportFormat(str, Enum):
    """Wire encoding used when exporting to the collector."""

    JSON = "json"
    BINARY = "binary"


def get_config_path() -> Path:
    """Location of the configuration file ($METRIX_CONFIG or ~/.config/metrix/config.yml)."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "metrix" / "config.yml"


def validate_endpoint(endpoint: str) -> str:
    """
    Ensure an endpoint is an absolute http(s) URL.

    Raises:
        ValueError: If the URL is malformed
    """
    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f'Invalid endpoint URL: "{endpoint}"')
    return endpoint


def parse_header(text: str) -> Tuple[str, str]:
    """
    Parse a single "Key=Value" header.

    Raises:
        ValueError: If there is no "=" or the key is empty
    """
    key, sep, value = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f'Invalid header format: "{text}". Expected "Key=Value".')
    return key, value.strip()


def parse_headers(text: str) -> Dict[str, str]:
    """
    Parse comma-separated "Key=Value" pairs, skipping malformed entries.

    Example:
        "Authorization=Bearer abc, X-Axiom-Dataset=metrics"
    """
    headers: Dict[str, str] = {}
    for pair in text.split(","):
        try:
            key, value = parse_header(pair)
        except ValueError:
            continue
        if value:
            headers[key] = value
    return headers


class OtlpConfig(BaseModel):
    """Where and how metrics are exported."""

    endpoint: str = Field(DEFAULT_ENDPOINT, description="OTLP/HTTP metrics endpoint")
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Extra request headers (e.g. Authorization)"
    )
    format: ExportFormat = Field(ExportFormat.JSON, description="Wire encoding: json or binary")

    @field_validator("endpoint")
    @classmethod
    def check_endpoint(cls, value: str) -> str:
        return validate_endpoint(value)

    @field_validator("format", mode="before")
    @classmethod
    def accept_protobuf_alias(cls, value):
        if isinstance(value, str) and value.lower() == "protobuf":
            return ExportFormat.BINARY
        return value


class MetricsToggle(BaseModel):
    """Enable flags per collector name."""

    model_config = ConfigDict(populate_by_name=True)

    cpu: bool = True
    memory: bool = True
    disk: bool = True
    network: bool = True
    load: bool = True
    swap: bool = True
    battery: bool = True
    disk_io: bool = Field(True, alias="diskIo")
    uptime: bool = True
    thermal: bool = True
    wifi: bool = True
    bluetooth: bool = True
    display: bool = True
    fan: bool = True

    def as_mapping(self) -> Dict[str, bool]:
        """Collector name to enabled flag."""
        return self.model_dump()


class MetrixConfig(BaseModel):
    """Resolved agent configuration."""

    interval: int = Field(DEFAULT_INTERVAL, gt=0, description="Seconds between collections")
    otlp: OtlpConfig = Field(default_factory=OtlpConfig)
    metrics: MetricsToggle = Field(default_factory=MetricsToggle)

    @classmethod
    def from_file(cls, path: Optional[Union[str, Path]] = None) -> "MetrixConfig":
        """
        Load configuration from a YAML/JSON file.

        A missing file yields the defaults.

        Raises:
            ConfigurationError: If the file cannot be parsed or fails validation
        """
        config_path = Path(path).expanduser() if path else get_config_path()

        if not config_path.exists():
            logger.debug(f"No config file at {config_path}, using defaults")
            return cls()

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to read config {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config {config_path} must contain a mapping")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config {config_path}: {e}") from e

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write configuration as YAML, creating parent directories."""
        config_path = Path(path).expanduser() if path else get_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False)

        logger.info(f"Saved configuration to {config_path}")
        return config_path

    def with_overrides(
        self,
        interval: Optional[int] = None,
        endpoint: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        export_format: Optional[Union[str, ExportFormat]] = None,
    ) -> "MetrixConfig":
        """
        Return a copy with CLI values applied on top of file values.

        Headers are merged; CLI headers win on conflict.

        Raises:
            ConfigurationError: If an override is invalid
        """
        otlp = self.otlp.model_dump()
        if endpoint is not None:
            otlp["endpoint"] = endpoint
        if export_format is not None:
            otlp["format"] = export_format
        otlp["headers"] = {**self.otlp.headers, **(headers or {})}

        data = self.model_dump()
        data["otlp"] = otlp
        if interval is not None:
            data["interval"] = interval

        try:
            return MetrixConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
