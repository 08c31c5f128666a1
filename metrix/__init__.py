"""
metrix - lightweight host telemetry agent.

Collects operating-system metrics on a fixed interval and ships them to an
OpenTelemetry collector over OTLP/HTTP (JSON or protobuf).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
