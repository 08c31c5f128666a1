"""
Base classes for telemetry collectors.

This module defines the abstract base class every collector inherits from and
the registry that runs the enabled collectors concurrently each cycle.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

from metrix.telemetry.schemas import CollectorStats, Metric, RegistryStats

logger = logging.getLogger(__name__)


class BaseCollector(ABC):
    """
    Abstract base class for all metric collectors.

    Subclasses implement collect(). Callers use collect_safely(), which
    guarantees consistent error handling and logging.
    """

    def __init__(self, name: str, timeout_seconds: Optional[float] = None):
        """
        Initialize base collector.

        Args:
            name: Collector name; also the key used in the enabled-metrics toggle
            timeout_seconds: Optional upper bound for one collection (None: unbounded)
        """
        self.name = name
        self.timeout_seconds = timeout_seconds
        self._last_collection_time: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._collection_count = 0
        self._error_count = 0

    @abstractmethod
    async def collect(self) -> List[Metric]:
        """
        Collect metrics from the source.

        Returns:
            Zero or more metrics. Collectors with nothing to report return []
            rather than a metric without data points.

        May raise; collect_safely() turns failures into an empty result.
        """

    async def is_available(self) -> bool:
        """Check whether the data source exists on this host."""
        return True

    async def collect_safely(self) -> List[Metric]:
        """
        Collect metrics, isolating failures.

        Returns:
            Collected metrics, or an empty list on error or timeout
        """
        self._collection_count += 1
        start_time = datetime.now(timezone.utc)
        try:
            if self.timeout_seconds is not None:
                result = await asyncio.wait_for(self.collect(), timeout=self.timeout_seconds)
            else:
                result = await self.collect()

        except asyncio.TimeoutError:
            self._error_count += 1
            self._last_error = f"Collection timeout after {self.timeout_seconds}s"
            logger.error(f"{self.name}: {self._last_error}", extra={"collector": self.name})
            return []

        except Exception as e:
            self._error_count += 1
            self._last_error = str(e)
            logger.error(f"{self.name} collection failed: {e}", extra={"collector": self.name})
            return []

        self._last_collection_time = datetime.now(timezone.utc)
        duration = (self._last_collection_time - start_time).total_seconds()
        logger.debug(
            f"{self.name} collected {len(result)} metrics in {duration:.2f}s",
            extra={"collector": self.name, "duration_ms": round(duration * 1000)},
        )
        return list(result)

    def get_stats(self) -> CollectorStats:
        """Get collector statistics."""
        return CollectorStats(
            name=self.name,
            collections=self._collection_count,
            errors=self._error_count,
            error_rate=self._error_count / max(1, self._collection_count),
            last_collection=self._last_collection_time.isoformat()
            if self._last_collection_time
            else None,
            last_error=self._last_error,
        )

    def reset_stats(self) -> None:
        """Reset collector statistics."""
        self._collection_count = 0
        self._error_count = 0
        self._last_error = None


class FunctionCollector(BaseCollector):
    """Adapts a plain coroutine function into a collector."""

    def __init__(
        self,
        name: str,
        fn: Callable[[], Awaitable[List[Metric]]],
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(name, timeout_seconds=timeout_seconds)
        self._fn = fn

    async def collect(self) -> List[Metric]:
        return await self._fn()


class CollectorRegistry:
    """
    Holds the available collectors and runs the enabled ones per cycle.

    Built explicitly at startup and injected where needed, so tests can
    substitute fake collectors freely.
    """

    def __init__(self, collectors: Optional[List[BaseCollector]] = None):
        self.collectors: Dict[str, BaseCollector] = {}
        for collector in collectors or []:
            self.register(collector)

    def register(self, collector: BaseCollector) -> None:
        """
        Register a collector under its name.

        Raises:
            ValueError: If a collector with the same name is already registered
        """
        if collector.name in self.collectors:
            raise ValueError(f"Collector {collector.name} already registered")
        self.collectors[collector.name] = collector
        logger.debug(f"Registered collector: {collector.name}")

    def unregister(self, name: str) -> None:
        """Remove a collector if present."""
        if name in self.collectors:
            del self.collectors[name]
            logger.debug(f"Unregistered collector: {name}")

    def get(self, name: str) -> Optional[BaseCollector]:
        return self.collectors.get(name)

    @property
    def names(self) -> List[str]:
        return list(self.collectors)

    def enabled_collectors(self, enabled: Mapping[str, bool]) -> List[BaseCollector]:
        """Collectors whose name maps to True; missing names count as disabled."""
        return [c for name, c in self.collectors.items() if enabled.get(name, False)]

    async def collect_all(self, enabled: Mapping[str, bool]) -> List[Metric]:
        """
        Run every enabled collector concurrently and concatenate the results.

        A failing collector contributes no metrics; this call never raises.

        Args:
            enabled: Mapping of collector name to enabled flag

        Returns:
            All metrics produced this cycle, in no guaranteed order
        """
        selected = self.enabled_collectors(enabled)
        if not selected:
            logger.warning("No collectors enabled")
            return []

        results = await asyncio.gather(
            *(collector.collect_safely() for collector in selected),
            return_exceptions=True,
        )

        metrics: List[Metric] = []
        for collector, result in zip(selected, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Collector {collector.name} failed: {result}")
                continue
            metrics.extend(result)

        logger.debug(f"Collected {len(metrics)} metrics from {len(selected)} collectors")
        return metrics

    def get_all_stats(self) -> RegistryStats:
        """Get statistics for all collectors."""
        return RegistryStats(
            collectors={name: c.get_stats() for name, c in self.collectors.items()}
        )
