"""Metrics protocols for dependency injection.

- MeteringMetrics: counters for ingestion, reporting, thresholds and webhooks
- MetricsRenderer: metrics serialization for scraping
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class MeteringMetrics(Protocol):
    """Protocol for usage metering instrumentation."""

    def inc_ingestion(self, action: str) -> None:
        """Count an ingestion call by its limit action (allow/warn/block)."""
        ...

    def inc_reported(self, outcome: str) -> None:
        """Count a billing provider report by outcome (reported/skipped/failed)."""
        ...

    def inc_threshold_event(self, event_type: str) -> None:
        """Count a recorded usage limit event."""
        ...

    def inc_webhook_event(self, event_type: str, outcome: str) -> None:
        """Count a webhook delivery by provider type and outcome."""
        ...


@runtime_checkable
class MetricsRenderer(Protocol):
    """Serializes collected metrics for a scrape endpoint."""

    @property
    def content_type(self) -> str:
        """Media type of the exposition format."""
        ...

    def generate(self) -> bytes:
        """Render all registered collectors."""
        ...
