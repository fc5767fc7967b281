"""Usage metering metrics adapters (Prometheus + Fake).

The Prometheus implementation registers its counters on an injected
CollectorRegistry so the service's metrics stay off the global registry.
"""

from collections import Counter as _Tally

from prometheus_client import CollectorRegistry, Counter

from meterline.core.protocols.metrics import MeteringMetrics


class PrometheusMeteringMetrics(MeteringMetrics):
    """Prometheus-backed metering counters."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

        self._ingestions = Counter(
            "meterline_usage_ingestions_total",
            "Usage ingestion calls by limit action",
            ["action"],
            registry=self._registry,
        )
        self._reported = Counter(
            "meterline_usage_reported_total",
            "Usage deltas forwarded to the billing provider by outcome",
            ["outcome"],
            registry=self._registry,
        )
        self._threshold_events = Counter(
            "meterline_threshold_events_total",
            "Usage limit events recorded",
            ["event_type"],
            registry=self._registry,
        )
        self._webhook_events = Counter(
            "meterline_webhook_events_total",
            "Billing provider webhook deliveries by outcome",
            ["event_type", "outcome"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def inc_ingestion(self, action: str) -> None:
        self._ingestions.labels(action=action).inc()

    def inc_reported(self, outcome: str) -> None:
        self._reported.labels(outcome=outcome).inc()

    def inc_threshold_event(self, event_type: str) -> None:
        self._threshold_events.labels(event_type=event_type).inc()

    def inc_webhook_event(self, event_type: str, outcome: str) -> None:
        self._webhook_events.labels(event_type=event_type, outcome=outcome).inc()


# ---------------------------------------------------------------------------
# Fake
# ---------------------------------------------------------------------------


class FakeMeteringMetrics(MeteringMetrics):
    """In-memory spy implementing the MeteringMetrics protocol."""

    def __init__(self) -> None:
        self.ingestions: _Tally[str] = _Tally()
        self.reported: _Tally[str] = _Tally()
        self.threshold_events: _Tally[str] = _Tally()
        self.webhook_events: _Tally[tuple[str, str]] = _Tally()

    def inc_ingestion(self, action: str) -> None:
        self.ingestions[action] += 1

    def inc_reported(self, outcome: str) -> None:
        self.reported[outcome] += 1

    def inc_threshold_event(self, event_type: str) -> None:
        self.threshold_events[event_type] += 1

    def inc_webhook_event(self, event_type: str, outcome: str) -> None:
        self.webhook_events[(event_type, outcome)] += 1
