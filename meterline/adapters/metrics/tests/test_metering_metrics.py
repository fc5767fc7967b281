"""Unit tests for metering metrics adapters and renderer."""

from prometheus_client import CollectorRegistry

from meterline.adapters.metrics import (
    FakeMeteringMetrics,
    PrometheusMeteringMetrics,
    PrometheusMetricsRenderer,
)


class TestFakeMeteringMetrics:
    """Tests for the FakeMeteringMetrics test helper."""

    def test_tallies_by_label(self):
        fake = FakeMeteringMetrics()
        fake.inc_ingestion("allow")
        fake.inc_ingestion("allow")
        fake.inc_webhook_event("invoice.payment_failed", "processed")

        assert fake.ingestions["allow"] == 2
        assert fake.ingestions["block"] == 0
        assert fake.webhook_events[("invoice.payment_failed", "processed")] == 1


class TestPrometheusMeteringMetrics:
    """Tests for the Prometheus adapter."""

    def test_registry_is_separate_from_default(self):
        from prometheus_client import REGISTRY

        adapter = PrometheusMeteringMetrics()
        assert adapter.registry is not REGISTRY

    def test_counters_increment_per_label(self):
        registry = CollectorRegistry()
        adapter = PrometheusMeteringMetrics(registry=registry)

        adapter.inc_ingestion("block")
        adapter.inc_reported("failed")
        adapter.inc_reported("failed")
        adapter.inc_threshold_event("warning")
        adapter.inc_webhook_event("customer.subscription.updated", "duplicate")

        def value(name, **labels):
            return registry.get_sample_value(name, labels)

        assert value("meterline_usage_ingestions_total", action="block") == 1.0
        assert value("meterline_usage_reported_total", outcome="failed") == 2.0
        assert value("meterline_threshold_events_total", event_type="warning") == 1.0
        assert (
            value(
                "meterline_webhook_events_total",
                event_type="customer.subscription.updated",
                outcome="duplicate",
            )
            == 1.0
        )

    def test_two_adapters_do_not_collide(self):
        PrometheusMeteringMetrics()
        PrometheusMeteringMetrics()


class TestPrometheusMetricsRenderer:
    def test_renders_shared_registry(self):
        registry = CollectorRegistry()
        PrometheusMeteringMetrics(registry=registry).inc_ingestion("warn")
        renderer = PrometheusMetricsRenderer(registry=registry)

        body = renderer.generate().decode()

        assert 'meterline_usage_ingestions_total{action="warn"} 1.0' in body
        assert renderer.content_type.startswith("text/plain")
