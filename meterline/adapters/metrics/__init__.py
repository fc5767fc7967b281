"""Metrics adapters: Prometheus and Fake implementations."""

from meterline.adapters.metrics.metering import FakeMeteringMetrics, PrometheusMeteringMetrics
from meterline.adapters.metrics.renderer import FakeMetricsRenderer, PrometheusMetricsRenderer

__all__ = [
    "FakeMeteringMetrics",
    "FakeMetricsRenderer",
    "PrometheusMeteringMetrics",
    "PrometheusMetricsRenderer",
]
