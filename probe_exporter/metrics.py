"""
Prometheus metrics published by a scrape.

A fresh CollectorRegistry is built for every scrape, so each response only
contains what happened during that request window.
"""

from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Gauge,
    Info,
    PlatformCollector,
    ProcessCollector,
)
from prometheus_client.core import GaugeMetricFamily

from . import __version__

NAMESPACE = "probe_exporter"


class ScrapeMetrics:
    """Metrics surface shared by all probes of one scrape."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, runtime: bool = True):
        self.registry = registry or CollectorRegistry()

        self.step_timestamp = Gauge(
            "step_timestamp_seconds",
            "Unix time at which a probe step completed",
            ["probe", "step"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.success = Gauge(
            "probe_success",
            "Whether the probe completed every step",
            ["probe"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.outcome = Gauge(
            "probe_outcome",
            "Terminal outcome of the probe",
            ["probe", "outcome"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.duration = Gauge(
            "probe_duration_seconds",
            "Wall time spent in the probe",
            ["probe"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.failure_step = Gauge(
            "probe_failure_step",
            "Last step reached before the probe failed",
            ["probe", "step"],
            namespace=NAMESPACE,
            registry=self.registry,
        )

        build_info = Info("build", "Exporter build information", namespace=NAMESPACE, registry=self.registry)
        build_info.info({"version": __version__})

        if runtime:
            ProcessCollector(registry=self.registry)
            PlatformCollector(registry=self.registry)

    def record_step(self, probe: str, step: str) -> None:
        self.step_timestamp.labels(probe=probe, step=step).set_to_current_time()

    def record_outcome(self, probe: str, outcome: str, duration: float, failed_step: Optional[str] = None) -> None:
        """Publish the terminal state of a probe run."""
        self.success.labels(probe=probe).set(1 if outcome == "success" else 0)
        self.outcome.labels(probe=probe, outcome=outcome).set(1)
        self.duration.labels(probe=probe).set(duration)
        if failed_step:
            self.failure_step.labels(probe=probe, step=failed_step).set(1)


class SweepCollector:
    """Exposes the last garbage collector sweep on every scrape."""

    def __init__(self, collector):
        self.collector = collector

    def collect(self):
        result = self.collector.last_result
        if result is None:
            return

        resources = GaugeMetricFamily(
            f"{NAMESPACE}_gc_resources",
            "Resources seen by the last garbage collector sweep",
            labels=["state"],
        )
        resources.add_metric(["scanned"], result.scanned)
        resources.add_metric(["candidates"], result.candidates)
        resources.add_metric(["expired"], result.expired)
        resources.add_metric(["deleted"], result.deleted)
        resources.add_metric(["failed"], result.failed)
        yield resources

        yield GaugeMetricFamily(
            f"{NAMESPACE}_gc_last_sweep_timestamp_seconds",
            "Unix time at which the last sweep finished",
            value=result.finished_at,
        )
