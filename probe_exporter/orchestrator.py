"""
Probe orchestration for one scrape.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Type

from .config import ExporterConfig
from .deadline import Deadline
from .errors import ConfigurationError
from .metrics import ScrapeMetrics, SweepCollector
from .probes import ComputeProbe, Probe, StorageProbe
from .provider import AWSProvider, CloudProvider
from .runs import ProbeOutcome, ProbeRun

logger = logging.getLogger(__name__)


def default_provider_factory(config: ExporterConfig) -> Callable[[float], CloudProvider]:
    """Build providers bound to the configured region and a scrape timeout."""
    def factory(timeout: Optional[float] = None) -> CloudProvider:
        return AWSProvider(region=config.region, timeout=timeout)
    return factory


@dataclass
class ScrapeResult:
    """Everything a scrape produced."""
    metrics: ScrapeMetrics
    runs: List[ProbeRun] = field(default_factory=list)
    timeout: float = 0.0
    duration: float = 0.0

    @property
    def registry(self):
        return self.metrics.registry


class ProbeOrchestrator:
    """
    Runs the enabled probes concurrently under one shared deadline.

    Each probe runs on its own worker thread. ``handle_scrape`` only returns
    once every probe has returned, so the registry it hands back is a
    complete picture of the request window, partial runs included.
    """

    def __init__(
        self,
        config: ExporterConfig,
        provider_factory: Optional[Callable[..., CloudProvider]] = None,
        garbage_collector=None,
        runtime_metrics: bool = True,
    ):
        self.config = config
        self.provider_factory = provider_factory or default_provider_factory(config)
        self.garbage_collector = garbage_collector
        self.runtime_metrics = runtime_metrics

    def enabled_probes(self) -> List[Type[Probe]]:
        probes: List[Type[Probe]] = []
        if self.config.enable_instance:
            probes.append(ComputeProbe)
        if self.config.enable_objectstore:
            probes.append(StorageProbe)
        return probes

    def handle_scrape(self, timeout: Optional[float] = None) -> ScrapeResult:
        """
        Run one probe round.

        Args:
            timeout: Scrape timeout in seconds, defaults to the configured one

        Returns:
            ScrapeResult holding the registry to expose and the probe runs
        """
        if timeout is None:
            timeout = self.config.request_timeout

        metrics = ScrapeMetrics(runtime=self.runtime_metrics)
        if self.garbage_collector is not None:
            metrics.registry.register(SweepCollector(self.garbage_collector))

        result = ScrapeResult(metrics=metrics, timeout=timeout)
        probe_types = self.enabled_probes()
        if not probe_types:
            return result

        start = time.monotonic()

        with Deadline(timeout) as deadline:
            provider = self.provider_factory(timeout)
            try:
                provider.authenticate()
            except ConfigurationError as e:
                logger.error(f"Scrape skipped, provider authentication failed: {e}")
                result.runs = [self._not_started(probe_type.kind, e, metrics) for probe_type in probe_types]
                result.duration = time.monotonic() - start
                return result

            with ThreadPoolExecutor(max_workers=len(probe_types), thread_name_prefix="probe") as executor:
                futures = [
                    executor.submit(self._run_isolated, probe_type, provider, deadline, metrics)
                    for probe_type in probe_types
                ]
                wait(futures)

            result.runs = [future.result() for future in futures]

        result.duration = time.monotonic() - start
        return result

    def _run_isolated(
        self,
        probe_type: Type[Probe],
        provider: CloudProvider,
        deadline: Deadline,
        metrics: ScrapeMetrics,
    ) -> ProbeRun:
        """Run one probe; nothing it raises reaches the other probes."""
        start = time.monotonic()
        run = None

        try:
            probe = probe_type(provider, self.config)
            run = probe.run(deadline, metrics)
        except Exception as e:
            logger.exception(f"{probe_type.kind} probe crashed")
            run = ProbeRun(probe=probe_type.kind).finish(ProbeOutcome.ERROR, str(e))
            metrics.record_outcome(probe_type.kind, run.outcome.value, time.monotonic() - start)
        finally:
            logger.info(f"{probe_type.kind} probe finished in {time.monotonic() - start:.1f}s")

        return run

    def _not_started(self, kind: str, error: Exception, metrics: ScrapeMetrics) -> ProbeRun:
        run = ProbeRun(probe=kind).finish(ProbeOutcome.CONFIGURATION_ERROR, str(error))
        metrics.record_outcome(kind, run.outcome.value, run.duration)
        return run
