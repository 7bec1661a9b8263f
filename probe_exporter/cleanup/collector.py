"""
Garbage collector for resources left behind by probes.

Probes that time out or fail leave their resources in place. The collector
periodically lists every tagged resource, derives its age from the
timestamp embedded in its name, and deletes whatever is older than the
configured max age. That threshold is larger than any scrape timeout, so a
probe still within its deadline never loses its resources to a sweep.
"""

import logging
import threading
import time
from typing import Callable, Optional

from ..config import ExporterConfig
from ..errors import ConfigurationError, ProviderError
from ..names import resource_age
from .models import SWEEP_ORDER, GCCandidate, SweepResult, TrackedResource

logger = logging.getLogger(__name__)


def to_candidate(resource: TrackedResource, now: float) -> Optional[GCCandidate]:
    """
    Build a GC candidate from a listed resource.

    Returns:
        GCCandidate, or None if the resource name does not carry our tag
    """
    age = resource_age(resource.name, now)
    if age is None:
        return None
    return GCCandidate(resource=resource, age=age)


class GarbageCollector:
    """Periodic sweep of tagged resources older than ``max_age``."""

    def __init__(
        self,
        config: ExporterConfig,
        provider_factory: Callable,
        interval: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.provider_factory = provider_factory
        self.interval = config.gc_interval if interval is None else interval
        self.max_age = config.gc_max_age
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._last_result: Optional[SweepResult] = None

    @property
    def last_result(self) -> Optional[SweepResult]:
        with self._lock:
            return self._last_result

    def sweep(self, now: Optional[float] = None, dry_run: bool = False) -> SweepResult:
        """
        Run one sweep over every resource kind.

        Listing and deletion failures are logged and counted; they never stop
        the sweep of the remaining resources.

        Args:
            now: Reference time for ages, defaults to the wall clock at listing time
            dry_run: Only count and log expired resources, delete nothing

        Returns:
            SweepResult with counters for this sweep
        """
        result = SweepResult(started_at=self._clock())

        try:
            provider = self.provider_factory()
            provider.authenticate()
        except (ConfigurationError, ProviderError) as e:
            logger.error(f"Garbage collector cannot reach provider: {e}")
            result.failed += 1
            return self._store(result)

        for kind in SWEEP_ORDER:
            try:
                resources = provider.list_resources(kind)
            except ProviderError as e:
                result.failed += 1
                logger.warning(f"Listing {kind.value} resources failed: {e}")
                continue

            reference = now if now is not None else self._clock()

            for resource in resources:
                result.scanned += 1

                candidate = to_candidate(resource, reference)
                if candidate is None:
                    continue
                result.candidates += 1

                if not candidate.expired(self.max_age):
                    result.skipped_young += 1
                    continue

                result.expired += 1
                if dry_run:
                    logger.info(
                        f"Would delete {kind.value} resource {resource.resource_id} "
                        f"({resource.name}, {candidate.age:.0f}s old)"
                    )
                    continue

                try:
                    provider.delete_resource(resource)
                    result.deleted += 1
                    logger.info(
                        f"Deleted {kind.value} resource {resource.resource_id} "
                        f"({resource.name}, {candidate.age:.0f}s old)"
                    )
                except ProviderError as e:
                    result.failed += 1
                    logger.error(f"Error deleting {kind.value} resource {resource.resource_id}: {e}")

        if result.deleted or result.failed:
            logger.info(
                f"Sweep done: {result.deleted} deleted, {result.failed} failed, "
                f"{result.candidates} tagged of {result.scanned} listed"
            )
        return self._store(result)

    def _store(self, result: SweepResult) -> SweepResult:
        result.finished_at = self._clock()
        with self._lock:
            self._last_result = result
        return result

    def _sweep_safely(self) -> None:
        try:
            self.sweep()
        except Exception:
            logger.exception("Garbage collector sweep crashed")

    def run(self, cycles: int) -> None:
        """Run a bounded number of wait-then-sweep cycles."""
        for _ in range(cycles):
            if self._stop.wait(self.interval):
                break
            self._sweep_safely()

    def run_forever(self) -> None:
        """Wait ``interval``, sweep, repeat until ``stop`` is called."""
        logger.info(f"Garbage collector started (interval {self.interval}s, max age {self.max_age}s)")
        while not self._stop.wait(self.interval):
            self._sweep_safely()
        logger.info("Garbage collector stopped")

    def start(self) -> threading.Thread:
        """Run ``run_forever`` on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread

        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="garbage-collector", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
