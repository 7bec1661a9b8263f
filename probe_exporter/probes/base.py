"""
Base probe interface and the shared probe lifecycle.
"""

from abc import ABC, abstractmethod
import logging

from ..cleanup.models import ResourceKind, TrackedResource
from ..config import ExporterConfig
from ..deadline import Deadline
from ..errors import (
    ConfigurationError,
    DeadlineExceeded,
    ProviderError,
    ShellError,
    VerificationError,
)
from ..metrics import ScrapeMetrics
from ..names import create_name, resource_tags
from ..provider.base import CloudProvider
from ..runs import ProbeOutcome, ProbeRun
from ..timing import StepTimer

logger = logging.getLogger(__name__)

_OUTCOMES = (
    (DeadlineExceeded, ProbeOutcome.TIMEOUT),
    (ConfigurationError, ProbeOutcome.CONFIGURATION_ERROR),
    (ProviderError, ProbeOutcome.PROVIDER_ERROR),
    (ShellError, ProbeOutcome.SHELL_ERROR),
    (VerificationError, ProbeOutcome.VERIFICATION_ERROR),
)


def outcome_for(error: Exception) -> ProbeOutcome:
    """Map an exception to the outcome it reports."""
    for error_type, outcome in _OUTCOMES:
        if isinstance(error, error_type):
            return outcome
    return ProbeOutcome.ERROR


class Probe(ABC):
    """
    Abstract base class for probes.

    ``run`` drives the phases in order: create, wait for ready, exercise and
    delete, calling the step timer at every phase boundary. Any failure stops
    the run where it is and leaves the resources created so far to the
    garbage collector; only a run that reaches the delete phase cleans up
    after itself.
    """

    kind: str = ""

    def __init__(self, provider: CloudProvider, config: ExporterConfig):
        self.provider = provider
        self.config = config
        self.name = create_name()
        self.tags = resource_tags(self.name, self.kind)

    def run(self, deadline: Deadline, metrics: ScrapeMetrics) -> ProbeRun:
        """
        Execute the probe once.

        Only errors of the exporter hierarchy are turned into outcomes here;
        anything else propagates to the orchestrator.

        Returns:
            The completed ProbeRun
        """
        run = ProbeRun(probe=self.kind)
        timer = StepTimer(run, deadline, metrics)

        try:
            timer.step("start")
            self.create(run, timer)
            self.wait_ready(run, timer, deadline)
            self.exercise(run, timer, deadline)
            self.delete(run, timer)
        except (DeadlineExceeded, ConfigurationError, ProviderError, ShellError, VerificationError) as e:
            run.finish(outcome_for(e), str(e))
            self._report_failure(run)
        else:
            run.finish(ProbeOutcome.SUCCESS)
            logger.info(f"{self.kind} probe succeeded in {run.duration:.1f}s")

        metrics.record_outcome(
            self.kind,
            run.outcome.value,
            run.duration,
            failed_step=run.last_step if run.outcome != ProbeOutcome.SUCCESS else None,
        )
        return run

    @abstractmethod
    def create(self, run: ProbeRun, timer: StepTimer) -> None:
        """Create the probe resources, recording each with ``track``."""
        pass

    def wait_ready(self, run: ProbeRun, timer: StepTimer, deadline: Deadline) -> None:
        """Wait until the created resources can be used."""
        pass

    @abstractmethod
    def exercise(self, run: ProbeRun, timer: StepTimer, deadline: Deadline) -> None:
        pass

    def delete(self, run: ProbeRun, timer: StepTimer) -> None:
        """Delete tracked resources, newest first."""
        while run.resources:
            resource = run.resources[-1]
            self.provider.delete_resource(resource)
            run.resources.pop()
            timer.step(f"{resource.kind.value}_deleted")

    def track(self, run: ProbeRun, kind: ResourceKind, resource_id: str) -> TrackedResource:
        resource = TrackedResource(kind=kind, resource_id=resource_id, name=self.name, tags=self.tags)
        run.resources.append(resource)
        return resource

    def _report_failure(self, run: ProbeRun) -> None:
        leftovers = ", ".join(f"{r.kind.value}:{r.resource_id}" for r in run.resources)
        logger.warning(
            f"{self.kind} probe failed after step {run.last_step} "
            f"({run.outcome.value}): {run.error}"
        )
        if leftovers:
            logger.info(f"{self.kind} probe left for garbage collection: {leftovers}")
