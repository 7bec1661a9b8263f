"""
Step timer: publishes the completion instant of every probe step.
"""

import logging
import time

from .deadline import Deadline
from .errors import DeadlineExceeded
from .metrics import ScrapeMetrics
from .runs import ProbeRun

logger = logging.getLogger(__name__)


class StepTimer:
    """Checkpoint recorder bound to one probe run."""

    def __init__(self, run: ProbeRun, deadline: Deadline, metrics: ScrapeMetrics):
        self.run = run
        self.deadline = deadline
        self.metrics = metrics

    def step(self, name: str) -> None:
        """
        Record that step ``name`` completed now.

        The timestamp is published even when the deadline has already fired,
        so a scrape cut short still exposes partial progress.

        Raises:
            DeadlineExceeded: If the shared deadline has fired
        """
        self.metrics.record_step(self.run.probe, name)
        self.run.steps.append((name, time.time()))
        logger.debug(f"{self.run.probe} probe: step {name}")

        if self.deadline.done():
            raise DeadlineExceeded(f"timeout after {name}")
