"""
Probe run records.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .cleanup.models import TrackedResource


class ProbeOutcome(Enum):
    """Terminal outcome of a probe run."""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"
    CONFIGURATION_ERROR = "configuration_error"
    SHELL_ERROR = "shell_error"
    VERIFICATION_ERROR = "verification_error"
    ERROR = "error"


@dataclass
class ProbeRun:
    """A single execution of one probe variant."""
    probe: str
    started_at: float = field(default_factory=time.time)
    steps: List[Tuple[str, float]] = field(default_factory=list)
    resources: List[TrackedResource] = field(default_factory=list)  # created and not yet deleted
    outcome: Optional[ProbeOutcome] = None
    error: Optional[str] = None
    finished_at: Optional[float] = None

    @property
    def last_step(self) -> Optional[str]:
        return self.steps[-1][0] if self.steps else None

    @property
    def step_names(self) -> List[str]:
        return [name for name, _ in self.steps]

    @property
    def duration(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return end - self.started_at

    def finish(self, outcome: ProbeOutcome, error: Optional[str] = None) -> "ProbeRun":
        self.outcome = outcome
        self.error = error
        self.finished_at = time.time()
        return self
