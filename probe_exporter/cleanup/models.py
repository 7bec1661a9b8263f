"""
Data models for cleanup and resource management.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class ResourceKind(Enum):
    """Kinds of provider resources created by the probes."""
    INSTANCE = "instance"
    ADDRESS = "address"
    KEY_PAIR = "key_pair"
    BUCKET = "bucket"


# Instances go first so that their addresses and key pairs are no longer in use.
SWEEP_ORDER = (
    ResourceKind.INSTANCE,
    ResourceKind.ADDRESS,
    ResourceKind.KEY_PAIR,
    ResourceKind.BUCKET,
)


@dataclass(frozen=True)
class TrackedResource:
    """A provider resource identified by its name and kind."""
    kind: ResourceKind
    resource_id: str  # instance id, allocation id, key name or bucket name
    name: str
    tags: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class GCCandidate:
    """A tracked resource together with its age at sweep time."""
    resource: TrackedResource
    age: float

    def expired(self, max_age: float) -> bool:
        return self.age > max_age


@dataclass
class SweepResult:
    """Outcome of one garbage collector sweep."""
    started_at: float
    finished_at: Optional[float] = None
    scanned: int = 0
    candidates: int = 0
    deleted: int = 0
    failed: int = 0
    expired: int = 0
    skipped_young: int = 0
