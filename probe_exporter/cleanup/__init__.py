"""
Cleanup utilities for resource management and garbage collection.
"""

from .collector import GarbageCollector, to_candidate
from .models import GCCandidate, ResourceKind, SweepResult, TrackedResource

__all__ = [
    "GarbageCollector",
    "GCCandidate",
    "ResourceKind",
    "SweepResult",
    "TrackedResource",
    "to_candidate",
]
