"""
Probe variants.
"""

from .base import Probe, outcome_for
from .compute import ComputeProbe
from .storage import StorageProbe

__all__ = [
    "Probe",
    "ComputeProbe",
    "StorageProbe",
    "outcome_for",
]
