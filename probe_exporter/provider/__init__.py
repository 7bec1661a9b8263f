"""
Cloud provider adapters.
"""

from .base import Address, CloudProvider, KeyPair
from .aws import AWSProvider, present_credential_variables

__all__ = [
    "Address",
    "AWSProvider",
    "CloudProvider",
    "KeyPair",
    "present_credential_variables",
]
