"""
Provider interface consumed by the probes and the garbage collector.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..cleanup.models import ResourceKind, TrackedResource


@dataclass(frozen=True)
class KeyPair:
    name: str
    private_key: str  # PEM encoded


@dataclass(frozen=True)
class Address:
    allocation_id: str
    public_ip: str


class CloudProvider(ABC):
    """Abstract cloud provider used by the probes."""

    @abstractmethod
    def authenticate(self) -> None:
        """
        Establish a session with the provider.

        Raises:
            ConfigurationError: If credentials or endpoint are missing or rejected
        """
        pass

    @abstractmethod
    def create_key_pair(self, name: str, tags: Dict[str, str]) -> KeyPair:
        pass

    @abstractmethod
    def run_instance(
        self,
        name: str,
        tags: Dict[str, str],
        image: str,
        flavor: str,
        key_name: str,
        subnet: Optional[str] = None,
        security_group: Optional[str] = None,
    ) -> str:
        """
        Launch one instance.

        Returns:
            Instance id
        """
        pass

    @abstractmethod
    def instance_state(self, instance_id: str) -> str:
        """Return the provider state of an instance (pending, running, ...)."""
        pass

    @abstractmethod
    def allocate_address(self, name: str, tags: Dict[str, str], pool: Optional[str] = None) -> Address:
        pass

    @abstractmethod
    def associate_address(self, allocation_id: str, instance_id: str) -> None:
        pass

    @abstractmethod
    def create_bucket(self, name: str, tags: Dict[str, str]) -> None:
        pass

    @abstractmethod
    def put_object(self, bucket: str, key: str, data: bytes) -> None:
        pass

    @abstractmethod
    def get_object(self, bucket: str, key: str) -> bytes:
        pass

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        pass

    @abstractmethod
    def list_resources(self, kind: ResourceKind) -> List[TrackedResource]:
        """
        List resources of one kind whose name carries the exporter tag.

        Raises:
            ProviderError: If the listing fails
        """
        pass

    @abstractmethod
    def delete_resource(self, resource: TrackedResource) -> None:
        """
        Delete one resource.

        Raises:
            ProviderError: If the provider rejects the deletion
        """
        pass
