"""
Compute probe: boot an instance and run a command on it over SSH.
"""

import logging
from typing import Optional

from ..cleanup.models import ResourceKind
from ..deadline import Deadline
from ..errors import ConfigurationError, ProviderError, ShellError
from ..poll import wait_until
from ..runs import ProbeRun
from ..shell import load_private_key, run_command
from ..timing import StepTimer
from .base import Probe

logger = logging.getLogger(__name__)

FAILED_INSTANCE_STATES = ("shutting-down", "terminated", "stopping", "stopped")
INSTANCE_NOT_FOUND = "InvalidInstanceID.NotFound"


class ComputeProbe(Probe):
    """Spawn an instance, attach a public address and ssh into it."""

    kind = "compute"

    key_pair = None
    instance_id: Optional[str] = None
    address = None

    def create(self, run: ProbeRun, timer: StepTimer) -> None:
        if not self.config.image:
            raise ConfigurationError("no image configured for the compute probe")

        self.key_pair = self.provider.create_key_pair(self.name, self.tags)
        self.track(run, ResourceKind.KEY_PAIR, self.key_pair.name)
        timer.step("keypair_created")

        self.instance_id = self.provider.run_instance(
            self.name,
            self.tags,
            image=self.config.image,
            flavor=self.config.flavor,
            key_name=self.key_pair.name,
            subnet=self.config.internal_network,
            security_group=self.config.security_group,
        )
        self.track(run, ResourceKind.INSTANCE, self.instance_id)
        logger.info(f"Created instance {self.instance_id} ({self.name})")
        timer.step("instance_created")

    def wait_ready(self, run: ProbeRun, timer: StepTimer, deadline: Deadline) -> None:
        wait_until(
            self._running,
            deadline,
            f"instance {self.instance_id} to be running",
            initial_delay=2.0,
            max_delay=10.0,
        )
        timer.step("instance_active")

        self.address = self.provider.allocate_address(self.name, self.tags, pool=self.config.external_network)
        self.track(run, ResourceKind.ADDRESS, self.address.allocation_id)
        self.provider.associate_address(self.address.allocation_id, self.instance_id)
        timer.step("address_attached")

    def exercise(self, run: ProbeRun, timer: StepTimer, deadline: Deadline) -> None:
        key = load_private_key(self.key_pair.private_key)
        host = self.address.public_ip

        # Connection refused/reset while sshd starts up is retried until the deadline
        exit_status, output = wait_until(
            lambda: run_command(host, self.config.user, key, self.config.command, deadline),
            deadline,
            f"ssh on {host}",
            initial_delay=2.0,
            max_delay=5.0,
            retry_on=(OSError,),
        )

        if exit_status != 0:
            raise ShellError(f"'{self.config.command}' exited with status {exit_status} on {host}")

        logger.debug(f"{host}: {output.strip()}")
        timer.step("ssh_command")

    def _running(self) -> Optional[str]:
        try:
            state = self.provider.instance_state(self.instance_id)
        except ProviderError as e:
            # DescribeInstances lags behind RunInstances for a short while
            if e.code == INSTANCE_NOT_FOUND:
                logger.debug(f"Instance {self.instance_id} not visible yet")
                return None
            raise
        if state == "running":
            return state
        if state in FAILED_INSTANCE_STATES:
            raise ProviderError(f"instance {self.instance_id} entered state {state}")
        return None
