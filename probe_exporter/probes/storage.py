"""
Storage probe: object store upload/download round trip.
"""

import hashlib
import logging
import os

from ..cleanup.models import ResourceKind
from ..deadline import Deadline
from ..errors import VerificationError
from ..runs import ProbeRun
from ..timing import StepTimer
from .base import Probe

logger = logging.getLogger(__name__)


class StorageProbe(Probe):
    """Create a bucket, upload a random payload, read it back and compare."""

    kind = "storage"

    def create(self, run: ProbeRun, timer: StepTimer) -> None:
        self.provider.create_bucket(self.name, self.tags)
        self.track(run, ResourceKind.BUCKET, self.name)
        timer.step("bucket_created")

    def exercise(self, run: ProbeRun, timer: StepTimer, deadline: Deadline) -> None:
        payload = os.urandom(self.config.payload_size)
        key = self.name

        self.provider.put_object(self.name, key, payload)
        timer.step("object_uploaded")

        downloaded = self.provider.get_object(self.name, key)
        timer.step("object_downloaded")

        if downloaded != payload:
            raise VerificationError(
                f"payload mismatch in {self.name}/{key}: uploaded {len(payload)} bytes "
                f"(sha256 {hashlib.sha256(payload).hexdigest()[:12]}), downloaded {len(downloaded)} bytes "
                f"(sha256 {hashlib.sha256(downloaded).hexdigest()[:12]})"
            )
        timer.step("object_verified")

        self.provider.delete_object(self.name, key)
        timer.step("object_deleted")
