"""
Tests for the shared deadline, the step timer and deadline-bound polling.
"""

import time

import pytest

from probe_exporter.deadline import Deadline
from probe_exporter.errors import DeadlineExceeded
from probe_exporter.metrics import ScrapeMetrics
from probe_exporter.poll import wait_until
from probe_exporter.runs import ProbeRun
from probe_exporter.timing import StepTimer


def step_value(metrics, probe, step):
    return metrics.registry.get_sample_value(
        "probe_exporter_step_timestamp_seconds", {"probe": probe, "step": step}
    )


class TestDeadline:
    """Test the cancellable deadline."""

    def test_expires(self):
        """Test that the deadline expires on its own."""
        deadline = Deadline(0.05)
        assert not deadline.done()

        time.sleep(0.1)

        assert deadline.done()
        assert deadline.remaining() == 0.0

    def test_cancel(self):
        """Test explicit cancellation."""
        deadline = Deadline(60)
        deadline.cancel()

        assert deadline.done()
        assert deadline.remaining() == 0.0

    def test_context_manager_cancels(self):
        """Test that leaving the context cancels the deadline."""
        with Deadline(60) as deadline:
            assert not deadline.done()
        assert deadline.done()

    def test_sleep_wakes_on_cancel(self):
        """Test that sleep wakes when the deadline fires."""
        deadline = Deadline(0.1)
        start = time.monotonic()

        fired = deadline.sleep(30)

        assert fired
        assert time.monotonic() - start < 5

    def test_sleep_without_firing(self):
        """Test a sleep that ends before the deadline."""
        with Deadline(60) as deadline:
            assert deadline.sleep(0.01) is False

    def test_cap(self):
        """Test per-call timeouts bounded by the time left."""
        with Deadline(60) as deadline:
            assert deadline.cap(10) == 10
            assert deadline.cap(None) <= 60


class TestStepTimer:
    """Test step recording and cancellation semantics."""

    def test_step_records_timestamp(self):
        """Test that a step is published and recorded."""
        metrics = ScrapeMetrics(runtime=False)
        run = ProbeRun(probe="storage")

        with Deadline(60) as deadline:
            timer = StepTimer(run, deadline, metrics)
            before = time.time()
            timer.step("bucket_created")

        assert run.step_names == ["bucket_created"]
        assert step_value(metrics, "storage", "bucket_created") >= int(before)

    def test_steps_keep_order(self):
        """Test step order."""
        metrics = ScrapeMetrics(runtime=False)
        run = ProbeRun(probe="compute")

        with Deadline(60) as deadline:
            timer = StepTimer(run, deadline, metrics)
            for name in ("start", "keypair_created", "instance_created"):
                timer.step(name)

        assert run.step_names == ["start", "keypair_created", "instance_created"]
        instants = [instant for _, instant in run.steps]
        assert instants == sorted(instants)

    def test_step_after_deadline_publishes_then_raises(self):
        """Partial progress stays visible after the deadline."""
        metrics = ScrapeMetrics(runtime=False)
        run = ProbeRun(probe="compute")
        deadline = Deadline(60)
        deadline.cancel()
        timer = StepTimer(run, deadline, metrics)

        with pytest.raises(DeadlineExceeded, match="timeout after instance_active"):
            timer.step("instance_active")

        assert step_value(metrics, "compute", "instance_active") is not None
        assert run.last_step == "instance_active"


class TestWaitUntil:
    """Test polling with backoff."""

    def test_returns_first_value(self):
        """Test the first non-None value returned."""
        states = iter([None, None, "running"])

        with Deadline(10) as deadline:
            result = wait_until(lambda: next(states), deadline, "instance", initial_delay=0.01)

        assert result == "running"

    def test_times_out(self):
        """Test a condition that never holds."""
        deadline = Deadline(0.1)

        with pytest.raises(DeadlineExceeded, match="timeout waiting for instance"):
            wait_until(lambda: None, deadline, "instance", initial_delay=0.01)

    def test_retries_listed_errors(self):
        """Test retried exceptions."""
        attempts = []

        def check():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionRefusedError("not yet")
            return "ok"

        with Deadline(10) as deadline:
            assert wait_until(check, deadline, "ssh", initial_delay=0.01, retry_on=(OSError,)) == "ok"
        assert len(attempts) == 3

    def test_other_errors_propagate(self):
        """Test exceptions that are not retried."""
        def check():
            raise ValueError("boom")

        with Deadline(10) as deadline:
            with pytest.raises(ValueError):
                wait_until(check, deadline, "ssh", initial_delay=0.01, retry_on=(OSError,))

    def test_timeout_mentions_last_error(self):
        """Test the last error in the timeout message."""
        def check():
            raise ConnectionRefusedError("refused")

        deadline = Deadline(0.1)
        with pytest.raises(DeadlineExceeded, match="refused"):
            wait_until(check, deadline, "ssh", initial_delay=0.01, retry_on=(OSError,))
