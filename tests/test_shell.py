"""
Tests for the SSH helper, with paramiko's client mocked out.
"""

from unittest.mock import MagicMock, patch

import paramiko
import pytest

from probe_exporter.deadline import Deadline
from probe_exporter.errors import DeadlineExceeded, ShellError
from probe_exporter.shell import load_private_key, run_command


@pytest.fixture
def ssh_client():
    with patch("probe_exporter.shell.paramiko.SSHClient") as client_class:
        yield client_class.return_value


def finished_channel(client, exit_status=0, output=b"Linux\n"):
    stdout = MagicMock()
    stdout.channel.status_event.wait.return_value = True
    stdout.channel.recv_exit_status.return_value = exit_status
    stdout.read.return_value = output
    client.exec_command.return_value = (MagicMock(), stdout, MagicMock())
    return stdout


class TestRunCommand:
    """Test connection handling and command execution."""

    def test_success(self, ssh_client):
        """Test a command that runs to completion."""
        finished_channel(ssh_client)

        with Deadline(5) as deadline:
            status, output = run_command("198.51.100.1", "ubuntu", object(), "uname -a", deadline)

        assert (status, output) == (0, "Linux\n")
        assert ssh_client.connect.call_args.kwargs["username"] == "ubuntu"
        assert ssh_client.connect.call_args.kwargs["timeout"] <= 5
        ssh_client.close.assert_called_once()

    def test_exit_status_returned(self, ssh_client):
        """Test that the exit status is returned."""
        finished_channel(ssh_client, exit_status=2, output=b"")

        with Deadline(5) as deadline:
            status, _ = run_command("198.51.100.1", "ubuntu", object(), "false", deadline)

        assert status == 2

    def test_connection_refused_propagates(self, ssh_client):
        """Test that connection errors stay retryable."""
        ssh_client.connect.side_effect = ConnectionRefusedError("refused")

        with Deadline(5) as deadline, pytest.raises(OSError):
            run_command("198.51.100.1", "ubuntu", object(), "true", deadline)

        ssh_client.close.assert_called_once()

    def test_banner_error_is_retryable(self, ssh_client):
        """Test that banner errors are retryable."""
        ssh_client.connect.side_effect = paramiko.SSHException("Error reading SSH protocol banner")

        with Deadline(5) as deadline, pytest.raises(OSError, match="banner"):
            run_command("198.51.100.1", "ubuntu", object(), "true", deadline)

    def test_authentication_failure(self, ssh_client):
        """Test an authentication failure."""
        ssh_client.connect.side_effect = paramiko.AuthenticationException("denied")

        with Deadline(5) as deadline, pytest.raises(ShellError, match="authentication failed"):
            run_command("198.51.100.1", "ubuntu", object(), "true", deadline)

    def test_command_hangs(self, ssh_client):
        """Test a command outliving the deadline."""
        stdout = finished_channel(ssh_client)
        stdout.channel.status_event.wait.return_value = False

        with Deadline(5) as deadline, pytest.raises(DeadlineExceeded):
            run_command("198.51.100.1", "ubuntu", object(), "sleep 600", deadline)

        ssh_client.close.assert_called_once()


def test_invalid_private_key():
    """Test a malformed private key."""
    with pytest.raises(ShellError, match="invalid private key"):
        load_private_key("not a key")
