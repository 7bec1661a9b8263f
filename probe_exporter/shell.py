"""
Remote shell access to probe instances over SSH.
"""

import io
import logging
from typing import Tuple

import paramiko

from .deadline import Deadline
from .errors import DeadlineExceeded, ShellError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0


def load_private_key(pem: str) -> paramiko.PKey:
    """Load a PEM encoded private key as returned by the provider."""
    try:
        return paramiko.RSAKey.from_private_key(io.StringIO(pem))
    except paramiko.SSHException as e:
        raise ShellError(f"invalid private key: {e}") from e


def run_command(host: str, user: str, key: paramiko.PKey, command: str, deadline: Deadline) -> Tuple[int, str]:
    """
    Open an SSH session and run one command.

    Connection errors (refused, unreachable, timed out) are raised as OSError
    so callers can retry them while the instance boots.

    Args:
        host: Address of the instance
        user: Remote user name
        key: Private key to authenticate with
        command: Command to run
        deadline: Shared deadline bounding connect and execution

    Returns:
        Tuple of (exit_status, stdout)

    Raises:
        ShellError: If authentication or the SSH protocol fails
        DeadlineExceeded: If the command does not finish before the deadline
        OSError: If the connection could not be established
    """
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    try:
        client.connect(
            host,
            username=user,
            pkey=key,
            timeout=deadline.cap(CONNECT_TIMEOUT),
            banner_timeout=deadline.cap(CONNECT_TIMEOUT),
            auth_timeout=deadline.cap(CONNECT_TIMEOUT),
            allow_agent=False,
            look_for_keys=False,
        )
    except paramiko.AuthenticationException as e:
        client.close()
        raise ShellError(f"ssh authentication failed for {user}@{host}: {e}") from e
    except paramiko.SSHException as e:
        client.close()
        # paramiko.Transport raises "Error reading SSH protocol banner" while sshd is still starting
        if "banner" in str(e).lower():
            raise OSError(f"ssh banner not ready on {host}: {e}") from e
        raise ShellError(f"ssh session to {host} failed: {e}") from e
    except OSError:
        client.close()
        raise

    try:
        logger.debug(f"Running '{command}' on {user}@{host}")
        _, stdout, _ = client.exec_command(command, timeout=deadline.cap(None))
        channel = stdout.channel

        if not channel.status_event.wait(deadline.remaining()):
            raise DeadlineExceeded(f"timeout running '{command}' on {host}")

        exit_status = channel.recv_exit_status()
        output = stdout.read().decode("utf-8", errors="replace")
    except paramiko.SSHException as e:
        raise ShellError(f"ssh command on {host} failed: {e}") from e
    finally:
        client.close()

    return exit_status, output
