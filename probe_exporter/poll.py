"""
Polling with exponential backoff bounded by a deadline.
"""

import logging
from typing import Callable, Optional, Tuple, Type, TypeVar

from .deadline import Deadline
from .errors import DeadlineExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")


def wait_until(
    check: Callable[[], Optional[T]],
    deadline: Deadline,
    description: str,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    factor: float = 1.5,
    retry_on: Tuple[Type[BaseException], ...] = (),
) -> T:
    """
    Call ``check`` until it returns something other than None.

    Args:
        check: Probe function, returns None while the condition is not met
        deadline: Shared deadline bounding the whole wait
        description: What is being waited for, used in logs and errors
        initial_delay: First delay between attempts in seconds
        max_delay: Upper bound for the delay between attempts
        factor: Backoff multiplier
        retry_on: Exceptions raised by ``check`` that count as "not yet"

    Returns:
        The first non-None value returned by ``check``

    Raises:
        DeadlineExceeded: If the deadline fires before the condition is met
    """
    delay = initial_delay
    attempt = 0
    last_error: Optional[BaseException] = None

    while not deadline.done():
        attempt += 1
        try:
            result = check()
        except retry_on as e:
            last_error = e
            result = None

        if result is not None:
            logger.debug(f"{description}: ready after {attempt} attempt(s)")
            return result

        logger.debug(f"{description}: attempt {attempt} not ready, retrying in {delay:.1f}s")
        if deadline.sleep(delay):
            break
        delay = min(delay * factor, max_delay)

    message = f"timeout waiting for {description}"
    if last_error is not None:
        message += f" (last error: {last_error})"
    raise DeadlineExceeded(message)
