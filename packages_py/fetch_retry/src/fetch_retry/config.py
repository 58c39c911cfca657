"""
Backoff policy for fetch_retry
"""
import asyncio
import random
import re
from typing import Optional

from .types import RetryState, IDEMPOTENT_METHODS


# First backoff delay grows from here
INITIAL_DELAY_MS = 100

# Extra attempts granted to idempotent methods when the caller gives none
DEFAULT_IDEMPOTENT_RETRIES = 1

_RETRY_AFTER_SECONDS = re.compile(r"^[0-9]+$")


def default_retries(method: str) -> int:
    """
    Resolve the retry budget for a method when the caller did not set one.

    Args:
        method: HTTP method, any case

    Returns:
        1 for idempotent methods (GET, PUT), 0 otherwise
    """
    if method.upper() in IDEMPOTENT_METHODS:
        return DEFAULT_IDEMPOTENT_RETRIES
    return 0


def calculate_backoff_delay(delay_ms: float) -> float:
    """
    Grow a backoff delay exponentially with random fuzz.

    delay = delay * 2 + delay * random(0, 1)

    Args:
        delay_ms: The previous delay (milliseconds)

    Returns:
        The next delay in milliseconds
    """
    return delay_ms * 2 + delay_ms * random.random()


def grow_timeout(timeout_ms: float, base_timeout_ms: float) -> float:
    """
    Grow a timeout budget linearly, plus some fuzz.

    Args:
        timeout_ms: The current timeout budget (milliseconds)
        base_timeout_ms: The timeout the request started with (milliseconds)

    Returns:
        The grown timeout in milliseconds
    """
    return timeout_ms + base_timeout_ms + random.random() * base_timeout_ms


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """
    Parse a Retry-After header given in whole seconds.

    HTTP-date values are not honoured.

    Args:
        value: Retry-After header value

    Returns:
        Seconds to wait, or None if the value is missing or not all digits
    """
    if value is None:
        return None
    value = str(value).strip()
    if not _RETRY_AFTER_SECONDS.match(value):
        return None
    return int(value)


def create_retry_state(retries: int, timeout_ms: float) -> RetryState:
    """
    Create the retry state for a new request.

    Args:
        retries: Resolved retry budget
        timeout_ms: Initial timeout (milliseconds)

    Returns:
        Fresh retry state
    """
    return RetryState(
        retries_left=retries,
        delay_ms=INITIAL_DELAY_MS,
        timeout_ms=timeout_ms,
        base_timeout_ms=timeout_ms,
    )


def advance_retry_state(state: RetryState, override_delay_ms: Optional[float] = None) -> float:
    """
    Consume one retry from the budget and grow delay and timeout.

    A server-directed delay replaces the computed exponential delay and
    becomes the base for later growth.

    Args:
        state: Retry state to mutate
        override_delay_ms: Delay dictated by the server (milliseconds)

    Returns:
        Delay to wait before the next attempt (milliseconds)

    Raises:
        ValueError: If the retry budget is already exhausted
    """
    if state.retries_left <= 0:
        raise ValueError("retry budget exhausted")

    state.retries_left -= 1
    state.attempt += 1
    if override_delay_ms is not None:
        state.delay_ms = override_delay_ms
    else:
        state.delay_ms = calculate_backoff_delay(state.delay_ms)
    state.timeout_ms = grow_timeout(state.timeout_ms, state.base_timeout_ms)
    return state.delay_ms


async def async_sleep(seconds: float) -> None:
    """
    Sleep for a specified duration (async).

    Args:
        seconds: Duration in seconds
    """
    await asyncio.sleep(seconds)
