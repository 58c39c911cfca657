"""
Retry budget and randomized exponential backoff for fetch_preq requests.
"""
from .types import (
    RetryState,
    RetryEvent,
    RetryEventListener,
    EventType,
    IDEMPOTENT_METHODS,
)
from .config import (
    INITIAL_DELAY_MS,
    DEFAULT_IDEMPOTENT_RETRIES,
    default_retries,
    calculate_backoff_delay,
    grow_timeout,
    parse_retry_after,
    create_retry_state,
    advance_retry_state,
    async_sleep,
)


__all__ = [
    # Types
    "RetryState",
    "RetryEvent",
    "RetryEventListener",
    "EventType",
    "IDEMPOTENT_METHODS",
    # Config
    "INITIAL_DELAY_MS",
    "DEFAULT_IDEMPOTENT_RETRIES",
    "default_retries",
    "calculate_backoff_delay",
    "grow_timeout",
    "parse_retry_after",
    "create_retry_state",
    "advance_retry_state",
    "async_sleep",
]


__version__ = "1.0.0"
