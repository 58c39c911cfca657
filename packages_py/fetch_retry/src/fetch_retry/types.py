"""
Type definitions for fetch_retry
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Literal


@dataclass
class RetryState:
    """Mutable retry bookkeeping for a single in-flight request.

    Owned by exactly one executor and discarded once the request settles.
    """

    retries_left: int
    """Remaining retry budget. Decremented on every retry"""

    delay_ms: float
    """Current backoff delay (milliseconds). Grows on every retry"""

    timeout_ms: float
    """Current timeout budget (milliseconds). Grows on every retry"""

    base_timeout_ms: float
    """Timeout the request started with (milliseconds)"""

    attempt: int = 0
    """Current attempt number (0-indexed)"""


# Event types
EventType = Literal[
    "attempt:start",
    "attempt:success",
    "attempt:fail",
    "retry:wait",
    "retry:abort",
]


@dataclass
class RetryEvent:
    """Event emitted by a request executor"""

    type: EventType
    """Event type"""

    attempt: int
    """Current attempt number"""

    data: dict[str, Any] = field(default_factory=dict)
    """Event-specific data"""


# Event listener type
RetryEventListener = Callable[[RetryEvent], None]


# Idempotent methods get a retry by default
IDEMPOTENT_METHODS = ["GET", "PUT"]
