"""
Type definitions for fetch_preq.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, Protocol, Union


# HTTP methods, lowercase as carried by RequestDescriptor
HttpMethod = Literal[
    "get", "head", "put", "post", "delete", "trace", "options", "mkcol", "patch"
]

METHODS = ("get", "head", "put", "post", "delete", "trace", "options", "mkcol", "patch")

# Statuses that never carry a body
BODYLESS_STATUSES = (204, 205, 304)

# Gateway timeouts from upstream are retried like transport timeouts
RETRYABLE_STATUSES = (504,)

Body = Union[bytes, str, None]


@dataclass(frozen=True)
class RequestDescriptor:
    """Normalized description of one HTTP call.

    Built by ``normalize_options``. Per-attempt changes (the growing timeout)
    are made with ``dataclasses.replace``.
    """

    uri: str
    method: HttpMethod
    headers: Dict[str, str] = field(default_factory=dict)
    body: Body = None
    form: Optional[Mapping[str, Any]] = None
    query: Optional[Mapping[str, Any]] = None
    timeout_ms: int = 120_000
    retries: int = 0
    encoding: Optional[str] = None
    encoding_provided: bool = False
    gzip: bool = False
    connect_timeout_ms: Optional[int] = None

    @property
    def max_attempts(self) -> int:
        """Total attempts including the first one."""
        return self.retries + 1


@dataclass
class RawResponse:
    """What a transport hands back for one attempt."""

    status: Optional[int]
    headers: Dict[str, str]
    body: Body
    final_uri: str


@dataclass
class ResponseResult:
    """Normalized outcome of a call with status < 400."""

    status: int
    headers: Dict[str, str]
    body: Any = None


class Transport(Protocol):
    """Transport collaborator performing the socket I/O for one attempt."""

    async def send(self, descriptor: RequestDescriptor) -> Optional[RawResponse]:
        """Issue the request and return the fully read response."""
        ...

    async def aclose(self) -> None:
        """Release pooled connections."""
        ...
