"""
Error types for fetch_preq.
"""
from typing import Any, Dict, Optional


class PreqError(Exception):
    """Base class for every error raised by fetch_preq."""


class OptionsError(PreqError, ValueError):
    """Request options could not be turned into a RequestDescriptor."""


class TransportError(PreqError):
    """A transport failed to complete an exchange.

    ``code`` is a short machine-readable reason such as ``ECONNREFUSED``.
    """

    def __init__(self, message: str, code: str = "EHTTP", connect: bool = False):
        super().__init__(message)
        self.code = code
        self.connect = connect


class ConnectTimeoutError(TransportError):
    """Connection establishment exceeded the connect timeout."""

    def __init__(self, message: str = "ETIMEDOUT"):
        super().__init__(message, code="ETIMEDOUT", connect=True)


class HTTPError(PreqError):
    """Failure value carrying the same shape as a response.

    Transport-level failures use a sentinel status (502 or 504) and a
    body whose ``type`` says what went wrong.
    """

    def __init__(
        self,
        status: int,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ):
        self.status = status
        self.headers = headers if headers is not None else {}
        self.body = body
        message = str(status)
        if self.type:
            message += f": {self.type}"
        super().__init__(message)

    @property
    def type(self) -> Optional[str]:
        """Machine-readable failure type from the body, if any."""
        if isinstance(self.body, dict):
            return self.body.get("type")
        return None

    def __repr__(self) -> str:
        return f"HTTPError(status={self.status!r}, type={self.type!r})"


class ResponseDecodeError(HTTPError, ValueError):
    """A response declared JSON but its body did not parse."""
