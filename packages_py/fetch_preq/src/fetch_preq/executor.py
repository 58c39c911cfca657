"""
Request executor: runs one request through a transport, retrying with
randomized exponential backoff on transient failures.
"""
import json
import logging
import re
import time
import traceback
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl, unquote, urljoin, urlsplit

import httpx

from fetch_retry import (
    RetryEvent,
    RetryEventListener,
    advance_retry_state,
    async_sleep,
    create_retry_state,
    parse_retry_after,
)

from .errors import HTTPError, ResponseDecodeError
from .types import (
    BODYLESS_STATUSES,
    RETRYABLE_STATUSES,
    RawResponse,
    RequestDescriptor,
    ResponseResult,
    Transport,
)

logger = logging.getLogger("fetch_preq.executor")

_TEXT_CONTENT_TYPE = re.compile(r"^text/|^application/(?:[\w.-]+\+)?json\b", re.IGNORECASE)
_JSON_CONTENT_TYPE = re.compile(r"^application/(?:[\w.-]+\+)?json\b", re.IGNORECASE)
_CHARSET = re.compile(r";\s*charset=\"?([\w.:-]+)", re.IGNORECASE)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _charset(content_type: str) -> str:
    match = _CHARSET.search(content_type)
    return match.group(1) if match else "utf-8"


def _decode_text(body: bytes, content_type: str) -> str:
    try:
        return body.decode(_charset(content_type), errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def normalize_uri(uri: str) -> Tuple[Any, ...]:
    """
    Reduce a URI to a comparable form.

    Scheme and host are lowercased, default ports dropped, an empty path
    becomes ``/``, percent-escapes in the path are decoded and query
    parameters are compared as a sorted list. Fragments are ignored.
    """
    parts = urlsplit(uri)
    scheme = parts.scheme.lower()
    try:
        port = parts.port
    except ValueError:
        port = None
    if port == _DEFAULT_PORTS.get(scheme):
        port = None
    path = unquote(parts.path) or "/"
    query = sorted(parse_qsl(parts.query, keep_blank_values=True))
    return (scheme, (parts.hostname or "").lower(), port, path, query)


def request_uri(descriptor: RequestDescriptor) -> str:
    """The URI as sent, with the query mapping merged the way httpx encodes it."""
    if not descriptor.query:
        return descriptor.uri
    return str(httpx.URL(descriptor.uri).copy_merge_params(descriptor.query))


class RequestExecutor:
    """
    Request Executor

    Owns the lifecycle of a single request:
    - Issues attempts through the transport, strictly one after another
    - Converts transport failures and empty responses to sentinel HTTPErrors
    - Normalizes bodies and headers of real responses
    - Retries transport failures and upstream 504s with randomized
      exponential backoff, or the server's Retry-After on 503
    - Event emission for observability

    An executor runs once. Create one per request.
    """

    def __init__(
        self,
        descriptor: RequestDescriptor,
        transport: Transport,
        listeners: Optional[Iterable[RetryEventListener]] = None,
        executor_id: Optional[str] = None,
    ):
        """
        Create a new RequestExecutor.

        Args:
            descriptor: Normalized request
            transport: Transport performing each attempt
            listeners: Event listeners
            executor_id: Optional unique identifier
        """
        self._descriptor = descriptor
        self._transport = transport
        self._listeners: List[RetryEventListener] = list(listeners or [])
        self._id = executor_id or f"preq-{int(time.time() * 1000)}"
        self._state = create_retry_state(descriptor.retries, descriptor.timeout_ms)

    @property
    def id(self) -> str:
        """Get the executor ID."""
        return self._id

    @property
    def descriptor(self) -> RequestDescriptor:
        """Get the request descriptor."""
        return self._descriptor

    def _emit(self, event: RetryEvent) -> None:
        """Emit an event to all listeners."""
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"{self._id}: listener failed on {event.type}")

    async def run(self) -> ResponseResult:
        """
        Run the request to completion.

        Returns:
            The normalized response for a status below 400

        Raises:
            HTTPError: Terminal HTTP error, or the last transient failure once
                the retry budget is spent
            ResponseDecodeError: A JSON response body did not parse
        """
        start_time = time.monotonic()

        while True:
            attempt = self._state.attempt
            descriptor = replace(self._descriptor, timeout_ms=self._state.timeout_ms)
            self._emit(RetryEvent(
                type="attempt:start",
                attempt=attempt,
                data={"uri": descriptor.uri, "method": descriptor.method},
            ))
            logger.debug(
                f"{self._id}: attempt {attempt + 1}/{descriptor.max_attempts} "
                f"{descriptor.method.upper()} {descriptor.uri}"
            )

            retry_delay_ms: Optional[float] = None
            cause: Optional[BaseException] = None
            try:
                raw = await self._transport.send(descriptor)
            except Exception as e:
                cause = e
                error = self._internal_error(e)
            else:
                if raw is None or raw.status is None:
                    error = HTTPError(502, body={"type": "empty_response"})
                else:
                    result = self._to_result(raw)
                    if result.status < 400:
                        self._emit(RetryEvent(
                            type="attempt:success",
                            attempt=attempt,
                            data={
                                "status": result.status,
                                "duration_seconds": time.monotonic() - start_time,
                            },
                        ))
                        return result

                    error = HTTPError(result.status, result.headers, result.body)
                    retry_delay_ms = self._retry_after_ms(result)
                    if retry_delay_ms is None and result.status not in RETRYABLE_STATUSES:
                        self._emit(RetryEvent(
                            type="attempt:fail",
                            attempt=attempt,
                            data={"status": error.status, "will_retry": False},
                        ))
                        raise error

            will_retry = self._state.retries_left > 0
            self._emit(RetryEvent(
                type="attempt:fail",
                attempt=attempt,
                data={
                    "status": error.status,
                    "error": str(error),
                    "will_retry": will_retry,
                },
            ))

            if not will_retry:
                self._emit(RetryEvent(
                    type="retry:abort",
                    attempt=attempt,
                    data={"status": error.status},
                ))
                logger.debug(f"{self._id}: giving up after {attempt + 1} attempt(s): {error}")
                if cause is not None:
                    raise error from cause
                raise error

            delay_ms = advance_retry_state(self._state, retry_delay_ms)
            self._emit(RetryEvent(
                type="retry:wait",
                attempt=attempt,
                data={
                    "delay_seconds": delay_ms / 1000,
                    "timeout_ms": self._state.timeout_ms,
                    "server_directed": retry_delay_ms is not None,
                },
            ))
            logger.warning(
                f"{self._id}: {descriptor.method.upper()} {descriptor.uri} failed "
                f"({error}), retrying in {delay_ms:.0f}ms, "
                f"{self._state.retries_left} retries left"
            )
            await async_sleep(delay_ms / 1000)

    def _internal_error(self, error: Exception) -> HTTPError:
        """Wrap a transport failure in a 504 sentinel HTTPError."""
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return HTTPError(504, body={
            "type": "internal_http_error",
            "description": str(error) or type(error).__name__,
            "error": error,
            "code": getattr(error, "code", None),
            "stack": stack,
            "uri": self._descriptor.uri,
            "method": self._descriptor.method,
        })

    def _retry_after_ms(self, result: ResponseResult) -> Optional[float]:
        """Server-directed delay for a 503, if it fits inside the request timeout."""
        if result.status != 503:
            return None
        seconds = parse_retry_after(result.headers.get("retry-after"))
        if seconds is None:
            return None
        delay_ms = seconds * 1000
        if delay_ms >= self._descriptor.timeout_ms:
            return None
        return delay_ms

    def _to_result(self, raw: RawResponse) -> ResponseResult:
        """Normalize a raw transport response."""
        descriptor = self._descriptor
        headers: Dict[str, str] = {k.lower(): v for k, v in (raw.headers or {}).items()}
        body: Any = raw.body

        if descriptor.gzip:
            # Already decoded by the transport
            headers.pop("content-encoding", None)
            headers.pop("content-length", None)

        if body and not descriptor.encoding_provided:
            content_type = headers.get("content-type", "")
            if _TEXT_CONTENT_TYPE.search(content_type):
                if isinstance(body, bytes):
                    body = _decode_text(body, content_type)
                headers.pop("content-length", None)
            if _JSON_CONTENT_TYPE.search(content_type):
                try:
                    body = json.loads(body)
                except ValueError as e:
                    raise ResponseDecodeError(raw.status, headers, {
                        "type": "invalid_json",
                        "description": str(e),
                        "uri": descriptor.uri,
                        "method": descriptor.method,
                        "body": body,
                    }) from e

        if raw.status in BODYLESS_STATUSES:
            body = None

        sent_uri = request_uri(descriptor)
        if raw.final_uri and normalize_uri(sent_uri) != normalize_uri(raw.final_uri):
            if not headers.get("content-location"):
                headers["content-location"] = raw.final_uri
            else:
                headers["content-location"] = urljoin(raw.final_uri, headers["content-location"])

        return ResponseResult(status=raw.status, headers=headers, body=body)
