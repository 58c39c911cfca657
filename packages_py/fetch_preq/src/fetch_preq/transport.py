"""
Transports for fetch_preq.

``HttpxTransport`` is the default collaborator: it performs one HTTP
exchange with httpx, follows redirects, decodes gzip, and reports failures
as TransportError with a stable ``code``. ``HostLimitTransport`` wraps an
httpx transport and caps simultaneous exchanges per destination.
"""
import asyncio
import logging
from typing import Dict, Optional

import httpx

from .config import TransportConfig, validate_config
from .errors import ConnectTimeoutError, TransportError
from .types import RawResponse, RequestDescriptor

logger = logging.getLogger("fetch_preq.transport")


class HostLimitTransport(httpx.AsyncBaseTransport):
    """
    Async HTTPX transport wrapper that bounds concurrent requests per host.

    Requests beyond the limit wait for a slot instead of opening another
    socket.

    Example:
        base = httpx.AsyncHTTPTransport()
        transport = HostLimitTransport(base, max_per_host=250)
        client = httpx.AsyncClient(transport=transport)
    """

    def __init__(self, inner: httpx.AsyncBaseTransport, *, max_per_host: int):
        if max_per_host < 1:
            raise ValueError("max_per_host must be at least 1")
        self._inner = inner
        self._max_per_host = max_per_host
        self._slots: Dict[str, asyncio.Semaphore] = {}
        # Requests holding or waiting for a host's slot; the host is forgotten at 0
        self._users: Dict[str, int] = {}
        self._active: Dict[str, int] = {}

    @staticmethod
    def host_key(url: httpx.URL) -> str:
        """Key requests by scheme://host:port."""
        port = url.port or (443 if url.scheme == "https" else 80)
        return f"{url.scheme}://{url.host}:{port}"

    def active(self, key: str) -> int:
        """Number of in-flight requests for a host key."""
        return self._active.get(key, 0)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Handle an async HTTP request once a host slot is free"""
        key = self.host_key(request.url)
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = asyncio.Semaphore(self._max_per_host)

        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with slot:
                self._active[key] = self._active.get(key, 0) + 1
                try:
                    response = await self._inner.handle_async_request(request)
                    # Hold the slot until the body is off the socket
                    await response.aread()
                    return response
                finally:
                    self._active[key] = self._active.get(key, 1) - 1
        finally:
            self._release_host(key)

    def _release_host(self, key: str) -> None:
        remaining = self._users.get(key, 1) - 1
        if remaining > 0:
            self._users[key] = remaining
            return
        self._users.pop(key, None)
        self._slots.pop(key, None)
        self._active.pop(key, None)

    @property
    def tracked_hosts(self) -> int:
        """Number of host keys currently holding state."""
        return len(self._slots)

    async def aclose(self) -> None:
        """Close the transport"""
        self._slots.clear()
        self._users.clear()
        self._active.clear()
        await self._inner.aclose()


def _transport_error(error: httpx.HTTPError) -> TransportError:
    """Map an httpx failure to a TransportError with a stable code."""
    message = str(error) or type(error).__name__
    if isinstance(error, httpx.ConnectTimeout):
        return ConnectTimeoutError(message)
    if isinstance(error, httpx.TimeoutException):
        return TransportError(message, code="ESOCKETTIMEDOUT")
    if isinstance(error, httpx.ConnectError):
        return TransportError(message, code="ECONNREFUSED", connect=True)
    if isinstance(error, (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)):
        return TransportError(message, code="ECONNRESET")
    if isinstance(error, httpx.TooManyRedirects):
        return TransportError(message, code="EMAXREDIRECTS")
    return TransportError(message)


class HttpxTransport:
    """
    Default transport backed by httpx.AsyncClient.

    The client is owned by the transport unless one is injected.

    Example:
        transport = HttpxTransport(TransportConfig(connect_timeout_ms=2000))
        raw = await transport.send(descriptor)
        await transport.aclose()
    """

    def __init__(
        self,
        config: Optional[TransportConfig] = None,
        httpx_client: Optional[httpx.AsyncClient] = None,
    ):
        self._config = config or TransportConfig()
        errors = validate_config(self._config)
        if errors:
            raise ValueError(f"Invalid transport config: {'; '.join(errors)}")

        if httpx_client is not None:
            self._client = httpx_client
            self._owns_client = False
        else:
            base = httpx.AsyncHTTPTransport(verify=self._config.verify_ssl)
            self._client = httpx.AsyncClient(
                transport=HostLimitTransport(
                    base, max_per_host=self._config.max_sockets_per_host
                ),
                max_redirects=self._config.max_redirects,
            )
            self._owns_client = True
        self._closed = False

    @property
    def config(self) -> TransportConfig:
        """Get the transport configuration."""
        return self._config

    def _timeout(self, descriptor: RequestDescriptor) -> httpx.Timeout:
        connect_ms = descriptor.connect_timeout_ms or self._config.connect_timeout_ms
        return httpx.Timeout(descriptor.timeout_ms / 1000, connect=connect_ms / 1000)

    def _headers(self, descriptor: RequestDescriptor) -> Dict[str, str]:
        headers = dict(descriptor.headers)
        if "accept-encoding" not in headers:
            # httpx decodes whatever it advertises, so only ask for gzip when negotiated
            headers["accept-encoding"] = "gzip" if descriptor.gzip else "identity"
        return headers

    async def send(self, descriptor: RequestDescriptor) -> Optional[RawResponse]:
        """
        Perform one exchange and read the full body.

        Raises:
            TransportError: On connect, timeout, socket or redirect failures
        """
        if self._closed:
            raise RuntimeError("Transport has been closed")

        logger.debug(
            f"HttpxTransport.send: {descriptor.method.upper()} {descriptor.uri} "
            f"timeout_ms={descriptor.timeout_ms}"
        )
        try:
            response = await self._client.request(
                descriptor.method.upper(),
                descriptor.uri,
                headers=self._headers(descriptor),
                content=descriptor.body,
                data=descriptor.form,
                params=descriptor.query,
                timeout=self._timeout(descriptor),
                follow_redirects=self._config.follow_redirects,
            )
        except httpx.HTTPError as e:
            raise _transport_error(e) from e

        body = response.content
        if descriptor.encoding:
            body = body.decode(descriptor.encoding, errors="replace")

        return RawResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=body,
            final_uri=str(response.url),
        )

    async def aclose(self) -> None:
        """Close the owned httpx client."""
        self._closed = True
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.aclose()
