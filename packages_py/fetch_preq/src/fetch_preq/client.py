"""
Public entry point for fetch_preq.
"""
import logging
from typing import Any, Callable, List, Mapping, Optional

import httpx

from fetch_retry import RetryEventListener

from .config import TransportConfig
from .executor import RequestExecutor
from .options import normalize_options
from .transport import HttpxTransport
from .types import ResponseResult, Transport

logger = logging.getLogger("fetch_preq.client")


def _call_method(target: Any, options: Optional[Mapping[str, Any]]) -> str:
    """Method for the bare call form.

    Given options are the only source, even without a ``method`` key; a
    mapping target is consulted only when options are absent.
    """
    source = options if isinstance(options, Mapping) else target
    if isinstance(source, Mapping) and source.get("method"):
        return str(source["method"])
    return "get"


class Preq:
    """
    Callable HTTP request helper with retries.

    Calling the instance takes the method from the options (default GET);
    the method-named coroutines fix it. Each call runs its own
    RequestExecutor, so concurrent calls share nothing but the transport.

    Example:
        async with Preq() as preq:
            res = await preq.get("https://en.wikipedia.org/wiki/Main_Page")
            res = await preq({"uri": "https://example.org", "method": "post", "body": {"a": 1}})
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        config: Optional[TransportConfig] = None,
        httpx_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Create a new Preq.

        Args:
            transport: Transport to use. When omitted an HttpxTransport is
                created on first use and owned by this instance
            config: Settings for the owned HttpxTransport
            httpx_client: httpx client for the owned HttpxTransport
        """
        self._transport = transport
        self._owns_transport = transport is None
        self._config = config
        self._httpx_client = httpx_client
        self._listeners: List[RetryEventListener] = []

    @property
    def transport(self) -> Transport:
        """Get the transport, creating the default one if needed."""
        if self._transport is None:
            self._transport = HttpxTransport(self._config, httpx_client=self._httpx_client)
        return self._transport

    async def request(
        self,
        method: str,
        target: Any = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> ResponseResult:
        """
        Run one request.

        Raises:
            OptionsError: Before any I/O, if the options are unusable
            HTTPError: If the request fails
        """
        descriptor = normalize_options(target, options, method)
        executor = RequestExecutor(descriptor, self.transport, self._listeners)
        return await executor.run()

    async def __call__(
        self,
        target: Any = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> ResponseResult:
        return await self.request(_call_method(target, options), target, options)

    async def get(self, target: Any = None, options: Optional[Mapping[str, Any]] = None) -> ResponseResult:
        """GET request."""
        return await self.request("get", target, options)

    async def head(self, target: Any = None, options: Optional[Mapping[str, Any]] = None) -> ResponseResult:
        """HEAD request."""
        return await self.request("head", target, options)

    async def put(self, target: Any = None, options: Optional[Mapping[str, Any]] = None) -> ResponseResult:
        """PUT request."""
        return await self.request("put", target, options)

    async def post(self, target: Any = None, options: Optional[Mapping[str, Any]] = None) -> ResponseResult:
        """POST request."""
        return await self.request("post", target, options)

    async def delete(self, target: Any = None, options: Optional[Mapping[str, Any]] = None) -> ResponseResult:
        """DELETE request."""
        return await self.request("delete", target, options)

    async def trace(self, target: Any = None, options: Optional[Mapping[str, Any]] = None) -> ResponseResult:
        """TRACE request."""
        return await self.request("trace", target, options)

    async def options(self, target: Any = None, options: Optional[Mapping[str, Any]] = None) -> ResponseResult:
        """OPTIONS request."""
        return await self.request("options", target, options)

    async def mkcol(self, target: Any = None, options: Optional[Mapping[str, Any]] = None) -> ResponseResult:
        """MKCOL request."""
        return await self.request("mkcol", target, options)

    async def patch(self, target: Any = None, options: Optional[Mapping[str, Any]] = None) -> ResponseResult:
        """PATCH request."""
        return await self.request("patch", target, options)

    def on(self, listener: RetryEventListener) -> Callable[[], None]:
        """
        Add an event listener for every request made through this instance.

        Args:
            listener: Event listener function

        Returns:
            Function to remove the listener
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def off(self, listener: RetryEventListener) -> None:
        """Remove an event listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def close(self) -> None:
        """Close the transport if this instance created it."""
        if self._owns_transport and self._transport is not None:
            await self._transport.aclose()
            self._transport = None

    async def __aenter__(self) -> "Preq":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()


def create_preq(
    *,
    transport: Optional[Transport] = None,
    connect_timeout_ms: Optional[int] = None,
    max_sockets_per_host: Optional[int] = None,
    verify_ssl: Optional[bool] = None,
    httpx_client: Optional[httpx.AsyncClient] = None,
) -> Preq:
    """
    Create a Preq with an explicit transport configuration.

    Args:
        transport: Custom transport; the remaining settings are ignored if given
        connect_timeout_ms: Connect-phase bound (milliseconds)
        max_sockets_per_host: Concurrent exchanges per host
        verify_ssl: TLS verification, overriding the environment
        httpx_client: Preconfigured httpx client

    Returns:
        A Preq instance

    Example:
        preq = create_preq(connect_timeout_ms=1000, max_sockets_per_host=50)
        res = await preq.get("https://example.org/")
    """
    if transport is not None:
        return Preq(transport=transport)

    config = TransportConfig()
    if connect_timeout_ms is not None:
        config.connect_timeout_ms = connect_timeout_ms
    if max_sockets_per_host is not None:
        config.max_sockets_per_host = max_sockets_per_host
    if verify_ssl is not None:
        config.verify_ssl = verify_ssl
    logger.debug(f"create_preq: {config}")
    return Preq(config=config, httpx_client=httpx_client)
