"""
Async HTTP request helper with option normalization and retries.
"""
from .types import (
    HttpMethod,
    METHODS,
    RequestDescriptor,
    RawResponse,
    ResponseResult,
    Transport,
)
from .errors import (
    PreqError,
    OptionsError,
    TransportError,
    ConnectTimeoutError,
    HTTPError,
    ResponseDecodeError,
)
from .config import (
    DEFAULT_TIMEOUT_MS,
    DEFAULT_CONNECT_TIMEOUT_MS,
    DEFAULT_MAX_SOCKETS_PER_HOST,
    TransportConfig,
    validate_config,
)
from .options import normalize_options
from .transport import HttpxTransport, HostLimitTransport
from .executor import RequestExecutor
from .client import Preq, create_preq


__all__ = [
    # Types
    "HttpMethod",
    "METHODS",
    "RequestDescriptor",
    "RawResponse",
    "ResponseResult",
    "Transport",
    # Errors
    "PreqError",
    "OptionsError",
    "TransportError",
    "ConnectTimeoutError",
    "HTTPError",
    "ResponseDecodeError",
    # Config
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_CONNECT_TIMEOUT_MS",
    "DEFAULT_MAX_SOCKETS_PER_HOST",
    "TransportConfig",
    "validate_config",
    # Core
    "normalize_options",
    "HttpxTransport",
    "HostLimitTransport",
    "RequestExecutor",
    "Preq",
    "create_preq",
]


__version__ = "1.0.0"
