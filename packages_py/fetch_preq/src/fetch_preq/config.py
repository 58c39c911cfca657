"""
Configuration for fetch_preq.
"""
import os
from dataclasses import dataclass, field


# Request defaults, milliseconds
DEFAULT_TIMEOUT_MS = 2 * 60 * 1000
DEFAULT_CONNECT_TIMEOUT_MS = 5 * 1000

# Sockets allowed to one destination at once. Much higher values make the
# pool hold on to a lot of memory under sustained load.
DEFAULT_MAX_SOCKETS_PER_HOST = 250

DEFAULT_MAX_REDIRECTS = 10


def _is_ssl_verify_disabled_by_env() -> bool:
    """
    Check if SSL verification is disabled via environment variables.

    Returns True if any of these are set:
    - NODE_TLS_REJECT_UNAUTHORIZED=0
    - SSL_CERT_VERIFY=0
    """
    node_tls = os.environ.get("NODE_TLS_REJECT_UNAUTHORIZED", "")
    ssl_cert_verify = os.environ.get("SSL_CERT_VERIFY", "")
    return node_tls == "0" or ssl_cert_verify == "0"


@dataclass
class TransportConfig:
    """Settings for the default httpx-backed transport."""

    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    """Bound on connection establishment, separate from the request timeout"""

    max_sockets_per_host: int = DEFAULT_MAX_SOCKETS_PER_HOST
    """Concurrent exchanges allowed per scheme://host:port"""

    max_redirects: int = DEFAULT_MAX_REDIRECTS
    """Redirect hops followed before giving up"""

    follow_redirects: bool = True
    """Whether redirects are followed at all"""

    verify_ssl: bool = field(default_factory=lambda: not _is_ssl_verify_disabled_by_env())
    """TLS certificate verification"""


def validate_config(config: TransportConfig) -> list[str]:
    """Validate configuration values"""
    errors = []

    if config.connect_timeout_ms <= 0:
        errors.append("connect_timeout_ms must be positive")

    if config.max_sockets_per_host < 1:
        errors.append("max_sockets_per_host must be at least 1")

    if config.max_redirects < 0:
        errors.append("max_redirects must be non-negative")

    return errors
