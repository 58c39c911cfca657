"""
Option normalization for fetch_preq.

Turns the loosely-typed ``(target, options, method)`` call shape into a
fully-specified RequestDescriptor.
"""
import codecs
import json
import logging
import re
from typing import Any, Dict, Mapping, Optional

from fetch_retry import default_retries

from .config import DEFAULT_TIMEOUT_MS
from .errors import OptionsError
from .types import METHODS, RequestDescriptor

logger = logging.getLogger("fetch_preq.options")

_JSON_CONTENT_TYPE = re.compile(r"^application/json")
_GZIP = re.compile(r"\bgzip\b")


def _lowercase_headers(headers: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Lowercase header names. Later duplicates win."""
    result: Dict[str, str] = {}
    if not headers:
        return result
    for key, value in headers.items():
        result[str(key).lower()] = str(value)
    return result


def _resolve_uri(options: Mapping[str, Any]) -> str:
    """Pick the request URI from ``uri`` or ``url``."""
    for key in ("uri", "url"):
        value = options.get(key)
        if value is None:
            continue
        uri = value if isinstance(value, str) else str(value)
        if uri:
            return uri
    raise OptionsError("preq: uri missing from request options")


def _resolve_retries(options: Mapping[str, Any], method: str) -> int:
    retries = options.get("retries")
    if retries is None:
        return default_retries(method)
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
        raise OptionsError(f"preq: retries must be a non-negative integer, got {retries!r}")
    return retries


def _resolve_timeout(options: Mapping[str, Any]) -> int:
    timeout = options.get("timeout")
    if timeout is None:
        return DEFAULT_TIMEOUT_MS
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise OptionsError(f"preq: timeout must be a positive number of milliseconds, got {timeout!r}")
    return timeout


def _resolve_connect_timeout(options: Mapping[str, Any]) -> Optional[int]:
    value = options.get("connectTimeout", options.get("connect_timeout"))
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise OptionsError(f"preq: connectTimeout must be a positive number of milliseconds, got {value!r}")
    return value


def _resolve_encoding(options: Mapping[str, Any]) -> Optional[str]:
    encoding = options.get("encoding")
    if encoding is None:
        return None
    try:
        codecs.lookup(encoding)
    except (LookupError, TypeError) as e:
        raise OptionsError(f"preq: unknown encoding {encoding!r}") from e
    return encoding


def normalize_options(
    target: Any = None,
    options: Optional[Mapping[str, Any]] = None,
    method: str = "get",
) -> RequestDescriptor:
    """
    Build a RequestDescriptor from a call.

    Args:
        target: URI string, URI-like object, or a descriptor-like mapping
        options: Options mapping; when given, its ``uri`` is taken from target
        method: HTTP method token, any case

    Returns:
        The normalized descriptor

    Raises:
        OptionsError: If no URI can be determined or an option is invalid,
            including an encoding Python has no codec for

    Example:
        descriptor = normalize_options(
            "https://en.wikipedia.org/wiki/Main_Page",
            {"headers": {"Cache-Control": "no-cache"}},
            "get",
        )
    """
    if not isinstance(options, Mapping):
        if target is None or target == "":
            raise OptionsError("preq: options missing")
        if isinstance(target, Mapping):
            opts = dict(target)
        else:
            opts = {"uri": target}
    else:
        opts = dict(options)
        opts["uri"] = target

    uri = _resolve_uri(opts)

    method = str(method or "get").lower()
    if method not in METHODS:
        raise OptionsError(f"preq: unsupported method {method!r}")

    headers = _lowercase_headers(opts.get("headers"))

    body = opts.get("body")
    form = None
    if isinstance(body, (Mapping, list)):
        if _JSON_CONTENT_TYPE.match(headers.get("content-type", "")):
            body = json.dumps(body)
        elif method == "post" and isinstance(body, Mapping):
            form = dict(body)
            body = None
        else:
            body = json.dumps(body)

    retries = _resolve_retries(opts, method)
    query = opts.get("query")
    timeout_ms = _resolve_timeout(opts)

    if _GZIP.search(headers.get("accept-encoding", "")) or (
        opts.get("gzip") is None and method == "get"
    ):
        gzip = True
    else:
        gzip = bool(opts.get("gzip"))

    encoding_provided = "encoding" in opts
    encoding = _resolve_encoding(opts)

    descriptor = RequestDescriptor(
        uri=uri,
        method=method,
        headers=headers,
        body=body,
        form=form,
        query=dict(query) if query else None,
        timeout_ms=timeout_ms,
        retries=retries,
        encoding=encoding,
        encoding_provided=encoding_provided,
        gzip=gzip,
        connect_timeout_ms=_resolve_connect_timeout(opts),
    )
    logger.debug(
        f"normalize_options: {method.upper()} {uri} retries={retries} "
        f"timeout_ms={timeout_ms} gzip={gzip}"
    )
    return descriptor
