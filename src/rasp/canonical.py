"""
Argument canonicalization for intercepted calls.

Every positional argument of an intercepted call is turned into one
stable string. The same strings are used to match rules and to fill
the trace message, so a decision can always be audited against exactly
what it saw.

Priority order:
    1. A processor registered for the argument position, if it returns
       a non-empty string
    2. None -> "null"
    3. Functions and methods -> "function <name>"
    4. Any other composite object -> "object <type name>"
    5. Scalars -> their natural string form

The projection is lossy. Object internals never reach rules or
traces; only the processors below know how to turn a structured
argument (a URL object, a socket address, an argv list) into an address
or command a policy author can write a pattern for.
"""

import functools
import inspect
import ipaddress
import os
import shlex
import urllib.parse
import urllib.request
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import httpx

ArgProcessor = Callable[[Any], str | None]

# Values rendered with str() when no processor claims them
_SCALAR_TYPES = (str, int, float, complex, bool)


def canonicalize(
    value: Any,
    position: int,
    processors: Mapping[int, ArgProcessor] | None = None,
) -> str:
    """
    Convert one call argument into its canonical string.

    Args:
        value: The raw argument
        position: Its positional index in the call
        processors: Position-specific overrides for this call signature

    Returns:
        The canonical string form
    """
    if processors and position in processors:
        result = processors[position](value)
        if result:
            return result

    if value is None:
        return "null"
    if inspect.isroutine(value) or isinstance(value, functools.partial):
        return f"function {getattr(value, '__name__', '')}"
    if isinstance(value, bytes):
        return os.fsdecode(value)
    if isinstance(value, _SCALAR_TYPES):
        return str(value)
    return f"object {type(value).__name__}"


def canonicalize_args(
    args: Sequence[Any],
    processors: Mapping[int, ArgProcessor] | None = None,
) -> tuple[str, ...]:
    """Canonicalize every positional argument of a call, in order."""
    return tuple(canonicalize(value, index, processors) for index, value in enumerate(args))


# =============================================================================
# Processors
# =============================================================================


def path_processor(obj: Any) -> str | None:
    """
    Render path-like arguments (str, bytes, os.PathLike) as an absolute path.

    Relative paths are resolved against the current directory and '..'
    components are collapsed lexically, so a path cannot step out of an
    allowed tree. Symlinks are not resolved.

    Examples:
        "/tmp/../etc"    -> "/etc"
        "notes.txt"      -> "<cwd>/notes.txt"
    """
    raw = _fspath(obj)
    if not raw:
        return raw
    return os.path.normpath(os.path.abspath(raw))


def command_processor(obj: Any) -> str | None:
    """
    Render a command as a single shell-quoted string.

    Examples:
        "ls -l"              -> "ls -l"
        ["git", "status"]    -> "git status"
        ["echo", "a b"]      -> "echo 'a b'"
    """
    if isinstance(obj, (str, bytes, os.PathLike)):
        return _fspath(obj)
    if isinstance(obj, Sequence) and obj:
        parts = []
        for part in obj:
            rendered = _fspath(part)
            parts.append(rendered if rendered is not None else str(part))
        return shlex.join(parts)
    return None


def address_processor(obj: Any) -> str | None:
    """
    Render a socket address as "host:port".

    Accepts (host, port[, flowinfo, scope_id]) tuples and mappings with
    host/port keys. A missing host means localhost. IPv6 literals are
    bracketed. Mappings with only a path (unix sockets) render as the
    path. Plain strings and ints fall through to the default rules.

    Examples:
        ("example.com", 443)      -> "example.com:443"
        {"port": 8080}            -> "localhost:8080"
        ("::1", 22, 0, 0)         -> "[::1]:22"
    """
    if isinstance(obj, (str, bytes, int)):
        return None

    if isinstance(obj, tuple) and len(obj) >= 2:
        return _host_port(obj[0], obj[1])

    if isinstance(obj, Mapping):
        if "host" in obj or "port" in obj:
            return _host_port(obj.get("host"), obj.get("port"))
        if obj.get("path"):
            return _fspath(obj["path"])

    return None


def request_target_processor(obj: Any) -> str | None:
    """
    Render an HTTP request target as "scheme://host[:port]path".

    Accepts URL strings, urllib/httpx URL and request objects, and
    mappings with scheme (or protocol), hostname (or host), port and
    path keys. Returns None when no scheme or host can be determined so
    the argument falls back to its opaque "object ..." form.

    Examples:
        httpx.URL("https://api.github.com/users")
            -> "https://api.github.com/users"
        {"protocol": "http:", "hostname": "localhost", "port": 8080, "path": "/"}
            -> "http://localhost:8080/"
    """
    if isinstance(obj, str):
        return obj
    if isinstance(obj, httpx.Request):
        return str(obj.url)
    if isinstance(obj, httpx.URL):
        return str(obj)
    if isinstance(obj, urllib.request.Request):
        return obj.full_url
    if isinstance(obj, (urllib.parse.SplitResult, urllib.parse.ParseResult)):
        return obj.geturl()

    if isinstance(obj, Mapping):
        scheme = obj.get("scheme") or obj.get("protocol")
        host = obj.get("hostname") or obj.get("host")
        if not scheme or not host:
            return None
        scheme = str(scheme).rstrip(":/")
        port = obj.get("port")
        port_part = f":{port}" if port else ""
        path = obj.get("path") or ""
        return f"{scheme}://{_format_host(str(host))}{port_part}{path}"

    return None


def _host_port(host: Any, port: Any) -> str:
    if isinstance(host, bytes):
        host = os.fsdecode(host)
    host = str(host) if host else "localhost"
    return f"{_format_host(host)}:{port}"


def _format_host(host: str) -> str:
    """Bracket IPv6 literals so the port separator stays unambiguous."""
    if host.startswith("["):
        return host
    try:
        if ipaddress.ip_address(host).version == 6:
            return f"[{host}]"
    except ValueError:
        pass
    return host


def _fspath(obj: Any) -> str | None:
    if isinstance(obj, str):
        return obj
    if isinstance(obj, (bytes, os.PathLike)):
        return os.fsdecode(obj)
    return None
