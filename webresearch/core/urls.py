# urls.py: canonical URLs and same-origin checks
import re
from typing import Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from w3lib.url import safe_url_string

from .errors import InvalidUrl

DEFAULT_PORTS = {"http": 80, "https": 443}

_MULTI_SLASH_RE = re.compile(r"/{2,}")


def _split(url: str):
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrl(url)
    try:
        parts = urlsplit(safe_url_string(url.strip()))
        port = parts.port
    except ValueError as e:
        raise InvalidUrl(url, str(e)) from e
    if not parts.scheme or not parts.hostname:
        raise InvalidUrl(url)
    return parts, port


def _host(hostname: str) -> str:
    host = hostname.lower()
    # IPv6 literals lose their brackets in urlsplit
    return f"[{host}]" if ":" in host else host


def normalize(url: str, strip_trailing_slash: bool = True) -> str:
    """
    Canonical form used as the dedup / comparison key.

    lower-case scheme and host, no fragment, no default port, repeated
    slashes collapsed and (traversal variant) one trailing slash stripped
    except for the root path.
    """
    parts, port = _split(url)
    scheme = parts.scheme.lower()
    if port == DEFAULT_PORTS.get(scheme):
        port = None

    netloc = _host(parts.hostname)
    if port is not None:
        netloc = f"{netloc}:{port}"
    if parts.username:
        userinfo = parts.username + (f":{parts.password}" if parts.password else "")
        netloc = f"{userinfo}@{netloc}"

    path = _MULTI_SLASH_RE.sub("/", parts.path) or "/"
    if strip_trailing_slash and path != "/" and path.endswith("/"):
        path = path[:-1]

    return urlunsplit((scheme, netloc, path, parts.query, ""))


def origin_tuple(url: str) -> Tuple[str, str, Optional[int]]:
    parts, port = _split(url)
    scheme = parts.scheme.lower()
    return scheme, _host(parts.hostname), port if port is not None else DEFAULT_PORTS.get(scheme)


def origin(url: str) -> str:
    """scheme://host[:port], default ports omitted."""
    scheme, host, port = origin_tuple(url)
    if port is None or port == DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def same_origin(a: str, b: str) -> bool:
    try:
        return origin_tuple(a) == origin_tuple(b)
    except InvalidUrl:
        return False


def is_http_url(url: str) -> bool:
    try:
        parts, _ = _split(url)
    except InvalidUrl:
        return False
    return parts.scheme.lower() in DEFAULT_PORTS
