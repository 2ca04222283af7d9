"""URL canonicalization and resolution helpers used for dedup and scope checks."""

from __future__ import annotations

import posixpath
import re
from typing import Sequence
from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit


DEFAULT_ALLOWED_SCHEMES = ("http", "https")
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")
TRACKING_QUERY_PARAM_PREFIXES = ("utm_",)
TRACKING_QUERY_PARAMS = frozenset({"fbclid", "gclid", "mc_cid", "mc_eid", "igshid"})


def host_from_url(url: str) -> str:
    """Extract normalized host (lowercase, no `www.`) from URL."""

    host = (urlsplit(url).hostname or "").strip().lower()
    if host.startswith("www."):
        host = host[4:]
    return host.strip(".")


def is_http_url(url: str, allowed_schemes: Sequence[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """Return True if URL is absolute and uses an allowed HTTP-like scheme."""

    parsed = urlsplit(url)
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.scheme.lower() in allowed_schemes


def is_same_host(url: str, other: str) -> bool:
    """Return True when both URLs share a host (ignoring `www.`)."""

    host = host_from_url(url)
    return bool(host) and host == host_from_url(other)


def _normalize_netloc(parsed) -> str:
    host = (parsed.hostname or "").lower()
    if not host:
        return parsed.netloc.lower()

    try:
        port = parsed.port
    except ValueError:
        port = None

    scheme = parsed.scheme.lower()
    if port is None or (scheme == "http" and port == 80) or (scheme == "https" and port == 443):
        return host
    return f"{host}:{port}"


def _normalize_path(path: str) -> str:
    if not path:
        return "/"

    collapsed = re.sub(r"/{2,}", "/", path)
    normalized = posixpath.normpath(collapsed)
    if not normalized.startswith("/"):
        normalized = "/" + normalized.lstrip(".")
    if normalized != "/":
        normalized = normalized.rstrip("/")
    return quote(normalized, safe="/%:@!$&'()*+,;=-._~") or "/"


def _normalize_query(query: str) -> str:
    if not query:
        return ""

    pairs = [
        (key, value)
        for key, value in parse_qsl(query, keep_blank_values=True)
        if key.lower() not in TRACKING_QUERY_PARAMS
        and not key.lower().startswith(TRACKING_QUERY_PARAM_PREFIXES)
    ]
    return urlencode(sorted(pairs), doseq=True)


def normalize_url(url: str | None) -> str | None:
    """Canonicalize an absolute URL for the visited set.

    Lowercases scheme and host, drops default ports, fragments, trailing
    slashes and tracking parameters, and sorts the query string. Returns
    `None` for URLs that are not absolute http(s).
    """

    if not url:
        return None

    raw = url.strip()
    if not raw or not is_http_url(raw):
        return None

    parsed = urlsplit(raw)
    netloc = _normalize_netloc(parsed)
    if not netloc:
        return None

    return urlunsplit(
        (
            parsed.scheme.lower(),
            netloc,
            _normalize_path(parsed.path),
            _normalize_query(parsed.query),
            "",
        )
    )


def resolve_url(base_url: str, href: str | None) -> str | None:
    """Resolve a possibly relative href against `base_url`.

    Returns the absolute URL (not normalized) or `None` for fragments,
    non-navigational schemes, and non-HTTP targets.
    """

    if href is None:
        return None

    candidate = href.strip()
    if not candidate or candidate.startswith("#"):
        return None
    if candidate.lower().startswith(SKIP_HREF_PREFIXES):
        return None

    absolute = urljoin(base_url, candidate)
    absolute, _, _ = absolute.partition("#")
    if not is_http_url(absolute):
        return None
    return absolute


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "SKIP_HREF_PREFIXES",
    "host_from_url",
    "is_http_url",
    "is_same_host",
    "normalize_url",
    "resolve_url",
]
