"""URL canonicalization and host matching used for frontier dedup and link policy."""

from __future__ import annotations

import posixpath
import re
from typing import Iterable
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit


HTTP_SCHEMES = frozenset({"http", "https"})
DEFAULT_PORTS = {"http": 80, "https": 443}
UNFOLLOWABLE_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:", "data:")

# Campaign and click-id parameters that never change page content.
TRACKING_PARAMS = frozenset(
    {"fbclid", "gclid", "ref", "source", "mc_cid", "mc_eid", "mkt_tok", "igshid", "ref_src"}
)
TRACKING_PARAM_PREFIX = "utm_"

DEFAULT_EXCLUDE_PATTERNS = (
    re.compile(r"\.(pdf|doc|docx|xls|xlsx|zip|exe|dmg)$", re.IGNORECASE),
    re.compile(r"/(login|register|admin|wp-admin)/?$", re.IGNORECASE),
    re.compile(r"/api/", re.IGNORECASE),
)

REPEATED_SLASH_RE = re.compile(r"/{2,}")


def _split(url: str | None):
    if not url or not url.strip():
        return None
    try:
        parts = urlsplit(url.strip())
        parts.port
    except ValueError:
        return None
    return parts


def is_http_url(url: str | None) -> bool:
    """True for absolute http(s) URLs with a host."""

    parts = _split(url)
    return bool(parts and parts.scheme.lower() in HTTP_SCHEMES and parts.hostname)


def hostname(url: str) -> str:
    """Lower-cased hostname of `url` exactly as written, or ""."""

    parts = _split(url)
    return (parts.hostname or "") if parts else ""


def _strip_www(host: str) -> str:
    host = host.strip(".")
    return host[4:] if host.startswith("www.") else host


def host_from_url(url: str) -> str:
    """Hostname of `url` without a leading `www.`; used as the politeness key."""

    return _strip_www(hostname(url))


def normalize_domain(domain_or_url: str) -> str:
    """Reduce `example.com`, `WWW.Example.com` or a full URL to `example.com`."""

    raw = (domain_or_url or "").strip()
    if not raw:
        return ""
    return host_from_url(raw if "://" in raw else f"//{raw}")


def is_internal(url: str, base_url: str) -> bool:
    host = hostname(url)
    return bool(host) and host == hostname(base_url)


def _canonical_path(path: str) -> str:
    if not path:
        return "/"
    # normpath resolves dot segments and drops the trailing slash.
    return posixpath.normpath(REPEATED_SLASH_RE.sub("/", path))


def _canonical_query(query: str) -> str:
    kept = [
        (key, value)
        for key, value in parse_qsl(query, keep_blank_values=True)
        if key.lower() not in TRACKING_PARAMS and not key.lower().startswith(TRACKING_PARAM_PREFIX)
    ]
    return urlencode(sorted(kept), doseq=True)


def normalize_url(url: str | None) -> str | None:
    """Canonical form of an absolute http(s) URL, or None when it is not one.

    The canonical form has a lower-cased scheme and host, no default port,
    no fragment, no tracking parameters, a sorted query, and a path with
    duplicate slashes, dot segments and any trailing slash removed (the
    root stays `/`). The function is idempotent.
    """

    parts = _split(url)
    if parts is None or not is_http_url(url):
        return None

    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if parts.port is not None and parts.port != DEFAULT_PORTS[scheme]:
        host = f"{host}:{parts.port}"

    return urlunsplit((scheme, host, _canonical_path(parts.path), _canonical_query(parts.query), ""))


def resolve_url(base_url: str, href: str | None, *, normalize: bool = True) -> str | None:
    """Absolute URL for `href` found on `base_url`, or None if it cannot be followed."""

    candidate = (href or "").strip()
    if not candidate or candidate.lower().startswith(UNFOLLOWABLE_HREF_PREFIXES):
        return None

    try:
        absolute = urljoin(base_url, candidate)
    except ValueError:
        return None

    if normalize:
        return normalize_url(absolute)
    return absolute if is_http_url(absolute) else None


def should_exclude(url: str, extra_patterns: Iterable[str | re.Pattern[str]] = ()) -> bool:
    """True when `url` is a download, auth/admin page, API path, or matches an extra pattern.

    String patterns are substring tests; compiled patterns use `search`.
    """

    for pattern in (*DEFAULT_EXCLUDE_PATTERNS, *extra_patterns):
        if isinstance(pattern, re.Pattern):
            if pattern.search(url):
                return True
        elif pattern and pattern in url:
            return True
    return False


def is_allowed_domain(url_or_host: str, domains: Iterable[str]) -> bool:
    """True when the host equals one of `domains` or is a subdomain of one."""

    host = normalize_domain(url_or_host)
    if not host:
        return False
    for domain in domains:
        domain = normalize_domain(domain)
        if domain and (host == domain or host.endswith("." + domain)):
            return True
    return False


__all__ = [
    "DEFAULT_EXCLUDE_PATTERNS",
    "HTTP_SCHEMES",
    "TRACKING_PARAMS",
    "host_from_url",
    "hostname",
    "is_allowed_domain",
    "is_http_url",
    "is_internal",
    "normalize_domain",
    "normalize_url",
    "resolve_url",
    "should_exclude",
]
