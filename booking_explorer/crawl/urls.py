"""
URL normalization, same-site checks, skip rules, and booking-path matching.

All functions are pure; the crawler and the flow explorer share them so a URL
is judged the same way at enqueue time and at trigger filtering time.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse

from booking_explorer.crawl.constants import (
    BOOKING_LINK_TEXT,
    BOOKING_PATH_PATTERNS,
    URL_SKIP_RULES,
)

PSEUDO_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")


def get_site_host(url: str) -> str:
    """
    Lowercased host with a leading "www." stripped.

    "https://WWW.Example.com/x" -> "example.com"; "https://booking.vendor.com" keeps
    its subdomain so third-party booking hosts stay distinct.
    """
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def normalize_url(url: str, base_url: str) -> str:
    """
    Resolve url against base_url, drop the fragment, strip a trailing slash.

    The query string is kept (tracking variants are rejected by skip rules, not
    silently merged). Pseudo-scheme links are returned unchanged.
    """
    raw = (url or "").strip()
    if raw.lower().startswith(PSEUDO_SCHEMES):
        return raw
    try:
        parsed = urlparse(urljoin(base_url, raw))
    except ValueError:
        return raw
    path = parsed.path or "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return urlunparse((parsed.scheme, parsed.netloc.lower(), path, parsed.params, parsed.query, ""))


def is_internal_url(url: str, base_url: str) -> bool:
    """True when url is http(s) and on the same site as base_url."""
    try:
        parsed = urlparse(urljoin(base_url, url))
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    return get_site_host(parsed.geturl()) == get_site_host(base_url)


def skip_reason(url: str) -> Optional[str]:
    """Name of the first skip rule url matches, or None when it may be crawled."""
    for name, pattern in URL_SKIP_RULES:
        if pattern.search(url):
            return name
    return None


def should_skip_url(url: str) -> bool:
    return skip_reason(url) is not None


def is_booking_related_url(url: str, link_text: str = "") -> bool:
    """True when the path (or the link's visible text) suggests booking content."""
    path = urlparse(url).path or ""
    if any(pattern.search(path) for pattern in BOOKING_PATH_PATTERNS):
        return True
    return bool(link_text and BOOKING_LINK_TEXT.search(link_text))


def destination_key(href: Optional[str], source_url: str, selector: str) -> str:
    """
    Key identifying where a trigger leads.

    Same-site destinations collapse by path; external destinations keep their
    host so they never merge with a same-site path. Triggers without an href
    are keyed by page and selector.
    """
    if not href or href.lower().startswith(PSEUDO_SCHEMES) or href.startswith("#"):
        return f"{normalize_url(source_url, source_url)}#{selector}"
    try:
        resolved = urlparse(urljoin(source_url, href))
    except ValueError:
        return href.split("?")[0]
    path = resolved.path.rstrip("/") or "/"
    if get_site_host(resolved.geturl()) != get_site_host(source_url):
        return f"{get_site_host(resolved.geturl())}{path}"
    return path


def url_destination_key(url: str, base_url: str) -> str:
    """destination_key for a URL the browser actually landed on."""
    return destination_key(url, base_url, "")
