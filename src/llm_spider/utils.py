"""
Utility functions for llm_spider.

Provides route normalization, base-path handling and the exclusion predicate.
"""

import logging
import posixpath
import re
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

# Schemes that never point at a page of the site
NON_PAGE_SCHEMES = ("mailto:", "tel:", "javascript:", "vbscript:", "data:")

EXTERNAL_PREFIXES = ("http://", "https://", "//")

_MULTI_SLASH = re.compile(r"/{2,}")


def normalize_route(value: Optional[str], strip_query: bool = True) -> Optional[str]:
    """
    Normalize a link-like string into a base-relative route key.

    Args:
        value: href, route or path to normalize
        strip_query: Whether to drop everything from the first '?'

    Returns:
        Route key starting with a single '/', or None when the value
        does not point at a page of the site
    """
    if not value:
        return None

    route = value.strip()
    lowered = route.lower()

    if lowered.startswith(NON_PAGE_SCHEMES):
        return None

    if lowered.startswith(EXTERNAL_PREFIXES):
        return None

    route = route.split("#", 1)[0]

    if strip_query:
        route = route.split("?", 1)[0]

    route = route.strip()
    if not route:
        return None

    if not route.startswith("/"):
        if route.startswith("./"):
            route = route[1:]
        else:
            route = "/" + route

    path, sep, query = route.partition("?")
    return _resolve_dot_segments(_MULTI_SLASH.sub("/", path)) + sep + query


def _resolve_dot_segments(path: str) -> str:
    """Collapse '.' and '..' segments; climbing above the root stops at '/'."""
    resolved = posixpath.normpath(path)
    if resolved == "/":
        return resolved
    last = path.rsplit("/", 1)[-1]
    if path.endswith("/") or last in (".", ".."):
        resolved += "/"
    return resolved


def normalize_base_path(base_path: Optional[str]) -> str:
    """Return the deployment base path with exactly one leading and trailing slash."""
    base = (base_path or "/").replace("\\", "/")
    base = _MULTI_SLASH.sub("/", "/" + base.strip("/") + "/")
    return base


def strip_base_path(route: str, base_path: str) -> str:
    """
    Make a normalized route relative to the deployment base path.

    Router links on a site deployed under "/app/" usually carry the prefix
    ("/app/docs"); route keys never do ("/docs").

    Args:
        route: Normalized route key
        base_path: Deployment base path

    Returns:
        Base-relative route key
    """
    base = normalize_base_path(base_path)
    if base == "/":
        return route

    if route == base.rstrip("/"):
        return "/"

    if route.startswith(base):
        return normalize_route("/" + route[len(base):], strip_query=False) or "/"

    return route


def is_excluded(route: str, rules: Iterable["ExclusionRule"]) -> bool:
    """
    Check a route against exclusion rules.

    Args:
        route: Normalized route key
        rules: Exclusion rules (literal substring or regex pattern)

    Returns:
        True if any rule matches
    """
    for rule in rules:
        if rule.matches(route):
            logger.debug(f"Excluded {route} by rule {rule}")
            return True
    return False


def route_to_url(base_url: str, route: str) -> str:
    """Join a preview base URL (ending in '/') and a route key."""
    if route == "/":
        return base_url
    return base_url + route.lstrip("/")


def route_from_url(url: str, base_url: str) -> str:
    """Inverse of route_to_url for URLs under base_url; other URLs yield their path."""
    if url.startswith(base_url):
        return normalize_route("/" + url[len(base_url):]) or "/"
    return normalize_route(re.sub(r"^[a-zA-Z][a-zA-Z0-9+.-]*://[^/]*", "", url)) or "/"
