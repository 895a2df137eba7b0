"""
URL Utilities

This module provides virtual-root expansion and the small URL manipulations
the tag rewriter needs: detecting external URLs, splitting off query strings
and stamping version parameters.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple
from urllib.parse import urlparse


VIRTUAL_ROOT = "~/"
VERSION_PARAM = "v"


class UrlRewriter:
    """
    Expands virtual-root paths ("~/js/site.js") into application-relative URLs.

    The application base path is always prefixed, so an expanded path is
    rooted at the application rather than looking like a filesystem root.
    """

    def __init__(self, app_base: str = ""):
        self.logger = logging.getLogger(__name__)
        self.app_base = normalize_base(app_base)

    def expand(self, url: str) -> str:
        if not url or not url.startswith(VIRTUAL_ROOT):
            return url
        expanded = f"{self.app_base}/{url[len(VIRTUAL_ROOT):]}"
        self.logger.debug(f"Expanded {url} -> {expanded}")
        return expanded


def normalize_base(base: Optional[str]) -> str:
    """
    Normalize an application or request base path to "" or "/segment".

    Examples:
      "" -> "", "/" -> "", "bar/" -> "/bar", "/app/sub/" -> "/app/sub"
    """
    if not base:
        return ""
    base = base.strip().strip('/')
    return f"/{base}" if base else ""


def is_absolute_url(url: str) -> bool:
    """True for scheme-qualified ("https://", "data:") and protocol-relative ("//cdn") URLs."""
    if url.startswith('//'):
        return True
    parsed = urlparse(url)
    # A single letter is a Windows drive, not a scheme
    return bool(parsed.scheme) and len(parsed.scheme) > 1


def split_url(url: str) -> Tuple[str, str, str]:
    """Split into (path, query, fragment) without the '?' and '#' separators."""
    path, _, fragment = url.partition('#')
    path, _, query = path.partition('?')
    return path, query, fragment


def strip_path_base(path: str, path_base: str) -> str:
    """Drop a request path base ("/bar") from the front of a path, segment-aware."""
    base = normalize_base(path_base)
    if not base:
        return path
    lowered = path.lower()
    if lowered == base.lower():
        return '/'
    if lowered.startswith(base.lower() + '/'):
        return path[len(base):]
    return path


def add_version_param(url: str, version: str) -> str:
    """
    Stamp `v=<version>` onto a URL, replacing any existing `v` parameter so
    that stamping twice gives the same result.
    """
    path, query, fragment = split_url(url)
    # Other parameters are kept byte for byte
    params = [p for p in query.split('&') if p and p.partition('=')[0] != VERSION_PARAM]
    params.append(f"{VERSION_PARAM}={version}")
    stamped = f"{path}?{'&'.join(params)}"
    if fragment:
        stamped += f"#{fragment}"
    return stamped
