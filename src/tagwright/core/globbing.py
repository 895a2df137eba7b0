"""
Glob expansion for include/exclude source patterns.

Patterns are comma-separated lists relative to the web root ("~/" and leading
slashes are ignored). `*` and `?` stay within one path segment unless the
pattern uses `**`, and a `**/` segment may also match zero directories, so
"**/*.js" matches "site.js" as well as "lib/site.js".
"""

from __future__ import annotations

import itertools
import logging
from fnmatch import fnmatchcase
from typing import Iterable, List, Optional

from tagwright.utils.urls import normalize_base


def split_patterns(patterns: Optional[str]) -> List[str]:
    if not patterns:
        return []
    result = []
    for raw in patterns.split(','):
        pattern = raw.strip()
        if pattern.startswith('~/'):
            pattern = pattern[2:]
        pattern = pattern.lstrip('/')
        if pattern:
            result.append(pattern)
    return result


def _pattern_variants(pattern: str) -> List[str]:
    parts = pattern.split('**/')
    if len(parts) == 1:
        return [pattern]
    variants = set()
    for choice in itertools.product(('**/', ''), repeat=len(parts) - 1):
        joined = parts[0]
        for sep, part in zip(choice, parts[1:]):
            joined += sep + part
        variants.add(joined)
    return sorted(variants)


def pattern_matches(pattern: str, path: str) -> bool:
    for variant in _pattern_variants(pattern):
        if '**' not in variant and variant.count('/') != path.count('/'):
            continue
        if fnmatchcase(path, variant):
            return True
    return False


def _sort_key(path: str):
    # Files of a directory come before its subdirectories' files
    segments = path.split('/')
    return (segments[:-1], segments[-1])


def match_paths(paths: Iterable[str], include: Optional[str], exclude: Optional[str] = None) -> List[str]:
    """Filter relative POSIX paths by include/exclude patterns, in stable sorted order."""
    includes = split_patterns(include)
    excludes = split_patterns(exclude)
    if not includes:
        return []
    matched = []
    for path in paths:
        if not any(pattern_matches(p, path) for p in includes):
            continue
        if any(pattern_matches(p, path) for p in excludes):
            continue
        matched.append(path)
    return sorted(set(matched), key=_sort_key)


class GlobbingUrlBuilder:
    """
    Expands patterns against a file resolver's listing into URLs rooted at
    the request path base.
    """

    def __init__(self, file_resolver):
        self.file_resolver = file_resolver
        self.logger = logging.getLogger(__name__)

    def match(self, base_path: str, include: Optional[str], exclude: Optional[str] = None) -> List[str]:
        base = normalize_base(base_path)
        paths = match_paths(self.file_resolver.iter_files(), include, exclude)
        urls = [f"{base}/{p}" for p in paths]
        self.logger.debug(f"Glob include={include!r} exclude={exclude!r} matched {len(urls)} file(s)")
        return urls
