"""
Content-hash versioning for asset URLs.

A versioned URL carries `v=<hash>` where the hash is the unpadded URL-safe
base64 form of the SHA-256 digest of the file's bytes. Hashes are cached per
resolved file and dropped once the file's change token fires.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional

from tagwright.core.errors import AssetNotFound
from tagwright.utils.urls import add_version_param, is_absolute_url, split_url, strip_path_base


def compute_file_hash(content: bytes) -> str:
    digest = hashlib.sha256(content).digest()
    return base64.urlsafe_b64encode(digest).decode('ascii').rstrip('=')


@dataclass
class _CacheEntry:
    version: str
    token: Any


class VersionCache:
    """
    Thread-safe map of resolved file -> content hash.

    Lookups and inserts hold the lock; hashing does not, so two renders racing
    on the same file may both compute the hash. The result is identical either
    way.
    """

    def __init__(self):
        self._entries: Dict[Hashable, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if getattr(entry.token, 'has_changed', False):
                del self._entries[key]
                return None
            return entry.version

    def put(self, key: Hashable, version: str, token: Any) -> None:
        with self._lock:
            self._entries[key] = _CacheEntry(version, token)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# Process-wide cache shared by providers that are not given their own
DEFAULT_CACHE = VersionCache()


class FileVersionProvider:
    def __init__(self, file_resolver, cache: Optional[VersionCache] = None):
        self.file_resolver = file_resolver
        self.cache = cache if cache is not None else DEFAULT_CACHE
        self.logger = logging.getLogger(__name__)

    def _cache_key(self, path: str) -> Hashable:
        # Several resolvers may share the process-wide cache
        owner = getattr(self.file_resolver, 'root', None)
        if owner is None:
            owner = id(self.file_resolver)
        return (str(owner), path.lstrip('/'))

    def get_version(self, path: str) -> str:
        """Hash the file at a web-root-relative path. Raises AssetNotFound."""
        key = self._cache_key(path)
        version = self.cache.get(key)
        if version is not None:
            return version

        # Watch before reading so a change during the read invalidates the entry
        token = self.file_resolver.watch(path)
        if not self.file_resolver.exists(path):
            raise AssetNotFound(path)
        version = compute_file_hash(self.file_resolver.read_bytes(path))
        self.cache.put(key, version, token)
        self.logger.debug(f"Computed version for {path}: {version}")
        return version

    def add_file_version_to_path(self, url: str, path_base: str = "", app_base: str = "") -> str:
        """
        Return `url` stamped with its file's content hash.

        External URLs are returned unchanged. The query string is ignored
        when locating the file, and so is the request path base or, failing
        that, the application base that "~/" paths were expanded with.
        """
        if not url or is_absolute_url(url):
            return url
        path, _, _ = split_url(url)
        lookup = strip_path_base(path, path_base)
        if lookup == path and app_base:
            lookup = strip_path_base(path, app_base)
        return add_version_param(url, self.get_version(lookup))
