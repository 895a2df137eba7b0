"""
File Resolution Utilities

This module maps web-root-relative paths ("/js/site.js", "css/site.css") to
files on disk, reads their bytes for hashing, lists files for globbing and
hands out change tokens that report when a file was modified.
"""

from __future__ import annotations

import os
import logging
from pathlib import Path
from typing import Iterator, Optional, Tuple

from tagwright.core.errors import AssetNotFound


class PollingChangeToken:
    """
    Snapshot of a file's (exists, mtime, size) taken at watch time.

    `has_changed` re-stats the file on every access, so a token never needs a
    background thread.
    """

    def __init__(self, full_path: Optional[Path]):
        self.full_path = full_path
        self._snapshot = self._stat()

    def _stat(self) -> Tuple[bool, int, int]:
        if self.full_path is None:
            return (False, 0, 0)
        try:
            st = self.full_path.stat()
        except OSError:
            return (False, 0, 0)
        return (True, st.st_mtime_ns, st.st_size)

    @property
    def has_changed(self) -> bool:
        return self._stat() != self._snapshot


class PhysicalFileResolver:
    """
    Resolves paths under a web root directory.

    Leading slashes are ignored, so "/js/site.js" and "js/site.js" name the
    same file. Paths that escape the root resolve to nothing.
    """

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.logger = logging.getLogger(__name__)

    def _full_path(self, path: str) -> Optional[Path]:
        relative = path.replace('\\', '/').lstrip('/')
        if not relative:
            return None
        candidate = (self.root / relative).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError:
            self.logger.warning(f"Path escapes web root: {path}")
            return None
        return candidate

    def exists(self, path: str) -> bool:
        full = self._full_path(path)
        return full is not None and full.is_file()

    def read_bytes(self, path: str) -> bytes:
        full = self._full_path(path)
        if full is None or not full.is_file():
            raise AssetNotFound(path)
        return full.read_bytes()

    def watch(self, path: str) -> PollingChangeToken:
        return PollingChangeToken(self._full_path(path))

    def iter_files(self) -> Iterator[str]:
        """Yield every file under the root as a relative POSIX path."""
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            for name in sorted(filenames):
                full = Path(dirpath) / name
                yield full.relative_to(self.root).as_posix()
