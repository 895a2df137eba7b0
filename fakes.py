"""
Test doubles shared by the test modules: an in-memory file resolver, a fixed
glob expander and marker encoders that make encoding visible in assertions.
"""

import itertools
from typing import Dict, List, Optional


HELLO_BYTES = b"Hello World!"
HELLO_HASH = "f4OxZX_x_FO5LcGBSKHWXfwtSx-j1ncoSt3SABJtkGk"

_ids = itertools.count()


class FakeChangeToken:
    def __init__(self):
        self.has_changed = False


class InMemoryResolver:
    """
    Files live in a dict keyed by web-root-relative path. With `default` set,
    every path resolves to those bytes.
    """

    def __init__(self, files: Optional[Dict[str, bytes]] = None, default: Optional[bytes] = None):
        self.root = f"memory:{next(_ids)}"
        self.files = {k.lstrip('/'): v for k, v in (files or {}).items()}
        self.default = default
        self.tokens: Dict[str, FakeChangeToken] = {}
        self.reads: List[str] = []

    def _key(self, path: str) -> str:
        return path.lstrip('/')

    def exists(self, path: str) -> bool:
        return self._key(path) in self.files or self.default is not None

    def read_bytes(self, path: str) -> bytes:
        self.reads.append(path)
        key = self._key(path)
        if key in self.files:
            return self.files[key]
        if self.default is not None:
            return self.default
        raise FileNotFoundError(path)

    def watch(self, path: str) -> FakeChangeToken:
        token = FakeChangeToken()
        self.tokens[self._key(path)] = token
        return token

    def change(self, path: str, content: bytes) -> None:
        key = self._key(path)
        self.files[key] = content
        if key in self.tokens:
            self.tokens[key].has_changed = True

    def iter_files(self):
        return iter(sorted(self.files))


class FixedGlobExpander:
    """Returns the same URLs for every pattern and records each call."""

    def __init__(self, urls):
        self.urls = list(urls)
        self.calls = []

    def match(self, base_path, include, exclude=None):
        self.calls.append((base_path, include, exclude))
        return list(self.urls)


class VirtualRootRewriter:
    """Expands "~/" to "virtualRoot/" so the result never looks like a filesystem root."""

    def expand(self, url):
        return url.replace("~/", "virtualRoot/")


def html_test_encode(value: str) -> str:
    return f"HtmlEncode[[{value}]]"


def javascript_test_encode(value: str) -> str:
    return f"JavaScriptEncode[[{value}]]"
