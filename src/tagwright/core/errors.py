"""Exceptions raised while rewriting asset tags."""


class TagwrightError(Exception):
    """Base class for rewrite failures surfaced to the caller."""


class AssetNotFound(TagwrightError):
    """A file referenced by a tag could not be resolved under the web root."""

    def __init__(self, path: str):
        super().__init__(f"Asset not found: {path}")
        self.path = path


class RenderCancelled(TagwrightError):
    """The enclosing render was cancelled before the tag finished rewriting."""
