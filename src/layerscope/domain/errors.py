from __future__ import annotations

"""
Domain Error Taxonomy.

Exceptions raised by the layered filesystem engine and the image archive
reader. Every core operation is fail-fast: the first error aborts the
operation and propagates to the caller unchanged.
"""


class LayerscopeError(Exception):
    """Base class for all errors raised by layerscope."""


class NotFoundError(LayerscopeError):
    """Path resolution against a tree failed."""

    def __init__(self, path: str, segment: str = "") -> None:
        self.path = path
        self.segment = segment
        detail = f" (missing segment '{segment}')" if segment else ""
        super().__init__(f"Path not found: '{path}'{detail}")


class InvalidOperationError(LayerscopeError):
    """The requested mutation is not allowed (e.g. removing the tree root)."""


class InvalidPathError(LayerscopeError):
    """A path segment used the reserved opaque-directory marker."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Invalid file path (opaque-directory marker): '{path}'")


class ComparisonMismatchError(LayerscopeError):
    """Two nodes with different names were compared for equality."""


class ImageArchiveError(LayerscopeError):
    """The image archive is malformed or incomplete."""
