"""Exceptions raised when a change record cannot be applied to a mirror."""

from __future__ import annotations


class MirrorError(RuntimeError):
    """Base class for fatal mirror errors."""


class ProtocolViolation(MirrorError):
    """Change record disagrees with the document identity or ordering."""


class LayerChangeError(MirrorError):
    """Layer change directives cannot be resolved against the tree."""


class LayerValidationError(LayerChangeError):
    """Tree does not match the directives after a layer change was applied."""


class UnknownDocumentError(MirrorError, KeyError):
    """Change record routed to a document the store does not hold."""


__all__ = [
    "LayerChangeError",
    "LayerValidationError",
    "MirrorError",
    "ProtocolViolation",
    "UnknownDocumentError",
]
