"""Document state machine, its deltas and their delivery."""

from .deltas import Delta, DocumentDelta, FieldDelta
from .dispatch import DocumentChangeDispatcher
from .state import Document
from .store import DocumentStore

__all__ = [
    "Delta",
    "Document",
    "DocumentChangeDispatcher",
    "DocumentDelta",
    "DocumentStore",
    "FieldDelta",
]
