"""Local, versioned mirrors of remote documents patched by change records."""

from docmirror.document import (
    Document,
    DocumentChangeDispatcher,
    DocumentDelta,
    DocumentStore,
    FieldDelta,
)
from docmirror.errors import (
    LayerChangeError,
    LayerValidationError,
    MirrorError,
    ProtocolViolation,
    UnknownDocumentError,
)
from docmirror.layers import LayerChangeSummary, LayerNode, LayerTree
from docmirror.protocol import ChangeRecord, DocumentSnapshot, LayerChangeDirective

__version__ = "0.1.0"

__all__ = [
    "ChangeRecord",
    "Document",
    "DocumentChangeDispatcher",
    "DocumentDelta",
    "DocumentSnapshot",
    "DocumentStore",
    "FieldDelta",
    "LayerChangeDirective",
    "LayerChangeError",
    "LayerChangeSummary",
    "LayerNode",
    "LayerTree",
    "LayerValidationError",
    "MirrorError",
    "ProtocolViolation",
    "UnknownDocumentError",
]
