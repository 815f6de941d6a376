"""Fan document deltas out to interested listeners."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from docmirror.document.deltas import Delta, DocumentDelta

if TYPE_CHECKING:  # pragma: no cover - typing only
    from docmirror.document.state import Document


logger = logging.getLogger(__name__)

DeltaListener = Callable[["Document", DocumentDelta], None]
FieldListener = Callable[["Document", str, Delta], None]


class DocumentChangeDispatcher:
    """Deliver each accepted delta to global and per-field listeners.

    Global listeners receive the whole delta once; field listeners receive
    ``(document, field, field_delta)`` in the order the fields were handled.
    """

    def __init__(self) -> None:
        self._global_listeners: List[DeltaListener] = []
        self._field_listeners: Dict[str, List[FieldListener]] = {}

    # ------------------------------------------------------------------
    def add_listener(self, callback: Callable, field: Optional[str] = None) -> None:
        if field is None:
            if callback not in self._global_listeners:
                self._global_listeners.append(callback)
            return
        listeners = self._field_listeners.setdefault(field, [])
        if callback not in listeners:
            listeners.append(callback)

    def remove_listener(self, callback: Callable, field: Optional[str] = None) -> None:
        if field is None:
            if callback in self._global_listeners:
                self._global_listeners.remove(callback)
            return
        listeners = self._field_listeners.get(field)
        if listeners and callback in listeners:
            listeners.remove(callback)
            if not listeners:
                del self._field_listeners[field]

    # ------------------------------------------------------------------
    def dispatch(self, document: "Document", delta: DocumentDelta) -> None:
        globals_copy = list(self._global_listeners)
        per_field = [
            (name, field_delta, list(self._field_listeners.get(name, ())))
            for name, field_delta in delta.items()
        ]
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "dispatching delta: document=%r count=%d fields=%s",
                delta.document_id,
                delta.count,
                tuple(delta),
            )
        for callback in globals_copy:
            callback(document, delta)
        for name, field_delta, listeners in per_field:
            for callback in listeners:
                callback(document, name, field_delta)


__all__ = ["DeltaListener", "DocumentChangeDispatcher", "FieldListener"]
