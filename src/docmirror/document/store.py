"""Store that owns document mirrors and routes change records to them."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from docmirror.config import MirrorPolicy, load_mirror_policy
from docmirror.document.deltas import DocumentDelta, FieldDelta
from docmirror.document.dispatch import DocumentChangeDispatcher
from docmirror.document.state import Document
from docmirror.errors import UnknownDocumentError
from docmirror.protocol.records import ChangeRecord, DocumentSnapshot


logger = logging.getLogger(__name__)


class DocumentStore:
    """Mirrors keyed by document id; delivery is serialized per store.

    The document and layer engine stay lock-free; the store lock only
    serializes record delivery and listener dispatch.
    """

    def __init__(
        self,
        *,
        dispatcher: Optional[DocumentChangeDispatcher] = None,
        policy: Optional[MirrorPolicy] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._documents: Dict[Any, Document] = {}
        self._dispatcher = dispatcher if dispatcher is not None else DocumentChangeDispatcher()
        self._policy = policy if policy is not None else load_mirror_policy()

    @property
    def dispatcher(self) -> DocumentChangeDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------
    def open(self, snapshot: Union[DocumentSnapshot, Mapping[str, Any]]) -> Document:
        """Mirror a document from a full snapshot, replacing any previous mirror."""

        document = Document.from_snapshot(snapshot, policy=self._policy)
        with self._lock:
            replaced = document.id in self._documents
            self._documents[document.id] = document
        logger.info(
            "document %s: id=%r count=%d layers=%d",
            "re-mirrored" if replaced else "mirrored",
            document.id,
            document.count,
            len(document.layers),
        )
        return document

    def apply_change(self, record: Union[ChangeRecord, Mapping[str, Any]]) -> Optional[DocumentDelta]:
        if not isinstance(record, ChangeRecord):
            record = ChangeRecord.from_dict(record)
        with self._lock:
            document = self._documents.get(record.id)
            if document is None:
                raise UnknownDocumentError(f"No mirrored document with id {record.id!r}")
            delta = document.apply_change(record)
            if delta is None:
                return None
            try:
                if len(delta):
                    self._dispatcher.dispatch(document, delta)
            finally:
                # a closed document leaves the store even when a listener raises
                closed = delta.get("closed")
                if isinstance(closed, FieldDelta) and document.closed:
                    self._documents.pop(document.id, None)
                    logger.info("document closed: id=%r", document.id)
            return delta

    def close(self, document_id: Any) -> Optional[Document]:
        with self._lock:
            return self._documents.pop(document_id, None)

    # ------------------------------------------------------------------
    def get(self, document_id: Any) -> Optional[Document]:
        with self._lock:
            return self._documents.get(document_id)

    def ids(self) -> Tuple[Any, ...]:
        with self._lock:
            return tuple(self._documents)

    def __contains__(self, document_id: object) -> bool:
        with self._lock:
            return document_id in self._documents

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)


__all__ = ["DocumentStore"]
