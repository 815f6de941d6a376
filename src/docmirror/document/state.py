"""Versioned local mirror of a remote document."""

from __future__ import annotations

import logging
from typing import Any, Callable, ClassVar, Dict, FrozenSet, Iterable, Mapping, Optional, Union

from docmirror.config import MirrorPolicy, apply_logging_policy, load_mirror_policy
from docmirror.document.deltas import Delta, DocumentDelta, FieldDelta
from docmirror.errors import ProtocolViolation
from docmirror.layers.reconcile import LayerChangeSummary, apply_layer_changes, validate_layer_changes
from docmirror.layers.tree import LayerTree
from docmirror.protocol.records import (
    ChangeRecord,
    DocumentSnapshot,
    LayerChangeDirective,
    LayerId,
    directives_from_payload,
)


logger = logging.getLogger(__name__)


def _id_mapping(raw: Any, context: str) -> Dict[Any, Any]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, Iterable) and not isinstance(raw, (str, bytes, bytearray)):
        result: Dict[Any, Any] = {}
        for item in raw:
            if not isinstance(item, Mapping) or "id" not in item:
                raise ValueError(f"{context} entries must be mappings with an 'id'")
            result[item["id"]] = item
        return result
    raise ValueError(f"{context} must be a mapping or a list of descriptors")


class Document:
    """Mirror of one document, mutated only through :meth:`apply_change`.

    ``count`` strictly increases and ``time_stamp`` never decreases over the
    lifetime of the mirror. Stale records (``count`` at or below the current
    one) are skipped; identity, version and timestamp violations raise
    :class:`~docmirror.errors.ProtocolViolation`.
    """

    # wire field -> update handler, run in ChangeRecord.present_fields() order
    _UPDATERS: ClassVar[Dict[str, str]] = {
        "file": "_update_file",
        "globalLight": "_update_global_light",
        "bounds": "_update_bounds",
        "resolution": "_update_resolution",
        "selection": "_update_selection",
        "generatorSettings": "_update_generator_settings",
        "layers": "_update_layers",
        "comps": "_update_comps",
        "placed": "_update_placed",
        "closed": "_update_closed",
        "active": "_update_active",
        "merged": "_update_merged",
        "flattened": "_update_flattened",
    }

    def __init__(
        self,
        document_id: Any,
        version: Any,
        count: int,
        time_stamp: float,
        *,
        policy: Optional[MirrorPolicy] = None,
    ) -> None:
        self._policy = policy if policy is not None else load_mirror_policy()
        apply_logging_policy(self._policy)
        self._id = document_id
        self._version = version
        self._count = int(count)
        self._time_stamp = time_stamp

        self._file: Any = None
        self._bounds: Any = None
        self._selection: FrozenSet[LayerId] = frozenset()
        self._resolution: Any = None
        self._global_light: Any = None
        self._generator_settings: Any = None
        self._layers = LayerTree()
        self._comps: Dict[Any, Any] = {}
        self._placed: Dict[Any, Any] = {}

        self._closed: Any = None
        self._active: Any = None
        self._merged: Any = None
        self._flattened: Any = None

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Union[DocumentSnapshot, Mapping[str, Any]],
        *,
        policy: Optional[MirrorPolicy] = None,
    ) -> "Document":
        if not isinstance(snapshot, DocumentSnapshot):
            snapshot = DocumentSnapshot.from_dict(snapshot)
        document = cls(snapshot.id, snapshot.version, snapshot.count, snapshot.time_stamp, policy=policy)

        if snapshot.has("file"):
            document._set_file(snapshot.get("file"))
        if snapshot.has("bounds"):
            document._set_bounds(snapshot.get("bounds"))
        if snapshot.has("selection"):
            document._set_selection(snapshot.get("selection"))
        if snapshot.has("resolution"):
            document._set_resolution(snapshot.get("resolution"))
        if snapshot.has("globalLight"):
            document._set_global_light(snapshot.get("globalLight"))
        if snapshot.has("generatorSettings"):
            document._set_generator_settings(snapshot.get("generatorSettings"))
        if snapshot.has("layers"):
            document._set_layers(snapshot.layers)
        if snapshot.has("comps"):
            document._set_comps(snapshot.get("comps"))
        if snapshot.has("placed"):
            document._set_placed(snapshot.get("placed"))

        logger.debug("document mirrored from snapshot: %s", document)
        return document

    # ------------------------------------------------------------------
    @property
    def id(self) -> Any:
        return self._id

    @property
    def version(self) -> Any:
        return self._version

    @property
    def count(self) -> int:
        return self._count

    @property
    def time_stamp(self) -> float:
        return self._time_stamp

    @property
    def file(self) -> Any:
        return self._file

    @property
    def bounds(self) -> Any:
        return self._bounds

    @property
    def selection(self) -> FrozenSet[LayerId]:
        return self._selection

    @property
    def resolution(self) -> Any:
        return self._resolution

    @property
    def global_light(self) -> Any:
        return self._global_light

    @property
    def generator_settings(self) -> Any:
        return self._generator_settings

    @property
    def layers(self) -> LayerTree:
        return self._layers

    @property
    def comps(self) -> Mapping[Any, Any]:
        return self._comps

    @property
    def placed(self) -> Mapping[Any, Any]:
        return self._placed

    @property
    def closed(self) -> Any:
        return self._closed

    @property
    def active(self) -> Any:
        return self._active

    @property
    def merged(self) -> Any:
        return self._merged

    @property
    def flattened(self) -> Any:
        return self._flattened

    # ------------------------------------------------------------------
    def apply_change(self, record: Union[ChangeRecord, Mapping[str, Any]]) -> Optional[DocumentDelta]:
        """Apply one change record; return its delta, or ``None`` when stale."""

        if not isinstance(record, ChangeRecord):
            record = ChangeRecord.from_dict(record)

        if record.id != self._id:
            raise ProtocolViolation(f"Document ID mismatch: expected {self._id!r}, got {record.id!r}")
        if record.version != self._version:
            raise ProtocolViolation(
                f"Version mismatch for document {self._id!r}: expected {self._version!r}, got {record.version!r}"
            )

        if record.count <= self._count:
            level = logging.INFO if self._policy.log_stale_info else logging.DEBUG
            logger.log(
                level,
                "Skipping out of order change: document=%r count=%d current=%d",
                self._id,
                record.count,
                self._count,
            )
            return None

        if record.time_stamp < self._time_stamp:
            raise ProtocolViolation(
                f"Out of order timestamp for document {self._id!r}: "
                f"{record.time_stamp!r} precedes {self._time_stamp!r}"
            )

        previous_count = self._count
        previous_time_stamp = self._time_stamp
        self._count = record.count
        self._time_stamp = record.time_stamp

        fields: Dict[str, Delta] = {}
        for name in record.present_fields():
            updater: Callable[[Any], Delta] = getattr(self, self._UPDATERS[name])
            fields[name] = updater(record.get(name))

        delta = DocumentDelta(
            document_id=self._id,
            count=self._count,
            time_stamp=self._time_stamp,
            previous_count=previous_count,
            previous_time_stamp=previous_time_stamp,
            fields=fields,
        )
        if self._policy.log_changes:
            logger.info("change applied: document=%r count=%d fields=%s", self._id, self._count, tuple(fields))
        elif logger.isEnabledFor(logging.DEBUG):
            logger.debug("change applied: document=%r count=%d fields=%s", self._id, self._count, tuple(fields))
        return delta

    # ------------------------------------------------------------------
    def _set_file(self, raw_file: Any) -> None:
        self._file = raw_file

    def _update_file(self, raw_file: Any) -> FieldDelta:
        previous = self._file
        self._set_file(raw_file)
        return FieldDelta(previous=previous)

    def _set_bounds(self, raw_bounds: Any) -> None:
        self._bounds = raw_bounds

    def _update_bounds(self, raw_bounds: Any) -> FieldDelta:
        previous = self._bounds
        self._set_bounds(raw_bounds)
        return FieldDelta(previous=previous)

    def _set_selection(self, raw_selection: Optional[Iterable[LayerId]]) -> None:
        self._selection = frozenset(raw_selection or ())

    def _update_selection(self, raw_selection: Optional[Iterable[LayerId]]) -> FieldDelta:
        previous = self._selection
        self._set_selection(raw_selection)
        return FieldDelta(previous=previous)

    def _set_resolution(self, raw_resolution: Any) -> None:
        self._resolution = raw_resolution

    def _update_resolution(self, raw_resolution: Any) -> FieldDelta:
        previous = self._resolution
        self._set_resolution(raw_resolution)
        return FieldDelta(previous=previous)

    def _set_global_light(self, raw_global_light: Any) -> None:
        self._global_light = raw_global_light

    def _update_global_light(self, raw_global_light: Any) -> FieldDelta:
        previous = self._global_light
        self._set_global_light(raw_global_light)
        return FieldDelta(previous=previous)

    def _set_generator_settings(self, raw_settings: Any) -> None:
        self._generator_settings = raw_settings

    def _update_generator_settings(self, raw_settings: Any) -> FieldDelta:
        previous = self._generator_settings
        self._set_generator_settings(raw_settings)
        return FieldDelta(previous=previous)

    def _set_comps(self, raw_comps: Any) -> None:
        self._comps = _id_mapping(raw_comps, "comps")

    def _update_comps(self, raw_comps: Any) -> FieldDelta:
        previous = self._comps
        self._set_comps(raw_comps)
        return FieldDelta(previous=previous)

    def _set_placed(self, raw_placed: Any) -> None:
        self._placed = _id_mapping(raw_placed, "placed")

    def _update_placed(self, raw_placed: Any) -> FieldDelta:
        previous = self._placed
        self._set_placed(raw_placed)
        return FieldDelta(previous=previous)

    # transient notifications
    def _update_closed(self, closed: Any) -> FieldDelta:
        previous, self._closed = self._closed, closed
        return FieldDelta(previous=previous)

    def _update_active(self, active: Any) -> FieldDelta:
        previous, self._active = self._active, active
        return FieldDelta(previous=previous)

    def _update_merged(self, merged: Any) -> FieldDelta:
        previous, self._merged = self._merged, merged
        return FieldDelta(previous=previous)

    def _update_flattened(self, flattened: Any) -> FieldDelta:
        previous, self._flattened = self._flattened, flattened
        return FieldDelta(previous=previous)

    # ------------------------------------------------------------------
    def _set_layers(self, descriptions: Iterable[Mapping[str, Any]]) -> None:
        descriptions = tuple(descriptions)
        tree = LayerTree.build(descriptions)
        if self._policy.validate_layers:
            validate_layer_changes(tree, directives_from_payload(descriptions))
        self._layers = tree

    def _update_layers(self, directives: Iterable[LayerChangeDirective]) -> LayerChangeSummary:
        return apply_layer_changes(
            self._layers,
            tuple(directives),
            validate=self._policy.validate_layers,
        )

    # ------------------------------------------------------------------
    def describe(self) -> str:
        return f"Document {self._id} [{self._layers.describe()}]"

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"Document(id={self._id!r}, version={self._version!r}, count={self._count}, time_stamp={self._time_stamp!r})"


__all__ = ["Document"]
