"""Typed shapes for decoded document snapshots and change records.

Inbound payloads arrive as plain mappings that have already passed wire
decoding. The helpers here keep the *presence* of optional attributes intact:
an attribute present on a change record means "this attribute changed", even
when its value is ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterator, Mapping, Optional, Sequence, Tuple

LayerId = Hashable

# Order in which optional attributes are handled on every change record.
DOCUMENT_FIELDS: Tuple[str, ...] = (
    "file",
    "globalLight",
    "bounds",
    "resolution",
    "selection",
    "generatorSettings",
    "layers",
    "comps",
    "placed",
)
NOTIFICATION_FIELDS: Tuple[str, ...] = ("closed", "active", "merged", "flattened")
CHANGE_FIELDS: Tuple[str, ...] = DOCUMENT_FIELDS + NOTIFICATION_FIELDS

_DIRECTIVE_KEYS = frozenset({"id", "index", "added", "removed", "layers"})
_HEADER_KEYS = ("id", "version", "count", "timeStamp")


def _require_mapping(value: Any, context: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{context} must be a mapping, got {type(value).__name__}")
    return value


def _require_sequence(value: Any, context: str) -> Sequence[Any]:
    if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, Sequence):
        raise ValueError(f"{context} must be a sequence, got {type(value).__name__}")
    return value


def _require_keys(data: Mapping[str, Any], keys: Sequence[str], context: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        raise ValueError(f"{context} missing required keys: {', '.join(missing)}")


def _optional_index(data: Mapping[str, Any], context: str) -> Optional[int]:
    if "index" not in data or data["index"] is None:
        return None
    raw = data["index"]
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{context} index must be an integer, got {raw!r}")
    return raw


@dataclass(frozen=True)
class LayerChangeDirective:
    """One node's add/remove/move entry inside a change record's layer list."""

    layer_id: LayerId
    index: Optional[int] = None
    added: bool = False
    removed: bool = False
    layers: Optional[Tuple["LayerChangeDirective", ...]] = None
    description: Mapping[str, Any] = field(default_factory=dict)

    @property
    def has_index(self) -> bool:
        return self.index is not None

    @property
    def is_positional(self) -> bool:
        """Directives without an index that are not removals only mark a changed descendant."""
        return self.index is not None or self.removed

    def iter_nested(self) -> Iterator["LayerChangeDirective"]:
        return iter(self.layers or ())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LayerChangeDirective":
        data = _require_mapping(data, "layer change")
        _require_keys(data, ("id",), "layer change")
        nested = None
        if "layers" in data:
            nested = directives_from_payload(data["layers"])
        return cls(
            layer_id=data["id"],
            index=_optional_index(data, f"layer change {data['id']!r}"),
            added=bool(data.get("added", False)),
            removed=bool(data.get("removed", False)),
            layers=nested,
            description={key: value for key, value in data.items() if key not in _DIRECTIVE_KEYS},
        )


def directives_from_payload(payload: Any) -> Tuple[LayerChangeDirective, ...]:
    items = _require_sequence(payload, "layers")
    return tuple(LayerChangeDirective.from_dict(item) for item in items)


@dataclass(frozen=True)
class ChangeRecord:
    """One incremental step in a document's history."""

    id: Any
    version: Any
    count: int
    time_stamp: float
    fields: Mapping[str, Any] = field(default_factory=dict)

    def has(self, name: str) -> bool:
        return name in self.fields

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    @property
    def layers(self) -> Optional[Tuple[LayerChangeDirective, ...]]:
        return self.fields.get("layers")

    def present_fields(self) -> Tuple[str, ...]:
        return tuple(name for name in CHANGE_FIELDS if name in self.fields)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChangeRecord":
        data = _require_mapping(data, "change record")
        _require_keys(data, _HEADER_KEYS, "change record")
        fields: Dict[str, Any] = {}
        for name in CHANGE_FIELDS:
            if name not in data:
                continue
            if name == "layers":
                fields[name] = directives_from_payload(data[name])
            else:
                fields[name] = data[name]
        return cls(
            id=data["id"],
            version=data["version"],
            count=int(data["count"]),
            time_stamp=data["timeStamp"],
            fields=fields,
        )


@dataclass(frozen=True)
class DocumentSnapshot:
    """Full description of a document used to build its mirror."""

    id: Any
    version: Any
    count: int
    time_stamp: float
    fields: Mapping[str, Any] = field(default_factory=dict)

    def has(self, name: str) -> bool:
        return name in self.fields

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    @property
    def layers(self) -> Tuple[Mapping[str, Any], ...]:
        return tuple(self.fields.get("layers") or ())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentSnapshot":
        data = _require_mapping(data, "document snapshot")
        _require_keys(data, _HEADER_KEYS, "document snapshot")
        fields: Dict[str, Any] = {}
        for name in DOCUMENT_FIELDS:
            if name not in data:
                continue
            if name == "layers":
                layers = _require_sequence(data[name], "snapshot layers")
                fields[name] = tuple(_require_mapping(item, "snapshot layer") for item in layers)
            else:
                fields[name] = data[name]
        return cls(
            id=data["id"],
            version=data["version"],
            count=int(data["count"]),
            time_stamp=data["timeStamp"],
            fields=fields,
        )


__all__ = [
    "CHANGE_FIELDS",
    "ChangeRecord",
    "DOCUMENT_FIELDS",
    "DocumentSnapshot",
    "LayerChangeDirective",
    "LayerId",
    "NOTIFICATION_FIELDS",
    "directives_from_payload",
]
