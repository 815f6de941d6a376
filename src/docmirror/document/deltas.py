"""Per-field deltas produced by applying one change record."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Tuple, Union

from docmirror.layers.reconcile import LayerChangeSummary


@dataclass(frozen=True)
class FieldDelta:
    previous: Any


Delta = Union[FieldDelta, LayerChangeSummary]


@dataclass(frozen=True)
class DocumentDelta:
    """Everything one accepted change record did to a document.

    ``fields`` maps the wire name of each handled attribute to its delta, in
    the order the handlers ran.
    """

    document_id: Any
    count: int
    time_stamp: float
    previous_count: int
    previous_time_stamp: float
    fields: Mapping[str, Delta] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __getitem__(self, name: str) -> Delta:
        return self.fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def get(self, name: str) -> Optional[Delta]:
        return self.fields.get(name)

    def items(self) -> Tuple[Tuple[str, Delta], ...]:
        return tuple(self.fields.items())

    @property
    def layers(self) -> Optional[LayerChangeSummary]:
        delta = self.fields.get("layers")
        return delta if isinstance(delta, LayerChangeSummary) else None


__all__ = ["Delta", "DocumentDelta", "FieldDelta"]
