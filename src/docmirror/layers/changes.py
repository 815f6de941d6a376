"""Classify nested layer change directives against the current tree."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional, Sequence

from docmirror.errors import LayerChangeError
from docmirror.protocol.records import LayerChangeDirective, LayerId

if TYPE_CHECKING:  # pragma: no cover - typing only
    from docmirror.layers.tree import LayerNode, LayerTree


logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MOVED = "moved"


@dataclass(frozen=True)
class ClassifiedChange:
    """Resolved form of one positional directive."""

    layer_id: LayerId
    type: ChangeType
    index: Optional[int]
    directive: LayerChangeDirective
    node: Optional["LayerNode"] = None


ClassifiedChanges = Dict[LayerId, ClassifiedChange]


def classify_layer_changes(tree: "LayerTree", directives: Sequence[LayerChangeDirective]) -> ClassifiedChanges:
    """Flatten ``directives`` into one classified entry per layer id.

    Nested directives are classified before their parent. When the same id
    appears more than once the last occurrence wins.
    """

    classified: ClassifiedChanges = {}
    for directive in directives:
        if directive.layers is not None:
            _merge(classified, classify_layer_changes(tree, directive.layers))
        if not directive.is_positional:
            continue
        change = _classify_directive(tree, directive)
        if change is not None:
            _merge(classified, {change.layer_id: change})
    return classified


def _classify_directive(tree: "LayerTree", directive: LayerChangeDirective) -> Optional[ClassifiedChange]:
    layer_id = directive.layer_id
    if directive.added:
        return ClassifiedChange(
            layer_id=layer_id,
            type=ChangeType.ADDED,
            index=directive.index,
            directive=directive,
        )

    node = tree.find(layer_id)
    if node is None:
        if directive.removed:
            # phantom section/group end marker, never a real node
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("ignoring removal of phantom layer: id=%r", layer_id)
            return None
        raise LayerChangeError(f"Can't find changed layer: {layer_id!r}")

    return ClassifiedChange(
        layer_id=layer_id,
        type=ChangeType.REMOVED if directive.removed else ChangeType.MOVED,
        index=directive.index,
        directive=directive,
        node=node,
    )


def _merge(target: ClassifiedChanges, incoming: ClassifiedChanges) -> None:
    for layer_id, change in incoming.items():
        previous = target.get(layer_id)
        if previous is not None:
            # TODO: reject duplicates once the source is confirmed to never repeat an id per change
            logger.warning(
                "duplicate layer change for id=%r: %s@%s replaced by %s@%s",
                layer_id,
                previous.type.value,
                previous.index,
                change.type.value,
                change.index,
            )
        target[layer_id] = change


__all__ = ["ChangeType", "ClassifiedChange", "ClassifiedChanges", "classify_layer_changes"]
