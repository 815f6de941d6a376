"""Detach, apply and validate classified layer changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Sequence

from docmirror.errors import LayerChangeError, LayerValidationError
from docmirror.layers.changes import ChangeType, ClassifiedChange, classify_layer_changes
from docmirror.layers.tree import LayerNode, LayerTree
from docmirror.protocol.records import LayerChangeDirective, LayerId


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayerChangeSummary:
    """Partition of one layer change into added/removed/moved nodes."""

    added: Mapping[LayerId, LayerNode] = field(default_factory=dict)
    removed: Mapping[LayerId, LayerNode] = field(default_factory=dict)
    moved: Mapping[LayerId, LayerNode] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("added", "removed", "moved"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.moved)


def _detach_order(change: ClassifiedChange) -> tuple:
    index = change.index
    return (index is None, index if index is not None else 0)


def detach_changed_layers(tree: LayerTree, changes: Mapping[LayerId, ClassifiedChange]) -> None:
    """Detach every removed or moved layer, in ascending declared index."""

    for change in sorted(changes.values(), key=_detach_order):
        if change.type is ChangeType.ADDED:
            continue
        tree.detach(change.layer_id)


def validate_layer_changes(tree: LayerTree, directives: Sequence[LayerChangeDirective]) -> None:
    """Check every indexed directive against the tree, recursing into groups."""

    for directive in directives:
        if directive.has_index:
            layer_id = directive.layer_id
            index = tree.index_of(layer_id)
            if directive.removed:
                if index is not None:
                    raise LayerValidationError(f"Removed layer {layer_id!r} still exists at index {index}")
            elif index != directive.index:
                raise LayerValidationError(f"Layer {layer_id!r} has index {index} instead of {directive.index}")
        if directive.layers is not None:
            validate_layer_changes(tree, tuple(directive.iter_nested()))


def reconcile_layer_changes(
    tree: LayerTree,
    changes: Mapping[LayerId, ClassifiedChange],
    directives: Sequence[LayerChangeDirective],
    *,
    validate: bool = True,
) -> LayerChangeSummary:
    """Run detach -> apply -> validate and partition the classified changes."""

    detach_changed_layers(tree, changes)
    tree.apply_classified_changes(changes, directives)
    if validate:
        validate_layer_changes(tree, directives)

    added: Dict[LayerId, LayerNode] = {}
    removed: Dict[LayerId, LayerNode] = {}
    moved: Dict[LayerId, LayerNode] = {}
    for layer_id, change in changes.items():
        if change.type is ChangeType.ADDED:
            node = tree.find(layer_id)
            if node is None:
                raise LayerChangeError(f"Added layer {layer_id!r} was not placed in the tree")
            added[layer_id] = node
        elif change.type is ChangeType.REMOVED:
            removed[layer_id] = change.node
        elif change.type is ChangeType.MOVED:
            moved[layer_id] = change.node
        else:
            raise LayerChangeError(f"Unknown layer change type: {change.type!r}")

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "layer changes reconciled: added=%s removed=%s moved=%s",
            tuple(added),
            tuple(removed),
            tuple(moved),
        )
    return LayerChangeSummary(added=added, removed=removed, moved=moved)


def apply_layer_changes(
    tree: LayerTree,
    directives: Sequence[LayerChangeDirective],
    *,
    validate: bool = True,
) -> LayerChangeSummary:
    """Classify ``directives`` against ``tree`` and reconcile them in one step."""

    changes = classify_layer_changes(tree, directives)
    return reconcile_layer_changes(tree, changes, directives, validate=validate)


__all__ = [
    "LayerChangeSummary",
    "apply_layer_changes",
    "detach_changed_layers",
    "reconcile_layer_changes",
    "validate_layer_changes",
]
