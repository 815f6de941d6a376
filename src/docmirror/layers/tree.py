"""Id-indexed arena of layer nodes mirroring a document's layer tree.

Nodes never hold references to each other. Each node records its parent id
and the ordered ids of its children; the tree owns the ``id -> node`` index.
Detaching a node removes its id from the parent's child list and leaves the
node (and its subtree) parked in the arena until it is reinserted or purged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from docmirror.errors import LayerChangeError
from docmirror.layers.changes import ChangeType, ClassifiedChange
from docmirror.protocol.records import LayerChangeDirective, LayerId


logger = logging.getLogger(__name__)

GROUP_KIND = "layerSection"
_STRUCTURAL_KEYS = frozenset({"id", "name", "type", "index", "layers", "added", "removed"})


@dataclass(eq=False)
class LayerNode:
    layer_id: LayerId
    name: Optional[str] = None
    kind: str = "layer"
    group: bool = False
    properties: Dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[LayerId] = None
    children: List[LayerId] = field(default_factory=list)
    attached: bool = False

    def label(self) -> str:
        if self.name is None:
            return str(self.layer_id)
        return f"{self.layer_id}:{self.name}"


def _ordered_descriptions(descriptions: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    # stable: entries without an index keep their list position after indexed ones
    return sorted(
        descriptions,
        key=lambda item: (item.get("index") is None, item.get("index") or 0),
    )


class LayerTree:
    """Ordered layer hierarchy addressed by layer id."""

    def __init__(self) -> None:
        self._nodes: Dict[LayerId, LayerNode] = {}
        self._roots: List[LayerId] = []

    # ------------------------------------------------------------------
    @classmethod
    def build(cls, descriptions: Sequence[Mapping[str, Any]]) -> "LayerTree":
        """Build a tree from the nested layer descriptions of a full snapshot."""

        tree = cls()
        tree._build_children(None, descriptions)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("layer tree built: %s", tree.describe())
        return tree

    def _build_children(self, parent_id: Optional[LayerId], descriptions: Sequence[Mapping[str, Any]]) -> None:
        siblings = self._child_list(parent_id)
        for description in _ordered_descriptions(descriptions):
            if "id" not in description:
                raise ValueError("snapshot layer missing required key: id")
            layer_id = description["id"]
            if layer_id in self._nodes:
                raise ValueError(f"duplicate layer id in snapshot: {layer_id!r}")
            node = self._node_from_description(layer_id, description, group="layers" in description)
            node.parent_id = parent_id
            node.attached = True
            self._nodes[layer_id] = node
            siblings.append(layer_id)
            nested = description.get("layers")
            if nested:
                self._build_children(layer_id, nested)

    @staticmethod
    def _node_from_description(layer_id: LayerId, description: Mapping[str, Any], *, group: bool) -> LayerNode:
        kind = str(description.get("type", GROUP_KIND if group else "layer"))
        name = description.get("name")
        return LayerNode(
            layer_id=layer_id,
            name=str(name) if name is not None else None,
            kind=kind,
            group=group or kind == GROUP_KIND,
            properties={key: value for key, value in description.items() if key not in _STRUCTURAL_KEYS},
        )

    # ------------------------------------------------------------------
    def find(self, layer_id: LayerId) -> Optional[LayerNode]:
        """Return the node for ``layer_id`` when it is reachable from the root."""

        node = self._nodes.get(layer_id)
        current = node
        while current is not None:
            if not current.attached:
                return None
            if current.parent_id is None:
                return node
            current = self._nodes.get(current.parent_id)
        return None

    def index_of(self, layer_id: LayerId) -> Optional[int]:
        node = self.find(layer_id)
        if node is None:
            return None
        return self._child_list(node.parent_id).index(layer_id)

    def children_of(self, parent_id: Optional[LayerId] = None) -> Tuple[LayerId, ...]:
        return tuple(self._child_list(parent_id))

    def _child_list(self, parent_id: Optional[LayerId]) -> List[LayerId]:
        if parent_id is None:
            return self._roots
        parent = self.find(parent_id)
        if parent is None:
            raise LayerChangeError(f"Parent layer {parent_id!r} is not in the tree")
        return parent.children

    # ------------------------------------------------------------------
    def detach(self, layer_id: LayerId) -> LayerNode:
        """Remove ``layer_id`` from its parent's children, keeping its subtree intact."""

        node = self._nodes.get(layer_id)
        if node is None or not node.attached:
            raise LayerChangeError(f"Cannot detach layer {layer_id!r}: not attached")
        if node.parent_id is None:
            siblings = self._roots
        else:
            parent = self._nodes.get(node.parent_id)
            if parent is None:
                raise LayerChangeError(f"Parent layer {node.parent_id!r} of {layer_id!r} is missing")
            siblings = parent.children
        siblings.remove(layer_id)
        node.attached = False
        node.parent_id = None
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("layer detached: id=%r", layer_id)
        return node

    def insert(self, node: LayerNode, parent_id: Optional[LayerId], index: int) -> None:
        """Attach ``node`` under ``parent_id`` at position ``index``."""

        if node.attached:
            raise LayerChangeError(f"Layer {node.layer_id!r} is already attached")
        siblings = self._child_list(parent_id)
        if not 0 <= index <= len(siblings):
            raise LayerChangeError(
                f"Layer {node.layer_id!r} index {index} out of range for parent {parent_id!r} "
                f"with {len(siblings)} children"
            )
        siblings.insert(index, node.layer_id)
        node.parent_id = parent_id
        node.attached = True
        self._nodes[node.layer_id] = node
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("layer inserted: id=%r parent=%r index=%d", node.layer_id, parent_id, index)

    def create(self, directive: LayerChangeDirective) -> LayerNode:
        """Create a detached node for an added layer."""

        existing = self._nodes.get(directive.layer_id)
        if existing is not None and existing.attached:
            raise LayerChangeError(f"Added layer {directive.layer_id!r} already exists")
        return self._node_from_description(
            directive.layer_id,
            directive.description,
            group=directive.layers is not None,
        )

    def purge(self, layer_id: LayerId) -> None:
        """Drop a detached node and whatever is still nested under it."""

        node = self._nodes.get(layer_id)
        if node is None or node.attached:
            return
        pending = [node]
        while pending:
            current = pending.pop()
            self._nodes.pop(current.layer_id, None)
            for child_id in current.children:
                child = self._nodes.get(child_id)
                if child is not None and child.parent_id == current.layer_id:
                    pending.append(child)

    # ------------------------------------------------------------------
    def apply_classified_changes(
        self,
        changes: Mapping[LayerId, ClassifiedChange],
        directives: Sequence[LayerChangeDirective],
    ) -> None:
        """Insert added and moved layers at their declared indices.

        Expects every non-added entry of ``changes`` to be detached already.
        Removed entries are purged from the arena once placement is done.
        """

        self._apply_level(None, directives, changes)
        for change in changes.values():
            if change.type is ChangeType.REMOVED:
                self.purge(change.layer_id)

    def _apply_level(
        self,
        parent_id: Optional[LayerId],
        directives: Sequence[LayerChangeDirective],
        changes: Mapping[LayerId, ClassifiedChange],
    ) -> None:
        positioned = sorted(
            (directive for directive in directives if directive.has_index),
            key=lambda directive: directive.index,
        )
        for directive in positioned:
            change = changes.get(directive.layer_id)
            # phantom removals and directives overridden by a later duplicate
            if change is None or change.directive is not directive:
                continue
            if change.type is ChangeType.REMOVED:
                continue
            if change.type is ChangeType.ADDED:
                node = self.create(directive)
            elif change.type is ChangeType.MOVED:
                node = change.node
            else:
                raise LayerChangeError(f"Unknown layer change type: {change.type!r}")
            self.insert(node, parent_id, directive.index)

        for directive in directives:
            if directive.layers is None or directive.removed:
                continue
            if self.find(directive.layer_id) is None:
                raise LayerChangeError(f"Changed group {directive.layer_id!r} is not in the tree")
            self._apply_level(directive.layer_id, tuple(directive.iter_nested()), changes)

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return sum(1 for _ in self.walk())

    def __contains__(self, layer_id: object) -> bool:
        return self.find(layer_id) is not None

    def __iter__(self) -> Iterator[LayerNode]:
        return self.walk()

    def walk(self, parent_id: Optional[LayerId] = None) -> Iterator[LayerNode]:
        """Depth-first, parent before children, in child order."""

        for layer_id in self._child_list(parent_id):
            node = self._nodes[layer_id]
            yield node
            if node.children:
                yield from self.walk(layer_id)

    def ids(self) -> Tuple[LayerId, ...]:
        return tuple(node.layer_id for node in self.walk())

    def describe(self, parent_id: Optional[LayerId] = None) -> str:
        parts = []
        for layer_id in self._child_list(parent_id):
            node = self._nodes[layer_id]
            text = node.label()
            if node.group:
                text += f" [{self.describe(layer_id)}]"
            parts.append(text)
        return ", ".join(parts)


__all__ = ["GROUP_KIND", "LayerNode", "LayerTree"]
