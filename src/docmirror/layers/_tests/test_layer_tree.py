from __future__ import annotations

import pytest

from docmirror.errors import LayerChangeError
from docmirror.layers.tree import GROUP_KIND, LayerTree
from docmirror.protocol.records import LayerChangeDirective


def make_tree() -> LayerTree:
    return LayerTree.build(
        [
            {"id": 1, "index": 0, "name": "A"},
            {
                "id": 2,
                "index": 1,
                "name": "Group",
                "type": GROUP_KIND,
                "layers": [
                    {"id": 3, "index": 0, "name": "B"},
                    {"id": 4, "index": 1, "name": "C"},
                ],
            },
            {"id": 5, "index": 2, "name": "D", "visible": False},
        ]
    )


def test_build_mirrors_nested_order() -> None:
    tree = make_tree()

    assert tree.ids() == (1, 2, 3, 4, 5)
    assert tree.children_of() == (1, 2, 5)
    assert tree.children_of(2) == (3, 4)
    assert tree.index_of(4) == 1
    assert tree.find(3).parent_id == 2
    assert tree.find(99) is None
    assert len(tree) == 5


def test_build_orders_siblings_by_declared_index() -> None:
    tree = LayerTree.build([{"id": "b", "index": 1}, {"id": "a", "index": 0}])

    assert tree.children_of() == ("a", "b")


def test_build_splits_properties_from_structure() -> None:
    tree = make_tree()

    node = tree.find(5)
    assert node.name == "D"
    assert node.kind == "layer"
    assert node.group is False
    assert node.properties == {"visible": False}
    assert tree.find(2).group is True


def test_build_rejects_duplicate_ids() -> None:
    with pytest.raises(ValueError, match="duplicate"):
        LayerTree.build([{"id": 1}, {"id": 2, "layers": [{"id": 1}]}])


def test_describe_renders_groups_inline() -> None:
    assert make_tree().describe() == "1:A, 2:Group [3:B, 4:C], 5:D"


def test_detach_hides_whole_subtree() -> None:
    tree = make_tree()

    node = tree.detach(2)

    assert node.attached is False
    assert tree.children_of() == (1, 5)
    assert tree.find(2) is None
    assert 3 not in tree
    assert tree.index_of(4) is None
    assert len(tree) == 2


def test_insert_reattaches_subtree_at_index() -> None:
    tree = make_tree()
    node = tree.detach(2)

    tree.insert(node, None, 0)

    assert tree.children_of() == (2, 1, 5)
    assert tree.index_of(2) == 0
    assert tree.find(3) is not None
    assert tree.ids() == (2, 3, 4, 1, 5)


def test_insert_rejects_out_of_range_index() -> None:
    tree = make_tree()
    node = tree.detach(1)

    with pytest.raises(LayerChangeError, match="out of range"):
        tree.insert(node, None, 5)


def test_insert_rejects_attached_node_and_missing_parent() -> None:
    tree = make_tree()

    with pytest.raises(LayerChangeError):
        tree.insert(tree.find(1), None, 0)

    node = tree.detach(1)
    with pytest.raises(LayerChangeError, match="not in the tree"):
        tree.insert(node, 42, 0)


def test_detach_twice_is_an_error() -> None:
    tree = make_tree()
    tree.detach(1)

    with pytest.raises(LayerChangeError):
        tree.detach(1)


def test_purge_drops_detached_subtree() -> None:
    tree = make_tree()
    tree.detach(2)

    tree.purge(2)

    # nested layers went with the group
    with pytest.raises(LayerChangeError):
        tree.detach(3)
    assert tree.ids() == (1, 5)


def test_purge_ignores_attached_layers() -> None:
    tree = make_tree()

    tree.purge(1)

    assert tree.index_of(1) == 0


def test_create_builds_detached_node_from_directive() -> None:
    tree = make_tree()
    directive = LayerChangeDirective.from_dict(
        {"id": 9, "index": 0, "added": True, "name": "New", "type": GROUP_KIND, "layers": []}
    )

    node = tree.create(directive)

    assert node.attached is False
    assert node.group is True
    assert node.name == "New"
    assert tree.find(9) is None


def test_create_rejects_existing_layer() -> None:
    tree = make_tree()
    directive = LayerChangeDirective.from_dict({"id": 1, "index": 0, "added": True})

    with pytest.raises(LayerChangeError, match="already exists"):
        tree.create(directive)
