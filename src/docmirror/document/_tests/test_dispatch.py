from __future__ import annotations

import pytest

from docmirror.config import MirrorPolicy
from docmirror.document.dispatch import DocumentChangeDispatcher
from docmirror.document.state import Document


def make_document() -> Document:
    return Document.from_snapshot(
        {
            "id": "doc",
            "version": 1,
            "count": 0,
            "timeStamp": 0,
            "bounds": {"w": 1},
            "layers": [{"id": 1, "index": 0}, {"id": 2, "index": 1}],
        },
        policy=MirrorPolicy(),
    )


def change(count: int, **fields):
    payload = {"id": "doc", "version": 1, "count": count, "timeStamp": count}
    payload.update(fields)
    return payload


def test_global_listeners_run_before_field_listeners() -> None:
    dispatcher = DocumentChangeDispatcher()
    document = make_document()
    calls = []

    dispatcher.add_listener(lambda doc, name, delta: calls.append(("layers", name)), field="layers")
    dispatcher.add_listener(lambda doc, name, delta: calls.append(("bounds", delta.previous)), field="bounds")
    dispatcher.add_listener(lambda doc, delta: calls.append(("all", tuple(delta))))

    delta = document.apply_change(change(1, bounds={"w": 2}, layers=[{"id": 2, "index": 0}]))
    dispatcher.dispatch(document, delta)

    assert calls == [
        ("all", ("bounds", "layers")),
        ("bounds", {"w": 1}),
        ("layers", "layers"),
    ]


def test_listeners_register_once_and_can_be_removed() -> None:
    dispatcher = DocumentChangeDispatcher()
    document = make_document()
    seen = []

    def on_change(doc, delta):
        seen.append(delta.count)

    def on_bounds(doc, name, delta):
        seen.append(name)

    dispatcher.add_listener(on_change)
    dispatcher.add_listener(on_change)
    dispatcher.add_listener(on_bounds, field="bounds")

    dispatcher.dispatch(document, document.apply_change(change(1, bounds={"w": 3})))
    assert seen == [1, "bounds"]

    dispatcher.remove_listener(on_change)
    dispatcher.remove_listener(on_bounds, field="bounds")
    dispatcher.dispatch(document, document.apply_change(change(2, bounds={"w": 4})))
    assert seen == [1, "bounds"]


def test_listener_errors_propagate() -> None:
    dispatcher = DocumentChangeDispatcher()
    document = make_document()

    def explode(doc, delta):
        raise RuntimeError("listener failed")

    dispatcher.add_listener(explode)

    with pytest.raises(RuntimeError, match="listener failed"):
        dispatcher.dispatch(document, document.apply_change(change(1, bounds={"w": 5})))
