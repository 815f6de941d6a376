from __future__ import annotations

import logging

import pytest

from docmirror.config import (
    LAYER_LOGGER,
    MirrorPolicy,
    apply_logging_policy,
    load_mirror_policy,
    maybe_enable_debug_logger,
)


def test_defaults_without_env() -> None:
    assert load_mirror_policy({}) == MirrorPolicy()
    assert MirrorPolicy().validate_layers is True
    assert MirrorPolicy().log_stale_info is True


def test_truthy_debug_enables_layer_and_change_logging() -> None:
    policy = load_mirror_policy({"DOCMIRROR_DEBUG": "1"})

    assert policy.log_layer_debug is True
    assert policy.log_changes is True


def test_falsy_debug_keeps_defaults() -> None:
    assert load_mirror_policy({"DOCMIRROR_DEBUG": "off"}) == MirrorPolicy()


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("layers,changes", (True, True, False)),
        ("stale", (False, False, True)),
        ('["layers"]', (True, False, False)),
    ],
)
def test_flag_lists_select_toggles(raw, expected) -> None:
    policy = load_mirror_policy({"DOCMIRROR_DEBUG": raw})

    assert (policy.log_layer_debug, policy.log_changes, policy.log_stale_info) == expected


def test_json_config_controls_validation() -> None:
    policy = load_mirror_policy(
        {
            "DOCMIRROR_DEBUG": '{"flags": ["changes"], "validate_layers": false}',
            "DOCMIRROR_VALIDATE_LAYERS": "1",
        }
    )

    assert policy.log_changes is True
    assert policy.log_layer_debug is False
    assert policy.validate_layers is False


def test_validation_env_toggle() -> None:
    assert load_mirror_policy({"DOCMIRROR_VALIDATE_LAYERS": "0"}).validate_layers is False
    assert load_mirror_policy({"DOCMIRROR_VALIDATE_LAYERS": "maybe"}).validate_layers is True


def test_policy_reads_process_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCMIRROR_VALIDATE_LAYERS", "no")
    monkeypatch.delenv("DOCMIRROR_DEBUG", raising=False)

    assert load_mirror_policy().validate_layers is False


def test_debug_logger_attaches_single_handler() -> None:
    target = logging.getLogger("docmirror._tests.debug_logger")
    env = {"DOCMIRROR_LAYER_DEBUG": "yes"}
    try:
        assert maybe_enable_debug_logger(target, env) is True
        assert maybe_enable_debug_logger(target, env) is True

        assert target.level == logging.DEBUG
        assert target.propagate is False
        assert len(target.handlers) == 1
    finally:
        for handler in list(target.handlers):
            target.removeHandler(handler)
        target.propagate = True
        target.setLevel(logging.NOTSET)


def test_debug_logger_left_alone_without_env() -> None:
    target = logging.getLogger("docmirror._tests.quiet_logger")

    assert maybe_enable_debug_logger(target, {}) is False
    assert target.handlers == []


@pytest.fixture
def layer_logger():
    target = logging.getLogger(LAYER_LOGGER)
    handlers, level, propagate = list(target.handlers), target.level, target.propagate
    try:
        yield target
    finally:
        for handler in list(target.handlers):
            if handler not in handlers:
                target.removeHandler(handler)
        target.setLevel(level)
        target.propagate = propagate


def test_layer_flag_turns_on_layer_debug_logging(layer_logger: logging.Logger) -> None:
    apply_logging_policy(load_mirror_policy({"DOCMIRROR_DEBUG": "layers"}))

    assert layer_logger.level == logging.DEBUG
    assert logging.getLogger("docmirror.layers.changes").isEnabledFor(logging.DEBUG)
    assert logging.getLogger("docmirror.layers.reconcile").isEnabledFor(logging.DEBUG)
    assert any(getattr(h, "_docmirror_local", False) for h in layer_logger.handlers)


def test_logging_policy_without_layer_flag_is_a_no_op(layer_logger: logging.Logger) -> None:
    before = list(layer_logger.handlers), layer_logger.level

    apply_logging_policy(load_mirror_policy({"DOCMIRROR_DEBUG": "changes"}))

    assert (list(layer_logger.handlers), layer_logger.level) == before
