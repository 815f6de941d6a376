from __future__ import annotations

"""Debug/logging policy and validation toggles for document mirrors."""

import json
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Optional

from docmirror.utils.env import env_bool

logger = logging.getLogger(__name__)

DEBUG_ENV = "DOCMIRROR_DEBUG"
VALIDATE_ENV = "DOCMIRROR_VALIDATE_LAYERS"
LAYER_DEBUG_ENV = "DOCMIRROR_LAYER_DEBUG"
LAYER_LOGGER = "docmirror.layers"


@dataclass(frozen=True)
class MirrorPolicy:
    log_layer_debug: bool = False
    log_changes: bool = False
    log_stale_info: bool = True
    validate_layers: bool = True


_FLAG_MAP: dict[str, Iterable[str]] = {
    "layers": ("log_layer_debug",),
    "changes": ("log_changes",),
    "stale": ("log_stale_info",),
}

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _coerce_bool(value: object, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        val = value.strip().lower()
        if val in _TRUTHY:
            return True
        if val in _FALSY:
            return False
    return default


def _split_flags(raw: object) -> set[str]:
    result: set[str] = set()
    items: Iterable[object]
    if raw is None:
        return result
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, Iterable):
        items = raw
    else:
        return result
    for item in items:
        token = str(item).strip().lower()
        if token:
            result.add(token)
    return result


def _load_debug_config(env: Mapping[str, str]) -> tuple[bool, dict[str, object]]:
    raw = env.get(DEBUG_ENV)
    if raw is None:
        return False, {}
    raw_str = raw.strip()
    if raw_str.lower() in _FALSY:
        return False, {}
    if raw_str.lower() in _TRUTHY:
        return True, {}
    try:
        parsed = json.loads(raw_str)
    except ValueError:
        logger.debug("Failed to parse %s JSON; treating as flag list", DEBUG_ENV, exc_info=True)
        return True, {"flags": raw_str}
    if isinstance(parsed, dict):
        enabled = _coerce_bool(parsed.get("enabled", True), True)
        return enabled, parsed
    if isinstance(parsed, (list, tuple)):
        return True, {"flags": parsed}
    return True, {"flags": raw_str}


def load_mirror_policy(env: Optional[Mapping[str, str]] = None) -> MirrorPolicy:
    env = os.environ if env is None else env
    enabled, cfg = _load_debug_config(env)
    flags = _split_flags(cfg.get("flags"))

    defaults = MirrorPolicy()
    kwargs = {name: getattr(defaults, name) for name in MirrorPolicy.__annotations__.keys()}
    if enabled and flags:
        # an explicit flag list replaces the defaults
        for attrs in _FLAG_MAP.values():
            for attr in attrs:
                kwargs[attr] = False
        for flag, attrs in _FLAG_MAP.items():
            if flag in flags:
                for attr in attrs:
                    kwargs[attr] = True
    elif enabled:
        kwargs["log_layer_debug"] = True
        kwargs["log_changes"] = True

    validate = env_bool(VALIDATE_ENV, defaults.validate_layers, env=env)
    if "validate_layers" in cfg:
        validate = _coerce_bool(cfg["validate_layers"], validate)
    kwargs["validate_layers"] = validate

    return MirrorPolicy(**kwargs)


def maybe_enable_debug_logger(
    target: logging.Logger,
    env: Optional[Mapping[str, str]] = None,
    *,
    force: bool = False,
) -> bool:
    """Enable DEBUG logging for ``target`` when env requests it (or ``force`` is set)."""

    if not (force or env_bool(LAYER_DEBUG_ENV, False, env=env)):
        return False
    has_local = any(getattr(h, "_docmirror_local", False) for h in target.handlers)
    if not has_local:
        handler = logging.StreamHandler()
        fmt = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
        handler.setFormatter(logging.Formatter(fmt))
        handler.setLevel(logging.DEBUG)
        setattr(handler, "_docmirror_local", True)
        target.addHandler(handler)
    target.setLevel(logging.DEBUG)
    target.propagate = False
    return True


def apply_logging_policy(policy: MirrorPolicy) -> None:
    """Route layer-engine DEBUG output to a local handler when the policy asks for it."""

    if policy.log_layer_debug:
        maybe_enable_debug_logger(logging.getLogger(LAYER_LOGGER), force=True)


__all__ = ["MirrorPolicy", "apply_logging_policy", "load_mirror_policy", "maybe_enable_debug_logger"]
