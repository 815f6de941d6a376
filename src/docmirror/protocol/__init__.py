"""Inbound record shapes for document mirrors."""

from __future__ import annotations

from .records import *  # noqa: F401,F403

__all__ = [name for name in globals().keys() if not name.startswith("_")]
