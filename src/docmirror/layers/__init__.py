"""Layer tree mirror and the change engine that patches it."""

import logging

from docmirror.config import maybe_enable_debug_logger

from .changes import ChangeType, ClassifiedChange, classify_layer_changes
from .reconcile import (
    LayerChangeSummary,
    apply_layer_changes,
    detach_changed_layers,
    reconcile_layer_changes,
    validate_layer_changes,
)
from .tree import GROUP_KIND, LayerNode, LayerTree

# DOCMIRROR_LAYER_DEBUG covers tree, changes and reconcile through this parent logger
maybe_enable_debug_logger(logging.getLogger(__name__))

__all__ = [
    "ChangeType",
    "ClassifiedChange",
    "GROUP_KIND",
    "LayerChangeSummary",
    "LayerNode",
    "LayerTree",
    "apply_layer_changes",
    "classify_layer_changes",
    "detach_changed_layers",
    "reconcile_layer_changes",
    "validate_layer_changes",
]
