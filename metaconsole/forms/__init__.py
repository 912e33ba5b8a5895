"""Cascading configuration dependency & consistency engine.

This package drives the pipeline, reconciliation, data-quality and
data-dictionary forms: it keeps dependent choices (connection -> schema ->
table -> column) consistent, gates fields on mode selections, reconciles
change-detection columns against live tables, and normalizes records for
storage.

Usage:
    python -m metaconsole.forms forms                      # List forms
    python -m metaconsole.forms check record.yaml --form pipeline --catalog catalog.yaml
"""

from __future__ import annotations

__all__ = [
    "FormSession",
    "SelectionState",
    "YamlCatalogProvider",
    "get_manifest",
]


def __getattr__(name: str):
    """Lazy import of form components."""
    if name == "FormSession":
        from metaconsole.forms.session import FormSession
        return FormSession
    if name == "SelectionState":
        from metaconsole.forms.models.selection_state import SelectionState
        return SelectionState
    if name == "YamlCatalogProvider":
        from metaconsole.forms.utils.yaml_catalog import YamlCatalogProvider
        return YamlCatalogProvider
    if name == "get_manifest":
        from metaconsole.forms.models.field_metadata import get_manifest
        return get_manifest
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
