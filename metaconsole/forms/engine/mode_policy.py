"""Mode policy: legal mode values and the fields each mode switches on.

Mode fields (execution layer, load type, source/target type, validation
type, reconciliation type) gate other fields. A gated-off field keeps its
value in the selection state so flipping the mode back restores it, but it
is treated as unset at submission.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Mapping

from metaconsole.forms.constants import LOAD_TYPES, LOAD_TYPES_BY_LAYER, is_file_type
from metaconsole.forms.models.field_metadata import ChainSpec, FormManifest
from metaconsole.forms.models.field_value import is_unset


def legal_load_types(layer: str | None) -> tuple[str, ...]:
    """Load types the given execution layer accepts.

    Args:
        layer: Execution layer in display case, or None

    Returns:
        Legal load types in catalog order
    """
    if not layer:
        return LOAD_TYPES
    return LOAD_TYPES_BY_LAYER.get(layer, LOAD_TYPES)


def is_file_branch(chain: ChainSpec, values: Mapping[str, Any]) -> bool:
    """Check if the chain currently points at a file instead of a table."""
    return chain.type_field is not None and is_file_type(values.get(chain.type_field))


def relevant_fields(manifest: FormManifest, values: Mapping[str, Any]) -> dict[str, bool]:
    """Decide, per field, whether the current modes switch it on.

    A field named by gate rules is relevant when any of its rules is on.
    Chain fields follow the chain's type: table-side fields are off for a
    File chain, file fields are on only for a File chain.
    """
    relevant = {name: True for name in manifest.fields}

    rules_by_field = defaultdict(list)
    for rule in manifest.gates:
        for name in rule.fields:
            rules_by_field[name].append(rule)
    for name, rules in rules_by_field.items():
        relevant[name] = any(rule.is_on(values) for rule in rules)

    for chain in manifest.chains:
        if is_file_branch(chain, values):
            for name in chain.table_fields:
                relevant[name] = False
        else:
            for name in chain.file_fields:
                relevant[name] = False

    return relevant


def required_fields(manifest: FormManifest, values: Mapping[str, Any]) -> list[str]:
    """Fields that must be set for the current mode combination.

    Returned in manifest order. Only relevant fields are ever required.
    """
    relevant = relevant_fields(manifest, values)
    required = set(manifest.always_required)

    for rule in manifest.gates:
        if rule.is_on(values):
            required.update(rule.required)

    for chain in manifest.chains:
        if is_file_branch(chain, values):
            required.update(chain.required_file_fields)
        elif chain.required:
            required.update((chain.connection_field, chain.schema_field, chain.table_field))
            if chain.system_required:
                required.add(chain.system_field)

    return [name for name in manifest.fields if name in required and relevant[name]]


def rejection_reason(
    manifest: FormManifest,
    values: Mapping[str, Any],
    field_name: str,
    value: Any,
) -> str | None:
    """Explain why ``value`` may not be selected for ``field_name``, if so."""
    if is_unset(value) or field_name != manifest.load_type_field:
        return None
    layer = values.get(manifest.layer_field) if manifest.layer_field else None
    legal = legal_load_types(layer)
    if value not in legal:
        return f"{value} is not allowed for the {layer} layer; choose one of {', '.join(legal)}"
    return None


def invalidated_by(
    manifest: FormManifest,
    values: Mapping[str, Any],
    field_name: str,
    value: Any,
) -> list[str]:
    """Mode fields whose current value becomes illegal when a mode changes.

    Only the execution layer constrains another mode today: switching to a
    layer that does not accept the selected load type invalidates it.
    """
    if field_name != manifest.layer_field or not manifest.load_type_field:
        return []
    load_type = values.get(manifest.load_type_field)
    if is_unset(load_type):
        return []
    if load_type not in legal_load_types(value):
        return [manifest.load_type_field]
    return []
