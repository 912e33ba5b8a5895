"""Submission normalizer: selection state <-> persisted record.

``normalize`` validates the in-editing values for the active mode
combination and produces the record handed to the persistence layer, with
enum values in their stored case and gated-off fields removed.
``denormalize`` is the inverse used to seed a session from a persisted
record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from metaconsole.forms.constants import (
    DEFAULT_ENUMS,
    LOAD_TYPE_STORED,
    VALIDATION_TYPE_DISPLAY,
    invert,
)
from metaconsole.forms.engine import mode_policy
from metaconsole.forms.engine.reconciler import join_columns, split_columns
from metaconsole.forms.models.field_metadata import (
    LOAD_TYPE,
    LOWER,
    VALIDATION_TYPE,
    FormManifest,
)
from metaconsole.lib.errors import ValidationError

logger = logging.getLogger(__name__)

_LOAD_TYPE_DISPLAY = invert(LOAD_TYPE_STORED)


@dataclass(frozen=True)
class SubmissionContext:
    """Live metadata of the resolved target table, when known.

    Column-reference checks are skipped for whatever is None.
    """

    target_columns: tuple[str, ...] | None = None
    target_date_columns: tuple[str, ...] | None = None


# =============================================================================
# Enum case mapping
# =============================================================================


def to_stored(kind: str, value: Any) -> Any:
    """Map a display-case enum value to its stored form.

    >>> to_stored("load_type", "Truncate")
    'truncate_load'
    >>> to_stored("validation_type", "Not Null")
    'NOT_NULL'
    """
    if value is None:
        return None
    text = str(value).strip()
    if kind == LOAD_TYPE:
        for display, stored in LOAD_TYPE_STORED.items():
            if text.lower() in (display.lower(), stored):
                return stored
        return text.lower()
    if kind == VALIDATION_TYPE:
        for stored, display in VALIDATION_TYPE_DISPLAY.items():
            if text.lower() in (stored.lower(), display.lower()):
                return stored
        return text.upper().replace(" ", "_")
    return text.lower()


def to_display(kind: str, value: Any, options: Sequence[str] = ()) -> Any:
    """Map a stored enum value back to the case shown on the form.

    Lower-cased values are matched case-insensitively against ``options``
    (the field's enum catalog) and left as stored when nothing matches.
    """
    if value is None:
        return None
    text = str(value).strip()
    if kind == LOAD_TYPE:
        if text.lower() in _LOAD_TYPE_DISPLAY:
            return _LOAD_TYPE_DISPLAY[text.lower()]
        options = tuple(LOAD_TYPE_STORED)
    elif kind == VALIDATION_TYPE:
        for stored, display in VALIDATION_TYPE_DISPLAY.items():
            if text.lower() in (stored.lower(), display.lower()):
                return display
        return text
    for option in options:
        if option.lower() == text.lower():
            return option
    return text


# =============================================================================
# Helpers
# =============================================================================


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _looks_integral(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.strip().lstrip("-").isdigit()


def _check_columns(
    manifest: FormManifest,
    values: dict[str, Any],
    relevant: Mapping[str, bool],
    context: SubmissionContext,
    add: Callable[[str, str], None],
) -> None:
    chain = manifest.column_chain()
    if chain is None:
        return
    table = values.get(chain.table_field) or "the target table"
    live = set(context.target_columns) if context.target_columns is not None else None

    for name in chain.multi_column_fields:
        if not relevant[name] or values[name] is None:
            continue
        columns = split_columns(values[name], unique=False)
        if name != manifest.change_detection_field:
            duplicates = sorted({c for c in columns if columns.count(c) > 1})
            if duplicates:
                add(name, f"Columns listed more than once: {', '.join(duplicates)}")
        if live is not None:
            missing = [c for c in dict.fromkeys(columns) if c not in live]
            if missing:
                add(name, f"Not columns of {table}: {', '.join(missing)}")
        values[name] = join_columns(columns)

    if chain.column_field and relevant[chain.column_field] and live is not None:
        value = values[chain.column_field]
        if value is not None and value not in live:
            add(chain.column_field, f"{value} is not a column of {table}")

    if context.target_date_columns is not None:
        date_columns = set(context.target_date_columns)
        for name in chain.date_column_fields:
            value = values[name]
            if relevant[name] and value is not None and value not in date_columns:
                add(name, f"{value} is not a date, datetime or timestamp column of {table}")


def _pydantic_field_errors(error: PydanticValidationError) -> dict[str, list[str]]:
    field_errors: dict[str, list[str]] = {}
    for item in error.errors():
        name = str(item["loc"][0]) if item.get("loc") else "record"
        field_errors.setdefault(name, []).append(item["msg"])
    return field_errors


# =============================================================================
# Public API
# =============================================================================


def normalize(
    manifest: FormManifest,
    values: Mapping[str, Any],
    context: SubmissionContext | None = None,
) -> BaseModel:
    """Validate form values and build the persisted record.

    Args:
        manifest: Form being submitted
        values: Current selection state values (display case)
        context: Live metadata for column-reference checks

    Returns:
        An instance of ``manifest.record_model``

    Raises:
        ValidationError: Per-field issues; nothing should be persisted
    """
    context = context or SubmissionContext()
    cleaned = {name: _clean(values.get(name)) for name in manifest.fields}
    relevant = mode_policy.relevant_fields(manifest, cleaned)
    field_errors: dict[str, list[str]] = {}

    def add(name: str, message: str) -> None:
        field_errors.setdefault(name, []).append(message)

    for name in mode_policy.required_fields(manifest, cleaned):
        if cleaned[name] is None:
            add(name, "Required for the selected options")

    for chain in manifest.chains:
        for name in chain.members:
            if not relevant[name] or cleaned[name] is None:
                continue
            missing = [a for a in chain.ancestors(name) if cleaned[a] is None]
            if missing:
                add(name, f"Set {', '.join(missing)} first")

    if manifest.load_type_field:
        reason = mode_policy.rejection_reason(
            manifest, cleaned, manifest.load_type_field, cleaned[manifest.load_type_field]
        )
        if reason:
            add(manifest.load_type_field, reason)

    for name in manifest.integer_fields:
        value = cleaned[name]
        if not relevant[name] or value is None:
            continue
        if _looks_integral(value):
            cleaned[name] = int(value)
        else:
            add(name, "Must be a whole number")

    _check_columns(manifest, cleaned, relevant, context, add)

    if field_errors:
        raise ValidationError(
            f"Cannot submit {manifest.title.lower()}",
            form=manifest.name,
            field_errors=field_errors,
        )

    payload = {}
    for name in manifest.fields:
        value = cleaned[name] if relevant[name] else None
        if value is None:
            continue
        kind = manifest.stored_case.get(name)
        payload[name] = to_stored(kind, value) if kind else value

    try:
        return manifest.record_model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Cannot submit {manifest.title.lower()}",
            form=manifest.name,
            field_errors=_pydantic_field_errors(e),
        ) from e


def denormalize(
    manifest: FormManifest,
    record: BaseModel | Mapping[str, Any],
    enums: Mapping[str, Sequence[str]] | None = None,
) -> dict[str, Any]:
    """Turn a persisted record back into form values.

    Args:
        manifest: Form the record belongs to
        record: Record model or raw row mapping
        enums: Enum catalogs used to restore display case; defaults to the
            built-in catalogs

    Returns:
        Field values in display case; columns the form does not know are
        ignored
    """
    data = record.model_dump() if isinstance(record, BaseModel) else dict(record)
    enums = DEFAULT_ENUMS if enums is None else enums

    values: dict[str, Any] = {}
    for name in manifest.fields:
        value = _clean(data.get(name))
        kind = manifest.stored_case.get(name)
        if kind and value is not None:
            catalog = enums.get(manifest.enum_fields.get(name, ""), ())
            value = to_display(kind, value, catalog)
        if name in manifest.integer_fields and _looks_integral(value):
            value = int(value)
        values[name] = value

    unknown = sorted(set(data) - set(manifest.fields))
    if unknown:
        logger.debug("Ignoring columns not on the %s form: %s", manifest.name, ", ".join(unknown))
    return values
