"""Dependency resolver for the cascading form fields.

A pure reducer: given the current field values and one edit, it returns the
values after the edit together with every field the edit invalidated. It
also answers which fields are enabled and which metadata lookups their
choice lists depend on. Nothing here performs I/O or mutates its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Mapping, Sequence

from metaconsole.forms.constants import SYSTEM_ALIASES
from metaconsole.forms.engine import mode_policy
from metaconsole.forms.models.field_metadata import ChainSpec, FormManifest
from metaconsole.forms.models.field_value import is_unset
from metaconsole.forms.utils.metadata_provider import Connection

# Choice request kinds
ENUM = "enum"
CONNECTIONS = "connections"
SCHEMAS = "schemas"
TABLES = "tables"
COLUMNS = "columns"
DATE_COLUMNS = "date_columns"


@dataclass(frozen=True)
class Transition:
    """Outcome of one edit.

    Attributes:
        field: The edited field
        value: Value the field holds afterwards (None when rejected)
        values: Every field's value after the edit
        clears: Fields cleared as a consequence, in chain order
        rejected: Why the requested value was refused, if it was
    """

    field: str
    value: Any
    values: dict[str, Any]
    clears: tuple[str, ...] = ()
    rejected: str | None = None

    @property
    def accepted(self) -> bool:
        return self.rejected is None

    @property
    def changes(self) -> dict[str, Any]:
        """Writes to apply to the selection state."""
        changes = {self.field: self.value}
        for name in self.clears:
            changes[name] = None
        return changes


@dataclass(frozen=True)
class ChoiceRequest:
    """A metadata lookup an enabled field's choice list depends on."""

    field: str
    kind: str
    args: tuple[Hashable, ...] = ()

    @property
    def key(self) -> tuple[Hashable, ...]:
        return (self.kind, *self.args)


def _system_matches(label: str, connection_type: str, aliases: Mapping[str, Iterable[str]]) -> bool:
    if connection_type.lower() == label.lower():
        return True
    for alias_label, accepted in aliases.items():
        if alias_label.lower() == label.lower():
            return connection_type.lower() in {a.lower() for a in accepted}
    return False


def connection_is_eligible(
    connection: Connection,
    system: str | None,
    aliases: Mapping[str, Iterable[str]] | None = None,
) -> bool:
    """Check a connection's stored type against a selected system.

    Matching is exact and case-insensitive, plus the alias table (a system
    label may accept other stored connection types, e.g. BigQuery accepts
    GCP). With no system selected nothing is eligible.
    """
    if is_unset(system):
        return False
    aliases = SYSTEM_ALIASES if aliases is None else aliases
    return _system_matches(str(system), connection.type or "", aliases)


def eligible_connections(
    chain: ChainSpec,
    connections: Sequence[Connection],
    system: str | None,
    aliases: Mapping[str, Iterable[str]] | None = None,
) -> list[Connection]:
    """Connections the chain may pick for the selected system.

    Chains that do not require a system offer every connection until one is
    chosen.
    """
    if is_unset(system) and not chain.system_required:
        return list(connections)
    return [c for c in connections if connection_is_eligible(c, system, aliases)]


def _find_connection(connections: Sequence[Connection], connection_id: Any) -> Connection | None:
    for connection in connections:
        if str(connection.id) == str(connection_id):
            return connection
    return None


def _same_value(manifest: FormManifest, field: str, new_value: Any, current: Any) -> bool:
    if field in manifest.integer_fields and new_value is not None and current is not None:
        return str(new_value).strip() == str(current).strip()
    return new_value == current


def _system_change_clears(
    chain: ChainSpec,
    values: Mapping[str, Any],
    system: Any,
    connections: Sequence[Connection] | None,
    aliases: Mapping[str, Iterable[str]] | None,
) -> tuple[str, ...]:
    current = values.get(chain.connection_field)
    if is_unset(current):
        return chain.descendants(chain.system_field)
    if connections is None:
        # Eligibility cannot be decided, so the chain is not trusted
        return chain.descendants(chain.system_field)
    connection = _find_connection(connections, current)
    if connection is not None and eligible_connections(chain, [connection], system, aliases):
        return ()
    return chain.descendants(chain.system_field)


def _dependents(
    manifest: FormManifest,
    values: Mapping[str, Any],
    field_name: str,
    value: Any,
    connections: Sequence[Connection] | None,
    aliases: Mapping[str, Iterable[str]] | None,
) -> list[str]:
    dependents: list[str] = []
    for chain in manifest.chains:
        if field_name == chain.system_field:
            dependents.extend(_system_change_clears(chain, values, value, connections, aliases))
        elif field_name in chain.levels:
            dependents.extend(chain.descendants(field_name))
        elif field_name == chain.type_field and chain.clear_on_type_change:
            dependents.extend(chain.table_fields + chain.file_fields)
    dependents.extend(mode_policy.invalidated_by(manifest, values, field_name, value))
    return list(dict.fromkeys(dependents))


def reduce(
    manifest: FormManifest,
    values: Mapping[str, Any],
    field: str,
    value: Any,
    connections: Sequence[Connection] | None = None,
    aliases: Mapping[str, Iterable[str]] | None = None,
) -> Transition:
    """Apply one edit to ``values`` and cascade its consequences.

    Args:
        manifest: Form being edited
        values: Current field values (not modified)
        field: Field the user edited
        value: New value; "" and None both clear the field
        connections: Known connections, used to re-check eligibility when a
            system selector changes; None when not yet loaded
        aliases: System alias table; defaults to the built-in table

    Returns:
        The resulting Transition. Setting a field to its current value is a
        no-op with no clears; integer fields compare by their text, so 7 and
        "7" are the same connection.
    """
    manifest.check_field(field)
    new_value = None if is_unset(value) else value
    current = values.get(field)
    next_values = {name: values.get(name) for name in manifest.fields}

    if _same_value(manifest, field, new_value, current):
        return Transition(field, current, next_values)

    reason = mode_policy.rejection_reason(manifest, values, field, new_value)
    if reason:
        next_values[field] = None
        return Transition(field, None, next_values, rejected=reason)

    next_values[field] = new_value
    clears = []
    for name in _dependents(manifest, values, field, new_value, connections, aliases):
        if name != field and not is_unset(next_values.get(name)):
            next_values[name] = None
            clears.append(name)
    return Transition(field, new_value, next_values, tuple(clears))


def enabled_fields(manifest: FormManifest, values: Mapping[str, Any]) -> list[str]:
    """Fields the user can currently select, in manifest order.

    A field is enabled when its mode gates are on and every chain ancestor
    is set.
    """
    relevant = mode_policy.relevant_fields(manifest, values)
    enabled = []
    for name in manifest.fields:
        if not relevant[name]:
            continue
        chain = manifest.chain_for(name)
        if chain and any(is_unset(values.get(a)) for a in chain.ancestors(name)):
            continue
        enabled.append(name)
    return enabled


def _chain_request(chain: ChainSpec, name: str, values: Mapping[str, Any]) -> ChoiceRequest | None:
    connection = values.get(chain.connection_field)
    schema = values.get(chain.schema_field)
    table = values.get(chain.table_field)
    if name == chain.connection_field:
        return ChoiceRequest(name, CONNECTIONS)
    if name == chain.schema_field:
        return ChoiceRequest(name, SCHEMAS, (connection,))
    if name == chain.table_field:
        return ChoiceRequest(name, TABLES, (connection, schema))
    if name == chain.column_field or name in chain.multi_column_fields:
        return ChoiceRequest(name, COLUMNS, (connection, schema, table))
    if name in chain.date_column_fields:
        return ChoiceRequest(name, DATE_COLUMNS, (connection, schema, table))
    return None


def choice_requests(manifest: FormManifest, values: Mapping[str, Any]) -> list[ChoiceRequest]:
    """Lookups needed to populate the choice lists of enabled fields."""
    requests = []
    for name in enabled_fields(manifest, values):
        if name in manifest.enum_fields:
            requests.append(ChoiceRequest(name, ENUM, (manifest.enum_fields[name],)))
            continue
        chain = manifest.chain_for(name)
        if chain is None:
            continue
        request = _chain_request(chain, name, values)
        if request is not None:
            requests.append(request)
    return requests


def table_key(
    chain: ChainSpec | None,
    values: Mapping[str, Any],
    kind: str = COLUMNS,
) -> tuple[Hashable, ...] | None:
    """Lookup key for the columns of the table a chain resolves to.

    None when there is no chain or its table is not resolved.
    """
    if chain is None:
        return None
    parts = (
        values.get(chain.connection_field),
        values.get(chain.schema_field),
        values.get(chain.table_field),
    )
    if any(is_unset(part) for part in parts):
        return None
    return (kind, *parts)
