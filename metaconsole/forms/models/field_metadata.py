"""Form manifests: field classification, chains and gating rules.

This module defines, per form, which fields make up each dependency chain
(connection -> schema -> table -> column), which mode fields switch other
fields on and off, which fields are always required, and how enumerated
values are stored. The engine modules read these manifests instead of
hard-coding one form's rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import BaseModel

from metaconsole.forms.constants import (
    AMOUNT_CHECK,
    SCD_LOAD_TYPES,
    VALIDATION_TYPE_DISPLAY,
)
from metaconsole.forms.models.records import (
    DataDictionaryHeader,
    DataQualityConfigRecord,
    PipelineConfigRecord,
    ReconciliationConfigRecord,
)
from metaconsole.lib.errors import ConfigurationError

# Stored-value mapping kinds understood by the normalizer
LOWER = "lower"
LOAD_TYPE = "load_type"
VALIDATION_TYPE = "validation_type"


@dataclass(frozen=True)
class ChainSpec:
    """One dependency chain of a form.

    Attributes:
        name: "source" or "target"
        system_field: Mode field whose value filters eligible connections
        connection_field: Top of the chain
        schema_field: Depends on the connection
        table_field: Depends on connection and schema
        type_field: Table/File selector; File switches the chain to file fields
        column_field: Single column picked from the resolved table
        derived_fields: Fields tied to the resolved table, cleared with it
        multi_column_fields: Derived fields holding comma-joined column sets
        date_column_fields: Derived fields choosing a date-typed column
        file_fields: Fields relevant only while the type is File
        required_file_fields: Subset of file_fields required while File
        required: Connection, schema and table required while not File
        system_required: Connection is selectable only once a system is set
        clear_on_type_change: Flipping the type clears schema/table/file fields
    """

    name: str
    system_field: str
    connection_field: str
    schema_field: str
    table_field: str
    type_field: str | None = None
    column_field: str | None = None
    derived_fields: tuple[str, ...] = ()
    multi_column_fields: tuple[str, ...] = ()
    date_column_fields: tuple[str, ...] = ()
    file_fields: tuple[str, ...] = ()
    required_file_fields: tuple[str, ...] = ()
    required: bool = False
    system_required: bool = True
    clear_on_type_change: bool = False

    @property
    def levels(self) -> tuple[str, ...]:
        """Chain fields top-down, excluding the system selector."""
        levels = (self.connection_field, self.schema_field, self.table_field)
        if self.column_field:
            levels += (self.column_field,)
        return levels

    @property
    def table_fields(self) -> tuple[str, ...]:
        """Fields that only apply while the chain points at a table."""
        return self.levels[1:] + self.derived_fields

    @property
    def members(self) -> tuple[str, ...]:
        return (self.system_field,) + self.levels + self.derived_fields + self.file_fields

    def descendants(self, field_name: str) -> tuple[str, ...]:
        """Fields that must be cleared when ``field_name`` changes."""
        if field_name == self.system_field:
            return self.levels + self.derived_fields
        if field_name not in self.levels:
            return ()
        position = self.levels.index(field_name)
        below = self.levels[position + 1 :]
        if position <= self.levels.index(self.table_field):
            below += self.derived_fields
        return below

    def ancestors(self, field_name: str) -> tuple[str, ...]:
        """Fields that must be set for ``field_name`` to be meaningful."""
        head = (self.system_field,) if self.system_required else ()
        if field_name == self.connection_field:
            return head
        if field_name in self.levels:
            return head + self.levels[: self.levels.index(field_name)]
        if field_name in self.derived_fields:
            return head + self.levels[: self.levels.index(self.table_field) + 1]
        return ()


@dataclass(frozen=True)
class GateRule:
    """Switches ``fields`` on while ``mode_field`` holds one of ``values``.

    ``required`` lists fields that must be set while the rule is on; they
    need not be gated by this rule themselves.
    """

    mode_field: str
    values: frozenset[str]
    fields: tuple[str, ...] = ()
    required: tuple[str, ...] = ()

    def is_on(self, values: Mapping[str, Any]) -> bool:
        return values.get(self.mode_field) in self.values


@dataclass(frozen=True)
class FormManifest:
    """Everything the engine needs to know about one form."""

    name: str
    title: str
    fields: tuple[str, ...]
    record_model: type[BaseModel]
    chains: tuple[ChainSpec, ...] = ()
    gates: tuple[GateRule, ...] = ()
    always_required: tuple[str, ...] = ()
    enum_fields: Mapping[str, str] = field(default_factory=dict)
    stored_case: Mapping[str, str] = field(default_factory=dict)
    integer_fields: tuple[str, ...] = ()
    defaults: Mapping[str, Any] = field(default_factory=dict)
    layer_field: str | None = "execution_layer"
    load_type_field: str | None = None
    change_detection_field: str | None = None
    dynamic_schema_field: str | None = None

    def __post_init__(self) -> None:
        known = set(self.fields)
        for chain in self.chains:
            unknown = [name for name in chain.members if name not in known]
            if chain.type_field and chain.type_field not in known:
                unknown.append(chain.type_field)
            if unknown:
                raise ConfigurationError(
                    f"Chain '{chain.name}' references unknown fields",
                    form=self.name,
                    details={"fields": ", ".join(unknown)},
                )

    def chain(self, name: str) -> ChainSpec:
        for chain in self.chains:
            if chain.name == name:
                return chain
        raise ConfigurationError(f"Form has no '{name}' chain", form=self.name)

    def chain_for(self, field_name: str) -> ChainSpec | None:
        """Chain a field belongs to, if any."""
        for chain in self.chains:
            if field_name in chain.members:
                return chain
        return None

    def change_detection_chain(self) -> ChainSpec | None:
        if not self.change_detection_field:
            return None
        return self.chain_for(self.change_detection_field)

    def column_chain(self) -> ChainSpec | None:
        """First chain whose table supplies column choices, if any."""
        for chain in self.chains:
            if chain.column_field or chain.multi_column_fields or chain.date_column_fields:
                return chain
        return None

    def gated_fields(self) -> frozenset[str]:
        return frozenset(name for rule in self.gates for name in rule.fields)

    def check_field(self, field_name: str) -> None:
        """Raise ConfigurationError for a field this form does not have."""
        if field_name not in self.fields:
            raise ConfigurationError(
                f"Unknown field '{field_name}'",
                form=self.name,
                field=field_name,
            )


# =============================================================================
# Pipeline form
# =============================================================================

PIPELINE_FORM = FormManifest(
    name="pipeline",
    title="Pipeline configuration",
    record_model=PipelineConfigRecord,
    fields=(
        "execution_layer",
        "source_system",
        "connection_id",
        "source_type",
        "source_file_path",
        "source_file_name",
        "source_file_delimiter",
        "source_schema_name",
        "source_table_name",
        "target_layer",
        "target_system",
        "target_connection_id",
        "target_type",
        "target_file_path",
        "target_file_delimiter",
        "target_schema_name",
        "temporary_target_table",
        "target_table_name",
        "load_type",
        "primary_key",
        "effective_date_column",
        "md5_columns",
        "custom_code",
        "execution_sequence",
        "enable_dynamic_schema",
        "active_flag",
        "full_data_refresh_flag",
    ),
    chains=(
        ChainSpec(
            name="source",
            system_field="source_system",
            connection_field="connection_id",
            schema_field="source_schema_name",
            table_field="source_table_name",
            type_field="source_type",
            file_fields=("source_file_path", "source_file_name", "source_file_delimiter"),
            required_file_fields=("source_file_path", "source_file_name"),
            required=True,
        ),
        ChainSpec(
            name="target",
            system_field="target_system",
            connection_field="target_connection_id",
            schema_field="target_schema_name",
            table_field="target_table_name",
            type_field="target_type",
            derived_fields=("primary_key", "effective_date_column", "md5_columns"),
            multi_column_fields=("primary_key", "md5_columns"),
            date_column_fields=("effective_date_column",),
            file_fields=("target_file_path", "target_file_delimiter"),
            required_file_fields=("target_file_path",),
            required=True,
        ),
    ),
    gates=(
        GateRule(
            "load_type",
            frozenset({"Incremental"}) | SCD_LOAD_TYPES,
            fields=("effective_date_column",),
        ),
        GateRule("load_type", frozenset({"Incremental"}), required=("effective_date_column",)),
        GateRule(
            "load_type",
            SCD_LOAD_TYPES,
            fields=("custom_code", "execution_sequence"),
            required=("primary_key",),
        ),
        GateRule(
            "load_type",
            frozenset({"SCD2"}),
            fields=("md5_columns", "temporary_target_table"),
            required=("md5_columns", "temporary_target_table"),
        ),
    ),
    always_required=(
        "execution_layer",
        "source_system",
        "source_type",
        "target_type",
        "load_type",
    ),
    enum_fields={
        "execution_layer": "execution_layer",
        "target_layer": "execution_layer",
        "source_system": "source_system",
        "target_system": "target_system",
        "source_type": "source_type",
        "target_type": "target_type",
        "source_file_delimiter": "file_delimiter",
        "target_file_delimiter": "file_delimiter",
        "load_type": "load_type",
        "execution_sequence": "execution_sequence",
        "active_flag": "active_flag",
    },
    stored_case={
        "execution_layer": LOWER,
        "target_layer": LOWER,
        "source_system": LOWER,
        "target_system": LOWER,
        "source_type": LOWER,
        "target_type": LOWER,
        "load_type": LOAD_TYPE,
    },
    integer_fields=("connection_id", "target_connection_id"),
    defaults={
        "enable_dynamic_schema": "N",
        "active_flag": "Y",
        "full_data_refresh_flag": "Y",
    },
    load_type_field="load_type",
    change_detection_field="md5_columns",
    dynamic_schema_field="enable_dynamic_schema",
)

# =============================================================================
# Reconciliation form
# =============================================================================

RECONCILIATION_FORM = FormManifest(
    name="reconciliation",
    title="Reconciliation rule",
    record_model=ReconciliationConfigRecord,
    fields=(
        "config_key",
        "execution_layer",
        "source_system",
        "source_connection_id",
        "source_type",
        "source_schema",
        "source_table",
        "target_system",
        "target_connection_id",
        "target_type",
        "target_schema",
        "target_table",
        "recon_type",
        "attribute",
        "source_query",
        "target_query",
        "threshold_percentage",
        "active_flag",
    ),
    chains=(
        ChainSpec(
            name="source",
            system_field="source_system",
            connection_field="source_connection_id",
            schema_field="source_schema",
            table_field="source_table",
            type_field="source_type",
        ),
        ChainSpec(
            name="target",
            system_field="target_system",
            connection_field="target_connection_id",
            schema_field="target_schema",
            table_field="target_table",
            type_field="target_type",
            column_field="attribute",
        ),
    ),
    gates=(
        GateRule(
            "recon_type",
            frozenset({AMOUNT_CHECK}),
            fields=("attribute",),
            required=("attribute",),
        ),
    ),
    always_required=(
        "config_key",
        "execution_layer",
        "recon_type",
        "source_query",
        "target_query",
    ),
    enum_fields={
        "execution_layer": "execution_layer",
        "source_system": "source_system",
        "target_system": "target_system",
        "source_type": "source_type",
        "target_type": "target_type",
        "recon_type": "recon_type",
        "active_flag": "active_flag",
    },
    stored_case={
        "execution_layer": LOWER,
        "source_system": LOWER,
        "target_system": LOWER,
        "source_type": LOWER,
        "target_type": LOWER,
        "recon_type": LOWER,
    },
    integer_fields=(
        "config_key",
        "source_connection_id",
        "target_connection_id",
        "threshold_percentage",
    ),
    defaults={"active_flag": "Y"},
)

# =============================================================================
# Data-quality form
# =============================================================================

_REFERENCE = VALIDATION_TYPE_DISPLAY["REFERENCE"]
_RANGE = VALIDATION_TYPE_DISPLAY["RANGE"]
_CUSTOM = VALIDATION_TYPE_DISPLAY["CUSTOM"]

DATA_QUALITY_FORM = FormManifest(
    name="data_quality",
    title="Data-quality rule",
    record_model=DataQualityConfigRecord,
    fields=(
        "config_key",
        "execution_layer",
        "table_name",
        "attribute_name",
        "validation_type",
        "reference_table_name",
        "default_value",
        "error_table_transfer_flag",
        "threshold_percentage",
        "active_flag",
        "custom_query",
        "source_system",
        "source_connection_id",
        "source_type",
        "source_schema",
        "source_table_name",
        "target_system",
        "target_connection_id",
        "target_type",
        "target_schema",
        "target_table_name",
    ),
    chains=(
        ChainSpec(
            name="source",
            system_field="source_system",
            connection_field="source_connection_id",
            schema_field="source_schema",
            table_field="source_table_name",
            type_field="source_type",
            system_required=False,
        ),
        ChainSpec(
            name="target",
            system_field="target_system",
            connection_field="target_connection_id",
            schema_field="target_schema",
            table_field="target_table_name",
            type_field="target_type",
            system_required=False,
        ),
    ),
    gates=(
        GateRule(
            "validation_type",
            frozenset({_REFERENCE}),
            fields=("reference_table_name",),
            required=("reference_table_name",),
        ),
        GateRule(
            "validation_type",
            frozenset({_RANGE, _CUSTOM}),
            fields=("threshold_percentage",),
        ),
        GateRule(
            "validation_type",
            frozenset({_CUSTOM}),
            required=("custom_query",),
        ),
    ),
    always_required=("execution_layer", "table_name", "attribute_name", "validation_type"),
    enum_fields={
        "execution_layer": "execution_layer",
        "validation_type": "validation_type",
        "source_system": "source_system",
        "target_system": "target_system",
        "source_type": "source_type",
        "target_type": "target_type",
        "active_flag": "active_flag",
    },
    stored_case={
        "execution_layer": LOWER,
        "validation_type": VALIDATION_TYPE,
        "source_system": LOWER,
        "target_system": LOWER,
        "source_type": LOWER,
        "target_type": LOWER,
    },
    integer_fields=(
        "config_key",
        "source_connection_id",
        "target_connection_id",
        "threshold_percentage",
    ),
    defaults={"error_table_transfer_flag": "N", "active_flag": "Y"},
)

# =============================================================================
# Data-dictionary form
# =============================================================================

DATA_DICTIONARY_FORM = FormManifest(
    name="data_dictionary",
    title="Data dictionary",
    record_model=DataDictionaryHeader,
    fields=(
        "config_key",
        "execution_layer",
        "source_system",
        "source_connection_id",
        "source_type",
        "source_schema_name",
        "source_table_name",
        "source_file_name",
        "target_system",
        "target_connection_id",
        "target_type",
        "target_schema_name",
        "target_table_name",
    ),
    chains=(
        ChainSpec(
            name="source",
            system_field="source_system",
            connection_field="source_connection_id",
            schema_field="source_schema_name",
            table_field="source_table_name",
            type_field="source_type",
            file_fields=("source_file_name",),
            required_file_fields=("source_file_name",),
            clear_on_type_change=True,
        ),
        ChainSpec(
            name="target",
            system_field="target_system",
            connection_field="target_connection_id",
            schema_field="target_schema_name",
            table_field="target_table_name",
            type_field="target_type",
            required=True,
            clear_on_type_change=True,
        ),
    ),
    always_required=("execution_layer", "target_type"),
    enum_fields={
        "execution_layer": "execution_layer",
        "source_system": "source_system",
        "target_system": "target_system",
        "source_type": "source_type",
        "target_type": "target_type",
    },
    stored_case={
        "execution_layer": LOWER,
        "source_system": LOWER,
        "target_system": LOWER,
        "source_type": LOWER,
        "target_type": LOWER,
    },
    integer_fields=("config_key", "source_connection_id", "target_connection_id"),
)

MANIFESTS: dict[str, FormManifest] = {
    manifest.name: manifest
    for manifest in (PIPELINE_FORM, RECONCILIATION_FORM, DATA_QUALITY_FORM, DATA_DICTIONARY_FORM)
}


def get_manifest(name: str) -> FormManifest:
    """Look up a form manifest by name."""
    try:
        return MANIFESTS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown form '{name}'",
            value=name,
            suggestion=f"Choose one of: {', '.join(sorted(MANIFESTS))}",
        ) from None
