"""Shared constants for the form engine.

Centralizes enum catalogs, the system alias table and the stored/display
value mappings used across the form modules.
"""

from __future__ import annotations

from typing import Mapping

# =============================================================================
# Mode values (display case, as held in SelectionState)
# =============================================================================

EXECUTION_LAYERS: tuple[str, ...] = ("Bronze", "Silver", "Gold")

LOAD_TYPES: tuple[str, ...] = ("Truncate", "Incremental", "SCD1", "SCD2")

# Load types each execution layer accepts; layers not listed accept all
LOAD_TYPES_BY_LAYER: dict[str, tuple[str, ...]] = {
    "Bronze": ("Truncate", "Incremental"),
}

SCD_LOAD_TYPES = frozenset({"SCD1", "SCD2"})

SOURCE_TYPES: tuple[str, ...] = ("Table", "File")
TABLE_TYPE = "Table"
FILE_TYPE = "File"

RECON_TYPES: tuple[str, ...] = ("count check", "amount check")
AMOUNT_CHECK = "amount check"

VALIDATION_TYPES: tuple[str, ...] = (
    "NOT_NULL",
    "UNIQUE",
    "DATA_TYPE",
    "RANGE",
    "REGEX",
    "CUSTOM",
    "REFERENCE",
)

SYSTEMS: tuple[str, ...] = (
    "SQL Server",
    "MySQL",
    "PostgreSQL",
    "Oracle",
    "Snowflake",
    "MongoDB",
    "BigQuery",
    "Salesforce",
)

YES_NO: tuple[str, ...] = ("Y", "N")

# Enum catalog served when a provider has no override
DEFAULT_ENUMS: dict[str, tuple[str, ...]] = {
    "execution_layer": EXECUTION_LAYERS,
    "load_type": LOAD_TYPES,
    "source_system": SYSTEMS,
    "target_system": SYSTEMS,
    "source_type": SOURCE_TYPES,
    "target_type": SOURCE_TYPES,
    "file_delimiter": (",", "|", "\\t", ";"),
    "validation_type": VALIDATION_TYPES,
    "recon_type": RECON_TYPES,
    "active_flag": YES_NO,
    "execution_sequence": ("Pre", "Post"),
}

# =============================================================================
# System aliases
# =============================================================================

# Human-facing system label -> stored connection types it also accepts.
# Matching is otherwise an exact, case-insensitive comparison.
SYSTEM_ALIASES: dict[str, frozenset[str]] = {
    "BigQuery": frozenset({"GCP"}),
    "Salesforce": frozenset({"API"}),
}

# =============================================================================
# Stored <-> display mappings
# =============================================================================

LOAD_TYPE_STORED: dict[str, str] = {
    "Truncate": "truncate_load",
    "Incremental": "incremental_load",
    "SCD1": "scd1",
    "SCD2": "scd2",
}

VALIDATION_TYPE_DISPLAY: dict[str, str] = {
    value: value.replace("_", " ").title() for value in VALIDATION_TYPES
}

# Column data types accepted for an effective date column
DATE_TYPES: tuple[str, ...] = ("date", "datetime", "timestamp")


def invert(mapping: Mapping[str, str]) -> dict[str, str]:
    """Return ``mapping`` with keys and values swapped."""
    return {value: key for key, value in mapping.items()}


def is_file_type(value: str | None) -> bool:
    """Check if a source/target type selects the file branch."""
    return bool(value) and str(value).lower() == FILE_TYPE.lower()


def is_scd(load_type: str | None) -> bool:
    """Check if load type is one of the slowly-changing-dimension loads."""
    return load_type in SCD_LOAD_TYPES
