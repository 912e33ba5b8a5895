"""Build data-dictionary entries from a resolved table's column metadata."""

from __future__ import annotations

from typing import Iterable

from metaconsole.forms.models.records import DataDictionaryEntry, DataDictionaryHeader
from metaconsole.forms.utils.metadata_provider import ColumnInfo

DESCRIPTION_WIDTH = 150
NAME_WIDTH = 100
DEFAULT_CONFIG_KEY = 1


def _flag(value: bool) -> str:
    return "Y" if value else "N"


def build_dictionary_entries(
    header: DataDictionaryHeader,
    columns: Iterable[ColumnInfo],
    *,
    created_by: str = "User",
) -> list[DataDictionaryEntry]:
    """One dictionary entry per column of the selected table.

    Schema and table are taken from the target selection, falling back to
    the source selection (or the source file name for file sources).

    Args:
        header: Normalized data-dictionary form selections
        columns: Typed column metadata of the resolved table
        created_by: Recorded as creator and last updater

    Returns:
        Entries in column order
    """
    schema_name = header.target_schema_name or header.source_schema_name
    table_name = header.target_table_name or header.source_table_name or header.source_file_name
    config_key = header.config_key if header.config_key is not None else DEFAULT_CONFIG_KEY

    entries = []
    for column in columns:
        entries.append(
            DataDictionaryEntry(
                config_key=config_key,
                execution_layer=header.execution_layer,
                schema_name=schema_name[:NAME_WIDTH] if schema_name else None,
                table_name=table_name[:NAME_WIDTH] if table_name else None,
                attribute_name=column.name[:NAME_WIDTH],
                data_type=column.data_type or "unknown",
                length=column.length,
                precision_value=column.precision,
                scale=column.scale,
                column_description=column.description[:DESCRIPTION_WIDTH] or None,
                created_by=created_by,
                updated_by=created_by,
                is_not_null=_flag(not column.nullable),
                is_primary_key=_flag(column.primary_key),
                is_foreign_key=_flag(column.foreign_key),
            )
        )
    return entries
