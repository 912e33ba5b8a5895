"""Typed persisted-record shapes using Pydantic for validation.

These are the canonical forms handed to the persistence layer after
submission normalization: stored-case enum values, unset fields as None,
and column widths matching the backing tables.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

FLAG_PATTERN = r"^[YN]$"


class _Record(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class PipelineConfigRecord(_Record):
    """One row of ``config_table``."""

    execution_layer: Optional[str] = Field(default=None, max_length=50)
    source_system: Optional[str] = Field(default=None, max_length=100)
    connection_id: Optional[int] = None
    source_type: Optional[str] = Field(default=None, max_length=50)
    source_file_path: Optional[str] = Field(default=None, max_length=255)
    source_file_name: Optional[str] = Field(default=None, max_length=255)
    source_file_delimiter: Optional[str] = Field(default=None, max_length=10)
    source_schema_name: Optional[str] = Field(default=None, max_length=100)
    source_table_name: Optional[str] = Field(default=None, max_length=100)
    target_layer: Optional[str] = Field(default=None, max_length=50)
    target_system: Optional[str] = Field(default=None, max_length=100)
    target_connection_id: Optional[int] = None
    target_type: Optional[str] = Field(default=None, max_length=50)
    target_file_path: Optional[str] = Field(default=None, max_length=255)
    target_file_delimiter: Optional[str] = Field(default=None, max_length=10)
    target_schema_name: Optional[str] = Field(default=None, max_length=100)
    temporary_target_table: Optional[str] = Field(default=None, max_length=100)
    target_table_name: Optional[str] = Field(default=None, max_length=100)
    load_type: Optional[str] = Field(default=None, max_length=50)
    primary_key: Optional[str] = Field(default=None, max_length=255)
    effective_date_column: Optional[str] = Field(default=None, max_length=50)
    md5_columns: Optional[str] = Field(default=None, max_length=255)
    custom_code: Optional[str] = Field(default=None, max_length=500)
    execution_sequence: Optional[str] = Field(default=None, max_length=20)
    enable_dynamic_schema: Optional[str] = Field(default="N", pattern=FLAG_PATTERN)
    active_flag: Optional[str] = Field(default="Y", pattern=FLAG_PATTERN)
    full_data_refresh_flag: Optional[str] = Field(default="Y", pattern=FLAG_PATTERN)


class ReconciliationConfigRecord(_Record):
    """One row of ``reconciliation_config``.

    The source/target system, connection and type columns are carried so a
    reloaded record still has every ancestor of its schema/table selections.
    """

    config_key: int
    execution_layer: str = Field(max_length=20)
    source_system: Optional[str] = Field(default=None, max_length=50)
    source_connection_id: Optional[int] = None
    source_type: Optional[str] = Field(default=None, max_length=50)
    source_schema: Optional[str] = Field(default=None, max_length=20)
    source_table: Optional[str] = Field(default=None, max_length=50)
    target_system: Optional[str] = Field(default=None, max_length=50)
    target_connection_id: Optional[int] = None
    target_type: Optional[str] = Field(default=None, max_length=50)
    target_schema: Optional[str] = Field(default=None, max_length=50)
    target_table: Optional[str] = Field(default=None, max_length=50)
    recon_type: str = Field(max_length=50)
    attribute: Optional[str] = Field(default=None, max_length=20)
    source_query: str
    target_query: str
    threshold_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    active_flag: str = Field(default="Y", max_length=2)


class DataQualityConfigRecord(_Record):
    """One row of ``data_quality_config_table``."""

    config_key: Optional[int] = None
    execution_layer: str = Field(max_length=100)
    table_name: str = Field(max_length=25)
    attribute_name: str = Field(max_length=250)
    validation_type: str = Field(max_length=50)
    reference_table_name: Optional[str] = Field(default=None, max_length=25)
    default_value: Optional[str] = Field(default=None, max_length=25)
    error_table_transfer_flag: Optional[str] = Field(default="N", max_length=5)
    threshold_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    active_flag: Optional[str] = Field(default="Y", max_length=5)
    custom_query: Optional[str] = Field(default=None, max_length=500)
    source_system: Optional[str] = Field(default=None, max_length=50)
    source_connection_id: Optional[int] = None
    source_type: Optional[str] = Field(default=None, max_length=50)
    source_schema: Optional[str] = Field(default=None, max_length=50)
    source_table_name: Optional[str] = Field(default=None, max_length=50)
    target_system: Optional[str] = Field(default=None, max_length=50)
    target_connection_id: Optional[int] = None
    target_type: Optional[str] = Field(default=None, max_length=50)
    target_schema: Optional[str] = Field(default=None, max_length=50)
    target_table_name: Optional[str] = Field(default=None, max_length=50)


class DataDictionaryHeader(_Record):
    """Selections made on the data-dictionary form before entries are built."""

    config_key: Optional[int] = None
    execution_layer: str = Field(max_length=50)
    source_system: Optional[str] = Field(default=None, max_length=100)
    source_connection_id: Optional[int] = None
    source_type: Optional[str] = Field(default=None, max_length=50)
    source_schema_name: Optional[str] = Field(default=None, max_length=100)
    source_table_name: Optional[str] = Field(default=None, max_length=100)
    source_file_name: Optional[str] = Field(default=None, max_length=255)
    target_system: Optional[str] = Field(default=None, max_length=100)
    target_connection_id: Optional[int] = None
    target_type: str = Field(max_length=50)
    target_schema_name: Optional[str] = Field(default=None, max_length=100)
    target_table_name: Optional[str] = Field(default=None, max_length=100)


class DataDictionaryEntry(_Record):
    """One row of ``data_dictionary_table``."""

    config_key: int
    execution_layer: str = Field(max_length=50)
    schema_name: Optional[str] = Field(default=None, max_length=100)
    table_name: Optional[str] = Field(default=None, max_length=100)
    attribute_name: str = Field(max_length=100)
    data_type: str = Field(max_length=50)
    length: Optional[int] = None
    precision_value: Optional[int] = None
    scale: Optional[int] = None
    column_description: Optional[str] = Field(default=None, max_length=150)
    created_by: Optional[str] = Field(default=None, max_length=100)
    updated_by: Optional[str] = Field(default=None, max_length=100)
    is_not_null: str = Field(default="N", pattern=FLAG_PATTERN)
    is_primary_key: str = Field(default="N", pattern=FLAG_PATTERN)
    is_foreign_key: str = Field(default="N", pattern=FLAG_PATTERN)
    active_flag: str = Field(default="Y", pattern=FLAG_PATTERN)
