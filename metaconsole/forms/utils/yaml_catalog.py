"""Metadata provider backed by a YAML catalog file.

Useful for offline checks, fixtures and demos. The catalog lists
connections with their schemas, tables and typed columns:

    connections:
      - id: 7
        name: orders_db
        type: MySQL
        schemas:
          sales:
            orders:
              - {name: id, data_type: int, nullable: false, primary_key: true}
              - {name: amount, data_type: decimal, precision: 12, scale: 2}
              - {name: updated_at, data_type: timestamp}
    enums:
      load_type: [Truncate, Incremental, SCD1, SCD2]

A table may also be written as a mapping with a ``columns`` key, and a
column as a bare name. ``${VAR}`` references are expanded from the
environment when the file is read.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from metaconsole.forms.utils.metadata_provider import (
    ColumnInfo,
    Connection,
    MetadataProvider,
    filter_by_type,
)
from metaconsole.lib.env import expand_options
from metaconsole.lib.errors import ConfigurationError, MetadataUnavailable

logger = logging.getLogger(__name__)


def _optional_int(entry: Mapping[str, Any], key: str) -> int | None:
    value = entry.get(key)
    if value is None or value == "":
        return None
    return int(value)


def _parse_column(entry: Any) -> ColumnInfo:
    if isinstance(entry, str):
        return ColumnInfo(name=entry)
    if not isinstance(entry, Mapping) or "name" not in entry:
        raise ConfigurationError("Column entries need a name", value=entry)
    try:
        return ColumnInfo(
            name=str(entry["name"]),
            data_type=str(entry.get("data_type") or entry.get("type") or ""),
            length=_optional_int(entry, "length"),
            precision=_optional_int(entry, "precision"),
            scale=_optional_int(entry, "scale"),
            nullable=bool(entry.get("nullable", True)),
            primary_key=bool(entry.get("primary_key", False)),
            foreign_key=bool(entry.get("foreign_key", False)),
            description=str(entry.get("description") or ""),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid column '{entry['name']}': {e}", value=entry
        ) from e


def _parse_table(entry: Any) -> list[ColumnInfo]:
    if isinstance(entry, Mapping):
        entry = entry.get("columns") or []
    if not isinstance(entry, list):
        raise ConfigurationError("Tables must list their columns", value=entry)
    return [_parse_column(column) for column in entry]


class YamlCatalogProvider(MetadataProvider):
    """Serves connections, schemas, tables and columns from a catalog dict."""

    def __init__(self, catalog: Mapping[str, Any], *, source: str | None = None):
        self.source = source or "<memory>"
        self._connections: dict[int, Connection] = {}
        self._schemas: dict[int, dict[str, dict[str, list[ColumnInfo]]]] = {}
        self._enums: dict[str, list[str]] = {}
        self._parse(catalog)

    @classmethod
    def from_file(cls, path: str | Path, *, strict_env: bool = False) -> "YamlCatalogProvider":
        """Read a catalog file.

        Args:
            path: Path to the YAML catalog
            strict_env: Raise for ``${VAR}`` references that are not set

        Raises:
            ConfigurationError: The file is missing or malformed
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(
                f"Catalog file not found: {path}",
                suggestion="Set catalog_path in .metaconsole.yaml or pass --catalog",
            )
        try:
            with open(path, encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Catalog is not valid YAML: {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Catalog must be a mapping: {path}")
        try:
            raw = expand_options(raw, strict=strict_env)
        except KeyError as e:
            raise ConfigurationError(f"Catalog references {e.args[0]}") from e
        return cls(raw, source=str(path))

    def _parse(self, catalog: Mapping[str, Any]) -> None:
        for entry in catalog.get("connections") or []:
            try:
                connection = Connection(
                    id=int(entry["id"]),
                    name=str(entry.get("name") or entry["id"]),
                    type=str(entry.get("type") or ""),
                )
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(
                    "Connection entries need an integer id", value=entry
                ) from e
            self._connections[connection.id] = connection
            self._schemas[connection.id] = {
                str(schema): {str(table): _parse_table(columns) for table, columns in (tables or {}).items()}
                for schema, tables in (entry.get("schemas") or {}).items()
            }
        for name, values in (catalog.get("enums") or {}).items():
            self._enums[str(name)] = [str(value) for value in values or []]
        logger.debug(
            "Loaded catalog %s with %d connections",
            self.source,
            len(self._connections),
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _schema_map(self, connection_id: int) -> dict[str, dict[str, list[ColumnInfo]]]:
        try:
            return self._schemas[int(connection_id)]
        except (KeyError, TypeError, ValueError):
            raise MetadataUnavailable(
                f"Connection {connection_id} is not in the catalog",
                request=("schemas", connection_id),
            ) from None

    def _table_columns(self, connection_id: int, schema: str, table: str) -> list[ColumnInfo]:
        tables = self._table_map(connection_id, schema)
        if table not in tables:
            raise MetadataUnavailable(
                f"Table {schema}.{table} not found on connection {connection_id}",
                request=("columns", connection_id, schema, table),
            )
        return tables[table]

    def _table_map(self, connection_id: int, schema: str) -> dict[str, list[ColumnInfo]]:
        schemas = self._schema_map(connection_id)
        if schema not in schemas:
            raise MetadataUnavailable(
                f"Schema {schema} not found on connection {connection_id}",
                request=("tables", connection_id, schema),
            )
        return schemas[schema]

    async def list_connections(self) -> list[Connection]:
        return list(self._connections.values())

    async def list_schemas(self, connection_id: int) -> list[str]:
        return list(self._schema_map(connection_id))

    async def list_tables(self, connection_id: int, schema: str) -> list[str]:
        return list(self._table_map(connection_id, schema))

    async def list_columns_with_types(
        self,
        connection_id: int,
        schema: str,
        table: str,
        type_filter: Sequence[str] | None = None,
    ) -> list[ColumnInfo]:
        return filter_by_type(self._table_columns(connection_id, schema, table), type_filter)

    async def list_enum_values(self, enum_name: str) -> list[str]:
        if enum_name in self._enums:
            return list(self._enums[enum_name])
        return await super().list_enum_values(enum_name)
