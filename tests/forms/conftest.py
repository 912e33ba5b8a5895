"""Shared fixtures for form engine tests."""

from __future__ import annotations

import asyncio
import copy
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence

import pytest
import yaml

from metaconsole.forms.models.field_metadata import PIPELINE_FORM
from metaconsole.forms.models.selection_state import SelectionState
from metaconsole.forms.utils.metadata_provider import ColumnInfo, Connection, MetadataProvider
from metaconsole.forms.utils.yaml_catalog import YamlCatalogProvider

CATALOG: Dict[str, Any] = {
    "connections": [
        {
            "id": 7,
            "name": "orders_db",
            "type": "MySQL",
            "schemas": {
                "sales": {
                    "orders": [
                        {"name": "id", "data_type": "int", "nullable": False, "primary_key": True},
                        {"name": "amount", "data_type": "decimal(12,2)", "precision": 12, "scale": 2},
                        {"name": "status", "data_type": "varchar", "length": 20},
                        {"name": "updated_at", "data_type": "timestamp"},
                    ],
                    "customers": [
                        {"name": "customer_id", "data_type": "int", "nullable": False, "primary_key": True},
                        {
                            "name": "email",
                            "data_type": "varchar",
                            "length": 255,
                            "description": "Primary contact address",
                        },
                    ],
                },
                "staging": {},
            },
        },
        {
            "id": 8,
            "name": "warehouse",
            "type": "PostgreSQL",
            "schemas": {
                "public": {
                    "dim_orders": {
                        "columns": [
                            {"name": "id", "data_type": "integer", "nullable": False, "primary_key": True},
                            {"name": "amount", "data_type": "numeric"},
                            {"name": "currency", "data_type": "varchar"},
                        ]
                    },
                    "fact_sales": [
                        {"name": "sale_id", "data_type": "bigint", "nullable": False},
                        {"name": "sold_at", "data_type": "timestamp without time zone"},
                        {"name": "amount", "data_type": "numeric"},
                    ],
                }
            },
        },
        {
            "id": 9,
            "name": "lake",
            "type": "GCP",
            "schemas": {"analytics": {"events": ["event_id", "event_ts"]}},
        },
        {
            "id": 10,
            "name": "orders_replica",
            "type": "mysql",
            "schemas": {"sales": {"customers_v2": ["customer_id", "email"]}},
        },
    ],
}

# A pipeline record as persisted: stored-case enums, comma-joined columns
SCD2_RECORD: Dict[str, Any] = {
    "execution_layer": "silver",
    "source_system": "mysql",
    "connection_id": 7,
    "source_type": "table",
    "source_schema_name": "sales",
    "source_table_name": "orders",
    "target_system": "postgresql",
    "target_connection_id": 8,
    "target_type": "table",
    "target_schema_name": "public",
    "target_table_name": "dim_orders",
    "temporary_target_table": "dim_orders_tmp",
    "load_type": "scd2",
    "primary_key": "id",
    "md5_columns": "id,amount,status",
    "enable_dynamic_schema": "Y",
    "active_flag": "Y",
    "full_data_refresh_flag": "N",
}


class GatedProvider(MetadataProvider):
    """Delegates to a catalog provider, recording calls.

    Lookups can be held until released, or made to fail, by key, e.g.
    ``("tables", 7, "sales")``.
    """

    def __init__(self, inner: MetadataProvider):
        self.inner = inner
        self.calls: List[tuple] = []
        self.failures: Dict[tuple, Exception] = {}
        self._gates: Dict[tuple, asyncio.Event] = {}

    def hold(self, *key: Any) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[key] = gate
        return gate

    async def _enter(self, key: tuple) -> None:
        self.calls.append(key)
        if key in self._gates:
            await self._gates[key].wait()
        if key in self.failures:
            raise self.failures[key]

    async def list_connections(self) -> List[Connection]:
        await self._enter(("connections",))
        return await self.inner.list_connections()

    async def list_schemas(self, connection_id: int) -> List[str]:
        await self._enter(("schemas", connection_id))
        return await self.inner.list_schemas(connection_id)

    async def list_tables(self, connection_id: int, schema: str) -> List[str]:
        await self._enter(("tables", connection_id, schema))
        return await self.inner.list_tables(connection_id, schema)

    async def list_columns_with_types(
        self,
        connection_id: int,
        schema: str,
        table: str,
        type_filter: Optional[Sequence[str]] = None,
    ) -> List[ColumnInfo]:
        kind = "columns" if type_filter is None else "date_columns"
        await self._enter((kind, connection_id, schema, table))
        return await self.inner.list_columns_with_types(connection_id, schema, table, type_filter)

    async def list_enum_values(self, enum_name: str) -> List[str]:
        await self._enter(("enum", enum_name))
        return await self.inner.list_enum_values(enum_name)


class RecordingPersistence:
    """Persistence layer double that keeps what it was given."""

    def __init__(self, error: Optional[Exception] = None):
        self.saved: List[tuple] = []
        self.error = error

    def save(self, form: str, record: Any) -> None:
        if self.error is not None:
            raise self.error
        self.saved.append((form, record))


@pytest.fixture
def catalog() -> Dict[str, Any]:
    """A fresh copy of the test catalog."""
    return copy.deepcopy(CATALOG)


@pytest.fixture
def provider(catalog: Dict[str, Any]) -> YamlCatalogProvider:
    return YamlCatalogProvider(catalog)


@pytest.fixture
def gated_provider(provider: YamlCatalogProvider) -> GatedProvider:
    return GatedProvider(provider)


@pytest.fixture
def catalog_file(tmp_path: Path, catalog: Dict[str, Any]) -> Generator[Path, None, None]:
    """Write the test catalog to a YAML file."""
    path = tmp_path / "catalog.yaml"
    path.write_text(yaml.safe_dump(catalog, sort_keys=False), encoding="utf-8")
    yield path


@pytest.fixture
def scd2_record() -> Dict[str, Any]:
    return dict(SCD2_RECORD)


@pytest.fixture
def pipeline_state() -> SelectionState:
    """Pipeline form state with defaults applied."""
    return SelectionState.from_defaults(PIPELINE_FORM)
