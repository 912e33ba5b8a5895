"""Tests for the YAML catalog provider and the retrying wrapper."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

import pytest

from metaconsole.forms.constants import DATE_TYPES
from metaconsole.forms.utils.metadata_provider import (
    ColumnInfo,
    Connection,
    RetryingMetadataProvider,
    filter_by_type,
)
from metaconsole.forms.utils.yaml_catalog import YamlCatalogProvider
from metaconsole.lib.errors import ConfigurationError, MetadataUnavailable
from metaconsole.lib.resilience import RetryConfig


class TestYamlCatalogProvider:
    """Lookups against an in-memory catalog."""

    def test_connections(self, provider: YamlCatalogProvider) -> None:
        connections = asyncio.run(provider.list_connections())

        assert connections[0] == Connection(7, "orders_db", "MySQL")
        assert [c.id for c in connections] == [7, 8, 9, 10]

    def test_schemas_and_tables(self, provider: YamlCatalogProvider) -> None:
        assert asyncio.run(provider.list_schemas(7)) == ["sales", "staging"]
        assert asyncio.run(provider.list_tables(7, "sales")) == ["orders", "customers"]
        assert asyncio.run(provider.list_tables(7, "staging")) == []

    def test_columns(self, provider: YamlCatalogProvider) -> None:
        """Tables may be plain lists or mappings with a columns key."""
        assert asyncio.run(provider.list_columns(8, "public", "dim_orders")) == [
            "id",
            "amount",
            "currency",
        ]
        assert asyncio.run(provider.list_columns(9, "analytics", "events")) == [
            "event_id",
            "event_ts",
        ]

    def test_typed_columns(self, provider: YamlCatalogProvider) -> None:
        columns = asyncio.run(provider.list_columns_with_types(7, "sales", "orders"))
        amount = columns[1]

        assert amount.data_type == "decimal(12,2)"
        assert (amount.precision, amount.scale) == (12, 2)
        assert columns[0].nullable is False
        assert columns[0].primary_key is True

    def test_type_filter(self, provider: YamlCatalogProvider) -> None:
        """Date-typed columns are matched on their base type."""
        orders = asyncio.run(provider.list_columns_with_types(7, "sales", "orders", DATE_TYPES))
        sales = asyncio.run(provider.list_columns_with_types(8, "public", "fact_sales", DATE_TYPES))

        assert [c.name for c in orders] == ["updated_at"]
        assert [c.name for c in sales] == ["sold_at"]

    @pytest.mark.parametrize(
        "call",
        [
            lambda p: p.list_schemas(99),
            lambda p: p.list_tables(7, "missing"),
            lambda p: p.list_columns(7, "sales", "missing"),
        ],
    )
    def test_unknown_lookups(self, provider: YamlCatalogProvider, call) -> None:
        with pytest.raises(MetadataUnavailable):
            asyncio.run(call(provider))

    def test_enums(self, catalog) -> None:
        """Catalog enums override the built-in catalogs."""
        catalog["enums"] = {"execution_layer": ["Bronze", "Silver"]}
        provider = YamlCatalogProvider(catalog)

        assert asyncio.run(provider.list_enum_values("execution_layer")) == ["Bronze", "Silver"]
        assert "SCD2" in asyncio.run(provider.list_enum_values("load_type"))
        with pytest.raises(MetadataUnavailable):
            asyncio.run(provider.list_enum_values("colour"))

    def test_bad_connection_entry(self) -> None:
        with pytest.raises(ConfigurationError):
            YamlCatalogProvider({"connections": [{"name": "no id"}]})


class TestFromFile:
    """Reading catalogs from disk."""

    def test_reads_file(self, catalog_file: Path) -> None:
        provider = YamlCatalogProvider.from_file(catalog_file)

        assert provider.source == str(catalog_file)
        assert asyncio.run(provider.list_tables(8, "public")) == ["dim_orders", "fact_sales"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            YamlCatalogProvider.from_file(tmp_path / "nope.yaml")

        assert exc_info.value.suggestion

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("connections: [\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            YamlCatalogProvider.from_file(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            YamlCatalogProvider.from_file(path)

    def test_env_expansion(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("WAREHOUSE_TYPE", "PostgreSQL")
        monkeypatch.delenv("WAREHOUSE_NAME", raising=False)
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "connections:\n"
            "  - id: 1\n"
            "    type: ${WAREHOUSE_TYPE}\n"
            "    name: ${WAREHOUSE_NAME}\n"
            "    schemas:\n"
            "      reporting: {}\n",
            encoding="utf-8",
        )

        provider = YamlCatalogProvider.from_file(path)
        (connection,) = asyncio.run(provider.list_connections())

        assert connection.type == "PostgreSQL"
        assert connection.name == "${WAREHOUSE_NAME}"
        with pytest.raises(ConfigurationError):
            YamlCatalogProvider.from_file(path, strict_env=True)


class TestColumnInfo:
    """Type helpers on ColumnInfo."""

    @pytest.mark.parametrize(
        "data_type,base",
        [
            ("int", "int"),
            ("VARCHAR(20)", "varchar"),
            ("timestamp without time zone", "timestamp"),
            ("", ""),
        ],
    )
    def test_base_type(self, data_type, base) -> None:
        assert ColumnInfo("c", data_type).base_type == base

    def test_is_date(self) -> None:
        assert ColumnInfo("d", "DATE").is_date()
        assert ColumnInfo("d", "datetime(6)").is_date()
        assert not ColumnInfo("d", "varchar").is_date()

    def test_filter_without_types(self) -> None:
        columns = [ColumnInfo("a", "int"), ColumnInfo("b", "date")]

        assert filter_by_type(columns, None) == columns
        assert filter_by_type(columns, ["DATE"]) == [columns[1]]


class FlakyProvider(YamlCatalogProvider):
    """Fails the first ``failures`` schema lookups with ``error``."""

    def __init__(self, catalog, error: Exception, failures: int):
        super().__init__(catalog)
        self.error = error
        self.failures = failures
        self.attempts: List[int] = []

    async def list_schemas(self, connection_id: int) -> List[str]:
        self.attempts.append(connection_id)
        if len(self.attempts) <= self.failures:
            raise self.error
        return await super().list_schemas(connection_id)


class TestRetryingMetadataProvider:
    """The retry wrapper only retries transient failures."""

    def _config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=3,
            backoff_seconds=0,
            jitter=False,
            retry_exceptions=(OSError,),
        )

    def test_retries_transient_errors(self, catalog) -> None:
        inner = FlakyProvider(catalog, ConnectionResetError("reset"), failures=2)
        provider = RetryingMetadataProvider(inner, self._config())

        assert asyncio.run(provider.list_schemas(7)) == ["sales", "staging"]
        assert len(inner.attempts) == 3

    def test_gives_up_after_max_attempts(self, catalog) -> None:
        inner = FlakyProvider(catalog, ConnectionResetError("reset"), failures=5)
        provider = RetryingMetadataProvider(inner, self._config())

        with pytest.raises(ConnectionResetError):
            asyncio.run(provider.list_schemas(7))
        assert len(inner.attempts) == 3

    def test_missing_objects_not_retried(self, catalog) -> None:
        inner = FlakyProvider(catalog, ConnectionResetError("reset"), failures=0)
        provider = RetryingMetadataProvider(inner, self._config())

        with pytest.raises(MetadataUnavailable):
            asyncio.run(provider.list_schemas(99))
        assert len(inner.attempts) == 1

    def test_delegates_other_lookups(self, provider: YamlCatalogProvider) -> None:
        wrapped = RetryingMetadataProvider(provider)

        assert wrapped.inner is provider
        assert asyncio.run(wrapped.list_columns(8, "public", "dim_orders"))[0] == "id"
        assert asyncio.run(wrapped.list_enum_values("source_type")) == ["Table", "File"]
