"""Metadata provider interface consumed by the form engine.

The engine never introspects databases itself. It asks a provider for
connections, schemas, tables, columns and enum catalogs, and treats every
call as asynchronous and fallible.
"""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

from metaconsole.forms.constants import DATE_TYPES, DEFAULT_ENUMS
from metaconsole.lib.errors import MetadataUnavailable
from metaconsole.lib.resilience import RetryConfig, retry_async

_TYPE_BASE = re.compile(r"[\s(]")


@dataclass(frozen=True)
class Connection:
    """A registered source/target connection."""

    id: int
    name: str
    type: str


@dataclass(frozen=True)
class ColumnInfo:
    """A column of a resolved table, with its type metadata."""

    name: str
    data_type: str = ""
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    primary_key: bool = False
    foreign_key: bool = False
    description: str = ""

    @property
    def base_type(self) -> str:
        """Lower-cased type name without size or qualifiers.

        >>> ColumnInfo("ts", "TIMESTAMP WITHOUT TIME ZONE").base_type
        'timestamp'
        """
        return _TYPE_BASE.split(self.data_type.strip().lower(), 1)[0]

    def is_date(self, date_types: Sequence[str] = DATE_TYPES) -> bool:
        return bool(filter_by_type([self], date_types))


class MetadataProvider(ABC):
    """Source of the choice lists the forms offer.

    Implementations raise MetadataUnavailable (or any exception, which the
    session wraps) when a lookup cannot be served.
    """

    @abstractmethod
    async def list_connections(self) -> list[Connection]:
        ...

    @abstractmethod
    async def list_schemas(self, connection_id: int) -> list[str]:
        ...

    @abstractmethod
    async def list_tables(self, connection_id: int, schema: str) -> list[str]:
        ...

    @abstractmethod
    async def list_columns_with_types(
        self,
        connection_id: int,
        schema: str,
        table: str,
        type_filter: Sequence[str] | None = None,
    ) -> list[ColumnInfo]:
        """Columns of a table with their types.

        Args:
            connection_id: Connection the table lives on
            schema: Schema name
            table: Table name
            type_filter: Keep only columns whose base type is listed here
        """

    async def list_columns(self, connection_id: int, schema: str, table: str) -> list[str]:
        columns = await self.list_columns_with_types(connection_id, schema, table)
        return [column.name for column in columns]

    async def list_enum_values(self, enum_name: str) -> list[str]:
        """Values of a named enum catalog (execution layers, load types, ...)."""
        try:
            return list(DEFAULT_ENUMS[enum_name])
        except KeyError:
            raise MetadataUnavailable(
                f"Unknown enum catalog '{enum_name}'",
                request=("enum", enum_name),
                suggestion=f"Known catalogs: {', '.join(sorted(DEFAULT_ENUMS))}",
            ) from None


def filter_by_type(columns: Sequence[ColumnInfo], type_filter: Sequence[str] | None) -> list[ColumnInfo]:
    """Keep the columns whose base type is in ``type_filter`` (all if None)."""
    if type_filter is None:
        return list(columns)
    wanted = {name.lower() for name in type_filter}
    return [column for column in columns if column.base_type in wanted]


class RetryingMetadataProvider(MetadataProvider):
    """Wraps another provider and retries transient failures with tenacity.

    Only I/O style failures are retried by default; a MetadataUnavailable
    for a missing schema or table is returned to the caller immediately.
    """

    def __init__(self, inner: MetadataProvider, config: RetryConfig | None = None):
        self._inner = inner
        self._config = config or RetryConfig(retry_exceptions=(OSError, asyncio.TimeoutError))

    @property
    def inner(self) -> MetadataProvider:
        return self._inner

    async def _call(self, name: str, *args: Any) -> Any:
        return await retry_async(getattr(self._inner, name), *args, config=self._config)

    async def list_connections(self) -> list[Connection]:
        return await self._call("list_connections")

    async def list_schemas(self, connection_id: int) -> list[str]:
        return await self._call("list_schemas", connection_id)

    async def list_tables(self, connection_id: int, schema: str) -> list[str]:
        return await self._call("list_tables", connection_id, schema)

    async def list_columns(self, connection_id: int, schema: str, table: str) -> list[str]:
        return await self._call("list_columns", connection_id, schema, table)

    async def list_columns_with_types(
        self,
        connection_id: int,
        schema: str,
        table: str,
        type_filter: Sequence[str] | None = None,
    ) -> list[ColumnInfo]:
        return await self._call("list_columns_with_types", connection_id, schema, table, type_filter)

    async def list_enum_values(self, enum_name: str) -> list[str]:
        return await self._call("list_enum_values", enum_name)
