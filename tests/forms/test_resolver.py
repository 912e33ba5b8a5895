"""Tests for the dependency resolver."""

from __future__ import annotations

from typing import Any, Dict

import pytest

from metaconsole.forms.engine.resolver import (
    ChoiceRequest,
    choice_requests,
    connection_is_eligible,
    eligible_connections,
    enabled_fields,
    reduce,
    table_key,
)
from metaconsole.forms.models.field_metadata import (
    DATA_DICTIONARY_FORM,
    DATA_QUALITY_FORM,
    MANIFESTS,
    PIPELINE_FORM,
    RECONCILIATION_FORM,
)
from metaconsole.forms.utils.metadata_provider import Connection
from metaconsole.lib.errors import ConfigurationError

CONNECTIONS = [
    Connection(7, "orders_db", "MySQL"),
    Connection(8, "warehouse", "PostgreSQL"),
    Connection(9, "lake", "GCP"),
    Connection(11, "crm", "API"),
]


def _full_chain_values(manifest, chain) -> Dict[str, Any]:
    """Values with every member of a chain filled in."""
    values: Dict[str, Any] = {name: None for name in manifest.fields}
    for name in chain.members:
        values[name] = f"{name}-value"
    values[chain.connection_field] = 7
    values[chain.system_field] = "MySQL"
    return values


class TestCascadeClear:
    """Setting an ancestor always unsets every descendant."""

    @pytest.mark.parametrize("form", sorted(MANIFESTS))
    def test_every_level_of_every_chain(self, form: str) -> None:
        """For all forms, chains and levels, descendants end up unset."""
        manifest = MANIFESTS[form]
        for chain in manifest.chains:
            for level in chain.levels:
                values = _full_chain_values(manifest, chain)
                transition = reduce(manifest, values, level, "something-else", CONNECTIONS)

                assert transition.values[level] == "something-else"
                for name in chain.descendants(level):
                    assert transition.values[name] is None, (form, chain.name, level, name)
                assert set(transition.clears) == set(chain.descendants(level))

    def test_connection_change_clears_source_chain(self) -> None:
        """Changing connection_id clears schema and table."""
        values = {
            "source_system": "MySQL",
            "connection_id": 7,
            "source_schema_name": "sales",
            "source_table_name": "orders",
        }

        transition = reduce(PIPELINE_FORM, values, "connection_id", 8)

        assert transition.clears == ("source_schema_name", "source_table_name")
        assert transition.changes == {
            "connection_id": 8,
            "source_schema_name": None,
            "source_table_name": None,
        }

    def test_table_change_clears_derived_fields(self) -> None:
        """Changing the target table drops primary key, date and md5 columns."""
        values = {
            "target_system": "PostgreSQL",
            "target_connection_id": 8,
            "target_schema_name": "public",
            "target_table_name": "dim_orders",
            "primary_key": "id",
            "effective_date_column": "updated_at",
            "md5_columns": "id,amount",
        }

        transition = reduce(PIPELINE_FORM, values, "target_table_name", "fact_sales")

        assert transition.clears == ("primary_key", "effective_date_column", "md5_columns")

    def test_only_set_fields_are_reported(self) -> None:
        """Clears list only fields that actually held a value."""
        values = {"source_system": "MySQL", "connection_id": 7, "source_schema_name": "sales"}

        transition = reduce(PIPELINE_FORM, values, "connection_id", 8)

        assert transition.clears == ("source_schema_name",)

    def test_same_value_is_a_no_op(self) -> None:
        """Re-selecting the current value clears nothing."""
        values = {"source_system": "MySQL", "connection_id": 7, "source_schema_name": "sales"}

        transition = reduce(PIPELINE_FORM, values, "connection_id", 7)

        assert transition.clears == ()
        assert transition.values["source_schema_name"] == "sales"

    def test_same_connection_id_as_text_is_a_no_op(self) -> None:
        """A loaded integer id re-selected as text keeps the chain below it."""
        values = {
            "source_system": "MySQL",
            "connection_id": 7,
            "source_schema_name": "sales",
            "source_table_name": "orders",
        }

        transition = reduce(PIPELINE_FORM, values, "connection_id", "7")

        assert transition.clears == ()
        assert transition.value == 7
        assert transition.values["source_table_name"] == "orders"

    def test_text_fields_compare_exactly(self) -> None:
        values = {"source_system": "MySQL", "connection_id": 7, "source_schema_name": "sales"}

        transition = reduce(PIPELINE_FORM, values, "source_schema_name", "Sales")

        assert transition.value == "Sales"

    def test_input_not_mutated(self) -> None:
        """The reducer returns new values and leaves its input alone."""
        values = {"source_system": "MySQL", "connection_id": 7, "source_schema_name": "sales"}

        reduce(PIPELINE_FORM, values, "connection_id", 8)

        assert values["source_schema_name"] == "sales"

    def test_unknown_field(self) -> None:
        """Edits to undeclared fields raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            reduce(PIPELINE_FORM, {}, "bogus", 1)


class TestSystemChange:
    """System selectors re-check connection eligibility."""

    def test_mysql_to_postgresql_clears_chain(self) -> None:
        """An ineligible connection is cleared along with schema and table."""
        values = {
            "source_system": "MySQL",
            "connection_id": 7,
            "source_schema_name": "sales",
            "source_table_name": "orders",
        }

        transition = reduce(PIPELINE_FORM, values, "source_system", "PostgreSQL", CONNECTIONS)

        assert transition.clears == ("connection_id", "source_schema_name", "source_table_name")
        assert transition.values["source_system"] == "PostgreSQL"

    def test_still_eligible_connection_is_kept(self) -> None:
        """A case-only change of system keeps an eligible connection."""
        values = {"source_system": "MySQL", "connection_id": 7, "source_schema_name": "sales"}

        transition = reduce(PIPELINE_FORM, values, "source_system", "mysql", CONNECTIONS)

        assert transition.clears == ()

    def test_alias_keeps_connection(self) -> None:
        """BigQuery accepts a GCP connection."""
        values = {"target_system": "Snowflake", "target_connection_id": 9}

        transition = reduce(PIPELINE_FORM, values, "target_system", "BigQuery", CONNECTIONS)

        assert transition.clears == ()

    def test_unknown_connections_clear_chain(self) -> None:
        """Without the connection list eligibility is unknown, so the chain clears."""
        values = {"source_system": "MySQL", "connection_id": 7, "source_schema_name": "sales"}

        transition = reduce(PIPELINE_FORM, values, "source_system", "Oracle")

        assert transition.clears == ("connection_id", "source_schema_name")

    def test_clearing_system_on_optional_chain_keeps_connection(self) -> None:
        """Data-quality chains allow any connection when no system is chosen."""
        values = {"source_system": "MySQL", "source_connection_id": 7, "source_schema": "sales"}

        transition = reduce(DATA_QUALITY_FORM, values, "source_system", None, CONNECTIONS)

        assert transition.clears == ()


class TestConnectionEligibility:
    """Tests for system/connection matching."""

    @pytest.mark.parametrize(
        "system,connection,expected",
        [
            ("MySQL", Connection(1, "a", "MySQL"), True),
            ("MySQL", Connection(1, "a", "mysql"), True),
            ("MySQL", Connection(1, "a", "PostgreSQL"), False),
            ("BigQuery", Connection(1, "a", "GCP"), True),
            ("BigQuery", Connection(1, "a", "BigQuery"), True),
            ("Salesforce", Connection(1, "a", "API"), True),
            ("Snowflake", Connection(1, "a", "GCP"), False),
            (None, Connection(1, "a", "MySQL"), False),
        ],
    )
    def test_matching(self, system, connection, expected) -> None:
        """Exact case-insensitive match plus the alias table."""
        assert connection_is_eligible(connection, system) is expected

    def test_custom_alias_table(self) -> None:
        """A supplied alias table replaces the built-in one."""
        connection = Connection(1, "a", "GBQ")

        assert connection_is_eligible(connection, "BigQuery") is False
        assert connection_is_eligible(connection, "BigQuery", {"BigQuery": ["GBQ"]}) is True

    def test_eligible_connections_filters(self) -> None:
        """Only connections matching the system are offered."""
        chain = PIPELINE_FORM.chain("source")

        assert [c.id for c in eligible_connections(chain, CONNECTIONS, "Salesforce")] == [11]
        assert eligible_connections(chain, CONNECTIONS, None) == []

    def test_optional_system_offers_everything(self) -> None:
        """With no system selected a data-quality chain offers all connections."""
        chain = DATA_QUALITY_FORM.chain("target")

        assert len(eligible_connections(chain, CONNECTIONS, None)) == len(CONNECTIONS)


class TestTypeChange:
    """Flipping a chain's type."""

    def test_data_dictionary_type_change_clears(self) -> None:
        """The data-dictionary form clears schema, table and file name."""
        values = {
            "source_system": "MySQL",
            "source_connection_id": 7,
            "source_type": "Table",
            "source_schema_name": "sales",
            "source_table_name": "orders",
        }

        transition = reduce(DATA_DICTIONARY_FORM, values, "source_type", "File")

        assert transition.clears == ("source_schema_name", "source_table_name")
        assert transition.values["source_connection_id"] == 7

    def test_pipeline_type_change_only_hides(self) -> None:
        """Other forms keep the values so flipping back restores them."""
        values = {
            "source_system": "MySQL",
            "connection_id": 7,
            "source_type": "Table",
            "source_schema_name": "sales",
        }

        transition = reduce(PIPELINE_FORM, values, "source_type", "File")

        assert transition.clears == ()
        assert transition.values["source_schema_name"] == "sales"


class TestEnabledFields:
    """A field is enabled when gated on and its ancestors are set."""

    def test_chain_unlocks_level_by_level(self) -> None:
        """Schema needs a connection, table needs a schema."""
        values = {"source_system": "MySQL", "source_type": "Table"}
        enabled = enabled_fields(PIPELINE_FORM, values)
        assert "connection_id" in enabled
        assert "source_schema_name" not in enabled

        values["connection_id"] = 7
        enabled = enabled_fields(PIPELINE_FORM, values)
        assert "source_schema_name" in enabled
        assert "source_table_name" not in enabled

        values["source_schema_name"] = "sales"
        assert "source_table_name" in enabled_fields(PIPELINE_FORM, values)

    def test_connection_requires_system(self) -> None:
        """Pipeline connections wait for a system; data-quality ones do not."""
        assert "connection_id" not in enabled_fields(PIPELINE_FORM, {})
        assert "source_connection_id" in enabled_fields(DATA_QUALITY_FORM, {})

    def test_file_type_switches_branch(self) -> None:
        """A File source offers file fields instead of schema and table."""
        values = {"source_system": "MySQL", "connection_id": 7, "source_type": "File"}
        enabled = enabled_fields(PIPELINE_FORM, values)

        assert "source_file_path" in enabled
        assert "source_schema_name" not in enabled

    def test_recon_attribute_gated_on_amount_check(self) -> None:
        """The attribute column is offered only for amount checks."""
        values = {
            "target_system": "PostgreSQL",
            "target_connection_id": 8,
            "target_schema": "public",
            "target_table": "dim_orders",
            "recon_type": "count check",
        }
        assert "attribute" not in enabled_fields(RECONCILIATION_FORM, values)

        values["recon_type"] = "amount check"
        assert "attribute" in enabled_fields(RECONCILIATION_FORM, values)


class TestChoiceRequests:
    """Lookups are keyed by the exact inputs they depend on."""

    def test_keys_follow_chain_values(self) -> None:
        """Requests carry connection, schema and table in their keys."""
        values = {
            "execution_layer": "Silver",
            "load_type": "SCD2",
            "target_system": "PostgreSQL",
            "target_connection_id": 8,
            "target_schema_name": "public",
            "target_table_name": "dim_orders",
        }
        requests = {r.field: r for r in choice_requests(PIPELINE_FORM, values)}

        assert requests["target_connection_id"].key == ("connections",)
        assert requests["target_schema_name"].key == ("schemas", 8)
        assert requests["target_table_name"].key == ("tables", 8, "public")
        assert requests["md5_columns"].key == ("columns", 8, "public", "dim_orders")
        assert requests["effective_date_column"].key == ("date_columns", 8, "public", "dim_orders")
        assert requests["load_type"] == ChoiceRequest("load_type", "enum", ("load_type",))

    def test_disabled_fields_request_nothing(self) -> None:
        """No table lookup is issued before a schema is chosen."""
        values = {"source_system": "MySQL", "connection_id": 7}
        fields = {r.field for r in choice_requests(PIPELINE_FORM, values)}

        assert "source_schema_name" in fields
        assert "source_table_name" not in fields

    def test_table_key(self) -> None:
        """table_key is None until the table is resolved."""
        chain = PIPELINE_FORM.chain("target")
        values = {"target_connection_id": 8, "target_schema_name": "public"}
        assert table_key(chain, values) is None

        values["target_table_name"] = "dim_orders"
        assert table_key(chain, values) == ("columns", 8, "public", "dim_orders")
        assert table_key(chain, values, "date_columns")[0] == "date_columns"
