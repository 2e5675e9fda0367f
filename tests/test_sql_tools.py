"""Tests for the SQL tools and toolset assembly."""

import json

import pytest

from sqlreport.tools import AgentDeps, build_toolset, datasource_label
from sqlreport.tools.base import looks_like_error
from sqlreport.tools.sql_tools import (
    DescribeSchemaInput,
    ExecuteQueryInput,
    ListTablesInput,
    ValidateQueryInput,
    describe_schema,
    execute_query,
    list_tables,
    validate_query,
)


class TestListTables:
    def test_lists_visible_tables(self, deps):
        assert list_tables(deps, ListTablesInput()) == "customers, orders"


class TestDescribeSchema:
    def test_all_tables(self, deps):
        schema = describe_schema(deps, DescribeSchemaInput())
        assert "TABLE customers (" in schema
        assert "TABLE orders (" in schema

    def test_unknown_table_lists_alternatives(self, deps):
        result = describe_schema(deps, DescribeSchemaInput(table_names=["invoices"]))
        assert result.startswith("Error: Invalid table name")
        assert "Available tables: customers, orders" in result


class TestExecuteQuery:
    def test_returns_json_rows(self, deps):
        result = json.loads(
            execute_query(deps, ExecuteQueryInput(sql="SELECT name FROM customers WHERE country = 'US' ORDER BY id"))
        )
        assert result["columns"] == ["name"]
        assert result["rows"] == [{"name": "Acme"}, {"name": "Initech"}]
        assert result["note"] is None

    def test_no_results(self, deps):
        result = json.loads(execute_query(deps, ExecuteQueryInput(sql="SELECT * FROM orders WHERE id < 0")))
        assert result["rows"] == []
        assert result["note"] == "No results"

    def test_large_results_are_cut_to_value_budget(self, deps):
        deps.max_return_values = 0
        result = json.loads(execute_query(deps, ExecuteQueryInput(sql="SELECT * FROM orders")))

        assert len(result["rows"]) == 5
        assert result["note"] == "Query returned 6 rows, showing first 5 only"

    def test_database_error_is_text(self, deps):
        result = execute_query(deps, ExecuteQueryInput(sql="SELECT * FROM invoices"))
        assert result.startswith("Error:")
        assert "no such table: invoices" in result

    def test_ddl_is_refused(self, deps):
        result = execute_query(deps, ExecuteQueryInput(sql="DROP TABLE orders"))
        assert result == "Error: DDL statements (DROP) are not allowed"
        assert deps.database.table_names == ["customers", "orders"]


class TestValidateQuery:
    def test_valid(self, deps):
        result = validate_query(deps, ValidateQueryInput(sql="SELECT id FROM orders"))
        assert result == "Query is valid. Tables referenced: orders."

    def test_problems_are_listed(self, deps):
        result = validate_query(deps, ValidateQueryInput(sql="SELECT id FROM invoices"))
        assert result.startswith("Query has problems:")
        assert "[unknown_table] Table 'invoices' does not exist" in result


class TestToolset:
    def test_export_tool_requires_uploader(self, database, uploader):
        without = build_toolset(AgentDeps(database=database, dialect="sqlite"))
        with_upload = build_toolset(AgentDeps(database=database, dialect="sqlite", uploader=uploader))

        assert without.names == ["list_tables", "describe_schema", "execute_query", "validate_query"]
        assert "excel_export" not in without
        assert with_upload.names[-1] == "excel_export"
        assert len(with_upload) == 5

    def test_definitions_carry_json_schema(self, deps):
        definitions = {d.name: d for d in build_toolset(deps).definitions()}

        execute = definitions["execute_query"].parameters_json_schema
        assert execute["required"] == ["sql"]
        export = definitions["excel_export"].parameters_json_schema
        assert export["properties"]["data"]["type"] == "array"
        assert "sheetName" in export["properties"]

    @pytest.mark.asyncio
    async def test_sync_tools_run_off_the_loop(self, deps):
        toolset = build_toolset(deps)
        tool = toolset.get("list_tables")
        assert await tool.call(deps, tool.parse_args({})) == "customers, orders"


@pytest.mark.parametrize(
    "name, expected",
    [
        (None, "db"),
        ("shop", "shop"),
        ("/var/data/shop.db", "shop"),
        ("sales reporting", "sales_reporting"),
        ("...", "db"),
    ],
)
def test_datasource_label(name, expected):
    assert datasource_label(name) == expected


@pytest.mark.parametrize(
    "observation, is_error",
    [
        ("Error: no such table", True),
        ("Failed to generate Excel file: boom", True),
        ("File too large (51.00MB). Please limit your query results to reduce file size.", True),
        ('{"columns": ["n"], "rows": [{"n": 1}], "note": null}', False),
        ("customers, orders", False),
    ],
)
def test_looks_like_error(observation, is_error):
    assert looks_like_error(observation) is is_error
