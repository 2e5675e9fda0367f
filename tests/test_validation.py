# -*- coding: utf-8 -*-
"""
Tests for SQL validation against a live SQLite connection.
"""

import sqlglot

from sqlreport.tools.validation import referenced_tables, validate_sql


# =============================================================================
# Syntax
# =============================================================================


class TestSyntax:
    """Parse errors are reported before any table or database check."""

    def test_valid_query(self, database):
        result = validate_sql("SELECT id, status FROM orders WHERE amount > 10", database, "sqlite")

        assert result.valid is True
        assert result.errors == []
        assert result.tables == ["orders"]

    def test_unbalanced_parentheses(self, database):
        result = validate_sql("SELECT COUNT(id FROM orders", database, "sqlite")

        assert result.valid is False
        assert result.errors[0].kind == "syntax"

    def test_empty_query(self, database):
        result = validate_sql("   ", database, "sqlite")

        assert result.valid is False
        assert result.errors[0].message == "No SQL statement found"

    def test_multiple_statements(self, database):
        result = validate_sql("SELECT 1; SELECT 2", database, "sqlite")

        assert result.valid is False
        assert "one statement" in result.errors[0].message


# =============================================================================
# Tables
# =============================================================================


class TestTables:
    def test_unknown_table(self, database):
        result = validate_sql("SELECT * FROM invoices", database, "sqlite")

        assert result.valid is False
        assert [e.kind for e in result.errors] == ["unknown_table"]
        assert "Available tables: customers, orders" in result.errors[0].message

    def test_case_insensitive_table_names(self, database):
        assert validate_sql("SELECT id FROM ORDERS", database, "sqlite").valid is True

    def test_cte_names_are_not_tables(self, database):
        sql = """
            WITH revenue AS (
                SELECT customer_id, SUM(amount) AS total FROM orders GROUP BY customer_id
            )
            SELECT c.name, r.total FROM revenue r JOIN customers c ON c.id = r.customer_id
        """
        result = validate_sql(sql, database, "sqlite")

        assert result.valid is True
        assert sorted(result.tables) == ["customers", "orders"]

    def test_referenced_tables_in_order(self):
        ast = sqlglot.parse_one("SELECT * FROM orders o JOIN customers c ON c.id = o.customer_id")
        assert referenced_tables(ast) == ["orders", "customers"]


# =============================================================================
# EXPLAIN
# =============================================================================


class TestExplain:
    def test_unknown_column_is_caught_by_database(self, database):
        result = validate_sql("SELECT total_price FROM orders", database, "sqlite")

        assert result.valid is False
        assert result.errors[0].kind == "database"
        assert "total_price" in result.errors[0].message

    def test_to_text(self, database):
        text = validate_sql("SELECT total_price FROM orders", database, "sqlite").to_text()
        assert text.startswith("Query has problems:\n- [database]")
