# -*- coding: utf-8 -*-
"""
SQL validation against the live connection.

    result = validate_sql(sql, database, "postgres")

Collects ALL errors found by three independent checks, then merges them:

1. **Syntax**: sqlglot parse in the connection's dialect.
2. **Tables**: every referenced table (CTE names excluded) must be one of
   the connection's visible tables.
3. **EXPLAIN**: the database plans the query, catching what the static
   checks miss. Skipped for dialects without a plain ``EXPLAIN``.
"""

from __future__ import annotations

from typing import List, Optional

import sqlglot
from pydantic import BaseModel, Field
from sqlglot import exp
from sqlglot.errors import ParseError

from ..database import SQLGLOT_DIALECTS, Database

# Dialects whose EXPLAIN accepts an arbitrary SELECT
_EXPLAIN_DIALECTS = {"postgres", "mysql", "sqlite"}


class ValidationError(BaseModel):
    """A single problem found in a query."""

    kind: str  # syntax | unknown_table | database
    message: str


class ValidationResult(BaseModel):
    """Validity flag plus every error found."""

    valid: bool
    sql: str = ""
    errors: List[ValidationError] = Field(default_factory=list)
    tables: List[str] = Field(default_factory=list)

    def to_text(self) -> str:
        if self.valid:
            tables = f" Tables referenced: {', '.join(self.tables)}." if self.tables else ""
            return f"Query is valid.{tables}"
        lines = ["Query has problems:"]
        lines.extend(f"- [{e.kind}] {e.message}" for e in self.errors)
        return "\n".join(lines)


def _parse(sql: str, dialect: str) -> tuple[Optional[exp.Expression], List[ValidationError]]:
    try:
        statements = sqlglot.parse(sql, read=dialect)
    except ParseError as e:
        errors = [
            ValidationError(
                kind="syntax",
                message=f"{err.get('description')} (line {err.get('line')}, col {err.get('col')})",
            )
            for err in e.errors
        ] or [ValidationError(kind="syntax", message=str(e))]
        return None, errors
    except Exception as e:
        return None, [ValidationError(kind="syntax", message=str(e))]

    statements = [s for s in statements if s is not None]
    if not statements:
        return None, [ValidationError(kind="syntax", message="No SQL statement found")]
    if len(statements) > 1:
        return statements[0], [
            ValidationError(kind="syntax", message="Only one statement may be run at a time")
        ]
    return statements[0], []


def referenced_tables(ast: exp.Expression) -> List[str]:
    """Physical table names referenced by the query, in order of appearance."""
    cte_names = {cte.alias_or_name.lower() for cte in ast.find_all(exp.CTE)}
    seen: List[str] = []
    for table in ast.find_all(exp.Table):
        name = table.name
        if name and name.lower() not in cte_names and name not in seen:
            seen.append(name)
    return seen


def _check_tables(tables: List[str], available: List[str]) -> List[ValidationError]:
    if not available:
        return []
    known = {name.lower() for name in available}
    return [
        ValidationError(
            kind="unknown_table",
            message=f"Table '{name}' does not exist. Available tables: {', '.join(available)}",
        )
        for name in tables
        if name.lower() not in known
    ]


def _explain(sql: str, database: Database, dialect: str) -> List[ValidationError]:
    if dialect not in _EXPLAIN_DIALECTS:
        return []
    try:
        database.explain(sql)
    except Exception as e:
        original = getattr(e, "orig", None)
        message = str(original if original is not None else e).strip()
        return [ValidationError(kind="database", message=message[:1000])]
    return []


def validate_sql(sql: str, database: Database, dialect: str) -> ValidationResult:
    """
    Validate a query against the live database.

    Args:
        sql:      SQL query string.
        database: Live connection; its visible tables are the schema.
        dialect:  Connection dialect (postgres, mysql, sqlite, mssql).

    Returns:
        ValidationResult with ``valid=True`` only when all checks pass.
    """
    ast, errors = _parse(sql, SQLGLOT_DIALECTS.get(dialect, "postgres"))

    tables: List[str] = []
    if ast is not None:
        tables = referenced_tables(ast)
        errors += _check_tables(tables, database.table_names)

    # Planning a statement that failed the static checks only repeats them
    if not errors:
        errors += _explain(sql, database, dialect)

    return ValidationResult(valid=not errors, sql=sql, errors=errors, tables=tables)
