"""
SQL tools bound to one live connection.

Database errors are not exceptions for the agent loop: every failure is
returned as an ``Error: ...`` string the model can read and react to, e.g. by
resubmitting corrected SQL.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from ..database import InvalidQueryError, TableNotFoundError
from .base import AgentTool
from .deps import AgentDeps
from .validation import validate_sql

logger = logging.getLogger(__name__)

_MAX_ERROR_CHARS = 1000


class DBQueryResponse(BaseModel):
    """Result of a database query execution.

    Attributes:
        columns: List of column names in the result set
        rows: List of rows, each a column -> value object
        note: Optional note about the query (e.g., truncation message)
    """

    columns: list[str] | None = None
    rows: list[dict[str, Any]] | None = None
    note: str | None = None


class ExecuteQueryInput(BaseModel):
    sql: str = Field(description="A single SQL SELECT statement to run")


class ValidateQueryInput(BaseModel):
    sql: str = Field(description="SQL statement to check before executing it")


class DescribeSchemaInput(BaseModel):
    table_names: list[str] | None = Field(
        default=None,
        description="Tables to describe; omit to describe every available table",
    )


class ListTablesInput(BaseModel):
    pass


def describe_db_error(error: Exception) -> str:
    """Short, model-readable text for a driver error."""
    original = getattr(error, "orig", None)
    message = str(original) if original is not None else str(error)
    message = message.strip() or type(error).__name__
    return message[:_MAX_ERROR_CHARS]


def list_tables(deps: AgentDeps, args: ListTablesInput) -> str:
    """List the tables available in the connected database."""
    names = deps.database.table_names
    if not names:
        return "No tables found in the connected database."
    return ", ".join(names)


def describe_schema(deps: AgentDeps, args: DescribeSchemaInput) -> str:
    """Get columns, types and constraints for some or all tables."""
    database = deps.database
    try:
        schema = database.describe_schema(args.table_names)
    except TableNotFoundError as e:
        return f"Error: {e}. Available tables: {', '.join(database.table_names)}"
    except SQLAlchemyError as e:
        return f"Error: {describe_db_error(e)}"
    return schema or "No tables found in the connected database."


def execute_query(deps: AgentDeps, args: ExecuteQueryInput) -> str:
    """Execute the given SQL query and return the result as JSON.

    Results may be truncated when they contain lots of data, based on the
    max_return_values budget.
    """
    try:
        result = deps.database.execute_sql(args.sql)
    except InvalidQueryError as e:
        return f"Error: {e}"
    except SQLAlchemyError as e:
        logger.info("Query failed: %s", describe_db_error(e))
        return f"Error: {describe_db_error(e)}"

    if not result.columns:
        return DBQueryResponse(note="Statement executed, no rows returned").model_dump_json()
    if not result.rows:
        return DBQueryResponse(columns=result.columns, rows=[], note="No results").model_dump_json()

    # Allow at least 5 rows, then distribute max_return_values across columns
    max_return_rows = 5 + deps.max_return_values // len(result.columns)
    records = result.records()
    note = None
    if len(records) > max_return_rows or result.truncated:
        total = f"at least {result.row_count}" if result.truncated else str(result.row_count)
        note = f"Query returned {total} rows, showing first {min(max_return_rows, len(records))} only"
    return DBQueryResponse(
        columns=result.columns,
        rows=records[:max_return_rows],
        note=note,
    ).model_dump_json()


def validate_query(deps: AgentDeps, args: ValidateQueryInput) -> str:
    """Check SQL syntax and table references against the live database."""
    return validate_sql(args.sql, deps.database, deps.dialect).to_text()


SQL_TOOLS = [
    AgentTool(
        name="list_tables",
        description=(
            "List the tables available in the connected database. "
            "Call this first when you do not know which tables exist."
        ),
        args_model=ListTablesInput,
        func=list_tables,
    ),
    AgentTool(
        name="describe_schema",
        description=(
            "Get the schema (columns, types, keys, constraints) of the given "
            "tables, or of every table when table_names is omitted. Use it "
            "before writing a query against unfamiliar tables."
        ),
        args_model=DescribeSchemaInput,
        func=describe_schema,
    ),
    AgentTool(
        name="execute_query",
        description=(
            "Execute a SQL SELECT query on the connected database and return "
            "JSON with columns and rows (one object per row). If the query "
            "fails, the error is returned; rewrite the query and try again."
        ),
        args_model=ExecuteQueryInput,
        func=execute_query,
    ),
    AgentTool(
        name="validate_query",
        description=(
            "Double check a SQL query before executing it: reports syntax "
            "errors, references to tables that do not exist and errors the "
            "database raises when planning the query."
        ),
        args_model=ValidateQueryInput,
        func=validate_query,
    ),
]
