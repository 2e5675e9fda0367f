"""
Database interaction module for the connected customer database.

Provides a clean interface for executing queries and retrieving schema
information over any SQLAlchemy-supported dialect. The visible table set can
be restricted to the tables confirmed to exist by introspection.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import MetaData, Row, create_engine, text
from sqlalchemy.engine import Engine

from ..errors import ToolExecutionError
from .format_schema import format_table_schema

logger = logging.getLogger(__name__)

_DDL_KEYWORDS = {"CREATE", "DROP", "ALTER", "TRUNCATE", "RENAME", "COMMENT"}


class InvalidQueryError(ToolExecutionError):
    """Exception raised for statements the agent is not allowed to run."""


class TableNotFoundError(ToolExecutionError):
    """Exception raised for invalid table names."""


@dataclass
class QueryResult:
    """Container for SQL query and its results."""

    sql: str
    rows: list[Row[Any]]
    columns: list[str]
    executed_at: datetime
    duration: timedelta | None = None
    truncated: bool = False

    @property
    def row_count(self) -> int:
        """Get number of rows returned."""
        return len(self.rows)

    def records(self) -> list[dict[str, Any]]:
        """Rows as column -> value mappings."""
        return [dict(zip(self.columns, row)) for row in self.rows]

    def to_text(self) -> str:
        """Render as a header line plus one ``|``-separated line per row."""
        if not self.columns:
            return ""
        lines = [" | ".join(self.columns)]
        for row in self.rows:
            lines.append(" | ".join("" if val is None else str(val) for val in row))
        return "\n".join(lines)


class Database:
    """A class to interact with a live database using SQLAlchemy.

    The engine and metadata are initialized once per turn. When
    ``include_tables`` is given, only those tables are reflected and offered
    to the agent.
    """

    def __init__(
        self,
        engine: Engine,
        database_name: str,
        include_tables: list[str] | None = None,
        max_rows: int = 1000,
    ):
        self.engine = engine
        self.database_name = database_name
        self.include_tables = include_tables
        self.max_rows = max_rows
        self.metadata = MetaData()
        self.last_query: QueryResult | None = None

    @classmethod
    def from_url(cls, url, database_name: str, **kwargs) -> "Database":
        return cls(create_engine(url), database_name, **kwargs)

    def reflect(self) -> None:
        """Load table metadata, limited to ``include_tables`` when set."""
        only = None
        if self.include_tables:
            allowed = set(self.include_tables)

            # Confirmed names outside the default schema are skipped, not fatal
            def only(name: str, _metadata: MetaData) -> bool:
                return name in allowed

        self.metadata.reflect(bind=self.engine, only=only)

    @property
    def dialect(self) -> str:
        """Get SQLAlchemy dialect name."""
        return self.engine.dialect.name

    @property
    def table_names(self) -> list[str]:
        """Get list of visible table names."""
        if self.metadata.tables:
            return sorted(self.metadata.tables.keys())
        return list(self.include_tables or [])

    def run(self, sql_query: str) -> str:
        """Execute a statement and return its textual rendering.

        The first line is the column header; every following line is one row
        with ``|``-separated values.
        """
        with self.engine.connect() as conn:
            result = conn.execute(text(sql_query))
            if not result.returns_rows:
                return ""
            columns = list(result.keys())
            rows = result.fetchmany(self.max_rows)
        return QueryResult(
            sql=sql_query,
            rows=list(rows),
            columns=columns,
            executed_at=datetime.now(),
        ).to_text()

    def execute_sql(self, sql_query: str) -> QueryResult:
        """Execute a SQL query and return results. Blocks DDL statements.

        Args:
            sql_query: SQL query string to execute

        Returns:
            QueryResult with execution results

        Raises:
            InvalidQueryError: If query is empty or a DDL statement
        """
        first_token = sql_query.strip().split()[0].upper() if sql_query.strip() else ""
        if not first_token:
            raise InvalidQueryError("Empty SQL statement")
        if first_token in _DDL_KEYWORDS:
            raise InvalidQueryError(f"DDL statements ({first_token}) are not allowed")

        start_time = datetime.now()
        with self.engine.connect() as conn:
            sql_result = conn.execute(text(sql_query))
            rows: list[Row[Any]] = []
            columns: list[str] = []
            truncated = False
            if sql_result.returns_rows:
                columns = list(sql_result.keys())
                rows = list(sql_result.fetchmany(self.max_rows + 1))
                if len(rows) > self.max_rows:
                    rows = rows[: self.max_rows]
                    truncated = True

        result = QueryResult(
            sql=sql_query,
            rows=rows,
            columns=columns,
            executed_at=start_time,
            duration=datetime.now() - start_time,
            truncated=truncated,
        )
        self.last_query = result
        logger.debug(
            "Executed query in %.3fs (%d rows)",
            result.duration.total_seconds(),
            result.row_count,
        )
        return result

    def explain(self, sql_query: str) -> None:
        """Ask the database to plan ``sql_query`` without running it.

        Raises:
            InvalidQueryError: If query is a DDL statement
            sqlalchemy.exc.SQLAlchemyError: If the database rejects the query
        """
        first_token = sql_query.strip().split()[0].upper() if sql_query.strip() else ""
        if first_token in _DDL_KEYWORDS:
            raise InvalidQueryError(f"DDL statements ({first_token}) are not allowed")
        with self.engine.connect() as conn:
            conn.execute(text(f"EXPLAIN {sql_query.strip().rstrip(';')}"))

    def describe_schema(self, table_names: list[str] | None = None) -> str:
        """Get a string representation of the structure of visible tables.

        Args:
            table_names: List of specific table names to describe (None = all tables)

        Returns:
            Human-readable text representation of table schemas

        Raises:
            TableNotFoundError: If any specified table name is not visible
        """
        if table_names:
            try:
                tables = [self.metadata.tables[table] for table in table_names]
            except KeyError as e:
                raise TableNotFoundError(f"Invalid table name: {e}") from e
        else:
            tables = [self.metadata.tables[name] for name in sorted(self.metadata.tables)]

        return "\n\n".join(format_table_schema(table) for table in tables)

    def dispose(self) -> None:
        self.engine.dispose()
