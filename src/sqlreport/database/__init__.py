"""
Database module: connection resolution, introspection and query execution.

Example usage:
    >>> from sqlreport.database import ConnectionConfig, resolve
    >>> config = ConnectionConfig(type="sqlite", database="shop.db")
    >>> database = await resolve(config)
    >>> database.table_names
"""

from .config import SQLGLOT_DIALECTS, SUPPORTED_DIALECTS, ConnectionConfig
from .database import Database, InvalidQueryError, QueryResult, TableNotFoundError
from .introspection import (
    get_tables_query,
    get_test_query,
    list_base_tables,
    parse_table_listing,
)
from .resolver import resolve

__all__ = [
    "ConnectionConfig",
    "SUPPORTED_DIALECTS",
    "SQLGLOT_DIALECTS",
    "Database",
    "QueryResult",
    "InvalidQueryError",
    "TableNotFoundError",
    "get_tables_query",
    "get_test_query",
    "list_base_tables",
    "parse_table_listing",
    "resolve",
]
