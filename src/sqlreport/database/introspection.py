"""
Base-table enumeration per dialect.

The queries below are the contract with each database family and are run
verbatim. Their textual output is parsed defensively: the header line is
skipped, blank lines are dropped and only the leading column is kept.
"""

import logging

from .database import Database

logger = logging.getLogger(__name__)

POSTGRES_TABLES_QUERY = """
          SELECT table_name 
          FROM information_schema.tables 
          WHERE table_schema = 'public' 
          AND table_type = 'BASE TABLE'
        """

TABLES_QUERIES = {
    "postgres": POSTGRES_TABLES_QUERY,
    "mysql": """
          SELECT table_name 
          FROM information_schema.tables 
          WHERE table_schema = DATABASE()
          AND table_type = 'BASE TABLE'
        """,
    "sqlite": """
          SELECT name as table_name 
          FROM sqlite_master 
          WHERE type = 'table'
        """,
    "mssql": """
          SELECT table_name 
          FROM information_schema.tables 
          WHERE table_type = 'BASE TABLE'
        """,
}

TEST_QUERY = "SELECT 1 AS test"


def get_tables_query(dialect: str) -> str:
    """Table enumeration query for ``dialect``; unknown dialects use the postgres one."""
    return TABLES_QUERIES.get(dialect, POSTGRES_TABLES_QUERY)


def get_test_query(dialect: str) -> str:
    """Liveness probe, identical for every supported dialect."""
    return TEST_QUERY


def parse_table_listing(output: str) -> list[str]:
    """Extract table names from a header-first ``|``-separated listing."""
    if not isinstance(output, str):
        return []
    tables = []
    for line in output.split("\n")[1:]:
        line = line.strip()
        if not line:
            continue
        name = line.split("|")[0].strip()
        if name:
            tables.append(name)
    return tables


def list_base_tables(database: Database, dialect: str) -> list[str]:
    """Enumerate the base tables of a live connection.

    Never raises: any failure is logged and yields an empty list, leaving it
    to the caller to decide whether that is fatal.
    """
    try:
        output = database.run(get_tables_query(dialect))
    except Exception as e:
        logger.warning("Failed to get existing tables: %s", e)
        return []
    return parse_table_listing(output)
