"""
Connection resolution: ConnectionConfig -> live, validated Database.

Resolution is two-phase. A permissive connection first enumerates the base
tables that actually exist; the final connection then only reflects and
exposes those tables. A liveness probe runs right after the final connection
is established.
"""

import asyncio
import logging
from pathlib import Path

from ..errors import ConfigurationError, ConnectivityError, IntrospectionFailure
from .config import ConnectionConfig
from .database import Database
from .introspection import get_test_query, list_base_tables

logger = logging.getLogger(__name__)


def _open(config: ConnectionConfig, include_tables: list[str] | None = None) -> Database:
    try:
        return Database.from_url(
            config.sqlalchemy_url(),
            database_name=config.database,
            include_tables=include_tables,
        )
    except ConfigurationError:
        raise
    except ImportError as e:
        raise ConfigurationError(
            f"Database driver for '{config.dialect}' is not installed: {e}"
        ) from e
    except Exception as e:
        raise ConnectivityError(
            f"Could not open connection to {config.describe()}: {e}"
        ) from e


async def resolve(
    config: ConnectionConfig,
    *,
    probe_timeout: float = 10.0,
    strict: bool = False,
) -> Database:
    """Turn a connection config into a live, probed Database.

    Args:
        config: Connection details supplied with the request
        probe_timeout: Upper bound in seconds for the liveness probe
        strict: Treat a failed or empty table enumeration as fatal

    Returns:
        Database restricted to the confirmed base tables (or unrestricted
        when enumeration found nothing)

    Raises:
        ConfigurationError: Missing fields, unsupported dialect or driver
        ConnectivityError: The connection could not be opened or probed, or
            the sqlite file does not exist
        IntrospectionFailure: Only with ``strict=True``, when no table could
            be enumerated
    """
    config.require_complete()
    dialect = config.dialect

    # sqlite would create a missing file and hand back an empty database
    if dialect == "sqlite" and not Path(config.database).is_file():
        raise ConnectivityError(f"SQLite database file not found: {config.describe()}")

    # Phase 1: permissive connection, only used to list existing tables
    permissive = _open(config)
    try:
        existing_tables = await asyncio.to_thread(list_base_tables, permissive, dialect)
    finally:
        permissive.dispose()

    if not existing_tables:
        if strict:
            raise IntrospectionFailure(
                f"Could not enumerate base tables of {config.describe()}"
            )
        logger.warning(
            "No base tables enumerated for %s, proceeding with unrestricted table set",
            config.describe(),
        )

    # Phase 2: final connection restricted to confirmed tables
    database = _open(config, include_tables=existing_tables or None)
    try:
        await asyncio.wait_for(
            asyncio.to_thread(database.run, get_test_query(dialect)),
            timeout=probe_timeout,
        )
    except asyncio.TimeoutError as e:
        database.dispose()
        raise ConnectivityError(
            f"Connection probe to {config.describe()} timed out after {probe_timeout}s"
        ) from e
    except Exception as e:
        database.dispose()
        raise ConnectivityError(
            f"Connection probe to {config.describe()} failed: {e}"
        ) from e

    logger.info("Connected to %s", config.describe())

    try:
        await asyncio.to_thread(database.reflect)
    except Exception as e:
        logger.warning("Schema reflection failed for %s: %s", config.describe(), e)

    return database
