"""
Per-request database connection settings.

A ``ConnectionConfig`` is supplied by the caller for every turn and is never
persisted here. ``require_complete()`` must pass before any connection is
attempted: missing fields are a configuration error, never a reason to fall
back to a default database.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, SecretStr
from sqlalchemy.engine import URL

from ..errors import ConfigurationError

Dialect = Literal["postgres", "mysql", "sqlite", "mssql"]

SUPPORTED_DIALECTS: tuple[str, ...] = ("postgres", "mysql", "sqlite", "mssql")

# SQLAlchemy driver names per dialect
DRIVERS = {
    "postgres": "postgresql+psycopg",
    "mysql": "mysql+pymysql",
    "mssql": "mssql+pyodbc",
    "sqlite": "sqlite",
}

# sqlglot dialect names per dialect
SQLGLOT_DIALECTS = {
    "postgres": "postgres",
    "mysql": "mysql",
    "sqlite": "sqlite",
    "mssql": "tsql",
}

_NETWORK_FIELDS = ("host", "port", "database", "username", "password")

MSSQL_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"


class ConnectionConfig(BaseModel):
    """Connection details for one customer database."""

    model_config = ConfigDict(frozen=True)

    type: str
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    password: SecretStr | None = None

    @property
    def dialect(self) -> str:
        return self.type.strip().lower()

    def missing_fields(self) -> list[str]:
        """Names of required fields that are absent or blank."""
        required = ("database",) if self.dialect == "sqlite" else _NETWORK_FIELDS
        missing = []
        for name in required:
            value = getattr(self, name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def require_complete(self) -> None:
        """Raise ConfigurationError unless the config can be used as-is.

        Raises:
            ConfigurationError: If the dialect is unsupported or a required
                field is missing.
        """
        if self.dialect not in SUPPORTED_DIALECTS:
            raise ConfigurationError(
                f"Unsupported database type '{self.type}'. "
                f"Supported types: {', '.join(SUPPORTED_DIALECTS)}"
            )
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                "Database connection configuration is required. "
                f"Missing fields: {', '.join(missing)}"
            )

    def sqlalchemy_url(self) -> URL:
        """Build the SQLAlchemy URL for this connection."""
        self.require_complete()
        if self.dialect == "sqlite":
            return URL.create("sqlite", database=self.database)

        query = {}
        if self.dialect == "mssql":
            query = {"driver": MSSQL_ODBC_DRIVER, "TrustServerCertificate": "yes"}
        return URL.create(
            DRIVERS[self.dialect],
            username=self.username,
            password=self.password.get_secret_value() if self.password else None,
            host=self.host,
            port=self.port,
            database=self.database,
            query=query,
        )

    def describe(self) -> str:
        """Host and database label for log lines. Never includes credentials."""
        if self.dialect == "sqlite":
            return f"sqlite:{self.database}"
        return f"{self.database} at {self.host}:{self.port}"
