"""
Dependencies shared by the tools of one turn.

Tools receive an ``AgentDeps`` instead of reaching for globals, so a turn's
connection, uploader and limits are injected in one place.
"""

import re
from dataclasses import dataclass, field
from pathlib import PurePath

from ..database import Database
from ..storage import ExportArtifact, S3Uploader

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def datasource_label(database_name: str | None, default: str = "db") -> str:
    """Object-key segment naming the data source an export came from."""
    if not database_name:
        return default
    # sqlite databases are file paths; keep the file stem only
    label = PurePath(database_name).stem or database_name
    label = _UNSAFE_KEY_CHARS.sub("_", label).strip("._")
    return label or default


@dataclass
class AgentDeps:
    """Dependencies for agent tools.

    Attributes:
        database: Live connection the SQL tools are bound to
        dialect: Connection dialect (postgres, mysql, sqlite, mssql)
        datasource: Namespace for exported object keys
        max_return_values: Maximum number of values (rows x columns) returned to the LLM
        uploader: Object-storage uploader; the export tool is only offered when set
        export_max_bytes: Hard ceiling on the size of an exported workbook
        exports: Artifacts uploaded during the turn
    """

    database: Database
    dialect: str
    datasource: str = "db"
    max_return_values: int = 200
    uploader: S3Uploader | None = None
    export_max_bytes: int = 50 * 1024 * 1024
    exports: list[ExportArtifact] = field(default_factory=list)
