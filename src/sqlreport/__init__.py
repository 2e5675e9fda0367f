"""
sqlreport - natural-language reporting over customer SQL databases.

Example usage:
    >>> settings = Settings.from_env()
    >>> runner = AgentRunner(ModelRegistry.from_settings(settings), settings)
    >>> async for item in runner.run_turn("t1", {"type": "sqlite", "database": "shop.db"},
    ...                                   None, "How many orders per status?"):
    ...     print(item)
"""

from .agent import AgentRunner, ModelRegistry, ProgressEvent, TurnResult
from .config import Settings
from .database import ConnectionConfig
from .errors import ErrorKind, SqlReportError

__version__ = "0.1.0"

__all__ = [
    "AgentRunner",
    "ConnectionConfig",
    "ErrorKind",
    "ModelRegistry",
    "ProgressEvent",
    "Settings",
    "SqlReportError",
    "TurnResult",
    "__version__",
]
