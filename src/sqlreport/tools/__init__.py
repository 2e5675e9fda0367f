"""
Tools exposed to the agent loop for one bound connection.

Example usage:
    >>> deps = AgentDeps(database=database, dialect="postgres", uploader=uploader)
    >>> toolset = build_toolset(deps)
    >>> toolset.names
    ['list_tables', 'describe_schema', 'execute_query', 'validate_query', 'excel_export']
"""

from .base import AgentTool, Toolset
from .deps import AgentDeps, datasource_label
from .excel_export import (
    EXCEL_EXPORT_TOOL,
    ExcelExportInput,
    build_filename,
    build_workbook,
    sanitize_filename,
    sanitize_sheet_name,
)
from .sql_tools import SQL_TOOLS, DBQueryResponse
from .validation import ValidationResult, validate_sql


def build_toolset(deps: AgentDeps) -> Toolset:
    """SQL tools bound to ``deps.database``, plus export when an uploader is set."""
    tools = list(SQL_TOOLS)
    if deps.uploader is not None:
        tools.append(EXCEL_EXPORT_TOOL)
    return Toolset(deps, tools)


__all__ = [
    "AgentDeps",
    "AgentTool",
    "Toolset",
    "DBQueryResponse",
    "EXCEL_EXPORT_TOOL",
    "ExcelExportInput",
    "SQL_TOOLS",
    "ValidationResult",
    "build_filename",
    "build_toolset",
    "build_workbook",
    "datasource_label",
    "sanitize_filename",
    "sanitize_sheet_name",
    "validate_sql",
]
