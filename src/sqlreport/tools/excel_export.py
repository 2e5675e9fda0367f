"""
Excel export tool: query rows -> single-sheet workbook -> object storage.

The model passes the rows it already obtained from ``execute_query``. Bad
arguments, oversize workbooks and upload failures all come back as text so
the model can correct itself; none of them abort the turn.
"""

import asyncio
import io
import json
import logging
import re
import time
from datetime import date, datetime, timezone
from typing import Any

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from ..errors import ToolArgumentError, UploadFailure
from ..storage import XLSX_CONTENT_TYPE, ExportArtifact, build_object_key
from .base import AgentTool
from .deps import AgentDeps

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "Report"
MAX_SHEET_NAME_LENGTH = 31
MAX_FILENAME_LENGTH = 200

_INVALID_SHEET_CHARS = re.compile(r"[:\\/?*\[\]]")
_INVALID_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

MISSING_DATA_ERROR = (
    'Error: No data parameter provided. You must pass the actual query results as the "data" '
    "parameter. First execute a SQL query to get results, then pass those results to this tool."
)
INVALID_DATA_ERROR = (
    "Error: Data must be a non-empty array of objects. Each object should represent a row "
    'from your SQL query results. Example: [{"column1": "value1", "column2": "value2"}]'
)


class ExcelExportInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: Any = Field(
        default=None,
        description=(
            "The actual query results as an array of objects, one object per row. "
            "Rows do not need identical keys."
        ),
        json_schema_extra={"type": "array", "items": {"type": "object"}, "minItems": 1},
    )
    filename: str | None = Field(
        default=None,
        description="Optional filename for the Excel file (will add .xlsx if not present)",
    )
    sheet_name: str | None = Field(
        default=None,
        alias="sheetName",
        description="Optional name for the Excel worksheet",
    )


def sanitize_sheet_name(name: str | None) -> str:
    """Strip characters Excel forbids in sheet names and cap at 31 chars."""
    cleaned = _INVALID_SHEET_CHARS.sub(" ", name or "").strip()
    cleaned = cleaned[:MAX_SHEET_NAME_LENGTH].strip()
    return cleaned or DEFAULT_SHEET_NAME


def sanitize_filename(name: str) -> str:
    """Replace unsafe characters with ``_`` and cap at 200 chars."""
    return _INVALID_FILENAME_CHARS.sub("_", name)[:MAX_FILENAME_LENGTH]


def build_filename(name: str, timestamp_ms: int | None = None) -> str:
    """Unique, safe ``.xlsx`` filename: the timestamp goes before the extension."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    base = name[: -len(".xlsx")] if name.lower().endswith(".xlsx") else name
    return sanitize_filename(f"{base}_{timestamp_ms}.xlsx")


def default_filename(datasource: str, today: date | None = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"report_{datasource}_{today.isoformat()}.xlsx"


def validate_rows(data: Any) -> list[dict[str, Any]]:
    """Check the ``data`` argument.

    Raises:
        ToolArgumentError: With the text returned to the model.
    """
    if data is None:
        raise ToolArgumentError(MISSING_DATA_ERROR)
    if not isinstance(data, list) or not data:
        raise ToolArgumentError(INVALID_DATA_ERROR)
    if not all(isinstance(row, dict) for row in data):
        raise ToolArgumentError(INVALID_DATA_ERROR)
    return data


def _cell_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, datetime) and value.tzinfo is not None:
        # openpyxl cannot store timezone-aware datetimes
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def build_workbook(rows: list[dict[str, Any]], sheet_name: str) -> bytes:
    """Serialize rows to an xlsx workbook; columns are the union of row keys."""
    frame = pd.DataFrame([{key: _cell_value(val) for key, val in row.items()} for row in rows])
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


async def excel_export(deps: AgentDeps, args: ExcelExportInput) -> str:
    """Export query results to Excel and upload them, returning JSON {url, filename}."""
    try:
        rows = validate_rows(args.data)
    except ToolArgumentError as e:
        return str(e)

    if deps.uploader is None:
        return "Error: Excel export is not available, object storage is not configured."

    final_sheet_name = sanitize_sheet_name(args.sheet_name)
    final_filename = build_filename(args.filename or default_filename(deps.datasource))
    object_key = build_object_key(deps.datasource, final_filename)

    try:
        # Serialization is CPU-bound; keep the event loop free
        buffer = await asyncio.to_thread(build_workbook, rows, final_sheet_name)
    except Exception as e:
        logger.exception("Excel export tool error")
        return f"Failed to generate Excel file: {e}"

    if len(buffer) > deps.export_max_bytes:
        size_mb = len(buffer) / (1024 * 1024)
        return (
            f"File too large ({size_mb:.2f}MB). "
            "Please limit your query results to reduce file size."
        )

    try:
        url = await deps.uploader.upload(buffer, object_key, XLSX_CONTENT_TYPE)
    except UploadFailure as e:
        return f"Failed to generate and upload Excel file to S3: {e}"

    deps.exports.append(
        ExportArtifact(
            object_key=object_key,
            url=url,
            filename=final_filename,
            byte_size=len(buffer),
        )
    )
    return json.dumps({"url": url, "filename": final_filename})


EXCEL_EXPORT_TOOL = AgentTool(
    name="excel_export",
    description=(
        "Export query results to Excel and upload them, returning a public URL.\n"
        "IMPORTANT: You must provide the 'data' parameter with the actual query results "
        "as an array of objects. Use this tool AFTER you have executed a SQL query and "
        "obtained the results, and only when the user asks for a spreadsheet, Excel file "
        "or download. The data should be an array of objects where each object represents "
        "a row."
    ),
    args_model=ExcelExportInput,
    func=excel_export,
)
