"""Tests for the Excel export tool and its filename / sheet-name rules."""

import io
import json
from datetime import date, datetime, timezone

import pandas as pd
import pytest

from sqlreport.errors import ToolArgumentError
from sqlreport.tools import ExcelExportInput, build_filename, build_workbook, sanitize_filename, sanitize_sheet_name
from sqlreport.tools.excel_export import (
    INVALID_DATA_ERROR,
    MISSING_DATA_ERROR,
    default_filename,
    excel_export,
    validate_rows,
)

ROWS = [
    {"customer": "Globex", "revenue": 450.0},
    {"customer": "Acme", "revenue": 200.0},
    {"customer": "Initech", "revenue": 40.0},
]


def read_sheet(binary: bytes, sheet_name: str) -> pd.DataFrame:
    return pd.read_excel(io.BytesIO(binary), sheet_name=sheet_name, engine="openpyxl")


# =============================================================================
# Sanitizers
# =============================================================================


class TestSheetName:
    def test_forbidden_characters(self):
        assert sanitize_sheet_name("Q1/Q2: [sales]?") == "Q1 Q2   sales"

    def test_truncated_to_31(self):
        assert len(sanitize_sheet_name("x" * 40)) == 31

    @pytest.mark.parametrize("name", [None, "", "   ", "[]:*"])
    def test_default(self, name):
        assert sanitize_sheet_name(name) == "Report"

    @pytest.mark.parametrize(
        "name",
        ["Revenue by customer", "a/b:c", "x" * 30 + " y", " padded ", "[]", "Z" * 64],
    )
    def test_idempotent(self, name):
        once = sanitize_sheet_name(name)
        assert sanitize_sheet_name(once) == once


class TestFilename:
    def test_unsafe_characters(self):
        assert sanitize_filename("top customers (2024)/eu.xlsx") == "top_customers__2024__eu.xlsx"

    def test_truncated_to_200(self):
        assert len(sanitize_filename("a" * 300)) == 200

    @pytest.mark.parametrize("name", ["report.xlsx", "ü nicode ß.xlsx", "../../etc/passwd", "b" * 250])
    def test_idempotent(self, name):
        once = sanitize_filename(name)
        assert sanitize_filename(once) == once

    def test_timestamp_goes_before_extension(self):
        assert build_filename("revenue.xlsx", timestamp_ms=1700000000000) == "revenue_1700000000000.xlsx"
        assert build_filename("revenue.XLSX", timestamp_ms=1) == "revenue_1.xlsx"
        assert build_filename("revenue", timestamp_ms=1) == "revenue_1.xlsx"

    def test_build_filename_sanitizes(self):
        assert build_filename("Q1 revenue", timestamp_ms=5) == "Q1_revenue_5.xlsx"

    def test_default_filename(self):
        assert default_filename("shop", date(2024, 3, 9)) == "report_shop_2024-03-09.xlsx"


# =============================================================================
# Rows and workbook
# =============================================================================


class TestValidateRows:
    def test_missing(self):
        with pytest.raises(ToolArgumentError) as exc:
            validate_rows(None)
        assert str(exc.value) == MISSING_DATA_ERROR

    @pytest.mark.parametrize("data", [[], "rows", {"a": 1}, [1, 2], [{"a": 1}, "b"]])
    def test_invalid(self, data):
        with pytest.raises(ToolArgumentError) as exc:
            validate_rows(data)
        assert str(exc.value) == INVALID_DATA_ERROR


class TestBuildWorkbook:
    def test_columns_are_union_of_keys(self):
        binary = build_workbook([{"a": 1}, {"b": "x"}], "Data")
        frame = read_sheet(binary, "Data")

        assert list(frame.columns) == ["a", "b"]
        assert len(frame) == 2

    def test_nested_and_tz_aware_values(self):
        moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        binary = build_workbook([{"tags": ["a", "b"], "at": moment}], "Data")
        frame = read_sheet(binary, "Data")

        assert frame.loc[0, "tags"] == '["a", "b"]'
        assert frame.loc[0, "at"] == pd.Timestamp("2024-01-02 03:04:05")


# =============================================================================
# Tool
# =============================================================================


class TestExcelExportTool:
    @pytest.mark.asyncio
    async def test_success(self, deps, s3_client):
        args = ExcelExportInput.model_validate(
            {"data": ROWS, "filename": "top customers", "sheetName": "Revenue"}
        )
        result = json.loads(await excel_export(deps, args))

        assert result["filename"].startswith("top_customers_")
        assert result["filename"].endswith(".xlsx")
        assert result["url"] == (
            f"https://reports-test.s3.eu-west-1.amazonaws.com/reports/shop/{result['filename']}"
        )

        [call] = s3_client.calls
        assert call["Key"] == f"reports/shop/{result['filename']}"
        assert call["ContentType"] == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        assert call["CacheControl"] == "public, max-age=3600"
        assert call["ACL"] == "public-read"
        assert read_sheet(call["Body"], "Revenue")["customer"].tolist() == ["Globex", "Acme", "Initech"]

        [artifact] = deps.exports
        assert artifact.url == result["url"]
        assert artifact.byte_size == len(call["Body"])

    @pytest.mark.asyncio
    async def test_default_filename_and_sheet(self, deps, s3_client):
        result = json.loads(await excel_export(deps, ExcelExportInput(data=ROWS)))

        assert result["filename"].startswith("report_shop_")
        assert read_sheet(s3_client.calls[0]["Body"], "Report").shape == (3, 2)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [None, [], "not rows", [{"a": 1}, 2]])
    async def test_malformed_data_never_uploads(self, deps, s3_client, data):
        result = await excel_export(deps, ExcelExportInput(data=data))

        assert result.startswith("Error:")
        assert s3_client.calls == []
        assert deps.exports == []

    @pytest.mark.asyncio
    async def test_oversize_never_uploads(self, deps, s3_client):
        deps.export_max_bytes = 1024
        rows = [{"id": i, "text": "x" * 100} for i in range(200)]

        result = await excel_export(deps, ExcelExportInput(data=rows))

        assert result.startswith("File too large (")
        assert result.endswith("MB). Please limit your query results to reduce file size.")
        assert s3_client.calls == []

    @pytest.mark.asyncio
    async def test_upload_exhaustion_is_text(self, deps, s3_client):
        s3_client.failures = 3

        result = await excel_export(deps, ExcelExportInput(data=ROWS))

        assert result.startswith("Failed to generate and upload Excel file to S3: S3 upload failed after 3 attempts")
        assert len(s3_client.calls) == 3
        assert deps.exports == []

    @pytest.mark.asyncio
    async def test_without_uploader(self, deps):
        deps.uploader = None
        result = await excel_export(deps, ExcelExportInput(data=ROWS))
        assert result.startswith("Error: Excel export is not available")
