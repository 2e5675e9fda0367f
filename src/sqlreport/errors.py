"""
Error taxonomy for the reporting agent.

Configuration and connectivity errors abort a turn before any reasoning
starts. Tool-level errors are turned into text observations for the model.
Loop-level errors end the turn in the ERRORED state and are reported to the
caller through ``ErrorKind``.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification attached to a failed turn."""

    CONFIGURATION = "configuration_error"
    CONNECTIVITY = "connectivity_error"
    UPLOAD = "upload_failure"
    LOOP_BOUND = "loop_bound_exceeded"
    BACKEND = "backend_failure"
    TIMEOUT = "turn_timeout"
    CANCELLED = "cancelled"
    INTERNAL = "internal_error"


class SqlReportError(Exception):
    """Base error for the package."""

    kind: ErrorKind = ErrorKind.INTERNAL


class ConfigurationError(SqlReportError):
    """Missing connection fields, unsupported dialect, or no model backend."""

    kind = ErrorKind.CONFIGURATION


class ConnectivityError(SqlReportError):
    """A database connection could not be opened or failed its liveness probe."""

    kind = ErrorKind.CONNECTIVITY


class IntrospectionFailure(ConnectivityError):
    """Table enumeration failed. Non-fatal unless strict resolution is requested."""


class ToolArgumentError(SqlReportError):
    """The model called a tool with missing or malformed arguments."""


class ToolExecutionError(SqlReportError):
    """The underlying SQL statement or upload failed inside a tool."""


class UploadFailure(SqlReportError):
    """All upload attempts to object storage failed."""

    kind = ErrorKind.UPLOAD

    def __init__(self, message: str, attempts: list[Exception] | None = None):
        super().__init__(message)
        self.attempts = attempts or []


class LoopBoundExceeded(SqlReportError):
    """The reasoning loop hit its configured iteration cap."""

    kind = ErrorKind.LOOP_BOUND


class BackendFailure(SqlReportError):
    """The language-model backend raised an unrecoverable error."""

    kind = ErrorKind.BACKEND


class TurnTimeout(SqlReportError):
    """The overall turn deadline expired."""

    kind = ErrorKind.TIMEOUT


class TurnCancelled(SqlReportError):
    """The caller abandoned the turn."""

    kind = ErrorKind.CANCELLED
