"""Custom exceptions for ctxbench.

Unavailable resource data is never an exception here: probes and
collaborator calls return None instead. These types cover failures that
abort an endpoint run or the whole suite.
"""

from typing import Any, Optional


class CtxBenchError(Exception):
    """Base exception for all ctxbench errors."""

    def __init__(
        self,
        message: str,
        error_type: str = "internal_error",
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a report-friendly format."""
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                **self.details,
            }
        }


class ConfigurationError(CtxBenchError):
    """Load or suite configuration is invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            error_type="configuration_error",
            details=details,
        )


class LoadDriverError(CtxBenchError):
    """The load run could not be established against the target."""

    def __init__(self, message: str, url: Optional[str] = None):
        details = {"url": url} if url else {}
        super().__init__(
            message=message,
            error_type="load_driver_error",
            details=details,
        )


class ReportWriteError(CtxBenchError):
    """The report directory or file could not be written."""

    def __init__(self, message: str, path: Optional[str] = None):
        details = {"path": path} if path else {}
        super().__init__(
            message=message,
            error_type="report_write_error",
            details=details,
        )
