"""
Error types for Cortex Agent operations.

Agent call failures are fatal for the query that triggered them, so they carry
enough context (status code, response body) for the tool surface to report.
SQL execution failures never raise; they are folded into the query result.
"""

from __future__ import annotations


class CortexAgentError(Exception):
    """Base Cortex Agent error with HTTP context."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class StreamingError(CortexAgentError):
    """The agent event stream could not be read to completion."""
