"""
Centralized logging and error handling utilities for the Cortex Agent server.

structlog renders through the standard library so every log line goes to
stderr; stdout is reserved for the MCP stdio transport.

Features:
- Structured logging with contextual information
- MCP error conversion for tool handlers
- Error classification for agent, transport and validation failures
- Operation timing
"""

from __future__ import annotations

import functools
import logging
import sys
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from mcp import McpError, types
from pydantic import ValidationError

from cortex_mcp.agent.exceptions import CortexAgentError


def _structlog_processors(colors: bool) -> list[Any]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=colors),
    ]


# Configure structured logging
structlog.configure(
    processors=_structlog_processors(colors=False),
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


def configure_logging(logging_config: dict[str, Any]) -> None:
    """Route stdlib and structlog output to stderr at the configured level."""
    level = str(logging_config.get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )
    structlog.configure(
        processors=_structlog_processors(
            colors=bool(logging_config.get("colors", False))
        ),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class MCPErrorHandler:
    """Centralized MCP error handling with structured logging."""

    @staticmethod
    def classify_error(error: Exception) -> tuple[int, str]:
        """
        Classify an error and return appropriate MCP error code and category.

        Args:
            error: The exception to classify

        Returns:
            Tuple of (mcp_error_code, error_category)
        """
        if isinstance(error, McpError):
            return error.error.code, "mcp_error"
        if isinstance(error, ValidationError):
            return types.INVALID_PARAMS, "validation_error"
        if isinstance(error, TimeoutError | httpx.TimeoutException):
            return types.INTERNAL_ERROR, "timeout_error"
        if isinstance(error, CortexAgentError):
            return types.INTERNAL_ERROR, "agent_error"
        if isinstance(error, httpx.TransportError | ConnectionError | OSError):
            return types.INTERNAL_ERROR, "connection_error"
        if isinstance(error, ValueError | TypeError):
            return types.INVALID_PARAMS, "parameter_error"
        return types.INTERNAL_ERROR, "unknown_error"

    @staticmethod
    def create_mcp_error(error: Exception, operation: str) -> McpError:
        """
        Create a standardized McpError with structured logging.

        Agent HTTP failures carry their status code in the error data so the
        calling MCP client can tell an auth failure from an agent outage.
        """
        error_code, error_category = MCPErrorHandler.classify_error(error)
        message = f"{operation} failed: {error!s}"

        error_data: dict[str, Any] = {
            "operation": operation,
            "error_category": error_category,
            "original_error_type": type(error).__name__,
        }
        if isinstance(error, CortexAgentError) and error.status_code is not None:
            error_data["status_code"] = error.status_code

        logger.error(
            "Operation failed",
            error_code=error_code,
            error_message=str(error),
            **error_data,
        )
        return McpError(
            error=types.ErrorData(code=error_code, message=message, data=error_data)
        )


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


def log_operation(
    operation: str,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """Decorator logging start, completion and duration of an async call."""
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(
                operation=operation, function=func.__name__
            )
            operation_logger.info("Operation started")
            start_time = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                operation_logger.error(
                    "Operation failed",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    duration_ms=_elapsed_ms(start_time),
                )
                raise

            operation_logger.info(
                "Operation completed successfully",
                duration_ms=_elapsed_ms(start_time),
            )
            return result

        return wrapper
    return decorator


def handle_mcp_errors(
    operation: str,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator converting any failure into an McpError.

    McpError instances raised by the wrapped call are logged and re-raised
    unchanged.
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except McpError as e:
                logger.error(
                    "MCP error in operation",
                    operation=operation,
                    mcp_error_code=e.error.code,
                    mcp_error_message=e.error.message,
                )
                raise
            except Exception as e:
                raise MCPErrorHandler.create_mcp_error(e, operation) from e

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
):
    """
    Async context manager for operation logging.

    Yields:
        Logger bound to the operation and ``context`` (e.g. a request id)
    """
    operation_logger = logger.bind(operation=operation, **(context or {}))
    operation_logger.info("Operation started")
    start_time = time.perf_counter()

    try:
        yield operation_logger
    except Exception as e:
        operation_logger.error(
            "Operation failed",
            error_type=type(e).__name__,
            error_message=str(e),
            duration_ms=_elapsed_ms(start_time),
        )
        raise

    operation_logger.info(
        "Operation completed successfully", duration_ms=_elapsed_ms(start_time)
    )


def log_mcp_operation(
    operation: str,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """Combined logging and MCP error handling decorator for tool handlers."""
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        return handle_mcp_errors(operation)(log_operation(operation)(func))
    return decorator
