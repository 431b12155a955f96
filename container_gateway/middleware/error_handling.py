"""Error tracking middleware for MCP requests."""

from collections import defaultdict
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.exceptions import (
    BadRequestError,
    ContainerNotFoundError,
    UnknownOperationError,
    ValidationFailedError,
)
from ..core.logging_config import get_access_logger
from .logging import is_sensitive_field

# Caller mistakes and expected runtime conditions; logged without traceback
WARNING_ERRORS = (
    BadRequestError,
    UnknownOperationError,
    ContainerNotFoundError,
    ValidationFailedError,
    TimeoutError,
    ConnectionError,
)

CRITICAL_ERRORS = (SystemError, MemoryError, RecursionError)


class ErrorHandlingMiddleware(Middleware):
    """Counts and logs MCP request errors by type and method.

    Errors are always re-raised so FastMCP turns them into protocol errors.
    """

    def __init__(self, include_traceback: bool = False, track_error_stats: bool = True):
        self.logger = get_access_logger()
        self.include_traceback = include_traceback
        self.track_error_stats = track_error_stats

        self.error_stats: dict[str, int] = defaultdict(int)
        self.method_errors: dict[str, int] = defaultdict(int)

    async def on_message(self, context: MiddlewareContext, call_next):
        try:
            return await call_next(context)
        except Exception as e:
            self._record_error(e, context)
            raise

    def _record_error(self, error: Exception, context: MiddlewareContext) -> None:
        error_type = type(error).__name__
        method = context.method or "unknown"

        error_data: dict[str, Any] = {
            "error_type": error_type,
            "error_message": str(error),
            "method": method,
            "source": context.source,
        }

        if self.track_error_stats:
            error_key = f"{error_type}:{method}"
            self.error_stats[error_key] += 1
            self.method_errors[method] += 1
            error_data["error_occurrence_count"] = self.error_stats[error_key]
            error_data["method_error_count"] = self.method_errors[method]

        if hasattr(context.message, "__dict__"):
            error_data["message_context"] = {
                key: str(value)[:100]
                for key, value in vars(context.message).items()
                if not key.startswith("_") and not is_sensitive_field(key)
            }

        if isinstance(error, CRITICAL_ERRORS):
            self.logger.critical("Critical error in MCP request", **error_data, exc_info=True)
        elif isinstance(error, WARNING_ERRORS):
            self.logger.warning("Warning-level error in MCP request", **error_data)
        else:
            self.logger.error(
                "Error in MCP request", **error_data, exc_info=self.include_traceback
            )

    def get_error_statistics(self) -> dict[str, Any]:
        """Summarize recorded errors, most frequent first."""
        if not self.track_error_stats:
            return {"error_tracking": "disabled"}

        top_errors = sorted(self.error_stats.items(), key=lambda item: item[1], reverse=True)[:10]
        top_error_methods = sorted(
            self.method_errors.items(), key=lambda item: item[1], reverse=True
        )[:10]
        return {
            "total_errors": sum(self.error_stats.values()),
            "unique_error_types": len(self.error_stats),
            "top_errors": top_errors,
            "top_error_methods": top_error_methods,
            "error_distribution": dict(self.error_stats),
        }

    def reset_statistics(self) -> None:
        self.error_stats.clear()
        self.method_errors.clear()
