"""MCP message logging middleware using the FastMCP Middleware base class."""

import time
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.logging_config import get_access_logger

SENSITIVE_KEYWORDS = (
    "password",
    "passwd",
    "token",
    "secret",
    "credential",
    "auth",
    "api_key",
    "private_key",
)


def is_sensitive_field(field_name: str) -> bool:
    """True when a field name looks like it carries credentials."""
    field_lower = field_name.lower()
    return any(keyword in field_lower for keyword in SENSITIVE_KEYWORDS)


def truncate(value: Any, max_length: int) -> Any:
    """Shorten long strings and stringified containers for log output."""
    if isinstance(value, str):
        return value if len(value) <= max_length else value[:max_length] + "... [TRUNCATED]"
    if isinstance(value, dict | list):
        text = str(value)
        return value if len(text) <= max_length else text[:max_length] + "... [TRUNCATED]"
    return value


class LoggingMiddleware(Middleware):
    """Logs every MCP message to the access log.

    Request parameters are logged with credentials redacted and long values
    truncated; completion and failure are logged with their duration.
    """

    def __init__(self, include_payloads: bool = True, max_payload_length: int = 1000):
        self.logger = get_access_logger()
        self.include_payloads = include_payloads
        self.max_payload_length = max_payload_length

    async def on_message(self, context: MiddlewareContext, call_next):
        start_time = time.perf_counter()

        log_data: dict[str, Any] = {
            "method": context.method,
            "source": context.source,
            "message_type": context.type,
        }
        if self.include_payloads:
            log_data["params"] = self._sanitize_message(context.message)

        self.logger.info("MCP request started", **log_data)

        try:
            result = await call_next(context)
        except Exception as e:
            self.logger.error(
                "MCP request failed",
                method=context.method,
                success=False,
                duration_ms=self._elapsed_ms(start_time),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        self.logger.info(
            "MCP request completed",
            method=context.method,
            success=True,
            duration_ms=self._elapsed_ms(start_time),
        )
        return result

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * 1000, 2)

    def _sanitize_message(self, message: Any) -> dict[str, Any]:
        if not hasattr(message, "__dict__"):
            return {"message": truncate(str(message), self.max_payload_length)}

        sanitized: dict[str, Any] = {}
        for key, value in vars(message).items():
            if key.startswith("_"):
                continue
            if is_sensitive_field(key):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = truncate(value, self.max_payload_length)
        return sanitized
