"""Middleware for the Container Gateway server.

- RequestLoggingMiddleware: HTTP access log with request ids and timing
- LoggingMiddleware: MCP message logging with redacted payloads
- ErrorHandlingMiddleware: MCP error tracking and classification
"""

from .error_handling import ErrorHandlingMiddleware
from .http import REQUEST_ID_HEADER, RequestLoggingMiddleware
from .logging import LoggingMiddleware

__all__ = [
    "ErrorHandlingMiddleware",
    "LoggingMiddleware",
    "REQUEST_ID_HEADER",
    "RequestLoggingMiddleware",
]
