"""Container Gateway: HTTP and MCP facade for container lifecycle control."""

__version__ = "0.1.0"
