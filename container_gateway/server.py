"""
Container Gateway Server

HTTP and MCP front end for inspecting and controlling Docker containers.
REST routes are registered as custom routes on the FastMCP app; the same
container service also backs the consolidated ``docker_container`` tool.
"""

import argparse
import os
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Any

from fastmcp import FastMCP
from pydantic import Field, ValidationError
from starlette.middleware import Middleware as ASGIMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from .constants import API_PREFIX, DEFAULT_LOG_TAIL, DOCKER_PREFIX, MAX_LOG_TAIL
from .core.backend import ContainerBackend, DockerBackend
from .core.config_loader import ConfigurationError, GatewayConfig, load_config
from .core.error_response import GatewayErrorResponse, status_for
from .core.exceptions import (
    BackendFailureError,
    BadRequestError,
    ContainerGatewayError,
    UnknownOperationError,
)
from .core.logging_config import get_server_logger
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, RequestLoggingMiddleware
from .models.container import BulkActionRequest
from .models.enums import ContainerAction
from .models.params import DockerContainerParams
from .services import ContainerService
from .services.dispatcher import parse_operation

# Every route accepts every method so wrong methods get a problem-detail 405
ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]

READ_OPERATIONS = {"info", "stats", "logs"}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ContainerGatewayServer:
    """FastMCP server exposing container lifecycle control over HTTP and MCP."""

    def __init__(self, config: GatewayConfig, backend: ContainerBackend | None = None):
        self.config = config
        self.logger = get_server_logger()

        self.backend = backend or DockerBackend(config.docker)
        self.container_service = ContainerService(self.backend, config.operations)

        # FastMCP app is created in _initialize_app to prevent auto-start
        self.app: FastMCP | None = None
        self.error_middleware: ErrorHandlingMiddleware | None = None

        self.logger.info(
            "Container Gateway initialized",
            server_config=config.server.model_dump(),
            docker_base_url=config.docker.base_url or "environment",
            bulk_concurrency=config.operations.bulk_concurrency,
        )

    def _initialize_app(self) -> FastMCP:
        """Create the FastMCP app, middleware, tool and HTTP routes."""
        if self.app is not None:
            return self.app

        self.app = FastMCP("Container Gateway")
        self._configure_middleware()

        self.app.tool(
            self.docker_container,
            annotations={
                "title": "Docker Container Management",
                "readOnlyHint": False,
                "destructiveHint": False,
                "idempotentHint": False,
                "openWorldHint": True,
            },
        )

        self._register_routes()
        return self.app

    def _configure_middleware(self) -> None:
        if self.app is None:
            return
        # First added = first executed
        self.error_middleware = ErrorHandlingMiddleware(
            include_traceback=self.config.server.log_level.upper() == "DEBUG",
            track_error_stats=True,
        )
        self.app.add_middleware(self.error_middleware)
        self.app.add_middleware(
            LoggingMiddleware(
                include_payloads=os.getenv("LOG_INCLUDE_PAYLOADS", "true").lower() in TRUE_VALUES,
                max_payload_length=int(os.getenv("LOG_MAX_PAYLOAD_LENGTH", "1000")),
            )
        )

    def _register_routes(self) -> None:
        if self.app is None:
            return
        routes = [
            (f"{API_PREFIX}/health", self.health),
            (f"{DOCKER_PREFIX}/containers", self.list_containers),
            # Must precede the generic /{container_id}/{operation} route
            (f"{DOCKER_PREFIX}/containers/bulk/{{action}}", self.bulk_operation),
            (f"{DOCKER_PREFIX}/containers/{{container_id}}", self.get_container),
            (f"{DOCKER_PREFIX}/containers/{{container_id}}/{{operation}}", self.container_operation),
            (f"{DOCKER_PREFIX}/images", self.list_images),
            (f"{DOCKER_PREFIX}/networks", self.list_networks),
            (f"{DOCKER_PREFIX}/info", self.system_info),
        ]
        for path, handler in routes:
            self.app.custom_route(path, methods=ROUTE_METHODS)(handler)

    def http_app(self):
        """Return the ASGI app serving both the MCP endpoint and the REST routes."""
        app = self._initialize_app()
        return app.http_app(middleware=[ASGIMiddleware(RequestLoggingMiddleware)])

    # ------------------------------------------------------------------
    # Response helpers
    # ------------------------------------------------------------------

    def _json(self, content: Any, status_code: int = 200) -> JSONResponse:
        try:
            return JSONResponse(content, status_code=status_code)
        except (TypeError, ValueError) as e:
            self.logger.error("Failed to encode response", error=str(e))
            return JSONResponse(
                GatewayErrorResponse.generic_error("Failed to encode response"), status_code=500
            )

    def _error(
        self,
        error: ContainerGatewayError,
        request: Request,
        default_status: int = 500,
        context: dict[str, Any] | None = None,
    ) -> JSONResponse:
        status_code = status_for(error.problem_type, default_status)
        if isinstance(error, BackendFailureError):
            status_code = default_status
        body = GatewayErrorResponse.from_exception(error, instance=request.url.path, context=context)
        return self._json(body, status_code)

    def _method_not_allowed(self, request: Request, allowed: str) -> JSONResponse | None:
        if request.method == allowed:
            return None
        return self._json(
            GatewayErrorResponse.method_not_allowed(request.method, request.url.path), 405
        )

    @staticmethod
    def _parse_bool(value: str | None, name: str, default: bool) -> bool:
        if value is None or value == "":
            return default
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        raise BadRequestError(f"Invalid value for '{name}': {value}")

    @staticmethod
    def _parse_tail(value: str | None) -> int:
        if value is None or value == "":
            return DEFAULT_LOG_TAIL
        try:
            tail = int(value)
        except ValueError as e:
            raise BadRequestError(f"Invalid value for 'tail': {value}") from e
        if tail < 1 or tail > MAX_LOG_TAIL:
            raise BadRequestError(f"'tail' must be between 1 and {MAX_LOG_TAIL}")
        return tail

    # ------------------------------------------------------------------
    # HTTP routes
    # ------------------------------------------------------------------

    async def health(self, request: Request) -> JSONResponse:
        if rejected := self._method_not_allowed(request, "GET"):
            return rejected
        health = await self.container_service.health()
        if self.error_middleware is not None:
            health["mcp_errors"] = self.error_middleware.get_error_statistics()
        return self._json(health)

    async def list_containers(self, request: Request) -> JSONResponse:
        if rejected := self._method_not_allowed(request, "GET"):
            return rejected
        try:
            all_containers = self._parse_bool(request.query_params.get("all"), "all", True)
            containers = await self.container_service.list_containers(all_containers)
        except ContainerGatewayError as e:
            return self._error(e, request, default_status=502)
        return self._json(containers)

    async def get_container(self, request: Request) -> JSONResponse:
        if rejected := self._method_not_allowed(request, "GET"):
            return rejected
        return await self._read_container(request, request.path_params["container_id"], "info")

    async def container_operation(self, request: Request) -> JSONResponse:
        container_id = request.path_params["container_id"]
        operation = request.path_params["operation"]

        if request.method == "GET":
            if operation not in READ_OPERATIONS:
                return self._json(
                    GatewayErrorResponse.bad_request("Invalid operation", instance=request.url.path),
                    400,
                )
            return await self._read_container(request, container_id, operation)

        if rejected := self._method_not_allowed(request, "POST"):
            return rejected

        body = await request.body()
        outcome = await self.container_service.execute_operation(container_id, operation, body)
        if outcome.success:
            return self._json(outcome.model_dump(exclude={"error_type"}))

        status_code = status_for(outcome.error_type)
        error_body = GatewayErrorResponse.create_error(
            error_message=outcome.message,
            problem_type=outcome.error_type,
            instance=request.url.path,
            context={"id": outcome.id, "operation": outcome.operation, "message": outcome.message},
        )
        return self._json(error_body, status_code)

    async def _read_container(self, request: Request, container_id: str, operation: str) -> JSONResponse:
        try:
            if operation == "stats":
                stats = await self.container_service.get_container_stats(container_id)
                return self._json(stats.model_dump())
            if operation == "logs":
                tail = self._parse_tail(request.query_params.get("tail"))
                logs = await self.container_service.get_container_logs(container_id, tail)
                return self._json(logs.model_dump())
            return self._json(await self.container_service.get_container(container_id))
        except ContainerGatewayError as e:
            return self._error(e, request, default_status=502, context={"container_id": container_id})

    async def bulk_operation(self, request: Request) -> JSONResponse:
        if rejected := self._method_not_allowed(request, "POST"):
            return rejected

        action = request.path_params["action"]
        try:
            operation = parse_operation(action)
            bulk_request = BulkActionRequest.from_body(await request.body())
        except UnknownOperationError:
            return self._json(
                GatewayErrorResponse.bad_request(
                    f"Invalid bulk action: {action}", instance=request.url.path
                ),
                400,
            )
        except BadRequestError as e:
            return self._error(e, request, default_status=400)

        response = await self.container_service.bulk_response(
            bulk_request.container_ids, operation, bulk_request.force
        )
        return self._json(response.model_dump())

    async def list_images(self, request: Request) -> JSONResponse:
        if rejected := self._method_not_allowed(request, "GET"):
            return rejected
        try:
            return self._json(await self.container_service.list_images())
        except ContainerGatewayError as e:
            return self._error(e, request, default_status=502)

    async def list_networks(self, request: Request) -> JSONResponse:
        if rejected := self._method_not_allowed(request, "GET"):
            return rejected
        try:
            return self._json(await self.container_service.list_networks())
        except ContainerGatewayError as e:
            return self._error(e, request, default_status=502)

    async def system_info(self, request: Request) -> JSONResponse:
        if rejected := self._method_not_allowed(request, "GET"):
            return rejected
        try:
            return self._json(await self.container_service.get_system_info())
        except ContainerGatewayError as e:
            return self._error(e, request, default_status=502)

    # ------------------------------------------------------------------
    # MCP tool
    # ------------------------------------------------------------------

    async def docker_container(
        self,
        action: Annotated[str | ContainerAction, Field(description="Action to perform")],
        container_id: Annotated[str, Field(default="", description="Container identifier")] = "",
        container_ids: Annotated[
            list[str] | None, Field(default=None, description="Container identifiers for bulk actions")
        ] = None,
        all_containers: Annotated[
            bool, Field(default=True, description="Include stopped containers when listing")
        ] = True,
        tail: Annotated[
            int,
            Field(default=DEFAULT_LOG_TAIL, ge=1, le=MAX_LOG_TAIL, description="Number of log lines"),
        ] = DEFAULT_LOG_TAIL,
        force: Annotated[bool, Field(default=False, description="Force the operation")] = False,
        timeout: Annotated[
            int | None, Field(default=None, description="Stop timeout in seconds")
        ] = None,
    ) -> dict[str, Any]:
        """Consolidated Docker container management tool.

        Actions:
        • list: List containers
          - Optional: all_containers

        • info / stats: Container details or a resource usage snapshot
          - Required: container_id

        • logs: Recent container log lines
          - Required: container_id
          - Optional: tail

        • start / restart: Start or restart a container
          - Required: container_id

        • stop: Stop a container
          - Required: container_id
          - Optional: timeout (positive values only), force

        • bulk_start / bulk_stop / bulk_restart: Apply to many containers
          - Required: container_ids
          - Optional: force
        """
        try:
            params = DockerContainerParams(
                action=action,
                container_id=container_id,
                container_ids=container_ids or [],
                all_containers=all_containers,
                tail=tail,
                force=force,
                timeout=timeout,
            )
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "params"
            return GatewayErrorResponse.validation_error(
                field, first.get("input"), first["msg"].removeprefix("Value error, ")
            )

        return await self.container_service.handle_action(params)

    def run(self) -> None:
        """Run the server over streamable HTTP."""
        app = self._initialize_app()
        self.logger.info(
            "Starting Container Gateway",
            host=self.config.server.host,
            port=self.config.server.port,
        )
        # FastMCP.run() is synchronous and manages its own event loop
        app.run(
            transport="http",
            host=self.config.server.host,
            port=self.config.server.port,
            middleware=[ASGIMiddleware(RequestLoggingMiddleware)],
        )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    # Unset flags keep the values from config files and environment
    parser = argparse.ArgumentParser(description="Container Gateway")
    parser.add_argument("--host", help="Server host (env GATEWAY_HOST)")
    parser.add_argument("--port", type=int, help="Server port (env GATEWAY_PORT)")
    parser.add_argument(
        "--config", default=os.getenv("GATEWAY_CONFIG"), help="Configuration file path"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (env LOG_LEVEL)",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    log_dir = _setup_log_directory()
    logger = _setup_logging_system(args, log_dir)

    try:
        config = _load_and_configure(args, logger)
    except ConfigurationError as e:
        logger.error("Configuration invalid", error=str(e))
        sys.exit(1)
    if config is None:  # Validation-only mode
        return

    server = ContainerGatewayServer(config)
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


def _setup_log_directory() -> str | None:
    """Pick the first writable log directory candidate."""
    candidates = [
        os.getenv("LOG_DIR"),
        str(Path.home() / ".local" / "share" / "container-gateway" / "logs"),
        str(Path(tempfile.gettempdir()) / "container-gateway-logs"),
    ]
    for candidate in candidates:
        if not candidate:
            continue
        try:
            path = Path(candidate)
            path.mkdir(parents=True, exist_ok=True)
            if path.is_dir() and os.access(path, os.W_OK):
                return str(path)
        except OSError:
            continue

    print("Warning: Unable to create log directory, using console-only logging")
    return None


def _setup_logging_system(args: argparse.Namespace, log_dir: str | None):
    """Setup logging system, falling back to basic console logging."""
    from .core.logging_config import setup_logging

    try:
        max_file_size_mb = int(os.getenv("LOG_FILE_SIZE_MB", "10"))
        if max_file_size_mb < 1 or max_file_size_mb > 100:
            max_file_size_mb = 10
    except ValueError:
        max_file_size_mb = 10

    try:
        setup_logging(log_dir=log_dir, log_level=args.log_level, max_file_size_mb=max_file_size_mb)
    except OSError as e:
        print(f"Logging setup failed ({e}), using console-only logging")
        setup_logging(log_dir=None, log_level=args.log_level)
    return get_server_logger()


def _load_and_configure(args: argparse.Namespace, logger) -> GatewayConfig | None:
    """Load configuration and apply CLI overrides; None means validation only."""
    config = load_config(args.config)

    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.log_level:
        config.server.log_level = args.log_level

    if args.validate_config:
        logger.info("Configuration validation successful", config_file=config.config_file)
        return None

    logger.info("Configuration loaded", config_file=config.config_file)
    return config


if __name__ == "__main__":
    main()
