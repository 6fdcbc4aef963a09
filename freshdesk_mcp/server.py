"""MCP Server for the Freshdesk API with stdio and HTTP (SSE) transport support."""

import argparse
import asyncio
import html
import logging
import os
import sys
import time
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from dotenv import load_dotenv
from mcp import types
from mcp.server import Server
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import Mount, Route

from freshdesk_mcp import __version__
from freshdesk_mcp.config import FreshdeskConfig, load_config
from freshdesk_mcp.errors import (
    ConfigurationError,
    StartupError,
    ToolNotFoundError,
    ToolPermissionError,
)
from freshdesk_mcp.freshdesk_client import FreshdeskClient
from freshdesk_mcp.permission_discovery import PermissionDiscoveryService
from freshdesk_mcp.permissions import UserPermissions, default_permissions
from freshdesk_mcp.registry import ToolRegistry
from freshdesk_mcp.tools import BaseTool, DiscoveryTool, build_resource_tools

log = logging.getLogger(__name__)

SERVER_NAME = "freshdesk-mcp"


class ServerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    STOPPED = "stopped"


@dataclass
class ServerMetrics:
    """Counters kept around every tool dispatch. Times are in milliseconds."""

    requests_total: int = 0
    requests_success: int = 0
    requests_failed: int = 0
    average_response_time: float = 0.0
    active_connections: int = 0

    def record(self, elapsed_ms: float, success: bool) -> None:
        self.requests_total += 1
        if success:
            self.requests_success += 1
        else:
            self.requests_failed += 1
        # Running mean over every dispatch so far.
        self.average_response_time += (elapsed_ms - self.average_response_time) / self.requests_total

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class FreshdeskMCPServer:
    """Owns the client, discovers permissions and serves the permitted tools.

    ``initialize()`` must complete before tools can be called. A failed
    connection test aborts startup; a failed permission discovery only
    downgrades to the default permission set.
    """

    def __init__(
        self,
        config: FreshdeskConfig,
        *,
        client: FreshdeskClient | None = None,
        discovery: PermissionDiscoveryService | None = None,
        tools: Sequence[BaseTool] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or log
        self.client = client or FreshdeskClient(config)
        self.discovery = discovery or PermissionDiscoveryService(self.client)
        self.registry = ToolRegistry()
        self.state = ServerState.UNINITIALIZED
        self.user_permissions: UserPermissions | None = None
        if tools is None:
            tools = build_resource_tools(self.client)
        self.candidate_tools = list(tools)
        self.metrics = ServerMetrics()
        self.started_at = time.monotonic()
        self.mcp = self._build_mcp_server()

    def _build_mcp_server(self) -> Server:
        server = Server(SERVER_NAME, version=__version__)

        @server.list_tools()
        async def handle_list_tools() -> list[types.Tool]:
            return self.list_tools()

        # Arguments are validated by each tool's own model.
        @server.call_tool(validate_input=False)
        async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
            return await self.call_tool(name, arguments)

        return server

    async def initialize(self) -> None:
        if self.state is not ServerState.UNINITIALIZED:
            raise StartupError(f"Server cannot be initialized from state {self.state.value}")

        self.state = ServerState.INITIALIZING
        self.logger.info(
            "Initializing Freshdesk MCP server for %s (API key %s)",
            self.client.authenticator.domain,
            self.client.authenticator.mask_api_key(),
        )
        try:
            if self.config.skip_connection_test:
                self.logger.info("Skipping API connection test")
            elif not await self.client.test_connection():
                raise StartupError("Failed to connect to Freshdesk API")

            self.user_permissions = await self._resolve_permissions()
            self._register_tools(self.user_permissions)
        except Exception:
            self.state = ServerState.UNINITIALIZED
            raise

        self.state = ServerState.READY
        self.logger.info(
            "Freshdesk MCP server ready: %d tools registered, access level %s",
            len(self.registry),
            self.user_permissions.access_level.value,
        )

    async def _resolve_permissions(self) -> UserPermissions:
        if self.config.skip_permission_discovery:
            self.logger.info("Skipping permission discovery, using default permissions")
            return default_permissions()
        try:
            return await self.discovery.discover()
        except Exception:
            self.logger.warning("Permission discovery failed, using default permissions", exc_info=True)
            return default_permissions()

    def _register_tools(self, user: UserPermissions) -> None:
        for tool in self.candidate_tools:
            if tool.is_available_for(user):
                self.registry.register(tool)
            else:
                self.logger.info(
                    "Skipping tool %s, missing permissions: %s",
                    tool.name,
                    ", ".join(tool.missing_permissions(user)),
                )
        self.registry.register(DiscoveryTool(self.client, self.candidate_tools, user))

    def list_tools(self) -> list[types.Tool]:
        return self.registry.list_descriptors()

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        """Dispatch one tool call and wrap its JSON result as text content."""
        started = time.perf_counter()
        self.metrics.active_connections += 1
        success = False
        try:
            if self.state is not ServerState.READY or self.user_permissions is None:
                raise StartupError("Server is not initialized")

            tool = self.registry.get(name)
            if tool is None:
                raise ToolNotFoundError(name)

            missing = tool.missing_permissions(self.user_permissions)
            if missing:
                raise ToolPermissionError(name, missing)

            self.logger.debug("Calling tool %s", name)
            text = await tool.run(arguments, self.user_permissions)
            success = True
            return [types.TextContent(type="text", text=text)]
        except (StartupError, ToolNotFoundError, ToolPermissionError) as e:
            self.logger.warning("Tool call %s rejected: %s", name, e)
            raise
        finally:
            self.metrics.active_connections -= 1
            self.metrics.record((time.perf_counter() - started) * 1000, success)

    def uptime(self) -> float:
        return time.monotonic() - self.started_at

    def get_metrics(self) -> dict[str, Any]:
        return {**self.metrics.to_dict(), "uptime": self.uptime()}

    def get_health(self) -> dict[str, Any]:
        rate_limit = self.client.get_rate_limit_info()
        checks = {
            "api": self.state is ServerState.READY,
            "auth": self.user_permissions is not None,
            "rate_limit": rate_limit.remaining > 0,
        }
        if all(checks.values()):
            status = "healthy"
        elif checks["api"]:
            status = "degraded"
        else:
            status = "unhealthy"
        return {
            "status": status,
            "state": self.state.value,
            "version": __version__,
            "uptime": self.uptime(),
            "checks": checks,
        }

    async def stop(self) -> None:
        self.logger.info("Stopping Freshdesk MCP server")
        await self.client.close()
        self.registry.clear()
        self.state = ServerState.STOPPED


def create_http_app(server: FreshdeskMCPServer) -> Starlette:
    """Starlette app serving the SSE transport, a landing page and a health check."""
    sse = SseServerTransport("/messages/")

    async def handle_sse(request: Request) -> Response:
        async with sse.connect_sse(request.scope, request.receive, request._send) as (read_stream, write_stream):
            await server.mcp.run(read_stream, write_stream, server.mcp.create_initialization_options())
        return Response()

    async def landing_page(request: Request) -> HTMLResponse:
        """Serve a landing page with server info and setup instructions."""
        forwarded_proto = request.headers.get("x-forwarded-proto", request.url.scheme)
        forwarded_host = request.headers.get("x-forwarded-host", request.url.netloc)
        base_url = f"{forwarded_proto}://{forwarded_host}{str(request.url.path).rstrip('/')}"
        sse_url = f"{base_url}/sse"

        tools_html = "".join(
            f"<li><code>{html.escape(tool.name)}</code> - {html.escape(tool.description or 'No description')}</li>"
            for tool in server.list_tools()
        )
        if server.user_permissions is not None:
            level = server.user_permissions.access_level.value
            mode = "Read-Only" if server.user_permissions.is_read_only else "Read/Write"
        else:
            level, mode = "unknown", "Not initialized"

        page = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <title>Freshdesk MCP Server</title>
            <style>
                body {{
                    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                    max-width: 900px;
                    margin: 0 auto;
                    padding: 2rem;
                    line-height: 1.6;
                    color: #333;
                }}
                pre {{ background: #f5f5f5; padding: 1rem; border-radius: 4px; overflow-x: auto; }}
                .mode-badge {{ padding: 0.2rem 0.6rem; border-radius: 4px; background: #e3f2fd; font-size: 0.8em; }}
            </style>
        </head>
        <body>
            <h1>Freshdesk MCP Server</h1>
            <p>Version {__version__}. Connected to <code>{html.escape(server.client.authenticator.get_base_url())}</code>.</p>

            <h2>Connect</h2>
            <p>SSE endpoint:</p>
            <pre>{sse_url}</pre>
            <h3>Claude Desktop</h3>
            <pre>{{
  "mcpServers": {{
    "freshdesk": {{
      "url": "{sse_url}"
    }}
  }}
}}</pre>

            <h2>Available Tools ({len(server.registry)} total)
                <span class="mode-badge">{mode}</span>
                <span class="mode-badge">Access level: {level}</span>
            </h2>
            <p>Tools are enabled according to the permissions detected for the configured API key.</p>
            <ul>{tools_html}</ul>
        </body>
        </html>
        """
        return HTMLResponse(content=page)

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(server.get_health())

    return Starlette(
        routes=[
            Route("/", endpoint=landing_page, methods=["GET"]),
            Route("/health", endpoint=health, methods=["GET"]),
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Mount("/messages/", app=sse.handle_post_message),
        ]
    )


async def run_stdio(server: FreshdeskMCPServer) -> None:
    """Run the server with stdio transport."""
    try:
        await server.initialize()
        async with stdio_server() as (read_stream, write_stream):
            await server.mcp.run(read_stream, write_stream, server.mcp.create_initialization_options())
    finally:
        await server.stop()


async def run_http(server: FreshdeskMCPServer, host: str, port: int) -> None:
    """Run the server with SSE transport using uvicorn.

    Args:
        server: Server to initialize and serve
        host: Host to bind to
        port: Port to bind to
    """
    import uvicorn

    config = uvicorn.Config(create_http_app(server), host=host, port=port, log_level="info")
    server_instance = uvicorn.Server(config)
    try:
        await server.initialize()
        log.info("Starting Freshdesk MCP server (SSE) on http://%s:%s", host, port)
        log.info("  SSE endpoint: http://%s:%s/sse", host, port)
        await server_instance.serve()
    finally:
        await server.stop()


def main() -> None:
    """Main entry point for the Freshdesk MCP server."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="Freshdesk MCP Server")
    parser.add_argument(
        "--http",
        action="store_true",
        help="Run with HTTP (SSE) transport instead of stdio",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("MCP_HTTP_HOST", "0.0.0.0"),
        help="Host to bind to for HTTP mode (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("MCP_HTTP_PORT", "8000")),
        help="Port to bind to for HTTP mode (default: 8000)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args()

    # stdout carries the stdio protocol, so logs go to stderr.
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        server = FreshdeskMCPServer(load_config())
    except ConfigurationError as e:
        log.error("Invalid configuration: %s", e)
        sys.exit(1)

    use_http = args.http or os.getenv("MCP_TRANSPORT", "stdio").lower() == "http"

    try:
        if use_http:
            asyncio.run(run_http(server, args.host, args.port))
        else:
            log.info("Starting Freshdesk MCP server (stdio)...")
            asyncio.run(run_stdio(server))
    except StartupError as e:
        log.error("Server failed to start: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
