"""Tests for server startup, dispatch, metrics and the HTTP app."""

import dataclasses
import json
from typing import Literal
from unittest.mock import AsyncMock

import pytest
from mcp import types
from pydantic import BaseModel
from starlette.testclient import TestClient

from freshdesk_mcp.errors import StartupError, ToolNotFoundError, ToolPermissionError
from freshdesk_mcp.permissions import (
    AccessLevel,
    CapabilityMatrix,
    CrudCapability,
    Permission,
    ToolPermission,
    UserPermissions,
    default_permissions,
)
from freshdesk_mcp.server import FreshdeskMCPServer, ServerState, create_http_app
from freshdesk_mcp.tools import TicketsTool
from freshdesk_mcp.tools.base import BaseTool

from conftest import json_response

RESOURCE_TOOL_NAMES = {
    "tickets_manage",
    "contacts_manage",
    "agents_manage",
    "companies_manage",
    "conversations_manage",
    "discovery",
}


class BulkCloseArgs(BaseModel):
    action: Literal["close_all"]


class BulkCloseTool(BaseTool):
    name = "tickets_bulk_close"
    description = "Close every open ticket"
    args_model = BulkCloseArgs
    permission = ToolPermission(AccessLevel.WRITE, (Permission.TICKETS_WRITE,))

    async def execute(self, args):
        return {"closed": 0}


def read_only_user():
    return UserPermissions(
        access_level=AccessLevel.READ,
        can_write=False,
        can_delete=False,
        is_admin=False,
        permissions=frozenset({Permission.TICKETS_READ, Permission.SEARCH}),
        capabilities=CapabilityMatrix(tickets=CrudCapability(read=True)),
    )


def agent_me(request):
    return json_response(200, {"id": 1, "contact": {"email": "agent@example.com"}})


@pytest.fixture
def make_server(make_client, config):
    """Build a server around a mock-transport client and a stubbed discovery service."""

    def factory(handler=agent_me, permissions=None, discovery_error=None, **overrides):
        server_config = dataclasses.replace(config, **overrides) if overrides else config
        client = make_client(handler)
        discovery = AsyncMock()
        if discovery_error is not None:
            discovery.discover.side_effect = discovery_error
        else:
            discovery.discover.return_value = permissions or default_permissions()
        return FreshdeskMCPServer(server_config, client=client, discovery=discovery)

    return factory


class TestInitialize:
    """Tests for the startup sequence."""

    @pytest.mark.asyncio
    async def test_skip_flags(self, make_server):
        """With both skip flags no request is made and defaults are used."""

        def unreachable(request):
            raise AssertionError("no request expected")

        server = make_server(unreachable, skip_connection_test=True, skip_permission_discovery=True)
        await server.initialize()

        assert server.state is ServerState.READY
        assert server.user_permissions == default_permissions()
        assert set(server.registry.names()) == RESOURCE_TOOL_NAMES
        server.discovery.discover.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_and_discovery(self, make_server):
        """A working connection leads to permission discovery."""
        server = make_server()
        await server.initialize()

        assert server.state is ServerState.READY
        server.discovery.discover.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_connection_aborts(self, make_server):
        """A failed connection test stops startup before discovery."""
        server = make_server(lambda request: json_response(401, {"message": "Invalid"}))

        with pytest.raises(StartupError, match="Failed to connect to Freshdesk API"):
            await server.initialize()

        assert server.state is ServerState.UNINITIALIZED
        assert server.registry.size() == 0
        server.discovery.discover.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_discovery_uses_defaults(self, make_server, caplog):
        """A discovery failure falls back to default permissions."""
        server = make_server(discovery_error=RuntimeError("probe exploded"))
        await server.initialize()

        assert server.state is ServerState.READY
        assert server.user_permissions == default_permissions()
        assert "Permission discovery failed" in caplog.text

    @pytest.mark.asyncio
    async def test_cannot_initialize_twice(self, make_server):
        """initialize() only runs from the uninitialized state."""
        server = make_server(skip_connection_test=True)
        await server.initialize()
        with pytest.raises(StartupError):
            await server.initialize()

    @pytest.mark.asyncio
    async def test_read_only_user_hides_write_tools(self, make_server):
        """A tool that needs write access is neither registered nor listed."""
        server = make_server(permissions=read_only_user(), skip_connection_test=True)
        server.candidate_tools = [TicketsTool(server.client), BulkCloseTool(server.client)]
        await server.initialize()

        names = [tool.name for tool in server.list_tools()]
        assert names == ["tickets_manage", "discovery"]
        assert "tickets_bulk_close" not in server.registry

        content = await server.call_tool("discovery", {"action": "list_tools"})
        listed = {tool["name"]: tool for tool in json.loads(content[0].text)["tools"]}
        assert listed["tickets_bulk_close"]["available"] is False
        assert listed["tickets_bulk_close"]["missing_permissions"] == ["access_level:write", "tickets:write"]


class TestCallTool:
    """Tests for dispatch through the server."""

    @pytest.mark.asyncio
    async def test_not_ready(self, make_server):
        """Calls before initialize() fail and count as failed requests."""
        server = make_server()
        with pytest.raises(StartupError, match="not initialized"):
            await server.call_tool("tickets_manage", {"action": "list"})
        assert server.metrics.requests_failed == 1

    @pytest.mark.asyncio
    async def test_unknown_tool(self, make_server):
        """An unregistered name raises ToolNotFoundError."""
        server = make_server(skip_connection_test=True)
        await server.initialize()

        with pytest.raises(ToolNotFoundError, match="Tool not found: nope"):
            await server.call_tool("nope", {})

    @pytest.mark.asyncio
    async def test_registered_tool_is_still_gated(self, make_server):
        """A registered tool the current permissions do not cover is refused at call time."""
        server = make_server(permissions=read_only_user(), skip_connection_test=True)
        await server.initialize()
        bulk_close = BulkCloseTool(server.client)
        bulk_close.execute = AsyncMock()
        server.registry.register(bulk_close)

        with pytest.raises(ToolPermissionError) as exc_info:
            await server.call_tool("tickets_bulk_close", {"action": "close_all"})

        assert exc_info.value.tool_name == "tickets_bulk_close"
        assert exc_info.value.missing == ["access_level:write", "tickets:write"]
        bulk_close.execute.assert_not_awaited()
        assert server.metrics.requests_failed == 1

    @pytest.mark.asyncio
    async def test_wraps_result_as_text(self, make_server):
        """Results are wrapped in a single text content block."""
        server = make_server(skip_connection_test=True)
        await server.initialize()

        content = await server.call_tool("discovery", {"action": "get_permissions"})

        assert len(content) == 1
        assert isinstance(content[0], types.TextContent)
        assert content[0].type == "text"
        assert json.loads(content[0].text)["permissions"]["access_level"] == "write"

    @pytest.mark.asyncio
    async def test_tool_errors_are_text_not_faults(self, make_server):
        """API failures inside a tool come back as an error payload."""

        def handler(request):
            if request.url.path.endswith("/agents/me"):
                return agent_me(request)
            return json_response(404, {"message": "missing"})

        server = make_server(handler)
        await server.initialize()

        content = await server.call_tool("tickets_manage", {"action": "get", "params": {"ticket_id": 99}})

        payload = json.loads(content[0].text)
        assert payload["error"] is True
        assert payload["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_metrics(self, make_server):
        """Successful and failed dispatches are both counted."""
        server = make_server(skip_connection_test=True)
        await server.initialize()

        await server.call_tool("discovery", {"action": "get_capabilities"})
        with pytest.raises(ToolNotFoundError):
            await server.call_tool("nope", {})

        metrics = server.get_metrics()
        assert metrics["requests_total"] == 2
        assert metrics["requests_success"] == 1
        assert metrics["requests_failed"] == 1
        assert metrics["active_connections"] == 0
        assert metrics["average_response_time"] >= 0
        assert metrics["uptime"] >= 0


class TestLifecycle:
    """Tests for health reporting and shutdown."""

    @pytest.mark.asyncio
    async def test_health(self, make_server):
        """Health is unhealthy before startup and healthy once ready."""
        server = make_server(skip_connection_test=True)
        assert server.get_health()["status"] == "unhealthy"

        await server.initialize()
        health = server.get_health()
        assert health["status"] == "healthy"
        assert health["checks"] == {"api": True, "auth": True, "rate_limit": True}

    @pytest.mark.asyncio
    async def test_stop(self, make_server):
        """stop() clears the registry and refuses further calls."""
        server = make_server(skip_connection_test=True)
        await server.initialize()
        await server.stop()

        assert server.state is ServerState.STOPPED
        assert server.list_tools() == []
        with pytest.raises(StartupError):
            await server.call_tool("discovery", {"action": "get_permissions"})


class TestHttpApp:
    """Tests for the Starlette app used in HTTP mode."""

    def test_routes(self, make_server):
        """The app serves the landing page, health and SSE routes."""
        app = create_http_app(make_server())
        paths = {route.path for route in app.routes}
        assert {"/", "/health", "/sse"} <= paths

    def test_landing_page_lists_tools(self, make_server):
        """The landing page lists registered tools and the access mode."""
        server = make_server()
        server.user_permissions = read_only_user()
        server._register_tools(server.user_permissions)

        response = TestClient(create_http_app(server)).get("/")

        assert response.status_code == 200
        assert "Freshdesk MCP Server" in response.text
        assert "tickets_manage" in response.text
        assert "Read-Only" in response.text
        assert "https://testco.freshdesk.com/api/v2" in response.text
        assert "http://testserver/sse" in response.text

    def test_health_endpoint(self, make_server):
        """/health returns the server health as JSON."""
        response = TestClient(create_http_app(make_server())).get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["state"] == "uninitialized"
