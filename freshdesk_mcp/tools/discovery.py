"""Introspection tool: which tools, permissions and capabilities this server has."""

from collections.abc import Sequence
from typing import Any, Literal

from pydantic import BaseModel, Field

from freshdesk_mcp.errors import NotFoundError
from freshdesk_mcp.freshdesk_client import FreshdeskClient
from freshdesk_mcp.permissions import AccessLevel, ToolPermission, UserPermissions
from freshdesk_mcp.tools.base import BaseTool, ToolParams


class DiscoveryParams(ToolParams):
    tool_name: str | None = Field(None, description="Name of the tool to get details for")


class DiscoveryArgs(BaseModel):
    action: Literal["list_tools", "get_permissions", "get_capabilities"] = Field(
        description="Discovery action to perform"
    )
    params: DiscoveryParams = Field(default_factory=DiscoveryParams, description="Parameters for the action")


def available_operations(capability: Any) -> list[str]:
    operations = []
    if getattr(capability, "read", False):
        operations.extend(["read", "list", "search"])
    if getattr(capability, "write", False):
        operations.extend(["create", "update"])
    if getattr(capability, "delete", False):
        operations.append("delete")
    if getattr(capability, "admin", False):
        operations.append("admin")
    return operations


class DiscoveryTool(BaseTool):
    name = "discovery"
    description = "Discover available tools, permissions, and capabilities in the Freshdesk MCP server"
    args_model = DiscoveryArgs
    permission = ToolPermission(AccessLevel.READ, (), "Tool discovery and capability information")

    def __init__(
        self,
        client: FreshdeskClient,
        tools: Sequence[BaseTool],
        user_permissions: UserPermissions | None,
        **kwargs: Any,
    ) -> None:
        super().__init__(client, **kwargs)
        self.tools = list(tools)
        self.user_permissions = user_permissions

    async def execute(self, args: DiscoveryArgs) -> Any:
        if args.action == "list_tools":
            return self.list_tools(args.params.tool_name)
        if args.action == "get_permissions":
            return self.get_permissions()
        return self.get_capabilities()

    def describe_tool(self, tool: BaseTool) -> dict[str, Any]:
        user = self.user_permissions
        available = user is None or tool.is_available_for(user)
        info: dict[str, Any] = {
            "name": tool.name,
            "description": tool.description,
            "available": available,
            "required_access_level": tool.permission.minimum_access_level.value,
            "required_permissions": [p.value for p in tool.permission.required_permissions],
            "missing_permissions": tool.missing_permissions(user) if user is not None else [],
        }
        if user is not None:
            info["actions"] = {
                action: not tool.missing_action_permissions(action, user) for action in tool.actions
            }
        return info

    def list_tools(self, tool_name: str | None = None) -> dict[str, Any]:
        candidates = [*self.tools, self]
        if tool_name is not None:
            candidates = [tool for tool in candidates if tool.name == tool_name]
            if not candidates:
                raise NotFoundError("Tool", detail=tool_name)

        tools = [self.describe_tool(tool) for tool in candidates]
        available = sum(1 for tool in tools if tool["available"])
        return {
            "message": f"{available} of {len(tools)} tools are available with current permissions",
            "tools": tools,
        }

    def get_permissions(self) -> dict[str, Any]:
        if self.user_permissions is None:
            return {"message": "Permission discovery was not performed", "permissions": None}
        return {"message": "Current user permissions", "permissions": self.user_permissions.to_dict()}

    def get_capabilities(self) -> dict[str, Any]:
        if self.user_permissions is None:
            return {"message": "Permission discovery was not performed", "capabilities": None}

        capabilities = self.user_permissions.capabilities
        summary: dict[str, Any] = {}
        for resource in ("tickets", "contacts", "agents", "companies", "conversations"):
            capability = getattr(capabilities, resource)
            summary[resource] = {
                "available": capability.read or capability.write,
                "operations": available_operations(capability),
            }
        summary["search"] = {"available": capabilities.search.enabled}
        summary["export"] = {"available": capabilities.export.data}

        return {
            "message": "Available capabilities based on current permissions",
            "capabilities": summary,
            "detailed": capabilities.to_dict(),
            "rate_limit": self.client.get_rate_limit_info().to_dict(),
        }
