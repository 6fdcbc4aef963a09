"""Agent tools for Freshdesk MCP Server."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from freshdesk_mcp.permissions import AccessLevel, Permission, ToolPermission
from freshdesk_mcp.tools.base import BaseTool, Email, Page, ToolParams, require


class AgentContact(ToolParams):
    name: str | None = Field(None, description="Agent name")
    email: Email | None = Field(None, description="Agent email")
    phone: str | None = Field(None, description="Agent phone")
    mobile: str | None = Field(None, description="Agent mobile")
    job_title: str | None = Field(None, description="Agent job title")
    language: str | None = Field(None, description="Language code")
    time_zone: str | None = Field(None, description="Time zone")


class AgentParams(ToolParams):
    agent_id: int | None = Field(None, description="ID of the agent (get, update)")

    page: Page | None = None
    per_page: int | None = Field(None, ge=1, le=100, description="Items per page (default: 50, max: 100)")
    email: Email | None = Field(None, description="Filter agents by email")
    mobile: str | None = Field(None, description="Filter agents by mobile number")
    phone: str | None = Field(None, description="Filter agents by phone number")
    state: Literal["fulltime", "occasional"] | None = Field(None, description="Filter by agent type")

    occasional: bool | None = Field(None, description="Set agent as occasional (true) or full-time (false)")
    signature: str | None = Field(None, description="Agent signature in HTML format")
    ticket_scope: int | None = Field(
        None, ge=1, le=3, description="Ticket permission: 1=Global, 2=Group, 3=Restricted"
    )
    group_ids: list[int] | None = Field(None, description="Group IDs the agent belongs to")
    role_ids: list[int] | None = Field(None, description="Role IDs assigned to the agent")
    contact: AgentContact | None = Field(None, description="Contact information for the agent")


class AgentsManageArgs(BaseModel):
    action: Literal["list", "get", "update", "current"] = Field(description="Action to perform on agents")
    params: AgentParams = Field(default_factory=AgentParams, description="Parameters for the action")


class AgentsTool(BaseTool):
    name = "agents_manage"
    description = "Manage Freshdesk agents - list, get, update agents and get current agent info"
    args_model = AgentsManageArgs
    permission = ToolPermission(AccessLevel.READ, (Permission.AGENTS_READ,), "Agent viewing capabilities")
    # Changing another agent's profile is an admin operation in Freshdesk.
    action_permissions = {
        "update": ToolPermission(AccessLevel.ADMIN, (Permission.AGENTS_READ,), "Agent update requires admin access"),
    }

    async def execute(self, args: AgentsManageArgs) -> Any:
        params = args.params
        if args.action == "list":
            options = params.model_dump(
                include={"page", "per_page", "email", "mobile", "phone", "state"}, exclude_none=True
            )
            agents = await self.client.list_agents(options)
            return {"message": f"Found {len(agents or [])} agents", "agents": agents}

        if args.action == "get":
            agent = await self.client.get_agent(require(params, "agent_id", "get"))
            return {"message": "Agent retrieved successfully", "agent": agent}

        if args.action == "update":
            agent_id = require(params, "agent_id", "update")
            data = params.model_dump(
                mode="json",
                include={"occasional", "signature", "ticket_scope", "group_ids", "role_ids", "contact"},
                exclude_none=True,
            )
            agent = await self.client.update_agent(agent_id, data)
            return {"message": "Agent updated successfully", "agent": agent}

        agent = await self.client.get_current_agent()
        return {"message": "Current agent retrieved successfully", "agent": agent}
