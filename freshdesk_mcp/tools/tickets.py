"""Ticket tools for Freshdesk MCP Server."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from freshdesk_mcp.permissions import AccessLevel, Permission, ToolPermission
from freshdesk_mcp.tools.base import BaseTool, Email, Page, PerPage, ToolParams, require, write_permission

TICKET_FIELDS = (
    "subject",
    "description",
    "email",
    "priority",
    "status",
    "source",
    "tags",
    "cc_emails",
    "custom_fields",
    "group_id",
    "responder_id",
    "type",
    "product_id",
)


class TicketParams(ToolParams):
    subject: str | None = Field(None, description="Subject of the ticket")
    description: str | None = Field(None, description="HTML content of the ticket")
    email: Email | None = Field(None, description="Email address of the requester")
    priority: int | None = Field(None, ge=1, le=4, description="Priority: 1=Low, 2=Medium, 3=High, 4=Urgent")
    status: int | None = Field(
        None,
        ge=2,
        le=7,
        description="Status: 2=Open, 3=Pending, 4=Resolved, 5=Closed, 6=Waiting on Customer, 7=Waiting on Third Party",
    )
    source: int | None = Field(
        None,
        ge=1,
        le=10,
        description="Source: 1=Email, 2=Portal, 3=Phone, 7=Chat, 8=Mobihelp, 9=Feedback Widget, 10=Outbound Email",
    )
    tags: list[str] | None = Field(None, description="Tags for the ticket")
    cc_emails: list[Email] | None = Field(None, description="Email addresses to CC")
    custom_fields: dict[str, Any] | None = Field(None, description="Custom fields as key-value pairs")
    group_id: int | None = Field(None, description="Group ID to assign the ticket")
    responder_id: int | None = Field(None, description="Agent ID to assign the ticket")
    type: str | None = Field(None, description="Ticket type")
    product_id: int | None = Field(None, description="Product ID associated with the ticket")

    ticket_id: int | None = Field(None, description="ID of the ticket (update, get, delete)")

    page: Page | None = None
    per_page: PerPage | None = None
    filter: str | None = Field(
        None, description='Predefined filter like "new_and_my_open", "watching", "spam", "deleted"'
    )
    requester_id: int | None = Field(None, description="Filter by requester ID")
    company_id: int | None = Field(None, description="Filter by company ID")
    updated_since: datetime | None = Field(None, description="Only tickets updated after this time")
    include: list[str] | None = Field(
        None, description='Include related data: "description", "requester", "stats", "company", "conversations"'
    )

    query: str | None = Field(None, description='Search query string (e.g., "status:2 priority:1")')


class TicketsManageArgs(BaseModel):
    action: Literal["create", "update", "list", "get", "delete", "search"] = Field(
        description="Action to perform on tickets"
    )
    params: TicketParams = Field(default_factory=TicketParams, description="Parameters for the action")


class TicketsTool(BaseTool):
    name = "tickets_manage"
    description = "Manage Freshdesk tickets - create, update, list, get, delete, and search tickets"
    args_model = TicketsManageArgs
    permission = ToolPermission(AccessLevel.READ, (Permission.TICKETS_READ,), "Basic ticket management capabilities")
    action_permissions = {
        action: write_permission(Permission.TICKETS_WRITE, f"Ticket {action} requires write access")
        for action in ("create", "update", "delete")
    }

    async def execute(self, args: TicketsManageArgs) -> Any:
        params = args.params
        if args.action == "create":
            return await self.create_ticket(params)
        if args.action == "update":
            return await self.update_ticket(params)
        if args.action == "list":
            return await self.list_tickets(params)
        if args.action == "get":
            return await self.get_ticket(params)
        if args.action == "delete":
            return await self.delete_ticket(params)
        return await self.search_tickets(params)

    async def create_ticket(self, params: TicketParams) -> dict[str, Any]:
        data = params.model_dump(mode="json", include=set(TICKET_FIELDS), exclude_none=True)
        ticket = await self.client.create_ticket(data)
        return {"message": "Ticket created successfully", "ticket": ticket}

    async def update_ticket(self, params: TicketParams) -> dict[str, Any]:
        ticket_id = require(params, "ticket_id", "update")
        data = params.model_dump(mode="json", include=set(TICKET_FIELDS), exclude_none=True)
        ticket = await self.client.update_ticket(ticket_id, data)
        return {"message": "Ticket updated successfully", "ticket": ticket}

    async def list_tickets(self, params: TicketParams) -> dict[str, Any]:
        options = params.model_dump(
            mode="json",
            include={"page", "per_page", "filter", "requester_id", "responder_id", "company_id", "updated_since"},
            exclude_none=True,
        )
        if params.include:
            options["include"] = ",".join(params.include)
        tickets = await self.client.list_tickets(options)
        return {"message": f"Found {len(tickets or [])} tickets", "tickets": tickets}

    async def get_ticket(self, params: TicketParams) -> dict[str, Any]:
        ticket_id = require(params, "ticket_id", "get")
        include = ",".join(params.include) if params.include else None
        ticket = await self.client.get_ticket(ticket_id, include=include)
        return {"message": "Ticket retrieved successfully", "ticket": ticket}

    async def delete_ticket(self, params: TicketParams) -> dict[str, Any]:
        ticket_id = require(params, "ticket_id", "delete")
        await self.client.delete_ticket(ticket_id)
        return {"message": "Ticket deleted successfully", "ticket_id": ticket_id}

    async def search_tickets(self, params: TicketParams) -> dict[str, Any]:
        query = require(params, "query", "search")
        results = await self.client.search_tickets(
            query, {"page": params.page, "per_page": params.per_page}
        )
        found = len((results or {}).get("results") or [])
        return {"message": f"Found {found} tickets matching query", "search_results": results}
