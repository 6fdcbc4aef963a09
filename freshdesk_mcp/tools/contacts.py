"""Contact tools for Freshdesk MCP Server."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from freshdesk_mcp.errors import ValidationError
from freshdesk_mcp.permissions import AccessLevel, Permission, ToolPermission
from freshdesk_mcp.tools.base import BaseTool, Email, Page, PerPage, ToolParams, require, write_permission

CONTACT_FIELDS = {
    "name",
    "email",
    "phone",
    "mobile",
    "twitter_id",
    "unique_external_id",
    "other_emails",
    "company_id",
    "view_all_tickets",
    "language",
    "time_zone",
    "tags",
    "custom_fields",
    "address",
}


class ContactParams(ToolParams):
    name: str | None = Field(None, description="Full name of the contact")
    email: Email | None = Field(None, description="Primary email address")
    phone: str | None = Field(None, description="Phone number")
    mobile: str | None = Field(None, description="Mobile number")
    twitter_id: str | None = Field(None, description="Twitter handle")
    unique_external_id: str | None = Field(None, description="External ID from your system")
    other_emails: list[Email] | None = Field(None, description="Additional email addresses")
    company_id: int | None = Field(None, description="Company ID to associate with")
    view_all_tickets: bool | None = Field(None, description="Can view all company tickets")
    language: str | None = Field(None, description='Language code (e.g., "en", "fr")')
    time_zone: str | None = Field(None, description='Time zone (e.g., "Eastern Time (US & Canada)")')
    tags: list[str] | None = Field(None, description="Tags for the contact")
    custom_fields: dict[str, Any] | None = Field(None, description="Custom fields as key-value pairs")
    address: str | None = Field(None, description="Address of the contact")

    contact_id: int | None = Field(None, description="ID of the contact (update, get, delete)")

    page: Page | None = None
    per_page: PerPage | None = None
    email_filter: Email | None = Field(None, description="Filter by email address")
    mobile_filter: str | None = Field(None, description="Filter by mobile number")
    phone_filter: str | None = Field(None, description="Filter by phone number")
    updated_since: datetime | None = Field(None, description="Only contacts updated after this time")
    state: Literal["verified", "unverified", "blocked", "deleted"] | None = Field(
        None, description="Filter by contact state"
    )

    query: str | None = Field(None, description="Search query string")

    primary_contact_id: int | None = Field(None, description="Primary contact ID to merge into")
    secondary_contact_ids: list[int] | None = Field(None, description="Contact IDs to merge from")


class ContactsManageArgs(BaseModel):
    action: Literal["create", "update", "list", "get", "delete", "search", "merge"] = Field(
        description="Action to perform on contacts"
    )
    params: ContactParams = Field(default_factory=ContactParams, description="Parameters for the action")


class ContactsTool(BaseTool):
    name = "contacts_manage"
    description = "Manage Freshdesk contacts - create, update, list, get, delete, search, and merge contacts"
    args_model = ContactsManageArgs
    permission = ToolPermission(AccessLevel.READ, (Permission.CONTACTS_READ,), "Contact management capabilities")
    action_permissions = {
        action: write_permission(Permission.CONTACTS_WRITE, f"Contact {action} requires write access")
        for action in ("create", "update", "delete", "merge")
    }

    async def execute(self, args: ContactsManageArgs) -> Any:
        params = args.params
        handlers = {
            "create": self.create_contact,
            "update": self.update_contact,
            "list": self.list_contacts,
            "get": self.get_contact,
            "delete": self.delete_contact,
            "search": self.search_contacts,
            "merge": self.merge_contacts,
        }
        return await handlers[args.action](params)

    async def create_contact(self, params: ContactParams) -> dict[str, Any]:
        data = params.model_dump(mode="json", include=CONTACT_FIELDS, exclude_none=True)
        contact = await self.client.create_contact(data)
        return {"message": "Contact created successfully", "contact": contact}

    async def update_contact(self, params: ContactParams) -> dict[str, Any]:
        contact_id = require(params, "contact_id", "update")
        data = params.model_dump(mode="json", include=CONTACT_FIELDS, exclude_none=True)
        contact = await self.client.update_contact(contact_id, data)
        return {"message": "Contact updated successfully", "contact": contact}

    async def list_contacts(self, params: ContactParams) -> dict[str, Any]:
        options = {
            "page": params.page,
            "per_page": params.per_page,
            "email": params.email_filter,
            "mobile": params.mobile_filter,
            "phone": params.phone_filter,
            "company_id": params.company_id,
            "state": params.state,
            "updated_since": params.updated_since.isoformat() if params.updated_since else None,
        }
        contacts = await self.client.list_contacts(options)
        return {"message": f"Found {len(contacts or [])} contacts", "contacts": contacts}

    async def get_contact(self, params: ContactParams) -> dict[str, Any]:
        contact_id = require(params, "contact_id", "get")
        contact = await self.client.get_contact(contact_id)
        return {"message": "Contact retrieved successfully", "contact": contact}

    async def delete_contact(self, params: ContactParams) -> dict[str, Any]:
        contact_id = require(params, "contact_id", "delete")
        await self.client.delete_contact(contact_id)
        return {"message": "Contact deleted successfully", "contact_id": contact_id}

    async def search_contacts(self, params: ContactParams) -> dict[str, Any]:
        query = require(params, "query", "search")
        results = await self.client.search_contacts(query, {"page": params.page, "per_page": params.per_page})
        found = len((results or {}).get("results") or [])
        return {"message": f"Found {found} contacts matching query", "search_results": results}

    async def merge_contacts(self, params: ContactParams) -> dict[str, Any]:
        if not params.primary_contact_id or not params.secondary_contact_ids:
            raise ValidationError("primary_contact_id and secondary_contact_ids are required for merge action")
        contact = await self.client.merge_contacts(params.primary_contact_id, params.secondary_contact_ids)
        return {"message": "Contacts merged successfully", "merged_contact": contact}
