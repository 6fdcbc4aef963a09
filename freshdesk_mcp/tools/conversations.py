"""Conversation (reply and note) tools for Freshdesk MCP Server.

Conversations live under tickets, so access follows the ticket permissions.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from freshdesk_mcp.errors import ValidationError
from freshdesk_mcp.permissions import AccessLevel, Permission, ToolPermission
from freshdesk_mcp.tools.base import BaseTool, Email, Page, PerPage, ToolParams, require, write_permission


class Attachment(ToolParams):
    name: str = Field(description="File name")
    content_type: str = Field(description="MIME type")
    size: int = Field(ge=0, description="File size in bytes")
    url: str = Field(description="URL to download the attachment")


class ConversationParams(ToolParams):
    ticket_id: int | None = Field(None, description="ID of the ticket")

    page: Page | None = None
    per_page: PerPage | None = None

    body: str | None = Field(None, description="Content of the reply/note in HTML")
    from_email: Email | None = Field(None, description="Email address of the sender")
    to_emails: list[Email] | None = Field(None, description="Email addresses of recipients")
    cc_emails: list[Email] | None = Field(None, description="Email addresses to CC")
    bcc_emails: list[Email] | None = Field(None, description="Email addresses to BCC")

    private: bool = Field(True, description="Whether the note is private (default: true)")
    notify_emails: list[Email] | None = Field(None, description="Email addresses to notify about the note")

    conversation_id: int | None = Field(None, description="ID of the conversation (update, delete)")

    attachments: list[Attachment] | None = Field(None, description="File attachments")


class ConversationsManageArgs(BaseModel):
    action: Literal["list", "create_reply", "create_note", "update", "delete"] = Field(
        description="Action to perform on conversations"
    )
    params: ConversationParams = Field(
        default_factory=ConversationParams, description="Parameters for the action"
    )


def _require_conversation(params: ConversationParams, action: str) -> tuple[int, int]:
    if not params.ticket_id or not params.conversation_id:
        raise ValidationError(f"ticket_id and conversation_id are required for {action} action")
    return params.ticket_id, params.conversation_id


class ConversationsTool(BaseTool):
    name = "conversations_manage"
    description = "Manage ticket conversations - list, create replies and notes, update, and delete conversations"
    args_model = ConversationsManageArgs
    permission = ToolPermission(AccessLevel.READ, (Permission.TICKETS_READ,), "Conversation management capabilities")
    action_permissions = {
        action: write_permission(Permission.TICKETS_WRITE, f"Conversation {action} requires write access")
        for action in ("create_reply", "create_note", "update", "delete")
    }

    async def execute(self, args: ConversationsManageArgs) -> Any:
        params = args.params
        action = args.action

        if action == "list":
            ticket_id = require(params, "ticket_id", action)
            conversations = await self.client.list_conversations(
                ticket_id, {"page": params.page, "per_page": params.per_page}
            )
            return {
                "message": f"Found {len(conversations or [])} conversations for ticket {ticket_id}",
                "conversations": conversations,
            }

        if action == "create_reply":
            ticket_id = require(params, "ticket_id", action)
            require(params, "body", action)
            data = params.model_dump(
                mode="json",
                include={"body", "from_email", "to_emails", "cc_emails", "bcc_emails", "attachments"},
                exclude_none=True,
            )
            conversation = await self.client.create_reply(ticket_id, data)
            return {"message": "Reply created successfully", "conversation": conversation}

        if action == "create_note":
            ticket_id = require(params, "ticket_id", action)
            require(params, "body", action)
            data = params.model_dump(
                mode="json",
                include={"body", "private", "notify_emails", "attachments"},
                exclude_none=True,
            )
            conversation = await self.client.create_note(ticket_id, data)
            return {"message": "Note created successfully", "conversation": conversation}

        ticket_id, conversation_id = _require_conversation(params, action)
        if action == "update":
            body = require(params, "body", action)
            conversation = await self.client.update_conversation(ticket_id, conversation_id, {"body": body})
            return {"message": "Conversation updated successfully", "conversation": conversation}

        await self.client.delete_conversation(ticket_id, conversation_id)
        return {
            "message": "Conversation deleted successfully",
            "ticket_id": ticket_id,
            "conversation_id": conversation_id,
        }
