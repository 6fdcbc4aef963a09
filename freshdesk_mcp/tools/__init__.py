"""Freshdesk MCP tools."""

from freshdesk_mcp.freshdesk_client import FreshdeskClient
from freshdesk_mcp.tools.agents import AgentsTool
from freshdesk_mcp.tools.base import BaseTool
from freshdesk_mcp.tools.companies import CompaniesTool
from freshdesk_mcp.tools.contacts import ContactsTool
from freshdesk_mcp.tools.conversations import ConversationsTool
from freshdesk_mcp.tools.discovery import DiscoveryTool
from freshdesk_mcp.tools.tickets import TicketsTool

RESOURCE_TOOLS: tuple[type[BaseTool], ...] = (
    TicketsTool,
    ContactsTool,
    AgentsTool,
    CompaniesTool,
    ConversationsTool,
)


def build_resource_tools(client: FreshdeskClient) -> list[BaseTool]:
    return [tool_class(client) for tool_class in RESOURCE_TOOLS]


__all__ = [
    "AgentsTool",
    "BaseTool",
    "CompaniesTool",
    "ContactsTool",
    "ConversationsTool",
    "DiscoveryTool",
    "RESOURCE_TOOLS",
    "TicketsTool",
    "build_resource_tools",
]
