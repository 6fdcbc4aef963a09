"""MCP server exposing the Freshdesk helpdesk API as permission-gated tools."""

__version__ = "1.0.0"
