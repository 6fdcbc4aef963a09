"""Registry of the tools this server exposes."""

import logging
from collections.abc import Iterator

from mcp import types

from freshdesk_mcp.tools.base import BaseTool

log = logging.getLogger(__name__)


class ToolRegistry:
    """Name to tool mapping, filled once at startup.

    Registering a name twice replaces the earlier tool.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._tools: dict[str, BaseTool] = {}
        self.logger = logger or log

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            self.logger.warning("Tool %s is already registered, overwriting", tool.name)
        self._tools[tool.name] = tool
        self.logger.debug("Registered tool %s", tool.name)

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def all(self) -> list[BaseTool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def list_descriptors(self) -> list[types.Tool]:
        return [tool.descriptor() for tool in self._tools.values()]

    def size(self) -> int:
        return len(self._tools)

    def clear(self) -> None:
        self._tools.clear()

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(list(self._tools.values()))
