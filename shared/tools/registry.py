"""
Simple in-memory tool registry.

The behavior resolver looks up tool nodes here, and agents resolve the tool
names they were configured with.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from shared.logger import get_logger
from shared.tools.base import BaseTool

logger = get_logger("shared.tools.registry")


class ToolNotFoundError(KeyError):
    """Raised when attempting to access an unknown tool."""


class ToolRegistry:
    """
    Stores tool instances by name.
    """

    def __init__(self, initial: Optional[Iterable[BaseTool]] = None) -> None:
        self._tools: Dict[str, BaseTool] = {}
        for tool in initial or []:
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            logger.warning(f"Tool '{tool.name}' is already registered. Overwriting.")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> BaseTool:
        try:
            return self._tools[name]
        except KeyError as exc:
            raise ToolNotFoundError(f"Tool '{name}' is not registered") from exc

    def maybe_get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def list(self) -> List[BaseTool]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools
