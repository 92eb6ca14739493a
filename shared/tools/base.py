"""
Base tool interface for the canvas tool system.

All tools inherit from BaseTool and implement the execute() method. A tool
is used in two ways:

- as a ``tool`` node on the canvas, called with its first parameter set to
  the incoming execution context
- by an agent, which sees ``to_function_schema()`` and calls the tool with
  model-chosen arguments
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from shared.logger import get_logger

logger = get_logger("shared.tools.base")


class BaseTool(ABC):
    """
    Abstract base class for all tools.

    Tools must implement:
    - name: Tool identifier (the library item id)
    - description: Human-readable description, also shown to models
    - execute(): Tool execution logic
    """

    name: str
    display_name: str = ""
    description: str

    @abstractmethod
    async def execute(self, arguments: Dict[str, Any]) -> Any:
        """
        Execute the tool.

        Args:
            arguments: Tool-specific arguments

        Returns:
            Tool execution result (any serializable type)

        Raises:
            Exception: If tool execution fails
        """
        pass

    def get_parameters_schema(self) -> Dict[str, Any]:
        """
        Get JSON schema for tool parameters.

        Default implementation returns empty schema.
        Override in subclasses to provide parameter validation.
        """
        return {
            "type": "object",
            "properties": {},
            "required": []
        }

    def parameter_names(self) -> List[str]:
        """Parameter names in declaration order."""
        return list(self.get_parameters_schema().get("properties", {}).keys())

    def to_function_schema(self) -> Dict[str, Any]:
        """OpenAI-style function declaration, accepted by ``bind_tools``."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.get_parameters_schema(),
            },
        }

    def get_metadata(self) -> Dict[str, Any]:
        """Tool metadata for API responses."""
        return {
            "name": self.name,
            "display_name": self.display_name or self.name,
            "description": self.description,
            "parameters": self.get_parameters_schema(),
        }
