"""
Shared tools package.

``register_default_tools`` builds the registry of built-in tools; the
registry is created once at startup and handed to the behavior resolver.
"""
from shared.llm import LLMFactory, get_llm
from shared.tools.base import BaseTool
from shared.tools.general import CalculatorTool, NotesTool
from shared.tools.registry import ToolNotFoundError, ToolRegistry
from shared.tools.text import (
    CodeInterpreterTool,
    SentimentAnalysisTool,
    TextSummarizeTool,
    TranslateTextTool,
)


def register_default_tools(registry: ToolRegistry | None = None, llm_factory: LLMFactory = get_llm) -> ToolRegistry:
    """Register every built-in tool; model-backed tools share ``llm_factory``."""
    registry = registry if registry is not None else ToolRegistry()
    registry.register(CalculatorTool())
    registry.register(NotesTool())
    registry.register(CodeInterpreterTool(llm_factory))
    registry.register(TranslateTextTool(llm_factory))
    registry.register(TextSummarizeTool(llm_factory))
    registry.register(SentimentAnalysisTool(llm_factory))
    return registry


__all__ = [
    "BaseTool",
    "ToolRegistry",
    "ToolNotFoundError",
    "register_default_tools",
]
