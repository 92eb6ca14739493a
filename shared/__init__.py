"""Shared utilities: config, logging, LLM access, repositories and tools"""

from .llm import get_llm

__all__ = [
    "get_llm",
]
