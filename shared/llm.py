"""Shared LLM utilities"""
from typing import Callable, Literal, Optional

from dotenv import load_dotenv
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from shared.config import config

load_dotenv()

# Factory signature injected into agents and LLM-backed tools
LLMFactory = Callable[..., BaseChatModel]


def _detect_provider(model: str) -> Literal["openai", "anthropic"]:
    """Detect provider from model name."""
    if model.startswith("claude-"):
        return "anthropic"
    # Everything else goes through the OpenAI-compatible client
    return "openai"


def get_llm(
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    api_key: Optional[str] = None,
    max_tokens: Optional[int] = None,
) -> BaseChatModel:
    """
    Get a configured chat model for OpenAI or Anthropic models.

    Args:
        model: Model name (e.g., "gpt-4o-mini", "claude-sonnet-4-5"); defaults to config
        temperature: Sampling temperature; defaults to config
        api_key: Optional API key override (provider-specific)
        max_tokens: Optional completion limit

    Returns:
        Configured ChatOpenAI or ChatAnthropic instance

    Raises:
        ValueError: If the provider API key is missing
    """
    model = model or config.default_llm_model
    if temperature is None:
        temperature = config.default_llm_temperature
    provider = _detect_provider(model)

    if provider == "anthropic":
        api_key = api_key or config.anthropic_api_key
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY not found in environment")
        kwargs = {"model": model, "anthropic_api_key": api_key, "temperature": temperature}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        return ChatAnthropic(**kwargs)

    api_key = api_key or config.openai_api_key
    if not api_key:
        raise ValueError("OPENAI_API_KEY not found in environment")
    kwargs = {"model": model, "api_key": api_key, "temperature": temperature}
    if max_tokens:
        kwargs["max_tokens"] = max_tokens
    return ChatOpenAI(**kwargs)


def message_text(message) -> str:
    """
    Extract the plain text of a chat model response.

    Handles both string content and the list-of-blocks format returned by
    newer provider APIs.
    """
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    text = ""
    if isinstance(content, list):
        for block in content:
            if isinstance(block, str):
                text += block
            elif isinstance(block, dict) and block.get("type") == "text":
                text += block.get("text", "")
    return text
