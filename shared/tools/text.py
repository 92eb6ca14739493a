"""
Model-backed text tools.

Each tool builds a single prompt and asks a chat model obtained from the
injected factory, so tests can substitute a fake model.
"""
import base64
import time
from typing import Any, Dict

from langchain_core.messages import HumanMessage

from shared.llm import LLMFactory, get_llm, message_text
from shared.logger import get_logger
from shared.tools.base import BaseTool

logger = get_logger("shared.tools.text")


def _text_schema(description: str) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {"text": {"type": "string", "description": description}},
        "required": ["text"]
    }


class LLMTool(BaseTool):
    """Base for tools that delegate to a chat model."""

    def __init__(self, llm_factory: LLMFactory = get_llm) -> None:
        self.llm_factory = llm_factory

    def build_prompt(self, arguments: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def ask(self, prompt: str) -> str:
        llm = self.llm_factory()
        response = await llm.ainvoke([HumanMessage(content=prompt)])
        return message_text(response)

    async def execute(self, arguments: Dict[str, Any]) -> Any:
        return await self.ask(self.build_prompt(arguments))


class CodeInterpreterTool(LLMTool):
    """The code is described to the model, never executed."""

    name = "code_interpreter"
    display_name = "Code interpreter"
    description = "Interprets a code snippet and returns its textual result."

    def get_parameters_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {"code": {"type": "string", "description": "Code to interpret"}},
            "required": ["code"]
        }

    def build_prompt(self, arguments: Dict[str, Any]) -> str:
        return (
            "Interpret the following code and return its result as text. If the code is unsafe "
            "or contains errors, describe the problem instead. Code:\n\n"
            f"```\n{arguments.get('code', '')}\n```"
        )


class TranslateTextTool(LLMTool):
    name = "translate_text"
    display_name = "Translate text"
    description = "Translates text into the given target language."

    def get_parameters_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "Text to translate"},
                "target_language": {
                    "type": "string",
                    "description": 'Target language (e.g. "English", "Polish")',
                    "default": "English"
                }
            },
            "required": ["text"]
        }

    def build_prompt(self, arguments: Dict[str, Any]) -> str:
        target = arguments.get("target_language") or "English"
        return f"Translate the following text into {target}:\n\n---\n{arguments.get('text', '')}\n---"


class TextSummarizeTool(LLMTool):
    """Returns the summary as a downloadable text file payload."""

    name = "text_summarize"
    display_name = "Summarize text"
    description = "Creates a concise summary of the given text."

    def get_parameters_schema(self) -> Dict[str, Any]:
        return _text_schema("Text to summarize")

    def build_prompt(self, arguments: Dict[str, Any]) -> str:
        return f"Summarize the following text in a few key points:\n\n---\n{arguments.get('text', '')}\n---"

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, str]:
        summary = await self.ask(self.build_prompt(arguments))
        return {
            "__rich_data_type__": "file",
            "filename": f"summary-{int(time.time() * 1000)}.txt",
            "mimeType": "text/plain",
            "content": base64.b64encode(summary.encode("utf-8")).decode("ascii"),
        }


class SentimentAnalysisTool(LLMTool):
    name = "sentiment_analysis"
    display_name = "Sentiment analysis"
    description = (
        "Analyzes the sentiment of the given text. Answers with one word: "
        "Positive, Negative or Neutral."
    )

    def get_parameters_schema(self) -> Dict[str, Any]:
        return _text_schema("Text to analyze")

    def build_prompt(self, arguments: Dict[str, Any]) -> str:
        return (
            "Analyze the sentiment of the following text. Answer with one word: "
            f"Positive, Negative or Neutral.\n\n---\n{arguments.get('text', '')}\n---"
        )

    async def execute(self, arguments: Dict[str, Any]) -> str:
        return (await self.ask(self.build_prompt(arguments))).strip()
