"""
Schema definitions for the interactive canvas.

Field names are snake_case in Python and camelCase on the wire, so that a
saved schema looks exactly like the record the canvas persists:

    {"items": [{"id", "baseId", "type", "name", "iconName",
                "position": {"x", "y"}, "data": {...}}],
     "connections": [{"id", "from", "to"}]}
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CanvasModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        """Serialize with wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)


class ItemType(str, Enum):
    """Kinds of items that can be placed on the canvas."""

    AGENT = "agent"
    TOOL = "tool"
    NODE = "node"


class Position(CanvasModel):
    x: float = 0.0
    y: float = 0.0


class SchemaItem(CanvasModel):
    """A node instance placed on the canvas."""

    id: str = Field(..., min_length=1, description="Unique instance id on the canvas")
    base_id: str = Field(..., alias="baseId", description="Library item or agent this instance derives from")
    type: ItemType
    name: str = ""
    icon_name: str = Field(default="", alias="iconName")
    position: Position = Field(default_factory=Position)
    data: Dict[str, Any] = Field(default_factory=dict, description="User-entered configuration")


class Connection(CanvasModel):
    """A directed edge between two schema items."""

    id: str
    from_id: str = Field(..., alias="from")
    to_id: str = Field(..., alias="to")

    @staticmethod
    def make_id(from_id: str, to_id: str) -> str:
        return f"conn_{from_id}_{to_id}"


class SchemaState(CanvasModel):
    """Items and connections; the unit of persistence and project save/load."""

    items: List[SchemaItem] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)


class ViewState(CanvasModel):
    """Translation offset and uniform scale of the canvas."""

    x: float
    y: float
    zoom: float


# -----------------------------
# Library definitions
# -----------------------------
class InputField(CanvasModel):
    """A configurable input shown when an item is placed."""

    key: str
    label: str
    type: Literal["text", "number", "textarea"] = "text"
    default_value: Optional[Any] = Field(default=None, alias="defaultValue")
    placeholder: Optional[str] = None


class LibraryItem(CanvasModel):
    """A tool or node definition from the library."""

    id: str
    name: str
    description: str = ""
    icon_name: str = Field(default="", alias="iconName")
    type: Literal["tool", "node"]
    inputs: List[InputField] = Field(default_factory=list)
    is_custom: bool = Field(default=False, alias="isCustom")

    def default_data(self) -> Dict[str, Any]:
        return {field.key: field.default_value for field in self.inputs if field.default_value is not None}


class ToolParameter(CanvasModel):
    name: str
    type: str = "string"
    description: str = ""


class CustomItem(LibraryItem):
    """A user-defined library item. Tools may carry untrusted execution code."""

    is_custom: bool = Field(default=True, alias="isCustom")
    function_name: Optional[str] = Field(default=None, alias="functionName")
    function_description: Optional[str] = Field(default=None, alias="functionDescription")
    parameters: List[ToolParameter] = Field(default_factory=list)
    execution_code: Optional[str] = Field(default=None, alias="executionCode")


class AgentConfig(CanvasModel):
    """A configured AI agent that can be placed once on the canvas."""

    id: str
    name: str
    instruction: str = ""
    icon: str = ""
    tools: List[str] = Field(default_factory=list, description="Keys of tools the agent may call")
    temperature: float = 0.7
    top_p: float = Field(default=1.0, alias="topP")
    top_k: int = Field(default=40, alias="topK")
    max_tokens: int = Field(default=2048, alias="maxTokens")
    model: Optional[str] = None


class Project(CanvasModel):
    """A saved schema."""

    id: str
    name: str
    schema_state: SchemaState = Field(..., alias="schema")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")
