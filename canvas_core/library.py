"""
Built-in library of tools and nodes that can be placed on the canvas.
"""
from typing import Dict, Iterable, List, Optional, Union

from canvas_core.models import AgentConfig, CustomItem, InputField, LibraryItem

Definition = Union[AgentConfig, LibraryItem]

# Node ids whose behavior is handled by the engine's built-ins
GET_INPUT = "get_input"
WAIT = "wait"
LOG_MESSAGE = "log_message"
SET_VARIABLE = "set_variable"
THROW_ERROR = "throw_error"


TOOLS: List[LibraryItem] = [
    LibraryItem(id="calculator", name="Calculator", description="Evaluates an arithmetic expression.", icon_name="Calculator", type="tool"),
    LibraryItem(id="notes", name="Notes", description='Keeps a simple note list. Use "add: <text>" or "list".', icon_name="Notes", type="tool"),
    LibraryItem(id="code_interpreter", name="Code interpreter", description="Asks a model to interpret a code snippet and report its result.", icon_name="Code", type="tool"),
    LibraryItem(id="translate_text", name="Translate text", description="Translates text into a target language.", icon_name="Translate", type="tool"),
    LibraryItem(id="text_summarize", name="Summarize text", description="Condenses long text into key points.", icon_name="Text", type="tool"),
    LibraryItem(id="sentiment_analysis", name="Sentiment analysis", description="Classifies the emotional tone of a text.", icon_name="Text", type="tool"),
]

NODES: List[LibraryItem] = [
    LibraryItem(id="start", name="Start", description="Entry point of a workflow.", icon_name="Start", type="node"),
    LibraryItem(id="end", name="End", description="Ends the workflow and returns the result.", icon_name="End", type="node"),
    LibraryItem(
        id=GET_INPUT,
        name="Input data",
        description="Defines the data the workflow starts with.",
        icon_name="Message",
        type="node",
        inputs=[InputField(key="value", label="Input data", type="textarea", placeholder="Data that starts the flow...")],
    ),
    LibraryItem(
        id=SET_VARIABLE,
        name="Set variable",
        description="Creates or changes a variable in the flow.",
        icon_name="Variable",
        type="node",
        inputs=[
            InputField(key="name", label="Variable name", type="text", placeholder="e.g. myVariable"),
            InputField(key="value", label="Variable value", type="text", placeholder='e.g. "Hello World"'),
        ],
    ),
    LibraryItem(id="conditional_if", name="Condition (IF)", description="Splits the flow on a true/false condition.", icon_name="If", type="node"),
    LibraryItem(id="conditional_switch", name="Switch", description="Routes the flow to one of several branches.", icon_name="GitBranch", type="node"),
    LibraryItem(id="for_each_loop", name="For each", description="Runs actions for every element of a list.", icon_name="Repeat", type="node"),
    LibraryItem(id="loop", name="Loop", description="Repeats a set of actions a number of times.", icon_name="Loop", type="node"),
    LibraryItem(
        id=WAIT,
        name="Wait",
        description="Pauses the flow for a while.",
        icon_name="Wait",
        type="node",
        inputs=[InputField(key="duration", label="Wait time (seconds)", type="number", default_value=5, placeholder="5")],
    ),
    LibraryItem(id="merge", name="Merge", description="Joins several branches into one.", icon_name="Merge", type="node"),
    LibraryItem(id="split_parallel", name="Split (parallel)", description="Splits work into parallel branches.", icon_name="Split", type="node"),
    LibraryItem(id="trigger_schedule", name="Schedule (CRON)", description="Starts the flow at fixed intervals.", icon_name="Clock", type="node"),
    LibraryItem(id="trigger_webhook", name="Webhook", description="Starts the flow on an HTTP request.", icon_name="Webhook", type="node"),
    LibraryItem(id="sub_workflow", name="Call sub-schema", description="Runs another schema as part of this one.", icon_name="Function", type="node"),
    LibraryItem(
        id=LOG_MESSAGE,
        name="Log message",
        description="Writes a custom message to the execution history.",
        icon_name="Log",
        type="node",
        inputs=[InputField(key="message", label="Message", type="textarea", placeholder="Variable X is...")],
    ),
    LibraryItem(id="send_notification", name="Send notification", description="Notifies the user.", icon_name="Bell", type="node"),
    LibraryItem(id="try_catch", name="Error handling", description="Catches errors of a try branch.", icon_name="AlertTriangle", type="node"),
    LibraryItem(
        id=THROW_ERROR,
        name="Throw error",
        description="Stops the flow with an error message.",
        icon_name="Error",
        type="node",
        inputs=[InputField(key="message", label="Error message", type="textarea", placeholder="Something unexpected happened.")],
    ),
    LibraryItem(id="filter_data", name="Filter data", description="Filters a collection by a condition.", icon_name="Filter", type="node"),
    LibraryItem(id="data_mapping", name="Data mapping", description="Transforms data from one shape to another.", icon_name="Brackets", type="node"),
]

# Library nodes without their own behavior; they hand the context on unchanged
PASSTHROUGH_NODE_IDS = frozenset(
    item.id for item in NODES if item.id not in {GET_INPUT, WAIT, LOG_MESSAGE, SET_VARIABLE, THROW_ERROR}
)


class LibraryCatalog:
    """Lookup over built-in definitions plus user-defined custom items."""

    def __init__(self, custom_items: Optional[Iterable[CustomItem]] = None) -> None:
        self._items: Dict[str, LibraryItem] = {item.id: item for item in TOOLS + NODES}
        for item in custom_items or []:
            self._items[item.id] = item

    def get(self, item_id: str) -> Optional[LibraryItem]:
        return self._items.get(item_id)

    def add(self, item: LibraryItem) -> None:
        self._items[item.id] = item

    def tools(self) -> List[LibraryItem]:
        return [item for item in self._items.values() if item.type == "tool"]

    def nodes(self) -> List[LibraryItem]:
        return [item for item in self._items.values() if item.type == "node"]

    def all(self) -> List[LibraryItem]:
        return list(self._items.values())
