"""
Exception hierarchy for schema execution.
"""


class CanvasError(Exception):
    """Base class for all execution related errors."""


class StructuralError(CanvasError):
    """Raised when the schema cannot be executed at all (dangling edge, no start node)."""

    def __init__(self, message: str, item_id: str | None = None) -> None:
        super().__init__(message)
        self.item_id = item_id


class NodeExecutionError(CanvasError):
    """Raised when a single node fails; only its branch is halted."""


class UnknownBehaviorError(NodeExecutionError):
    """Raised when no handler is registered for a node's (type, baseId)."""


class UnknownToolError(NodeExecutionError):
    """Raised when an agent asks for a tool it was not given."""


class AgentConfigurationError(NodeExecutionError):
    """Raised when an agent node has no usable configuration."""


class SandboxUnavailableError(NodeExecutionError):
    """Raised when a custom tool carries code but no sandbox was injected."""


class RunInProgressError(CanvasError):
    """Raised when a run is requested while the engine is still executing one."""
