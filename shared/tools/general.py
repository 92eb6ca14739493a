"""
General purpose tools that run locally: calculator and notes.
"""
import ast
import operator
from typing import Any, Callable, Dict, List, Optional

from shared.logger import get_logger
from shared.tools.base import BaseTool

logger = get_logger("shared.tools.general")

_BINARY_OPERATORS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS: Dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

# Keeps ``9 ** 9 ** 9`` style inputs from stalling the event loop
_MAX_EXPONENT = 100


def evaluate_arithmetic(expression: str) -> float:
    """
    Evaluate an arithmetic expression by walking its AST.

    Only numeric literals, parentheses and the operators + - * / // % **
    are accepted; anything else raises ValueError.
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Invalid expression: {expression!r}") from e
    return _eval_node(tree.body)


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("Exponent too large")
        return _BINARY_OPERATORS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_eval_node(node.operand))
    raise ValueError("Disallowed characters in expression")


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class CalculatorTool(BaseTool):
    """Evaluates arithmetic. Errors come back as text so agents can react to them."""

    name = "calculator"
    display_name = "Calculator"
    description = "Evaluates a mathematical expression."

    def get_parameters_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "expression": {
                    "type": "string",
                    "description": 'Expression to evaluate, e.g. "2 * (3 + 4)"'
                }
            },
            "required": ["expression"]
        }

    async def execute(self, arguments: Dict[str, Any]) -> str:
        expression = str(arguments.get("expression", ""))
        try:
            return f"Result: {_format_number(evaluate_arithmetic(expression))}"
        except (ValueError, ArithmeticError) as e:
            logger.debug(f"Calculator rejected {expression!r}: {e}")
            return f"Calculation error: {e}"


class NotesTool(BaseTool):
    """Keeps a process-local list of notes."""

    name = "notes"
    display_name = "Notes"
    description = 'Manages a simple note list. Commands: "add: <text>", "list".'

    def __init__(self, notes: Optional[List[str]] = None) -> None:
        self.notes: List[str] = notes if notes is not None else []

    def get_parameters_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": 'Command to run, e.g. "add: Buy milk" or "list"'
                }
            },
            "required": ["command"]
        }

    async def execute(self, arguments: Dict[str, Any]) -> str:
        command = str(arguments.get("command", "")).strip()
        if command.lower().startswith("add:"):
            note = command[4:].strip()
            if not note:
                return "A note cannot be empty."
            self.notes.append(note)
            return f'Note added: "{note}"'
        if command.lower() == "list":
            if not self.notes:
                return "No notes."
            return "Your notes:\n- " + "\n- ".join(self.notes)
        return 'Unknown command. Use "add: <text>" or "list".'
