"""Arithmetic evaluation tool backed by a restricted AST walker."""

import ast
import math
import operator
from typing import Any

from toolgate.domain.exceptions import ValidationError
from toolgate.domain.tool import ToolDescriptor

MAX_EXPRESSION_LENGTH = 1000
MAX_EXPONENT = 10000
MAX_FACTORIAL = 1000
MAX_RESULT_DIGITS = 4000
MAX_RESULT_BITS = int(MAX_RESULT_DIGITS * math.log2(10))


def _factorial(value: Any) -> int:
    if value > MAX_FACTORIAL:
        raise ValidationError(f"Factorial argument exceeds {MAX_FACTORIAL}", field="expr")
    return math.factorial(value)


_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_FUNCTIONS = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "cbrt": math.cbrt,
    "exp": math.exp,
    "log": math.log,
    "log2": math.log2,
    "log10": math.log10,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "atan2": math.atan2,
    "floor": math.floor,
    "ceil": math.ceil,
    "factorial": _factorial,
    "hypot": math.hypot,
}

_CONSTANTS = {
    "pi": math.pi,
    "e": math.e,
    "tau": math.tau,
    "inf": math.inf,
}


def _check_size(value: Any) -> Any:
    """Reject integers too large to compute further or render as text."""
    if isinstance(value, int) and value.bit_length() > MAX_RESULT_BITS:
        raise ValidationError(f"Result exceeds {MAX_RESULT_DIGITS} digits", field="expr")
    return value


def _check_power(base: Any, exponent: Any) -> None:
    if abs(exponent) > MAX_EXPONENT:
        raise ValidationError("Exponent too large", field="expr")
    # Float powers overflow on their own, integer powers are estimated before computing
    if not isinstance(base, int) or not isinstance(exponent, int):
        return
    if exponent > 0 and abs(base) > 1 and exponent * math.log10(abs(base)) > MAX_RESULT_DIGITS:
        raise ValidationError(f"Result exceeds {MAX_RESULT_DIGITS} digits", field="expr")


def _evaluate(node: ast.AST) -> Any:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)

    if isinstance(node, ast.Constant):
        if isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return node.value
        raise ValidationError(f"Unsupported literal: {node.value!r}", field="expr")

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        if isinstance(node.op, ast.Pow):
            _check_power(left, right)
        return _check_size(_BINARY_OPERATORS[type(node.op)](left, right))

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate(node.operand))

    if isinstance(node, ast.Name):
        if node.id in _CONSTANTS:
            return _CONSTANTS[node.id]
        raise ValidationError(f"Unknown name: {node.id}", field="expr")

    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and not node.keywords:
        func = _FUNCTIONS.get(node.func.id)
        if func is None:
            raise ValidationError(f"Unknown function: {node.func.id}", field="expr")
        return _check_size(func(*(_evaluate(arg) for arg in node.args)))

    raise ValidationError(f"Unsupported expression: {ast.dump(node)[:80]}", field="expr")


def evaluate_expression(expr: str) -> int | float:
    """Evaluate an arithmetic expression without exposing Python builtins."""
    if len(expr) > MAX_EXPRESSION_LENGTH:
        raise ValidationError("Expression too long", field="expr")
    try:
        tree = ast.parse(expr.strip(), mode="eval")
    except SyntaxError as e:
        raise ValidationError(f"Invalid expression: {e.msg}", field="expr") from e

    try:
        return _evaluate(tree)
    except (ArithmeticError, ValueError, TypeError) as e:
        raise ValidationError(f"Math error: {e}", field="expr") from e


async def evaluate(params: dict[str, Any]) -> str:
    result = evaluate_expression(params["expr"])
    if isinstance(result, float) and result.is_integer() and abs(result) < 1e16:
        result = int(result)
    try:
        return str(result)
    except ValueError as e:
        raise ValidationError(f"Result too large to display: {e}", field="expr") from e


def create_math_tool() -> ToolDescriptor:
    return ToolDescriptor(
        name="math",
        description="Evaluate a math expression safely",
        parameter_schema={
            "type": "object",
            "properties": {
                "expr": {
                    "type": "string",
                    "description": "Arithmetic expression, e.g. 'sqrt(16) + 2 ** 3'",
                },
            },
            "required": ["expr"],
        },
        executor=evaluate,
    )
