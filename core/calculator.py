# =============================================================================
# core/calculator.py  —  Safe Arithmetic Evaluation
# =============================================================================
#
# Parses the expression with the ast module and walks only a whitelist of
# node types: numbers, + - * / // % **, unary +/- and parentheses.  Names,
# calls, attributes and everything else are rejected, so no model-supplied
# text is ever executed.
# =============================================================================

import ast
import math
import operator

_BINARY = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY = {ast.UAdd: operator.pos, ast.USub: operator.neg}

# Full-width and typographic operators models like to emit.
_REPLACEMENTS = {"×": "*", "÷": "/", "（": "(", "）": ")", "－": "-", "＋": "+", "，": ""}

MAX_EXPONENT = 100
MAX_LENGTH = 200


def _eval(node):
    if isinstance(node, ast.Expression):
        return _eval(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY:
        left, right = _eval(node.left), _eval(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError("exponent too large")
        return _BINARY[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY:
        return _UNARY[type(node.op)](_eval(node.operand))
    raise ValueError(f"unsupported expression element: {type(node).__name__}")


def evaluate(expression: str) -> float:
    """Evaluate an arithmetic expression.

    Raises:
        ValueError: empty, too long, malformed, or uses anything outside
            plain arithmetic; also division by zero.
    """
    text = (expression or "").strip()
    for source, target in _REPLACEMENTS.items():
        text = text.replace(source, target)
    if not text:
        raise ValueError("expression is empty")
    if len(text) > MAX_LENGTH:
        raise ValueError("expression is too long")
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as exc:
        raise ValueError(f"invalid expression: {expression}") from exc
    try:
        value = _eval(tree)
    except ZeroDivisionError as exc:
        raise ValueError("division by zero") from exc
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise ValueError("result is not a finite number")
    return value


def format_number(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, float):
        return f"{value:.10g}"
    return str(value)
