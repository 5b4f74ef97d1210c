"""Transform engine for register values.

A transform is a scalar arithmetic expression over a single variable ``_``
holding the decoded raw register value, for example ``_ * 0.1`` or
``sqrt(_) / 2``. Expressions use Python expression syntax restricted by an AST
whitelist; ``^`` is accepted as exponentiation.

Usage:
    transform = compile_transform("_ * 1000")
    value = evaluate(transform, 12.5)   # 12500.0

Validation runs once, at compile time, and reports every violation found so a
bad configuration fails at startup with the complete list.
"""
from __future__ import annotations

import ast
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple, Union

from regbridge.exceptions import EvaluationError, TransformError

logger = logging.getLogger("regbridge.core.transform")

VARIABLE = "_"

Number = Union[int, float]


def _signum(x: Number) -> float:
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return 0.0


def _cbrt(x: Number) -> float:
    if hasattr(math, "cbrt"):
        return math.cbrt(x)
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


# name -> (callable, min arity, max arity)
FUNCTIONS: Dict[str, Tuple[Callable[..., Any], int, int]] = {
    "abs": (abs, 1, 1),
    "acos": (math.acos, 1, 1),
    "asin": (math.asin, 1, 1),
    "atan": (math.atan, 1, 1),
    "cbrt": (_cbrt, 1, 1),
    "ceil": (math.ceil, 1, 1),
    "cos": (math.cos, 1, 1),
    "cosh": (math.cosh, 1, 1),
    "exp": (math.exp, 1, 1),
    "expm1": (math.expm1, 1, 1),
    "floor": (math.floor, 1, 1),
    "log": (math.log, 1, 2),
    "log10": (math.log10, 1, 1),
    "log1p": (math.log1p, 1, 1),
    "log2": (math.log2, 1, 1),
    "sin": (math.sin, 1, 1),
    "sinh": (math.sinh, 1, 1),
    "sqrt": (math.sqrt, 1, 1),
    "tan": (math.tan, 1, 1),
    "tanh": (math.tanh, 1, 1),
    "signum": (_signum, 1, 1),
    "round": (round, 1, 2),
    "min": (min, 2, 8),
    "max": (max, 2, 8),
}

CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}

_BINARY_OPS = (ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow)
_UNARY_OPS = (ast.UAdd, ast.USub)


def _validate(tree: ast.Expression) -> List[str]:
    errors: List[str] = []
    called = {id(n.func) for n in ast.walk(tree.body) if isinstance(n, ast.Call)}
    for node in ast.walk(tree.body):
        if isinstance(node, ast.Constant):
            value = node.value
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"unsupported literal {value!r}")
        elif isinstance(node, ast.Name):
            if id(node) in called:
                # checked with its Call
                continue
            if node.id in FUNCTIONS:
                errors.append(f"function '{node.id}' used without arguments")
            elif node.id != VARIABLE and node.id not in CONSTANTS:
                errors.append(f"unknown variable '{node.id}'")
        elif isinstance(node, ast.BinOp):
            if not isinstance(node.op, _BINARY_OPS):
                errors.append(f"unsupported operator {type(node.op).__name__}")
        elif isinstance(node, ast.UnaryOp):
            if not isinstance(node.op, _UNARY_OPS):
                errors.append(f"unsupported operator {type(node.op).__name__}")
        elif isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name):
                errors.append("only plain function calls are allowed")
                continue
            entry = FUNCTIONS.get(node.func.id)
            if entry is None:
                errors.append(f"unknown function '{node.func.id}'")
                continue
            if node.keywords:
                errors.append(f"function '{node.func.id}' does not take keyword arguments")
            _, lo, hi = entry
            argc = len(node.args)
            if argc < lo or argc > hi:
                expected = str(lo) if lo == hi else f"{lo}-{hi}"
                errors.append(f"function '{node.func.id}' expects {expected} argument(s), got {argc}")
        elif isinstance(node, (ast.operator, ast.unaryop, ast.expr_context, ast.keyword)):
            continue
        else:
            errors.append(f"unsupported syntax {type(node).__name__}")
    return errors


@dataclass(frozen=True)
class CompiledTransform:
    """A validated transform expression bound to the variable ``_``."""

    expression: str
    _code: Any = field(repr=False, compare=False)

    def evaluate(self, raw: Number) -> Number:
        return evaluate(self, raw)


def compile_transform(expression: str) -> CompiledTransform:
    """Parse and validate ``expression``.

    Raises:
        TransformError: If the text is not a valid transform. The error lists
            every problem found.
    """
    if expression is None or not str(expression).strip():
        raise TransformError(str(expression or ""), ["expression is empty"])

    text = str(expression).strip()
    # "^" keeps the precedence and right associativity of "**"
    source = text.replace("^", "**")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise TransformError(text, [f"syntax error at offset {e.offset}: {e.msg}"])

    errors = _validate(tree)
    if errors:
        raise TransformError(text, errors)

    code = compile(tree, f"<transform:{text}>", "eval")
    logger.debug("Compiled transform: %s", text)
    return CompiledTransform(expression=text, _code=code)


def evaluate(transform: CompiledTransform, raw: Number) -> Number:
    """Evaluate ``transform`` with ``_`` bound to ``raw``.

    Raises:
        EvaluationError: On arithmetic failures or a non-finite result.
    """
    namespace: Dict[str, Any] = {name: entry[0] for name, entry in FUNCTIONS.items()}
    namespace.update(CONSTANTS)
    namespace[VARIABLE] = raw
    try:
        result = eval(transform._code, {"__builtins__": {}}, namespace)  # noqa: S307 - AST whitelisted at compile time
    except (ArithmeticError, ValueError, TypeError) as e:
        raise EvaluationError(f"Transform '{transform.expression}' failed for {raw!r}: {e}") from e

    if isinstance(result, complex):
        raise EvaluationError(f"Transform '{transform.expression}' produced a complex result for {raw!r}")
    if isinstance(result, float) and not math.isfinite(result):
        raise EvaluationError(f"Transform '{transform.expression}' produced {result} for {raw!r}")
    return result
