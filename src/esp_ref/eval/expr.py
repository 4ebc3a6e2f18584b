from __future__ import annotations

import math
from typing import List

from lark import Token

from ..types import (
    Frame,
    EspBool,
    EspNumber,
    EspString,
    EspValue,
    EspRuntimeError,
    EspTypeError,
    is_nullish,
    type_name,
)
from ..tree import Node, Tree, tree_label
from ..utils import esp_equals, stringify
from .common import EvalFunc, require_number
from .helpers import require_bool

_INT64_MIN = -2.0 ** 63
_INT64_MAX = 2.0 ** 63 - 1

def normalize_unary_op(op_node: Node) -> str:
    if tree_label(op_node) == 'unaryprefixop' and op_node.children:
        return normalize_unary_op(op_node.children[0])
    if isinstance(op_node, Token):
        return str(op_node.value)
    raise EspRuntimeError("Malformed unary operator")

def eval_unary(op_node: Node, rhs_node: Node, frame: Frame, eval_func: EvalFunc) -> EspValue:
    op = normalize_unary_op(op_node)
    rhs = eval_func(rhs_node, frame)

    match op:
        case '-':
            return EspNumber(-require_number(rhs, "unary '-'"))
        case '+':
            return EspNumber(require_number(rhs, "unary '+'"))
        case '!':
            return EspBool(not require_bool(rhs, "'!'"))
        case '~':
            return EspNumber(float(~_require_integral(rhs, '~')))
        case _:
            raise EspRuntimeError(f"Unsupported unary op {op}")

def as_op(x: Node) -> str:
    """Operator text from an op subtree (addop/mulop/cmpop/bitop) or bare token."""
    if isinstance(x, Tree) and x.children:
        return as_op(x.children[0])
    if isinstance(x, Token):
        return str(x.value)
    raise EspRuntimeError(f"Malformed operator node {x!r}")

def eval_binary(children: List[Node], frame: Frame, eval_func: EvalFunc) -> EspValue:
    """Evaluate left[op]right for arithmetic, bitwise and comparison levels."""
    lhs_node, op_node, rhs_node = children
    lhs = eval_func(lhs_node, frame)
    rhs = eval_func(rhs_node, frame)

    return apply_binary_operator(as_op(op_node), lhs, rhs)

def apply_binary_operator(op: str, lhs: EspValue, rhs: EspValue) -> EspValue:
    match op:
        case '+':
            if isinstance(lhs, EspString) or isinstance(rhs, EspString):
                return EspString(stringify(lhs) + stringify(rhs))
            _require_numbers(op, lhs, rhs)
            return EspNumber(lhs.value + rhs.value)
        case '-':
            _require_numbers(op, lhs, rhs)
            return EspNumber(lhs.value - rhs.value)
        case '*':
            _require_numbers(op, lhs, rhs)
            return EspNumber(lhs.value * rhs.value)
        case '/':
            _require_numbers(op, lhs, rhs)
            return EspNumber(_divide(lhs.value, rhs.value))
        case '%':
            _require_numbers(op, lhs, rhs)
            return EspNumber(_fmod(lhs.value, rhs.value))
        case '&':
            return EspNumber(float(_require_integral(lhs, op) & _require_integral(rhs, op)))
        case '|':
            return EspNumber(float(_require_integral(lhs, op) | _require_integral(rhs, op)))
        case '==':
            return EspBool(esp_equals(lhs, rhs))
        case '!=':
            return EspBool(not esp_equals(lhs, rhs))
        case '<' | '<=' | '>' | '>=':
            return EspBool(_compare_values(op, lhs, rhs))

    raise EspRuntimeError(f"Unknown operator {op}")

def _require_numbers(op: str, lhs: EspValue, rhs: EspValue) -> None:
    if not isinstance(lhs, EspNumber) or not isinstance(rhs, EspNumber):
        raise EspTypeError(f"Operator '{op}' expects numbers, got {type_name(lhs)} and {type_name(rhs)}")

def _require_integral(value: EspValue, op: str) -> int:
    num = require_number(value, f"Operator '{op}'")
    if not num.is_integer():
        raise EspTypeError(f"Operator '{op}' expects integral numbers, got {stringify(value)}")
    # bitwise operands are 64-bit signed integers
    if not _INT64_MIN <= num <= _INT64_MAX:
        raise EspTypeError(f"Operator '{op}' operand {stringify(value)} is outside the 64-bit integer range")
    return int(num)

def _divide(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b

def _fmod(a: float, b: float) -> float:
    if b == 0.0 or math.isinf(a) or math.isnan(a) or math.isnan(b):
        return math.nan
    return math.fmod(a, b)

def _compare_values(op: str, lhs: EspValue, rhs: EspValue) -> bool:
    if isinstance(lhs, EspNumber) and isinstance(rhs, EspNumber):
        a, b = lhs.value, rhs.value
    elif isinstance(lhs, EspString) and isinstance(rhs, EspString):
        a, b = lhs.value, rhs.value
    else:
        raise EspTypeError(f"Cannot order {type_name(lhs)} and {type_name(rhs)} with '{op}'")

    match op:
        case '<':
            return a < b
        case '<=':
            return a <= b
        case '>':
            return a > b
        case _:
            return a >= b

def eval_logical(kind: str, children: List[Node], frame: Frame, eval_func: EvalFunc) -> EspValue:
    """Short-circuit && / ||; every operand that gets evaluated must be boolean."""
    context = "'&&'" if kind == 'and' else "'||'"

    for child in children:
        value = require_bool(eval_func(child, frame), context)
        if kind == 'and' and not value:
            return EspBool(False)
        if kind == 'or' and value:
            return EspBool(True)

    return EspBool(kind == 'and')

def eval_nullish(children: List[Node], frame: Frame, eval_func: EvalFunc) -> EspValue:
    value = eval_func(children[0], frame)

    for child in children[1:]:
        if not is_nullish(value):
            return value
        value = eval_func(child, frame)

    return value

def eval_ternary(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspValue:
    cond_node, then_node, else_node = n.children

    if require_bool(eval_func(cond_node, frame), "Conditional expression"):
        return eval_func(then_node, frame)

    return eval_func(else_node, frame)
