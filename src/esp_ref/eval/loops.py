from __future__ import annotations

from typing import List

from ..types import (
    UNDEFINED,
    EspArray,
    EspNumber,
    EspObject,
    EspString,
    EspUndefined,
    EspValue,
    EspTypeError,
    Frame,
    type_name,
)
from ..tree import Tree
from .blocks import eval_block, eval_statements
from .common import EvalFunc, expect_ident_token, require_number
from .helpers import require_bool

def eval_if_expr(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspValue:
    """`if` is an expression: the taken branch's value, or undefined."""
    cond_node, then_node, *rest = n.children

    if require_bool(eval_func(cond_node, frame), "'if' condition"):
        return eval_block(then_node, frame, eval_func)

    if not rest:
        return UNDEFINED

    return eval_func(rest[0], frame)

def _run_body(var: str, value: EspValue, body: Tree, frame: Frame, eval_func: EvalFunc) -> None:
    # Fresh frame per iteration so closures capture that iteration's binding
    iter_frame = Frame(parent=frame)
    iter_frame.define(var, value)
    eval_statements(body.children, iter_frame, eval_func)

def eval_for_range(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspUndefined:
    """for (i: lo..hi) iterates lo, lo+1, ... while below hi."""
    var_node, lo_node, hi_node, body = n.children
    var = expect_ident_token(var_node, "Loop variable")
    lo = require_number(eval_func(lo_node, frame), "Range start")
    hi = require_number(eval_func(hi_node, frame), "Range end")

    i = lo
    while i < hi:
        _run_body(var, EspNumber(i), body, frame, eval_func)
        i += 1

    return UNDEFINED

def _iterable_values(value: EspValue) -> List[EspValue]:
    match value:
        case EspArray(items=items):
            return list(items)
        case EspObject(slots=slots):
            return [EspString(k) for k in slots]
        case EspString(value=s):
            return [EspString(ch) for ch in s]
        case _:
            raise EspTypeError(f"Cannot iterate over {type_name(value)}")

def eval_for_each(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspUndefined:
    """for (x: coll) visits array elements, object keys or string characters."""
    var_node, iter_node, body = n.children
    var = expect_ident_token(var_node, "Loop variable")

    for value in _iterable_values(eval_func(iter_node, frame)):
        _run_body(var, value, body, frame, eval_func)

    return UNDEFINED
