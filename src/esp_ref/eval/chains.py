from __future__ import annotations

from typing import List, Optional

from ..runtime import call_builtin_method, call_function, has_builtin_method, host_attribute
from ..types import (
    EspArray,
    EspHostObject,
    EspObject,
    EspString,
    EspValue,
    EspError,
    EspMethodNotFound,
    EspRuntimeError,
    EspTypeError,
    Frame,
    is_callable_value,
    is_nullish,
    type_name,
)
from ..tree import Node, Tree, node_position, tree_label
from .common import EvalFunc, expect_ident_token
from .mutation import get_field_value, index_value

def eval_args(call_node: Tree, frame: Frame, eval_func: EvalFunc) -> List[EspValue]:
    return [eval_func(arg, frame) for arg in call_node.children]

def apply_op(recv: EspValue, op: Tree, frame: Frame, eval_func: EvalFunc) -> EspValue:
    d = op.data

    if d == 'field':
        field_name = expect_ident_token(op.children[0], "Field access")
        return get_field_value(recv, field_name)
    if d == 'index':
        idx_val = eval_func(op.children[0], frame)
        return index_value(recv, idx_val)
    if d == 'call':
        args = eval_args(op, frame, eval_func)
        return call_value(recv, args, frame)

    raise EspRuntimeError(f"Unknown chain op: {d}")

def call_value(cal: EspValue, args: List[EspValue], frame: Frame, this: Optional[EspValue] = None) -> EspValue:
    if not is_callable_value(cal):
        raise EspTypeError(f"Cannot call value of type {type_name(cal)}")

    return call_function(cal, args, frame, this=this)

def call_method(recv: EspValue, name: str, args: List[EspValue], frame: Frame) -> EspValue:
    """
    Resolve `recv.name(args)`:
    - an object property holding a function is called with `this` = recv
    - otherwise the builtin registry for the receiver's type
    - host objects dispatch to the Python attribute
    """
    match recv:
        case EspObject(slots=slots) if name in slots:
            return call_value(slots[name], args, frame, this=recv)
        case EspObject() | EspArray() | EspString():
            if has_builtin_method(recv, name):
                return call_builtin_method(recv, name, args, frame)
            raise EspMethodNotFound(recv, name)
        case EspHostObject():
            return call_value(host_attribute(recv, name), args, frame)

    if is_nullish(recv):
        raise EspTypeError(f"Cannot call method '{name}' of {type_name(recv)}")

    raise EspMethodNotFound(recv, name)

def eval_explicit_chain(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspValue:
    head, *ops = n.children
    val = eval_func(head, frame)

    i = 0
    while i < len(ops):
        op = ops[i]
        nxt: Optional[Node] = ops[i + 1] if i + 1 < len(ops) else None

        try:
            if tree_label(op) == 'field' and tree_label(nxt) == 'call':
                name = expect_ident_token(op.children[0], "Method call")
                args = eval_args(nxt, frame, eval_func)
                val = call_method(val, name, args, frame)
                i += 2
                continue

            val = apply_op(val, op, frame, eval_func)
        except EspError as exc:
            exc.attach_location(*node_position(op))
            raise
        i += 1

    return val
