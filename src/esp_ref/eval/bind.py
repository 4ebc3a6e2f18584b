from __future__ import annotations

from ..types import UNDEFINED, EspUndefined, EspValue, EspRuntimeError, Frame, is_nullish
from ..tree import Node, Tree, tree_label
from .chains import apply_op
from .common import EvalFunc, expect_ident_token, token_kind
from .mutation import set_field_value, set_index_value

def eval_vardecl(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspUndefined:
    """
    var x             declare (keeps an existing value)
    var x = e         declare and assign
    var x ?= e        only when x is not defined anywhere in scope
    var x ??= e       also when x currently holds null or undefined

    Declarations land in the nearest function-local frame.
    """
    name_node, *rest = n.children
    name = expect_ident_token(name_node, "Variable name")
    target = frame.function_frame()

    if not rest:
        if name not in target.vars:
            target.define(name, UNDEFINED)
        return UNDEFINED

    op_node, value_node = rest
    op = token_kind(op_node)
    if op == 'QASSIGN' and frame.has(name):
        return UNDEFINED

    existing = frame.lookup(name)
    if op == 'NULLISHASSIGN' and existing is not None:
        if is_nullish(existing):
            frame.set(name, eval_func(value_node, frame))
        return UNDEFINED

    target.define(name, eval_func(value_node, frame))
    return UNDEFINED

def eval_assign(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspValue:
    """lvalue = rhs; assignment to an undeclared name is an error."""
    lvalue, rhs_node = n.children
    head, *ops = lvalue.children

    if not ops:
        name = expect_ident_token(head, "Assignment target")
        value = eval_func(rhs_node, frame)
        frame.set(name, value)
        return value

    recv = eval_func(head, frame)
    for op in ops[:-1]:
        recv = apply_op(recv, op, frame, eval_func)

    return _assign_through(recv, ops[-1], rhs_node, frame, eval_func)

def _assign_through(recv: EspValue, op: Node, rhs_node: Node, frame: Frame, eval_func: EvalFunc) -> EspValue:
    label = tree_label(op)

    if label == 'field':
        name = expect_ident_token(op.children[0], "Field name")
        return set_field_value(recv, name, eval_func(rhs_node, frame))

    if label == 'index':
        index = eval_func(op.children[0], frame)
        return set_index_value(recv, index, eval_func(rhs_node, frame), frame)

    raise EspRuntimeError(f"Cannot assign through {label}")
