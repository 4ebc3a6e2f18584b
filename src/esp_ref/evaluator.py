from __future__ import annotations

from typing import Callable, Optional
from lark import Token

from .runtime import init_stdlib
from .types import (
    NULL,
    UNDEFINED,
    Frame,
    EspBool,
    EspValue,
    EspError,
    EspRuntimeError,
)

from .tree import Node, Tree, is_token, node_position

from .eval.bind import eval_assign, eval_vardecl
from .eval.blocks import eval_block, eval_program
from .eval.chains import eval_explicit_chain
from .eval.common import token_number, token_string
from .eval.control import eval_throw
from .eval.expr import eval_binary, eval_logical, eval_nullish, eval_ternary, eval_unary
from .eval.fn import eval_anonymous_fn, eval_fn_def
from .eval.loops import eval_for_each, eval_for_range, eval_if_expr
from .eval.objects import eval_array, eval_object

def _maybe_attach_location(exc: EspError, node: Node) -> None:
    if exc.line is not None:
        return

    line, column = node_position(node)
    exc.attach_location(line, column)

# ---------------- Public API ----------------

def eval_expr(ast: Node, frame: Optional[Frame]=None) -> EspValue:
    init_stdlib()

    if frame is None:
        frame = Frame()

    return eval_node(ast, frame)

# ---------------- Core evaluator ----------------

def eval_node(n: Node, frame: Frame) -> EspValue:
    try:
        return _eval_node_inner(n, frame)
    except EspError as e:
        _maybe_attach_location(e, n)
        raise

def _eval_node_inner(n: Node, frame: Frame) -> EspValue:
    if is_token(n):
        return _eval_token(n, frame)

    d = n.data
    handler = _NODE_DISPATCH.get(d)
    if handler is not None:
        return handler(n, frame)

    match d:
        case 'addexpr' | 'mulexpr' | 'compareexpr' | 'bitexpr':
            return eval_binary(n.children, frame, eval_node)
        case 'and' | 'or':
            return eval_logical(d, n.children, frame, eval_node)
        case 'unaryexpr':
            op, rhs_node = n.children
            return eval_unary(op, rhs_node, frame, eval_node)
        case _:
            raise EspRuntimeError(f"Unknown node: {d}")

# ---------------- Tokens ----------------

def _eval_token(t: Token, frame: Frame) -> EspValue:
    handler = _TOKEN_DISPATCH.get(t.type)
    if handler:
        return handler(t, frame)

    if t.type == 'IDENT':
        return frame.get(t.value)

    raise EspRuntimeError(f"Unhandled token {t.type}:{t.value}")

def _eval_this(frame: Frame) -> EspValue:
    this = frame.lookup("this")
    return UNDEFINED if this is None else this

_NODE_DISPATCH: dict[str, Callable[[Tree, Frame], EspValue]] = {
    'program': lambda n, frame: eval_program(n, frame, eval_node),
    'block': lambda n, frame: eval_block(n, frame, eval_node),
    'vardecl': lambda n, frame: eval_vardecl(n, frame, eval_node),
    'fndecl': lambda n, frame: eval_fn_def(n.children, frame),
    'fnexpr': lambda n, frame: eval_anonymous_fn(n.children, frame),
    'assign': lambda n, frame: eval_assign(n, frame, eval_node),
    'ternary': lambda n, frame: eval_ternary(n, frame, eval_node),
    'nullish': lambda n, frame: eval_nullish(n.children, frame, eval_node),
    'throwexpr': lambda n, frame: eval_throw(n.children, frame, eval_node),
    'explicit_chain': lambda n, frame: eval_explicit_chain(n, frame, eval_node),
    'array': lambda n, frame: eval_array(n, frame, eval_node),
    'object': lambda n, frame: eval_object(n, frame, eval_node),
    'ifexpr': lambda n, frame: eval_if_expr(n, frame, eval_node),
    'forrange': lambda n, frame: eval_for_range(n, frame, eval_node),
    'foreach': lambda n, frame: eval_for_each(n, frame, eval_node),
}

_TOKEN_DISPATCH: dict[str, Callable[[Token, Frame], EspValue]] = {
    'NUMBER': token_number,
    'STRING': token_string,
    'TRUE': lambda _, __: EspBool(True),
    'FALSE': lambda _, __: EspBool(False),
    'NULL': lambda _, __: NULL,
    'UNDEFINED': lambda _, __: UNDEFINED,
    'VOID': lambda _, __: UNDEFINED,
    'THIS': lambda _, frame: _eval_this(frame),
}
