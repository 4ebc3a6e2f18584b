from __future__ import annotations

from typing import Any, List, Optional

from ..types import UNDEFINED, EspFn, EspUndefined, EspRuntimeError, Frame
from ..tree import Tree, tree_children, tree_label
from .common import expect_ident_token, token_kind

def extract_param_names(params_node: Any, context: str="parameter list") -> List[str]:
    if params_node is None:
        return []

    names: List[str] = []

    for p in tree_children(params_node):
        if token_kind(p) != 'IDENT':
            raise EspRuntimeError(f"Unsupported parameter node in {context}: {p}")
        names.append(str(p.value))

    return names

def make_function(params_node: Tree, body_node: Tree, frame: Frame, name: Optional[str] = None) -> EspFn:
    if tree_label(body_node) != 'block':
        raise EspRuntimeError("Malformed function body")

    params = extract_param_names(params_node, context="function definition")
    return EspFn(params=params, body=body_node, frame=frame, name=name)

def eval_fn_def(children: List[Any], frame: Frame) -> EspUndefined:
    """`function name(...) {...}` binds name in the nearest function-local frame."""
    name_node, params_node, body_node = children
    name = expect_ident_token(name_node, "Function name")

    fn_value = make_function(params_node, body_node, frame, name=name)
    frame.function_frame().define(name, fn_value)

    return UNDEFINED

def eval_anonymous_fn(children: List[Any], frame: Frame) -> EspFn:
    params_node, body_node, *rest = children
    name = expect_ident_token(rest[0], "Function name") if rest else None

    if name is None:
        return make_function(params_node, body_node, frame)

    # Named function expressions see their own name, and nothing else does
    scope = Frame(parent=frame)
    fn_value = make_function(params_node, body_node, scope, name=name)
    scope.define(name, fn_value)
    return fn_value
