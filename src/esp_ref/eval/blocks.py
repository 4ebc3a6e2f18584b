from __future__ import annotations

from typing import Any, List

from ..types import UNDEFINED, EspValue, Frame
from ..tree import Tree, tree_label
from .common import EvalFunc

# Statements that bind names but never produce the program's value
_DECLARATIONS = frozenset({'vardecl', 'fndecl', 'forrange', 'foreach'})

def eval_statements(children: List[Any], frame: Frame, eval_func: EvalFunc) -> EspValue:
    """
    Run a statement list in frame, returning the value of the last
    expression statement (undefined when there is none).

    Named function declarations are bound before anything runs, so
    functions may call each other regardless of declaration order.
    """
    result: EspValue = UNDEFINED

    for child in children:
        if tree_label(child) == 'fndecl':
            eval_func(child, frame)

    for child in children:
        label = tree_label(child)
        if label == 'fndecl':
            continue

        value = eval_func(child, frame)
        if label not in _DECLARATIONS:
            result = value

    return result

def eval_program(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspValue:
    return eval_statements(n.children, frame, eval_func)

def eval_block(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspValue:
    """A nested block gets its own frame; `var` still lands in the function frame."""
    return eval_statements(n.children, Frame(parent=frame), eval_func)
