from __future__ import annotations

from typing import Dict

from ..types import EspArray, EspObject, EspValue, EspRuntimeError, Frame
from ..tree import Tree, tree_label
from .common import EvalFunc, token_kind, token_string
from .fn import make_function

def eval_array(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspArray:
    return EspArray([eval_func(c, frame) for c in n.children])

def eval_object(n: Tree, frame: Frame, eval_func: EvalFunc) -> EspObject:
    """
    Build an object literal. Items run left to right; a repeated key keeps
    its first position and takes the last value.
    """
    slots: Dict[str, EspValue] = {}

    for item in n.children:
        label = tree_label(item)

        if label == 'obj_field':
            key_node, value_node = item.children
            slots[_object_key(key_node)] = eval_func(value_node, frame)
        elif label == 'obj_method':
            name_node, params_node, body_node = item.children
            name = str(name_node.value)
            slots[name] = make_function(params_node, body_node, frame, name=name)
        else:
            raise EspRuntimeError(f"Unexpected object item {label}")

    return EspObject(slots)

def _object_key(key_node) -> str:
    if token_kind(key_node) == 'STRING':
        return token_string(key_node, None).value

    return str(key_node.value)
