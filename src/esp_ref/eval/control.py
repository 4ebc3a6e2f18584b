from __future__ import annotations

from typing import Any, List, NoReturn

from ..types import EspObject, EspString, EspThrow, EspValue, Frame
from ..utils import stringify
from .common import EvalFunc

def eval_throw(children: List[Any], frame: Frame, eval_func: EvalFunc) -> NoReturn:
    """`throw e` is an expression that never produces a value."""
    value = eval_func(children[0], frame)
    raise EspThrow(value, throw_message(value))

def throw_message(value: EspValue) -> str:
    # Objects shaped like errors ({message: "..."}) report their message
    if isinstance(value, EspObject):
        message = value.slots.get("message")
        if isinstance(message, EspString):
            return message.value

    return stringify(value)
