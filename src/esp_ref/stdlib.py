"""Built-in functions (print, asInt, ...) registered via esp_ref.runtime."""

from __future__ import annotations

import math
from typing import List

from .runtime import register_stdlib
from .types import UNDEFINED, EspNumber, EspString, EspUndefined, EspValue, EspTypeError, type_name
from .utils import stringify

@register_stdlib("print")
def std_print(_frame, args: List[EspValue]) -> EspUndefined:
    rendered = [stringify(arg) for arg in args]
    print(*rendered)
    return UNDEFINED

@register_stdlib("asInt", arity=1)
def std_as_int(_frame, args: List[EspValue]) -> EspNumber:
    """Truncate toward zero; strings are parsed as numbers first."""
    value = args[0]

    if isinstance(value, EspString):
        try:
            num = float(value.value.strip())
        except ValueError:
            raise EspTypeError(f"asInt cannot convert \"{value.value}\"") from None
    elif isinstance(value, EspNumber):
        num = value.value
    else:
        raise EspTypeError(f"asInt expects a number or string, got {type_name(value)}")

    if not math.isfinite(num):
        raise EspTypeError(f"asInt cannot convert {stringify(value)}")

    return EspNumber(float(math.trunc(num)))

@register_stdlib("asDouble", arity=1)
def std_as_double(_frame, args: List[EspValue]) -> EspNumber:
    value = args[0]

    if isinstance(value, EspNumber):
        return value

    if isinstance(value, EspString):
        try:
            return EspNumber(float(value.value.strip()))
        except ValueError:
            raise EspTypeError(f"asDouble cannot convert \"{value.value}\"") from None

    raise EspTypeError(f"asDouble expects a number or string, got {type_name(value)}")

@register_stdlib("typeof", arity=1)
def std_typeof(_frame, args: List[EspValue]) -> EspString:
    return EspString(type_name(args[0]))
