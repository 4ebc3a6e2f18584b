from __future__ import annotations

import logging
import os
from typing import Optional

from .types import (
    DEFAULT_MAX_ARRAY_LENGTH,
    EspValue,
    EspUndefined,
    EspNull,
    EspNumber,
    EspString,
    EspBool,
    EspArray,
    EspObject,
    EspHostObject,
    EspTypeError,
    is_callable_value,
    is_nullish,
    type_name,
)

DEFAULT_MAX_CALL_DEPTH = 200

ENV_MAX_CALL_DEPTH = "ESP_MAX_CALL_DEPTH"
ENV_MAX_ARRAY_LENGTH = "ESP_MAX_ARRAY_LENGTH"
ENV_LOG_LEVEL = "ESP_LOG_LEVEL"
ENV_DEBUG_PY_TRACE = "ESP_DEBUG_PY_TRACE"


def _positive_int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default

    try:
        value = int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Ignoring %s=%r: not an integer", name, raw
        )
        return default

    return max(1, value)


def max_call_depth_default() -> int:
    """Call-depth limit from ESP_MAX_CALL_DEPTH, falling back to the default."""
    return _positive_int_from_env(ENV_MAX_CALL_DEPTH, DEFAULT_MAX_CALL_DEPTH)


def max_array_length_default() -> int:
    return _positive_int_from_env(ENV_MAX_ARRAY_LENGTH, DEFAULT_MAX_ARRAY_LENGTH)


def log_level_from_env(default: int = logging.WARNING) -> int:
    raw = os.environ.get(ENV_LOG_LEVEL)
    if not raw:
        return default

    if raw.isdigit():
        return int(raw)

    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else default


def debug_py_trace_enabled() -> bool:
    return os.environ.get(ENV_DEBUG_PY_TRACE, "") not in ("", "0")


def esp_equals(lhs: EspValue, rhs: EspValue) -> bool:
    """
    Strict equality: operands must share a type, except that anything may
    be compared with null/undefined. Reference values compare by identity.
    """
    if is_nullish(lhs) or is_nullish(rhs):
        return is_nullish(lhs) and is_nullish(rhs)

    match (lhs, rhs):
        case (EspNumber(value=a), EspNumber(value=b)):
            return a == b
        case (EspString(value=a), EspString(value=b)):
            return a == b
        case (EspBool(value=a), EspBool(value=b)):
            return a == b
        case (EspArray(), EspArray()) | (EspObject(), EspObject()):
            return lhs is rhs
        case (EspHostObject(obj=a), EspHostObject(obj=b)):
            return a is b

    if is_callable_value(lhs) and is_callable_value(rhs):
        return lhs is rhs

    raise EspTypeError(f"Cannot compare {type_name(lhs)} with {type_name(rhs)}")


def format_number(num: float) -> str:
    if num != num:
        return "NaN"
    if num in (float("inf"), float("-inf")):
        return "Infinity" if num > 0 else "-Infinity"

    return str(int(num)) if num.is_integer() else repr(num)


def normalize_object_key(value: EspValue) -> str:
    match value:
        case EspString(value=s):
            return s
        case EspNumber(value=num):
            return format_number(num)
        case EspBool(value=b):
            return "true" if b else "false"
        case _:
            raise EspTypeError(
                f"Object key must be a string, number or boolean, not {type_name(value)}"
            )


def stringify(value: Optional[EspValue]) -> str:
    if isinstance(value, EspString):
        return value.value

    if isinstance(value, EspNumber):
        return format_number(value.value)

    if isinstance(value, EspBool):
        return "true" if value.value else "false"

    if isinstance(value, EspNull):
        return "null"

    if isinstance(value, EspUndefined) or value is None:
        return "undefined"

    if isinstance(value, EspArray):
        return "[" + ", ".join(stringify(item) for item in value.items) + "]"

    if isinstance(value, EspObject):
        pairs = [f"{k}: {stringify(v)}" for k, v in value.slots.items()]
        return "{" + ", ".join(pairs) + "}"

    if isinstance(value, EspHostObject):
        return str(value.obj)

    return repr(value)
