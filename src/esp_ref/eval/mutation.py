from __future__ import annotations

from ..runtime import array_index, has_builtin_method, host_attribute
from ..types import (
    UNDEFINED,
    BuiltinMethod,
    EspArray,
    EspHostObject,
    EspObject,
    EspString,
    EspValue,
    EspRuntimeError,
    EspTypeError,
    Frame,
    is_nullish,
    type_name,
)
from ..utils import normalize_object_key

def get_field_value(recv: EspValue, name: str) -> EspValue:
    """Read `recv.name`: object slots first, then the receiver's builtin methods."""
    match recv:
        case EspObject(slots=slots) if name in slots:
            return slots[name]
        case EspObject() | EspArray() | EspString():
            if has_builtin_method(recv, name):
                return BuiltinMethod(name=name, subject=recv)
            return UNDEFINED
        case EspHostObject():
            return host_attribute(recv, name)

    if is_nullish(recv):
        raise EspTypeError(f"Cannot read property '{name}' of {type_name(recv)}")

    raise EspTypeError(f"Cannot read property '{name}' of a {type_name(recv)}")

def index_value(recv: EspValue, index: EspValue) -> EspValue:
    """Read `recv[index]`; out-of-range and missing keys are undefined."""
    match recv:
        case EspArray():
            return recv.get(array_index(index))
        case EspObject():
            return recv.get(normalize_object_key(index))
        case EspString(value=s):
            i = array_index(index)
            return EspString(s[i]) if i < len(s) else UNDEFINED

    if is_nullish(recv):
        raise EspTypeError(f"Cannot index {type_name(recv)}")

    raise EspTypeError(f"Cannot index a {type_name(recv)}")

def set_field_value(recv: EspValue, name: str, value: EspValue) -> EspValue:
    """Assign `recv.name = value`."""
    match recv:
        case EspObject(slots=slots):
            slots[name] = value
            return value
        case EspHostObject(obj=obj):
            from ..bridge import to_host

            if name.startswith("_"):
                raise EspTypeError(f"Host attribute '{name}' is not accessible")
            try:
                setattr(obj, name, to_host(value))
            except (AttributeError, TypeError) as exc:
                raise EspRuntimeError(f"Cannot set host attribute '{name}': {exc}") from exc
            return value
        case _:
            raise EspTypeError(f"Cannot set property '{name}' on {type_name(recv)}")

def set_index_value(recv: EspValue, index: EspValue, value: EspValue, frame: Frame) -> EspValue:
    """Assign `recv[index] = value`; arrays grow, padding with undefined."""
    match recv:
        case EspArray():
            recv.set(array_index(index), value, frame.context.max_array_length)
            return value
        case EspObject():
            recv.set(normalize_object_key(index), value)
            return value
        case _:
            raise EspTypeError(f"Cannot assign through index on {type_name(recv)}")
