"""
Conversions between Python (host) values and script values.

Scalars convert by value: None <-> null, bool, int/float <-> number, str.
Arrays, objects and functions cross as handles so both sides observe the
same instance. Any other Python object becomes an opaque host handle whose
attributes and methods scripts reach with `.`.
"""
from __future__ import annotations

import logging
import types
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from typing_extensions import get_protocol_members, is_protocol

from .runtime import invoke_from_host
from .types import (
    NULL,
    EspArray,
    EspBool,
    EspFn,
    EspHostObject,
    EspNull,
    EspNumber,
    EspObject,
    EspString,
    EspUndefined,
    EspValue,
    EspArityError,
    EspTypeError,
    Frame,
    NativeFunction,
    is_callable_value,
    is_esp_value,
    type_name,
)

log = logging.getLogger(__name__)

P = TypeVar("P")

def from_host(value: Any, name: Optional[str] = None) -> EspValue:
    """Convert a Python value into a script value."""
    if is_esp_value(value):
        return value

    if value is None:
        return NULL

    # bool before int: True is an int
    if isinstance(value, bool):
        return EspBool(value)

    if isinstance(value, (int, float)):
        return EspNumber(_host_number(value))

    if isinstance(value, str):
        return EspString(value)

    if isinstance(value, dict):
        return EspObject({str(k): from_host(v) for k, v in value.items()})

    if isinstance(value, (list, tuple)):
        return EspArray([from_host(v) for v in value])

    # Classes stay opaque: scripts do not construct host types
    if callable(value) and not isinstance(value, type):
        label = name or getattr(value, "__name__", None) or type(value).__name__
        return NativeFunction(fn=value, name=label)

    return EspHostObject(value)

def _host_number(value: int | float) -> float:
    try:
        return float(value)
    except OverflowError as exc:
        raise EspTypeError("Host integer is too large to convert to a number") from exc

def to_host(value: EspValue) -> Any:
    """
    Convert a script value for a host callee. Arrays, objects and script
    functions pass through as handles.
    """
    match value:
        case EspUndefined() | EspNull():
            return None
        case EspNumber(value=num):
            return num
        case EspString(value=s):
            return s
        case EspBool(value=b):
            return b
        case NativeFunction(fn=fn):
            return fn
        case EspHostObject(obj=obj):
            return obj

    return value

def to_python(value: EspValue) -> Any:
    """Deep conversion: arrays become lists and objects become dicts."""
    match value:
        case EspArray(items=items):
            return [to_python(item) for item in items]
        case EspObject(slots=slots):
            return {k: to_python(v) for k, v in slots.items()}

    return to_host(value)

def invoke_method(obj: EspValue, name: str, args: List[Any], frame: Frame) -> Any:
    """Call obj.name(*args) from the host; script methods must get exactly their declared arguments."""
    if not isinstance(obj, EspObject):
        raise EspTypeError(f"invoke_method expects an object, got {type_name(obj)}")

    fn = obj.slots.get(name)
    if fn is None or not is_callable_value(fn):
        raise EspTypeError(f"Object has no method '{name}'")

    if isinstance(fn, EspFn) and len(args) != len(fn.params):
        raise EspArityError(f"Method '{name}' expects {len(fn.params)} argument(s); got {len(args)}")

    return invoke_from_host(fn, args, frame=frame if not isinstance(fn, EspFn) else None, this=obj)

def get_interface(obj: EspValue, protocol: Type[P], frame: Frame) -> P:
    """
    Adapt a script object to a Protocol: every protocol member must be a
    function-valued property of obj. The adapter forwards calls through
    invoke_method, so `this` is obj inside the script.
    """
    if not is_protocol(protocol):
        raise TypeError(f"{protocol!r} is not a Protocol class")

    if not isinstance(obj, EspObject):
        raise EspTypeError(f"get_interface expects an object, got {type_name(obj)}")

    members = sorted(get_protocol_members(protocol))
    missing = [m for m in members if not is_callable_value(obj.slots.get(m))]
    if missing:
        raise EspTypeError(
            f"Object does not implement {protocol.__name__}: missing {', '.join(missing)}"
        )

    namespace: Dict[str, Callable[..., Any]] = {
        member: _forwarder(obj, member, frame) for member in members
    }
    namespace["__repr__"] = lambda self: f"<{protocol.__name__} adapter for {obj!r}>"

    adapter_cls = types.new_class(
        f"{protocol.__name__}Adapter", (protocol,), exec_body=lambda ns: ns.update(namespace)
    )
    log.debug("adapted object to %s (%s)", protocol.__name__, ", ".join(members))
    return adapter_cls()

def _forwarder(obj: EspObject, name: str, frame: Frame) -> Callable[..., Any]:
    def method(self, *args: Any) -> Any:
        return invoke_method(obj, name, list(args), frame)

    method.__name__ = name
    return method
