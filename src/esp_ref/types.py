from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar
from typing_extensions import Protocol, TypeAlias, TypeGuard
from .tree import Node

# ---------- Value Model ----------

# Highest array length reachable by index assignment
DEFAULT_MAX_ARRAY_LENGTH = 10_000_000

@dataclass
class EspUndefined:
    def __repr__(self) -> str:
        return "undefined"

@dataclass
class EspNull:
    def __repr__(self) -> str:
        return "null"

UNDEFINED = EspUndefined()
NULL = EspNull()

@dataclass
class EspNumber:
    value: float

    def __repr__(self) -> str:
        v = self.value
        return str(int(v)) if v.is_integer() else str(v)

    def double_value(self) -> float:
        return self.value

    def int_value(self) -> int:
        if not math.isfinite(self.value):
            raise EspTypeError(f"Cannot convert {self!r} to an integer")
        return int(self.value)

    # Host-facing aliases
    doubleValue = double_value
    intValue = int_value

@dataclass
class EspString:
    value: str
    def __repr__(self) -> str:
        return f'"{self.value}"'

@dataclass
class EspBool:
    value: bool
    def __repr__(self) -> str:
        return "true" if self.value else "false"

def _coerce(value: Any) -> 'EspValue':
    if is_esp_value(value):
        return value

    from .bridge import from_host  # local import to avoid cycle
    return from_host(value)

@dataclass(eq=False)
class EspArray:
    items: List['EspValue'] = field(default_factory=list)

    def __repr__(self) -> str:
        return "[" + ", ".join(repr(x) for x in self.items) + "]"

    def size(self) -> int:
        return len(self.items)

    def get(self, index: int) -> 'EspValue':
        if 0 <= index < len(self.items):
            return self.items[index]
        return UNDEFINED

    def set(self, index: int, value: Any, max_length: int = DEFAULT_MAX_ARRAY_LENGTH) -> None:
        if index < 0:
            raise EspIndexError(f"Array index {index} is negative")
        if index >= max(max_length, len(self.items)):
            raise EspResourceError(f"Array index {index} exceeds the array length limit of {max_length}")

        if index >= len(self.items):
            self.items.extend([UNDEFINED] * (index + 1 - len(self.items)))

        self.items[index] = _coerce(value)

    def add(self, value: Any) -> None:
        self.items.append(_coerce(value))

@dataclass(eq=False)
class EspObject:
    slots: Dict[str, 'EspValue'] = field(default_factory=dict)

    def __repr__(self) -> str:
        pairs = []

        for k, v in self.slots.items():
            pairs.append(f"{k}: {repr(v)}")

        return "{ " + ", ".join(pairs) + " }"

    def get(self, key: str) -> 'EspValue':
        return self.slots.get(key, UNDEFINED)

    def set(self, key: str, value: Any) -> None:
        self.slots[key] = _coerce(value)

    def has(self, key: str) -> bool:
        return key in self.slots

    def size(self) -> int:
        return len(self.slots)

    def keys(self) -> List[str]:
        return list(self.slots.keys())

@dataclass(eq=False)
class EspFn:
    params: List[str]
    body: Node              # AST node
    frame: 'Frame'          # Closure frame
    name: Optional[str] = None

    def __repr__(self) -> str:
        param_desc = ", ".join(self.params) if self.params else "nullary"
        label = self.name or "anonymous"
        return f"<function {label} params={param_desc}>"

    def number_of_arguments(self) -> int:
        return len(self.params)

    def invoke(self, *args: Any) -> Any:
        from . import runtime
        return runtime.invoke_from_host(self, args)

@dataclass(eq=False)
class NativeFunction:
    """Host callable registered with the interpreter.

    With convert=True arguments are handed over as host values and the
    return value is converted back; otherwise the callable sees raw values.
    """
    fn: Callable[..., Any]
    name: str
    convert: bool = True

    def __repr__(self) -> str:
        return f"<native {self.name}>"

    def number_of_arguments(self) -> Optional[int]:
        return None

    def invoke(self, *args: Any) -> Any:
        from . import runtime
        return runtime.invoke_from_host(self, args)

StdlibFn = Callable[['Frame', List['EspValue']], 'EspValue']

@dataclass(frozen=True)
class StdlibFunction:
    fn: StdlibFn
    name: str
    arity: Optional[int] = None

    def __repr__(self) -> str:
        return f"<builtin {self.name}>"

    def number_of_arguments(self) -> Optional[int]:
        return self.arity

    def invoke(self, *args: Any) -> Any:
        from . import runtime
        return runtime.invoke_from_host(self, args)

@dataclass
class BuiltinMethod:
    name: str
    subject: 'EspValue'

    def __repr__(self) -> str:
        return f"<method {self.name}>"

@dataclass(eq=False)
class EspHostObject:
    """Opaque handle around a Python object handed to scripts."""
    obj: Any

    def __repr__(self) -> str:
        return f"<host {type(self.obj).__name__}>"

EspValue: TypeAlias = (
    EspUndefined
    | EspNull
    | EspNumber
    | EspString
    | EspBool
    | EspArray
    | EspObject
    | EspFn
    | NativeFunction
    | StdlibFunction
    | BuiltinMethod
    | EspHostObject
)

EspCallable: TypeAlias = EspFn | NativeFunction | StdlibFunction | BuiltinMethod

# ---------- Environment ----------

@dataclass
class CallContext:
    """State shared by every frame of one interpreter session."""
    max_call_depth: int
    namespace: Optional[object] = None
    max_array_length: int = DEFAULT_MAX_ARRAY_LENGTH
    depth: int = 0

class Frame:
    def __init__(self, parent: Optional['Frame']=None, context: Optional[CallContext]=None):
        self.parent = parent
        self.vars: Dict[str, EspValue] = {}
        self._is_function_frame = False

        if context is not None:
            self.context = context
        elif parent is not None:
            self.context = parent.context
        else:
            from .utils import max_array_length_default, max_call_depth_default
            self.context = CallContext(
                max_call_depth=max_call_depth_default(),
                max_array_length=max_array_length_default(),
            )

        if parent is None and Builtins.stdlib_functions:
            for name, std in Builtins.stdlib_functions.items():
                self.vars[name] = std

    def define(self, name: str, val: EspValue) -> None:
        self.vars[name] = val

    def lookup(self, name: str) -> Optional[EspValue]:
        frame: Optional[Frame] = self

        while frame is not None:
            if name in frame.vars:
                return frame.vars[name]
            frame = frame.parent

        return None

    def has(self, name: str) -> bool:
        return self.lookup(name) is not None

    def get(self, name: str) -> EspValue:
        val = self.lookup(name)
        if val is not None:
            return val

        resolved = self._from_namespace(name)
        if resolved is not None:
            return resolved

        raise EspNameError(name)

    def set(self, name: str, val: EspValue) -> None:
        frame: Optional[Frame] = self

        while frame is not None:
            if name in frame.vars:
                frame.vars[name] = val
                return
            frame = frame.parent

        raise EspNameError(name, assigning=True)

    def _from_namespace(self, name: str) -> Optional[EspValue]:
        namespace = self.context.namespace
        if namespace is None or name.startswith("_"):
            return None

        if isinstance(namespace, dict):
            if name not in namespace:
                return None
            attr = namespace[name]
        else:
            try:
                attr = getattr(namespace, name)
            except AttributeError:
                return None

        from .bridge import from_host
        return from_host(attr, name=name)

    def mark_function_frame(self) -> None:
        self._is_function_frame = True

    def is_function_frame(self) -> bool:
        return self._is_function_frame

    def function_frame(self) -> 'Frame':
        """Nearest enclosing function-local frame; the root frame at top level."""
        frame = self

        while not frame.is_function_frame() and frame.parent is not None:
            frame = frame.parent

        return frame

# ---------- Exceptions ----------

class EspError(Exception):
    """Base class for every error the interpreter reports."""
    line: Optional[int]
    column: Optional[int]

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def attach_location(self, line: Optional[int], column: Optional[int]) -> None:
        if self.line is None and line is not None:
            self.line = line
            self.column = column

    def __str__(self) -> str:
        msg = self.message

        if self.line is None:
            return msg

        if self.column is None:
            return f"{msg} (line {self.line})"

        return f"{msg} (line {self.line}, col {self.column})"

class EspSyntaxError(EspError):
    def __str__(self) -> str:
        if self.line is None:
            return self.message

        return f"{self.message} at line {self.line}, col {self.column}"

class EspRuntimeError(EspError):
    pass

class EspTypeError(EspRuntimeError):
    pass

class EspNameError(EspRuntimeError):
    def __init__(self, name: str, assigning: bool = False):
        verb = "Cannot assign to undeclared variable" if assigning else "Undefined variable"
        super().__init__(f"{verb} '{name}'")
        self.name = name

class EspIndexError(EspRuntimeError):
    def __init__(self, message: str = "Index out of bounds"):
        super().__init__(message)

class EspArityError(EspRuntimeError):
    pass

class EspMethodNotFound(EspTypeError):
    def __init__(self, recv: 'EspValue', name: str):
        super().__init__(f"{type_name(recv)} has no method '{name}'")
        self.receiver = recv
        self.name = name

class EspThrow(EspRuntimeError):
    """Raised by a script `throw`; carries the thrown value."""
    def __init__(self, value: 'EspValue', message: str):
        super().__init__(message)
        self.value = value

class EspResourceError(EspError):
    pass

_ESP_VALUE_TYPES: Tuple[type, ...] = (
    EspUndefined,
    EspNull,
    EspNumber,
    EspString,
    EspBool,
    EspArray,
    EspObject,
    EspFn,
    NativeFunction,
    StdlibFunction,
    BuiltinMethod,
    EspHostObject,
)

_CALLABLE_TYPES: Tuple[type, ...] = (EspFn, NativeFunction, StdlibFunction, BuiltinMethod)

_TYPE_NAMES: Dict[type, str] = {
    EspUndefined: "undefined",
    EspNull: "null",
    EspNumber: "number",
    EspString: "string",
    EspBool: "boolean",
    EspArray: "array",
    EspObject: "object",
    EspFn: "function",
    NativeFunction: "function",
    StdlibFunction: "function",
    BuiltinMethod: "function",
    EspHostObject: "host object",
}

def is_esp_value(value: object) -> TypeGuard[EspValue]:
    return isinstance(value, _ESP_VALUE_TYPES)

def is_callable_value(value: object) -> TypeGuard[EspCallable]:
    return isinstance(value, _CALLABLE_TYPES)

def is_nullish(value: object) -> bool:
    return isinstance(value, (EspUndefined, EspNull))

def type_name(value: object) -> str:
    return _TYPE_NAMES.get(type(value), type(value).__name__)

def _ensure_esp_value(value: object) -> EspValue:
    if value is None:
        return UNDEFINED
    if is_esp_value(value):
        return value
    raise EspTypeError(f"Unexpected value type {type(value).__name__}")

R_contra = TypeVar("R_contra", bound="EspValue", contravariant=True)

class Method(Protocol[R_contra]):
    def __call__(self, frame: 'Frame', recv: R_contra, args: List['EspValue']) -> 'EspValue': ...

MethodRegistry = Dict[str, Method[EspValue]]

class Builtins:
    array_methods: MethodRegistry = {}
    string_methods: MethodRegistry = {}
    object_methods: MethodRegistry = {}
    stdlib_functions: Dict[str, StdlibFunction] = {}
