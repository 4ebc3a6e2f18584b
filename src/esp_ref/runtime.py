from __future__ import annotations

import importlib
import logging
import sys
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence
from .types import (
    UNDEFINED,
    EspUndefined, EspNumber, EspString, EspBool, EspArray, EspObject,
    EspFn, NativeFunction, StdlibFunction, BuiltinMethod, EspHostObject,
    EspValue, Frame,
    EspError, EspRuntimeError, EspTypeError, EspArityError, EspIndexError,
    EspMethodNotFound, EspResourceError,
    MethodRegistry, Builtins, StdlibFn,
    _ensure_esp_value, type_name,
)
from .utils import normalize_object_key, stringify

log = logging.getLogger(__name__)

_STDLIB_INITIALIZED = False

# Parsing and evaluation recurse once per nesting level; give deep but legal
# scripts room before the call-depth guard or RecursionError kicks in.
PY_RECURSION_LIMIT = 10000

def init_stdlib() -> None:
    """Load stdlib modules (idempotent) so register_stdlib hooks run."""
    global _STDLIB_INITIALIZED

    if _STDLIB_INITIALIZED:
        return

    importlib.import_module("esp_ref.stdlib")
    _STDLIB_INITIALIZED = True

def register_method(registry: MethodRegistry, name: str):
    def dec(fn: Callable[..., EspValue]):
        registry[name] = fn
        return fn

    return dec

def register_array(name: str):
    return register_method(Builtins.array_methods, name)

def register_string(name: str):
    return register_method(Builtins.string_methods, name)

def register_object(name: str):
    return register_method(Builtins.object_methods, name)

def register_stdlib(name: str, *, arity: Optional[int] = None):
    def dec(fn: StdlibFn):
        Builtins.stdlib_functions[name] = StdlibFunction(fn=fn, name=name, arity=arity)
        return fn

    return dec

# ---------- Argument helpers ----------

def _expect_arity(owner: str, method: str, args: List[EspValue], expected: int) -> None:
    if len(args) != expected:
        raise EspArityError(f"{owner}.{method} expects {expected} argument(s); got {len(args)}")

def _string_arg(method: str, arg: EspValue) -> str:
    if isinstance(arg, EspString):
        return arg.value

    raise EspTypeError(f"string.{method} expects a string argument, got {type_name(arg)}")

def _int_arg(owner: str, method: str, arg: EspValue) -> int:
    if isinstance(arg, EspNumber) and arg.value.is_integer():
        return int(arg.value)

    raise EspTypeError(f"{owner}.{method} expects an integer argument, got {arg!r}")

def array_index(index: EspValue) -> int:
    """Non-negative integral index, or EspIndexError."""
    if not isinstance(index, EspNumber):
        raise EspTypeError(f"Array index must be a number, not {type_name(index)}")

    num = index.value
    if not num.is_integer() or num < 0:
        raise EspIndexError(f"Invalid array index {index!r}")

    return int(num)

# ---------- Array methods ----------

@register_array("size")
def _array_size(_frame: Frame, recv: EspArray, args: List[EspValue]) -> EspNumber:
    _expect_arity("array", "size", args, 0)

    return EspNumber(float(recv.size()))

@register_array("get")
def _array_get(_frame: Frame, recv: EspArray, args: List[EspValue]) -> EspValue:
    _expect_arity("array", "get", args, 1)

    return recv.get(array_index(args[0]))

@register_array("set")
def _array_set(frame: Frame, recv: EspArray, args: List[EspValue]) -> EspValue:
    _expect_arity("array", "set", args, 2)
    recv.set(array_index(args[0]), args[1], frame.context.max_array_length)

    return args[1]

@register_array("add")
def _array_add(_frame: Frame, recv: EspArray, args: List[EspValue]) -> EspUndefined:
    for arg in args:
        recv.add(arg)

    return UNDEFINED

@register_array("forEach")
def _array_for_each(frame: Frame, recv: EspArray, args: List[EspValue]) -> EspUndefined:
    _expect_arity("array", "forEach", args, 1)
    fn = args[0]

    for i, item in enumerate(list(recv.items)):
        call_function(fn, [item, EspNumber(float(i))], frame)

    return UNDEFINED

@register_array("map")
def _array_map(frame: Frame, recv: EspArray, args: List[EspValue]) -> EspArray:
    _expect_arity("array", "map", args, 1)
    fn = args[0]

    return EspArray([
        call_function(fn, [item, EspNumber(float(i))], frame)
        for i, item in enumerate(list(recv.items))
    ])

@register_array("filter")
def _array_filter(frame: Frame, recv: EspArray, args: List[EspValue]) -> EspArray:
    _expect_arity("array", "filter", args, 1)
    fn = args[0]
    kept = []

    for i, item in enumerate(list(recv.items)):
        verdict = call_function(fn, [item, EspNumber(float(i))], frame)
        if not isinstance(verdict, EspBool):
            raise EspTypeError(f"array.filter callback must return a boolean, got {type_name(verdict)}")
        if verdict.value:
            kept.append(item)

    return EspArray(kept)

@register_array("reduce")
def _array_reduce(frame: Frame, recv: EspArray, args: List[EspValue]) -> EspValue:
    if len(args) not in (1, 2):
        raise EspArityError(f"array.reduce expects 1 or 2 arguments; got {len(args)}")

    fn = args[0]
    items = list(recv.items)

    if len(args) == 2:
        acc = args[1]
    elif items:
        acc, *items = items
    else:
        raise EspTypeError("array.reduce of an empty array with no initial value")

    for item in items:
        acc = call_function(fn, [acc, item], frame)

    return acc

@register_array("join")
def _array_join(_frame: Frame, recv: EspArray, args: List[EspValue]) -> EspString:
    if len(args) > 1:
        raise EspArityError(f"array.join expects at most 1 argument; got {len(args)}")
    sep = _string_arg("join", args[0]) if args else ","

    return EspString(sep.join(stringify(item) for item in recv.items))

# ---------- Object methods ----------

@register_object("size")
def _object_size(_frame: Frame, recv: EspObject, args: List[EspValue]) -> EspNumber:
    _expect_arity("object", "size", args, 0)

    return EspNumber(float(recv.size()))

@register_object("get")
def _object_get(_frame: Frame, recv: EspObject, args: List[EspValue]) -> EspValue:
    _expect_arity("object", "get", args, 1)

    return recv.get(normalize_object_key(args[0]))

@register_object("set")
def _object_set(_frame: Frame, recv: EspObject, args: List[EspValue]) -> EspValue:
    _expect_arity("object", "set", args, 2)

    recv.set(normalize_object_key(args[0]), args[1])
    return args[1]

@register_object("has")
def _object_has(_frame: Frame, recv: EspObject, args: List[EspValue]) -> EspBool:
    _expect_arity("object", "has", args, 1)

    return EspBool(recv.has(normalize_object_key(args[0])))

@register_object("keys")
def _object_keys(_frame: Frame, recv: EspObject, args: List[EspValue]) -> EspArray:
    _expect_arity("object", "keys", args, 0)

    return EspArray([EspString(k) for k in recv.keys()])

# ---------- String methods ----------

@register_string("length")
def _string_length(_frame: Frame, recv: EspString, args: List[EspValue]) -> EspNumber:
    _expect_arity("string", "length", args, 0)

    return EspNumber(float(len(recv.value)))

@register_string("toUpperCase")
def _string_upper(_frame: Frame, recv: EspString, args: List[EspValue]) -> EspString:
    _expect_arity("string", "toUpperCase", args, 0)

    return EspString(recv.value.upper())

@register_string("toLowerCase")
def _string_lower(_frame: Frame, recv: EspString, args: List[EspValue]) -> EspString:
    _expect_arity("string", "toLowerCase", args, 0)

    return EspString(recv.value.lower())

@register_string("indexOf")
def _string_index_of(_frame: Frame, recv: EspString, args: List[EspValue]) -> EspNumber:
    _expect_arity("string", "indexOf", args, 1)
    needle = _string_arg("indexOf", args[0])

    return EspNumber(float(recv.value.find(needle)))

@register_string("substring")
def _string_substring(_frame: Frame, recv: EspString, args: List[EspValue]) -> EspString:
    if len(args) not in (1, 2):
        raise EspArityError(f"string.substring expects 1 or 2 arguments; got {len(args)}")

    start = _int_arg("string", "substring", args[0])
    stop = _int_arg("string", "substring", args[1]) if len(args) == 2 else len(recv.value)
    if not 0 <= start <= stop <= len(recv.value):
        raise EspIndexError(f"string.substring range {start}..{stop} out of bounds")

    return EspString(recv.value[start:stop])

# ---------- Calls ----------

_REGISTRY_BY_TYPE: Dict[type, MethodRegistry] = {
    EspArray: Builtins.array_methods,
    EspString: Builtins.string_methods,
    EspObject: Builtins.object_methods,
}

def has_builtin_method(recv: EspValue, name: str) -> bool:
    registry = _REGISTRY_BY_TYPE.get(type(recv))
    return registry is not None and name in registry

def call_builtin_method(recv: EspValue, name: str, args: List[EspValue], frame: 'Frame') -> EspValue:
    registry = _REGISTRY_BY_TYPE.get(type(recv))
    if registry:
        handler = registry.get(name)
        if handler is not None:
            return handler(frame, recv, args)

    raise EspMethodNotFound(recv, name)

@contextmanager
def _call_guard(frame: Frame) -> Iterator[None]:
    ctx = frame.context

    if ctx.depth >= ctx.max_call_depth:
        raise EspResourceError(f"Maximum call depth of {ctx.max_call_depth} exceeded")

    ctx.depth += 1
    try:
        yield
    finally:
        ctx.depth -= 1

def call_function(callee: EspValue, args: List[EspValue], frame: Frame, this: Optional[EspValue] = None) -> EspValue:
    """Call any callable value with already-evaluated arguments."""
    match callee:
        case EspFn():
            with _call_guard(callee.frame):
                return call_espfn(callee, args, this)
        case NativeFunction():
            with _call_guard(frame):
                return call_native(callee, args)
        case StdlibFunction(fn=fn, name=name, arity=arity):
            if arity is not None and len(args) != arity:
                raise EspArityError(f"{name}() expects {arity} argument(s); got {len(args)}")
            return fn(frame, args)
        case BuiltinMethod(name=name, subject=subject):
            return call_builtin_method(subject, name, args, frame)

    raise EspTypeError(f"{type_name(callee)} {callee!r} is not a function")

def call_espfn(fn: EspFn, positional: List[EspValue], this: Optional[EspValue] = None) -> EspValue:
    """
    Script function call semantics:
    - callee frame is a child of the closure frame
    - parameters bind positionally; missing ones are undefined, extras dropped
    - `this` is bound for method calls
    - the body's trailing expression value is the result
    """
    from .eval.blocks import eval_statements  # local import to avoid cycle
    from .evaluator import eval_node

    callee_frame = Frame(parent=fn.frame)
    callee_frame.mark_function_frame()

    for i, name in enumerate(fn.params):
        callee_frame.define(name, positional[i] if i < len(positional) else UNDEFINED)

    if this is not None:
        callee_frame.define("this", this)

    return _ensure_esp_value(eval_statements(fn.body.children, callee_frame, eval_node))

def call_native(nf: NativeFunction, args: List[EspValue]) -> EspValue:
    from .bridge import from_host, to_host

    host_args: Sequence[Any] = [to_host(arg) for arg in args] if nf.convert else args

    try:
        result = nf.fn(*host_args)
    except (EspError, RecursionError):
        raise
    except Exception as exc:
        log.debug("native function %s raised %r", nf.name, exc)
        raise EspRuntimeError(f"Native function '{nf.name}' failed: {exc}") from exc

    if nf.convert:
        return from_host(result)

    return _ensure_esp_value(result)

def invoke_from_host(fn: EspValue, args: Sequence[Any], frame: Optional[Frame] = None, this: Optional[EspValue] = None) -> Any:
    """Call a script-visible function from Python with host arguments."""
    from .bridge import from_host, to_host

    if frame is None:
        frame = fn.frame if isinstance(fn, EspFn) else Frame()
    esp_args = [from_host(arg) for arg in args]

    with python_stack_guard():
        return to_host(call_function(fn, esp_args, frame, this=this))

@contextmanager
def python_stack_guard() -> Iterator[None]:
    """Raise the interpreter recursion limit and report exhaustion as EspResourceError."""
    previous = sys.getrecursionlimit()
    if previous < PY_RECURSION_LIMIT:
        sys.setrecursionlimit(PY_RECURSION_LIMIT)

    try:
        yield
    except RecursionError as exc:
        raise EspResourceError("Nesting too deep: Python stack exhausted") from exc
    finally:
        if previous < PY_RECURSION_LIMIT:
            sys.setrecursionlimit(previous)

def host_attribute(handle: EspHostObject, name: str) -> EspValue:
    from .bridge import from_host

    if name.startswith("_"):
        raise EspTypeError(f"Host attribute '{name}' is not accessible")

    try:
        attr = getattr(handle.obj, name)
    except AttributeError:
        return UNDEFINED

    return from_host(attr, name=name)
