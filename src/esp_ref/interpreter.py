"""
Interpreter session: the embedding API.

    parser = ExpressionParser(math)
    parser.set_function("twice", lambda x: 2 * x)
    parser.parse("var a = twice(cos(0.0)); a")    # EspNumber(2.0)

One session owns one global frame. Every parse() lexes, parses and
evaluates against it, so declarations persist across calls, including
those made before a later statement failed. Sessions are not thread-safe;
use one per thread or serialise access.
"""
from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Optional, Type, TypeVar

from . import bridge
from .evaluator import eval_expr
from .parser_rd import parse_source
from .runtime import init_stdlib, invoke_from_host, python_stack_guard
from .types import (
    CallContext,
    EspError,
    EspNameError,
    EspValue,
    Frame,
    NativeFunction,
    is_callable_value,
    is_esp_value,
)
from .utils import max_array_length_default, max_call_depth_default

log = logging.getLogger(__name__)

P = TypeVar("P")

class SessionState(enum.Enum):
    CREATED = "created"
    READY = "ready"
    PARSING = "parsing"
    EVALUATING = "evaluating"
    ERROR = "error"

class ExpressionParser:
    def __init__(
        self,
        namespace: Optional[object] = None,
        *,
        max_call_depth: Optional[int] = None,
        max_array_length: Optional[int] = None,
    ):
        self.state = SessionState.CREATED
        init_stdlib()

        if max_call_depth is None:
            max_call_depth = max_call_depth_default()
        if max_call_depth < 1:
            raise ValueError(f"max_call_depth must be positive, got {max_call_depth}")
        if max_array_length is None:
            max_array_length = max_array_length_default()
        if max_array_length < 1:
            raise ValueError(f"max_array_length must be positive, got {max_array_length}")

        self.namespace = namespace
        self.max_call_depth = max_call_depth
        self.max_array_length = max_array_length
        self.reset()

    def reset(self) -> None:
        """Drop every global binding (namespace and resource limits are kept)."""
        context = CallContext(
            max_call_depth=self.max_call_depth,
            namespace=self.namespace,
            max_array_length=self.max_array_length,
        )
        self.global_frame = Frame(context=context)
        self.last_error: Optional[EspError] = None
        self.state = SessionState.READY

    # ---------------- Evaluation ----------------

    def parse(self, source: str) -> EspValue:
        """Lex, parse and evaluate source; return the last expression statement's value."""
        log.debug("parse: %d chars", len(source))

        try:
            with python_stack_guard():
                self.state = SessionState.PARSING
                ast = parse_source(source)

                self.state = SessionState.EVALUATING
                result = eval_expr(ast, self.global_frame)
        except EspError as exc:
            self.state = SessionState.ERROR
            self.last_error = exc
            log.debug("parse failed: %s", exc)
            raise
        finally:
            self.state = SessionState.READY

        log.debug("result: %r", result)
        return result

    # ---------------- Host bindings ----------------

    def set_function(self, name: str, fn: Callable[..., Any], *, convert: bool = True) -> None:
        """
        Register a Python callable as a global function. With convert=True it
        receives host values (float, str, bool, None, or handles) and its
        return value is converted back; otherwise it sees raw script values.
        """
        if is_callable_value(fn):
            self.global_frame.define(name, fn)
            return

        if not callable(fn):
            raise TypeError(f"set_function expects a callable, got {type(fn).__name__}")

        self.global_frame.define(name, NativeFunction(fn=fn, name=name, convert=convert))

    def get_function(self, name: str) -> Optional[EspValue]:
        value = self._lookup(name)
        return value if is_callable_value(value) else None

    def set_global_value(self, name: str, value: Any) -> None:
        self.global_frame.define(name, bridge.from_host(value))

    def get(self, name: str) -> Optional[EspValue]:
        """Current value of a global, or None when nothing by that name exists."""
        return self._lookup(name)

    def _lookup(self, name: str) -> Optional[EspValue]:
        try:
            return self.global_frame.get(name)
        except EspNameError:
            return None

    # ---------------- Calling into scripts ----------------

    def invoke_function(self, name: str, *args: Any) -> Any:
        fn = self.get_function(name)
        if fn is None:
            raise EspNameError(name)

        return invoke_from_host(fn, args, frame=self.global_frame)

    def invoke_method(self, obj: EspValue, name: str, *args: Any) -> Any:
        return bridge.invoke_method(obj, name, list(args), self.global_frame)

    def get_interface(self, obj: EspValue, protocol: Type[P]) -> P:
        return bridge.get_interface(obj, protocol, self.global_frame)

    @staticmethod
    def to_host(value: Any) -> Any:
        return bridge.to_host(value) if is_esp_value(value) else value
