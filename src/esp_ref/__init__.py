"""ESP: a small embeddable expression scripting language."""

from .interpreter import ExpressionParser, SessionState
from .types import (
    EspError,
    EspSyntaxError,
    EspRuntimeError,
    EspTypeError,
    EspNameError,
    EspIndexError,
    EspArityError,
    EspThrow,
    EspResourceError,
)

__all__ = [
    "ExpressionParser",
    "SessionState",
    "EspError",
    "EspSyntaxError",
    "EspRuntimeError",
    "EspTypeError",
    "EspNameError",
    "EspIndexError",
    "EspArityError",
    "EspThrow",
    "EspResourceError",
]
