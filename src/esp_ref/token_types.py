"""
Token Types for the ESP Parser

Shared between lexer and parser to avoid circular dependencies.
"""

from typing import Any
from dataclasses import dataclass
from enum import Enum, auto


class TT(Enum):
    """Token Types"""

    # Literals
    NUMBER = auto()
    STRING = auto()
    IDENT = auto()

    # Keywords
    VAR = auto()
    FUNCTION = auto()
    IF = auto()
    ELSE = auto()
    FOR = auto()
    NEW = auto()
    THIS = auto()
    THROW = auto()

    # Literals
    TRUE = auto()
    FALSE = auto()
    NULL = auto()
    UNDEFINED = auto()
    VOID = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    MOD = auto()

    # Comparison
    EQ = auto()
    NEQ = auto()
    LT = auto()
    LTE = auto()
    GT = auto()
    GTE = auto()

    # Logical
    AND = auto()
    OR = auto()
    NEG = auto()  # !
    NULLISH = auto()  # ??

    # Bitwise
    AMP = auto()  # &
    PIPE = auto()  # |
    TILDE = auto()  # ~

    # Assignment
    ASSIGN = auto()  # =
    QASSIGN = auto()  # ?=
    NULLISHASSIGN = auto()  # ??=

    # Punctuation
    LPAR = auto()
    RPAR = auto()
    LSQB = auto()
    RSQB = auto()
    LBRACE = auto()
    RBRACE = auto()
    DOT = auto()
    RANGE = auto()  # ..
    COMMA = auto()
    COLON = auto()
    SEMI = auto()
    QMARK = auto()

    # Special
    EOF = auto()
    COMMENT = auto()


@dataclass
class Tok:
    """Token with position info"""

    type: TT
    value: Any
    line: int = 0
    column: int = 0

    def __repr__(self):
        return f"Tok({self.type.name}, {self.value!r}, {self.line}:{self.column})"
