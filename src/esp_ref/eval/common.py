from __future__ import annotations

from typing import Any, Callable, Optional

from lark import Token

from ..types import EspNumber, EspString, EspValue, EspRuntimeError, EspTypeError, Frame, type_name
from ..tree import Node, is_token

EvalFunc = Callable[[Node, Frame], EspValue]

_ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    'b': '\b',
    'f': '\f',
    '0': '\0',
    '\\': '\\',
    '"': '"',
    "'": "'",
}

def token_kind(node: Any) -> Optional[str]:
    if not is_token(node):
        return None
    tok: Token = node
    return str(tok.type)

def is_token_type(node: Any, kind: str) -> bool:
    return is_token(node) and token_kind(node) == kind

def expect_ident_token(node: Any, context: str) -> str:
    if is_token_type(node, 'IDENT'):
        return str(node.value)

    raise EspRuntimeError(f"{context} must be an identifier")

def require_number(value: EspValue, context: str) -> float:
    if not isinstance(value, EspNumber):
        raise EspTypeError(f"{context} expects a number, got {type_name(value)}")
    return value.value

def token_number(token: Token, _: Any) -> EspNumber:
    return EspNumber(float(token.value))

def token_string(token: Token, _: Any) -> EspString:
    raw = token.value

    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ('"', "'"):
        raw = raw[1:-1]

    return EspString(decode_escapes(raw))

def decode_escapes(raw: str) -> str:
    if '\\' not in raw:
        return raw

    out = []
    i = 0

    while i < len(raw):
        ch = raw[i]
        if ch != '\\' or i + 1 >= len(raw):
            out.append(ch)
            i += 1
            continue

        nxt = raw[i + 1]
        if nxt == 'u' and i + 6 <= len(raw):
            digits = raw[i + 2:i + 6]
            try:
                out.append(chr(int(digits, 16)))
            except ValueError:
                raise EspRuntimeError(f"Invalid unicode escape '\\u{digits}'") from None
            i += 6
            continue

        # Unknown escapes keep the escaped character
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2

    return ''.join(out)
