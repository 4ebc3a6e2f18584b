"""prompt_toolkit lexer for live ESP syntax highlighting in the REPL."""

from __future__ import annotations

from typing import Callable

from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .lexer_rd import LexError, tokenize
from .token_types import TT, Tok

# Map highlight groups → prompt_toolkit style strings.
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "boolean": "ansicyan",
    "constant": "ansicyan",
    "number": "ansimagenta",
    "string": "ansigreen",
    "identifier": "",
    "function": "bold ansiyellow",
    "operator": "",
    "punctuation": "",
    "comment": "italic ansigray",
    "error": "bold ansired",
}

_KEYWORDS = (TT.VAR, TT.FUNCTION, TT.IF, TT.ELSE, TT.FOR, TT.NEW, TT.THIS, TT.THROW)
_OPERATORS = (
    TT.PLUS, TT.MINUS, TT.STAR, TT.SLASH, TT.MOD,
    TT.EQ, TT.NEQ, TT.LT, TT.LTE, TT.GT, TT.GTE,
    TT.AND, TT.OR, TT.NEG, TT.NULLISH,
    TT.AMP, TT.PIPE, TT.TILDE,
    TT.ASSIGN, TT.QASSIGN, TT.NULLISHASSIGN, TT.RANGE,
)
_PUNCTUATION = (
    TT.LPAR, TT.RPAR, TT.LSQB, TT.RSQB, TT.LBRACE, TT.RBRACE,
    TT.DOT, TT.COMMA, TT.COLON, TT.SEMI, TT.QMARK,
)

# Token type → highlight group.
_TT_GROUP = {
    **{tt: "keyword" for tt in _KEYWORDS},
    **{tt: "operator" for tt in _OPERATORS},
    **{tt: "punctuation" for tt in _PUNCTUATION},
    TT.TRUE: "boolean",
    TT.FALSE: "boolean",
    TT.NULL: "constant",
    TT.UNDEFINED: "constant",
    TT.VOID: "constant",
    TT.NUMBER: "number",
    TT.STRING: "string",
    TT.IDENT: "identifier",
    TT.COMMENT: "comment",
}


def _token_group(tokens: list[Tok], idx: int) -> str:
    tok = tokens[idx]
    group = _TT_GROUP.get(tok.type, "")

    # Callee position: name followed by '('
    if tok.type == TT.IDENT and idx + 1 < len(tokens) and tokens[idx + 1].type == TT.LPAR:
        return "function"

    return group


def _highlight_line(text: str) -> StyleAndTextTuples:
    """Tokenize a single line and return styled fragments."""
    if not text:
        return [("", "")]

    try:
        tokens = tokenize(text, emit_comments=True)
    except LexError as exc:
        # Everything from the bad character onwards is flagged.
        start = max((exc.column or 1) - 1, 0)
        result: StyleAndTextTuples = []
        if start:
            result.extend(_highlight_line(text[:start]))
        result.append((GROUP_STYLE["error"], text[start:]))
        return result

    result = []
    pos = 0

    for i, tok in enumerate(tokens):
        if tok.type == TT.EOF:
            continue

        tok_text = str(tok.value)
        idx = tok.column - 1
        if idx < pos:
            continue

        # Unstyled gap before token.
        if idx > pos:
            result.append(("", text[pos:idx]))

        style = GROUP_STYLE.get(_token_group(tokens, i), "")
        result.append((style, tok_text))
        pos = idx + len(tok_text)

    # Trailing unstyled text.
    if pos < len(text):
        result.append(("", text[pos:]))

    return result if result else [("", text)]


class EspLexer(Lexer):
    """prompt_toolkit Lexer that highlights ESP source using the RD lexer."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines

        cache: dict[int, StyleAndTextTuples] = {}

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno not in cache:
                if lineno < len(lines):
                    cache[lineno] = _highlight_line(lines[lineno])
                else:
                    cache[lineno] = [("", "")]

            return cache[lineno]

        return get_line
