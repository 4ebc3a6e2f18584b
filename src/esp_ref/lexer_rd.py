"""
Lexer for ESP - Recursive Descent Parser

Tokenizes ESP source code into a stream of tokens.

Features:
- Single-pass tokenization
- Newlines are plain whitespace; statements are separated by ';'
- Position tracking (line, column of the first character)
- Line (//) and block (/* */) comments
"""

from typing import List, Optional

from .token_types import TT, Tok
from .types import EspSyntaxError

def _is_digit(ch: str) -> bool:
    # ASCII only; number lexemes go straight to float()
    return '0' <= ch <= '9'

# ============================================================================
# Lexer Implementation
# ============================================================================

class Lexer:
    """
    ESP lexer.

    String tokens keep their quotes and escape sequences verbatim; the
    evaluator decodes them.
    """

    # Keyword mapping
    KEYWORDS = {
        'var': TT.VAR,
        'function': TT.FUNCTION,
        'if': TT.IF,
        'else': TT.ELSE,
        'for': TT.FOR,
        'new': TT.NEW,
        'this': TT.THIS,
        'throw': TT.THROW,
        'true': TT.TRUE,
        'false': TT.FALSE,
        'null': TT.NULL,
        'undefined': TT.UNDEFINED,
        'void': TT.VOID,
    }

    # Operator mapping: longest matches first to handle prefixes correctly
    OPERATORS = [
        # Three-character operators
        ('??=', TT.NULLISHASSIGN),

        # Two-character operators
        ('==', TT.EQ),
        ('!=', TT.NEQ),
        ('<=', TT.LTE),
        ('>=', TT.GTE),
        ('&&', TT.AND),
        ('||', TT.OR),
        ('??', TT.NULLISH),
        ('?=', TT.QASSIGN),
        ('..', TT.RANGE),

        # Single-character operators
        ('+', TT.PLUS),
        ('-', TT.MINUS),
        ('*', TT.STAR),
        ('/', TT.SLASH),
        ('%', TT.MOD),
        ('<', TT.LT),
        ('>', TT.GT),
        ('!', TT.NEG),
        ('&', TT.AMP),
        ('|', TT.PIPE),
        ('~', TT.TILDE),
        ('=', TT.ASSIGN),
        ('(', TT.LPAR),
        (')', TT.RPAR),
        ('[', TT.LSQB),
        (']', TT.RSQB),
        ('{', TT.LBRACE),
        ('}', TT.RBRACE),
        ('.', TT.DOT),
        (',', TT.COMMA),
        (':', TT.COLON),
        (';', TT.SEMI),
        ('?', TT.QMARK),
    ]

    def __init__(self, source: str, emit_comments: bool = False):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Tok] = []
        self.emit_comments = emit_comments

        # Start of the token being scanned
        self.tok_line = 1
        self.tok_column = 1

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def tokenize(self) -> List[Tok]:
        """Tokenize entire source, return token list"""
        while self.pos < len(self.source):
            self.scan_token()

        self.tok_line, self.tok_column = self.line, self.column
        self.emit(TT.EOF, None)
        return self.tokens

    def scan_token(self):
        """Scan next token"""
        # Skip whitespace (newlines included)
        if self.skip_whitespace():
            return

        self.tok_line, self.tok_column = self.line, self.column

        # Comments
        if self.peek() == '/' and self.peek(1) in ('/', '*'):
            self.scan_comment()
            return

        # String literals
        if self.peek() in ('"', "'"):
            self.scan_string()
            return

        # Numbers
        if _is_digit(self.peek()):
            self.scan_number()
            return

        # Identifiers and keywords
        if self.peek().isalpha() or self.peek() in ('_', '$'):
            self.scan_identifier()
            return

        # Operators and punctuation
        self.scan_operator()

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def scan_comment(self):
        """Scan // line comment or /* block */ comment"""
        start = self.pos

        if self.peek(1) == '/':
            while self.peek() not in ('\n', '\r', '\0'):
                self.advance()
        else:
            self.advance(2)
            while not (self.peek() == '*' and self.peek(1) == '/'):
                if self.pos >= len(self.source):
                    raise LexError("Unterminated comment", self.tok_line, self.tok_column)
                self.advance()
            self.advance(2)

        if self.emit_comments:
            self.emit(TT.COMMENT, self.source[start:self.pos])

    def scan_string(self):
        """Scan string literal: "..." or '...'"""
        quote = self.advance()
        value = quote  # Keep opening quote

        while self.pos < len(self.source) and self.peek() != quote:
            if self.peek() in ('\n', '\r'):
                raise LexError("Unterminated string", self.tok_line, self.tok_column)
            if self.peek() == '\\':
                # Keep escape sequence as-is
                value += self.advance()
                if self.pos < len(self.source):
                    value += self.advance()
            else:
                value += self.advance()

        if self.pos >= len(self.source):
            raise LexError("Unterminated string", self.tok_line, self.tok_column)

        value += self.advance()  # Closing quote
        self.emit(TT.STRING, value)

    def scan_number(self):
        """Scan number literal"""
        value = ''

        # Integer part
        while _is_digit(self.peek()):
            value += self.advance()

        # Decimal part; '..' is the range operator, not a fraction
        if self.peek() == '.' and _is_digit(self.peek(1)):
            value += self.advance()  # .
            while _is_digit(self.peek()):
                value += self.advance()
        elif self.peek() == '.' and self.peek(1) in ('e', 'E') and self._exponent_follows(2):
            value += self.advance()  # 1.e-14

        # Scientific notation
        if self.peek() in ('e', 'E') and self._exponent_follows(1):
            value += self.advance()
            if self.peek() in ('+', '-'):
                value += self.advance()
            while _is_digit(self.peek()):
                value += self.advance()

        if self.peek().isalnum() or self.peek() == '_':
            raise LexError(f"Malformed number '{value}{self.peek()}'", self.tok_line, self.tok_column)

        self.emit(TT.NUMBER, value)

    def _exponent_follows(self, offset: int) -> bool:
        nxt = self.peek(offset)
        if nxt in ('+', '-'):
            nxt = self.peek(offset + 1)
        return _is_digit(nxt)

    def scan_identifier(self):
        """Scan identifier or keyword"""
        value = ''

        while self.peek().isalnum() or self.peek() in ('_', '$'):
            value += self.advance()

        # Check if keyword
        token_type = self.KEYWORDS.get(value, TT.IDENT)
        self.emit(token_type, value)

    def scan_operator(self):
        """Scan operators and punctuation"""
        for op_str, op_type in self.OPERATORS:
            if self.source.startswith(op_str, self.pos):
                self.advance(len(op_str))
                self.emit(op_type, op_str)
                return

        ch = self.peek()
        raise LexError(f"Unexpected character '{ch}'", self.line, self.column)

    # ========================================================================
    # Utilities
    # ========================================================================

    def peek(self, offset: int = 0) -> str:
        """Look ahead at character"""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Consume n characters and return them as a string"""
        if n < 0:
            raise ValueError(f"advance() requires n >= 0, got {n}")
        result = ''
        for _ in range(n):
            ch = self.source[self.pos] if self.pos < len(self.source) else '\0'
            result += ch
            self.pos += 1
            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return result

    def skip_whitespace(self) -> bool:
        """Skip whitespace, return True if any skipped"""
        skipped = False
        while self.pos < len(self.source) and self.peek().isspace():
            self.advance()
            skipped = True
        return skipped

    def emit(self, token_type: TT, value):
        """Emit a token"""
        tok = Tok(
            type=token_type,
            value=value,
            line=self.tok_line,
            column=self.tok_column
        )
        self.tokens.append(tok)

class LexError(EspSyntaxError):
    """Lexical analysis error"""
    pass


def tokenize(source: str, emit_comments: bool = False) -> List[Tok]:
    """Convenience function to tokenize source"""
    lexer = Lexer(source, emit_comments=emit_comments)
    return lexer.tokenize()


def first_error(source: str) -> Optional[LexError]:
    """Return the first lexical error in source, or None."""
    try:
        tokenize(source)
    except LexError as exc:
        return exc
    return None
