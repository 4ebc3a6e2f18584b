"""
Recursive Descent Parser for ESP

Structure:
- Lexer: Token stream from source (lexer_rd)
- Parser: Recursive descent, one method per precedence level
- AST: lark Tree/Token nodes; trees carry line/column in their meta
"""

from typing import Optional, List, Union
from lark import Tree, Token

from .token_types import TT, Tok
from .tree import set_position
from .types import EspSyntaxError

Node = Union[Tree, Token]

class ParseError(EspSyntaxError):
    """Parse error with position info"""
    def __init__(self, message: str, token: Optional[Tok] = None):
        self.token = token
        if token is not None:
            super().__init__(message, token.line, token.column)
        else:
            super().__init__(message)

# Token types that may follow '.' or name an object key even though the
# lexer classifies them as keywords.
_NAME_TOKENS = (
    TT.IDENT, TT.VAR, TT.FUNCTION, TT.IF, TT.ELSE, TT.FOR, TT.NEW, TT.THIS,
    TT.THROW, TT.TRUE, TT.FALSE, TT.NULL, TT.UNDEFINED, TT.VOID,
)

_LITERAL_TOKENS = (TT.NUMBER, TT.STRING, TT.TRUE, TT.FALSE, TT.NULL, TT.UNDEFINED, TT.VOID)

# ============================================================================
# Parser
# ============================================================================

class Parser:
    """
    Recursive descent parser for ESP.

    Expression precedence (lowest to highest):
    1. assignment (=), right associative
    2. ternary (? :)
    3. nullish (??)
    4. or (||)
    5. and (&&)
    6. bitwise or (|)
    7. bitwise and (&)
    8. equality (==, !=)
    9. relational (<, <=, >, >=)
    10. additive (+, -)
    11. multiplicative (*, /, %)
    12. unary (-, +, !, ~, throw)
    13. postfix (.field, [index], (call))
    14. primary (literals, identifiers, parens, array/object/function/if)
    """

    def __init__(self, tokens: List[Tok]):
        self.tokens = tokens
        self.pos = 0
        self.current = tokens[0] if tokens else Tok(TT.EOF, None, 0, 0)

    # ========================================================================
    # Token Navigation
    # ========================================================================

    def peek(self, offset: int = 0) -> Tok:
        """Look ahead at token"""
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return Tok(TT.EOF, None, 0, 0)

    def previous(self) -> Optional[Tok]:
        if self.pos == 0:
            return None
        return self.tokens[self.pos - 1]

    def advance(self) -> Tok:
        """Consume current token and move to next"""
        prev = self.current
        self.pos += 1
        if self.pos < len(self.tokens):
            self.current = self.tokens[self.pos]
        else:
            self.current = Tok(TT.EOF, None, 0, 0)
        return prev

    def check(self, *types: TT) -> bool:
        """Check if current token matches any of the given types"""
        return self.current.type in types

    def match(self, *types: TT) -> bool:
        """Check and consume if current token matches"""
        if self.check(*types):
            self.advance()
            return True
        return False

    def expect(self, token_type: TT, message: Optional[str] = None) -> Tok:
        """Consume token of expected type or raise error"""
        if not self.check(token_type):
            msg = message or f"Expected {token_type.name}, got {_describe(self.current)}"
            raise ParseError(msg, self.current)
        return self.advance()

    # ========================================================================
    # Node construction
    # ========================================================================

    @staticmethod
    def _token(tok: Tok) -> Token:
        return Token(tok.type.name, tok.value, line=tok.line, column=tok.column)

    @staticmethod
    def _tree(label: str, children: List[Node], tok: Optional[Tok]) -> Tree:
        tree = Tree(label, children)
        if tok is not None:
            set_position(tree, tok.line, tok.column)
        return tree

    # ========================================================================
    # Top-Level Parsing
    # ========================================================================

    def parse(self) -> Tree:
        """Parse entire program"""
        start = self.current
        stmts = self.parse_statements(TT.EOF)
        self.expect(TT.EOF)
        return self._tree('program', stmts, start)

    def parse_statements(self, terminator: TT) -> List[Node]:
        """
        Parse statements up to (not including) terminator.

        Statements are separated by ';'. A statement that ends with '}'
        needs no separator.
        """
        stmts: List[Node] = []

        while True:
            while self.match(TT.SEMI):
                pass

            if self.check(terminator):
                return stmts

            stmts.append(self.parse_statement())

            if self.check(TT.SEMI, terminator):
                continue

            prev = self.previous()
            if prev is not None and prev.type == TT.RBRACE:
                continue

            raise ParseError(f"Expected ';' before {_describe(self.current)}", self.current)

    # ========================================================================
    # Statements
    # ========================================================================

    def parse_statement(self) -> Node:
        """
        Parse a single statement.

        Statements include:
        - var declarations (=, ?=, ??=)
        - named function declarations
        - for loops (numeric range and collection)
        - bare blocks
        - expressions, optionally prefixed with '='
        """
        if self.check(TT.VAR):
            return self.parse_var_stmt()
        if self.check(TT.FUNCTION) and self.peek(1).type == TT.IDENT:
            return self.parse_fn_stmt()
        if self.check(TT.FOR):
            return self.parse_for_stmt()
        if self.check(TT.LBRACE) and not self._looks_like_object():
            return self.parse_block()

        # "= expr" marks an expression statement explicitly
        self.match(TT.ASSIGN)
        return self.parse_expr()

    def parse_var_stmt(self) -> Tree:
        """Parse var x [= | ?= | ??= expr]"""
        var_tok = self.expect(TT.VAR)
        name = self.expect(TT.IDENT, f"Expected variable name after 'var', got {_describe(self.current)}")
        children: List[Node] = [self._token(name)]

        if self.check(TT.ASSIGN, TT.QASSIGN, TT.NULLISHASSIGN):
            op = self.advance()
            children.append(self._token(op))
            children.append(self.parse_expr())

        return self._tree('vardecl', children, var_tok)

    def parse_fn_stmt(self) -> Tree:
        """Parse function name(params) { body }"""
        fn_tok = self.expect(TT.FUNCTION)
        name = self.expect(TT.IDENT)
        params = self.parse_param_list()
        body = self.parse_block()
        return self._tree('fndecl', [self._token(name), params, body], fn_tok)

    def parse_for_stmt(self) -> Tree:
        """
        Parse for loops:
        - for (i: lo..hi) { body }   half-open numeric range
        - for (x: expr) { body }     array elements or object keys
        """
        for_tok = self.expect(TT.FOR)
        self.expect(TT.LPAR, f"Expected '(' after 'for', got {_describe(self.current)}")
        var = self.expect(TT.IDENT, f"Expected loop variable, got {_describe(self.current)}")
        self.expect(TT.COLON, f"Expected ':' after loop variable, got {_describe(self.current)}")
        start = self.parse_expr()

        if self.match(TT.RANGE):
            stop = self.parse_expr()
            self.expect(TT.RPAR)
            body = self.parse_block()
            return self._tree('forrange', [self._token(var), start, stop, body], for_tok)

        self.expect(TT.RPAR)
        body = self.parse_block()
        return self._tree('foreach', [self._token(var), start, body], for_tok)

    def parse_block(self) -> Tree:
        """Parse { statements }"""
        lbrace = self.expect(TT.LBRACE, f"Expected '{{', got {_describe(self.current)}")
        stmts = self.parse_statements(TT.RBRACE)
        self.expect(TT.RBRACE, f"Expected '}}', got {_describe(self.current)}")
        return self._tree('block', stmts, lbrace)

    def _looks_like_object(self) -> bool:
        """At '{': is this an object literal rather than a block?"""
        nxt = self.peek(1)

        if nxt.type == TT.RBRACE:
            return True

        if nxt.type in _NAME_TOKENS or nxt.type == TT.STRING:
            after = self.peek(2)
            if after.type == TT.COLON:
                return True
            if nxt.type == TT.IDENT and after.type == TT.LPAR:
                return self._scan_brace_after_parens(self.pos + 2)

        return False

    def _scan_brace_after_parens(self, start_pos: int) -> bool:
        """From '(' at start_pos, find the matching ')' and check for '{'"""
        depth = 0
        idx = start_pos

        while idx < len(self.tokens):
            tok = self.tokens[idx]
            if tok.type == TT.LPAR:
                depth += 1
            elif tok.type == TT.RPAR:
                depth -= 1
                if depth == 0:
                    nxt = self.tokens[idx + 1] if idx + 1 < len(self.tokens) else None
                    return nxt is not None and nxt.type == TT.LBRACE
            elif tok.type == TT.EOF:
                return False
            idx += 1

        return False

    # ========================================================================
    # Expressions
    # ========================================================================

    def parse_expr(self) -> Node:
        """Parse expression (entry point)"""
        return self.parse_assignment_expr()

    def parse_assignment_expr(self) -> Node:
        """Parse assignment: lvalue = expr (right associative)"""
        left = self.parse_ternary_expr()

        if self.check(TT.ASSIGN):
            op = self.advance()
            lvalue = self._expr_to_lvalue(left, op)
            right = self.parse_assignment_expr()
            return self._tree('assign', [lvalue, right], op)

        return left

    def _expr_to_lvalue(self, expr: Node, op: Tok) -> Tree:
        """
        Convert an expression node into an lvalue tree. Only identifiers and
        chains ending in a field or index are assignable.
        """
        if isinstance(expr, Token) and expr.type == 'IDENT':
            return Tree('lvalue', [expr])

        if isinstance(expr, Tree) and expr.data == 'explicit_chain':
            head, *ops = expr.children
            last = ops[-1] if ops else None
            if isinstance(last, Tree) and last.data in ('field', 'index'):
                return Tree('lvalue', [head] + ops)

        raise ParseError("Invalid assignment target", op)

    def parse_ternary_expr(self) -> Node:
        """Parse ternary: cond ? then : else"""
        expr = self.parse_nullish_expr()

        if self.check(TT.QMARK):
            q = self.advance()
            then_expr = self.parse_expr()
            self.expect(TT.COLON, f"Expected ':' in conditional expression, got {_describe(self.current)}")
            else_expr = self.parse_ternary_expr()  # Right associative
            return self._tree('ternary', [expr, then_expr, else_expr], q)

        return expr

    def parse_nullish_expr(self) -> Node:
        """Parse nullish coalescing: expr ?? expr"""
        return self._parse_flat('nullish', (TT.NULLISH,), self.parse_or_expr)

    def parse_or_expr(self) -> Node:
        """Parse logical OR: expr || expr"""
        return self._parse_flat('or', (TT.OR,), self.parse_and_expr)

    def parse_and_expr(self) -> Node:
        """Parse logical AND: expr && expr"""
        return self._parse_flat('and', (TT.AND,), self.parse_bitor_expr)

    def _parse_flat(self, label: str, ops: tuple, operand) -> Node:
        left = operand()

        if not self.check(*ops):
            return left

        # Operands only; every operator at this level is the same
        children = [left]
        first_op = self.current
        while self.match(*ops):
            children.append(operand())

        return self._tree(label, children, first_op)

    def parse_bitor_expr(self) -> Node:
        return self._parse_binary('bitexpr', 'bitop', (TT.PIPE,), self.parse_bitand_expr)

    def parse_bitand_expr(self) -> Node:
        return self._parse_binary('bitexpr', 'bitop', (TT.AMP,), self.parse_equality_expr)

    def parse_equality_expr(self) -> Node:
        """Parse equality: expr == expr, expr != expr"""
        return self._parse_binary('compareexpr', 'cmpop', (TT.EQ, TT.NEQ), self.parse_relational_expr)

    def parse_relational_expr(self) -> Node:
        """Parse ordering: expr < expr etc."""
        return self._parse_binary(
            'compareexpr', 'cmpop', (TT.LT, TT.LTE, TT.GT, TT.GTE), self.parse_add_expr
        )

    def parse_add_expr(self) -> Node:
        """Parse addition/subtraction: expr + expr"""
        return self._parse_binary('addexpr', 'addop', (TT.PLUS, TT.MINUS), self.parse_mul_expr)

    def parse_mul_expr(self) -> Node:
        """Parse multiplication/division: expr * expr"""
        return self._parse_binary('mulexpr', 'mulop', (TT.STAR, TT.SLASH, TT.MOD), self.parse_unary_expr)

    def _parse_binary(self, label: str, op_label: str, ops: tuple, operand) -> Node:
        """Left-associative binary level: label[left, op_label[OP], right]"""
        left = operand()

        while self.check(*ops):
            op = self.advance()
            right = operand()
            op_tree = Tree(op_label, [self._token(op)])
            left = self._tree(label, [left, op_tree, right], op)

        return left

    def parse_unary_expr(self) -> Node:
        """Parse unary operators: -expr, +expr, !expr, ~expr, throw expr"""
        if self.check(TT.THROW):
            throw_tok = self.advance()
            expr = self.parse_unary_expr()
            return self._tree('throwexpr', [expr], throw_tok)

        if self.check(TT.MINUS, TT.PLUS, TT.NEG, TT.TILDE):
            op = self.advance()
            expr = self.parse_unary_expr()
            op_tree = Tree('unaryprefixop', [self._token(op)])
            return self._tree('unaryexpr', [op_tree, expr], op)

        return self.parse_postfix_expr()

    def parse_postfix_expr(self) -> Node:
        """
        Parse postfix expressions:
        - field access: expr.field
        - indexing: expr[index]
        - calls: expr(args)

        Output as explicit_chain when any postfix op is present
        """
        start = self.current
        primary = self.parse_primary_expr()
        ops: List[Node] = []

        while True:
            if self.check(TT.DOT):
                dot = self.advance()
                if not self.check(*_NAME_TOKENS):
                    raise ParseError(f"Expected property name after '.', got {_describe(self.current)}", self.current)
                name = self.advance()
                ops.append(self._tree('field', [Token('IDENT', name.value, line=name.line, column=name.column)], dot))
            elif self.check(TT.LSQB):
                lsqb = self.advance()
                index = self.parse_expr()
                self.expect(TT.RSQB, f"Expected ']', got {_describe(self.current)}")
                ops.append(self._tree('index', [index], lsqb))
            elif self.check(TT.LPAR):
                lpar = self.current
                args = self.parse_arg_list()
                ops.append(self._tree('call', args, lpar))
            else:
                break

        if not ops:
            return primary

        return self._tree('explicit_chain', [primary] + ops, start)

    def parse_arg_list(self) -> List[Node]:
        """Parse ( [expr (, expr)*] )"""
        self.expect(TT.LPAR)
        args: List[Node] = []

        if not self.check(TT.RPAR):
            args.append(self.parse_expr())
            while self.match(TT.COMMA):
                args.append(self.parse_expr())

        self.expect(TT.RPAR, f"Expected ')' after arguments, got {_describe(self.current)}")
        return args

    def parse_primary_expr(self) -> Node:
        """
        Parse primary expressions:
        - Literals: numbers, strings, true, false, null, undefined, void
        - Identifiers and this
        - Parenthesized expressions
        - Array and object literals (optionally prefixed with new)
        - Function literals
        - if expressions
        """
        tok = self.current

        if self.check(*_LITERAL_TOKENS, TT.IDENT, TT.THIS):
            self.advance()
            return self._token(tok)

        if self.match(TT.LPAR):
            expr = self.parse_expr()
            self.expect(TT.RPAR, f"Expected ')', got {_describe(self.current)}")
            return expr

        if self.check(TT.LSQB):
            return self.parse_array_literal()

        if self.check(TT.LBRACE):
            return self.parse_object_literal()

        if self.check(TT.NEW):
            self.advance()
            if self.check(TT.LSQB):
                return self.parse_array_literal()
            if self.check(TT.LBRACE):
                return self.parse_object_literal()
            raise ParseError(f"Expected '[' or '{{' after 'new', got {_describe(self.current)}", self.current)

        if self.check(TT.FUNCTION):
            return self.parse_fn_expr()

        if self.check(TT.IF):
            return self.parse_if_expr()

        if self.check(TT.EOF):
            raise ParseError("Unexpected end of input", tok)

        raise ParseError(f"Unexpected {_describe(tok)}", tok)

    def parse_array_literal(self) -> Tree:
        """Parse [expr, ...] with optional trailing comma"""
        lsqb = self.expect(TT.LSQB)
        items: List[Node] = []

        while not self.check(TT.RSQB):
            items.append(self.parse_expr())
            if not self.match(TT.COMMA):
                break

        self.expect(TT.RSQB, f"Expected ']' after array elements, got {_describe(self.current)}")
        return self._tree('array', items, lsqb)

    def parse_object_literal(self) -> Tree:
        """Parse { key: expr, name(params) { body }, ... }"""
        lbrace = self.expect(TT.LBRACE)
        items: List[Node] = []

        while not self.check(TT.RBRACE):
            items.append(self.parse_object_item())
            if not self.match(TT.COMMA):
                break

        self.expect(TT.RBRACE, f"Expected '}}' after object items, got {_describe(self.current)}")
        return self._tree('object', items, lbrace)

    def parse_object_item(self) -> Tree:
        """
        Parse object item:
        - key: value      (key is a name or a string)
        - name(params) { body }
        """
        key_tok = self.current

        if self.check(TT.IDENT) and self.peek(1).type == TT.LPAR:
            name = self.advance()
            params = self.parse_param_list()
            body = self.parse_block()
            return self._tree('obj_method', [self._token(name), params, body], key_tok)

        if self.check(TT.STRING):
            key = self._token(self.advance())
        elif self.check(*_NAME_TOKENS):
            name = self.advance()
            key = Token('IDENT', name.value, line=name.line, column=name.column)
        else:
            raise ParseError(f"Expected object key, got {_describe(self.current)}", self.current)

        self.expect(TT.COLON, f"Expected ':' after object key, got {_describe(self.current)}")
        value = self.parse_expr()
        return self._tree('obj_field', [key, value], key_tok)

    def parse_fn_expr(self) -> Tree:
        """Parse function [name](params) { body } as a value"""
        fn_tok = self.expect(TT.FUNCTION)
        name = self.advance() if self.check(TT.IDENT) else None
        params = self.parse_param_list()
        body = self.parse_block()
        children: List[Node] = [params, body]
        if name is not None:
            children.append(self._token(name))
        return self._tree('fnexpr', children, fn_tok)

    def parse_param_list(self) -> Tree:
        """Parse (IDENT, IDENT, ...)"""
        lpar = self.expect(TT.LPAR, f"Expected '(' before parameters, got {_describe(self.current)}")
        params: List[Node] = []
        seen = set()

        if not self.check(TT.RPAR):
            while True:
                param = self.expect(TT.IDENT, f"Expected parameter name, got {_describe(self.current)}")
                if param.value in seen:
                    raise ParseError(f"Duplicate parameter '{param.value}'", param)
                seen.add(param.value)
                params.append(self._token(param))
                if not self.match(TT.COMMA):
                    break

        self.expect(TT.RPAR, f"Expected ')' after parameters, got {_describe(self.current)}")
        return self._tree('paramlist', params, lpar)

    def parse_if_expr(self) -> Tree:
        """Parse if (cond) { ... } [else { ... } | else if ...]"""
        if_tok = self.expect(TT.IF)
        self.expect(TT.LPAR, f"Expected '(' after 'if', got {_describe(self.current)}")
        cond = self.parse_expr()
        self.expect(TT.RPAR, f"Expected ')' after condition, got {_describe(self.current)}")
        then_block = self.parse_block()
        children: List[Node] = [cond, then_block]

        if self.match(TT.ELSE):
            if self.check(TT.IF):
                children.append(self.parse_if_expr())
            else:
                children.append(self.parse_block())

        return self._tree('ifexpr', children, if_tok)

def _describe(tok: Tok) -> str:
    if tok.type == TT.EOF:
        return "end of input"
    return f"'{tok.value}'"

# ============================================================================
# Entry points
# ============================================================================

def parse_source(source: str) -> Tree:
    """
    Parse ESP source code to AST.

    Raises LexError or ParseError, both EspSyntaxError subclasses, carrying
    the line and column of the offending token.
    """
    from .lexer_rd import tokenize

    tokens = tokenize(source)
    parser = Parser(tokens)
    return parser.parse()

