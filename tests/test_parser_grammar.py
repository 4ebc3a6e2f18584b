from __future__ import annotations

from textwrap import dedent

import pytest

from esp_ref.parser_rd import ParseError, parse_source
from esp_ref.tree import Tree, node_position, pretty, tree_label
from esp_ref.types import EspSyntaxError

PARSER_GRAMMAR_CASES = [
    ("literal-number", "10.5", "both"),
    ("literal-string", "'single' + \"double\"", "both"),
    ("literal-keywords", "[true, false, null, undefined]", "both"),
    ("var-bare", "var a", "both"),
    ("var-assign", "var a = 1", "both"),
    ("var-qassign", "var a ?= 1", "both"),
    ("var-nullish-assign", "var a ??= 1", "both"),
    ("assign-chain", "a = b = 3", "both"),
    ("assign-field", "obj.foo = function(x) {x*x};", "both"),
    ("assign-index", "arr[i] = i * i", "both"),
    ("assign-nested", "a.b[0].c = 1", "both"),
    ("ternary", "a ? b : c ? d : e", "both"),
    ("nullish", "a ?? b ?? c", "both"),
    ("logical", "a && b || !c", "both"),
    ("bitwise", "a & b | ~c", "both"),
    ("comparison", "a < b == c >= d", "both"),
    ("arith", "-a + b * c % d / e", "both"),
    ("call-args", "f(1, 'two', [3])", "both"),
    ("call-chain", "a.b(1).c[2](3)", "both"),
    ("keyword-field", "o.new.if.this", "both"),
    ("array-trailing-comma", "[1, 2, 3,]", "both"),
    ("array-new", "new []", "both"),
    ("object-new", "new {}", "both"),
    ("object-literal", "var obj = {x: 10, y: 20}", "both"),
    ("object-string-key", "({'a b': 1, \"c\": 2})", "both"),
    ("object-method", "var o = {f(x) { x + 1 }, g: 2}", "both"),
    ("object-statement-empty", "{}", "both"),
    ("object-statement-keyword-key", "{if: 1, for: 2}", "both"),
    ("block-statement", "{ var a = 1; a }", "both"),
    ("fn-decl", "function fl(n) {if (n<2){1} else {n*fl(n-1)}}", "both"),
    ("fn-expr-named", "var f = function fact(n) { n }", "both"),
    ("fn-expr-iife", "(function() { 1 })()", "both"),
    ("if-else-if", "if (a) {1} else if (b) {2} else {3}", "both"),
    ("for-range", "for (i: 0..10) {array1[i]=i*i}", "both"),
    ("for-each", "for (x: [1, 2]) { x }", "both"),
    ("throw", "throw {message: 'boom'}", "both"),
    ("no-semi-after-brace", "if (x) {1} 2", "both"),
    ("extra-semis", ";;a;;b;", "both"),
    ("leading-equals", "= 1 + 2", "both"),
    ("leading-equals-ternary", "= (10 < 20)? 10: 20", "both"),
    ("leading-equals-each-statement", "var c = null; var c ??= 10; = c", "both"),
    ("void-literal", "function() { f(); void }", "both"),
    (
        "multiline-program",
        dedent(
            """\
            // running total
            var total = 0;
            for (i: 0..4) {
                total = total + i;
            }
            /* done */
            total
            """
        ),
        "both",
    ),
]


@pytest.mark.parametrize(
    "code, start",
    [pytest.param(code, start, id=name) for name, code, start in PARSER_GRAMMAR_CASES],
)
def test_parser_grammar(code: str, start: str) -> None:
    tree = parse_source(code)
    assert tree_label(tree) == "program"


PARSE_ERROR_LOCATION_CASES = [
    ("missing-rpar", "f(1, 2", 1, 7, "Expected ')' after arguments"),
    ("var-without-name", "var 1 = 2", 1, 5, "Expected variable name after 'var'"),
    ("dangling-operator", "1 + * 2", 1, 5, "Unexpected '*'"),
    ("missing-semicolon", "a = 1 b = 2", 1, 7, "Expected ';' before 'b'"),
    ("bad-assign-target", "1 = 2", 1, 3, "Invalid assignment target"),
    ("call-assign-target", "f() = 2", 1, 5, "Invalid assignment target"),
    ("trailing-prose", "this is plain prose", 1, 6, "Expected ';' before 'is'"),
    ("else-needs-block", "if (x) { 1 } else 2", 1, 19, "Expected '{'"),
    ("duplicate-param", "function f(a, a) { a }", 1, 15, "Duplicate parameter 'a'"),
    ("for-missing-colon", "for (i 0..3) {}", 1, 8, "Expected ':' after loop variable"),
    ("unclosed-array", "[1, 2", 1, 6, "Expected ']' after array elements"),
    ("unclosed-object", "{a: 1", 1, 6, "Expected '}' after object items"),
    ("dot-without-name", "obj.", 1, 5, "Expected property name after '.'"),
    ("new-needs-literal", "new Foo()", 1, 5, "Expected '[' or '{' after 'new'"),
    ("second-line", "var a = 1;\nvar b = ;", 2, 9, "Unexpected ';'"),
    ("empty-parens", "()", 1, 2, "Unexpected ')'"),
]


@pytest.mark.parametrize(
    "name, source, exp_line, exp_col, msg",
    PARSE_ERROR_LOCATION_CASES,
    ids=[c[0] for c in PARSE_ERROR_LOCATION_CASES],
)
def test_parse_error_location(
    name: str, source: str, exp_line: int, exp_col: int, msg: str
) -> None:
    with pytest.raises(ParseError) as exc_info:
        parse_source(source)

    err = exc_info.value
    assert msg in err.message
    assert err.line == exp_line, f"expected line {exp_line}, got {err.line}"
    assert err.column == exp_col, f"expected col {exp_col}, got {err.column}"
    assert f"at line {exp_line}, col {exp_col}" in str(err)


@pytest.mark.parametrize(
    "source",
    [
        "The quick brown fox jumps over the lazy dog.",
        "Hello, world!",
        "esp is fun",
        "1 2 3",
    ],
)
def test_malformed_prose_is_syntax_error(source: str) -> None:
    with pytest.raises(EspSyntaxError):
        parse_source(source)


def _labels(node) -> list:
    return [tree_label(child) for child in node.children]


def test_precedence_shapes() -> None:
    stmt = parse_source("1 + 2 * 3").children[0]
    assert tree_label(stmt) == "addexpr"
    assert tree_label(stmt.children[2]) == "mulexpr"

    stmt = parse_source("a ?? b || c").children[0]
    assert tree_label(stmt) == "nullish"
    assert tree_label(stmt.children[1]) == "or"

    stmt = parse_source("a || b && c").children[0]
    assert tree_label(stmt) == "or"
    assert tree_label(stmt.children[1]) == "and"

    stmt = parse_source("1 - 2 - 3").children[0]
    assert tree_label(stmt) == "addexpr"
    assert tree_label(stmt.children[0]) == "addexpr"


def test_assignment_is_right_associative() -> None:
    stmt = parse_source("x = y = 3").children[0]
    assert tree_label(stmt) == "assign"

    lvalue, rhs = stmt.children
    assert tree_label(lvalue) == "lvalue"
    assert tree_label(rhs) == "assign"


def test_brace_statement_disambiguation() -> None:
    assert _labels(parse_source("{}")) == ["object"]
    assert _labels(parse_source("{ var a = 1; }")) == ["block"]
    assert _labels(parse_source("{ f(x) { x } }")) == ["object"]
    assert _labels(parse_source("{ f(x); }")) == ["block"]
    assert _labels(parse_source("{ 'k': 1 }")) == ["object"]


def test_statement_kinds() -> None:
    program = parse_source(
        "var a = 1; function f() { a }; for (i: 0..2) { i }; for (k: o) { k }; f()"
    )
    assert _labels(program) == ["vardecl", "fndecl", "forrange", "foreach", "explicit_chain"]


def test_else_if_nests() -> None:
    stmt = parse_source("if (a) {1} else if (b) {2} else {3}").children[0]
    assert tree_label(stmt) == "ifexpr"
    assert tree_label(stmt.children[2]) == "ifexpr"
    assert tree_label(stmt.children[2].children[2]) == "block"


def test_method_call_chain_ops() -> None:
    stmt = parse_source("obj.foo(10.0)[1]").children[0]
    assert tree_label(stmt) == "explicit_chain"
    assert _labels(stmt)[1:] == ["field", "call", "index"]


def test_tree_positions() -> None:
    program = parse_source("var a = 1;\n  a +\n 2")
    addexpr = program.children[1]

    assert isinstance(addexpr, Tree)
    assert node_position(addexpr) == (2, 5)
    assert node_position(program.children[0]) == (1, 1)


def test_pretty_renders_labels() -> None:
    rendered = pretty(parse_source("f(1)"))
    assert "program" in rendered
    assert "explicit_chain" in rendered
    assert "call" in rendered


def test_leading_equals_is_an_expression_statement() -> None:
    assert parse_source("= a + 1") == parse_source("a + 1")
    assert _labels(parse_source("= {x: 1}")) == ["object"]

    with pytest.raises(EspSyntaxError):
        parse_source("= var a = 1")
    with pytest.raises(EspSyntaxError):
        parse_source("= = 1")


def test_void_is_a_literal_token() -> None:
    stmt = parse_source("void").children[0]
    assert stmt.type == "VOID"

    # usable as a field name like the other keywords
    assert tree_label(parse_source("o.void").children[0]) == "explicit_chain"
