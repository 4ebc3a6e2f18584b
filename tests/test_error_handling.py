from __future__ import annotations

import pytest

from tests.support.harness import run_program, run_runtime_case
from esp_ref.interpreter import ExpressionParser, SessionState
from esp_ref.lexer_rd import LexError
from esp_ref.parser_rd import ParseError
from esp_ref.types import (
    EspArityError,
    EspError,
    EspIndexError,
    EspMethodNotFound,
    EspNameError,
    EspResourceError,
    EspRuntimeError,
    EspSyntaxError,
    EspThrow,
    EspTypeError,
)

SCENARIOS = [
    pytest.param("'unterminated", None, LexError, id="lex-error"),
    pytest.param("var = 3", None, ParseError, id="parse-error"),
    pytest.param("a b", None, EspSyntaxError, id="syntax-error-base"),
    pytest.param("missing", None, EspNameError, id="name-error"),
    pytest.param("1 + true", None, EspTypeError, id="type-error"),
    pytest.param("[1][-2]", None, EspIndexError, id="index-error"),
    pytest.param("asInt(1, 2)", None, EspArityError, id="arity-error"),
    pytest.param("asInt('x1')", None, EspTypeError, id="as-int-bad-string"),
    pytest.param("({}).nope()", None, EspMethodNotFound, id="method-not-found"),
    pytest.param("throw 'x'", None, EspRuntimeError, id="throw-is-runtime-error"),
    pytest.param("var a = []; a[1e19] = 1", None, EspResourceError, id="index-growth-huge"),
    pytest.param("[].set(1e9, 1)", None, EspResourceError, id="index-growth-method"),
    pytest.param(
        "1.7976931348623157e308 | 9.9792015476736e291",
        None,
        EspTypeError,
        id="bitwise-out-of-range",
    ),
    pytest.param("~1e300", None, EspTypeError, id="bitwise-not-out-of-range"),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_error_handling(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)


def test_error_hierarchy() -> None:
    assert issubclass(LexError, EspSyntaxError)
    assert issubclass(ParseError, EspSyntaxError)
    assert issubclass(EspSyntaxError, EspError)
    for cls in (EspTypeError, EspNameError, EspIndexError, EspArityError, EspThrow):
        assert issubclass(cls, EspRuntimeError)
    assert issubclass(EspMethodNotFound, EspTypeError)
    assert issubclass(EspResourceError, EspError)
    assert not issubclass(EspResourceError, EspRuntimeError)


RUNTIME_LOCATION_CASES = [
    ("binary-type", "var a = 1;\n  a - 'x'", EspTypeError, 2, 5),
    ("undefined-name", "1 +\n  missing", EspNameError, 2, 3),
    ("method-not-found", "[1]\n  .push(2)", EspMethodNotFound, 2, 3),
    ("bad-index", "var a = [];\na[-1]", EspIndexError, 2, 2),
    ("call-inside-function", "function f() {\n  null.x\n};\nf()", EspTypeError, 2, 7),
]


@pytest.mark.parametrize(
    "name, source, exc_type, exp_line, exp_col",
    RUNTIME_LOCATION_CASES,
    ids=[c[0] for c in RUNTIME_LOCATION_CASES],
)
def test_runtime_error_location(
    name: str, source: str, exc_type: type, exp_line: int, exp_col: int
) -> None:
    with pytest.raises(exc_type) as exc_info:
        run_program(source)

    err = exc_info.value
    assert err.line == exp_line, f"expected line {exp_line}, got {err.line}"
    assert err.column == exp_col, f"expected col {exp_col}, got {err.column}"
    assert f"(line {exp_line}, col {exp_col})" in str(err)


def test_native_exception_is_wrapped() -> None:
    esp = ExpressionParser()

    def explode(x):
        raise ValueError(f"cannot handle {x}")

    esp.set_function("explode", explode)

    with pytest.raises(EspRuntimeError) as exc_info:
        esp.parse("explode(3)")

    err = exc_info.value
    assert "explode" in str(err)
    assert "cannot handle 3.0" in str(err)
    assert isinstance(err.__cause__, ValueError)


def test_native_esp_error_propagates_unwrapped() -> None:
    esp = ExpressionParser()

    def strict(_x):
        raise EspTypeError("strict says no")

    esp.set_function("strict", strict)

    with pytest.raises(EspTypeError, match="strict says no"):
        esp.parse("strict(1)")


def test_session_survives_errors() -> None:
    esp = ExpressionParser()
    esp.parse("var count = 1")

    for bad in ("count +", "count.x.y", "nope()", "throw count"):
        with pytest.raises(EspError):
            esp.parse(bad)
        assert esp.state is SessionState.READY

    assert esp.parse("count + 1").value == 2


def test_last_error_recorded() -> None:
    esp = ExpressionParser()
    assert esp.last_error is None

    with pytest.raises(EspNameError) as exc_info:
        esp.parse("ghost")

    assert esp.last_error is exc_info.value
    assert esp.last_error.name == "ghost"


def test_deep_nesting_is_resource_error() -> None:
    source = "(" * 5000 + "1" + ")" * 5000

    with pytest.raises(EspResourceError):
        run_program(source)


def test_only_esp_errors_escape() -> None:
    esp = ExpressionParser()
    programs = [
        "[1, 2].map(5)",
        "'a'.substring('b')",
        "({}).keys(1)",
        "asDouble([])",
        "var o = {}; o[[]] = 1",
        "typeof()",
        "var a = []; a[1e19] = 1",
        "1.7976931348623157e308 | 9.9792015476736e291",
        "var y = 2\u00b2; y",
    ]

    for source in programs:
        with pytest.raises(EspError):
            esp.parse(source)


def test_array_length_limit_is_configurable(monkeypatch) -> None:
    esp = ExpressionParser(max_array_length=4)
    esp.parse("var a = []; a[3] = 'last'")

    with pytest.raises(EspResourceError) as exc_info:
        esp.parse("a[4] = 'over'")

    assert "array length limit of 4" in str(exc_info.value)
    assert esp.parse("a.size()").value == 4

    monkeypatch.setenv("ESP_MAX_ARRAY_LENGTH", "2")
    with pytest.raises(EspResourceError):
        ExpressionParser().parse("var b = []; b.set(2, 1)")


def test_array_length_limit_leaves_existing_items_writable() -> None:
    esp = ExpressionParser(max_array_length=2)
    esp.parse("var a = [1, 2, 3, 4]")

    assert esp.parse("a[3] = 9; a[3]").value == 9


def test_huge_host_integers_are_type_errors() -> None:
    esp = ExpressionParser()
    esp.set_function("big", lambda: 10**400)

    with pytest.raises(EspTypeError):
        esp.parse("big()")
    with pytest.raises(EspTypeError):
        esp.set_global_value("n", 10**400)

    esp.set_global_value("n", 2**64)
    assert esp.parse("n").value == float(2**64)
