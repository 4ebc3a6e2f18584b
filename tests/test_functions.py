from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import run_program, run_runtime_case
from esp_ref.interpreter import ExpressionParser
from esp_ref.types import EspFn, EspNameError, EspResourceError, EspTypeError

SCENARIOS = [
    pytest.param(
        "function sq(x) { x * x }; sq(7)",
        ("number", 49),
        None,
        id="decl-and-call",
    ),
    pytest.param(
        "function fl(n) {if (n<2){1} else {n*fl(n-1)}}; fl(5)",
        ("number", 120),
        None,
        id="recursive-factorial",
    ),
    pytest.param(
        "isEven(10); function isEven(n) { n == 0 ? true : isOdd(n - 1) }; "
        "function isOdd(n) { n == 0 ? false : isEven(n - 1) }",
        None,
        None,
        id="hoisted-mutual-recursion",
    ),
    pytest.param(
        "var r = isEven(10); function isEven(n) { n == 0 ? true : isOdd(n - 1) }; "
        "function isOdd(n) { n == 0 ? false : isEven(n - 1) }; r",
        ("bool", True),
        None,
        id="hoisted-value",
    ),
    pytest.param(
        "var f = function(a, b) { a + b }; f(1, 2)",
        ("number", 3),
        None,
        id="anonymous-fn",
    ),
    pytest.param(
        "(function(x) { x + 1 })(41)",
        ("number", 42),
        None,
        id="iife",
    ),
    pytest.param(
        "function f(a, b) { b }; f(1)",
        ("undefined", None),
        None,
        id="missing-arg-undefined",
    ),
    pytest.param(
        "function f(a) { a }; f(1, 2, 3)",
        ("number", 1),
        None,
        id="extra-args-dropped",
    ),
    pytest.param(
        "function f() { var x = 1; }; f()",
        ("undefined", None),
        None,
        id="body-without-expression",
    ),
    pytest.param(
        "function f() { 1; 2; 3 }; f()",
        ("number", 3),
        None,
        id="trailing-expression-value",
    ),
    pytest.param(
        "function make(n) { function() { n } }; var g = make(9); g()",
        ("number", 9),
        None,
        id="closure-captures-param",
    ),
    pytest.param(
        dedent(
            """\
            function counter() {
                var n = 0;
                function() { n = n + 1; n }
            };
            var c = counter();
            c(); c();
            c()
            """
        ),
        ("number", 3),
        None,
        id="closure-shared-state",
    ),
    pytest.param(
        dedent(
            """\
            function counter() { var n = 0; function() { n = n + 1; n } };
            var a = counter();
            var b = counter();
            a(); a();
            b()
            """
        ),
        ("number", 1),
        None,
        id="closures-independent",
    ),
    pytest.param(
        "var fact = function f(n) { n < 2 ? 1 : n * f(n - 1) }; fact(6)",
        ("number", 720),
        None,
        id="named-fn-expr-recursion",
    ),
    pytest.param(
        "var fact = function f(n) { 1 }; f",
        None,
        EspNameError,
        id="named-fn-expr-name-is-local",
    ),
    pytest.param(
        "function apply(fn, v) { fn(v) }; apply(function(x) { x * 3 }, 5)",
        ("number", 15),
        None,
        id="higher-order",
    ),
    pytest.param(
        "function add(a) { function(b) { a + b } }; add(2)(3)",
        ("number", 5),
        None,
        id="curried-call-chain",
    ),
    pytest.param(
        "var o = {n: 2, twice(x) { x * this.n }}; o.twice(21)",
        ("number", 42),
        None,
        id="object-method-this",
    ),
    pytest.param(
        "var o = {n: 5}; o.get = function() { this.n }; o.get()",
        ("number", 5),
        None,
        id="assigned-method-this",
    ),
    pytest.param(
        "this",
        ("undefined", None),
        None,
        id="this-at-top-level",
    ),
    pytest.param(
        "typeof(function() {})",
        ("string", "function"),
        None,
        id="typeof-function",
    ),
    pytest.param(
        "var x = 5; x()",
        None,
        EspTypeError,
        id="call-non-function",
    ),
    pytest.param(
        "undefined()",
        None,
        EspTypeError,
        id="call-undefined",
    ),
    pytest.param(
        "function loop(n) { loop(n + 1) }; loop(0)",
        None,
        EspResourceError,
        id="unbounded-recursion",
    ),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_functions(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)


def test_recursive_function_across_parse_calls() -> None:
    esp = ExpressionParser()
    esp.parse("function fl(n) {if (n<2){1} else {n*fl(n-1)}}")
    result = esp.parse("fl(5)")

    assert result.value == 120


def test_method_valued_property_across_parse_calls() -> None:
    esp = ExpressionParser()
    esp.parse("var obj = {}")
    esp.parse("obj.foo = function(x) {x*x};")
    result = esp.parse("obj.foo(10.0)")

    assert result.value == 100.0


def test_function_value_metadata() -> None:
    fn = run_program("var f = function(a, b, c) { a }; f")

    assert isinstance(fn, EspFn)
    assert fn.number_of_arguments() == 3
    assert fn.params == ["a", "b", "c"]
    assert fn.name is None


def test_declared_function_has_name() -> None:
    fn = run_program("function named(x) { x }; named")

    assert isinstance(fn, EspFn)
    assert fn.name == "named"


def test_call_depth_limit_is_configurable() -> None:
    esp = ExpressionParser(max_call_depth=10)
    esp.parse("function down(n) { n == 0 ? 0 : down(n - 1) }")

    assert esp.parse("down(5)").value == 0
    with pytest.raises(EspResourceError):
        esp.parse("down(50)")

    # depth counter is restored after the failure
    assert esp.parse("down(5)").value == 0


def test_call_depth_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("ESP_MAX_CALL_DEPTH", "3")
    esp = ExpressionParser()
    esp.parse("function down(n) { n == 0 ? 0 : down(n - 1) }")

    assert esp.max_call_depth == 3
    with pytest.raises(EspResourceError):
        esp.parse("down(10)")


def test_invalid_call_depth_rejected() -> None:
    with pytest.raises(ValueError):
        ExpressionParser(max_call_depth=0)
