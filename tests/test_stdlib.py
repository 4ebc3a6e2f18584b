from __future__ import annotations

import pytest

from tests.support.harness import run_program, run_runtime_case
from esp_ref.types import EspArityError, EspTypeError

SCENARIOS = [
    pytest.param("asInt(2.9)", ("number", 2), None, id="as-int-truncates"),
    pytest.param("asInt(-2.9)", ("number", -2), None, id="as-int-toward-zero"),
    pytest.param("asInt('42.7')", ("number", 42), None, id="as-int-string"),
    pytest.param("asInt(' 7 ')", ("number", 7), None, id="as-int-string-padded"),
    pytest.param("asInt(1 / 0)", None, EspTypeError, id="as-int-infinity"),
    pytest.param("asInt(true)", None, EspTypeError, id="as-int-bool"),
    pytest.param("asInt()", None, EspArityError, id="as-int-arity"),
    pytest.param("asDouble('2.5') + 1", ("number", 3.5), None, id="as-double-string"),
    pytest.param("asDouble(4)", ("number", 4), None, id="as-double-number"),
    pytest.param("asDouble('nope')", None, EspTypeError, id="as-double-bad-string"),
    pytest.param("typeof(1)", ("string", "number"), None, id="typeof-number"),
    pytest.param("typeof('s')", ("string", "string"), None, id="typeof-string"),
    pytest.param("typeof(true)", ("string", "boolean"), None, id="typeof-bool"),
    pytest.param("typeof(null)", ("string", "null"), None, id="typeof-null"),
    pytest.param("typeof(undefined)", ("string", "undefined"), None, id="typeof-undefined"),
    pytest.param("typeof([])", ("string", "array"), None, id="typeof-array"),
    pytest.param("typeof({})", ("string", "object"), None, id="typeof-object"),
    pytest.param("typeof(print)", ("string", "function"), None, id="typeof-builtin"),
    pytest.param("print()", ("undefined", None), None, id="print-returns-undefined"),
]


@pytest.mark.parametrize("source, expectation, expected_exc", SCENARIOS)
def test_stdlib(source: str, expectation, expected_exc) -> None:
    run_runtime_case(source, expectation, expected_exc)


def test_print_renders_values(capsys) -> None:
    run_program("print('total:', 10, 2.5, true, null, [1, 'a'], {k: 1})")

    out = capsys.readouterr().out
    assert out == "total: 10 2.5 true null [1, a] {k: 1}\n"


def test_builtins_can_be_shadowed() -> None:
    assert run_program("var typeof = function(x) { 'mine' }; typeof(1)").value == "mine"
