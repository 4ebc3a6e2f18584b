from __future__ import annotations

import os

import pytest

from prompt_toolkit.document import Document

from esp_ref.interpreter import ExpressionParser
from esp_ref.repl import _handle_slash, _normalize, _open_depth
from esp_ref.repl_highlight import GROUP_STYLE, EspLexer, _highlight_line
from esp_ref.types import EspNameError



def _text(fragments) -> str:
    return "".join(text for _style, text in fragments)


def _style_of(fragments, text: str) -> str:
    for style, frag in fragments:
        if frag == text:
            return style
    raise AssertionError(f"{text!r} not found in {fragments!r}")


def test_open_depth_counts_brackets() -> None:
    assert _open_depth("1 + 2") == 0
    assert _open_depth("function f(x) {") == 1
    assert _open_depth("var a = [1, {") == 2
    assert _open_depth("f(') {')") == 0
    assert _open_depth("'unterminated") == 0


def test_normalize_strips_invisible_characters() -> None:
    assert _normalize("1\u200b + 2\r") == "1 + 2"


def test_highlight_line_styles_tokens() -> None:
    line = "var total = f(1) + 'x' // note"
    fragments = _highlight_line(line)

    assert _text(fragments) == line
    assert _style_of(fragments, "var") == GROUP_STYLE["keyword"]
    assert _style_of(fragments, "f") == GROUP_STYLE["function"]
    assert _style_of(fragments, "1") == GROUP_STYLE["number"]
    assert _style_of(fragments, "'x'") == GROUP_STYLE["string"]
    assert _style_of(fragments, "// note") == GROUP_STYLE["comment"]


def test_highlight_line_marks_lex_errors() -> None:
    line = "x = 'abc"
    fragments = _highlight_line(line)

    assert _text(fragments) == line
    assert fragments[-1] == (GROUP_STYLE["error"], "'abc")


def test_lexer_document_lines() -> None:
    get_line = EspLexer().lex_document(Document("var a\nnull"))

    assert _style_of(get_line(0), "var") == GROUP_STYLE["keyword"]
    assert _style_of(get_line(1), "null") == GROUP_STYLE["constant"]
    assert get_line(5) == [("", "")]


def test_slash_reset(capsys) -> None:
    session = ExpressionParser()
    session.parse("var a = 1")

    assert _handle_slash("/reset", session)
    assert "Environment reset." in capsys.readouterr().out

    with pytest.raises(EspNameError):
        session.parse("a")


def test_slash_py_traceback_toggle(monkeypatch, capsys) -> None:
    monkeypatch.delenv("ESP_DEBUG_PY_TRACE", raising=False)
    session = ExpressionParser()

    assert _handle_slash("/py-traceback on", session)
    assert os.environ.get("ESP_DEBUG_PY_TRACE") == "1"

    assert _handle_slash("/py-traceback", session)
    assert "ESP_DEBUG_PY_TRACE" not in os.environ
    assert "Python traceback: off" in capsys.readouterr().out


def test_slash_unknown_and_plain_input(capsys) -> None:
    session = ExpressionParser()

    assert _handle_slash("/nope", session)
    assert "Unknown command: /nope" in capsys.readouterr().err
    assert not _handle_slash("1 + 1", session)


def test_slash_vars_lists_session_globals(capsys) -> None:
    session = ExpressionParser()
    session.parse("var b = [1, 2]; var a = 'x'")

    assert _handle_slash("/vars", session)
    assert capsys.readouterr().out == "a = x\nb = [1, 2]\n"
