"""Interactive REPL for ESP, powered by prompt_toolkit."""

from __future__ import annotations

import os
import re
import sys
import traceback
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.shortcuts import clear

from .interpreter import ExpressionParser
from .lexer_rd import LexError, tokenize
from .repl_highlight import EspLexer
from .token_types import TT
from .types import EspError, EspUndefined, StdlibFunction
from .utils import ENV_DEBUG_PY_TRACE, debug_py_trace_enabled, stringify

# Zero-width and invisible characters to strip from input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# Slash commands: name => (description, argument_hint).
_SLASH_CMDS = {
    "/clear": ("Clear the terminal screen", ""),
    "/py-traceback": ("Toggle Python traceback on errors", "[on|off]"),
    "/reset": ("Reset the REPL environment", ""),
    "/vars": ("List variables defined in this session", ""),
}

_DEPTH_OPEN = {TT.LPAR, TT.LSQB, TT.LBRACE}
_DEPTH_CLOSE = {TT.RPAR, TT.RSQB, TT.RBRACE}


def _open_depth(text: str) -> int:
    """Count brackets still open at the end of *text*; 0 when balanced or unlexable."""
    try:
        tokens = tokenize(text)
    except LexError:
        return 0

    depth = 0
    for tok in tokens:
        if tok.type in _DEPTH_OPEN:
            depth += 1
        elif tok.type in _DEPTH_CLOSE:
            depth = max(depth - 1, 0)

    return depth


class _SlashCompleter(Completer):
    """Autocomplete slash commands on the primary prompt."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/"):
            return

        for cmd, (desc, hint) in _SLASH_CMDS.items():
            if cmd.startswith(text):
                yield Completion(
                    cmd,
                    start_position=-len(text),
                    display_meta=desc,
                )


def _handle_slash(line: str, session: ExpressionParser) -> bool:
    """Handle slash commands. Returns True if the line was a command."""
    stripped = line.strip()
    if not stripped.startswith("/"):
        return False

    parts = stripped.split(None, 1)
    cmd = parts[0]
    arg = parts[1] if len(parts) > 1 else ""

    if cmd == "/clear":
        clear()
        return True

    if cmd == "/py-traceback":
        if arg.lower() in ("on", "1", "true", "yes"):
            os.environ[ENV_DEBUG_PY_TRACE] = "1"
        elif arg.lower() in ("off", "0", "false", "no"):
            os.environ.pop(ENV_DEBUG_PY_TRACE, None)
        elif arg == "":
            if debug_py_trace_enabled():
                os.environ.pop(ENV_DEBUG_PY_TRACE, None)
            else:
                os.environ[ENV_DEBUG_PY_TRACE] = "1"
        else:
            print("Usage: /py-traceback [on|off]", file=sys.stderr)
            return True

        state = "on" if debug_py_trace_enabled() else "off"
        print(f"Python traceback: {state}")
        return True

    if cmd == "/reset":
        session.reset()
        print("Environment reset.")
        return True

    if cmd == "/vars":
        for name, value in sorted(session.global_frame.vars.items()):
            if isinstance(value, StdlibFunction):
                continue
            print(f"{name} = {stringify(value)}")
        return True

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return True


def _normalize(text: str) -> str:
    """Strip invisible characters from input."""
    return _INVISIBLE_RE.sub("", text)


def _compute_indent(text: str) -> str:
    """Indent the next continuation line by four spaces per open bracket."""
    return " " * (4 * _open_depth(text))


def repl() -> None:
    """Interactive read-eval-print loop with prompt_toolkit."""
    session_state = ExpressionParser()

    history = InMemoryHistory()
    lexer = EspLexer()

    bindings = KeyBindings()

    @bindings.add("backspace")
    def _backspace(event):
        buf = event.app.current_buffer
        buf.delete_before_cursor(1)
        if buf.text.startswith("/"):
            buf.start_completion()

    @bindings.add("enter")
    def _enter(event):
        buf = event.app.current_buffer
        text = buf.text

        if text.startswith("/"):
            buf.validate_and_handle()
            return

        # Unclosed brackets keep the input open.
        if _open_depth(text) > 0:
            buf.insert_text("\n" + _compute_indent(text))
            return

        buf.validate_and_handle()

    prompt: PromptSession[str] = PromptSession(
        history=history,
        lexer=lexer,
        completer=_SlashCompleter(),
        complete_while_typing=True,
        key_bindings=bindings,
        multiline=True,
        prompt_continuation="... ",
    )

    print("esp repl - Ctrl-D to exit, / for commands")

    while True:
        try:
            text = prompt.prompt(">>> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        text = _normalize(text)
        if not text.strip():
            continue

        if _handle_slash(text, session_state):
            continue

        try:
            result = session_state.parse(text)
        except EspError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            if debug_py_trace_enabled() and exc.__traceback__ is not None:
                print("\nPython traceback:", file=sys.stderr)
                print(
                    "".join(traceback.format_tb(exc.__traceback__)),
                    file=sys.stderr,
                    end="",
                )
            continue

        if not isinstance(result, EspUndefined):
            print(stringify(result))
