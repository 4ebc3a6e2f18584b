from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .interpreter import ExpressionParser
from .parser_rd import parse_source
from .tree import pretty
from .types import EspError, EspValue
from .utils import log_level_from_env, stringify

def run(src: str, namespace: Optional[object]=None) -> EspValue:
    parser = ExpressionParser(namespace)
    return parser.parse(src)

def _load_source(arg: Optional[str]) -> str:
    """
    Resolve CLI input into source text.
    - None or "-" => read stdin.
    - Existing path => read file contents.
    - Otherwise treat the argument as literal source.
    """

    if arg is None or arg == "-":
        data = sys.stdin.read()
        if not data:
            raise SystemExit("No input provided on stdin")
        return data

    candidate = Path(arg)
    if candidate.exists():
        return candidate.read_text(encoding="utf-8")

    return arg

def _load_namespace(module_name: str) -> object:
    try:
        return importlib.import_module(module_name)
    except ImportError as exc:
        raise SystemExit(f"Cannot import namespace module '{module_name}': {exc}") from None

def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else log_level_from_env()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)

def main(argv: Optional[List[str]]=None) -> None:
    namespace_name = None
    verbose = False
    dump_ast = False
    arg = None
    it = iter(sys.argv[1:] if argv is None else argv)

    for token in it:
        if token in ("--verbose", "-v"):
            verbose = True
            continue

        if token == "--ast":
            dump_ast = True
            continue

        if token.startswith("--namespace="):
            namespace_name = token.split("=", 1)[1]
            continue

        if token == "--namespace":
            try:
                namespace_name = next(it)
            except StopIteration:
                raise SystemExit("--namespace flag requires a module name") from None
            continue

        if arg is None:
            arg = token
        else:
            raise SystemExit(f"Unexpected argument: {token}")

    _configure_logging(verbose)
    source = _load_source(arg or "-")

    try:
        if dump_ast:
            print(pretty(parse_source(source)), end="")
            return

        namespace = _load_namespace(namespace_name) if namespace_name else None
        result = run(source, namespace=namespace)
    except EspError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from None

    print(stringify(result))

if __name__ == "__main__":
    main()
