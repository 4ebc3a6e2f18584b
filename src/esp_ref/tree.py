"""Shared helpers for working with the lark Tree/Token nodes the parser builds."""
from __future__ import annotations

from typing import List, Optional, Tuple

from lark import Token, Tree
from typing_extensions import TypeAlias, TypeGuard

Node: TypeAlias = "Tree | Token"


def is_tree(node: object) -> TypeGuard[Tree]:
    return isinstance(node, Tree)

def is_token(node: object) -> TypeGuard[Token]:
    return isinstance(node, Token)

def tree_label(node: object) -> Optional[str]:
    return node.data if is_tree(node) else None

def tree_children(node: object) -> List[Node]:
    if not is_tree(node):
        return []

    return list(node.children)

def node_position(node: object) -> Tuple[Optional[int], Optional[int]]:
    """Best-effort (line, column) for a node; trees fall back to their first token."""
    if is_token(node):
        return getattr(node, "line", None), getattr(node, "column", None)

    if is_tree(node):
        meta = node.meta
        if not getattr(meta, "empty", True):
            return getattr(meta, "line", None), getattr(meta, "column", None)

        for child in node.children:
            line, column = node_position(child)
            if line is not None:
                return line, column

    return None, None

def set_position(tree: Tree, line: Optional[int], column: Optional[int]) -> Tree:
    if line is None:
        return tree

    meta = tree.meta
    meta.line = line
    meta.column = column
    meta.empty = False

    return tree

def pretty(node: Node) -> str:
    if is_tree(node):
        return node.pretty()

    return f"{node.type}\t{node.value!r}\n"
