"""
Dotted-code hierarchy helpers.

Structure nodes, section bookmarks, XML sections and the cover-page TOC all
derive a tree from codes like "16.2.1". This module owns that logic once:
numeric ordering, prefix expansion, and prefix-tree construction.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


def code_segments(code: str) -> list[str]:
    return [seg for seg in code.split(".") if seg != ""]


def code_sort_key(code: str) -> tuple:
    """
    Sort key ordering codes numerically per segment.

    "16.2" sorts before "16.10". Non-numeric segments sort after numeric
    ones at the same position, lexically among themselves.
    """
    key = []
    for seg in code_segments(code):
        if seg.isdigit():
            key.append((0, int(seg), ""))
        else:
            key.append((1, 0, seg))
    return tuple(key)


def sort_codes(codes: Iterable[str]) -> list[str]:
    return sorted(codes, key=code_sort_key)


def code_depth(code: str) -> int:
    return len(code_segments(code))


def code_prefixes(code: str) -> list[str]:
    """All hierarchy prefixes of a code, shortest first, including itself."""
    parts = code_segments(code)
    return [".".join(parts[: i + 1]) for i in range(len(parts))]


def parent_code(code: str) -> str | None:
    parts = code_segments(code)
    if len(parts) <= 1:
        return None
    return ".".join(parts[:-1])


@dataclass
class CodeTreeNode(Generic[T]):
    """Node in a prefix tree keyed by dotted code."""

    code: str
    items: list[T] = field(default_factory=list)
    children: list["CodeTreeNode[T]"] = field(default_factory=list)
    synthetic: bool = True  # no item carries exactly this code

    @property
    def depth(self) -> int:
        return code_depth(self.code)


def build_code_tree(
    items: Iterable[T],
    key: Callable[[T], str],
) -> list[CodeTreeNode[T]]:
    """
    Group items into a tree with one node per distinct code prefix.

    Every prefix of every item's code gets a node (so "16.2.1" yields nodes
    for "16", "16.2" and "16.2.1"); each item is attached to the node of its
    own code. Children at every level are in numeric code order; items keep
    their input order.
    """
    nodes: dict[str, CodeTreeNode[T]] = {}

    for item in items:
        code = ".".join(code_segments(key(item)))
        if not code:
            continue
        for prefix in code_prefixes(code):
            if prefix not in nodes:
                nodes[prefix] = CodeTreeNode(code=prefix)
        nodes[code].items.append(item)
        nodes[code].synthetic = False

    roots: list[CodeTreeNode[T]] = []
    for code in sort_codes(nodes):
        node = nodes[code]
        parent = parent_code(code)
        if parent is not None and parent in nodes:
            nodes[parent].children.append(node)
        else:
            roots.append(node)

    return roots


def walk_code_tree(roots: list[CodeTreeNode[T]]):
    """Depth-first, pre-order traversal."""
    for node in roots:
        yield node
        yield from walk_code_tree(node.children)
