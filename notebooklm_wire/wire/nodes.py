"""Typed node tree for positional wire payloads.

batchexecute responses carry no field names, so every heuristic works by
position and shape. Raw JSON is converted once into a small tagged tree
(``Null | Bool | Number | Text | ListNode``) and the resolvers run as pure
functions over it.

JSON objects never appear in well-formed responses; when they do, their
values are kept in insertion order as a ``ListNode``.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class Null:
    """JSON null."""


@dataclass(frozen=True, slots=True)
class Bool:
    value: bool


@dataclass(frozen=True, slots=True)
class Number:
    value: int | float

    @property
    def is_integral(self) -> bool:
        return isinstance(self.value, int) or float(self.value).is_integer()


@dataclass(frozen=True, slots=True)
class Text:
    value: str


@dataclass(frozen=True, slots=True)
class ListNode:
    items: tuple[Node, ...]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.items)

    def get(self, index: int) -> Node | None:
        """Element at ``index`` or None when out of range."""
        if 0 <= index < len(self.items):
            return self.items[index]
        return None


Node = Union[Null, Bool, Number, Text, ListNode]

NULL = Null()


def from_json(value: Any) -> Node:
    """Convert a decoded JSON value into a node tree."""
    if value is None:
        return NULL
    # bool is an int subclass, so it must be checked first
    if isinstance(value, bool):
        return Bool(value)
    if isinstance(value, (int, float)):
        return Number(value)
    if isinstance(value, str):
        return Text(value)
    if isinstance(value, (list, tuple)):
        return ListNode(tuple(from_json(item) for item in value))
    if isinstance(value, dict):
        return ListNode(tuple(from_json(item) for item in value.values()))
    raise TypeError(f"Unsupported JSON value: {type(value).__name__}")


def parse(text: str | bytes) -> Node:
    """Parse JSON text into a node tree.

    Raises:
        json.JSONDecodeError: If the text is not valid JSON
    """
    return from_json(json.loads(text))


def to_json(node: Node) -> Any:
    """Convert a node tree back into plain Python JSON values."""
    if isinstance(node, ListNode):
        return [to_json(item) for item in node.items]
    if isinstance(node, Null):
        return None
    return node.value


def stringify(node: Node) -> str:
    """Compact JSON rendering used for last-resort substring searches."""
    return json.dumps(to_json(node), separators=(",", ":"), ensure_ascii=False)


# ─── Shape helpers ────────────────────────────────────────────────────────────


def text_value(node: Node | None) -> str | None:
    return node.value if isinstance(node, Text) else None


def number_value(node: Node | None) -> int | float | None:
    return node.value if isinstance(node, Number) else None


def is_list(node: Node | None) -> bool:
    return isinstance(node, ListNode)


def iter_text(node: Node, max_depth: int) -> Iterator[str]:
    """Yield string leaves in document order, descending at most ``max_depth`` levels.

    The root sits at depth 0; leaves deeper than ``max_depth`` are skipped.
    """

    def _walk(current: Node, depth: int) -> Iterator[str]:
        if depth > max_depth:
            return
        if isinstance(current, Text):
            yield current.value
        elif isinstance(current, ListNode):
            for item in current.items:
                yield from _walk(item, depth + 1)

    yield from _walk(node, 0)


def iter_lists(node: Node, max_depth: int) -> Iterator[ListNode]:
    """Yield every list node (root included) in pre-order, bounded by depth."""

    def _walk(current: Node, depth: int) -> Iterator[ListNode]:
        if depth > max_depth or not isinstance(current, ListNode):
            return
        yield current
        for item in current.items:
            yield from _walk(item, depth + 1)

    yield from _walk(node, 0)
