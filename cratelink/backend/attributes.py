"""Crate attribute model.

An exported attribute is one of three shapes::

    word            #[link(static)]
    name = value    #[link(name = "foo")]
    name(items...)  #[link(cfg(debug, level = 2))]

Values are literals: strings, integers, floats or booleans.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from cratelink.internals.report import Span


LiteralValue = Union[str, int, float, bool]


class MetaKind(Enum):
    WORD = "word"
    NAME_VALUE = "name_value"
    LIST = "list"


@dataclass(frozen=True)
class MetaItem:
    """A single attribute item. Spans are carried for diagnostics only."""
    name: str
    kind: MetaKind
    value: Optional[LiteralValue] = None
    items: tuple[MetaItem, ...] = ()
    span: Optional[Span] = field(default=None, compare=False, repr=False)

    @classmethod
    def word(cls, name: str, span: Optional[Span] = None) -> MetaItem:
        return cls(name, MetaKind.WORD, span=span)

    @classmethod
    def name_value(cls, name: str, value: LiteralValue, span: Optional[Span] = None) -> MetaItem:
        return cls(name, MetaKind.NAME_VALUE, value=value, span=span)

    @classmethod
    def list(cls, name: str, items, span: Optional[Span] = None) -> MetaItem:
        return cls(name, MetaKind.LIST, items=tuple(items), span=span)

    @property
    def value_str(self) -> Optional[str]:
        """The value when this is ``name = "string"``, else None."""
        if self.kind is MetaKind.NAME_VALUE and isinstance(self.value, str):
            return self.value
        return None

    def __str__(self) -> str:
        return meta_item_to_str(self)


_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\0": "\\0",
}


def lit_to_str(value: LiteralValue) -> str:
    """Print a literal the way it would be written in source.

    Examples:
        "foo"  -> '"foo"'
        True   -> 'true'
        42     -> '42'
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    out = []
    for ch in value:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif not ch.isprintable():
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def meta_item_to_str(item: MetaItem) -> str:
    if item.kind is MetaKind.WORD:
        return item.name
    if item.kind is MetaKind.NAME_VALUE:
        return f"{item.name} = {lit_to_str(item.value)}"
    inner = ", ".join(meta_item_to_str(i) for i in item.items)
    return f"{item.name}({inner})"


def sort_meta_items(items) -> list[MetaItem]:
    """Sort items by name, recursively, so declaration order is irrelevant.

    Items sharing a name are ordered by their printed form.
    """
    normalized = []
    for item in items:
        if item.kind is MetaKind.LIST:
            item = MetaItem(item.name, MetaKind.LIST, items=tuple(sort_meta_items(item.items)),
                            span=item.span)
        normalized.append(item)
    return sorted(normalized, key=lambda m: (m.name, meta_item_to_str(m)))
