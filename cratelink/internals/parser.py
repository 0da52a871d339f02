"""Lark parser for crate attribute declarations."""
from __future__ import annotations

import json
from pathlib import Path
from typing import List

from lark import Lark, Token, Tree, UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from cratelink.backend.attributes import MetaItem
from cratelink.backend.link_meta import LinkMetaError
from cratelink.internals.report import Span, span_of

GRAMMAR_PATH = Path(__file__).parent / "link_attrs.lark"

_PARSER = None


def _parser() -> Lark:
    global _PARSER
    if _PARSER is None:
        _PARSER = Lark.open(
            str(GRAMMAR_PATH),
            parser="lalr",
            propagate_positions=True,
            maybe_placeholders=False,
        )
    return _PARSER


def describe_parse_error(e: UnexpectedInput) -> str:
    """Short human description of a lark parse failure."""
    if isinstance(e, UnexpectedEOF):
        return "unexpected end of input"
    if isinstance(e, UnexpectedCharacters):
        return f"unexpected character {e.char!r} at line {e.line}, column {e.column}"
    if isinstance(e, UnexpectedToken):
        if e.token.type == "$END":
            return "unexpected end of input"
        expected = ", ".join(sorted(e.expected)) if e.expected else "nothing"
        return (f"unexpected {e.token.value!r} at line {e.line}, column {e.column} "
                f"(expected one of: {expected})")
    return str(e)


def _build_literal(tree: Tree):
    kind = tree.data
    if kind == "string":
        try:
            return json.loads(tree.children[0].value)
        except json.JSONDecodeError as e:
            raise LinkMetaError("CE4008", span=span_of(tree),
                                reason=f"invalid string literal {tree.children[0].value}: {e.msg}") from None
    if kind == "int":
        return int(tree.children[0].value)
    if kind == "float":
        return float(tree.children[0].value)
    return kind == "true"


def _build_meta_item(tree: Tree) -> MetaItem:
    name_token: Token = tree.children[0]
    span = span_of(tree)
    if tree.data == "word":
        return MetaItem.word(name_token.value, span=span)
    if tree.data == "name_value":
        return MetaItem.name_value(name_token.value, _build_literal(tree.children[1]), span=span)
    items = [_build_meta_item(child) for child in tree.children[1:] if isinstance(child, Tree)]
    return MetaItem.list(name_token.value, items, span=span)


def parse_attributes(src: str) -> List[MetaItem]:
    """Parse ``#[...]`` declarations into attribute items.

    Raises:
        LinkMetaError: CE4008 when the text is not well formed.
    """
    try:
        tree = _parser().parse(src)
    except UnexpectedInput as e:
        line = getattr(e, "line", None)
        col = getattr(e, "column", None)
        span = Span(line, col, line, col) if isinstance(line, int) and line > 0 else None
        raise LinkMetaError("CE4008", span=span, reason=describe_parse_error(e)) from None
    return [_build_meta_item(attr.children[0]) for attr in tree.children]
