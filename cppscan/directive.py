# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains helpers for locating preprocessor directives in a TokenList.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from cppscan.lexer import TokenKind, TokenList

# Directive names understood by the scanners. Anything else after a '#' is
# still treated as a directive line, but ignored.
DIRECTIVES = frozenset(
    [
        "define",
        "include",
        "embed",
        "if",
        "ifdef",
        "ifndef",
        "elif",
        "else",
        "endif",
    ],
)


@dataclass(frozen=True)
class Directive:
    """
    Represents the token extent of a single directive line.

    `body` is the index of the first token after the directive name and
    `end` the index of the first token past the line (exclusive), so that
    tokens[body:end] are the operands of the directive.
    """

    name: str
    hash_index: int
    name_index: int
    body: int
    end: int
    line: int


def skip_inline(tokens: TokenList, index: int, end: int) -> int:
    """
    Skip whitespace and comments without crossing the end of a line.
    """
    while (
        index < end
        and tokens[index].kind.is_trivia
        and not tokens.has_newline(index)
    ):
        index += 1
    return index


def _name_after_hash(tokens: TokenList, index: int) -> int | None:
    """
    Return the index of the directive name following the '#' at `index`.
    """
    name_index = skip_inline(tokens, index + 1, len(tokens))
    if name_index < len(tokens) and tokens[name_index].kind.is_identifier_like:
        return name_index
    return None


def line_end(tokens: TokenList, index: int) -> int:
    """
    Return the index of the first token after the directive line containing
    `index`. A line ends at whitespace holding a newline, or at a '#' that
    introduces another recognized directive.
    """
    while index < len(tokens):
        if tokens.has_newline(index):
            return index
        if tokens[index].kind is TokenKind.HASH:
            name_index = _name_after_hash(tokens, index)
            if (
                name_index is not None
                and tokens.spelling(name_index) in DIRECTIVES
            ):
                return index
        index += 1
    return index


def directive_at(tokens: TokenList, index: int) -> Directive | None:
    """
    Return the Directive introduced by the '#' at `index`, or None if the
    token is not a '#' followed by a name on the same line.
    """
    if tokens[index].kind is not TokenKind.HASH:
        return None
    name_index = _name_after_hash(tokens, index)
    if name_index is None:
        return None
    return Directive(
        name=tokens.spelling(name_index),
        hash_index=index,
        name_index=name_index,
        body=name_index + 1,
        end=line_end(tokens, name_index + 1),
        line=tokens.line_of(index),
    )


def iter_directives(tokens: TokenList) -> Iterator[Directive]:
    """
    Yield every directive line in `tokens`, in order. The contents of a
    directive line are never themselves treated as directives.
    """
    index = 0
    while index < len(tokens):
        directive = directive_at(tokens, index)
        if directive is None:
            index += 1
            continue
        yield directive
        index = max(directive.end, index + 1)
