# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the logical-character cursor used by the lexer.

The first two translation phases of C are handled here rather than in a
separate pass over the buffer:
- Trigraph sequences ("??=", "??(", ...) are replaced by the character they
  stand for.
- A backslash immediately followed by a newline (a line splice) is removed.

Positions are always physical byte offsets into the original buffer, so that
tokens built on top of the cursor can be mapped back onto the source.
"""
from __future__ import annotations

import types
from typing import NamedTuple

TRIGRAPHS = types.MappingProxyType(
    {
        "=": "#",
        "(": "[",
        "/": "\\",
        ")": "]",
        "'": "^",
        "<": "{",
        "!": "|",
        ">": "}",
        "-": "~",
    },
)

_QUESTION = ord("?")
_BACKSLASH = ord("\\")
_LF = ord("\n")
_CR = ord("\r")


class LogicalChar(NamedTuple):
    """
    A logical character and the number of physical bytes it occupies.
    An empty char signals the end of the buffer.
    """

    char: str
    consumed: int


def as_buffer(source: bytes | bytearray | memoryview | str) -> bytes:
    """
    Return `source` as an immutable bytes object.

    Raises
    ------
    TypeError
        If `source` is not a string or bytes-like object.
    """
    if isinstance(source, bytes):
        return source
    if isinstance(source, str):
        return source.encode("utf-8")
    if isinstance(source, (bytearray, memoryview)):
        return bytes(source)
    raise TypeError("'source' must be bytes or str.")


def _trigraph(buffer: bytes, pos: int) -> str | None:
    """
    Return the replacement for a trigraph starting at `pos`, or None.
    """
    if (
        buffer[pos] == _QUESTION
        and pos + 2 < len(buffer)
        and buffer[pos + 1] == _QUESTION
    ):
        return TRIGRAPHS.get(chr(buffer[pos + 2]))
    return None


def _splice_length(buffer: bytes, pos: int) -> int:
    """
    Return the number of bytes of the newline starting at `pos` (0, 1 or 2).
    """
    if pos < len(buffer):
        if buffer[pos] == _LF:
            return 1
        if (
            buffer[pos] == _CR
            and pos + 1 < len(buffer)
            and buffer[pos + 1] == _LF
        ):
            return 2
    return 0


def peek_logical(buffer: bytes, pos: int) -> LogicalChar:
    """
    Return the logical character starting at physical position `pos`.

    Parameters
    ----------
    buffer: bytes
        The source buffer.

    pos: int
        A physical byte offset into `buffer`.

    Returns
    -------
    LogicalChar
        The character and the number of physical bytes it represents,
        including any line splices that precede it. At the end of the buffer
        the character is empty; `consumed` then counts any splices that
        were skipped on the way.
    """
    current = pos
    while current < len(buffer):
        char_len = 1
        char = _trigraph(buffer, current)
        if char is None:
            char = chr(buffer[current])
        else:
            char_len = 3

        if char == "\\":
            newline = _splice_length(buffer, current + char_len)
            if newline:
                current += char_len + newline
                continue

        return LogicalChar(char, current - pos + char_len)

    return LogicalChar("", current - pos)


def logical_text(buffer: bytes, start: int = 0, end: int | None = None) -> str:
    """
    Return the logical spelling of buffer[start:end], with trigraphs
    replaced and line splices removed. Bytes that are not valid UTF-8 are
    replaced.
    """
    if end is None:
        end = len(buffer)
    chars = []
    pos = start
    while pos < end:
        char, consumed = peek_logical(buffer, pos)
        if consumed == 0:
            break
        # Never read past the end of the range, even for a trigraph or
        # splice that straddles it.
        if pos + consumed > end:
            chars.append(buffer[pos:end].decode("latin-1"))
            break
        chars.append(char)
        pos += consumed
    # Logical characters map bytes one-to-one; recover any UTF-8 sequences.
    return "".join(chars).encode("latin-1").decode("utf-8", errors="replace")
