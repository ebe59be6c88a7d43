# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes that define:
- Tokens from lexing a buffer of C source
- The list type that holds them
- The lexer that produces them
"""
from __future__ import annotations

import logging
import string
import types
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import Enum, auto
from typing import overload

from cppscan.source import as_buffer, logical_text, peek_logical

log = logging.getLogger(__name__)


class TokenKind(Enum):
    """
    The classification of a Token.
    """

    WHITESPACE = auto()
    COMMENT = auto()
    IDENTIFIER = auto()
    NUMBER = auto()
    STRING = auto()
    CHAR = auto()
    OTHER = auto()

    # Preprocessor markers
    HASH = auto()
    HASH_HASH = auto()

    # Punctuators
    LBRACE = auto()
    RBRACE = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LPAREN = auto()
    RPAREN = auto()
    SEMICOLON = auto()
    COMMA = auto()
    COLON = auto()
    QUESTION = auto()
    TILDE = auto()
    DOT = auto()
    ELLIPSIS = auto()
    ARROW = auto()
    INC = auto()
    DEC = auto()
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()
    AMP = auto()
    PIPE = auto()
    CARET = auto()
    BANG = auto()
    ASSIGN = auto()
    LESS = auto()
    GREATER = auto()
    EQ = auto()
    NEQ = auto()
    LEQ = auto()
    GEQ = auto()
    LSHIFT = auto()
    RSHIFT = auto()
    LOGICAL_AND = auto()
    LOGICAL_OR = auto()
    PLUS_ASSIGN = auto()
    MINUS_ASSIGN = auto()
    MUL_ASSIGN = auto()
    DIV_ASSIGN = auto()
    MOD_ASSIGN = auto()
    AND_ASSIGN = auto()
    OR_ASSIGN = auto()
    XOR_ASSIGN = auto()
    LSHIFT_ASSIGN = auto()
    RSHIFT_ASSIGN = auto()

    # Keywords
    KEYWORD_AUTO = auto()
    KEYWORD_BREAK = auto()
    KEYWORD_CASE = auto()
    KEYWORD_CHAR = auto()
    KEYWORD_CONST = auto()
    KEYWORD_CONTINUE = auto()
    KEYWORD_DEFAULT = auto()
    KEYWORD_DO = auto()
    KEYWORD_DOUBLE = auto()
    KEYWORD_ELSE = auto()
    KEYWORD_ENUM = auto()
    KEYWORD_EXTERN = auto()
    KEYWORD_FLOAT = auto()
    KEYWORD_FOR = auto()
    KEYWORD_GOTO = auto()
    KEYWORD_IF = auto()
    KEYWORD_INLINE = auto()
    KEYWORD_INT = auto()
    KEYWORD_LONG = auto()
    KEYWORD_REGISTER = auto()
    KEYWORD_RESTRICT = auto()
    KEYWORD_RETURN = auto()
    KEYWORD_SHORT = auto()
    KEYWORD_SIGNED = auto()
    KEYWORD_SIZEOF = auto()
    KEYWORD_STATIC = auto()
    KEYWORD_STRUCT = auto()
    KEYWORD_SWITCH = auto()
    KEYWORD_TYPEDEF = auto()
    KEYWORD_UNION = auto()
    KEYWORD_UNSIGNED = auto()
    KEYWORD_VOID = auto()
    KEYWORD_VOLATILE = auto()
    KEYWORD_WHILE = auto()
    KEYWORD_ALIGNAS = auto()
    KEYWORD_ALIGNOF = auto()
    KEYWORD_ATOMIC = auto()
    KEYWORD_BITINT = auto()
    KEYWORD_BOOL = auto()
    KEYWORD_COMPLEX = auto()
    KEYWORD_CONSTEXPR = auto()
    KEYWORD_DECIMAL32 = auto()
    KEYWORD_DECIMAL64 = auto()
    KEYWORD_DECIMAL128 = auto()
    KEYWORD_FALSE = auto()
    KEYWORD_GENERIC = auto()
    KEYWORD_IMAGINARY = auto()
    KEYWORD_NORETURN = auto()
    KEYWORD_NULLPTR = auto()
    KEYWORD_PRAGMA_OP = auto()
    KEYWORD_STATIC_ASSERT = auto()
    KEYWORD_THREAD_LOCAL = auto()
    KEYWORD_TRUE = auto()
    KEYWORD_TYPEOF = auto()
    KEYWORD_TYPEOF_UNQUAL = auto()

    @property
    def is_keyword(self) -> bool:
        return self.name.startswith("KEYWORD_")

    @property
    def is_identifier_like(self) -> bool:
        """
        True for identifiers and keywords. The preprocessor makes no
        distinction between the two.
        """
        return self is TokenKind.IDENTIFIER or self.is_keyword

    @property
    def is_trivia(self) -> bool:
        """
        True for tokens that carry no meaning in a directive.
        """
        return self in (TokenKind.WHITESPACE, TokenKind.COMMENT)


KEYWORDS = types.MappingProxyType(
    {
        # C89/C90
        "auto": TokenKind.KEYWORD_AUTO,
        "break": TokenKind.KEYWORD_BREAK,
        "case": TokenKind.KEYWORD_CASE,
        "char": TokenKind.KEYWORD_CHAR,
        "const": TokenKind.KEYWORD_CONST,
        "continue": TokenKind.KEYWORD_CONTINUE,
        "default": TokenKind.KEYWORD_DEFAULT,
        "do": TokenKind.KEYWORD_DO,
        "double": TokenKind.KEYWORD_DOUBLE,
        "else": TokenKind.KEYWORD_ELSE,
        "enum": TokenKind.KEYWORD_ENUM,
        "extern": TokenKind.KEYWORD_EXTERN,
        "float": TokenKind.KEYWORD_FLOAT,
        "for": TokenKind.KEYWORD_FOR,
        "goto": TokenKind.KEYWORD_GOTO,
        "if": TokenKind.KEYWORD_IF,
        "int": TokenKind.KEYWORD_INT,
        "long": TokenKind.KEYWORD_LONG,
        "register": TokenKind.KEYWORD_REGISTER,
        "return": TokenKind.KEYWORD_RETURN,
        "short": TokenKind.KEYWORD_SHORT,
        "signed": TokenKind.KEYWORD_SIGNED,
        "sizeof": TokenKind.KEYWORD_SIZEOF,
        "static": TokenKind.KEYWORD_STATIC,
        "struct": TokenKind.KEYWORD_STRUCT,
        "switch": TokenKind.KEYWORD_SWITCH,
        "typedef": TokenKind.KEYWORD_TYPEDEF,
        "union": TokenKind.KEYWORD_UNION,
        "unsigned": TokenKind.KEYWORD_UNSIGNED,
        "void": TokenKind.KEYWORD_VOID,
        "volatile": TokenKind.KEYWORD_VOLATILE,
        "while": TokenKind.KEYWORD_WHILE,
        # C99
        "inline": TokenKind.KEYWORD_INLINE,
        "restrict": TokenKind.KEYWORD_RESTRICT,
        "_Bool": TokenKind.KEYWORD_BOOL,
        "_Complex": TokenKind.KEYWORD_COMPLEX,
        "_Imaginary": TokenKind.KEYWORD_IMAGINARY,
        # C11
        "_Alignas": TokenKind.KEYWORD_ALIGNAS,
        "_Alignof": TokenKind.KEYWORD_ALIGNOF,
        "_Atomic": TokenKind.KEYWORD_ATOMIC,
        "_Generic": TokenKind.KEYWORD_GENERIC,
        "_Noreturn": TokenKind.KEYWORD_NORETURN,
        "_Static_assert": TokenKind.KEYWORD_STATIC_ASSERT,
        "_Thread_local": TokenKind.KEYWORD_THREAD_LOCAL,
        "_Pragma": TokenKind.KEYWORD_PRAGMA_OP,
        # C23
        "alignas": TokenKind.KEYWORD_ALIGNAS,
        "alignof": TokenKind.KEYWORD_ALIGNOF,
        "bool": TokenKind.KEYWORD_BOOL,
        "constexpr": TokenKind.KEYWORD_CONSTEXPR,
        "false": TokenKind.KEYWORD_FALSE,
        "nullptr": TokenKind.KEYWORD_NULLPTR,
        "static_assert": TokenKind.KEYWORD_STATIC_ASSERT,
        "thread_local": TokenKind.KEYWORD_THREAD_LOCAL,
        "true": TokenKind.KEYWORD_TRUE,
        "typeof": TokenKind.KEYWORD_TYPEOF,
        "typeof_unqual": TokenKind.KEYWORD_TYPEOF_UNQUAL,
        "_BitInt": TokenKind.KEYWORD_BITINT,
        "_Decimal32": TokenKind.KEYWORD_DECIMAL32,
        "_Decimal64": TokenKind.KEYWORD_DECIMAL64,
        "_Decimal128": TokenKind.KEYWORD_DECIMAL128,
        # Alternate spellings found in common headers
        "__inline": TokenKind.KEYWORD_INLINE,
        "__inline__": TokenKind.KEYWORD_INLINE,
        "__restrict": TokenKind.KEYWORD_RESTRICT,
        "__restrict__": TokenKind.KEYWORD_RESTRICT,
        "__const": TokenKind.KEYWORD_CONST,
        "__const__": TokenKind.KEYWORD_CONST,
        "__volatile__": TokenKind.KEYWORD_VOLATILE,
        "__signed__": TokenKind.KEYWORD_SIGNED,
        "__alignof__": TokenKind.KEYWORD_ALIGNOF,
        "__typeof__": TokenKind.KEYWORD_TYPEOF,
    },
)

# Spellings are in logical characters. Digraphs map onto the kind of the
# token they stand for.
PUNCTUATORS = types.MappingProxyType(
    {
        "{": TokenKind.LBRACE,
        "}": TokenKind.RBRACE,
        "[": TokenKind.LBRACKET,
        "]": TokenKind.RBRACKET,
        "(": TokenKind.LPAREN,
        ")": TokenKind.RPAREN,
        ";": TokenKind.SEMICOLON,
        ",": TokenKind.COMMA,
        ":": TokenKind.COLON,
        "?": TokenKind.QUESTION,
        "~": TokenKind.TILDE,
        ".": TokenKind.DOT,
        "...": TokenKind.ELLIPSIS,
        "->": TokenKind.ARROW,
        "++": TokenKind.INC,
        "--": TokenKind.DEC,
        "+": TokenKind.PLUS,
        "-": TokenKind.MINUS,
        "*": TokenKind.STAR,
        "/": TokenKind.SLASH,
        "%": TokenKind.PERCENT,
        "&": TokenKind.AMP,
        "|": TokenKind.PIPE,
        "^": TokenKind.CARET,
        "!": TokenKind.BANG,
        "=": TokenKind.ASSIGN,
        "<": TokenKind.LESS,
        ">": TokenKind.GREATER,
        "==": TokenKind.EQ,
        "!=": TokenKind.NEQ,
        "<=": TokenKind.LEQ,
        ">=": TokenKind.GEQ,
        "<<": TokenKind.LSHIFT,
        ">>": TokenKind.RSHIFT,
        "&&": TokenKind.LOGICAL_AND,
        "||": TokenKind.LOGICAL_OR,
        "+=": TokenKind.PLUS_ASSIGN,
        "-=": TokenKind.MINUS_ASSIGN,
        "*=": TokenKind.MUL_ASSIGN,
        "/=": TokenKind.DIV_ASSIGN,
        "%=": TokenKind.MOD_ASSIGN,
        "&=": TokenKind.AND_ASSIGN,
        "|=": TokenKind.OR_ASSIGN,
        "^=": TokenKind.XOR_ASSIGN,
        "<<=": TokenKind.LSHIFT_ASSIGN,
        ">>=": TokenKind.RSHIFT_ASSIGN,
        "<:": TokenKind.LBRACKET,
        ":>": TokenKind.RBRACKET,
        "<%": TokenKind.LBRACE,
        "%>": TokenKind.RBRACE,
        "%:": TokenKind.HASH,
        "%:%:": TokenKind.HASH_HASH,
    },
)
MAX_PUNCTUATOR = max(len(p) for p in PUNCTUATORS)

WHITESPACE = frozenset(" \t\n\v\f\r")
DIGITS = frozenset(string.digits)
HEX_DIGITS = frozenset(string.hexdigits)
ALNUM = frozenset(string.ascii_letters + string.digits)
IDENTIFIER_START = frozenset(string.ascii_letters + "_")
ENCODING_PREFIXES = frozenset(["L", "u", "U", "u8"])


@dataclass(frozen=True)
class Token:
    """
    Represents a classified slice of a source buffer.
    """

    kind: TokenKind
    offset: int
    length: int

    @property
    def end(self) -> int:
        """
        The physical offset one past the last byte of this token.
        """
        return self.offset + self.length


class TokenList(Sequence):
    """
    An ordered list of Tokens that exactly covers a source buffer.
    Tokens are identified by their index in the list.
    """

    def __init__(self, buffer: bytes, tokens: list[Token] | None = None):
        self._buffer = buffer
        self._tokens: list[Token] = [] if tokens is None else tokens

    @property
    def buffer(self) -> bytes:
        return self._buffer

    @overload
    def __getitem__(self, index: int) -> Token: ...

    @overload
    def __getitem__(self, index: slice) -> list[Token]: ...

    def __getitem__(self, index: int | slice) -> Token | list[Token]:
        return self._tokens[index]

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(self._tokens)

    def __repr__(self) -> str:
        return f"TokenList(size={len(self._tokens)})"

    def append(self, token: Token) -> None:
        self._tokens.append(token)

    def raw(self, index: int) -> bytes:
        """
        Return the physical bytes of the token at `index`.
        """
        token = self._tokens[index]
        return self._buffer[token.offset : token.end]

    def text(self, index: int) -> str:
        """
        Return the physical text of the token at `index`, exactly as it
        appears in the buffer.
        """
        return self.raw(index).decode("utf-8", errors="replace")

    def text_between(self, start: int, end: int) -> str:
        """
        Return the physical text covered by tokens [start, end).
        """
        if start >= end:
            return ""
        first = self._tokens[start].offset
        last = self._tokens[end - 1].end
        return self._buffer[first:last].decode("utf-8", errors="replace")

    def spelling(self, index: int) -> str:
        """
        Return the logical spelling of the token at `index`: trigraphs
        replaced and line splices removed.
        """
        token = self._tokens[index]
        return logical_text(self._buffer, token.offset, token.end)

    def matches(self, index: int, spelling: str) -> bool:
        """
        Return True if the token at `index` is spelled `spelling`.
        """
        return self.spelling(index) == spelling

    def find_next(self, start: int, end: int, kind: TokenKind) -> int:
        """
        Return the index of the first token of `kind` in [start, end).
        Returns the clamped end of the range if there is no such token.
        """
        limit = min(end, len(self._tokens))
        for index in range(start, limit):
            if self._tokens[index].kind is kind:
                return index
        return limit

    def skip_trivia(self, index: int, end: int | None = None) -> int:
        """
        Return the index of the first token at or after `index` that is not
        whitespace or a comment.
        """
        if end is None:
            end = len(self._tokens)
        while index < end and self._tokens[index].kind.is_trivia:
            index += 1
        return index

    def has_newline(self, index: int) -> bool:
        """
        Return True if the token at `index` is whitespace that contains a
        logical newline, i.e. ends a directive line.
        """
        if self._tokens[index].kind is not TokenKind.WHITESPACE:
            return False
        return "\n" in self.spelling(index)

    def line_of(self, index: int) -> int:
        """
        Return the 1-based physical line on which the token at `index`
        starts.
        """
        if index >= len(self._tokens):
            return self._buffer.count(b"\n") + 1
        return self._buffer.count(b"\n", 0, self._tokens[index].offset) + 1


class Lexer:
    """
    A lexer for C source text.

    Every step reads logical characters through the cursor, but tokens are
    recorded as physical (offset, length) spans.
    """

    def __init__(self, source: bytes | bytearray | memoryview | str) -> None:
        self.buffer = as_buffer(source)
        self.pos = 0
        self.tokens = TokenList(self.buffer)

    def read(self, pos: int | None = None) -> tuple[str, int]:
        """
        Return the logical character at `pos` (default: the current
        position) and the number of physical bytes it occupies.
        """
        if pos is None:
            pos = self.pos
        return peek_logical(self.buffer, pos)

    def eos(self) -> bool:
        """
        Return True when the end of the buffer is reached.
        """
        return self.pos >= len(self.buffer)

    def emit(self, kind: TokenKind, end: int) -> Token:
        """
        Record a token from the current position up to `end` and advance.
        """
        token = Token(kind, self.pos, end - self.pos)
        self.tokens.append(token)
        self.pos = end
        return token

    def _skip(self, pos: int, chars: frozenset[str]) -> int:
        """
        Return the position after a run of logical characters from `chars`.
        """
        while True:
            char, consumed = self.read(pos)
            if not char or char not in chars:
                return pos
            pos += consumed

    def _is_ucn(self, pos: int) -> bool:
        """
        Return True if a universal character name (\\u or \\U followed by a
        hex digit) starts at `pos`.
        """
        char, consumed = self.read(pos)
        if char != "\\":
            return False
        u, u_consumed = self.read(pos + consumed)
        if u not in ("u", "U"):
            return False
        digit, _ = self.read(pos + consumed + u_consumed)
        return digit in HEX_DIGITS

    def _is_identifier_char(self, char: str, pos: int, start: bool) -> bool:
        if char in IDENTIFIER_START or char >= "\x80":
            return True
        if not start and char in DIGITS:
            return True
        return char == "\\" and self._is_ucn(pos)

    def whitespace(self) -> Token:
        """
        Construct a single token from a run of whitespace.
        """
        end = self._skip(self.pos, WHITESPACE)
        return self.emit(TokenKind.WHITESPACE, end)

    def comment(self) -> Token:
        """
        Construct a line or block comment. An unterminated block comment
        runs to the end of the buffer.
        """
        _, consumed = self.read()
        pos = self.pos + consumed
        marker, consumed = self.read(pos)
        pos += consumed

        if marker == "/":
            while True:
                char, consumed = self.read(pos)
                if char in ("\n", ""):
                    break
                pos += consumed
        else:
            while True:
                char, consumed = self.read(pos)
                pos += consumed
                if not char:
                    break
                if char == "*":
                    char, consumed = self.read(pos)
                    if char == "/":
                        pos += consumed
                        break
        return self.emit(TokenKind.COMMENT, pos)

    def hash_marker(self) -> Token:
        """
        Construct a # or ## marker.
        """
        _, consumed = self.read()
        pos = self.pos + consumed
        char, consumed = self.read(pos)
        if char == "#":
            return self.emit(TokenKind.HASH_HASH, pos + consumed)
        return self.emit(TokenKind.HASH, pos)

    def identifier(self) -> Token:
        """
        Construct an identifier or keyword.

        <identifier> := [<alpha>|'_'|<ucn>][<alpha>|<digit>|'_'|<ucn>]*
        """
        pos = self.pos
        start = True
        while True:
            char, consumed = self.read(pos)
            if not char or not self._is_identifier_char(char, pos, start):
                break
            pos += consumed
            start = False

        spelling = logical_text(self.buffer, self.pos, pos)
        if spelling in ENCODING_PREFIXES and self.read(pos)[0] in ('"', "'"):
            return self.literal(pos)
        kind = KEYWORDS.get(spelling, TokenKind.IDENTIFIER)
        return self.emit(kind, pos)

    def number(self) -> Token:
        """
        Construct a preprocessing number. These cannot necessarily be
        evaluated (and may not be valid syntax).

        <exponent> := ['e'|'E'|'p'|'P']['+'|'-']
        <number> := .?<digit>[<alpha>|<digit>|'_'|'.'|<exponent>|''']*

        A digit separator ' is only part of the number when an alphanumeric
        character follows it.
        """
        prev, consumed = self.read()
        pos = self.pos + consumed
        while True:
            char, consumed = self.read(pos)
            if char == "'":
                following, _ = self.read(pos + consumed)
                if following not in ALNUM:
                    break
            elif char in ("+", "-"):
                if prev not in ("e", "E", "p", "P"):
                    break
            elif not char or not (char in ALNUM or char in ("_", ".")):
                break
            pos += consumed
            prev = char
        return self.emit(TokenKind.NUMBER, pos)

    def literal(self, quote_pos: int | None = None) -> Token:
        """
        Construct a string or character literal, including any encoding
        prefix before `quote_pos`. An escaped quote does not close the
        literal; an unterminated literal runs to the end of the buffer.
        """
        if quote_pos is None:
            quote_pos = self.pos
        quote, consumed = self.read(quote_pos)
        pos = quote_pos + consumed
        while True:
            char, consumed = self.read(pos)
            pos += consumed
            if not char or char == quote:
                break
            if char == "\\":
                _, consumed = self.read(pos)
                pos += consumed

        kind = TokenKind.STRING if quote == '"' else TokenKind.CHAR
        return self.emit(kind, pos)

    def punctuator(self) -> Token:
        """
        Construct a punctuator using maximal munch. Anything unrecognized
        becomes a single-character OTHER token.
        """
        chars = []
        ends = []
        pos = self.pos
        while len(chars) < MAX_PUNCTUATOR:
            char, consumed = self.read(pos)
            if not char:
                break
            pos += consumed
            chars.append(char)
            ends.append(pos)

        for n in range(len(chars), 0, -1):
            kind = PUNCTUATORS.get("".join(chars[:n]))
            if kind is not None:
                return self.emit(kind, ends[n - 1])
        return self.emit(TokenKind.OTHER, ends[0])

    def tokenize_one(self) -> Token:
        """
        Consume and return the next token.
        """
        char, consumed = self.read()
        if not char:
            # Only line splices remain before the end of the buffer.
            return self.emit(TokenKind.WHITESPACE, self.pos + consumed)

        following, _ = self.read(self.pos + consumed)
        if char in WHITESPACE:
            return self.whitespace()
        if char == "/" and following in ("/", "*"):
            return self.comment()
        if char == "#":
            return self.hash_marker()
        if self._is_identifier_char(char, self.pos, start=True):
            return self.identifier()
        if char in DIGITS or (char == "." and following in DIGITS):
            return self.number()
        if char in ('"', "'"):
            return self.literal()
        return self.punctuator()

    def tokenize(self) -> TokenList:
        """
        Return a TokenList covering the whole buffer.
        """
        while not self.eos():
            self.tokenize_one()
        return self.tokens


def tokenize(source: bytes | bytearray | memoryview | str) -> TokenList:
    """
    Tokenize `source`.

    Parameters
    ----------
    source: bytes | str
        The source buffer. Strings are encoded as UTF-8.

    Returns
    -------
    TokenList
        Tokens that contiguously cover every byte of the buffer.

    Raises
    ------
    TypeError
        If `source` is not a string or bytes-like object.
    """
    return Lexer(source).tokenize()
