# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the evaluator for preprocessor constant expressions, as used by
#if and #elif.
"""
from __future__ import annotations

import logging
import os
import re
import types
from collections.abc import Callable, Iterable

import numpy as np

from cppscan.lexer import TokenKind, TokenList
from cppscan.macros import MacroTable
from cppscan.resolver import resolve_include
from cppscan.util import unquote

log = logging.getLogger(__name__)

# Values reported by __has_c_attribute for the standard attributes.
C_ATTRIBUTES = types.MappingProxyType(
    {
        "deprecated": 201904,
        "fallthrough": 201904,
        "maybe_unused": 201904,
        "nodiscard": 201904,
        "noreturn": 202202,
        "unsequenced": 202311,
        "reproducible": 202311,
    },
)

_INTEGER = re.compile(
    r"""
    (?:
        0[xX](?P<hex>[0-9a-fA-F]+)
      | 0[bB](?P<bin>[01]+)
      | (?P<oct>0[0-7]*)
      | (?P<dec>[1-9][0-9]*)
    )
    [uU]?(?:ll|LL|[lL]|wb|WB)?[uU]?
    """,
    re.VERBOSE,
)

_SIMPLE_ESCAPES = types.MappingProxyType(
    {
        "'": 0x27,
        '"': 0x22,
        "?": 0x3F,
        "\\": 0x5C,
        "a": 0x07,
        "b": 0x08,
        "f": 0x0C,
        "n": 0x0A,
        "r": 0x0D,
        "t": 0x09,
        "v": 0x0B,
    },
)

_UNARY_OPERATORS = types.MappingProxyType(
    {
        TokenKind.PLUS: "+",
        TokenKind.MINUS: "-",
        TokenKind.BANG: "!",
        TokenKind.TILDE: "~",
    },
)


class ParseError(ValueError):
    """
    Represents a structural error in a preprocessor expression.
    """


def to_int64(value: int) -> np.int64:
    """
    Convert a Python integer to a 64-bit value, wrapping as two's
    complement. Preprocessor always uses 64-bit arithmetic!
    """
    return np.int64(((value + 2**63) % 2**64) - 2**63)


def parse_integer(text: str) -> int | None:
    """
    Convert a C integer literal to a Python integer.

    The base is detected from the prefix (0x hex, 0b binary, leading 0
    octal, decimal otherwise). Suffixes and digit separators are ignored.

    Returns
    -------
    int | None
        The value, or None if `text` is not an integer literal.
    """
    match = _INTEGER.fullmatch(text.replace("'", ""))
    if match is None:
        return None
    if match.group("hex") is not None:
        return int(match.group("hex"), 16)
    if match.group("bin") is not None:
        return int(match.group("bin"), 2)
    if match.group("oct") is not None:
        return int(match.group("oct"), 8)
    return int(match.group("dec"), 10)


def parse_char_constant(spelling: str) -> int:
    """
    Convert a character constant (e.g. 'a', '\\n', L'\\x41') to its integer
    value. Multi-character constants combine their characters 8 bits at a
    time, most significant first.
    """
    body = unquote(spelling, "'")
    values = []
    i = 0
    while i < len(body):
        if body[i] != "\\" or i + 1 >= len(body):
            values.append(ord(body[i]))
            i += 1
            continue

        escape = body[i + 1]
        if escape in _SIMPLE_ESCAPES:
            values.append(_SIMPLE_ESCAPES[escape])
            i += 2
        elif escape in ("x", "X"):
            j = i + 2
            while j < len(body) and body[j] in "0123456789abcdefABCDEF":
                j += 1
            values.append(int(body[i + 2 : j] or "0", 16))
            i = j
        elif escape in "01234567":
            j = i + 1
            while j < len(body) and j < i + 4 and body[j] in "01234567":
                j += 1
            values.append(int(body[i + 1 : j], 8))
            i = j
        else:
            values.append(ord(escape))
            i += 2

    result = 0
    for value in values:
        result = (result << 8) | (value & 0xFF) if len(values) > 1 else value
    return result


class ExpressionEvaluator:
    """
    A recursive-descent evaluator for preprocessor expressions over the
    tokens [start, end) of a TokenList.

    Precedence, lowest to highest:
    <conditional> := <logical-or>['?'<conditional>':'<conditional>]?
    <logical-or>  := <logical-and>['||'<logical-and>]*
    <logical-and> := <bitwise-or>['&&'<bitwise-or>]*
    <bitwise-or>  := <bitwise-xor>['|'<bitwise-xor>]*
    <bitwise-xor> := <bitwise-and>['^'<bitwise-and>]*
    <bitwise-and> := <equality>['&'<equality>]*
    <equality>    := <relational>[['=='|'!=']<relational>]*
    <relational>  := <shift>[['<'|'>'|'<='|'>=']<shift>]*
    <shift>       := <additive>[['<<'|'>>']<additive>]*
    <additive>    := <multiplicative>[['+'|'-']<multiplicative>]*
    <multiplicative> := <unary>[['*'|'/'|'%']<unary>]*
    <unary>       := [<unary-op><unary>|'defined'<defined-operand>|<primary>]
    <primary>     := ['('<conditional>')'|<number>|<char>|<identifier>|
                      <call>|<has-include>|<has-c-attribute>]
    """

    def __init__(
        self,
        tokens: TokenList,
        start: int,
        end: int,
        macros: MacroTable,
        *,
        search_paths: Iterable[str | os.PathLike[str]] = (),
        current_dir: str | os.PathLike[str] | None = None,
    ) -> None:
        if not isinstance(tokens, TokenList):
            raise TypeError("'tokens' must be a TokenList.")
        if not isinstance(macros, MacroTable):
            raise TypeError("'macros' must be a MacroTable.")
        self.tokens = tokens
        self.pos = max(start, 0)
        self.end = min(end, len(tokens))
        self.macros = macros
        self.search_paths = list(search_paths)
        self.current_dir = current_dir

    def eol(self) -> bool:
        """
        Return True when no meaningful tokens are left.
        """
        self.pos = self.tokens.skip_trivia(self.pos, self.end)
        return self.pos >= self.end

    def peek(self) -> TokenKind | None:
        """
        Return the kind of the next meaningful token, or None at the end.
        """
        if self.eol():
            return None
        return self.tokens[self.pos].kind

    def match(self, *kinds: TokenKind) -> TokenKind | None:
        """
        Consume the next token if it is one of `kinds` and return its kind.
        """
        kind = self.peek()
        if kind is not None and kind in kinds:
            self.pos += 1
            return kind
        return None

    def expect(self, kind: TokenKind, what: str) -> None:
        if self.match(kind) is None:
            raise ParseError(f"Expected {what}.")

    def _binary_level(
        self,
        operand: Callable[[], np.int64],
        operators: dict[TokenKind, str],
    ) -> np.int64:
        """
        Match a left-associative run of `operators` between operands.
        """
        value = operand()
        while True:
            kind = self.match(*operators)
            if kind is None:
                return value
            rhs = operand()
            value = self.__apply_binary_op(operators[kind], value, rhs)

    def conditional(self) -> np.int64:
        condition = self.logical_or()
        if self.match(TokenKind.QUESTION) is None:
            return condition
        true_result = self.conditional()
        self.expect(TokenKind.COLON, "':' in conditional expression")
        false_result = self.conditional()
        return true_result if condition else false_result

    def logical_or(self) -> np.int64:
        return self._binary_level(
            self.logical_and,
            {TokenKind.LOGICAL_OR: "||"},
        )

    def logical_and(self) -> np.int64:
        return self._binary_level(
            self.bitwise_or,
            {TokenKind.LOGICAL_AND: "&&"},
        )

    def bitwise_or(self) -> np.int64:
        return self._binary_level(self.bitwise_xor, {TokenKind.PIPE: "|"})

    def bitwise_xor(self) -> np.int64:
        return self._binary_level(self.bitwise_and, {TokenKind.CARET: "^"})

    def bitwise_and(self) -> np.int64:
        return self._binary_level(self.equality, {TokenKind.AMP: "&"})

    def equality(self) -> np.int64:
        return self._binary_level(
            self.relational,
            {TokenKind.EQ: "==", TokenKind.NEQ: "!="},
        )

    def relational(self) -> np.int64:
        return self._binary_level(
            self.shift,
            {
                TokenKind.LESS: "<",
                TokenKind.GREATER: ">",
                TokenKind.LEQ: "<=",
                TokenKind.GEQ: ">=",
            },
        )

    def shift(self) -> np.int64:
        return self._binary_level(
            self.additive,
            {TokenKind.LSHIFT: "<<", TokenKind.RSHIFT: ">>"},
        )

    def additive(self) -> np.int64:
        return self._binary_level(
            self.multiplicative,
            {TokenKind.PLUS: "+", TokenKind.MINUS: "-"},
        )

    def multiplicative(self) -> np.int64:
        return self._binary_level(
            self.unary,
            {
                TokenKind.STAR: "*",
                TokenKind.SLASH: "/",
                TokenKind.PERCENT: "%",
            },
        )

    def unary(self) -> np.int64:
        """
        Match a unary operator applied to a unary expression, a use of the
        defined operator, or a primary expression.
        """
        kind = self.match(*_UNARY_OPERATORS)
        if kind is not None:
            operand = self.unary()
            return self.__apply_unary_op(_UNARY_OPERATORS[kind], operand)

        if self.peek() is TokenKind.IDENTIFIER and self.tokens.matches(
            self.pos,
            "defined",
        ):
            self.pos += 1
            return self.defined()

        return self.primary()

    def defined(self) -> np.int64:
        """
        Match the operand of 'defined', with or without parentheses.

        <defined-operand> := [<identifier>|'('<identifier>')']
        """
        parenthesized = self.match(TokenKind.LPAREN) is not None
        kind = self.peek()
        if kind is None or not kind.is_identifier_like:
            raise ParseError("Expected identifier after 'defined'.")
        name = self.tokens.spelling(self.pos)
        self.pos += 1
        if parenthesized:
            self.expect(TokenKind.RPAREN, "')' after 'defined' identifier")
        return np.int64(self.macros.is_defined(name))

    def primary(self) -> np.int64:
        """
        Match a parenthesized expression, a constant or an identifier.
        """
        kind = self.peek()
        if kind is None:
            raise ParseError("Missing operand.")

        if kind is TokenKind.LPAREN:
            self.pos += 1
            value = self.conditional()
            self.expect(TokenKind.RPAREN, "')'")
            return value

        spelling = self.tokens.spelling(self.pos)
        if kind is TokenKind.NUMBER:
            self.pos += 1
            number = parse_integer(spelling)
            if number is None:
                raise ParseError(f"Invalid integer constant '{spelling}'.")
            return to_int64(number)

        if kind is TokenKind.CHAR:
            self.pos += 1
            return to_int64(parse_char_constant(spelling))

        if kind.is_identifier_like:
            self.pos += 1
            return self.identifier(spelling)

        raise ParseError(f"Unexpected token '{spelling}'.")

    def identifier(self, name: str) -> np.int64:
        """
        Evaluate an identifier that has already been consumed.

        Object-like macros with an integer value evaluate to that value.
        Every other identifier evaluates to 0.
        """
        if name in ("__has_include", "__has_embed"):
            return self.has_include()
        if name == "__has_c_attribute":
            return self.has_c_attribute()
        if name == "true":
            return np.int64(1)
        if name == "false":
            return np.int64(0)

        # Any function call that still exists evaluates to false
        if self.peek() is TokenKind.LPAREN:
            self.call()
            return np.int64(0)

        macro = self.macros.lookup(name)
        if macro is None or macro.is_function_like:
            return np.int64(0)
        value = parse_integer(macro.raw_value.strip())
        if value is None:
            return np.int64(0)
        return to_int64(value)

    def call(self) -> None:
        """
        Skip a parenthesized argument list.

        <call> := <identifier>'('<token-list>?')'
        """
        self.expect(TokenKind.LPAREN, "'('")
        depth = 1
        while depth > 0:
            kind = self.peek()
            if kind is None:
                raise ParseError("Unbalanced parentheses in call.")
            if kind is TokenKind.LPAREN:
                depth += 1
            elif kind is TokenKind.RPAREN:
                depth -= 1
            self.pos += 1

    def header_name(self) -> tuple[str, bool]:
        """
        Match a header name: a string literal or tokens between < and >.
        Return the path and whether it is a system header.
        """
        kind = self.peek()
        if kind is TokenKind.STRING:
            path = unquote(self.tokens.spelling(self.pos))
            self.pos += 1
            return path, False
        if kind is TokenKind.LESS:
            start = self.pos + 1
            close = self.tokens.find_next(start, self.end, TokenKind.GREATER)
            if close >= self.end:
                raise ParseError("Expected '>' after header name.")
            self.pos = close + 1
            return self.tokens.text_between(start, close), True
        raise ParseError("Expected header name.")

    def has_include(self) -> np.int64:
        """
        Match the operand of __has_include or __has_embed and check whether
        the header can be found.

        <has-include> := '('<header-name><token-list>?')'
        """
        self.expect(TokenKind.LPAREN, "'(' after __has_include")
        path, system = self.header_name()

        # Skip any #embed parameters, e.g. limit(4)
        while self.peek() not in (TokenKind.RPAREN, None):
            if self.peek() is TokenKind.LPAREN:
                self.call()
            else:
                self.pos += 1
        self.expect(TokenKind.RPAREN, "')' after header name")

        resolved = resolve_include(
            self.search_paths,
            self.current_dir,
            path,
            system,
        )
        return np.int64(resolved is not None)

    def has_c_attribute(self) -> np.int64:
        """
        Match the operand of __has_c_attribute and return the version of
        the attribute, or 0 if it is not a known standard attribute.

        <has-c-attribute> := '('<identifier>[':'':'<identifier>]?')'
        """
        self.expect(TokenKind.LPAREN, "'(' after __has_c_attribute")
        kind = self.peek()
        if kind is None or not kind.is_identifier_like:
            raise ParseError("Expected attribute name.")
        name = self.tokens.spelling(self.pos)
        self.pos += 1

        value = 0
        if self.match(TokenKind.COLON) is not None:
            # Vendor attributes (vendor::name) are not supported.
            self.expect(TokenKind.COLON, "'::' in attribute name")
            kind = self.peek()
            if kind is None or not kind.is_identifier_like:
                raise ParseError("Expected attribute name after '::'.")
            self.pos += 1
        else:
            # __name__ is equivalent to name
            if len(name) > 4 and name.startswith("__") and name.endswith("__"):
                name = name[2:-2]
            value = C_ATTRIBUTES.get(name, 0)

        self.expect(TokenKind.RPAREN, "')' after attribute name")
        return np.int64(value)

    @staticmethod
    def __apply_unary_op(op: str, operand: np.int64) -> np.int64:
        """
        Apply the specified unary operator: op operand
        """
        if op == "-":
            return -operand
        elif op == "+":
            return +operand
        elif op == "!":
            return np.int64(not operand)
        elif op == "~":
            return ~operand
        else:
            raise ValueError("Not a valid unary operator.")

    @staticmethod
    def __apply_binary_op(
        op: str,
        lhs: np.int64,
        rhs: np.int64,
    ) -> np.int64:
        """
        Apply the specified binary operator: lhs op rhs
        """
        if op == "||":
            return np.int64(bool(lhs) or bool(rhs))
        elif op == "&&":
            return np.int64(bool(lhs) and bool(rhs))
        elif op == "|":
            return lhs | rhs
        elif op == "^":
            return lhs ^ rhs
        elif op == "&":
            return lhs & rhs
        elif op == "==":
            return np.int64(lhs == rhs)
        elif op == "!=":
            return np.int64(lhs != rhs)
        elif op == "<":
            return np.int64(lhs < rhs)
        elif op == "<=":
            return np.int64(lhs <= rhs)
        elif op == ">":
            return np.int64(lhs > rhs)
        elif op == ">=":
            return np.int64(lhs >= rhs)
        elif op == "<<":
            if rhs < 0 or rhs >= 64:
                return np.int64(0)
            return lhs << rhs
        elif op == ">>":
            if rhs < 0 or rhs >= 64:
                return np.int64(-1 if lhs < 0 else 0)
            return lhs >> rhs
        elif op == "+":
            return lhs + rhs
        elif op == "-":
            return lhs - rhs
        elif op == "*":
            return lhs * rhs
        elif op == "/":
            # Division by zero yields 0 rather than trapping.
            if rhs == 0:
                return np.int64(0)
            # C division truncates toward zero.
            return (lhs - np.fmod(lhs, rhs)) // rhs
        elif op == "%":
            if rhs == 0:
                return np.int64(0)
            return np.fmod(lhs, rhs)
        else:
            raise ValueError("Not a binary operator.")

    def evaluate(self) -> int:
        """
        Evaluate the expression.

        Raises
        ------
        ParseError
            If the expression is malformed or trailing tokens remain.
        """
        with np.errstate(all="ignore"):
            value = self.conditional()
        if not self.eol():
            spelling = self.tokens.spelling(self.pos)
            raise ParseError(
                f"Unexpected token '{spelling}' after expression.",
            )
        return int(value)


def evaluate(
    tokens: TokenList,
    start: int,
    end: int,
    macros: MacroTable,
    *,
    search_paths: Iterable[str | os.PathLike[str]] = (),
    current_dir: str | os.PathLike[str] | None = None,
) -> int:
    """
    Evaluate the preprocessor expression in tokens [start, end).

    Parameters
    ----------
    tokens: TokenList
        The tokens containing the expression.

    start: int
        Index of the first token of the expression.

    end: int
        Index of the first token after the expression.

    macros: MacroTable
        Macros consulted by 'defined' and for identifier values.

    search_paths: Iterable[str | os.PathLike[str]], default: ()
        Search paths for __has_include and __has_embed.

    current_dir: str | os.PathLike[str] | None, default: None
        Directory for quoted __has_include operands.

    Returns
    -------
    int
        The value of the expression.

    Raises
    ------
    ParseError
        If the expression is malformed.
    """
    return ExpressionEvaluator(
        tokens,
        start,
        end,
        macros,
        search_paths=search_paths,
        current_dir=current_dir,
    ).evaluate()
