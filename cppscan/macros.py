# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes and functions for discovering macro definitions.

Macros are recorded exactly as they were declared: the name, the shape of the
parameter list and the raw replacement text. Replacement lists are never
expanded.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from cppscan.directive import Directive, iter_directives, skip_inline
from cppscan.lexer import TokenKind, TokenList, tokenize

log = logging.getLogger(__name__)


class MacroKind(Enum):
    OBJECT_LIKE = "object-like"
    FUNCTION_LIKE = "function-like"


@dataclass(frozen=True)
class MacroDefinition:
    """
    Represents a macro definition.

    For a variadic macro with an unnamed '...', the ellipsis is not listed
    in `parameters`. A GNU-style named variadic parameter (`args...`) is
    listed by name as the last parameter.
    """

    name: str
    kind: MacroKind = MacroKind.OBJECT_LIKE
    variadic: bool = False
    parameters: tuple[str, ...] = ()
    raw_value: str = ""

    @property
    def is_function_like(self) -> bool:
        return self.kind is MacroKind.FUNCTION_LIKE

    def spelling(self) -> list[str]:
        """
        Return (a list containing) a string with a lexable representation of
        this macro, of the form NAME(args)=value.
        """
        if not self.is_function_like:
            return [f"{self.name}={self.raw_value}"]
        args = list(self.parameters)
        if self.variadic:
            args.append("...")
        arg_str = ",".join(args)
        return [f"{self.name}({arg_str})={self.raw_value}"]


class MacroTable:
    """
    An insertion-ordered collection of macro definitions.

    Redefinitions are appended rather than merged. Lookups return the most
    recent definition of a name.
    """

    def __init__(
        self,
        definitions: Iterable[MacroDefinition] | None = None,
    ) -> None:
        self._definitions: list[MacroDefinition] = []
        if definitions is not None:
            for macro in definitions:
                self.append(macro)

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[MacroDefinition]:
        return iter(self._definitions)

    def __getitem__(self, index: int) -> MacroDefinition:
        return self._definitions[index]

    def __contains__(self, name: object) -> bool:
        return self.is_defined(name) if isinstance(name, str) else False

    def __repr__(self) -> str:
        names = [m.name for m in self._definitions]
        return f"MacroTable({names!r})"

    def append(self, macro: MacroDefinition) -> None:
        """
        Append a definition, as if the preprocessor encountered #define.

        Raises
        ------
        TypeError
            If `macro` is not a MacroDefinition.
        """
        if not isinstance(macro, MacroDefinition):
            raise TypeError("'macro' must be a MacroDefinition.")
        self._definitions.append(macro)

    def add(self, name: str, value: str | None = None) -> MacroDefinition:
        """
        Seed an object-like macro, as if defined on the command line.

        Parameters
        ----------
        name: str
            The macro name.

        value: str | None, default: None
            The replacement text. None defines the macro with an empty
            replacement.

        Returns
        -------
        MacroDefinition
            The definition that was added.
        """
        if not isinstance(name, str):
            raise TypeError("'name' must be a string.")
        if not name:
            raise ValueError("'name' must not be empty.")
        if value is not None and not isinstance(value, str):
            raise TypeError("'value' must be a string or None.")
        macro = MacroDefinition(name, raw_value=value or "")
        self.append(macro)
        return macro

    def lookup(self, name: str) -> MacroDefinition | None:
        """
        Returns
        -------
        MacroDefinition | None
            The most recent definition of `name`, or None.
        """
        for macro in reversed(self._definitions):
            if macro.name == name:
                return macro
        return None

    def is_defined(self, name: str) -> bool:
        return self.lookup(name) is not None

    def definitions_of(self, name: str) -> list[MacroDefinition]:
        """
        Return every definition of `name`, oldest first.
        """
        return [m for m in self._definitions if m.name == name]

    def clear(self) -> None:
        self._definitions.clear()


def _parameter_list(
    tokens: TokenList,
    index: int,
    end: int,
) -> tuple[int, list[str], bool]:
    """
    Match a comma-separated parameter list, starting after the '('.
    Return the index after the closing ')', the names and whether the
    macro is variadic.

    <param>      := <identifier>?'...'?
    <param-list> := [<param>[','<param>]*]?
    """
    parameters: list[str] = []
    variadic = False
    while index < end:
        index = tokens.skip_trivia(index, end)
        if index >= end:
            break

        kind = tokens[index].kind
        if kind is TokenKind.RPAREN:
            index += 1
            break

        if kind.is_identifier_like:
            parameters.append(tokens.spelling(index))
            index += 1
            following = tokens.skip_trivia(index, end)
            if (
                following < end
                and tokens[following].kind is TokenKind.ELLIPSIS
            ):
                variadic = True
                index = following + 1
        elif kind is TokenKind.ELLIPSIS:
            variadic = True
            index += 1
        else:
            # Commas, and anything malformed, are stepped over.
            index += 1

    return index, parameters, variadic


def _replacement_text(tokens: TokenList, index: int, end: int) -> str:
    """
    Return the verbatim text of tokens[index:end], without surrounding
    whitespace or comments. The text stops at the first '#' or '##'.
    """
    for stop in range(index, end):
        if tokens[stop].kind in (TokenKind.HASH, TokenKind.HASH_HASH):
            end = stop
            break
    index = tokens.skip_trivia(index, end)
    while end > index and tokens[end - 1].kind.is_trivia:
        end -= 1
    return tokens.text_between(index, end)


def parse_define(
    tokens: TokenList,
    directive: Directive,
) -> MacroDefinition | None:
    """
    Build a MacroDefinition from a #define directive line.
    Return None if the directive does not name a macro.

    <define-macro>    := 'define'<identifier><token-list>?
    <define-function> := 'define'<identifier>'('<param-list>')'<token-list>?

    Whitespace is NOT permitted between the identifier and the '(' of a
    function-like macro.
    """
    index = skip_inline(tokens, directive.body, directive.end)
    if index >= directive.end or not tokens[index].kind.is_identifier_like:
        return None

    name = tokens.spelling(index)
    index += 1

    kind = MacroKind.OBJECT_LIKE
    parameters: list[str] = []
    variadic = False
    if index < directive.end and tokens[index].kind is TokenKind.LPAREN:
        kind = MacroKind.FUNCTION_LIKE
        index, parameters, variadic = _parameter_list(
            tokens,
            index + 1,
            directive.end,
        )

    return MacroDefinition(
        name=name,
        kind=kind,
        variadic=variadic,
        parameters=tuple(parameters),
        raw_value=_replacement_text(tokens, index, directive.end),
    )


def scan_defines(
    table: MacroTable,
    source: TokenList | bytes | str,
) -> list[MacroDefinition]:
    """
    Append every #define found in `source` to `table`.

    Parameters
    ----------
    table: MacroTable
        The table to populate.

    source: TokenList | bytes | str
        An already tokenized buffer, or a buffer to tokenize.

    Returns
    -------
    list[MacroDefinition]
        The definitions that were appended, in source order.
    """
    if not isinstance(table, MacroTable):
        raise TypeError("'table' must be a MacroTable.")
    tokens = source if isinstance(source, TokenList) else tokenize(source)

    found = []
    for directive in iter_directives(tokens):
        if directive.name != "define":
            continue
        macro = parse_define(tokens, directive)
        if macro is None:
            log.debug(f"line {directive.line}: #define without a macro name")
            continue
        table.append(macro)
        found.append(macro)
    return found


def macro_from_definition_string(string: str) -> MacroDefinition:
    """
    Construct a MacroDefinition by parsing a string of the form
    MACRO=expansion, as accepted by -D on a compiler command line.
    A string without '=' defines the macro as 1.
    """
    if not isinstance(string, str):
        raise TypeError("'string' must be a string.")
    name, sep, value = string.partition("=")
    if not sep:
        value = "1"

    table = MacroTable()
    found = scan_defines(table, f"#define {name} {value}")
    if len(found) != 1:
        raise ValueError(f"Invalid macro definition: {string}")
    return found[0]
