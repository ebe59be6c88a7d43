# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the PreprocessorContext and the scanners that walk the directives
of a source buffer, tracking conditional compilation and reporting the
#include and #embed directives that would be processed.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cppscan.conditional import (
    ConditionalDepthError,
    ConditionalError,
    ConditionalStack,
)
from cppscan.directive import Directive, iter_directives, skip_inline
from cppscan.expression import ParseError, evaluate
from cppscan.lexer import TokenKind, TokenList, tokenize
from cppscan.macros import (
    MacroDefinition,
    MacroTable,
    macro_from_definition_string,
    parse_define,
    scan_defines,
)
from cppscan.resolver import IncludePath, resolve_include
from cppscan.util import _representation_string, unquote, valid_path

log = logging.getLogger(__name__)

Source = TokenList | bytes | bytearray | memoryview | str


class Visit(Enum):
    """
    The value returned by an include visitor to control the scan.
    """

    CONTINUE = 0
    STOP = 1


class DirectiveKind(Enum):
    INCLUDE = "include"
    EMBED = "embed"


@dataclass(frozen=True)
class EmbedParams:
    """
    The standard parameters of an #embed directive.

    `limit` is -1 when no limit was given. The other parameters hold the
    verbatim text between their parentheses, or None when absent.
    """

    limit: int = -1
    prefix: str | None = None
    suffix: str | None = None
    if_empty: str | None = None


@dataclass(frozen=True)
class IncludeInfo:
    """
    Represents an #include or #embed directive that resolved to a file.
    """

    kind: DirectiveKind
    resolved_path: str
    raw_path: str
    is_system: bool
    params: EmbedParams = field(default_factory=EmbedParams)
    line: int = 0


def _as_tokens(source: Source) -> TokenList:
    if isinstance(source, TokenList):
        return source
    return tokenize(source)


def header_name(
    tokens: TokenList,
    index: int,
    end: int,
    macros: MacroTable | None = None,
) -> tuple[IncludePath | None, int]:
    """
    Match the header name of an #include or #embed directive.

    <header-name> := ['"'<path>'"'|'<'<path>'>'|<identifier>]

    An identifier names a computed include: an object-like macro whose
    value is itself a quoted or bracketed header name.

    Returns
    -------
    tuple[IncludePath | None, int]
        The header name (or None if there is none) and the index of the
        first token after it.
    """
    index = skip_inline(tokens, index, end)
    if index >= end:
        return None, index

    kind = tokens[index].kind
    path = None
    if kind is TokenKind.STRING:
        spelling = tokens.spelling(index)
        if spelling.startswith('"'):
            path = IncludePath(unquote(spelling), system=False)
        index += 1
    elif kind is TokenKind.LESS:
        close = tokens.find_next(index + 1, end, TokenKind.GREATER)
        if close >= end:
            return None, end
        path = IncludePath(tokens.text_between(index + 1, close), system=True)
        index = close + 1
    elif kind.is_identifier_like and macros is not None:
        macro = macros.lookup(tokens.spelling(index))
        if macro is not None and not macro.is_function_like:
            expansion = tokenize(macro.raw_value)
            path, _ = header_name(expansion, 0, len(expansion))
        index += 1

    if path is not None and not valid_path(path.path):
        path = None
    return path, index


def _matching_paren(tokens: TokenList, index: int, end: int) -> int:
    """
    Return the index of the ')' that closes the '(' at `index`.
    """
    depth = 0
    for i in range(index, end):
        kind = tokens[i].kind
        if kind is TokenKind.LPAREN:
            depth += 1
        elif kind is TokenKind.RPAREN:
            depth -= 1
            if depth == 0:
                return i
    raise ParseError("Unbalanced parentheses in embed parameter.")


def embed_params(
    tokens: TokenList,
    index: int,
    end: int,
    macros: MacroTable,
    *,
    search_paths: Iterable[str | os.PathLike[str]] = (),
    current_dir: str | os.PathLike[str] | None = None,
) -> EmbedParams:
    """
    Parse the parameters following the header name of an #embed directive.

    <parameter>      := [<identifier>'::']?<identifier>'('<token-list>?')'
    <parameter-list> := <parameter>*

    Vendor-scoped and unknown parameters are ignored. Standard parameter
    names may also be written as __name__.

    Raises
    ------
    ParseError
        If the parameter list is malformed.
    """
    values: dict[str, Any] = {}
    while True:
        index = tokens.skip_trivia(index, end)
        if index >= end:
            break

        if not tokens[index].kind.is_identifier_like:
            raise ParseError(
                f"Expected embed parameter, found '{tokens.spelling(index)}'.",
            )
        name = tokens.spelling(index)
        index += 1

        scoped = False
        if (
            index + 1 < end
            and tokens[index].kind is TokenKind.COLON
            and tokens[index + 1].kind is TokenKind.COLON
        ):
            scoped = True
            index = tokens.skip_trivia(index + 2, end)
            if index >= end or not tokens[index].kind.is_identifier_like:
                raise ParseError("Expected identifier after '::'.")
            index += 1

        index = tokens.skip_trivia(index, end)
        if index >= end or tokens[index].kind is not TokenKind.LPAREN:
            raise ParseError(f"Expected '(' after embed parameter '{name}'.")
        close = _matching_paren(tokens, index, end)

        if len(name) > 4 and name.startswith("__") and name.endswith("__"):
            name = name[2:-2]

        if scoped:
            log.debug(f"Ignoring vendor embed parameter '{name}'")
        elif name == "limit":
            values["limit"] = evaluate(
                tokens,
                index + 1,
                close,
                macros,
                search_paths=search_paths,
                current_dir=current_dir,
            )
        elif name in ("prefix", "suffix", "if_empty"):
            values[name] = tokens.text_between(index + 1, close)
        else:
            log.debug(f"Ignoring unknown embed parameter '{name}'")

        index = close + 1

    return EmbedParams(**values)


class _Scanner:
    """
    Walks the directives of one buffer. Macros defined by the buffer are
    recorded in a copy of the context's table, so that the context itself
    is never modified by a scan.
    """

    def __init__(
        self,
        context: PreprocessorContext,
        tokens: TokenList,
        current_dir: str | os.PathLike[str] | None,
        filename: str,
        max_depth: int | None,
    ) -> None:
        self.context = context
        self.tokens = tokens
        self.current_dir = current_dir
        self.filename = filename
        self.macros = MacroTable(context.macros)
        self.stack = ConditionalStack(max_depth)

    def warn(self, line: int, message: str) -> None:
        log.warning(f"{self.filename}:{line}: {message}")

    def evaluate(self, directive: Directive) -> bool:
        """
        Evaluate the condition of an #if or #elif. A condition that cannot
        be evaluated is false.
        """
        try:
            value = evaluate(
                self.tokens,
                directive.body,
                directive.end,
                self.macros,
                search_paths=self.context.search_paths,
                current_dir=self.current_dir,
            )
        except ParseError as e:
            self.warn(
                directive.line,
                f"cannot evaluate #{directive.name}: {e}",
            )
            return False
        return value != 0

    def is_defined(self, directive: Directive) -> bool:
        index = skip_inline(self.tokens, directive.body, directive.end)
        if (
            index >= directive.end
            or not self.tokens[index].kind.is_identifier_like
        ):
            self.warn(
                directive.line,
                f"#{directive.name} without a macro name",
            )
            return False
        defined = self.macros.is_defined(self.tokens.spelling(index))
        return defined if directive.name == "ifdef" else not defined

    def conditional(self, directive: Directive) -> None:
        """
        Update the conditional stack for a conditional directive.

        Raises
        ------
        ConditionalDepthError
            If the directive nests groups deeper than allowed.
        """
        name = directive.name
        try:
            if name == "if":
                self.stack.push_if(
                    lambda: self.evaluate(directive),
                    directive.line,
                )
            elif name in ("ifdef", "ifndef"):
                self.stack.push_if(
                    lambda: self.is_defined(directive),
                    directive.line,
                )
            elif name == "elif":
                self.stack.elif_(lambda: self.evaluate(directive))
            elif name == "else":
                self.stack.else_()
            elif name == "endif":
                self.stack.endif()
        except ConditionalDepthError as e:
            self.warn(directive.line, str(e))
            raise
        except ConditionalError as e:
            self.warn(directive.line, str(e))

    def include(self, directive: Directive) -> IncludeInfo | None:
        """
        Resolve an #include or #embed directive. Unresolved or malformed
        directives are logged and return None.
        """
        tokens = self.tokens
        path, index = header_name(
            tokens,
            directive.body,
            directive.end,
            self.macros,
        )
        if path is None:
            self.warn(directive.line, f"#{directive.name} without a header")
            return None

        resolved = self.context.resolve(
            self.current_dir,
            path.path,
            path.system,
        )
        if resolved is None:
            line = directive.line
            spelling = f"#{directive.name} {path.spelling()[0]}"
            scope = "system" if path.system else "user"
            self.warn(
                line,
                f"{scope} {directive.name} '{path.path}' not found\n"
                + f"{line:>5} | {spelling}",
            )
            return None

        kind = DirectiveKind(directive.name)
        params = EmbedParams()
        if kind is DirectiveKind.EMBED:
            try:
                params = embed_params(
                    tokens,
                    index,
                    directive.end,
                    self.macros,
                    search_paths=self.context.search_paths,
                    current_dir=self.current_dir,
                )
            except ParseError as e:
                self.warn(directive.line, f"invalid #embed parameters: {e}")

        return IncludeInfo(
            kind=kind,
            resolved_path=resolved,
            raw_path=path.path,
            is_system=path.system,
            params=params,
            line=directive.line,
        )

    def scan(self) -> Iterator[IncludeInfo]:
        for directive in iter_directives(self.tokens):
            name = directive.name
            if name in ("if", "ifdef", "ifndef", "elif", "else", "endif"):
                self.conditional(directive)
                continue

            if not self.stack.enabled:
                continue

            if name == "define":
                macro = parse_define(self.tokens, directive)
                if macro is not None:
                    self.macros.append(macro)
            elif name in ("include", "embed"):
                info = self.include(directive)
                if info is not None:
                    yield info

        for frame in self.stack.frames():
            self.warn(frame.line, "unterminated conditional group")


class PreprocessorContext:
    """
    Represents the configuration shared by every scan:
    - The macros defined before scanning (e.g. on the command line)
    - The directories searched for #include and #embed targets
    """

    def __init__(
        self,
        *,
        include_paths: list[str | os.PathLike[str]] | None = None,
        defines: list[str] | None = None,
    ) -> None:
        self._closed = False
        self._found_incl: dict[tuple, str | None] = {}
        self._search_paths: list[str] = []
        if include_paths is None:
            pass
        elif isinstance(include_paths, (str, os.PathLike)) or not all(
            [isinstance(p, (str, os.PathLike)) for p in include_paths],
        ):
            raise TypeError(
                "Each path in 'include_paths' must be PathLike.",
            )
        else:
            for path in include_paths:
                self.add_search_path(path)

        self._macros = MacroTable()
        if defines is None:
            pass
        elif isinstance(defines, str) or not all(
            [isinstance(d, str) for d in defines],
        ):
            raise TypeError("'defines' must be a list of strings.")
        else:
            for definition in defines:
                self.define(macro_from_definition_string(definition))

    def __repr__(self) -> str:
        return _representation_string(
            self,
            attrs=["search_paths", "macros"],
        )

    def __enter__(self) -> PreprocessorContext:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("Operation on a closed PreprocessorContext.")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def macros(self) -> MacroTable:
        return self._macros

    @property
    def search_paths(self) -> list[str]:
        return list(self._search_paths)

    def add_search_path(self, path: str | os.PathLike[str]) -> None:
        """
        Append a directory to the list searched for includes.
        """
        self._check_open()
        if not isinstance(path, (str, os.PathLike)):
            raise TypeError("'path' must be PathLike.")
        self._search_paths.append(os.fspath(path))
        self._found_incl = {}

    def add_macro(
        self,
        name: str,
        value: str | None = None,
    ) -> MacroDefinition:
        """
        Define an object-like macro, as if passed on the command line.
        A value of None defines the macro with an empty replacement.
        """
        self._check_open()
        return self._macros.add(name, value)

    def define(self, macro: MacroDefinition) -> None:
        """
        Define a macro, as if the preprocessor encountered #define.
        Redefinitions are kept; lookups use the most recent definition.

        Parameters
        ----------
        macro: MacroDefinition
            The macro to define.
        """
        self._check_open()
        self._macros.append(macro)

    def scan_defines(self, source: Source) -> list[MacroDefinition]:
        """
        Define every macro declared by a #define in `source`.
        """
        self._check_open()
        return scan_defines(self._macros, source)

    def resolve(
        self,
        current_dir: str | os.PathLike[str] | None,
        raw_path: str,
        is_system: bool = False,
    ) -> str | None:
        """
        Determine and return the path to an include file.

        Parameters
        ----------
        current_dir: str | os.PathLike[str] | None
            The directory of the file containing the directive.

        raw_path: str
            The name of the include file to find.

        is_system: bool, default: False
            Whether the include file is a system header or not.

        Returns
        -------
        str | None
            The path to `raw_path` if it was found and `None` otherwise.
        """
        self._check_open()
        key = (
            None if current_dir is None else os.fspath(current_dir),
            raw_path,
            is_system,
        )
        if key not in self._found_incl:
            self._found_incl[key] = resolve_include(
                self._search_paths,
                current_dir,
                raw_path,
                is_system,
            )
        return self._found_incl[key]

    def evaluate(
        self,
        expression: Source,
        *,
        current_dir: str | os.PathLike[str] | None = None,
    ) -> int:
        """
        Evaluate a preprocessor expression, e.g. the text following #if,
        using the macros of this context.

        Raises
        ------
        ParseError
            If the expression is malformed.
        """
        self._check_open()
        tokens = _as_tokens(expression)
        return evaluate(
            tokens,
            0,
            len(tokens),
            self._macros,
            search_paths=self._search_paths,
            current_dir=current_dir,
        )

    def iter_includes(
        self,
        source: Source,
        **kwargs: Any,
    ) -> Iterator[IncludeInfo]:
        return iter_includes(self, source, **kwargs)

    def scan_includes(
        self,
        source: Source,
        visitor: Callable[[IncludeInfo], Visit | None],
        **kwargs: Any,
    ) -> int:
        return scan_includes(self, source, visitor, **kwargs)

    def close(self) -> None:
        """
        Release the macros, search paths and cached lookups. Closing a
        closed context has no effect.
        """
        self._macros.clear()
        self._search_paths.clear()
        self._found_incl.clear()
        self._closed = True


def iter_includes(
    context: PreprocessorContext,
    source: Source,
    *,
    current_dir: str | os.PathLike[str] | None = None,
    filename: str | os.PathLike[str] | None = None,
    max_depth: int | None = 32,
) -> Iterator[IncludeInfo]:
    """
    Yield each #include and #embed directive in `source` that is reached
    under the context's macros and resolves to a file.

    Parameters
    ----------
    context: PreprocessorContext
        The macros and search paths to use.

    source: TokenList | bytes | str
        The buffer to scan.

    current_dir: str | os.PathLike[str] | None, default: None
        The directory searched first for quoted includes. Defaults to the
        directory of `filename`, if given.

    filename: str | os.PathLike[str] | None, default: None
        The name used for `source` in log messages.

    max_depth: int | None, default: 32
        The maximum nesting of conditional groups.

    Raises
    ------
    TypeError
        If `context` or `source` has the wrong type.

    ConditionalDepthError
        While iterating, if conditional groups are nested too deeply.
    """
    if not isinstance(context, PreprocessorContext):
        raise TypeError("'context' must be a PreprocessorContext.")
    context._check_open()
    tokens = _as_tokens(source)

    if filename is not None:
        filename = os.fspath(filename)
        if current_dir is None:
            current_dir = os.path.dirname(filename)
    label = filename if filename is not None else "<source>"

    log.debug(f"Scanning includes in {label}")
    scanner = _Scanner(context, tokens, current_dir, label, max_depth)
    return scanner.scan()


def scan_includes(
    context: PreprocessorContext,
    source: Source,
    visitor: Callable[[IncludeInfo], Visit | None],
    **kwargs: Any,
) -> int:
    """
    Call `visitor` for each include reported by iter_includes, stopping
    early if it returns Visit.STOP.

    Returns
    -------
    int
        The number of includes passed to `visitor`.
    """
    if not callable(visitor):
        raise TypeError("'visitor' must be callable.")

    count = 0
    for info in iter_includes(context, source, **kwargs):
        count += 1
        if visitor(info) is Visit.STOP:
            break
    return count
