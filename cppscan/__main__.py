# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Command line interface for cppscan.
"""
from __future__ import annotations

import argparse
import logging
import sys

from cppscan import __version__, finder
from cppscan.conditional import ConditionalDepthError
from cppscan.lexer import tokenize
from cppscan.preprocessor import PreprocessorContext, iter_includes
from cppscan.util import read_source

log = logging.getLogger("cppscan")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cppscan",
        description="Tokenize C sources and scan their preprocessor "
        + "directives.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cppscan {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose",
        action="count",
        default=0,
        help="Increase verbosity level.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        dest="quiet",
        action="count",
        default=0,
        help="Decrease verbosity level.",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("file", metavar="FILE", help="The source file.")
    common.add_argument(
        "-I",
        dest="include_paths",
        metavar="DIR",
        action="append",
        default=[],
        help="Add DIR to the include search path.",
    )
    common.add_argument(
        "-D",
        dest="defines",
        metavar="NAME[=VALUE]",
        action="append",
        default=[],
        help="Define NAME as VALUE (default: 1) before scanning.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser(
        "tokens",
        parents=[common],
        help="List the tokens of FILE.",
    )
    subparsers.add_parser(
        "defines",
        parents=[common],
        help="List the macros defined by FILE.",
    )
    includes = subparsers.add_parser(
        "includes",
        parents=[common],
        help="List the files included or embedded by FILE.",
    )
    includes.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Follow includes transitively.",
    )
    includes.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar while following includes.",
    )
    return parser


def _configure_logging(verbose: int, quiet: int) -> None:
    """
    Route the package's log messages to stderr. The default level shows
    warnings; each -v or -q moves one level.
    """
    levels = [
        logging.DEBUG,
        logging.INFO,
        logging.WARNING,
        logging.ERROR,
        logging.CRITICAL,
    ]
    index = min(max(2 - verbose + quiet, 0), len(levels) - 1)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    log.handlers = [handler]
    log.setLevel(levels[index])
    log.propagate = False


def _print_tokens(source: bytes) -> None:
    tokens = tokenize(source)
    for i, token in enumerate(tokens):
        print(
            f"{tokens.line_of(i)}:{token.offset}:{token.length} "
            + f"{token.kind.name} {tokens.spelling(i)!r}",
        )


def _print_defines(context: PreprocessorContext, source: bytes) -> None:
    for macro in context.scan_defines(source):
        print(macro.spelling()[0])


def _print_includes(
    context: PreprocessorContext,
    filename: str,
    source: bytes,
    args: argparse.Namespace,
) -> None:
    if not args.recursive:
        for info in iter_includes(context, source, filename=filename):
            print(f"{info.line}: {info.kind.value} {info.resolved_path}")
        return

    graph = finder.find(
        [filename],
        context,
        show_progress=args.progress,
    )
    for includer, included, kind in graph.edges():
        print(f"{includer} -> {included} ({kind.value})")


def main(argv: list[str] | None = None) -> int:
    """
    Run the command line interface and return the exit status.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)

    try:
        source = read_source(args.file)
    except OSError as e:
        log.error(f"Cannot read '{args.file}': {e.strerror}")
        return 1

    try:
        context = PreprocessorContext(
            include_paths=args.include_paths,
            defines=args.defines,
        )
    except ValueError as e:
        log.error(str(e))
        return 1

    with context:
        try:
            if args.command == "tokens":
                _print_tokens(source)
            elif args.command == "defines":
                _print_defines(context, source)
            elif args.command == "includes":
                _print_includes(context, args.file, source, args)
        except ConditionalDepthError as e:
            log.error(f"{args.file}: {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
