# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains functions and classes related to following #include directives
from a set of source files to every file they reach.
"""

import collections
import logging
import os
from collections.abc import Iterable, Iterator

from tqdm import tqdm

from cppscan.conditional import ConditionalDepthError
from cppscan.preprocessor import (
    DirectiveKind,
    IncludeInfo,
    PreprocessorContext,
    iter_includes,
)
from cppscan.util import read_source

log = logging.getLogger(__name__)


class IncludeGraph:
    """
    Keeps track of the files visited while following includes, and of the
    directives each file reported. Files are identified by their real path
    and listed in the order they were discovered.
    """

    def __init__(self) -> None:
        self._includes: dict[str, list[IncludeInfo]] = {}
        self._path_cache: dict[str, str] = {}

    def _get_realpath(self, path: str) -> str:
        """
        Returns
        -------
        str
            Equivalent to os.path.realpath(path).
        """
        if path not in self._path_cache:
            real = os.path.realpath(path)
            self._path_cache[path] = real
        return self._path_cache[path]

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        return self._get_realpath(os.fspath(path)) in self._includes

    def __len__(self) -> int:
        return len(self._includes)

    def __iter__(self) -> Iterator[str]:
        return iter(self._includes)

    def insert_file(self, fn: str) -> bool:
        """
        Record a file. Return False if it was already recorded.
        """
        fn = self._get_realpath(fn)
        if fn in self._includes:
            return False
        self._includes[fn] = []
        return True

    def add_include(self, fn: str, info: IncludeInfo) -> None:
        self._includes[self._get_realpath(fn)].append(info)

    def get_filenames(self) -> list[str]:
        """
        Return all of the files visited so far, in discovery order.
        """
        return list(self._includes.keys())

    def includes_of(self, fn: str) -> list[IncludeInfo]:
        """
        Return the directives reported by `fn`, or an empty list if it has
        not been visited.
        """
        return list(self._includes.get(self._get_realpath(fn), []))

    def edges(self) -> Iterator[tuple[str, str, DirectiveKind]]:
        """
        Yield (includer, included, kind) for every reported directive.
        """
        for fn, infos in self._includes.items():
            for info in infos:
                yield fn, self._get_realpath(info.resolved_path), info.kind


def find(
    paths: Iterable[str | os.PathLike[str]],
    context: PreprocessorContext,
    *,
    show_progress: bool = False,
    max_depth: int | None = 32,
) -> IncludeGraph:
    """
    Scan each file in `paths` and every file it transitively includes.

    Each file is scanned once, with its own directory searched first for
    quoted includes. #embed targets are recorded but not scanned.
    """
    if not isinstance(context, PreprocessorContext):
        raise TypeError("'context' must be a PreprocessorContext.")

    graph = IncludeGraph()
    pending: collections.deque[str] = collections.deque()
    for path in paths:
        path = os.fspath(path)
        if graph.insert_file(path):
            pending.append(path)

    with tqdm(
        total=len(pending),
        desc="Scanning includes",
        unit=" file",
        leave=False,
        disable=not show_progress,
    ) as progress:
        while pending:
            fn = pending.popleft()
            progress.update(1)

            log.debug(f"Scanning {fn}")
            try:
                source = read_source(fn)
            except OSError as e:
                log.warning(f"Cannot read '{fn}': {e.strerror}")
                continue

            try:
                for info in iter_includes(
                    context,
                    source,
                    filename=fn,
                    max_depth=max_depth,
                ):
                    graph.add_include(fn, info)
                    if info.kind is not DirectiveKind.INCLUDE:
                        continue
                    if graph.insert_file(info.resolved_path):
                        pending.append(info.resolved_path)
                        progress.total += 1
                        progress.refresh()
            except ConditionalDepthError:
                # The rest of the file cannot be classified reliably.
                continue

    return graph
