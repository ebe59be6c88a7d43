# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes and functions for resolving #include and #embed targets
against the directory of the current file and a list of search paths.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Iterable

from cppscan.util import _representation_string

log = logging.getLogger(__name__)


class IncludePath:
    """
    Represents an include path enclosed by "" or <>
    """

    def __init__(self, path: str, system: bool):
        self.path = path
        self.system = system

    def __repr__(self) -> str:
        return _representation_string(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IncludePath):
            return NotImplemented
        return self.path == other.path and self.system == other.system

    def spelling(self) -> list[str]:
        """
        Return the string representation of this path in the input code.
        Useful primarily for debugging and generating error messages.

        Assumes that system includes are declared in <>, while non-system
        includes are declared in quotes.
        """
        if self.system:
            return [f"<{self.path!s}>"]
        return [f'"{self.path!s}"']

    def is_system_path(self) -> bool:
        return self.system


def resolve_include(
    search_paths: Iterable[str | os.PathLike[str]],
    current_dir: str | os.PathLike[str] | None,
    raw_path: str,
    is_system: bool = False,
) -> str | None:
    """
    Determine and return the path to an include file.

    Parameters
    ----------
    search_paths: Iterable[str | os.PathLike[str]]
        Directories to search, in priority order.

    current_dir: str | os.PathLike[str] | None
        The directory of the file containing the directive. Only consulted
        for quoted includes, and always before `search_paths`.

    raw_path: str
        The path as written between the quotes or angle brackets.

    is_system: bool, default: False
        Whether the include was written with angle brackets.

    Returns
    -------
    str | None
        The first candidate that exists, or None.
    """
    candidates: list[str | os.PathLike[str]] = []
    if not is_system and current_dir is not None:
        candidates.append(current_dir)
    candidates.extend(search_paths)

    for directory in candidates:
        test_path = os.path.join(directory, raw_path)
        if os.path.isfile(test_path):
            return test_path

    log.debug(f"Failed to resolve '{raw_path}' (system={is_system})")
    return None
