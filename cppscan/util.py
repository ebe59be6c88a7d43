# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains utility functions for common operations.
"""
from __future__ import annotations

import logging
import os
from typing import Any

log = logging.getLogger(__name__)


def _representation_string(
    obj: Any,
    *,
    name: str | None = None,
    attrs: list[str] | None = None,
) -> str:
    """
    Helper function to build representation strings of the form:
    Name(attribute={attribute!r},...)
    """
    if not name:
        name = obj.__class__.__name__
    if not attrs:
        attrs = obj.__dict__
    properties = ",".join(f"{a}={getattr(obj, a)!r}" for a in attrs)
    return f"{name}({properties})"


def valid_path(path: str | os.PathLike[str]) -> bool:
    """
    Check if a given file path is valid.

    Parameters
    ----------
    path: str | os.PathLike[str]
        The path to check.

    Returns
    -------
    bool
        False if the path is empty or contains a null byte or a line break,
        True otherwise.
    """
    path = os.fspath(path)
    if not path:
        return False
    if any(c in path for c in ("\0", "\n", "\r")):
        log.warning(f"Path '{path!r}' contains invalid characters.")
        return False
    return True


def unquote(spelling: str, quote: str = '"') -> str:
    """
    Return the contents of a string or character literal, dropping any
    encoding prefix and the surrounding quotes. An unterminated literal
    keeps everything after its opening quote.
    """
    start = spelling.find(quote)
    if start < 0:
        return spelling
    body = spelling[start + 1 :]
    if body.endswith(quote):
        body = body[:-1]
    return body


def read_source(path: str | os.PathLike[str]) -> bytes:
    """
    Return the contents of the file at `path` as a source buffer.
    """
    with open(path, "rb") as f:
        return f.read()
