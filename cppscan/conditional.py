# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the state machine that tracks nested conditional compilation
(#if, #ifdef, #ifndef, #elif, #else and #endif).
"""
from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)


class CondState(Enum):
    """
    The state of a single conditional group.

    ACTIVE: the current branch is being compiled.
    SKIPPING: no branch has been taken yet; a later #elif or #else may be.
    SATISFIED: a branch was already taken, or the group is nested inside a
    disabled region. No later branch can become active.
    """

    ACTIVE = "active"
    SKIPPING = "skipping"
    SATISFIED = "satisfied"


class ConditionalError(ValueError):
    """
    Represents a directive that does not fit the open conditional groups.
    """


class ConditionalDepthError(ValueError):
    """
    Raised when conditional groups are nested deeper than allowed.
    """


@dataclass(frozen=True)
class ConditionalFrame:
    state: CondState
    parent_enabled: bool
    seen_else: bool = False
    line: int = 0


class ConditionalStack:
    """
    A stack of ConditionalFrames, one per open conditional group.

    Conditions are passed as callables so that they are only evaluated when
    every enclosing group is enabled.
    """

    def __init__(self, max_depth: int | None = None) -> None:
        if max_depth is not None and max_depth < 1:
            raise ValueError("'max_depth' must be positive.")
        self.max_depth = max_depth
        self._frames: list[ConditionalFrame] = []

    def __len__(self) -> int:
        return len(self._frames)

    def __repr__(self) -> str:
        states = [f.state.value for f in self._frames]
        return f"ConditionalStack({states!r})"

    @property
    def depth(self) -> int:
        return len(self._frames)

    @property
    def enabled(self) -> bool:
        """
        True iff every open group is ACTIVE.
        """
        return all(f.state is CondState.ACTIVE for f in self._frames)

    @property
    def top(self) -> ConditionalFrame | None:
        return self._frames[-1] if self._frames else None

    def frames(self) -> list[ConditionalFrame]:
        return list(self._frames)

    def _current(self, directive: str) -> ConditionalFrame:
        if not self._frames:
            raise ConditionalError(
                f"#{directive} without matching #if",
            )
        return self._frames[-1]

    def _replace(self, **changes) -> None:
        self._frames[-1] = dataclasses.replace(self._frames[-1], **changes)

    def push_if(self, condition: Callable[[], bool], line: int = 0) -> None:
        """
        Open a group for #if, #ifdef or #ifndef.

        Raises
        ------
        ConditionalDepthError
            If opening the group would exceed `max_depth`.
        """
        if self.max_depth is not None and self.depth >= self.max_depth:
            raise ConditionalDepthError(
                f"conditional nesting exceeds {self.max_depth}",
            )

        parent_enabled = self.enabled
        if not parent_enabled:
            state = CondState.SATISFIED
        elif condition():
            state = CondState.ACTIVE
        else:
            state = CondState.SKIPPING
        self._frames.append(ConditionalFrame(state, parent_enabled, line=line))

    def elif_(self, condition: Callable[[], bool]) -> None:
        """
        Move to the next branch of the current group for #elif.
        """
        frame = self._current("elif")
        if frame.seen_else:
            self._replace(state=CondState.SATISFIED)
            raise ConditionalError("#elif after #else")

        if frame.state is CondState.ACTIVE:
            self._replace(state=CondState.SATISFIED)
        elif frame.state is CondState.SKIPPING and frame.parent_enabled:
            if condition():
                self._replace(state=CondState.ACTIVE)

    def else_(self) -> None:
        """
        Move to the final branch of the current group for #else.
        """
        frame = self._current("else")
        if frame.seen_else:
            self._replace(state=CondState.SATISFIED)
            raise ConditionalError("#else after #else")

        if frame.state is CondState.ACTIVE:
            self._replace(state=CondState.SATISFIED, seen_else=True)
        elif frame.state is CondState.SKIPPING and frame.parent_enabled:
            self._replace(state=CondState.ACTIVE, seen_else=True)
        else:
            self._replace(seen_else=True)

    def endif(self) -> ConditionalFrame:
        """
        Close the current group for #endif and return its frame.
        """
        self._current("endif")
        return self._frames.pop()
