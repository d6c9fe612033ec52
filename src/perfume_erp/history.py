"""Bounded linear undo/redo history of full-state snapshots."""

from __future__ import annotations

from typing import List

from . import log
from .constants import MAX_HISTORY_LENGTH
from .models import AppState


class History:
    """Snapshot stack with a cursor.

    ``push`` discards any redo branch, appends the new snapshot and drops the
    oldest one once more than ``limit`` are retained. Undo and redo past either
    end are no-ops. Snapshots are never mutated, because the reducer always
    returns fresh state objects.
    """

    def __init__(self, initial: AppState, *, limit: int = MAX_HISTORY_LENGTH) -> None:
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._limit = limit
        self._snapshots: List[AppState] = [initial]
        self._index = 0

    @property
    def current(self) -> AppState:
        return self._snapshots[self._index]

    @property
    def index(self) -> int:
        return self._index

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    def __len__(self) -> int:
        return len(self._snapshots)

    def push(self, state: AppState) -> None:
        del self._snapshots[self._index + 1 :]
        self._snapshots.append(state)
        if len(self._snapshots) > self._limit:
            del self._snapshots[0]
            log.debug("History limit %d reached; dropped the oldest snapshot", self._limit)
        self._index = len(self._snapshots) - 1

    def undo(self) -> AppState:
        if self.can_undo:
            self._index -= 1
        return self.current

    def redo(self) -> AppState:
        if self.can_redo:
            self._index += 1
        return self.current

    def reset(self, state: AppState) -> None:
        """Replace the whole stack with ``state``; used after a backup restore."""

        self._snapshots = [state]
        self._index = 0
