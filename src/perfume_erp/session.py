"""Application session: the single entry point presentation layers talk to.

A :class:`Session` owns one :class:`~perfume_erp.history.History`, routes
actions through :func:`perfume_erp.core_logic.apply` and reports outcomes as
:class:`DispatchResult` envelopes instead of raising. After every committed
change it calls an optional persistence hook. Persistence is best effort: a
failing hook is logged and the in-memory state stays committed, so memory and
disk may disagree until the next successful save.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from . import core_logic, data_manager, log
from .actions import Action
from .constants import EXPECTED_SCHEMA_VERSION, MAX_HISTORY_LENGTH
from .errors import DomainError
from .history import History
from .models import AppState


PersistHook = Callable[[AppState], None]


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of a dispatch: the state to render and, on rejection, why."""

    ok: bool
    state: AppState
    error: Optional[DomainError] = None


class Session:
    """Stateful wrapper binding the reducer, the history and persistence."""

    def __init__(
        self,
        state: AppState,
        *,
        persist: Optional[PersistHook] = None,
        history_limit: int = MAX_HISTORY_LENGTH,
    ) -> None:
        self._history = History(state, limit=history_limit)
        self._persist_hook = persist

    @property
    def state(self) -> AppState:
        return self._history.current

    @property
    def history(self) -> History:
        return self._history

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    def dispatch(self, action: Action) -> DispatchResult:
        """Apply ``action`` to the current state.

        Rejections come back as ``ok=False`` with the domain error and leave
        history and storage untouched. Actions that change nothing are
        accepted without adding a history entry.
        """

        current = self.state
        try:
            next_state = core_logic.apply(current, action)
        except DomainError as exc:
            return DispatchResult(ok=False, state=current, error=exc)

        if next_state is not current:
            self._history.push(next_state)
            self._persist(next_state)
        return DispatchResult(ok=True, state=next_state)

    def undo(self) -> AppState:
        before = self.state
        state = self._history.undo()
        if state is not before:
            self._persist(state)
        return state

    def redo(self) -> AppState:
        before = self.state
        state = self._history.redo()
        if state is not before:
            self._persist(state)
        return state

    def backup(self) -> Dict[str, Any]:
        """Return the backup document for the current state."""

        return data_manager.document_to_dict(self.state)

    def restore_backup(self, document: Union[str, Mapping[str, Any]]) -> DispatchResult:
        """Replace everything with the content of a backup document.

        Undo/redo history is not carried across a restore. A malformed document
        is rejected with a :class:`~perfume_erp.errors.FormatError`.
        """

        try:
            if isinstance(document, str):
                state = data_manager.loads_document(document)
            else:
                state = data_manager.parse_document(document)
        except DomainError as exc:
            log.warning("Rejected backup restore: %s", exc.message)
            return DispatchResult(ok=False, state=self.state, error=exc)

        self._history.reset(state)
        self._persist(state)
        log.info("Restored backup with %d year(s)", len(state.years))
        return DispatchResult(ok=True, state=state)

    def _persist(self, state: AppState) -> None:
        if self._persist_hook is None:
            return
        try:
            self._persist_hook(state)
        except Exception:  # persistence is best effort; the committed state stands
            log.exception("Failed to persist state; in-memory changes are kept")


def ensure_schema_version(config: data_manager.ConfigSettings) -> None:
    """Validate data compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """

    if config.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Data schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            config.schema_version,
        )
        raise RuntimeError(
            "Data schema mismatch: expected %s, found %s" % (EXPECTED_SCHEMA_VERSION, config.schema_version)
        )

    log.debug("Schema version '%s' validated", config.schema_version)


def open_session(config_path: Optional[Path] = None) -> Session:
    """Build a session over the data document named in ``config.ini``.

    The document is saved back to the same file after each committed change.

    Raises:
        FileNotFoundError: If the configuration file or data document cannot
            be located.
        KeyError: When mandatory configuration options are missing.
        RuntimeError: On schema version mismatch.
    """

    config = data_manager.load_config_settings(config_path)
    ensure_schema_version(config)
    state = data_manager.load_document(config.data_file)
    log.info("Loaded session for data file '%s'", config.data_file)

    def persist(snapshot: AppState) -> None:
        data_manager.save_document(snapshot, config.data_file)

    return Session(state, persist=persist)


__all__ = ["DispatchResult", "Session", "ensure_schema_version", "open_session"]
