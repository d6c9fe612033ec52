"""Tests for the bounded undo/redo history."""

from __future__ import annotations

from decimal import Decimal

import pytest

from perfume_erp import actions as act
from perfume_erp import core_logic
from perfume_erp.constants import MAX_HISTORY_LENGTH
from perfume_erp.history import History


def _states(initial, count):
    states = [initial]
    for index in range(count):
        states.append(
            core_logic.apply(
                states[-1],
                act.AddManualLedgerEntry(
                    partner_id="1",
                    date="2025-03-01",
                    description=f"entry {index}",
                    amount=Decimal("1"),
                ),
            )
        )
    return states


def test_undo_and_redo_walk_the_snapshot_stack(empty_state):
    states = _states(empty_state, 3)
    history = History(states[0])
    for state in states[1:]:
        history.push(state)

    for expected in reversed(states[:-1]):
        assert history.undo() is expected
    assert history.can_undo is False
    assert history.undo() is states[0]

    for expected in states[1:]:
        assert history.redo() is expected
    assert history.can_redo is False


def test_push_after_undo_discards_the_redo_branch(empty_state):
    states = _states(empty_state, 3)
    history = History(states[0])
    history.push(states[1])
    history.push(states[2])
    history.undo()

    history.push(states[3])

    assert history.can_redo is False
    assert len(history) == 3
    assert history.current is states[3]


def test_history_keeps_at_most_the_configured_number_of_snapshots(empty_state):
    states = _states(empty_state, MAX_HISTORY_LENGTH + 5)
    history = History(states[0])
    for state in states[1:]:
        history.push(state)

    assert len(history) == MAX_HISTORY_LENGTH
    while history.can_undo:
        history.undo()
    assert history.current is states[-MAX_HISTORY_LENGTH]
    assert history.undo() is states[-MAX_HISTORY_LENGTH]


def test_reset_replaces_the_whole_stack(empty_state):
    states = _states(empty_state, 2)
    history = History(states[0])
    history.push(states[1])

    history.reset(states[2])

    assert len(history) == 1
    assert history.can_undo is False
    assert history.current is states[2]


def test_history_rejects_a_non_positive_limit(empty_state):
    with pytest.raises(ValueError):
        History(empty_state, limit=0)
