"""Tests for the application session wrapper."""

from __future__ import annotations

import logging
from decimal import Decimal
from unittest.mock import Mock

import pytest

from perfume_erp import actions as act
from perfume_erp import data_manager, session
from perfume_erp.constants import ReasonCode
from perfume_erp.errors import FormatError
from perfume_erp.models import DocumentItem, StockLoadItem


def _entry(amount="10"):
    return act.AddManualLedgerEntry(partner_id="P1", date="2025-03-01", description="cassa", amount=Decimal(amount))


def test_dispatch_commits_pushes_history_and_persists(catalog_state):
    persist = Mock()
    current = session.Session(catalog_state, persist=persist)

    result = current.dispatch(_entry())

    assert result.ok is True
    assert result.error is None
    assert current.state is result.state
    assert current.can_undo is True
    persist.assert_called_once_with(result.state)


def test_rejected_dispatch_leaves_history_and_storage_untouched(catalog_state):
    persist = Mock()
    current = session.Session(catalog_state, persist=persist)

    result = current.dispatch(
        act.AddSale(
            date="2025-03-01",
            customer_id="CU1",
            items=(DocumentItem(variant_id="V1", quantity=Decimal("99"), price=Decimal("1")),),
        )
    )

    assert result.ok is False
    assert result.error.code == ReasonCode.INSUFFICIENT_STOCK
    assert result.state is catalog_state
    assert current.can_undo is False
    persist.assert_not_called()


def test_stock_load_with_malformed_expiry_is_rejected_and_sales_keep_working(catalog_state):
    persist = Mock()
    current = session.Session(catalog_state, persist=persist)

    rejected = current.dispatch(
        act.AddStockLoad(
            date="2025-02-01",
            items=(
                StockLoadItem(
                    variant_id="V1", quantity=Decimal("5"), price=Decimal("10"), expiration_date="31/12/2025"
                ),
            ),
        )
    )
    sold = current.dispatch(
        act.AddSale(
            date="2025-03-01",
            customer_id="CU1",
            items=(DocumentItem(variant_id="V1", quantity=Decimal("1"), price=Decimal("40")),),
        )
    )

    assert rejected.ok is False
    assert rejected.error.code == ReasonCode.INVALID_INPUT
    assert sold.ok is True
    persist.assert_called_once_with(sold.state)


def test_noop_dispatch_is_accepted_without_history(catalog_state):
    persist = Mock()
    current = session.Session(catalog_state, persist=persist)

    result = current.dispatch(act.DeleteSale(sale_id="missing"))

    assert result.ok is True
    assert result.state is catalog_state
    assert len(current.history) == 1
    persist.assert_not_called()


def test_undo_and_redo_persist_the_restored_state(catalog_state):
    persist = Mock()
    current = session.Session(catalog_state, persist=persist)
    committed = current.dispatch(_entry()).state

    assert current.undo() is catalog_state
    assert current.redo() is committed
    assert persist.call_count == 3
    assert current.redo() is committed
    assert persist.call_count == 3


def test_persistence_failure_is_logged_and_state_is_kept(catalog_state, caplog):
    current = session.Session(catalog_state, persist=Mock(side_effect=OSError("disk full")))

    with caplog.at_level(logging.ERROR, logger="perfume_erp"):
        result = current.dispatch(_entry())

    assert result.ok is True
    assert current.state is result.state
    assert "Failed to persist state" in caplog.text


def test_backup_restore_round_trip_resets_history(catalog_state):
    source = session.Session(catalog_state)
    source.dispatch(_entry("42"))
    document = data_manager.dumps_document(source.state)

    target = session.Session(catalog_state)
    target.dispatch(_entry("1"))
    result = target.restore_backup(document)

    assert result.ok is True
    assert target.state == source.state
    assert target.can_undo is False


def test_restore_rejects_malformed_documents(catalog_state):
    persist = Mock()
    current = session.Session(catalog_state, persist=persist)

    for document in ("not json", "[]", '{"state": {}}', {"settings": {"currentYear": 2025}}):
        result = current.restore_backup(document)
        assert result.ok is False
        assert isinstance(result.error, FormatError)
        assert current.state is catalog_state
    persist.assert_not_called()


def test_ensure_schema_version_rejects_mismatch(config_factory):
    bundle = config_factory(schema_version="0.0.1", write_document=False)
    config = data_manager.load_config_settings(bundle.config_path)

    with pytest.raises(RuntimeError):
        session.ensure_schema_version(config)


def test_open_session_saves_after_each_commit(config_bundle):
    current = session.open_session(config_bundle.config_path)

    current.dispatch(
        act.AddManualLedgerEntry(partner_id="1", date="2025-03-01", description="cassa", amount=Decimal("5"))
    )

    reloaded = data_manager.load_document(config_bundle.data_path)
    assert reloaded == current.state
    assert reloaded.partners[0].name == "Socio Test"
