"""Tests for partner balances and the settlement plan."""

from __future__ import annotations

from decimal import Decimal

from perfume_erp import ledger
from perfume_erp.constants import PartnerStatus
from perfume_erp.models import PartnerLedgerEntry


def _book(state, partner_id, amount):
    state.year_data.partner_ledger.append(
        PartnerLedgerEntry(
            id=f"{partner_id}-{len(state.year_data.partner_ledger)}",
            date="2025-03-01",
            description="test",
            amount=Decimal(amount),
            partner_id=partner_id,
        )
    )


def test_summarize_splits_the_system_total_evenly(catalog_state):
    _book(catalog_state, "P1", "300")
    _book(catalog_state, "P3", "-300")

    summary = ledger.summarize(catalog_state)

    assert summary.system_total == Decimal("0")
    assert summary.target_per_partner == Decimal("0")
    statuses = {position.partner_id: position.status for position in summary.positions}
    assert statuses == {
        "P1": PartnerStatus.DEBTOR,
        "P2": PartnerStatus.BALANCED,
        "P3": PartnerStatus.CREDITOR,
    }


def test_settlement_plan_for_symmetric_balances_is_one_transfer(catalog_state):
    _book(catalog_state, "P1", "300")
    _book(catalog_state, "P3", "-300")

    plan = ledger.plan_for_state(catalog_state)

    assert plan == [ledger.SettlementTransfer(from_partner_id="P1", to_partner_id="P3", amount=Decimal("300.00"))]


def test_settlement_plan_levels_every_partner(catalog_state):
    _book(catalog_state, "P1", "250")
    _book(catalog_state, "P2", "100")
    _book(catalog_state, "P3", "-50")
    summary = ledger.summarize(catalog_state)

    plan = ledger.settlement_plan(summary.positions)

    adjusted = {position.partner_id: position.balance for position in summary.positions}
    for transfer in plan:
        adjusted[transfer.from_partner_id] -= transfer.amount
        adjusted[transfer.to_partner_id] += transfer.amount
    assert len(plan) <= len(summary.positions) - 1
    for value in adjusted.values():
        assert abs(value - summary.target_per_partner) <= Decimal("0.01")


def test_balances_within_tolerance_need_no_transfer(catalog_state):
    _book(catalog_state, "P1", "0.005")
    _book(catalog_state, "P2", "-0.005")

    assert ledger.plan_for_state(catalog_state) == []


def test_summary_without_partners_has_zero_target(empty_state):
    empty_state.partners = []

    summary = ledger.summarize(empty_state)

    assert summary.target_per_partner == Decimal("0")
    assert summary.positions == []


def test_build_settlement_snapshot_rounds_the_target(catalog_state):
    _book(catalog_state, "P1", "100")

    snapshot = ledger.build_settlement_snapshot(catalog_state, "2025-03-31", "ST1")

    assert snapshot.id == "ST1"
    assert snapshot.total_system_balance == Decimal("100")
    assert snapshot.target_per_partner == Decimal("33.33")
    assert [item.status for item in snapshot.partner_snapshots] == [
        PartnerStatus.DEBTOR,
        PartnerStatus.CREDITOR,
        PartnerStatus.CREDITOR,
    ]
