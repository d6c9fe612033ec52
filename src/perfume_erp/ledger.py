"""Partner ledger and settlement calculator.

Read-only computations over the ``partner_ledger`` of the active year and the
global partner list. Nothing here is stored; callers recompute on demand.

Sign convention: a positive balance means the partner holds company cash. A
partner holding more than the equal share is a *debtor* (owes the pool), one
holding less is a *creditor*.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from .constants import SETTLEMENT_TOLERANCE, PartnerStatus
from .models import (
    ZERO,
    AppState,
    PartnerLedgerEntry,
    PartnerSettlement,
    PartnerSnapshot,
    new_id,
    quantize_money,
)


@dataclass(frozen=True)
class PartnerPosition:
    """Balance of one partner relative to the equal share."""

    partner_id: str
    partner_name: str
    balance: Decimal
    diff: Decimal
    status: PartnerStatus


@dataclass(frozen=True)
class SettlementTransfer:
    """One payment of a settlement plan."""

    from_partner_id: str
    to_partner_id: str
    amount: Decimal


@dataclass(frozen=True)
class LedgerSummary:
    system_total: Decimal
    target_per_partner: Decimal
    positions: List[PartnerPosition]


def balance(entries: Iterable[PartnerLedgerEntry], partner_id: str) -> Decimal:
    """Sum of the signed amounts booked to ``partner_id``."""

    return sum((entry.amount for entry in entries if entry.partner_id == partner_id), ZERO)


def partner_balances(state: AppState) -> Dict[str, Decimal]:
    """Balance of every known partner in the active year, in partner order."""

    entries = state.year_data.partner_ledger
    return {partner.id: balance(entries, partner.id) for partner in state.partners}


def classify(diff: Decimal) -> PartnerStatus:
    if diff > SETTLEMENT_TOLERANCE:
        return PartnerStatus.DEBTOR
    if diff < -SETTLEMENT_TOLERANCE:
        return PartnerStatus.CREDITOR
    return PartnerStatus.BALANCED


def summarize(state: AppState) -> LedgerSummary:
    """Compute the system total, the per-partner target and every position.

    The target is the system total split evenly across partners; with no
    partners it is zero.
    """

    balances = partner_balances(state)
    system_total = sum(balances.values(), ZERO)
    target = system_total / len(state.partners) if state.partners else ZERO

    positions = []
    for partner in state.partners:
        partner_balance = balances[partner.id]
        diff = partner_balance - target
        positions.append(
            PartnerPosition(
                partner_id=partner.id,
                partner_name=partner.name,
                balance=partner_balance,
                diff=diff,
                status=classify(diff),
            )
        )
    return LedgerSummary(system_total=system_total, target_per_partner=target, positions=positions)


def settlement_plan(positions: Sequence[PartnerPosition]) -> List[SettlementTransfer]:
    """Greedy minimum-transfer plan that levels every partner to the target.

    Debtors (positive ``diff``) are matched against creditors (negative
    ``diff``) in the order given. Each step moves the smaller of the two
    remainders; a worklist entry is dropped once its remainder falls below
    the settlement tolerance. At most ``len(positions) - 1`` transfers result.

    Args:
        positions (Sequence[PartnerPosition]): Output of :func:`summarize`.

    Returns:
        list[SettlementTransfer]: Transfers with amounts rounded to cents.
    """

    debtors = [[position.partner_id, position.diff] for position in positions if position.diff > 0]
    creditors = [[position.partner_id, -position.diff] for position in positions if position.diff < 0]

    transfers: List[SettlementTransfer] = []
    debtor_index = creditor_index = 0
    while debtor_index < len(debtors) and creditor_index < len(creditors):
        debtor = debtors[debtor_index]
        creditor = creditors[creditor_index]
        amount = min(debtor[1], creditor[1])
        if amount > SETTLEMENT_TOLERANCE:
            transfers.append(
                SettlementTransfer(
                    from_partner_id=debtor[0],
                    to_partner_id=creditor[0],
                    amount=quantize_money(amount),
                )
            )
        debtor[1] -= amount
        creditor[1] -= amount
        if debtor[1] < SETTLEMENT_TOLERANCE:
            debtor_index += 1
        if creditor[1] < SETTLEMENT_TOLERANCE:
            creditor_index += 1
    return transfers


def plan_for_state(state: AppState) -> List[SettlementTransfer]:
    return settlement_plan(summarize(state).positions)


def build_settlement_snapshot(
    state: AppState,
    date: str,
    settlement_id: Optional[str] = None,
) -> PartnerSettlement:
    """Capture the current positions as a :class:`PartnerSettlement` record."""

    summary = summarize(state)
    snapshots = [
        PartnerSnapshot(
            partner_id=position.partner_id,
            partner_name=position.partner_name,
            balance=position.balance,
            status=position.status,
        )
        for position in summary.positions
    ]
    return PartnerSettlement(
        id=settlement_id or new_id(),
        date=date,
        total_system_balance=summary.system_total,
        target_per_partner=quantize_money(summary.target_per_partner),
        partner_snapshots=snapshots,
    )


__all__ = [
    "PartnerPosition",
    "SettlementTransfer",
    "LedgerSummary",
    "balance",
    "partner_balances",
    "classify",
    "summarize",
    "settlement_plan",
    "plan_for_state",
    "build_settlement_snapshot",
]
