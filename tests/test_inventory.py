"""Unit tests for the batch inventory engine."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from perfume_erp import inventory
from perfume_erp.constants import BatchStatus
from perfume_erp.models import SourceBatch


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def test_available_quantity_ignores_macerating_batches(batch_factory):
    batches = [
        batch_factory("A", "V1", 4),
        batch_factory("M", "V1", 6, status=BatchStatus.MACERATING),
        batch_factory("X", "V2", 9),
    ]

    assert inventory.available_quantity(batches, "V1") == Decimal("4")
    assert inventory.total_quantity(batches, "V1") == Decimal("10")


def test_available_quantity_of_unknown_variant_is_zero(batch_factory):
    assert inventory.available_quantity([batch_factory("A", "V1", 4)], "missing") == Decimal("0")


def test_sort_for_consumption_prefers_expiring_batches_then_oldest(batch_factory):
    batches = [
        batch_factory("no-expiry-new", "V1", 1, created_at="2024-05-01T00:00:00+00:00"),
        batch_factory("late", "V1", 1, expiration_date="2026-01-01"),
        batch_factory("no-expiry-old", "V1", 1, created_at="2024-01-01T00:00:00+00:00"),
        batch_factory("early", "V1", 1, expiration_date="2025-01-01"),
        batch_factory("empty", "V1", 0, initial=3, expiration_date="2024-01-01"),
    ]

    ordered = [batch.id for batch in inventory.sort_for_consumption(batches, "V1")]

    assert ordered == ["early", "late", "no-expiry-old", "no-expiry-new"]


# ---------------------------------------------------------------------------
# Consumption
# ---------------------------------------------------------------------------


def test_consume_debits_earliest_expiry_first(batch_factory):
    b1 = batch_factory("B1", "V1", 5, expiration_date="2025-01-01")
    b2 = batch_factory("B2", "V1", 10, expiration_date="2025-06-01")

    taken = inventory.consume([b2, b1], "V1", Decimal("7"))

    assert b1.current_quantity == Decimal("0")
    assert b2.current_quantity == Decimal("8")
    assert taken == [
        SourceBatch(batch_id="B1", quantity_taken=Decimal("5")),
        SourceBatch(batch_id="B2", quantity_taken=Decimal("2")),
    ]


def test_consume_skips_macerating_batches(batch_factory):
    held = batch_factory("M", "V1", 10, expiration_date="2024-01-01", status=BatchStatus.MACERATING)
    ready = batch_factory("R", "V1", 10)

    inventory.consume([held, ready], "V1", Decimal("3"))

    assert held.current_quantity == Decimal("10")
    assert ready.current_quantity == Decimal("7")


def test_return_to_sources_reverses_consumption_exactly(batch_factory):
    b1 = batch_factory("B1", "V1", 5, expiration_date="2025-01-01")
    b2 = batch_factory("B2", "V1", 10, expiration_date="2025-06-01")
    taken = inventory.consume([b1, b2], "V1", Decimal("7"))

    inventory.return_to_sources([b1, b2], taken)

    assert (b1.current_quantity, b2.current_quantity) == (Decimal("5"), Decimal("10"))


# ---------------------------------------------------------------------------
# Restore after sale deletion
# ---------------------------------------------------------------------------


def test_restore_refills_newest_batch_first_up_to_initial_quantity(batch_factory):
    older = batch_factory("old", "V1", 0, initial=5, created_at="2024-01-01T00:00:00+00:00")
    newer = batch_factory("new", "V1", 8, initial=10, created_at="2024-02-01T00:00:00+00:00")

    leftover = inventory.restore([older, newer], "V1", Decimal("7"))

    assert leftover == Decimal("0")
    assert newer.current_quantity == Decimal("10")
    assert older.current_quantity == Decimal("5")


def test_restore_overflows_into_newest_batch_beyond_initial_quantity(batch_factory):
    batch = batch_factory("only", "V1", 10, initial=10)

    leftover = inventory.restore([batch], "V1", Decimal("3"))

    assert leftover == Decimal("0")
    assert batch.current_quantity == Decimal("13")
    assert batch.current_quantity > batch.initial_quantity


def test_restore_without_available_batch_reports_the_remainder(batch_factory):
    held = batch_factory("M", "V1", 0, initial=5, status=BatchStatus.MACERATING)

    leftover = inventory.restore([held], "V1", Decimal("2"))

    assert leftover == Decimal("2")
    assert held.current_quantity == Decimal("0")


# ---------------------------------------------------------------------------
# Maceration
# ---------------------------------------------------------------------------


def test_complete_maceration_rounds_elapsed_days_up(batch_factory):
    batch = batch_factory(
        "M",
        "V1",
        10,
        created_at="2025-01-01T00:00:00+00:00",
        status=BatchStatus.MACERATING,
    )

    changed = inventory.complete_maceration([batch], "M", datetime(2025, 1, 15, 6, 0, tzinfo=UTC))

    assert changed is True
    assert batch.status == BatchStatus.AVAILABLE
    assert batch.actual_maceration_days == 15


def test_complete_maceration_ignores_available_or_missing_batches(batch_factory):
    batch = batch_factory("A", "V1", 10)
    now = datetime(2025, 1, 15, tzinfo=UTC)

    assert inventory.complete_maceration([batch], "A", now) is False
    assert inventory.complete_maceration([batch], "missing", now) is False
    assert batch.actual_maceration_days is None


def test_macerating_batches_are_ordered_by_end_date(batch_factory):
    late = batch_factory("late", "V1", 1, status=BatchStatus.MACERATING)
    late.maceration_end_date = "2025-04-01"
    soon = batch_factory("soon", "V1", 1, status=BatchStatus.MACERATING)
    soon.maceration_end_date = "2025-03-01"

    result = inventory.macerating_batches([late, batch_factory("A", "V1", 1), soon])

    assert [batch.id for batch in result] == ["soon", "late"]
