"""Batch inventory engine.

Stateless helpers over a list of :class:`~perfume_erp.models.InventoryBatch`.
Queries never mutate. ``consume``, ``restore`` and ``complete_maceration``
mutate the batches they are handed, so the reducer only ever calls them on its
draft copy of the year.
"""

from __future__ import annotations

import math
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from . import log
from .constants import BatchStatus
from .models import ZERO, InventoryBatch, SourceBatch, parse_iso_date


_EPOCH = datetime.min.replace(tzinfo=UTC)


def parse_timestamp(raw: Optional[str]) -> datetime:
    """Parse an ISO timestamp into an aware UTC datetime.

    Naive values are assumed to be UTC; empty values sort first.
    """

    if not raw:
        return _EPOCH
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def total_quantity(batches: Iterable[InventoryBatch], variant_id: str) -> Decimal:
    """Physical quantity of a variant across every batch, macerating included."""

    return sum((batch.current_quantity for batch in batches if batch.variant_id == variant_id), ZERO)


def available_quantity(batches: Iterable[InventoryBatch], variant_id: str) -> Decimal:
    """Quantity of a variant that can be sold or consumed (``available`` batches only)."""

    return sum(
        (
            batch.current_quantity
            for batch in batches
            if batch.variant_id == variant_id and batch.status == BatchStatus.AVAILABLE
        ),
        ZERO,
    )


def _consumption_key(batch: InventoryBatch) -> tuple:
    if batch.expiration_date:
        return (0, parse_iso_date(batch.expiration_date), _EPOCH)
    return (1, date.min, parse_timestamp(batch.created_at))


def sort_for_consumption(
    batches: Iterable[InventoryBatch],
    variant_id: str,
    *,
    available_only: bool = True,
) -> List[InventoryBatch]:
    """Return non-empty batches of ``variant_id`` in consumption order.

    Batches with an expiration date come first, earliest expiry first (FEFO).
    Batches without one follow, oldest ``created_at`` first (FIFO). The sort is
    stable, so ties keep insertion order.

    Args:
        batches (Iterable[InventoryBatch]): Batches of the active year.
        variant_id (str): Variant whose batches should be returned.
        available_only (bool): When ``True`` macerating batches are excluded,
            which is the behaviour every consuming caller needs.

    Returns:
        list[InventoryBatch]: The matching batch objects themselves (not
            copies) in consumption order.
    """

    candidates = [
        batch
        for batch in batches
        if batch.variant_id == variant_id
        and batch.current_quantity > 0
        and (not available_only or batch.status == BatchStatus.AVAILABLE)
    ]
    return sorted(candidates, key=_consumption_key)


def consume(batches: Sequence[InventoryBatch], variant_id: str, quantity: Decimal) -> List[SourceBatch]:
    """Debit ``quantity`` of ``variant_id`` following FEFO/FIFO order.

    The caller must have verified availability beforehand; when batches run
    out the walk simply stops and the shortfall is not reported.

    Returns:
        list[SourceBatch]: One record per debited batch, suitable for exact
            reversal of a production run.
    """

    remaining = quantity
    taken: List[SourceBatch] = []
    for batch in sort_for_consumption(batches, variant_id):
        if remaining <= 0:
            break
        portion = min(batch.current_quantity, remaining)
        batch.current_quantity -= portion
        remaining -= portion
        taken.append(SourceBatch(batch_id=batch.id, quantity_taken=portion))

    if remaining > 0:
        log.debug("Consumption of variant '%s' stopped with %s unassigned", variant_id, remaining)
    return taken


def restore(batches: Sequence[InventoryBatch], variant_id: str, quantity: Decimal) -> Decimal:
    """Give back ``quantity`` of ``variant_id`` after a sale is deleted.

    Available batches are refilled newest first, each up to its original
    ``initial_quantity``. Whatever cannot be placed that way is added to the
    newest available batch even if that pushes it above ``initial_quantity``.
    When the variant has no available batch at all nothing can be placed.

    Returns:
        Decimal: Quantity that could not be placed anywhere.
    """

    candidates = [
        batch
        for batch in batches
        if batch.variant_id == variant_id and batch.status == BatchStatus.AVAILABLE
    ]
    candidates.sort(key=lambda batch: parse_timestamp(batch.created_at), reverse=True)

    remaining = quantity
    for batch in candidates:
        if remaining <= 0:
            break
        portion = min(batch.headroom, remaining)
        if portion <= 0:
            continue
        batch.current_quantity += portion
        remaining -= portion

    if remaining > 0 and candidates:
        newest = candidates[0]
        log.debug(
            "Restoring %s of variant '%s' beyond the initial quantity of batch '%s'",
            remaining,
            variant_id,
            newest.id,
        )
        newest.current_quantity += remaining
        remaining = ZERO

    if remaining > 0:
        log.warning("No available batch of variant '%s' could take back %s", variant_id, remaining)
    return remaining


def return_to_sources(batches: Sequence[InventoryBatch], sources: Iterable[SourceBatch]) -> None:
    """Credit each recorded source batch with exactly what was taken from it."""

    by_id = {batch.id: batch for batch in batches}
    for source in sources:
        batch = by_id.get(source.batch_id)
        if batch is None:
            log.debug("Source batch '%s' no longer exists; skipping", source.batch_id)
            continue
        batch.current_quantity += source.quantity_taken


def complete_maceration(batches: Sequence[InventoryBatch], batch_id: str, now: datetime) -> bool:
    """Move a macerating batch to ``available``.

    ``actual_maceration_days`` records the whole days elapsed since the batch
    was created, rounded up.

    Returns:
        bool: ``True`` when the batch changed state, ``False`` when it is
            missing or not macerating.
    """

    batch = next((candidate for candidate in batches if candidate.id == batch_id), None)
    if batch is None or batch.status != BatchStatus.MACERATING:
        return False

    elapsed = abs(now - parse_timestamp(batch.created_at))
    batch.status = BatchStatus.AVAILABLE
    batch.actual_maceration_days = math.ceil(elapsed / timedelta(days=1))
    return True


def macerating_batches(batches: Iterable[InventoryBatch]) -> List[InventoryBatch]:
    """Batches still on hold, ordered by expected end of maceration."""

    held = [batch for batch in batches if batch.status == BatchStatus.MACERATING]
    return sorted(held, key=lambda batch: batch.maceration_end_date or "")


__all__ = [
    "parse_timestamp",
    "total_quantity",
    "available_quantity",
    "sort_for_consumption",
    "consume",
    "restore",
    "return_to_sources",
    "complete_maceration",
    "macerating_batches",
]
