"""Excel export of the active year.

Produces a read-only snapshot workbook for accountants: one sheet per
collection plus a ``Balances`` sheet with the partner positions. The state is
never modified.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Sequence

import openpyxl
from openpyxl.styles import Font
from openpyxl.worksheet.worksheet import Worksheet

from . import inventory, ledger, log
from .models import AppState, YearData


SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    "Products": ["ProductID", "Code", "Name", "Brand", "Category", "Unit"],
    "Variants": ["VariantID", "ProductID", "Name", "Capacity", "PurchasePrice", "SalePrice", "Available", "Total"],
    "Batches": [
        "BatchID",
        "VariantID",
        "BatchNumber",
        "Status",
        "ExpirationDate",
        "InitialQuantity",
        "CurrentQuantity",
        "CreatedAt",
        "MacerationEndDate",
    ],
    "Sales": ["SaleID", "Date", "Customer", "Subtotal", "VatApplied", "Total", "Paid", "Due"],
    "Ledger": ["EntryID", "Date", "Partner", "Description", "Amount", "RelatedDocumentID"],
    "Balances": ["PartnerID", "PartnerName", "Balance", "Diff", "Status"],
}


def _cell(value: Any) -> Any:
    # plain floats keep the sheet numeric for spreadsheet formulas
    if isinstance(value, Decimal):
        return float(value)
    return value


def _write_rows(worksheet: Worksheet, rows: Iterable[Sequence[Any]]) -> int:
    count = 0
    for row in rows:
        worksheet.append([_cell(value) for value in row])
        count += 1
    return count


def _sheet_rows(state: AppState, year: YearData) -> Mapping[str, List[Sequence[Any]]]:
    partner_names = {partner.id: partner.name for partner in state.partners}
    summary = ledger.summarize(state)
    return {
        "Products": [
            [product.id, product.code, product.name, product.brand, product.category, product.unit.value]
            for product in year.products
        ],
        "Variants": [
            [
                variant.id,
                variant.product_id,
                variant.name,
                variant.capacity,
                variant.purchase_price,
                variant.sale_price,
                inventory.available_quantity(year.inventory_batches, variant.id),
                inventory.total_quantity(year.inventory_batches, variant.id),
            ]
            for variant in year.product_variants
        ],
        "Batches": [
            [
                batch.id,
                batch.variant_id,
                batch.batch_number,
                batch.status.value,
                batch.expiration_date,
                batch.initial_quantity,
                batch.current_quantity,
                batch.created_at,
                batch.maceration_end_date,
            ]
            for batch in year.inventory_batches
        ],
        "Sales": [
            [
                sale.id,
                sale.date,
                year.customer_name(sale.customer_id, sale.customer_id),
                sale.subtotal,
                sale.vat_applied,
                sale.total,
                sale.amount_paid,
                sale.amount_due,
            ]
            for sale in year.sales
        ],
        "Ledger": [
            [
                entry.id,
                entry.date,
                partner_names.get(entry.partner_id, entry.partner_id),
                entry.description,
                entry.amount,
                entry.related_document_id,
            ]
            for entry in year.partner_ledger
        ],
        "Balances": [
            [position.partner_id, position.partner_name, position.balance, position.diff, position.status.value]
            for position in summary.positions
        ],
    }


def export_year(state: AppState, destination: Path, *, overwrite: bool = True) -> Path:
    """Write the active year of ``state`` to an ``.xlsx`` workbook.

    Args:
        state (AppState): State to export; only the current year is written.
        destination (Path): Target workbook path. Parent directories are
            created on demand.
        overwrite (bool): When ``False`` an existing file is left alone and
            :class:`FileExistsError` is raised.

    Returns:
        Path: Resolved path of the written workbook.
    """

    destination = Path(destination).expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing workbook: {destination}")
    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()
    # Remove the default sheet openpyxl generates so we can create ours.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)
    rows_by_sheet = _sheet_rows(state, state.year_data)
    for sheet_name, columns in SHEET_COLUMNS.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for column_index, column_name in enumerate(columns, start=1):
            cell = worksheet.cell(row=1, column=column_index)
            cell.value = column_name
            cell.font = bold_font
        written = _write_rows(worksheet, rows_by_sheet[sheet_name])
        log.debug("Exported %d row(s) to sheet '%s'", written, sheet_name)

    workbook.save(destination)
    log.info("Exported year %s to '%s'", state.current_year, destination)
    return destination


__all__ = ["SHEET_COLUMNS", "export_year"]
