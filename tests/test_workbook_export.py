"""Tests for the Excel export of the active year."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import openpyxl
import pytest

from perfume_erp import actions as act
from perfume_erp import core_logic
from perfume_erp.models import DocumentItem
from perfume_erp.workbook_export import SHEET_COLUMNS, export_year


def test_export_year_writes_headers_and_rows(tmp_path: Path, catalog_state):
    state = core_logic.apply(
        catalog_state,
        act.AddSale(
            date="2025-03-01",
            customer_id="CU1",
            items=(DocumentItem(variant_id="V1", quantity=Decimal("2"), price=Decimal("40")),),
            sale_id="S1",
        ),
    )

    path = export_year(state, tmp_path / "year.xlsx")

    workbook = openpyxl.load_workbook(path)
    assert workbook.sheetnames == list(SHEET_COLUMNS)
    header = [cell.value for cell in workbook["Sales"][1]]
    assert header == list(SHEET_COLUMNS["Sales"])
    assert workbook["Sales"]["A1"].font.bold is True
    sale_row = [cell.value for cell in workbook["Sales"][2]]
    assert sale_row[:3] == ["S1", "2025-03-01", "Profumeria Rossi"]
    assert sale_row[5] == pytest.approx(80.0)
    variants = {row[0]: row for row in workbook["Variants"].iter_rows(min_row=2, values_only=True)}
    assert variants["V1"][6] == pytest.approx(13.0)
    assert workbook["Batches"].max_row == 1 + len(state.year_data.inventory_batches)


def test_export_year_refuses_to_overwrite_when_asked(tmp_path: Path, empty_state):
    path = export_year(empty_state, tmp_path / "year.xlsx")

    with pytest.raises(FileExistsError):
        export_year(empty_state, path, overwrite=False)
