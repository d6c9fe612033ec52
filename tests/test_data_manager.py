"""Tests for configuration handling and the JSON data document."""

from __future__ import annotations

import configparser
import json
from decimal import Decimal
from pathlib import Path

import pytest

from perfume_erp import actions as act
from perfume_erp import core_logic, data_manager
from perfume_erp.constants import DEFAULT_CATEGORIES, BatchStatus, Theme
from perfume_erp.errors import FormatError
from perfume_erp.models import DocumentItem


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def test_find_config_file_returns_explicit_path(tmp_path: Path):
    explicit = tmp_path / "custom.ini"

    assert data_manager.find_config_file(explicit) == explicit


def test_find_config_file_walks_up_from_cwd(config_bundle, monkeypatch: pytest.MonkeyPatch):
    nested = config_bundle.directory / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert data_manager.find_config_file() == config_bundle.config_path


def test_read_config_missing_file_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        data_manager.read_config(tmp_path / "absent.ini")


def test_parse_settings_resolves_relative_data_file(config_factory):
    bundle = config_factory(make_relative=True)

    settings = data_manager.load_config_settings(bundle.config_path)

    assert settings.data_file == bundle.data_path.resolve()
    assert settings.company_name == "Test Perfumes"
    assert settings.default_partner_name == "Socio Test"


def test_parse_settings_reports_missing_entries():
    parser = configparser.ConfigParser()
    parser.read_string("[System]\nDataFile = data.json\n")

    with pytest.raises(KeyError):
        data_manager.parse_settings(parser)


def test_initial_document_uses_configured_names(config_bundle):
    settings = data_manager.load_config_settings(config_bundle.config_path)

    state = data_manager.initial_document(settings, 2030)

    assert state.current_year == 2030
    assert [partner.name for partner in state.partners] == ["Socio Test"]
    assert state.settings.company_info.name == "Test Perfumes"
    assert [category.name for category in state.year_data.categories] == [name for name, _, _ in DEFAULT_CATEGORIES]


# ---------------------------------------------------------------------------
# Document round trip
# ---------------------------------------------------------------------------


def test_document_round_trip_preserves_state(catalog_state):
    state = core_logic.apply(
        catalog_state,
        act.AddSale(
            date="2025-03-01",
            customer_id="CU1",
            items=(DocumentItem(variant_id="V1", quantity=Decimal("7"), price=Decimal("39.90")),),
            vat_applied=True,
            sale_id="S1",
        ),
    )

    restored = data_manager.loads_document(data_manager.dumps_document(state))

    assert restored == state


def test_document_round_trip_keeps_high_precision_quantities(catalog_state):
    quantity = Decimal("1.123456789012345678")
    state = core_logic.apply(
        catalog_state,
        act.AddSale(
            date="2025-03-01",
            customer_id="CU1",
            items=(DocumentItem(variant_id="V1", quantity=quantity, price=Decimal("40")),),
            sale_id="S1",
        ),
    )

    raw = json.loads(data_manager.dumps_document(state))
    restored = data_manager.loads_document(data_manager.dumps_document(state))

    assert raw["state"]["years"]["2025"]["sales"][0]["items"][0]["quantity"] == "1.123456789012345678"
    assert restored == state
    assert restored.year_data.sales[0].items[0].quantity == quantity


def test_loading_rejects_batches_with_malformed_expiration_dates():
    document = {
        "state": {
            "partners": [{"id": "1", "name": "Socio Unico"}],
            "years": {
                "2025": {
                    "inventoryBatches": [
                        {
                            "id": "B1",
                            "variantId": "V1",
                            "initialQuantity": 3,
                            "currentQuantity": 3,
                            "createdAt": "",
                            "expirationDate": "31/12/2025",
                        }
                    ]
                }
            },
        },
        "settings": {"currentYear": 2025},
    }

    with pytest.raises(FormatError):
        data_manager.parse_document(document)


def test_document_layout_uses_string_year_keys(empty_state):
    raw = json.loads(data_manager.dumps_document(empty_state))

    assert set(raw) == {"state", "settings"}
    assert list(raw["state"]["years"]) == ["2025"]
    assert raw["settings"]["currentYear"] == 2025


def test_loading_applies_migration_defaults():
    document = {
        "state": {
            "partners": [{"id": "1", "name": "Socio Unico"}],
            "2024": {
                "inventoryBatches": [
                    {"id": "B1", "variantId": "V1", "initialQuantity": 3, "currentQuantity": 2, "createdAt": ""}
                ]
            },
        },
        "settings": {"currentYear": 2025},
    }

    state = data_manager.parse_document(document)

    assert sorted(state.years) == [2024, 2025]
    legacy = state.years[2024]
    assert legacy.inventory_batches[0].status == BatchStatus.AVAILABLE
    assert [category.name for category in legacy.categories] == [name for name, _, _ in DEFAULT_CATEGORIES]
    assert legacy.quotes == []
    assert state.settings.theme == Theme.LIGHT


@pytest.mark.parametrize(
    "text",
    [
        "{",
        "[1, 2]",
        '{"state": {}}',
        '{"state": [], "settings": {}}',
        '{"state": {}, "settings": {}}',
    ],
)
def test_loads_document_rejects_malformed_input(text):
    with pytest.raises(FormatError):
        data_manager.loads_document(text)


# ---------------------------------------------------------------------------
# Disk persistence
# ---------------------------------------------------------------------------


def test_save_and_load_document(tmp_path: Path, catalog_state):
    destination = tmp_path / "nested" / "perfume_data.json"

    data_manager.save_document(catalog_state, destination)

    assert data_manager.load_document(destination) == catalog_state
    assert [path.name for path in destination.parent.iterdir()] == ["perfume_data.json"]


def test_save_document_replaces_existing_file(tmp_path: Path, catalog_state, empty_state):
    destination = tmp_path / "perfume_data.json"
    data_manager.save_document(catalog_state, destination)

    data_manager.save_document(empty_state, destination)

    assert data_manager.load_document(destination).partners == empty_state.partners


def test_load_document_missing_file_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        data_manager.load_document(tmp_path / "absent.json")
