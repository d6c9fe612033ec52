"""Shared pytest fixtures and utilities for Perfume ERP tests."""

from __future__ import annotations

import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator, Optional

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

for candidate in (SRC_DIR, PROJECT_ROOT):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from perfume_erp import constants, data_manager  # noqa: E402
from perfume_erp.constants import BatchStatus  # noqa: E402
from perfume_erp.models import (  # noqa: E402
    AppState,
    Customer,
    InventoryBatch,
    Partner,
    Product,
    ProductVariant,
)

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
TEST_YEAR = 2025
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "CompanyName = {company_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Defaults]\n"
    "DefaultPartner = {default_partner}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    data_path: Path
    company_name: str
    schema_version: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


def make_batch(
    batch_id: str,
    variant_id: str,
    quantity,
    *,
    initial=None,
    expiration_date: Optional[str] = None,
    created_at: str = "2024-01-01T00:00:00+00:00",
    status: BatchStatus = BatchStatus.AVAILABLE,
) -> InventoryBatch:
    """Build a batch; ``initial`` defaults to the current quantity."""

    quantity = Decimal(str(quantity))
    return InventoryBatch(
        id=batch_id,
        variant_id=variant_id,
        initial_quantity=Decimal(str(initial)) if initial is not None else quantity,
        current_quantity=quantity,
        created_at=created_at,
        status=status,
        expiration_date=expiration_date,
    )


@pytest.fixture
def batch_factory() -> Callable[..., InventoryBatch]:
    return make_batch


@pytest.fixture
def empty_state() -> AppState:
    """Fresh state for the test year with the default partner."""

    return AppState.initial(TEST_YEAR)


@pytest.fixture
def catalog_state(empty_state: AppState) -> AppState:
    """State with a product, two variants, a customer and three partners.

    ``V1`` holds two batches (5 expiring 2025-01-01, 10 expiring 2025-06-01)
    and ``C1`` is a raw material with 15 units on hand.
    """

    state = empty_state
    state.partners = [Partner(id="P1", name="Anna"), Partner(id="P2", name="Bruno"), Partner(id="P3", name="Carla")]
    year = state.year_data
    year.products.append(Product(id="PR1", name="Ambra", category="Prodotto Finito"))
    year.products.append(Product(id="PR2", name="Alcool", category="Materia Prima"))
    year.product_variants.extend(
        [
            ProductVariant(id="V1", product_id="PR1", name="50ml", sale_price=Decimal("40")),
            ProductVariant(id="C1", product_id="PR2", name="1L"),
        ]
    )
    year.customers.append(Customer(id="CU1", name="Profumeria Rossi"))
    year.customers.append(Customer(id="CU2", name="Boutique Verdi"))
    year.inventory_batches.extend(
        [
            make_batch("B1", "V1", 5, expiration_date="2025-01-01", created_at="2024-01-01T00:00:00+00:00"),
            make_batch("B2", "V1", 10, expiration_date="2025-06-01", created_at="2024-02-01T00:00:00+00:00"),
            make_batch("BC", "C1", 15, created_at="2024-01-15T00:00:00+00:00"),
        ]
    )
    return state


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/data document bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        company_name: str = "Test Perfumes",
        schema_version: str = constants.EXPECTED_SCHEMA_VERSION,
        default_partner: str = "Socio Test",
        write_document: bool = True,
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        data_path = bundle_dir / "perfume_data.json"
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_path.name if make_relative else str(data_path),
                company_name=company_name,
                schema_version=schema_version,
                default_partner=default_partner,
            ),
            encoding="utf-8",
        )
        if write_document:
            settings = data_manager.parse_settings(data_manager.read_config(config_path), base_path=bundle_dir)
            data_manager.save_document(data_manager.initial_document(settings, TEST_YEAR), data_path)
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            data_path=data_path,
            company_name=company_name,
            schema_version=schema_version,
        )

    return _create_config


@pytest.fixture
def config_bundle(config_factory: Callable[..., ConfigBundle]) -> ConfigBundle:
    return config_factory()
