"""Enumerations and constants shared across Perfume ERP modules.

Centralises domain constants so that the data access layer (DAL), the
transaction reducer, the ledger calculator and the CLI rely on a single source
of truth for status values, rates and defaults.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


# Central schema version expected by all layers when validating documents.
EXPECTED_SCHEMA_VERSION = "1.0.0"

VAT_RATE = Decimal("0.22")

# Retained full-state snapshots for undo/redo.
MAX_HISTORY_LENGTH = 20

# Amounts below this threshold are treated as zero by the settlement logic.
SETTLEMENT_TOLERANCE = Decimal("0.01")

MONEY_QUANTUM = Decimal("0.01")

PRODUCTION_SHELF_LIFE_MONTHS = 24

DEFAULT_PARTNER_ID = "1"
DEFAULT_PARTNER_NAME = "Socio Unico"

UNKNOWN_NAME = "Sconosciuto"
INTERNAL_SUPPLIER_NAME = "Deposito/Interno"
MIXED_CUSTOMERS_NAME = "Clienti Vari"


class BatchStatus(str, Enum):
    """Lifecycle of an inventory batch."""

    AVAILABLE = "available"
    MACERATING = "macerating"


class DocumentType(str, Enum):
    """Discriminator stored on sales and quotes."""

    SALE = "vendita"
    QUOTE = "preventivo"


class QuoteStatus(str, Enum):
    """Quote lifecycle: open until converted into a sale."""

    OPEN = "aperto"
    CONVERTED = "convertito"


class OrderStatus(str, Enum):
    """Customer order lifecycle."""

    IN_PREPARATION = "in-preparazione"
    COMPLETED = "completato"
    CANCELLED = "annullato"


class DiscountType(str, Enum):
    """How a document discount value is interpreted."""

    AMOUNT = "amount"
    PERCENTAGE = "percentage"


class ProductionType(str, Enum):
    """Purpose of a production run."""

    FINISHED_SALE = "finished_sale"
    BULK_REFILL = "bulk_refill"


class PartnerStatus(str, Enum):
    """Position of a partner relative to the equal share of system cash."""

    DEBTOR = "debtor"
    CREDITOR = "creditor"
    BALANCED = "balanced"


class ProductUnit(str, Enum):
    """Measurement unit of a product."""

    PIECE = "pz"
    MILLILITRE = "ml"
    LITRE = "l"
    GRAM = "g"
    KILOGRAM = "kg"


class Theme(str, Enum):
    """UI theme persisted with the settings."""

    LIGHT = "light"
    DARK = "dark"


class ReasonCode:
    """Machine-readable rejection codes carried by domain errors."""

    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    DUPLICATE_NAME = "DUPLICATE_NAME"
    REFERENTIAL_BLOCK = "REFERENTIAL_BLOCK"
    CONFLICTING_STATE = "CONFLICTING_STATE"
    NOT_FOUND = "NOT_FOUND"
    FORMAT_ERROR = "FORMAT_ERROR"
    INVALID_INPUT = "INVALID_INPUT"


# Categories seeded into every new year: (name, is_component, is_finished_product)
DEFAULT_CATEGORIES: tuple[tuple[str, bool, bool], ...] = (
    ("Materia Prima", True, False),
    ("Accessorio", True, False),
    ("Prodotto Finito", False, True),
    ("Semilavorato (Sfuso)", True, True),
)

DEFAULT_COMPANY_INFO: dict[str, str] = {
    "name": "Profumeria Pro S.R.L.",
    "address": "Via delle Essenze, 123",
    "city": "40100 Bologna (BO)",
    "vatNumber": "IT01234567890",
    "email": "info@profumeriapro.it",
    "phone": "+39 051 123456",
}


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "VAT_RATE",
    "MAX_HISTORY_LENGTH",
    "SETTLEMENT_TOLERANCE",
    "MONEY_QUANTUM",
    "PRODUCTION_SHELF_LIFE_MONTHS",
    "DEFAULT_PARTNER_ID",
    "DEFAULT_PARTNER_NAME",
    "UNKNOWN_NAME",
    "INTERNAL_SUPPLIER_NAME",
    "MIXED_CUSTOMERS_NAME",
    "BatchStatus",
    "DocumentType",
    "QuoteStatus",
    "OrderStatus",
    "DiscountType",
    "ProductionType",
    "PartnerStatus",
    "ProductUnit",
    "Theme",
    "ReasonCode",
    "DEFAULT_CATEGORIES",
    "DEFAULT_COMPANY_INFO",
]
