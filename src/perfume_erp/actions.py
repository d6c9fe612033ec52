"""Action types accepted by the transaction reducer.

Each action is a frozen dataclass describing one user intent. ``Action`` is the
closed union of all of them and :data:`ACTION_TYPES` lists every member so the
reducer can check that each one has a handler.

Actions that create an entity accept an optional identifier; when it is left
empty the reducer generates one. Actions whose effect depends on the wall
clock carry an optional ``timestamp`` that defaults to "now" at apply time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple, Union, get_args

from .constants import DiscountType, ProductionType, Theme
from .models import (
    Agent,
    Category,
    CompanyInfo,
    Customer,
    DocumentItem,
    OrderItem,
    Partner,
    Product,
    ProductVariant,
    SettlementPayment,
    StockLoadItem,
    Supplier,
)


# ---------------------------------------------------------------------------
# Settings and year lifecycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UpdateSettings:
    """Merge the provided settings; ``None`` leaves a field untouched."""

    theme: Optional[Theme] = None
    current_year: Optional[int] = None
    firebase_enabled: Optional[bool] = None
    ai_assistant_enabled: Optional[bool] = None
    company_info: Optional[CompanyInfo] = None


@dataclass(frozen=True)
class ResetApp:
    """Discard everything and start from the initial state."""

    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ArchiveYear:
    """Seal the current year and open the next one."""


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddCustomer:
    customer: Customer


@dataclass(frozen=True)
class UpdateCustomer:
    customer: Customer


@dataclass(frozen=True)
class DeleteCustomer:
    customer_id: str


@dataclass(frozen=True)
class AddSupplier:
    supplier: Supplier


@dataclass(frozen=True)
class UpdateSupplier:
    supplier: Supplier


@dataclass(frozen=True)
class DeleteSupplier:
    supplier_id: str


@dataclass(frozen=True)
class AddAgent:
    agent: Agent


@dataclass(frozen=True)
class UpdateAgent:
    agent: Agent


@dataclass(frozen=True)
class DeleteAgent:
    agent_id: str


@dataclass(frozen=True)
class AddPartner:
    partner: Partner


@dataclass(frozen=True)
class UpdatePartner:
    partner: Partner


@dataclass(frozen=True)
class DeletePartner:
    partner_id: str


@dataclass(frozen=True)
class AddProduct:
    """Create a product together with its default variant."""

    product: Product
    initial_capacity: Optional[Decimal] = None


@dataclass(frozen=True)
class UpdateProduct:
    product: Product


@dataclass(frozen=True)
class DeleteProduct:
    product_id: str


@dataclass(frozen=True)
class AddVariant:
    variant: ProductVariant


@dataclass(frozen=True)
class UpdateVariant:
    variant: ProductVariant


@dataclass(frozen=True)
class DeleteVariant:
    variant_id: str


@dataclass(frozen=True)
class AddCategory:
    category: Category


@dataclass(frozen=True)
class UpdateCategory:
    """Replace a category; products using its old name follow the rename."""

    category: Category


@dataclass(frozen=True)
class DeleteCategory:
    category_id: str


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddStockLoad:
    date: str
    items: Tuple[StockLoadItem, ...]
    supplier_id: Optional[str] = None
    paid_by_partner_id: Optional[str] = None
    vat_applied: bool = False
    discount_value: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    shipping_cost: Optional[Decimal] = None
    load_id: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class UpdateStockLoad:
    """Edit the header of a stock load; items and totals are immutable."""

    load_id: str
    date: str
    supplier_id: Optional[str] = None
    paid_by_partner_id: Optional[str] = None


@dataclass(frozen=True)
class DeleteStockLoad:
    load_id: str


@dataclass(frozen=True)
class ComponentRequest:
    """Quantity of one component variant to draw for a production run."""

    variant_id: str
    quantity_used: Decimal
    weight_in_grams: Optional[Decimal] = None


@dataclass(frozen=True)
class AddProduction:
    date: str
    finished_product_id: str
    quantity_produced: Decimal
    components: Tuple[ComponentRequest, ...]
    maceration_days: Optional[int] = None
    production_type: ProductionType = ProductionType.FINISHED_SALE
    color_code: Optional[str] = None
    color_drops: Optional[int] = None
    production_id: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class DeleteProduction:
    production_id: str


@dataclass(frozen=True)
class CompleteMaceration:
    batch_id: str
    timestamp: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Sales and quotes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddSale:
    date: str
    customer_id: str
    items: Tuple[DocumentItem, ...]
    vat_applied: bool = False
    discount_value: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    shipping_cost: Optional[Decimal] = None
    sale_id: Optional[str] = None


@dataclass(frozen=True)
class DeleteSale:
    sale_id: str


@dataclass(frozen=True)
class CollectSale:
    """Register a (possibly partial) payment received by a partner."""

    sale_id: str
    partner_id: str
    date: str
    amount: Decimal


@dataclass(frozen=True)
class SaleCollection:
    sale_id: str
    amount: Decimal


@dataclass(frozen=True)
class BulkCollectSales:
    """Collect several sales at once, booked as one ledger movement."""

    collections: Tuple[SaleCollection, ...]
    partner_id: str
    date: str


@dataclass(frozen=True)
class AddQuote:
    date: str
    customer_id: str
    items: Tuple[DocumentItem, ...]
    vat_applied: bool = False
    discount_value: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    shipping_cost: Optional[Decimal] = None
    quote_id: Optional[str] = None


@dataclass(frozen=True)
class DeleteQuote:
    quote_id: str


@dataclass(frozen=True)
class CollectQuote:
    quote_id: str
    partner_id: str
    date: str
    amount: Decimal


@dataclass(frozen=True)
class ConvertQuoteToSale:
    quote_id: str
    sale_id: Optional[str] = None
    timestamp: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Customer orders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddOrder:
    date: str
    customer_id: str
    items: Tuple[OrderItem, ...]
    vat_applied: bool = False
    discount_value: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    shipping_cost: Optional[Decimal] = None
    notes: Optional[str] = None
    order_id: Optional[str] = None


@dataclass(frozen=True)
class UpdateOrder:
    """Replace the content of an order; totals are recomputed, status kept."""

    order_id: str
    date: str
    customer_id: str
    items: Tuple[OrderItem, ...]
    vat_applied: bool = False
    discount_value: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    shipping_cost: Optional[Decimal] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class DeleteOrder:
    order_id: str


@dataclass(frozen=True)
class ToggleOrderItemPrepared:
    order_id: str
    variant_id: str


@dataclass(frozen=True)
class ConvertOrderToSale:
    order_id: str
    sale_id: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class CancelOrder:
    order_id: str


# ---------------------------------------------------------------------------
# Partner ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddManualLedgerEntry:
    partner_id: str
    date: str
    description: str
    amount: Decimal
    related_document_id: Optional[str] = None
    payment_method: Optional[str] = None
    entry_id: Optional[str] = None


@dataclass(frozen=True)
class TransferBetweenPartners:
    """Cash handed from one partner to another."""

    from_partner_id: str
    to_partner_id: str
    amount: Decimal
    date: str
    description: str = ""


@dataclass(frozen=True)
class SettlePartnerDebt:
    """Book one transfer of a settlement plan (debtor pays creditor)."""

    from_partner_id: str
    to_partner_id: str
    amount: Decimal
    date: str


@dataclass(frozen=True)
class ArchivePartnerSettlement:
    """Snapshot current balances and zero them with reversing entries."""

    date: str
    settlement_id: Optional[str] = None


@dataclass(frozen=True)
class AttachSettlementPayment:
    settlement_id: str
    payment: SettlementPayment


@dataclass(frozen=True)
class DeleteSettlementPayment:
    settlement_id: str


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddExpense:
    date: str
    description: str
    quantity: Decimal
    price: Decimal
    vat_applied: bool = False
    supplier_id: Optional[str] = None
    notes: Optional[str] = None
    paid_by_partner_id: Optional[str] = None
    expense_id: Optional[str] = None


@dataclass(frozen=True)
class UpdateExpense:
    expense_id: str
    date: str
    description: str
    quantity: Decimal
    price: Decimal
    vat_applied: bool = False
    supplier_id: Optional[str] = None
    notes: Optional[str] = None
    paid_by_partner_id: Optional[str] = None


@dataclass(frozen=True)
class DeleteExpense:
    expense_id: str


Action = Union[
    UpdateSettings,
    ResetApp,
    ArchiveYear,
    AddCustomer,
    UpdateCustomer,
    DeleteCustomer,
    AddSupplier,
    UpdateSupplier,
    DeleteSupplier,
    AddAgent,
    UpdateAgent,
    DeleteAgent,
    AddPartner,
    UpdatePartner,
    DeletePartner,
    AddProduct,
    UpdateProduct,
    DeleteProduct,
    AddVariant,
    UpdateVariant,
    DeleteVariant,
    AddCategory,
    UpdateCategory,
    DeleteCategory,
    AddStockLoad,
    UpdateStockLoad,
    DeleteStockLoad,
    AddProduction,
    DeleteProduction,
    CompleteMaceration,
    AddSale,
    DeleteSale,
    CollectSale,
    BulkCollectSales,
    AddQuote,
    DeleteQuote,
    CollectQuote,
    ConvertQuoteToSale,
    AddOrder,
    UpdateOrder,
    DeleteOrder,
    ToggleOrderItemPrepared,
    ConvertOrderToSale,
    CancelOrder,
    AddManualLedgerEntry,
    TransferBetweenPartners,
    SettlePartnerDebt,
    ArchivePartnerSettlement,
    AttachSettlementPayment,
    DeleteSettlementPayment,
    AddExpense,
    UpdateExpense,
    DeleteExpense,
]


ACTION_TYPES: tuple[type, ...] = get_args(Action)
