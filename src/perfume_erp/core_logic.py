"""Business logic layer for Perfume ERP.

This module contains the transaction reducer: :func:`apply` takes an
:class:`~perfume_erp.models.AppState` and one action from
:mod:`perfume_erp.actions` and returns the next state. The reducer is
deterministic apart from generated identifiers and the default clock, performs
no I/O, and is all-or-nothing: every handler works on a draft copy of the
state, so a rejected action (a raised :class:`~perfume_erp.errors.DomainError`)
leaves the input untouched.

Stock-affecting handlers delegate batch arithmetic to
:mod:`perfume_erp.inventory`; settlement snapshots come from
:mod:`perfume_erp.ledger`.
"""

from __future__ import annotations

import calendar
import copy
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from . import actions as act
from . import inventory, ledger, log
from .constants import (
    INTERNAL_SUPPLIER_NAME,
    MIXED_CUSTOMERS_NAME,
    PRODUCTION_SHELF_LIFE_MONTHS,
    UNKNOWN_NAME,
    VAT_RATE,
    BatchStatus,
    DiscountType,
    OrderStatus,
    ProductUnit,
    QuoteStatus,
    Theme,
)
from .errors import (
    ConflictingState,
    DomainError,
    DuplicateName,
    InsufficientStock,
    NotFound,
    ReferentialBlock,
)
from .models import (
    ZERO,
    AppState,
    DocumentItem,
    Expense,
    InventoryBatch,
    Order,
    OrderItem,
    PartnerLedgerEntry,
    Production,
    ProductionComponent,
    ProductVariant,
    Quote,
    Sale,
    SalePayment,
    StockLoad,
    YearData,
    new_id,
    parse_iso_date,
    quantize_money,
)


Handler = Callable[[AppState, Any], None]


@dataclass(frozen=True)
class DocumentTotals:
    """Subtotal and grand total of a commercial document, rounded to cents."""

    subtotal: Decimal
    total: Decimal


@dataclass(frozen=True)
class StockLevel:
    """Reporting row for one variant."""

    variant_id: str
    display_name: str
    total: Decimal
    available: Decimal


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Resolve optional timestamps into consistent, timezone-aware values.

    Args:
        candidate (datetime | None): Caller-provided timestamp, usually sourced
            from an action. Naive values are interpreted as UTC.

    Returns:
        datetime: ``candidate`` when provided, otherwise the current UTC
            datetime generated via :func:`datetime.now`.
    """

    if candidate is None:
        return datetime.now(UTC)
    if candidate.tzinfo is None:
        return candidate.replace(tzinfo=UTC)
    return candidate


def _apply_vat(amount: Decimal, vat_applied: bool) -> Decimal:
    return amount * (1 + VAT_RATE) if vat_applied else amount


def compute_totals(
    items: Iterable[Any],
    *,
    vat_applied: bool,
    discount_value: Optional[Decimal] = None,
    discount_type: Optional[DiscountType] = None,
    shipping_cost: Optional[Decimal] = None,
) -> DocumentTotals:
    """Compute document totals shared by stock loads, sales, quotes and orders.

    ``subtotal`` is the sum of ``quantity * price`` over the items. A
    percentage discount takes ``discount_value`` percent of the subtotal, any
    other discount is an absolute amount. Shipping is added after the discount
    and the taxable base never goes below zero. VAT, when applied, multiplies
    the taxable base by ``1 + VAT_RATE``.

    Args:
        items (Iterable): Objects exposing ``quantity`` and ``price``.
        vat_applied (bool): Whether VAT is charged on the taxable base.
        discount_value (Decimal | None): Discount amount or percentage.
        discount_type (DiscountType | None): Interpretation of
            ``discount_value``; anything but ``percentage`` means an amount.
        shipping_cost (Decimal | None): Shipping charged on the document.

    Returns:
        DocumentTotals: Subtotal and total rounded to cents.
    """

    subtotal = sum((item.quantity * item.price for item in items), ZERO)
    discount = ZERO
    if discount_value:
        if discount_type == DiscountType.PERCENTAGE:
            discount = subtotal * discount_value / 100
        else:
            discount = discount_value
    taxable = max(ZERO, subtotal - discount + (shipping_cost or ZERO))
    total = _apply_vat(taxable, vat_applied)
    return DocumentTotals(subtotal=quantize_money(subtotal), total=quantize_money(total))


def add_months(day: date, months: int) -> date:
    """Shift ``day`` by whole months, rolling an impossible day into the next month.

    ``2024-02-29`` plus 24 months gives ``2026-03-01``.
    """

    index = day.month - 1 + months
    year, month = day.year + index // 12, index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    if day.day <= last_day:
        return day.replace(year=year, month=month)
    return date(year, month, last_day) + timedelta(days=day.day - last_day)


def stock_levels(state: AppState) -> List[StockLevel]:
    """Return total and available quantity for every variant of the active year."""

    year = state.year_data
    return [
        StockLevel(
            variant_id=variant.id,
            display_name=year.variant_display_name(variant.id),
            total=inventory.total_quantity(year.inventory_batches, variant.id),
            available=inventory.available_quantity(year.inventory_batches, variant.id),
        )
        for variant in year.product_variants
    ]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _draft(state: AppState) -> AppState:
    """Copy the parts of ``state`` a handler may mutate.

    Partners, settings and the active year are deep-copied; other years are
    shared with ``state`` and must only be read.
    """

    years = dict(state.years)
    current = state.settings.current_year
    years[current] = copy.deepcopy(years[current]) if current in years else YearData.initial()
    return AppState(
        partners=copy.deepcopy(state.partners),
        years=years,
        settings=copy.deepcopy(state.settings),
    )


def _adopt(entity: Any) -> Any:
    """Copy an entity carried by an action, assigning an id when it has none."""

    adopted = copy.deepcopy(entity)
    if not adopted.id:
        adopted.id = new_id()
    return adopted


def _replace_by_id(collection: List[Any], entity: Any) -> Optional[Any]:
    """Swap the element sharing ``entity.id``; return the previous one or ``None``."""

    for index, existing in enumerate(collection):
        if existing.id == entity.id:
            collection[index] = copy.deepcopy(entity)
            return existing
    return None


def _find(collection: Iterable[Any], entity_id: Optional[str]) -> Optional[Any]:
    return next((entity for entity in collection if entity.id == entity_id), None)


def _require(collection: Iterable[Any], entity_id: str, label: str) -> Any:
    entity = _find(collection, entity_id)
    if entity is None:
        log.warning("%s lookup failed for id '%s'", label, entity_id)
        raise NotFound(f"Unknown {label.lower()} id: {entity_id}")
    return entity


def _require_positive(value: Decimal, label: str) -> None:
    if value is None or value <= 0:
        raise DomainError(f"{label} must be greater than zero (got {value})")


def _parse_document_date(raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw)
    except (TypeError, ValueError) as exc:
        raise DomainError(f"Invalid document date: {raw!r}") from exc


def _check_expiration_date(raw: Optional[str]) -> None:
    if not raw:
        return
    try:
        parse_iso_date(raw)
    except (TypeError, ValueError) as exc:
        raise DomainError(f"Invalid expiration date: {raw!r}") from exc


def _short_id(document_id: str) -> str:
    return document_id[:8].upper()


def _check_availability(year: YearData, requests: Iterable[Tuple[str, Decimal]]) -> None:
    """Reject unless every variant can cover its (aggregated) requested quantity."""

    requested: Dict[str, Decimal] = {}
    for variant_id, quantity in requests:
        requested[variant_id] = requested.get(variant_id, ZERO) + quantity

    for variant_id, quantity in requested.items():
        available = inventory.available_quantity(year.inventory_batches, variant_id)
        if available < quantity:
            raise InsufficientStock(variant_id, year.variant_display_name(variant_id), quantity, available)


def _consume_items(year: YearData, items: Iterable[DocumentItem]) -> None:
    for item in items:
        inventory.consume(year.inventory_batches, item.variant_id, item.quantity)


def _document_items(items: Iterable[DocumentItem], label: str) -> List[DocumentItem]:
    copied = [DocumentItem(variant_id=item.variant_id, quantity=item.quantity, price=item.price) for item in items]
    for item in copied:
        _require_positive(item.quantity, f"{label} quantity")
    return copied


def _order_items(items: Iterable[OrderItem]) -> List[OrderItem]:
    copied = [
        OrderItem(variant_id=item.variant_id, quantity=item.quantity, price=item.price, prepared=item.prepared)
        for item in items
    ]
    for item in copied:
        _require_positive(item.quantity, "Order quantity")
    return copied


def _drop_ledger_entries(year: YearData, document_id: str) -> None:
    year.partner_ledger = [entry for entry in year.partner_ledger if document_id not in entry.related_ids()]


def _recount_agents(year: YearData) -> None:
    for agent in year.agents:
        agent.associated_clients = sum(1 for customer in year.customers if customer.agent_id == agent.id)


def _supplier_payment_description(year: YearData, supplier_id: Optional[str]) -> str:
    name = year.supplier_name(supplier_id, UNKNOWN_NAME) if supplier_id else INTERNAL_SUPPLIER_NAME
    return f"Pagamento fornitore {name}"


def _payment(partner_id: str, date_value: str, amount: Decimal) -> SalePayment:
    return SalePayment(id=new_id(), date=date_value, amount=amount, partner_id=partner_id)


# ---------------------------------------------------------------------------
# Settings and year lifecycle
# ---------------------------------------------------------------------------


def _update_settings(draft: AppState, action: act.UpdateSettings) -> None:
    settings = draft.settings
    if action.current_year is not None and action.current_year != settings.current_year:
        if action.current_year not in draft.years:
            raise NotFound(f"Year {action.current_year} does not exist")
        settings.current_year = action.current_year
    if action.theme is not None:
        settings.theme = Theme(action.theme)
    if action.firebase_enabled is not None:
        settings.firebase_enabled = action.firebase_enabled
    if action.ai_assistant_enabled is not None:
        settings.ai_assistant_enabled = action.ai_assistant_enabled
    if action.company_info is not None:
        settings.company_info = copy.deepcopy(action.company_info)


def _reset_app(draft: AppState, action: act.ResetApp) -> None:
    fresh = AppState.initial(_resolve_timestamp(action.timestamp).year)
    draft.partners = fresh.partners
    draft.years = fresh.years
    draft.settings = fresh.settings


def _archive_year(draft: AppState, action: act.ArchiveYear) -> None:
    next_year = draft.settings.current_year + 1
    if next_year in draft.years:
        raise ConflictingState(f"Year {next_year} already exists; cannot archive")
    draft.years[next_year] = YearData.initial()
    draft.settings.current_year = next_year


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------


def _add_customer(draft: AppState, action: act.AddCustomer) -> None:
    year = draft.year_data
    year.customers.append(_adopt(action.customer))
    _recount_agents(year)


def _update_customer(draft: AppState, action: act.UpdateCustomer) -> None:
    year = draft.year_data
    _replace_by_id(year.customers, action.customer)
    _recount_agents(year)


def _delete_customer(draft: AppState, action: act.DeleteCustomer) -> None:
    year = draft.year_data
    year.customers = [customer for customer in year.customers if customer.id != action.customer_id]
    _recount_agents(year)


def _add_supplier(draft: AppState, action: act.AddSupplier) -> None:
    draft.year_data.suppliers.append(_adopt(action.supplier))


def _update_supplier(draft: AppState, action: act.UpdateSupplier) -> None:
    _replace_by_id(draft.year_data.suppliers, action.supplier)


def _delete_supplier(draft: AppState, action: act.DeleteSupplier) -> None:
    year = draft.year_data
    year.suppliers = [supplier for supplier in year.suppliers if supplier.id != action.supplier_id]


def _add_agent(draft: AppState, action: act.AddAgent) -> None:
    year = draft.year_data
    year.agents.append(_adopt(action.agent))
    _recount_agents(year)


def _update_agent(draft: AppState, action: act.UpdateAgent) -> None:
    year = draft.year_data
    existing = _find(year.agents, action.agent.id)
    if existing is None:
        return
    # associated_clients is derived, never taken from the caller
    replacement = copy.deepcopy(action.agent)
    replacement.associated_clients = existing.associated_clients
    _replace_by_id(year.agents, replacement)


def _delete_agent(draft: AppState, action: act.DeleteAgent) -> None:
    year = draft.year_data
    year.agents = [agent for agent in year.agents if agent.id != action.agent_id]
    for customer in year.customers:
        if customer.agent_id == action.agent_id:
            customer.agent_id = None


def _add_partner(draft: AppState, action: act.AddPartner) -> None:
    draft.partners.append(_adopt(action.partner))


def _update_partner(draft: AppState, action: act.UpdatePartner) -> None:
    _replace_by_id(draft.partners, action.partner)


def _partner_is_referenced(state: AppState, partner_id: str) -> bool:
    for year in state.years.values():
        if any(load.paid_by_partner_id == partner_id for load in year.stock_loads):
            return True
        for sale in year.sales:
            if sale.collected_by_partner_id == partner_id:
                return True
            if any(payment.partner_id == partner_id for payment in sale.payments):
                return True
        if any(entry.partner_id == partner_id for entry in year.partner_ledger):
            return True
    return False


def _delete_partner(draft: AppState, action: act.DeletePartner) -> None:
    if _find(draft.partners, action.partner_id) is None:
        return
    if _partner_is_referenced(draft, action.partner_id):
        raise ReferentialBlock(f"Partner '{action.partner_id}' has financial movements and cannot be deleted")
    draft.partners = [partner for partner in draft.partners if partner.id != action.partner_id]


def _format_capacity(capacity: Decimal) -> str:
    return format(capacity.normalize(), "f")


def _add_product(draft: AppState, action: act.AddProduct) -> None:
    year = draft.year_data
    product = _adopt(action.product)
    year.products.append(product)

    if action.initial_capacity:
        variant_name = f"{_format_capacity(action.initial_capacity)}{ProductUnit(product.unit).value}"
    else:
        variant_name = "Standard"
    year.product_variants.append(
        ProductVariant(
            id=new_id(),
            product_id=product.id,
            name=variant_name,
            capacity=action.initial_capacity,
            purchase_price=ZERO,
            sale_price=ZERO,
            location="",
        )
    )


def _update_product(draft: AppState, action: act.UpdateProduct) -> None:
    _replace_by_id(draft.year_data.products, action.product)


def _delete_product(draft: AppState, action: act.DeleteProduct) -> None:
    year = draft.year_data
    variant_ids = {variant.id for variant in year.product_variants if variant.product_id == action.product_id}
    year.products = [product for product in year.products if product.id != action.product_id]
    year.product_variants = [variant for variant in year.product_variants if variant.id not in variant_ids]
    year.inventory_batches = [batch for batch in year.inventory_batches if batch.variant_id not in variant_ids]


def _add_variant(draft: AppState, action: act.AddVariant) -> None:
    draft.year_data.product_variants.append(_adopt(action.variant))


def _update_variant(draft: AppState, action: act.UpdateVariant) -> None:
    _replace_by_id(draft.year_data.product_variants, action.variant)


def _delete_variant(draft: AppState, action: act.DeleteVariant) -> None:
    year = draft.year_data
    year.product_variants = [variant for variant in year.product_variants if variant.id != action.variant_id]
    year.inventory_batches = [batch for batch in year.inventory_batches if batch.variant_id != action.variant_id]


def _category_name_taken(year: YearData, name: str, *, exclude_id: Optional[str] = None) -> bool:
    lowered = name.lower()
    return any(category.name.lower() == lowered and category.id != exclude_id for category in year.categories)


def _add_category(draft: AppState, action: act.AddCategory) -> None:
    year = draft.year_data
    if _category_name_taken(year, action.category.name):
        raise DuplicateName(f"A category named '{action.category.name}' already exists")
    year.categories.append(_adopt(action.category))


def _update_category(draft: AppState, action: act.UpdateCategory) -> None:
    year = draft.year_data
    existing = _find(year.categories, action.category.id)
    if existing is None:
        return
    if _category_name_taken(year, action.category.name, exclude_id=existing.id):
        raise DuplicateName(f"A category named '{action.category.name}' already exists")

    old_name = existing.name
    _replace_by_id(year.categories, action.category)
    for product in year.products:
        if product.category == old_name:
            product.category = action.category.name


def _delete_category(draft: AppState, action: act.DeleteCategory) -> None:
    year = draft.year_data
    category = _find(year.categories, action.category_id)
    if category is None:
        return
    if any(product.category == category.name for product in year.products):
        raise ReferentialBlock(f"Category '{category.name}' is used by at least one product")
    if any(child.parent_id == category.id for child in year.categories):
        raise ReferentialBlock(f"Category '{category.name}' has subcategories; delete them first")
    year.categories = [candidate for candidate in year.categories if candidate.id != category.id]


# ---------------------------------------------------------------------------
# Stock loads
# ---------------------------------------------------------------------------


def _add_stock_load(draft: AppState, action: act.AddStockLoad) -> None:
    year = draft.year_data
    items = [copy.deepcopy(item) for item in action.items]
    for item in items:
        _require_positive(item.quantity, "Stock load quantity")
        _check_expiration_date(item.expiration_date)

    totals = compute_totals(
        items,
        vat_applied=action.vat_applied,
        discount_value=action.discount_value,
        discount_type=action.discount_type,
        shipping_cost=action.shipping_cost,
    )
    load = StockLoad(
        id=action.load_id or new_id(),
        date=action.date,
        items=items,
        total=totals.total,
        supplier_id=action.supplier_id,
        paid_by_partner_id=action.paid_by_partner_id,
        vat_applied=action.vat_applied,
        discount_value=action.discount_value,
        discount_type=action.discount_type,
        shipping_cost=action.shipping_cost,
    )
    year.stock_loads.append(load)

    created_at = _resolve_timestamp(action.timestamp).isoformat()
    for item in load.items:
        year.inventory_batches.append(
            InventoryBatch(
                id=new_id(),
                variant_id=item.variant_id,
                initial_quantity=item.quantity,
                current_quantity=item.quantity,
                created_at=created_at,
                status=BatchStatus.AVAILABLE,
                stock_load_id=load.id,
                batch_number=item.batch_number,
                expiration_date=item.expiration_date,
            )
        )

    if load.paid_by_partner_id:
        year.partner_ledger.append(
            PartnerLedgerEntry(
                id=new_id(),
                date=load.date,
                description=_supplier_payment_description(year, load.supplier_id),
                amount=-load.total,
                partner_id=load.paid_by_partner_id,
                related_document_id=load.id,
            )
        )


def _update_stock_load(draft: AppState, action: act.UpdateStockLoad) -> None:
    year = draft.year_data
    load = _find(year.stock_loads, action.load_id)
    if load is None:
        return

    load.date = action.date
    load.supplier_id = action.supplier_id
    load.paid_by_partner_id = action.paid_by_partner_id

    entry = next((item for item in year.partner_ledger if item.related_document_id == load.id), None)
    if load.paid_by_partner_id:
        description = _supplier_payment_description(year, load.supplier_id)
        if entry is not None:
            entry.partner_id = load.paid_by_partner_id
            entry.date = load.date
            entry.description = description
        else:
            year.partner_ledger.append(
                PartnerLedgerEntry(
                    id=new_id(),
                    date=load.date,
                    description=description,
                    amount=-load.total,
                    partner_id=load.paid_by_partner_id,
                    related_document_id=load.id,
                )
            )
    elif entry is not None:
        year.partner_ledger.remove(entry)


def _delete_stock_load(draft: AppState, action: act.DeleteStockLoad) -> None:
    year = draft.year_data
    if _find(year.stock_loads, action.load_id) is None:
        return
    year.inventory_batches = [batch for batch in year.inventory_batches if batch.stock_load_id != action.load_id]
    year.stock_loads = [load for load in year.stock_loads if load.id != action.load_id]
    year.partner_ledger = [entry for entry in year.partner_ledger if entry.related_document_id != action.load_id]


# ---------------------------------------------------------------------------
# Production and maceration
# ---------------------------------------------------------------------------


def _add_production(draft: AppState, action: act.AddProduction) -> None:
    year = draft.year_data
    _require_positive(action.quantity_produced, "Produced quantity")
    for request in action.components:
        _require_positive(request.quantity_used, "Component quantity")
    produced_on = _parse_document_date(action.date)

    _check_availability(year, ((request.variant_id, request.quantity_used) for request in action.components))

    components = [
        ProductionComponent(
            variant_id=request.variant_id,
            total_quantity_used=request.quantity_used,
            source_batches=inventory.consume(year.inventory_batches, request.variant_id, request.quantity_used),
            weight_in_grams=request.weight_in_grams,
        )
        for request in action.components
    ]

    expiration_date = add_months(produced_on.date(), PRODUCTION_SHELF_LIFE_MONTHS).isoformat()
    batch_number = f"PROD-{produced_on:%Y%m%dT%H%M%S}"
    production = Production(
        id=action.production_id or new_id(),
        date=action.date,
        finished_product_id=action.finished_product_id,
        quantity_produced=action.quantity_produced,
        components=components,
        batch_number=batch_number,
        expiration_date=expiration_date,
        production_type=action.production_type,
        maceration_days=action.maceration_days,
        color_code=action.color_code,
        color_drops=action.color_drops,
    )
    year.productions.append(production)

    macerating = bool(action.maceration_days and action.maceration_days > 0)
    if macerating:
        maceration_end_date = (produced_on.date() + timedelta(days=action.maceration_days)).isoformat()
    else:
        maceration_end_date = None
    year.inventory_batches.append(
        InventoryBatch(
            id=new_id(),
            variant_id=action.finished_product_id,
            initial_quantity=action.quantity_produced,
            current_quantity=action.quantity_produced,
            created_at=_resolve_timestamp(action.timestamp).isoformat(),
            status=BatchStatus.MACERATING if macerating else BatchStatus.AVAILABLE,
            production_id=production.id,
            batch_number=batch_number,
            expiration_date=expiration_date,
            maceration_end_date=maceration_end_date,
            actual_maceration_days=None if macerating else 0,
        )
    )


def _delete_production(draft: AppState, action: act.DeleteProduction) -> None:
    year = draft.year_data
    production = _find(year.productions, action.production_id)
    if production is None:
        return
    for component in production.components:
        inventory.return_to_sources(year.inventory_batches, component.source_batches)
    year.inventory_batches = [batch for batch in year.inventory_batches if batch.production_id != production.id]
    year.productions = [item for item in year.productions if item.id != production.id]


def _complete_maceration(draft: AppState, action: act.CompleteMaceration) -> None:
    now = _resolve_timestamp(action.timestamp)
    if not inventory.complete_maceration(draft.year_data.inventory_batches, action.batch_id, now):
        log.debug("Batch '%s' is missing or not macerating", action.batch_id)


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


def _add_sale(draft: AppState, action: act.AddSale) -> None:
    year = draft.year_data
    items = _document_items(action.items, "Sale")
    _check_availability(year, ((item.variant_id, item.quantity) for item in items))
    _consume_items(year, items)

    totals = compute_totals(
        items,
        vat_applied=action.vat_applied,
        discount_value=action.discount_value,
        discount_type=action.discount_type,
        shipping_cost=action.shipping_cost,
    )
    year.sales.append(
        Sale(
            id=action.sale_id or new_id(),
            date=action.date,
            customer_id=action.customer_id,
            items=items,
            subtotal=totals.subtotal,
            vat_applied=action.vat_applied,
            total=totals.total,
            payments=[],
            discount_value=action.discount_value,
            discount_type=action.discount_type,
            shipping_cost=action.shipping_cost,
        )
    )


def _delete_sale(draft: AppState, action: act.DeleteSale) -> None:
    year = draft.year_data
    sale = _find(year.sales, action.sale_id)
    if sale is None:
        return
    for item in sale.items:
        inventory.restore(year.inventory_batches, item.variant_id, item.quantity)
    _drop_ledger_entries(year, sale.id)
    year.sales = [candidate for candidate in year.sales if candidate.id != sale.id]


def _collect_sale(draft: AppState, action: act.CollectSale) -> None:
    year = draft.year_data
    sale = _require(year.sales, action.sale_id, "Sale")
    _require(draft.partners, action.partner_id, "Partner")
    _require_positive(action.amount, "Collected amount")
    amount = quantize_money(action.amount)

    sale.collected_by_partner_id = action.partner_id
    sale.collection_date = action.date
    sale.payments.append(_payment(action.partner_id, action.date, amount))

    customer_name = year.customer_name(sale.customer_id, UNKNOWN_NAME)
    year.partner_ledger.append(
        PartnerLedgerEntry(
            id=new_id(),
            date=action.date,
            description=f"Incasso cliente {customer_name} (Doc #{_short_id(sale.id)})",
            amount=amount,
            partner_id=action.partner_id,
            related_document_id=sale.id,
        )
    )


def _bulk_collect_sales(draft: AppState, action: act.BulkCollectSales) -> None:
    year = draft.year_data
    _require(draft.partners, action.partner_id, "Partner")
    collected: List[Tuple[Sale, Decimal]] = []
    for collection in action.collections:
        if collection.amount <= 0:
            continue
        sale = _find(year.sales, collection.sale_id)
        if sale is None:
            log.debug("Skipping bulk collection for unknown sale '%s'", collection.sale_id)
            continue
        collected.append((sale, quantize_money(collection.amount)))

    if not collected:
        return

    for sale, amount in collected:
        sale.payments.append(_payment(action.partner_id, action.date, amount))
        sale.collected_by_partner_id = action.partner_id
        sale.collection_date = action.date

    customer_ids = {sale.customer_id for sale, _ in collected}
    if len(customer_ids) == 1:
        customer_name = year.customer_name(customer_ids.pop(), UNKNOWN_NAME)
    else:
        customer_name = MIXED_CUSTOMERS_NAME
    references = ", ".join(f"#{_short_id(sale.id)}" for sale, _ in collected)
    year.partner_ledger.append(
        PartnerLedgerEntry(
            id=new_id(),
            date=action.date,
            description=f"Incasso Cumulativo ({len(collected)} doc) - {customer_name} - Rif: {references}",
            amount=sum((amount for _, amount in collected), ZERO),
            partner_id=action.partner_id,
            related_document_id=",".join(sale.id for sale, _ in collected),
        )
    )


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


def _add_quote(draft: AppState, action: act.AddQuote) -> None:
    items = _document_items(action.items, "Quote")
    totals = compute_totals(
        items,
        vat_applied=action.vat_applied,
        discount_value=action.discount_value,
        discount_type=action.discount_type,
        shipping_cost=action.shipping_cost,
    )
    draft.year_data.quotes.append(
        Quote(
            id=action.quote_id or new_id(),
            date=action.date,
            customer_id=action.customer_id,
            items=items,
            subtotal=totals.subtotal,
            vat_applied=action.vat_applied,
            total=totals.total,
            status=QuoteStatus.OPEN,
            payments=[],
            discount_value=action.discount_value,
            discount_type=action.discount_type,
            shipping_cost=action.shipping_cost,
        )
    )


def _delete_quote(draft: AppState, action: act.DeleteQuote) -> None:
    year = draft.year_data
    if _find(year.quotes, action.quote_id) is None:
        return
    _drop_ledger_entries(year, action.quote_id)
    year.quotes = [quote for quote in year.quotes if quote.id != action.quote_id]


def _collect_quote(draft: AppState, action: act.CollectQuote) -> None:
    year = draft.year_data
    quote = _require(year.quotes, action.quote_id, "Quote")
    _require(draft.partners, action.partner_id, "Partner")
    _require_positive(action.amount, "Collected amount")
    amount = quantize_money(action.amount)

    quote.payments.append(_payment(action.partner_id, action.date, amount))
    customer_name = year.customer_name(quote.customer_id, UNKNOWN_NAME)
    year.partner_ledger.append(
        PartnerLedgerEntry(
            id=new_id(),
            date=action.date,
            description=f"Acconto/Incasso Preventivo {customer_name} (Prev #{_short_id(quote.id)})",
            amount=amount,
            partner_id=action.partner_id,
            related_document_id=quote.id,
        )
    )


def _convert_quote_to_sale(draft: AppState, action: act.ConvertQuoteToSale) -> None:
    year = draft.year_data
    quote = _require(year.quotes, action.quote_id, "Quote")
    if quote.status != QuoteStatus.OPEN:
        raise ConflictingState(f"Quote '{quote.id}' is already {quote.status.value}")

    _check_availability(year, ((item.variant_id, item.quantity) for item in quote.items))
    _consume_items(year, quote.items)

    year.sales.append(
        Sale(
            id=action.sale_id or new_id(),
            date=_resolve_timestamp(action.timestamp).date().isoformat(),
            customer_id=quote.customer_id,
            items=copy.deepcopy(quote.items),
            subtotal=quote.subtotal,
            vat_applied=quote.vat_applied,
            total=quote.total,
            payments=copy.deepcopy(quote.payments),
            discount_value=quote.discount_value,
            discount_type=quote.discount_type,
            shipping_cost=quote.shipping_cost,
        )
    )
    quote.status = QuoteStatus.CONVERTED


# ---------------------------------------------------------------------------
# Customer orders
# ---------------------------------------------------------------------------


def _order_totals(items: Sequence[OrderItem], action: Any) -> DocumentTotals:
    return compute_totals(
        items,
        vat_applied=action.vat_applied,
        discount_value=action.discount_value,
        discount_type=action.discount_type,
        shipping_cost=action.shipping_cost,
    )


def _add_order(draft: AppState, action: act.AddOrder) -> None:
    items = _order_items(action.items)
    totals = _order_totals(items, action)
    draft.year_data.orders.append(
        Order(
            id=action.order_id or new_id(),
            date=action.date,
            customer_id=action.customer_id,
            items=items,
            subtotal=totals.subtotal,
            vat_applied=action.vat_applied,
            total=totals.total,
            status=OrderStatus.IN_PREPARATION,
            discount_value=action.discount_value,
            discount_type=action.discount_type,
            shipping_cost=action.shipping_cost,
            notes=action.notes,
        )
    )


def _update_order(draft: AppState, action: act.UpdateOrder) -> None:
    order = _find(draft.year_data.orders, action.order_id)
    if order is None:
        return
    items = _order_items(action.items)
    totals = _order_totals(items, action)
    order.date = action.date
    order.customer_id = action.customer_id
    order.items = items
    order.subtotal = totals.subtotal
    order.vat_applied = action.vat_applied
    order.total = totals.total
    order.discount_value = action.discount_value
    order.discount_type = action.discount_type
    order.shipping_cost = action.shipping_cost
    order.notes = action.notes


def _delete_order(draft: AppState, action: act.DeleteOrder) -> None:
    year = draft.year_data
    year.orders = [order for order in year.orders if order.id != action.order_id]


def _toggle_order_item_prepared(draft: AppState, action: act.ToggleOrderItemPrepared) -> None:
    order = _find(draft.year_data.orders, action.order_id)
    if order is None or order.status != OrderStatus.IN_PREPARATION:
        return
    item = next((candidate for candidate in order.items if candidate.variant_id == action.variant_id), None)
    if item is not None:
        item.prepared = not item.prepared


def _convert_order_to_sale(draft: AppState, action: act.ConvertOrderToSale) -> None:
    year = draft.year_data
    order = _require(year.orders, action.order_id, "Order")
    if order.status != OrderStatus.IN_PREPARATION:
        raise ConflictingState(f"Order '{order.id}' is {order.status.value} and cannot be converted")
    if not order.ready:
        raise ConflictingState(f"Order '{order.id}' still has items to prepare")

    _check_availability(year, ((item.variant_id, item.quantity) for item in order.items))
    _consume_items(year, order.items)

    year.sales.append(
        Sale(
            id=action.sale_id or new_id(),
            date=_resolve_timestamp(action.timestamp).date().isoformat(),
            customer_id=order.customer_id,
            items=[item.as_document_item() for item in order.items],
            subtotal=order.subtotal,
            vat_applied=order.vat_applied,
            total=order.total,
            payments=[],
            discount_value=order.discount_value,
            discount_type=order.discount_type,
            shipping_cost=order.shipping_cost,
        )
    )
    order.status = OrderStatus.COMPLETED


def _cancel_order(draft: AppState, action: act.CancelOrder) -> None:
    order = _require(draft.year_data.orders, action.order_id, "Order")
    if order.status != OrderStatus.IN_PREPARATION:
        raise ConflictingState(f"Order '{order.id}' is {order.status.value} and cannot be cancelled")
    order.status = OrderStatus.CANCELLED


# ---------------------------------------------------------------------------
# Partner ledger
# ---------------------------------------------------------------------------


def _add_manual_ledger_entry(draft: AppState, action: act.AddManualLedgerEntry) -> None:
    draft.year_data.partner_ledger.append(
        PartnerLedgerEntry(
            id=action.entry_id or new_id(),
            date=action.date,
            description=action.description,
            amount=quantize_money(action.amount),
            partner_id=action.partner_id,
            related_document_id=action.related_document_id,
            payment_method=action.payment_method,
        )
    )


def _partner_pair(draft: AppState, from_partner_id: str, to_partner_id: str, amount: Decimal):
    sender = _require(draft.partners, from_partner_id, "Partner")
    receiver = _require(draft.partners, to_partner_id, "Partner")
    if sender.id == receiver.id:
        raise DomainError("A partner cannot transfer money to themselves")
    _require_positive(amount, "Transfer amount")
    return sender, receiver


def _transfer_between_partners(draft: AppState, action: act.TransferBetweenPartners) -> None:
    sender, receiver = _partner_pair(draft, action.from_partner_id, action.to_partner_id, action.amount)
    amount = quantize_money(action.amount)
    year = draft.year_data
    year.partner_ledger.append(
        PartnerLedgerEntry(
            id=new_id(),
            date=action.date,
            description=f"Trasferimento a {receiver.name}: {action.description}",
            amount=-amount,
            partner_id=sender.id,
        )
    )
    year.partner_ledger.append(
        PartnerLedgerEntry(
            id=new_id(),
            date=action.date,
            description=f"Trasferimento da {sender.name}: {action.description}",
            amount=amount,
            partner_id=receiver.id,
        )
    )


def _settle_partner_debt(draft: AppState, action: act.SettlePartnerDebt) -> None:
    debtor, creditor = _partner_pair(draft, action.from_partner_id, action.to_partner_id, action.amount)
    amount = quantize_money(action.amount)
    year = draft.year_data
    year.partner_ledger.append(
        PartnerLedgerEntry(
            id=new_id(),
            date=action.date,
            description=f"Pareggio conti: versamento a {creditor.name}",
            amount=-amount,
            partner_id=debtor.id,
        )
    )
    year.partner_ledger.append(
        PartnerLedgerEntry(
            id=new_id(),
            date=action.date,
            description=f"Pareggio conti: ricevuto da {debtor.name}",
            amount=amount,
            partner_id=creditor.id,
        )
    )


def _archive_partner_settlement(draft: AppState, action: act.ArchivePartnerSettlement) -> None:
    snapshot = ledger.build_settlement_snapshot(draft, action.date, action.settlement_id)
    year = draft.year_data
    year.partner_settlements.append(snapshot)
    for partner in snapshot.partner_snapshots:
        if partner.balance != 0:
            year.partner_ledger.append(
                PartnerLedgerEntry(
                    id=new_id(),
                    date=snapshot.date,
                    description="Chiusura Periodo / Archiviazione Conteggio",
                    amount=-partner.balance,
                    partner_id=partner.partner_id,
                )
            )


def _attach_settlement_payment(draft: AppState, action: act.AttachSettlementPayment) -> None:
    settlement = _require(draft.year_data.partner_settlements, action.settlement_id, "Settlement")
    settlement.payment = copy.deepcopy(action.payment)


def _delete_settlement_payment(draft: AppState, action: act.DeleteSettlementPayment) -> None:
    settlement = _find(draft.year_data.partner_settlements, action.settlement_id)
    if settlement is not None:
        settlement.payment = None


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


def _expense_entry(expense: Expense) -> PartnerLedgerEntry:
    return PartnerLedgerEntry(
        id=new_id(),
        date=expense.date,
        description=f"Spesa: {expense.description}",
        amount=-expense.total,
        partner_id=expense.paid_by_partner_id or "",
        related_document_id=expense.id,
    )


def _build_expense(expense_id: str, action: Any) -> Expense:
    total = quantize_money(_apply_vat(action.quantity * action.price, action.vat_applied))
    return Expense(
        id=expense_id,
        date=action.date,
        description=action.description,
        quantity=action.quantity,
        price=action.price,
        vat_applied=action.vat_applied,
        total=total,
        supplier_id=action.supplier_id,
        notes=action.notes,
        paid_by_partner_id=action.paid_by_partner_id,
    )


def _add_expense(draft: AppState, action: act.AddExpense) -> None:
    year = draft.year_data
    expense = _build_expense(action.expense_id or new_id(), action)
    year.expenses.append(expense)
    if expense.paid_by_partner_id:
        year.partner_ledger.append(_expense_entry(expense))


def _update_expense(draft: AppState, action: act.UpdateExpense) -> None:
    year = draft.year_data
    if _find(year.expenses, action.expense_id) is None:
        return
    expense = _build_expense(action.expense_id, action)
    _replace_by_id(year.expenses, expense)

    entry = next((item for item in year.partner_ledger if item.related_document_id == expense.id), None)
    if expense.paid_by_partner_id:
        if entry is None:
            year.partner_ledger.append(_expense_entry(expense))
        else:
            entry.date = expense.date
            entry.description = f"Spesa: {expense.description}"
            entry.amount = -expense.total
            entry.partner_id = expense.paid_by_partner_id
    elif entry is not None:
        year.partner_ledger.remove(entry)


def _delete_expense(draft: AppState, action: act.DeleteExpense) -> None:
    year = draft.year_data
    if _find(year.expenses, action.expense_id) is None:
        return
    year.expenses = [expense for expense in year.expenses if expense.id != action.expense_id]
    year.partner_ledger = [entry for entry in year.partner_ledger if entry.related_document_id != action.expense_id]


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


_HANDLERS: Dict[type, Handler] = {
    act.UpdateSettings: _update_settings,
    act.ResetApp: _reset_app,
    act.ArchiveYear: _archive_year,
    act.AddCustomer: _add_customer,
    act.UpdateCustomer: _update_customer,
    act.DeleteCustomer: _delete_customer,
    act.AddSupplier: _add_supplier,
    act.UpdateSupplier: _update_supplier,
    act.DeleteSupplier: _delete_supplier,
    act.AddAgent: _add_agent,
    act.UpdateAgent: _update_agent,
    act.DeleteAgent: _delete_agent,
    act.AddPartner: _add_partner,
    act.UpdatePartner: _update_partner,
    act.DeletePartner: _delete_partner,
    act.AddProduct: _add_product,
    act.UpdateProduct: _update_product,
    act.DeleteProduct: _delete_product,
    act.AddVariant: _add_variant,
    act.UpdateVariant: _update_variant,
    act.DeleteVariant: _delete_variant,
    act.AddCategory: _add_category,
    act.UpdateCategory: _update_category,
    act.DeleteCategory: _delete_category,
    act.AddStockLoad: _add_stock_load,
    act.UpdateStockLoad: _update_stock_load,
    act.DeleteStockLoad: _delete_stock_load,
    act.AddProduction: _add_production,
    act.DeleteProduction: _delete_production,
    act.CompleteMaceration: _complete_maceration,
    act.AddSale: _add_sale,
    act.DeleteSale: _delete_sale,
    act.CollectSale: _collect_sale,
    act.BulkCollectSales: _bulk_collect_sales,
    act.AddQuote: _add_quote,
    act.DeleteQuote: _delete_quote,
    act.CollectQuote: _collect_quote,
    act.ConvertQuoteToSale: _convert_quote_to_sale,
    act.AddOrder: _add_order,
    act.UpdateOrder: _update_order,
    act.DeleteOrder: _delete_order,
    act.ToggleOrderItemPrepared: _toggle_order_item_prepared,
    act.ConvertOrderToSale: _convert_order_to_sale,
    act.CancelOrder: _cancel_order,
    act.AddManualLedgerEntry: _add_manual_ledger_entry,
    act.TransferBetweenPartners: _transfer_between_partners,
    act.SettlePartnerDebt: _settle_partner_debt,
    act.ArchivePartnerSettlement: _archive_partner_settlement,
    act.AttachSettlementPayment: _attach_settlement_payment,
    act.DeleteSettlementPayment: _delete_settlement_payment,
    act.AddExpense: _add_expense,
    act.UpdateExpense: _update_expense,
    act.DeleteExpense: _delete_expense,
}


def supported_actions() -> Tuple[type, ...]:
    """Action types the reducer knows how to apply."""

    return tuple(_HANDLERS)


def apply(state: AppState, action: act.Action) -> AppState:
    """Apply one action and return the resulting state.

    The input state is never mutated. When the action has no effect (for
    example deleting an id that does not exist) the very same ``state`` object
    is returned, which lets callers skip history and persistence.

    Args:
        state (AppState): Current application state.
        action (Action): One of the dataclasses in :mod:`perfume_erp.actions`.

    Returns:
        AppState: The next state, or ``state`` itself when nothing changed.

    Raises:
        DomainError: When the action is rejected. Nothing is committed.
        TypeError: If ``action`` is not a supported action type.
    """

    name = type(action).__name__
    handler = _HANDLERS.get(type(action))
    if handler is None:
        log.error("Unsupported action type provided: %s", name)
        raise TypeError(f"Unsupported action type: {name}")

    draft = _draft(state)
    try:
        handler(draft, action)
    except DomainError as exc:
        log.warning("Rejected %s (%s): %s", name, exc.code, exc.message)
        raise

    if draft == state:
        log.debug("%s left the state unchanged", name)
        return state

    log.info("Applied %s to year %s", name, draft.settings.current_year)
    return draft


__all__ = [
    "DocumentTotals",
    "StockLevel",
    "compute_totals",
    "add_months",
    "stock_levels",
    "supported_actions",
    "apply",
]
