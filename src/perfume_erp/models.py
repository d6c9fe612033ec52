"""Domain model for Perfume ERP.

Plain dataclasses describing one year-scoped dataset (:class:`YearData`), the
global partner list and the companion :class:`Settings`. Every entity knows how
to convert itself to and from the JSON-compatible tree used for persistence and
backups. Tree keys use the camelCase names of the stored documents so that
existing backups load unchanged.

Loading is forward compatible: missing collections default to empty lists and
batches without a ``status`` default to ``available``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional

from .constants import (
    DEFAULT_CATEGORIES,
    DEFAULT_COMPANY_INFO,
    DEFAULT_PARTNER_ID,
    DEFAULT_PARTNER_NAME,
    MONEY_QUANTUM,
    BatchStatus,
    DiscountType,
    DocumentType,
    OrderStatus,
    PartnerStatus,
    ProductionType,
    ProductUnit,
    QuoteStatus,
    Theme,
)


ZERO = Decimal("0")


def new_id() -> str:
    """Return a fresh random identifier."""
    return str(uuid.uuid4())


def quantize_money(amount: Decimal) -> Decimal:
    """Round a currency amount to cents (half-up)."""
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def to_decimal(raw: Any, default: Decimal = ZERO) -> Decimal:
    """Coerce JSON numbers or strings into :class:`Decimal`.

    Floats go through ``str`` first so ``0.1`` becomes ``Decimal("0.1")`` and
    not its binary expansion.
    """
    if raw is None or raw == "":
        return default
    if isinstance(raw, Decimal):
        return raw
    return Decimal(str(raw))


def _opt_decimal(raw: Any) -> Optional[Decimal]:
    return None if raw is None or raw == "" else to_decimal(raw)


def _opt_int(raw: Any) -> Optional[int]:
    return None if raw is None or raw == "" else int(raw)


def _opt_str(raw: Any) -> Optional[str]:
    return None if raw is None else str(raw)


def parse_iso_date(raw: str) -> date:
    """Calendar date of an ISO date or timestamp string."""
    return date.fromisoformat(raw[:10])


def _opt_date(raw: Any) -> Optional[str]:
    value = _opt_str(raw) or None
    if value is not None:
        parse_iso_date(value)
    return value


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drop ``None`` entries so optional fields stay absent in documents."""
    return {key: value for key, value in values.items() if value is not None}


def _enum_value(member: Any) -> Any:
    return None if member is None else member.value


# ---------------------------------------------------------------------------
# Global entities
# ---------------------------------------------------------------------------


@dataclass
class Partner:
    """Business partner sharing the cash ledger. Global across years."""

    id: str
    name: str

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Partner":
        return cls(id=str(raw["id"]), name=str(raw.get("name", "")))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass
class CompanyInfo:
    name: str = DEFAULT_COMPANY_INFO["name"]
    address: str = DEFAULT_COMPANY_INFO["address"]
    city: str = DEFAULT_COMPANY_INFO["city"]
    vat_number: str = DEFAULT_COMPANY_INFO["vatNumber"]
    email: str = DEFAULT_COMPANY_INFO["email"]
    phone: str = DEFAULT_COMPANY_INFO["phone"]

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CompanyInfo":
        defaults = DEFAULT_COMPANY_INFO
        return cls(
            name=str(raw.get("name", defaults["name"])),
            address=str(raw.get("address", defaults["address"])),
            city=str(raw.get("city", defaults["city"])),
            vat_number=str(raw.get("vatNumber", defaults["vatNumber"])),
            email=str(raw.get("email", defaults["email"])),
            phone=str(raw.get("phone", defaults["phone"])),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "vatNumber": self.vat_number,
            "email": self.email,
            "phone": self.phone,
        }


@dataclass
class Settings:
    """Companion settings persisted next to the state tree."""

    current_year: int
    theme: Theme = Theme.LIGHT
    firebase_enabled: bool = False
    ai_assistant_enabled: bool = True
    company_info: CompanyInfo = field(default_factory=CompanyInfo)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Settings":
        company = raw.get("companyInfo")
        return cls(
            current_year=int(raw["currentYear"]),
            theme=Theme(raw.get("theme") or Theme.LIGHT.value),
            firebase_enabled=bool(raw.get("firebaseEnabled", False)),
            ai_assistant_enabled=bool(raw.get("aiAssistantEnabled", True)),
            company_info=CompanyInfo.from_dict(company) if company else CompanyInfo(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "theme": self.theme.value,
            "currentYear": self.current_year,
            "firebaseEnabled": self.firebase_enabled,
            "aiAssistantEnabled": self.ai_assistant_enabled,
            "companyInfo": self.company_info.to_dict(),
        }


# ---------------------------------------------------------------------------
# Registry entities
# ---------------------------------------------------------------------------


@dataclass
class Customer:
    id: str
    name: str
    address: str = ""
    city: str = ""
    zip: str = ""
    province: str = ""
    phone: str = ""
    email: str = ""
    vat_number: str = ""
    sdi: str = ""
    agent_id: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Customer":
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name", "")),
            address=str(raw.get("address", "")),
            city=str(raw.get("city", "")),
            zip=str(raw.get("zip", "")),
            province=str(raw.get("province", "")),
            phone=str(raw.get("phone", "")),
            email=str(raw.get("email", "")),
            vat_number=str(raw.get("vatNumber", "")),
            sdi=str(raw.get("sdi", "")),
            agent_id=_opt_str(raw.get("agentId")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "address": self.address,
                "city": self.city,
                "zip": self.zip,
                "province": self.province,
                "phone": self.phone,
                "email": self.email,
                "vatNumber": self.vat_number,
                "sdi": self.sdi,
                "agentId": self.agent_id,
            }
        )


@dataclass
class Supplier:
    id: str
    name: str
    address: str = ""
    city: str = ""
    phone: str = ""
    email: str = ""
    vat_number: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Supplier":
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name", "")),
            address=str(raw.get("address", "")),
            city=str(raw.get("city", "")),
            phone=str(raw.get("phone", "")),
            email=str(raw.get("email", "")),
            vat_number=str(raw.get("vatNumber", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "phone": self.phone,
            "email": self.email,
            "vatNumber": self.vat_number,
        }


@dataclass
class Agent:
    """Sales agent; ``associated_clients`` is derived from customers."""

    id: str
    name: str
    city: str = ""
    phone: str = ""
    associated_clients: int = 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Agent":
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name", "")),
            city=str(raw.get("city", "")),
            phone=str(raw.get("phone", "")),
            associated_clients=int(raw.get("associatedClients") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "city": self.city,
            "phone": self.phone,
            "associatedClients": self.associated_clients,
        }


@dataclass
class Category:
    """Product category; names are unique case-insensitively."""

    id: str
    name: str
    is_component: bool = False
    is_finished_product: Optional[bool] = None
    parent_id: Optional[str] = None

    @property
    def sellable(self) -> bool:
        # Absent flag means the category holds finished products.
        return True if self.is_finished_product is None else self.is_finished_product

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Category":
        finished = raw.get("isFinishedProduct")
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name", "")),
            is_component=bool(raw.get("isComponent", False)),
            is_finished_product=None if finished is None else bool(finished),
            parent_id=_opt_str(raw.get("parentId")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "isComponent": self.is_component,
                "isFinishedProduct": self.is_finished_product,
                "parentId": self.parent_id,
            }
        )


@dataclass
class OlfactoryPyramid:
    head: str = ""
    heart: str = ""
    base: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "OlfactoryPyramid":
        return cls(head=str(raw.get("head", "")), heart=str(raw.get("heart", "")), base=str(raw.get("base", "")))

    def to_dict(self) -> Dict[str, Any]:
        return {"head": self.head, "heart": self.heart, "base": self.base}


@dataclass
class Product:
    """Catalogue product; ``category`` references a :class:`Category` by name."""

    id: str
    name: str
    category: str
    unit: ProductUnit = ProductUnit.PIECE
    code: Optional[str] = None
    brand: Optional[str] = None
    image_url: Optional[str] = None
    additional_images: List[str] = field(default_factory=list)
    description: Optional[str] = None
    olfactory_pyramid: Optional[OlfactoryPyramid] = None
    essence_code: Optional[str] = None
    ifra_limit: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Product":
        pyramid = raw.get("olfactoryPyramid")
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name", "")),
            category=str(raw.get("category", "")),
            unit=ProductUnit(raw.get("unit") or ProductUnit.PIECE.value),
            code=_opt_str(raw.get("code")),
            brand=_opt_str(raw.get("brand")),
            image_url=_opt_str(raw.get("imageUrl")),
            additional_images=[str(url) for url in raw.get("additionalImages") or []],
            description=_opt_str(raw.get("description")),
            olfactory_pyramid=OlfactoryPyramid.from_dict(pyramid) if pyramid else None,
            essence_code=_opt_str(raw.get("essenceCode")),
            ifra_limit=_opt_decimal(raw.get("ifraLimit")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "code": self.code,
                "name": self.name,
                "brand": self.brand,
                "category": self.category,
                "unit": self.unit.value,
                "imageUrl": self.image_url,
                "additionalImages": list(self.additional_images),
                "description": self.description,
                "olfactoryPyramid": self.olfactory_pyramid.to_dict() if self.olfactory_pyramid else None,
                "essenceCode": self.essence_code,
                "ifraLimit": self.ifra_limit,
            }
        )


@dataclass
class ProductVariant:
    """A packaged SKU of a product, e.g. the 50ml bottle."""

    id: str
    product_id: str
    name: str
    purchase_price: Decimal = ZERO
    sale_price: Decimal = ZERO
    capacity: Optional[Decimal] = None
    location: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ProductVariant":
        return cls(
            id=str(raw["id"]),
            product_id=str(raw["productId"]),
            name=str(raw.get("name", "")),
            purchase_price=to_decimal(raw.get("purchasePrice")),
            sale_price=to_decimal(raw.get("salePrice")),
            capacity=_opt_decimal(raw.get("capacity")),
            location=_opt_str(raw.get("location")),
            image_url=_opt_str(raw.get("imageUrl")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "productId": self.product_id,
                "name": self.name,
                "capacity": self.capacity,
                "purchasePrice": self.purchase_price,
                "salePrice": self.sale_price,
                "location": self.location,
                "imageUrl": self.image_url,
            }
        )


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


@dataclass
class InventoryBatch:
    """Unit of physical stock for one variant.

    ``stock_load_id`` and ``production_id`` record provenance; legacy batches
    may carry neither.
    """

    id: str
    variant_id: str
    initial_quantity: Decimal
    current_quantity: Decimal
    created_at: str
    status: BatchStatus = BatchStatus.AVAILABLE
    stock_load_id: Optional[str] = None
    production_id: Optional[str] = None
    batch_number: Optional[str] = None
    expiration_date: Optional[str] = None
    maceration_end_date: Optional[str] = None
    actual_maceration_days: Optional[int] = None

    @property
    def headroom(self) -> Decimal:
        return self.initial_quantity - self.current_quantity

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "InventoryBatch":
        return cls(
            id=str(raw["id"]),
            variant_id=str(raw["variantId"]),
            initial_quantity=to_decimal(raw.get("initialQuantity")),
            current_quantity=to_decimal(raw.get("currentQuantity")),
            created_at=str(raw.get("createdAt", "")),
            status=BatchStatus(raw.get("status") or BatchStatus.AVAILABLE.value),
            stock_load_id=_opt_str(raw.get("stockLoadId")),
            production_id=_opt_str(raw.get("productionId")),
            batch_number=_opt_str(raw.get("batchNumber")),
            expiration_date=_opt_date(raw.get("expirationDate")),
            maceration_end_date=_opt_str(raw.get("macerationEndDate")),
            actual_maceration_days=_opt_int(raw.get("actualMacerationDays")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "variantId": self.variant_id,
                "stockLoadId": self.stock_load_id,
                "productionId": self.production_id,
                "batchNumber": self.batch_number,
                "expirationDate": self.expiration_date,
                "initialQuantity": self.initial_quantity,
                "currentQuantity": self.current_quantity,
                "createdAt": self.created_at,
                "status": self.status.value,
                "macerationEndDate": self.maceration_end_date,
                "actualMacerationDays": self.actual_maceration_days,
            }
        )


@dataclass
class StockLoadItem:
    variant_id: str
    quantity: Decimal
    price: Decimal
    batch_number: Optional[str] = None
    expiration_date: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "StockLoadItem":
        return cls(
            variant_id=str(raw["variantId"]),
            quantity=to_decimal(raw.get("quantity")),
            price=to_decimal(raw.get("price")),
            batch_number=_opt_str(raw.get("batchNumber")),
            expiration_date=_opt_str(raw.get("expirationDate")) or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "variantId": self.variant_id,
                "quantity": self.quantity,
                "price": self.price,
                "batchNumber": self.batch_number,
                "expirationDate": self.expiration_date,
            }
        )


@dataclass
class StockLoad:
    """Incoming goods document. A missing payer marks an internal load."""

    id: str
    date: str
    items: List[StockLoadItem]
    total: Decimal
    supplier_id: Optional[str] = None
    paid_by_partner_id: Optional[str] = None
    vat_applied: bool = False
    discount_value: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    shipping_cost: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "StockLoad":
        discount_type = raw.get("discountType")
        return cls(
            id=str(raw["id"]),
            date=str(raw.get("date", "")),
            items=[StockLoadItem.from_dict(item) for item in raw.get("items") or []],
            total=to_decimal(raw.get("total")),
            supplier_id=_opt_str(raw.get("supplierId")) or None,
            paid_by_partner_id=_opt_str(raw.get("paidByPartnerId")) or None,
            vat_applied=bool(raw.get("vatApplied", False)),
            discount_value=_opt_decimal(raw.get("discountValue")),
            discount_type=DiscountType(discount_type) if discount_type else None,
            shipping_cost=_opt_decimal(raw.get("shippingCost")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "date": self.date,
                "supplierId": self.supplier_id,
                "items": [item.to_dict() for item in self.items],
                "paidByPartnerId": self.paid_by_partner_id,
                "vatApplied": self.vat_applied,
                "total": self.total,
                "discountValue": self.discount_value,
                "discountType": _enum_value(self.discount_type),
                "shippingCost": self.shipping_cost,
            }
        )


@dataclass
class SourceBatch:
    batch_id: str
    quantity_taken: Decimal

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "SourceBatch":
        return cls(batch_id=str(raw["batchId"]), quantity_taken=to_decimal(raw.get("quantityTaken")))

    def to_dict(self) -> Dict[str, Any]:
        return {"batchId": self.batch_id, "quantityTaken": self.quantity_taken}


@dataclass
class ProductionComponent:
    """Exactly which batches a production debited, for exact reversal."""

    variant_id: str
    total_quantity_used: Decimal
    source_batches: List[SourceBatch] = field(default_factory=list)
    weight_in_grams: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ProductionComponent":
        return cls(
            variant_id=str(raw["variantId"]),
            total_quantity_used=to_decimal(raw.get("totalQuantityUsed")),
            source_batches=[SourceBatch.from_dict(item) for item in raw.get("sourceBatches") or []],
            weight_in_grams=_opt_decimal(raw.get("weightInGrams")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "variantId": self.variant_id,
                "totalQuantityUsed": self.total_quantity_used,
                "weightInGrams": self.weight_in_grams,
                "sourceBatches": [source.to_dict() for source in self.source_batches],
            }
        )


@dataclass
class Production:
    id: str
    date: str
    finished_product_id: str
    quantity_produced: Decimal
    components: List[ProductionComponent]
    batch_number: str
    expiration_date: str
    production_type: ProductionType = ProductionType.FINISHED_SALE
    maceration_days: Optional[int] = None
    color_code: Optional[str] = None
    color_drops: Optional[int] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Production":
        return cls(
            id=str(raw["id"]),
            date=str(raw.get("date", "")),
            finished_product_id=str(raw["finishedProductId"]),
            quantity_produced=to_decimal(raw.get("quantityProduced")),
            components=[ProductionComponent.from_dict(item) for item in raw.get("components") or []],
            batch_number=str(raw.get("batchNumber", "")),
            expiration_date=str(raw.get("expirationDate", "")),
            production_type=ProductionType(raw.get("productionType") or ProductionType.FINISHED_SALE.value),
            maceration_days=_opt_int(raw.get("macerationDays")),
            color_code=_opt_str(raw.get("colorCode")),
            color_drops=_opt_int(raw.get("colorDrops")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "date": self.date,
                "finishedProductId": self.finished_product_id,
                "quantityProduced": self.quantity_produced,
                "components": [component.to_dict() for component in self.components],
                "batchNumber": self.batch_number,
                "expirationDate": self.expiration_date,
                "macerationDays": self.maceration_days,
                "productionType": self.production_type.value,
                "colorCode": self.color_code,
                "colorDrops": self.color_drops,
            }
        )


# ---------------------------------------------------------------------------
# Commercial documents
# ---------------------------------------------------------------------------


@dataclass
class DocumentItem:
    variant_id: str
    quantity: Decimal
    price: Decimal

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DocumentItem":
        return cls(
            variant_id=str(raw["variantId"]),
            quantity=to_decimal(raw.get("quantity")),
            price=to_decimal(raw.get("price")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"variantId": self.variant_id, "quantity": self.quantity, "price": self.price}


@dataclass
class OrderItem(DocumentItem):
    prepared: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "OrderItem":
        return cls(
            variant_id=str(raw["variantId"]),
            quantity=to_decimal(raw.get("quantity")),
            price=to_decimal(raw.get("price")),
            prepared=bool(raw.get("prepared", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        values = super().to_dict()
        values["prepared"] = self.prepared
        return values

    def as_document_item(self) -> DocumentItem:
        return DocumentItem(variant_id=self.variant_id, quantity=self.quantity, price=self.price)


@dataclass
class SalePayment:
    id: str
    date: str
    amount: Decimal
    partner_id: str

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "SalePayment":
        return cls(
            id=str(raw["id"]),
            date=str(raw.get("date", "")),
            amount=to_decimal(raw.get("amount")),
            partner_id=str(raw.get("partnerId", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "date": self.date, "amount": self.amount, "partnerId": self.partner_id}


def _discount_type(raw: Mapping[str, Any]) -> Optional[DiscountType]:
    value = raw.get("discountType")
    return DiscountType(value) if value else None


@dataclass
class Sale:
    """Sale document. ``payments`` is the source of truth for collections;
    ``collected_by_partner_id``/``collection_date`` are legacy mirrors."""

    id: str
    date: str
    customer_id: str
    items: List[DocumentItem]
    subtotal: Decimal
    vat_applied: bool
    total: Decimal
    type: DocumentType = DocumentType.SALE
    payments: List[SalePayment] = field(default_factory=list)
    collected_by_partner_id: Optional[str] = None
    collection_date: Optional[str] = None
    discount_value: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    shipping_cost: Optional[Decimal] = None

    @property
    def amount_paid(self) -> Decimal:
        return sum((payment.amount for payment in self.payments), ZERO)

    @property
    def amount_due(self) -> Decimal:
        return self.total - self.amount_paid

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Sale":
        return cls(
            id=str(raw["id"]),
            date=str(raw.get("date", "")),
            customer_id=str(raw.get("customerId", "")),
            items=[DocumentItem.from_dict(item) for item in raw.get("items") or []],
            subtotal=to_decimal(raw.get("subtotal")),
            vat_applied=bool(raw.get("vatApplied", False)),
            total=to_decimal(raw.get("total")),
            payments=[SalePayment.from_dict(item) for item in raw.get("payments") or []],
            collected_by_partner_id=_opt_str(raw.get("collectedByPartnerId")),
            collection_date=_opt_str(raw.get("collectionDate")),
            discount_value=_opt_decimal(raw.get("discountValue")),
            discount_type=_discount_type(raw),
            shipping_cost=_opt_decimal(raw.get("shippingCost")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "date": self.date,
                "customerId": self.customer_id,
                "items": [item.to_dict() for item in self.items],
                "subtotal": self.subtotal,
                "vatApplied": self.vat_applied,
                "total": self.total,
                "type": self.type.value,
                "collectedByPartnerId": self.collected_by_partner_id,
                "collectionDate": self.collection_date,
                "payments": [payment.to_dict() for payment in self.payments],
                "discountValue": self.discount_value,
                "discountType": _enum_value(self.discount_type),
                "shippingCost": self.shipping_cost,
            }
        )


@dataclass
class Quote:
    id: str
    date: str
    customer_id: str
    items: List[DocumentItem]
    subtotal: Decimal
    vat_applied: bool
    total: Decimal
    status: QuoteStatus = QuoteStatus.OPEN
    type: DocumentType = DocumentType.QUOTE
    payments: List[SalePayment] = field(default_factory=list)
    discount_value: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    shipping_cost: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Quote":
        return cls(
            id=str(raw["id"]),
            date=str(raw.get("date", "")),
            customer_id=str(raw.get("customerId", "")),
            items=[DocumentItem.from_dict(item) for item in raw.get("items") or []],
            subtotal=to_decimal(raw.get("subtotal")),
            vat_applied=bool(raw.get("vatApplied", False)),
            total=to_decimal(raw.get("total")),
            status=QuoteStatus(raw.get("status") or QuoteStatus.OPEN.value),
            payments=[SalePayment.from_dict(item) for item in raw.get("payments") or []],
            discount_value=_opt_decimal(raw.get("discountValue")),
            discount_type=_discount_type(raw),
            shipping_cost=_opt_decimal(raw.get("shippingCost")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "date": self.date,
                "customerId": self.customer_id,
                "items": [item.to_dict() for item in self.items],
                "subtotal": self.subtotal,
                "vatApplied": self.vat_applied,
                "total": self.total,
                "type": self.type.value,
                "status": self.status.value,
                "payments": [payment.to_dict() for payment in self.payments],
                "discountValue": self.discount_value,
                "discountType": _enum_value(self.discount_type),
                "shippingCost": self.shipping_cost,
            }
        )


@dataclass
class Order:
    id: str
    date: str
    customer_id: str
    items: List[OrderItem]
    subtotal: Decimal
    vat_applied: bool
    total: Decimal
    status: OrderStatus = OrderStatus.IN_PREPARATION
    discount_value: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    shipping_cost: Optional[Decimal] = None
    notes: Optional[str] = None

    @property
    def ready(self) -> bool:
        return all(item.prepared for item in self.items)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Order":
        return cls(
            id=str(raw["id"]),
            date=str(raw.get("date", "")),
            customer_id=str(raw.get("customerId", "")),
            items=[OrderItem.from_dict(item) for item in raw.get("items") or []],
            subtotal=to_decimal(raw.get("subtotal")),
            vat_applied=bool(raw.get("vatApplied", False)),
            total=to_decimal(raw.get("total")),
            status=OrderStatus(raw.get("status") or OrderStatus.IN_PREPARATION.value),
            discount_value=_opt_decimal(raw.get("discountValue")),
            discount_type=_discount_type(raw),
            shipping_cost=_opt_decimal(raw.get("shippingCost")),
            notes=_opt_str(raw.get("notes")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "date": self.date,
                "customerId": self.customer_id,
                "items": [item.to_dict() for item in self.items],
                "subtotal": self.subtotal,
                "vatApplied": self.vat_applied,
                "total": self.total,
                "status": self.status.value,
                "discountValue": self.discount_value,
                "discountType": _enum_value(self.discount_type),
                "shippingCost": self.shipping_cost,
                "notes": self.notes,
            }
        )


@dataclass
class Expense:
    id: str
    date: str
    description: str
    quantity: Decimal
    price: Decimal
    vat_applied: bool
    total: Decimal
    supplier_id: Optional[str] = None
    notes: Optional[str] = None
    paid_by_partner_id: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Expense":
        return cls(
            id=str(raw["id"]),
            date=str(raw.get("date", "")),
            description=str(raw.get("description", "")),
            quantity=to_decimal(raw.get("quantity")),
            price=to_decimal(raw.get("price")),
            vat_applied=bool(raw.get("vatApplied", False)),
            total=to_decimal(raw.get("total")),
            supplier_id=_opt_str(raw.get("supplierId")) or None,
            notes=_opt_str(raw.get("notes")),
            paid_by_partner_id=_opt_str(raw.get("paidByPartnerId")) or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "date": self.date,
                "description": self.description,
                "quantity": self.quantity,
                "price": self.price,
                "vatApplied": self.vat_applied,
                "total": self.total,
                "supplierId": self.supplier_id,
                "notes": self.notes,
                "paidByPartnerId": self.paid_by_partner_id,
            }
        )


# ---------------------------------------------------------------------------
# Partner ledger
# ---------------------------------------------------------------------------


@dataclass
class PartnerLedgerEntry:
    """Signed cash movement: positive means the partner holds cash."""

    id: str
    date: str
    description: str
    amount: Decimal
    partner_id: str
    related_document_id: Optional[str] = None
    payment_method: Optional[str] = None

    def related_ids(self) -> List[str]:
        """Document ids referenced by this entry (bulk collections join with commas)."""
        if not self.related_document_id:
            return []
        return [part.strip() for part in self.related_document_id.split(",") if part.strip()]

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PartnerLedgerEntry":
        return cls(
            id=str(raw["id"]),
            date=str(raw.get("date", "")),
            description=str(raw.get("description", "")),
            amount=to_decimal(raw.get("amount")),
            partner_id=str(raw.get("partnerId", "")),
            related_document_id=_opt_str(raw.get("relatedDocumentId")) or None,
            payment_method=_opt_str(raw.get("paymentMethod")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "date": self.date,
                "description": self.description,
                "amount": self.amount,
                "partnerId": self.partner_id,
                "relatedDocumentId": self.related_document_id,
                "paymentMethod": self.payment_method,
            }
        )


@dataclass
class PartnerSnapshot:
    partner_id: str
    partner_name: str
    balance: Decimal
    status: PartnerStatus

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PartnerSnapshot":
        return cls(
            partner_id=str(raw["partnerId"]),
            partner_name=str(raw.get("partnerName", "")),
            balance=to_decimal(raw.get("balance")),
            status=PartnerStatus(raw.get("status") or PartnerStatus.BALANCED.value),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "partnerId": self.partner_id,
            "partnerName": self.partner_name,
            "balance": self.balance,
            "status": self.status.value,
        }


@dataclass
class SettlementPayment:
    amount: Decimal
    from_partner_id: str
    from_partner_name: str
    to_partner_id: str
    to_partner_name: str
    payment_method: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "SettlementPayment":
        return cls(
            amount=to_decimal(raw.get("amount")),
            from_partner_id=str(raw.get("fromPartnerId", "")),
            from_partner_name=str(raw.get("fromPartnerName", "")),
            to_partner_id=str(raw.get("toPartnerId", "")),
            to_partner_name=str(raw.get("toPartnerName", "")),
            payment_method=_opt_str(raw.get("paymentMethod")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "amount": self.amount,
                "paymentMethod": self.payment_method,
                "fromPartnerId": self.from_partner_id,
                "fromPartnerName": self.from_partner_name,
                "toPartnerId": self.to_partner_id,
                "toPartnerName": self.to_partner_name,
            }
        )


@dataclass
class PartnerSettlement:
    """Immutable snapshot recorded when a settlement period is closed."""

    id: str
    date: str
    total_system_balance: Decimal
    target_per_partner: Decimal
    partner_snapshots: List[PartnerSnapshot]
    payment: Optional[SettlementPayment] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PartnerSettlement":
        payment = raw.get("payment")
        return cls(
            id=str(raw["id"]),
            date=str(raw.get("date", "")),
            total_system_balance=to_decimal(raw.get("totalSystemBalance")),
            target_per_partner=to_decimal(raw.get("targetPerPartner")),
            partner_snapshots=[PartnerSnapshot.from_dict(item) for item in raw.get("partnerSnapshots") or []],
            payment=SettlementPayment.from_dict(payment) if payment else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "date": self.date,
                "totalSystemBalance": self.total_system_balance,
                "targetPerPartner": self.target_per_partner,
                "partnerSnapshots": [snapshot.to_dict() for snapshot in self.partner_snapshots],
                "payment": self.payment.to_dict() if self.payment else None,
            }
        )


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def default_categories() -> List[Category]:
    return [
        Category(id=new_id(), name=name, is_component=is_component, is_finished_product=finished)
        for name, is_component, finished in DEFAULT_CATEGORIES
    ]


def default_partners() -> List[Partner]:
    return [Partner(id=DEFAULT_PARTNER_ID, name=DEFAULT_PARTNER_NAME)]


_COLLECTIONS: tuple[tuple[str, str, type], ...] = (
    ("customers", "customers", Customer),
    ("suppliers", "suppliers", Supplier),
    ("agents", "agents", Agent),
    ("products", "products", Product),
    ("product_variants", "productVariants", ProductVariant),
    ("inventory_batches", "inventoryBatches", InventoryBatch),
    ("categories", "categories", Category),
    ("stock_loads", "stockLoads", StockLoad),
    ("productions", "productions", Production),
    ("sales", "sales", Sale),
    ("quotes", "quotes", Quote),
    ("partner_ledger", "partnerLedger", PartnerLedgerEntry),
    ("partner_settlements", "partnerSettlements", PartnerSettlement),
    ("expenses", "expenses", Expense),
    ("orders", "orders", Order),
)


@dataclass
class YearData:
    """All entity collections owned by one fiscal year."""

    customers: List[Customer] = field(default_factory=list)
    suppliers: List[Supplier] = field(default_factory=list)
    agents: List[Agent] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    product_variants: List[ProductVariant] = field(default_factory=list)
    inventory_batches: List[InventoryBatch] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    stock_loads: List[StockLoad] = field(default_factory=list)
    productions: List[Production] = field(default_factory=list)
    sales: List[Sale] = field(default_factory=list)
    quotes: List[Quote] = field(default_factory=list)
    partner_ledger: List[PartnerLedgerEntry] = field(default_factory=list)
    partner_settlements: List[PartnerSettlement] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    orders: List[Order] = field(default_factory=list)

    @classmethod
    def initial(cls) -> "YearData":
        """Empty year seeded with the default categories."""
        return cls(categories=default_categories())

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "YearData":
        values: Dict[str, Any] = {}
        for attribute, key, entity in _COLLECTIONS:
            values[attribute] = [entity.from_dict(item) for item in raw.get(key) or []]
        if raw.get("categories") is None:
            values["categories"] = default_categories()
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {key: [item.to_dict() for item in getattr(self, attribute)] for attribute, key, _ in _COLLECTIONS}

    # Lookup helpers -------------------------------------------------------

    def find_variant(self, variant_id: str) -> Optional[ProductVariant]:
        return next((variant for variant in self.product_variants if variant.id == variant_id), None)

    def find_product(self, product_id: Optional[str]) -> Optional[Product]:
        return next((product for product in self.products if product.id == product_id), None)

    def find_batch(self, batch_id: str) -> Optional[InventoryBatch]:
        return next((batch for batch in self.inventory_batches if batch.id == batch_id), None)

    def customer_name(self, customer_id: Optional[str], default: str) -> str:
        customer = next((item for item in self.customers if item.id == customer_id), None)
        return customer.name if customer else default

    def supplier_name(self, supplier_id: Optional[str], default: str) -> str:
        supplier = next((item for item in self.suppliers if item.id == supplier_id), None)
        return supplier.name if supplier else default

    def variant_display_name(self, variant_id: str) -> str:
        """``"<product> - <variant>"`` as shown in stock messages."""
        variant = self.find_variant(variant_id)
        if variant is None:
            return f"variant {variant_id}"
        product = self.find_product(variant.product_id)
        product_name = product.name if product else "unknown product"
        return f"{product_name} - {variant.name}"


@dataclass
class AppState:
    """Whole application state: global partners, every year, and settings."""

    partners: List[Partner]
    years: Dict[int, YearData]
    settings: Settings

    @property
    def current_year(self) -> int:
        return self.settings.current_year

    @property
    def year_data(self) -> YearData:
        return self.years[self.settings.current_year]

    def find_partner(self, partner_id: Optional[str]) -> Optional[Partner]:
        return next((partner for partner in self.partners if partner.id == partner_id), None)

    @classmethod
    def initial(cls, year: int) -> "AppState":
        return cls(partners=default_partners(), years={year: YearData.initial()}, settings=Settings(current_year=year))

    def to_tree(self) -> Dict[str, Any]:
        """Serialize ``{partners, years}`` (settings are stored separately)."""
        return {
            "partners": [partner.to_dict() for partner in self.partners],
            "years": {str(year): data.to_dict() for year, data in sorted(self.years.items())},
        }

    @classmethod
    def from_tree(cls, tree: Mapping[str, Any], settings: Settings) -> "AppState":
        """Build state from a persisted tree applying migration defaults.

        Both the ``{"partners", "years": {...}}`` layout and the legacy flat
        layout with year keys at the top level are accepted. The current year
        always resolves to an existing :class:`YearData`.
        """
        partners = [Partner.from_dict(item) for item in tree.get("partners") or []]
        raw_years: Dict[str, Any] = dict(tree.get("years") or {})
        for key, value in tree.items():
            if key.isdigit() and key not in raw_years:
                raw_years[key] = value
        years = {int(key): YearData.from_dict(value or {}) for key, value in raw_years.items()}
        if settings.current_year not in years:
            years[settings.current_year] = YearData.initial()
        return cls(partners=partners, years=years, settings=settings)


__all__ = [
    "ZERO",
    "new_id",
    "quantize_money",
    "parse_iso_date",
    "to_decimal",
    "Partner",
    "CompanyInfo",
    "Settings",
    "Customer",
    "Supplier",
    "Agent",
    "Category",
    "OlfactoryPyramid",
    "Product",
    "ProductVariant",
    "InventoryBatch",
    "StockLoadItem",
    "StockLoad",
    "SourceBatch",
    "ProductionComponent",
    "Production",
    "DocumentItem",
    "OrderItem",
    "SalePayment",
    "Sale",
    "Quote",
    "Order",
    "Expense",
    "PartnerLedgerEntry",
    "PartnerSnapshot",
    "SettlementPayment",
    "PartnerSettlement",
    "YearData",
    "AppState",
    "default_categories",
    "default_partners",
]
