"""
Purchase Invoice Service - Goods receipt with landed-cost allocation

WHY: Received goods arrive with freight, other costs and taxes on top of the
invoice prices. Those are allocated to each line in proportion to its
subtotal so stock is valued at landed cost, which drives the average cost
booked as COGS at checkout.

ALLOCATION (per line):
    share      = line_subtotal / invoice_subtotal
    line_total = (line_subtotal + freight * share + other * share) * (1 + tax)
    unit_cost  = line_total / quantity, rounded half-up to cents

After the receipt commits, the inbox gets a PRICING_NEEDED notification when
new products were created (they start with price 0) and a PAYMENT_REVIEW
notification for the payable.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from flask import current_app

from ..extensions import db
from ..models import Notification, Product, PurchaseInvoice, StockEntry, Supplier, Transaction
from app.time_utils import add_days, coerce_datetime, utcnow
from .category_service import COGS, ensure_system_category
from .notification_service import TYPE_PAYMENT_REVIEW, TYPE_PRICING_NEEDED, create_invoice_notification
from .observability import record_recoverable
from .outcome import Outcome, REASON_NOT_FOUND, REASON_VALIDATION
from .revalidation import (
    revalidate,
    PATH_NOTIFICATIONS,
    PATH_PAYABLES,
    PATH_PRODUCTS,
    PATH_PURCHASES,
    PATH_TRANSACTIONS,
)
from .settlement_service import round_cents


class PurchaseInvoiceError(Exception):
    """Raised for purchase invoice errors."""
    def __init__(self, message: str, details: dict | None = None, reason: str | None = None):
        super().__init__(message)
        self.details = details or {}
        self.reason = reason


PAYABLE_DUE_DAYS = 30

ROLE_COMMERCIAL = "COMERCIAL"
ROLE_FINANCE = "FINANCEIRO"


@dataclass(frozen=True)
class PurchaseLine:
    product_id: int | None
    new_product_name: str | None
    new_product_sku: str | None
    quantity: int
    raw_unit_cost_cents: int


@dataclass(frozen=True)
class AllocatedLine:
    line: PurchaseLine
    unit_cost_cents: int
    total_cost_cents: int


def allocate_costs(
    lines: list[PurchaseLine],
    freight_cents: int,
    other_costs_cents: int,
    tax_rate: Decimal,
) -> list[AllocatedLine]:
    """Spread freight, other costs and tax over lines by subtotal share."""
    subtotal = sum(Decimal(l.quantity * l.raw_unit_cost_cents) for l in lines)
    allocated = []
    for line in lines:
        line_subtotal = Decimal(line.quantity * line.raw_unit_cost_cents)
        share = line_subtotal / subtotal if subtotal > 0 else Decimal("0")
        total = (
            line_subtotal
            + Decimal(freight_cents) * share
            + Decimal(other_costs_cents) * share
        ) * (Decimal("1") + tax_rate)
        allocated.append(AllocatedLine(
            line=line,
            unit_cost_cents=round_cents(total / Decimal(line.quantity)),
            total_cost_cents=round_cents(total),
        ))
    return allocated


def recalculate_product_cost(product: Product) -> None:
    """Stock quantity and weighted average cost from remaining stock entries."""
    entries = db.session.query(StockEntry).filter_by(product_id=product.id).all()
    quantity = sum(e.remaining_quantity for e in entries)
    value = sum(Decimal(e.remaining_quantity * e.unit_cost_cents) for e in entries)
    product.stock_quantity = quantity
    product.average_cost_cents = round_cents(value / Decimal(quantity)) if quantity > 0 else 0


def _parse_cents(value, field_name: str) -> int:
    if value in (None, ""):
        return 0
    try:
        cents = int(value)
    except (TypeError, ValueError):
        raise PurchaseInvoiceError(f"{field_name} must be an integer amount of cents")
    if cents < 0:
        raise PurchaseInvoiceError(f"{field_name} cannot be negative")
    return cents


def _parse_lines(raw_items) -> list[PurchaseLine]:
    lines = []
    for raw in raw_items or []:
        new_product = raw.get("new_product") or {}
        product_id = raw.get("product_id")
        name = (new_product.get("name") or "").strip() or None
        if product_id in (None, "") and not name:
            raise PurchaseInvoiceError("Each item needs product_id or new_product.name")
        try:
            quantity = int(raw.get("quantity"))
        except (TypeError, ValueError):
            raise PurchaseInvoiceError("Item quantity must be an integer")
        if quantity <= 0:
            raise PurchaseInvoiceError("Item quantity must be positive")
        lines.append(PurchaseLine(
            product_id=int(product_id) if product_id not in (None, "") else None,
            new_product_name=name,
            new_product_sku=(new_product.get("sku") or "").strip() or None,
            quantity=quantity,
            raw_unit_cost_cents=_parse_cents(raw.get("raw_unit_cost_cents"), "raw_unit_cost_cents"),
        ))
    return lines


def create_purchase_invoice(tenant_id: int | None, user_id: int | None, data: dict) -> Outcome:
    """
    Receive goods: invoice, stock entries, product cost recompute and one
    pending payable, in one unit of work. Inbox notifications follow after
    commit and are best-effort.
    """
    if not tenant_id:
        return Outcome.unauthorized()

    data = data or {}
    try:
        lines = _parse_lines(data.get("items"))
        if not lines:
            raise PurchaseInvoiceError("A purchase invoice needs at least one item")

        freight = _parse_cents(data.get("freight_cost_cents"), "freight_cost_cents")
        other = _parse_cents(data.get("other_costs_cents"), "other_costs_cents")
        try:
            tax_rate = Decimal(str(data.get("tax_rate") or 0))
        except InvalidOperation:
            raise PurchaseInvoiceError("tax_rate must be a fraction")
        if tax_rate < 0 or tax_rate > 1:
            raise PurchaseInvoiceError("tax_rate must be a fraction between 0 and 1")

        try:
            entry_date = coerce_datetime(data.get("entry_date"), default=utcnow())
        except ValueError:
            raise PurchaseInvoiceError("Invalid entry_date")

        supplier_id = data.get("supplier_id")
        supplier_id = int(supplier_id) if supplier_id not in (None, "") else None
        if supplier_id is not None and not (
            db.session.query(Supplier).filter_by(id=supplier_id, tenant_id=tenant_id).first()
        ):
            raise PurchaseInvoiceError("Supplier not found", reason=REASON_NOT_FOUND)

        existing_ids = {l.product_id for l in lines if l.product_id is not None}
        products = {}
        if existing_ids:
            products = {
                p.id: p
                for p in db.session.query(Product)
                .filter(Product.tenant_id == tenant_id, Product.id.in_(existing_ids))
                .all()
            }
        missing = sorted(existing_ids - products.keys())
        if missing:
            raise PurchaseInvoiceError(
                "Product not found", details={"product_ids": missing}, reason=REASON_NOT_FOUND
            )

        allocated = allocate_costs(lines, freight, other, tax_rate)
        subtotal = sum(l.quantity * l.raw_unit_cost_cents for l in lines)
        total_cost = sum(a.total_cost_cents for a in allocated)

        invoice = PurchaseInvoice(
            tenant_id=tenant_id,
            created_by_user_id=user_id,
            supplier_id=supplier_id,
            invoice_number=(data.get("invoice_number") or "").strip() or None,
            entry_date=entry_date,
            subtotal_cents=subtotal,
            freight_cost_cents=freight,
            other_costs_cents=other,
            tax_rate=tax_rate,
            total_cost_cents=total_cost,
            payment_status="PENDING",
            notes=data.get("notes") or None,
        )
        db.session.add(invoice)
        db.session.flush()

        new_products = []
        affected = {}
        for item in allocated:
            product = products.get(item.line.product_id) if item.line.product_id is not None else None
            if product is None:
                product = Product(
                    tenant_id=tenant_id,
                    name=item.line.new_product_name,
                    sku=item.line.new_product_sku,
                    price_cents=0,
                    average_cost_cents=0,
                    stock_quantity=0,
                    manage_stock=True,
                )
                db.session.add(product)
                db.session.flush()
                new_products.append(product)

            db.session.add(StockEntry(
                tenant_id=tenant_id,
                purchase_invoice_id=invoice.id,
                product_id=product.id,
                quantity=item.line.quantity,
                remaining_quantity=item.line.quantity,
                raw_unit_cost_cents=item.line.raw_unit_cost_cents,
                unit_cost_cents=item.unit_cost_cents,
            ))
            affected[product.id] = product

        db.session.flush()
        for product in affected.values():
            recalculate_product_cost(product)

        cogs = ensure_system_category(tenant_id, COGS)
        db.session.add(Transaction(
            tenant_id=tenant_id,
            created_by_user_id=user_id,
            description=f"Merchandise purchase - {invoice.label}",
            amount_cents=total_cost,
            type="expense",
            status="pending",
            date=add_days(entry_date, PAYABLE_DUE_DAYS),
            competence_date=entry_date,
            supplier_id=supplier_id,
            purchase_invoice_id=invoice.id,
            category_id=cogs.id,
        ))
        db.session.commit()
    except PurchaseInvoiceError as e:
        db.session.rollback()
        return Outcome.fail(str(e), reason=e.reason or REASON_VALIDATION, details=e.details)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create purchase invoice")
        return Outcome.internal("Failed to create purchase invoice")

    outcome = Outcome.ok(invoice, invoice=invoice.to_dict())
    outcome = outcome.with_warning(_notify_receipt(tenant_id, invoice, new_products))

    revalidate(PATH_PURCHASES, PATH_PRODUCTS, PATH_TRANSACTIONS, PATH_PAYABLES, PATH_NOTIFICATIONS)
    return outcome


def _notify_receipt(tenant_id: int, invoice: PurchaseInvoice, new_products: list[Product]) -> Outcome | None:
    try:
        if new_products:
            if len(new_products) == 1:
                title = "Product without a sale price"
                description = (
                    f'Product "{new_products[0].name}" was registered via {invoice.label}. '
                    "Set its sale price."
                )
            else:
                names = ", ".join(p.name for p in new_products)
                title = f"{len(new_products)} products without a sale price"
                description = f"Products registered via {invoice.label}: {names}. Set their sale prices."
            create_invoice_notification(
                tenant_id,
                notification_type=TYPE_PRICING_NEEDED,
                purchase_invoice_id=invoice.id,
                title=title,
                description=description,
                target_role=ROLE_COMMERCIAL,
            )

        create_invoice_notification(
            tenant_id,
            notification_type=TYPE_PAYMENT_REVIEW,
            purchase_invoice_id=invoice.id,
            title=f"Payable - {invoice.label}",
            description="Review the due date of this merchandise purchase.",
            target_role=ROLE_FINANCE,
            expected_amount_cents=invoice.total_cost_cents,
        )
    except Exception as e:
        db.session.rollback()
        return record_recoverable("purchase.notify", e, tenant_id=tenant_id, purchase_invoice_id=invoice.id)
    return None


def list_purchase_invoices(tenant_id: int | None) -> list[dict]:
    if not tenant_id:
        return []
    invoices = (
        db.session.query(PurchaseInvoice)
        .filter_by(tenant_id=tenant_id)
        .order_by(PurchaseInvoice.entry_date.desc(), PurchaseInvoice.id.desc())
        .all()
    )
    return [inv.to_dict() for inv in invoices]


def delete_purchase_invoice(tenant_id: int | None, invoice_id: int) -> Outcome:
    """Remove an invoice, its payable and stock entries; recompute products."""
    if not tenant_id:
        return Outcome.unauthorized()

    invoice = db.session.query(PurchaseInvoice).filter_by(id=invoice_id, tenant_id=tenant_id).first()
    if not invoice:
        return Outcome.not_found("Purchase invoice not found")

    try:
        product_ids = {e.product_id for e in invoice.entries}

        (
            db.session.query(Transaction)
            .filter_by(tenant_id=tenant_id, purchase_invoice_id=invoice.id)
            .delete(synchronize_session=False)
        )
        (
            db.session.query(Notification)
            .filter_by(tenant_id=tenant_id, purchase_invoice_id=invoice.id)
            .update({Notification.purchase_invoice_id: None}, synchronize_session=False)
        )
        db.session.delete(invoice)
        db.session.flush()

        for product in db.session.query(Product).filter(Product.id.in_(product_ids)).all():
            recalculate_product_cost(product)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete purchase invoice %s", invoice_id)
        return Outcome.internal("Failed to delete purchase invoice")

    revalidate(PATH_PURCHASES, PATH_PRODUCTS, PATH_TRANSACTIONS, PATH_PAYABLES)
    return Outcome.ok()
