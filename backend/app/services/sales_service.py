"""
Sales Service - Checkout processing and settlement booking

WHY: A checkout is the one operation that touches catalog stock, the ledger
and the agenda together. Everything it books (items, stock decrements, COGS
entries, receivables per payment instrument, freight) lands in one unit of
work: either all of it is visible or none of it is.

FLOW:
1. Parse the request and normalize payments into PaymentInstructions
2. Check preconditions (items, ownership, stock) before any write
3. Persist sale, items, stock and COGS, receivables and freight; commit once
4. After commit, supersede the originating agenda event's provisional
   entries (best-effort; failures are recorded, the sale stands)

CONCURRENCY: stock is checked, not locked. Two simultaneous checkouts for the
same low-stock product can both pass the check and overdraw.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import (
    AgendaEvent,
    CardMachine,
    Customer,
    FinancialAccount,
    Product,
    Sale,
    SaleItem,
    Service,
    Supplier,
    Transaction,
)
from app.time_utils import coerce_datetime, utcnow
from .category_service import COGS, FREIGHT, SALES, ensure_system_category
from .fee_service import VALID_METHODS, normalize_installments, resolve_fee_policy, resolve_method_code
from .notification_service import (
    STATUS_ACTED_PDV,
    event_key,
    mark_notification_acted,
    pay_alert_key,
)
from .observability import record_recoverable
from .outcome import Outcome
from .revalidation import (
    revalidate,
    PATH_AGENDA,
    PATH_NOTIFICATIONS,
    PATH_PRODUCTS,
    PATH_RECEIVABLES,
    PATH_SALES,
    PATH_TRANSACTIONS,
)
from .settlement_service import STATUS_PAID, SettlementRequest, schedule_settlement
from .tenant_service import get_tenant_info


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


FREIGHT_CLIENT = "CLIENTE"
FREIGHT_COMPANY = "EMPRESA"
VALID_FREIGHT_BEARERS = {FREIGHT_CLIENT, FREIGHT_COMPANY}

ITEM_PRODUCT = "product"
ITEM_SERVICE = "service"

MULTIPLE_METHODS = "MULTIPLO"


# =============================================================================
# REQUEST SHAPES
# =============================================================================

def _optional_int(value, field_name: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SaleError(f"{field_name} must be an integer")


def _cents(value, field_name: str) -> int:
    try:
        cents = int(value)
    except (TypeError, ValueError):
        raise SaleError(f"{field_name} must be an integer amount of cents")
    if cents < 0:
        raise SaleError(f"{field_name} cannot be negative")
    return cents


@dataclass(frozen=True)
class SaleItemRequest:
    item_type: str
    product_id: int | None
    service_id: int | None
    quantity: int
    unit_price_cents: int | None

    @classmethod
    def from_dict(cls, raw: dict) -> "SaleItemRequest":
        if not isinstance(raw, dict):
            raise SaleError("Each item must be an object")
        item_type = (raw.get("type") or raw.get("item_type") or "").strip().lower()
        if item_type not in (ITEM_PRODUCT, ITEM_SERVICE):
            raise SaleError("Item type must be 'product' or 'service'")

        product_id = _optional_int(raw.get("product_id"), "product_id")
        service_id = _optional_int(raw.get("service_id"), "service_id")
        if item_type == ITEM_PRODUCT and product_id is None:
            raise SaleError("product_id required for product items")
        if item_type == ITEM_SERVICE and service_id is None:
            raise SaleError("service_id required for service items")

        quantity = _optional_int(raw.get("quantity"), "quantity") or 0
        if quantity <= 0:
            raise SaleError("Item quantity must be positive")

        unit_price = raw.get("unit_price_cents")
        return cls(
            item_type=item_type,
            product_id=product_id if item_type == ITEM_PRODUCT else None,
            service_id=service_id if item_type == ITEM_SERVICE else None,
            quantity=quantity,
            unit_price_cents=_cents(unit_price, "unit_price_cents") if unit_price is not None else None,
        )


@dataclass(frozen=True)
class PaymentInstruction:
    """One payment instrument, after the legacy/array shapes are unified."""
    method: str
    amount_cents: int
    installments: int
    card_machine_id: int | None
    financial_account_id: int | None


@dataclass(frozen=True)
class SaleRequest:
    items: tuple[SaleItemRequest, ...]
    customer_id: int | None
    carrier_id: int | None
    shipping_cost_cents: int
    shipping_status: str | None
    freight_paid_by: str
    payment_method: str | None
    installments: int | None
    card_machine_id: int | None
    financial_account_id: int | None
    payments: tuple[dict, ...]
    event_id: int | None
    date: datetime

    @classmethod
    def from_dict(cls, data: dict) -> "SaleRequest":
        if not isinstance(data, dict):
            raise SaleError("Sale request must be an object")
        freight_paid_by = (data.get("freight_paid_by") or FREIGHT_CLIENT).strip().upper()
        if freight_paid_by not in VALID_FREIGHT_BEARERS:
            raise SaleError(f"Invalid freight_paid_by: {freight_paid_by}")

        shipping = data.get("shipping_cost_cents")
        shipping_status = data.get("shipping_status")
        try:
            sale_date = coerce_datetime(data.get("date"), default=utcnow())
        except ValueError:
            raise SaleError("Invalid sale date")

        raw_items = data.get("items") or []
        raw_payments = data.get("payments") or []
        if not isinstance(raw_items, list) or not isinstance(raw_payments, list):
            raise SaleError("items and payments must be lists")

        return cls(
            items=tuple(SaleItemRequest.from_dict(raw) for raw in raw_items),
            customer_id=_optional_int(data.get("customer_id"), "customer_id"),
            carrier_id=_optional_int(data.get("carrier_id"), "carrier_id"),
            shipping_cost_cents=_cents(shipping, "shipping_cost_cents") if shipping not in (None, "") else 0,
            shipping_status=shipping_status.strip().upper() if shipping_status else None,
            freight_paid_by=freight_paid_by,
            payment_method=(data.get("payment_method") or "").strip().upper() or None,
            installments=_optional_int(data.get("installments"), "installments"),
            card_machine_id=_optional_int(data.get("card_machine_id"), "card_machine_id"),
            financial_account_id=_optional_int(data.get("financial_account_id"), "financial_account_id"),
            payments=tuple(raw_payments),
            event_id=_optional_int(data.get("event_id"), "event_id"),
            date=sale_date,
        )


def compute_total(items_total_cents: int, shipping_cost_cents: int, freight_paid_by: str) -> int:
    """Customer-facing total: freight is passed through only when the client bears it."""
    if freight_paid_by == FREIGHT_CLIENT:
        return items_total_cents + (shipping_cost_cents or 0)
    return items_total_cents


def normalize_payments(req: SaleRequest, total_cents: int) -> list[PaymentInstruction]:
    """
    Resolve the payments array or the legacy single-method fields into a
    list of PaymentInstructions.

    A payment without its own financial account falls back to the
    sale-level account.
    """
    if req.payments:
        instructions = []
        for raw in req.payments:
            if not isinstance(raw, dict):
                raise SaleError("Each payment must be an object")
            method = (raw.get("method") or "").strip().upper()
            if method not in VALID_METHODS:
                raise SaleError(f"Invalid payment method: {method or '(empty)'}")
            amount = _cents(raw.get("amount_cents"), "payment amount_cents")
            if amount <= 0:
                raise SaleError("Payment amount must be positive")
            account_id = _optional_int(raw.get("financial_account_id"), "financial_account_id")
            instructions.append(PaymentInstruction(
                method=method,
                amount_cents=amount,
                installments=normalize_installments(raw.get("installments")),
                card_machine_id=_optional_int(raw.get("card_machine_id"), "card_machine_id"),
                financial_account_id=account_id if account_id is not None else req.financial_account_id,
            ))
        return instructions

    if not req.payment_method:
        raise SaleError("payment_method required")
    if req.payment_method not in VALID_METHODS:
        raise SaleError(f"Invalid payment method: {req.payment_method}")
    return [
        PaymentInstruction(
            method=req.payment_method,
            amount_cents=total_cents,
            installments=normalize_installments(req.installments),
            card_machine_id=req.card_machine_id,
            financial_account_id=req.financial_account_id,
        )
    ]


# =============================================================================
# PRECONDITIONS (no writes)
# =============================================================================

def _require_owned(model, tenant_id: int, record_id: int | None, label: str):
    if record_id is None:
        return None
    record = db.session.query(model).filter_by(id=record_id, tenant_id=tenant_id).first()
    if not record:
        raise SaleError(f"{label} not found", details={f"{label.lower().replace(' ', '_')}_id": record_id})
    return record


def _load_catalog(tenant_id: int, items: tuple[SaleItemRequest, ...]) -> tuple[dict, dict]:
    product_ids = {i.product_id for i in items if i.product_id is not None}
    service_ids = {i.service_id for i in items if i.service_id is not None}

    products = {}
    if product_ids:
        products = {
            p.id: p
            for p in db.session.query(Product)
            .filter(Product.tenant_id == tenant_id, Product.id.in_(product_ids))
            .all()
        }
    services = {}
    if service_ids:
        services = {
            s.id: s
            for s in db.session.query(Service)
            .filter(Service.tenant_id == tenant_id, Service.id.in_(service_ids))
            .all()
        }

    missing_products = sorted(product_ids - products.keys())
    if missing_products:
        raise SaleError("Product not found", details={"product_ids": missing_products})
    missing_services = sorted(service_ids - services.keys())
    if missing_services:
        raise SaleError("Service not found", details={"service_ids": missing_services})
    return products, services


def _validate_stock(items: tuple[SaleItemRequest, ...], products: dict) -> None:
    requested: dict[int, int] = {}
    for item in items:
        if item.product_id is not None:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    insufficient = []
    for product_id, qty in requested.items():
        product = products[product_id]
        if product.manage_stock and (product.stock_quantity or 0) < qty:
            insufficient.append({
                "product_id": product_id,
                "name": product.name,
                "requested_quantity": qty,
                "stock_quantity": product.stock_quantity or 0,
            })

    if insufficient:
        names = ", ".join(row["name"] for row in insufficient)
        raise SaleError(f"Insufficient stock for: {names}", details={"items": insufficient})


def _unit_price(item: SaleItemRequest, products: dict, services: dict) -> int:
    if item.unit_price_cents is not None:
        return item.unit_price_cents
    if item.product_id is not None:
        return products[item.product_id].price_cents or 0
    return services[item.service_id].price_cents or 0


# =============================================================================
# PROCESS SALE
# =============================================================================

def _payment_description(code: str, payment: PaymentInstruction, multi: bool, number, total) -> str:
    description = f"Sale #{code}"
    if multi:
        description += f" ({payment.method})"
    if total and total > 1:
        description += f" - installment {number}/{total}"
    return description


def _book_payment(
    tenant_id: int,
    user_id: int | None,
    sale: Sale,
    payment: PaymentInstruction,
    machines: dict,
    sales_category_id: int,
    multi: bool,
) -> list[Transaction]:
    machine = machines.get(payment.card_machine_id)
    policy = resolve_fee_policy(payment.method, payment.installments, machine)

    if policy is not None:
        req = SettlementRequest(
            amount_cents=payment.amount_cents,
            method=payment.method,
            installments=payment.installments,
            sale_date=sale.date,
            has_machine=True,
            fee_rate=policy.fee_rate,
            settlement_delay_days=policy.settlement_delay_days,
            settlement_mode=policy.settlement_mode,
        )
    else:
        req = SettlementRequest(
            amount_cents=payment.amount_cents,
            method=payment.method,
            installments=payment.installments,
            sale_date=sale.date,
        )

    booked = []
    for draft in schedule_settlement(req):
        paid = draft.status == STATUS_PAID
        tx = Transaction(
            tenant_id=tenant_id,
            created_by_user_id=user_id,
            description=_payment_description(
                sale.short_code, payment, multi, draft.installment_number, draft.installment_total
            ),
            amount_cents=draft.amount_cents,
            type="income",
            status=draft.status,
            date=draft.due_date,
            competence_date=sale.date,
            paid_at=sale.date if paid else None,
            category_id=sales_category_id,
            customer_id=sale.customer_id,
            sale_id=sale.id,
            financial_account_id=payment.financial_account_id,
            card_machine_id=machine.id if policy is not None else None,
            installment_number=draft.installment_number,
            installment_total=draft.installment_total,
            fee_rate=draft.fee_rate,
        )
        db.session.add(tx)
        booked.append(tx)
    return booked


def process_sale(tenant_id: int | None, user_id: int | None, data: dict) -> Outcome:
    """
    Process a checkout as one atomic unit.

    Returns ok(sale) with the sale payload, or a fatal Outcome with nothing
    written. A failed post-commit event supersession is attached as a warning.
    """
    if not tenant_id:
        return Outcome.unauthorized()

    try:
        req = SaleRequest.from_dict(data or {})
        if not req.items:
            raise SaleError("Sale must have at least one item")

        products, services = _load_catalog(tenant_id, req.items)
        _validate_stock(req.items, products)

        items_total = sum(_unit_price(i, products, services) * i.quantity for i in req.items)
        total = compute_total(items_total, req.shipping_cost_cents, req.freight_paid_by)
        payments = normalize_payments(req, total)

        _require_owned(Customer, tenant_id, req.customer_id, "Customer")
        carrier = _require_owned(Supplier, tenant_id, req.carrier_id, "Carrier")
        _require_owned(AgendaEvent, tenant_id, req.event_id, "Agenda event")
        # A method without a rate code carries no machine, whatever id was sent
        payments = [
            p if resolve_method_code(p.method, p.installments) else replace(p, card_machine_id=None)
            for p in payments
        ]
        machines = {}
        for payment in payments:
            if payment.card_machine_id is not None:
                machines[payment.card_machine_id] = _require_owned(
                    CardMachine, tenant_id, payment.card_machine_id, "Card machine"
                )
            _require_owned(FinancialAccount, tenant_id, payment.financial_account_id, "Financial account")

        sales_category = ensure_system_category(tenant_id, SALES)
        cogs_category = ensure_system_category(tenant_id, COGS)

        multi = len(payments) > 1
        sale = Sale(
            tenant_id=tenant_id,
            created_by_user_id=user_id,
            customer_id=req.customer_id,
            carrier_id=req.carrier_id,
            shipping_cost_cents=req.shipping_cost_cents or None,
            shipping_status=req.shipping_status,
            freight_paid_by=req.freight_paid_by,
            payment_method=MULTIPLE_METHODS if multi else payments[0].method,
            installments=None if multi else payments[0].installments,
            card_machine_id=None if multi else payments[0].card_machine_id,
            financial_account_id=req.financial_account_id,
            total_amount_cents=total,
            status="COMPLETED",
            date=req.date,
            event_id=req.event_id,
        )
        db.session.add(sale)
        db.session.flush()

        for item in req.items:
            unit_price = _unit_price(item, products, services)
            db.session.add(SaleItem(
                sale_id=sale.id,
                item_type=item.item_type,
                product_id=item.product_id,
                service_id=item.service_id,
                quantity=item.quantity,
                unit_price_cents=unit_price,
                total_price_cents=unit_price * item.quantity,
            ))

            product = products.get(item.product_id) if item.product_id is not None else None
            if product is None or not product.manage_stock:
                continue
            if (product.stock_quantity or 0) < item.quantity:
                raise SaleError(f"Insufficient stock for: {product.name}")
            product.stock_quantity = (product.stock_quantity or 0) - item.quantity

            if (product.average_cost_cents or 0) > 0:
                db.session.add(Transaction(
                    tenant_id=tenant_id,
                    created_by_user_id=user_id,
                    description=f"COGS - {product.name} (Sale #{sale.short_code})",
                    amount_cents=item.quantity * product.average_cost_cents,
                    type="expense",
                    status="paid",
                    date=sale.date,
                    competence_date=sale.date,
                    paid_at=sale.date,
                    category_id=cogs_category.id,
                    sale_id=sale.id,
                ))

        for payment in payments:
            _book_payment(tenant_id, user_id, sale, payment, machines, sales_category.id, multi)

        if carrier is not None and req.shipping_cost_cents > 0:
            freight_category = ensure_system_category(tenant_id, FREIGHT)
            freight_paid = req.shipping_status == "PAID"
            db.session.add(Transaction(
                tenant_id=tenant_id,
                created_by_user_id=user_id,
                description=f"Freight - Sale #{sale.short_code} ({carrier.name})",
                amount_cents=req.shipping_cost_cents,
                type="expense",
                status="paid" if freight_paid else "pending",
                date=sale.date,
                competence_date=sale.date,
                paid_at=sale.date if freight_paid else None,
                category_id=freight_category.id,
                supplier_id=carrier.id,
                sale_id=sale.id,
            ))

        db.session.commit()
    except SaleError as e:
        db.session.rollback()
        return Outcome.fail(str(e), details=e.details)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to process sale")
        return Outcome.internal("Failed to process sale")

    outcome = Outcome.ok(sale, sale=sale.to_dict(include_items=True))
    if req.event_id is not None:
        outcome = outcome.with_warning(_supersede_event_entries(tenant_id, sale, req.event_id))

    revalidate(PATH_SALES, PATH_TRANSACTIONS, PATH_RECEIVABLES, PATH_PRODUCTS, PATH_AGENDA, PATH_NOTIFICATIONS)
    return outcome


def _supersede_event_entries(tenant_id: int, sale: Sale, event_id: int) -> Outcome | None:
    """
    Collapse an agenda event into the sale that settled it.

    The sale's own transactions are the replacement of record: every entry
    still linked to the event is deleted, paid or not. A payment alert is
    only moved while it is still PENDING.
    """
    try:
        event = db.session.query(AgendaEvent).filter_by(id=event_id, tenant_id=tenant_id).first()
        if event is None:
            return record_recoverable("sale.supersede_event", message="event not found", event_id=event_id)

        now = utcnow()
        event.notification_status = STATUS_ACTED_PDV
        event.notification_acted_at = now
        event.payment_status = "PAID"
        event.attendance_status = "COMPLETED"

        (
            db.session.query(Transaction)
            .filter_by(tenant_id=tenant_id, event_id=event_id)
            .delete(synchronize_session=False)
        )

        mark_notification_acted(
            tenant_id,
            event_key(event_id),
            STATUS_ACTED_PDV,
            sale.total_amount_cents,
            commit=False,
        )
        mark_notification_acted(
            tenant_id,
            pay_alert_key(event_id),
            STATUS_ACTED_PDV,
            sale.total_amount_cents,
            only_if_pending=True,
            commit=False,
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return record_recoverable("sale.supersede_event", e, sale_id=sale.id, event_id=event_id)
    return None


def create_sale(data: dict) -> Outcome:
    """Process a checkout for the current request's tenant."""
    info = get_tenant_info()
    return process_sale(info.tenant_id, info.user_id, data)


# =============================================================================
# DELETE / READ
# =============================================================================

def delete_sale(tenant_id: int | None, sale_id: int) -> Outcome:
    """
    Hard reversal: restore stock for stock-managed product lines, delete
    every transaction tagged to the sale, then the sale and its items.
    """
    if not tenant_id:
        return Outcome.unauthorized()

    sale = db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id).first()
    if not sale:
        return Outcome.not_found("Sale not found")

    try:
        for item in sale.items:
            if item.product_id is None:
                continue
            product = db.session.query(Product).filter_by(id=item.product_id, tenant_id=tenant_id).first()
            if product is not None and product.manage_stock:
                product.stock_quantity = (product.stock_quantity or 0) + item.quantity

        removed = (
            db.session.query(Transaction)
            .filter_by(tenant_id=tenant_id, sale_id=sale.id)
            .delete(synchronize_session=False)
        )
        db.session.delete(sale)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete sale %s", sale_id)
        return Outcome.internal("Failed to delete sale")

    revalidate(PATH_SALES, PATH_TRANSACTIONS, PATH_RECEIVABLES, PATH_PRODUCTS)
    return Outcome.ok(removed, removed_transactions=removed)


def list_sales(tenant_id: int | None, limit: int = 100) -> list[dict]:
    if not tenant_id:
        return []
    sales = (
        db.session.query(Sale)
        .filter_by(tenant_id=tenant_id)
        .order_by(Sale.date.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )
    return [s.to_dict() for s in sales]


def get_sale(tenant_id: int | None, sale_id: int) -> dict | None:
    if not tenant_id:
        return None
    sale = db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id).first()
    if not sale:
        return None
    data = sale.to_dict(include_items=True)
    data["transactions"] = [
        tx.to_dict()
        for tx in db.session.query(Transaction)
        .filter_by(tenant_id=tenant_id, sale_id=sale.id)
        .order_by(Transaction.id.asc())
        .all()
    ]
    return data
