"""
Agenda Service - Appointment lifecycle, provisional receivables, reminders

WHY: An appointment is a promise of future revenue. While it is open, its
expected value is carried in the ledger as exactly one pending income entry
linked through event_id, and its due reminder is projected into the
notification inbox.

STATE AXES (independent):
- attendance_status: SCHEDULED -> CONFIRMED | COMPLETED | CANCELLED | NO_SHOW
  (direct; CONFIRMED -> COMPLETED | CANCELLED | NO_SHOW; terminal states only
  accept a repeat of themselves)
- payment_status: None -> PENDING -> PAID, never reversed

EXPECTED VALUE:
- linked quote total, verbatim, when a quote is linked (create: APPROVED
  quotes only; update: any status)
- else linked service price + linked product price
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import (
    AgendaEvent,
    Customer,
    FinancialAccount,
    Product,
    Quote,
    Sale,
    Service,
    Transaction,
)
from app.time_utils import coerce_datetime, utcnow
from .notification_service import (
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    create_payment_alert,
    event_key,
    mark_notification_acted,
    refresh_event_notification,
    upsert_event_notification,
)
from .observability import record_recoverable
from .outcome import Outcome, REASON_CONFLICT, REASON_NOT_FOUND, REASON_VALIDATION
from .revalidation import (
    revalidate,
    PATH_AGENDA,
    PATH_NOTIFICATIONS,
    PATH_RECEIVABLES,
    PATH_TRANSACTIONS,
)


class AgendaError(Exception):
    """Raised for agenda operation errors."""
    def __init__(self, message: str, details: dict | None = None, reason: str | None = None):
        super().__init__(message)
        self.details = details or {}
        self.reason = reason


# =============================================================================
# STATUSES / TRANSITIONS
# =============================================================================

ATTENDANCE_SCHEDULED = "SCHEDULED"
ATTENDANCE_CONFIRMED = "CONFIRMED"
ATTENDANCE_COMPLETED = "COMPLETED"
ATTENDANCE_CANCELLED = "CANCELLED"
ATTENDANCE_NO_SHOW = "NO_SHOW"

TERMINAL_ATTENDANCE = {ATTENDANCE_COMPLETED, ATTENDANCE_CANCELLED, ATTENDANCE_NO_SHOW}

ALLOWED_TRANSITIONS = {
    ATTENDANCE_SCHEDULED: {
        ATTENDANCE_SCHEDULED,
        ATTENDANCE_CONFIRMED,
        ATTENDANCE_COMPLETED,
        ATTENDANCE_CANCELLED,
        ATTENDANCE_NO_SHOW,
    },
    ATTENDANCE_CONFIRMED: {
        ATTENDANCE_CONFIRMED,
        ATTENDANCE_COMPLETED,
        ATTENDANCE_CANCELLED,
        ATTENDANCE_NO_SHOW,
    },
    ATTENDANCE_COMPLETED: {ATTENDANCE_COMPLETED},
    ATTENDANCE_CANCELLED: {ATTENDANCE_CANCELLED},
    ATTENDANCE_NO_SHOW: {ATTENDANCE_NO_SHOW},
}

PAYMENT_PENDING = "PENDING"
PAYMENT_PAID = "PAID"

DEFAULT_EVENT_TYPE = "SERVICE"
DEFAULT_DURATION = timedelta(hours=1)


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


# =============================================================================
# HELPERS
# =============================================================================

def _optional_int(value, field_name: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise AgendaError(f"{field_name} must be an integer")


def _owned(model, tenant_id: int, record_id: int | None, label: str):
    if record_id is None:
        return None
    record = db.session.query(model).filter_by(id=record_id, tenant_id=tenant_id).first()
    if record is None:
        raise AgendaError(f"{label} not found", reason=REASON_NOT_FOUND)
    return record


def _get_event(tenant_id: int, event_id: int) -> AgendaEvent | None:
    return db.session.query(AgendaEvent).filter_by(id=event_id, tenant_id=tenant_id).first()


def _parse_window(data: dict) -> tuple[datetime, datetime]:
    try:
        start = coerce_datetime(data.get("start_date"))
        end = coerce_datetime(data.get("end_date"))
    except ValueError:
        raise AgendaError("Invalid event dates")
    if start is None:
        raise AgendaError("start_date required")
    end = end or start + DEFAULT_DURATION
    if end < start:
        raise AgendaError("end_date cannot be before start_date")
    return start, end


def _apply_fields(tenant_id: int, event: AgendaEvent, data: dict) -> None:
    title = (data.get("title") or "").strip()
    if not title:
        raise AgendaError("title required")
    start, end = _parse_window(data)

    event.title = title
    event.type = (data.get("type") or DEFAULT_EVENT_TYPE).strip().upper()
    event.start_date = start
    event.end_date = end
    event.is_local = bool(data.get("is_local", True))
    event.location = data.get("location") or None
    event.customer_name = (data.get("customer_name") or "").strip() or None

    customer_id = _optional_int(data.get("customer_id"), "customer_id")
    product_id = _optional_int(data.get("product_id"), "product_id")
    service_id = _optional_int(data.get("service_id"), "service_id")
    quote_id = _optional_int(data.get("quote_id"), "quote_id")

    _owned(Customer, tenant_id, customer_id, "Customer")
    _owned(Product, tenant_id, product_id, "Product")
    _owned(Service, tenant_id, service_id, "Service")
    _owned(Quote, tenant_id, quote_id, "Quote")

    event.customer_id = customer_id
    event.product_id = product_id
    event.service_id = service_id
    event.quote_id = quote_id


def compute_expected_value(
    tenant_id: int,
    event: AgendaEvent,
    *,
    approved_quotes_only: bool,
) -> tuple[int, str]:
    """
    Expected value (cents) and ledger description for an event.

    A linked quote (approved-only when requested) wins with its total; else
    the linked service and product prices are summed.
    """
    if event.quote_id is not None:
        quote = db.session.query(Quote).filter_by(id=event.quote_id, tenant_id=tenant_id).first()
        if quote and (not approved_quotes_only or quote.status == "APPROVED"):
            if (quote.total_amount_cents or 0) > 0:
                return quote.total_amount_cents, f"Quoted appointment: {event.title} (#{quote.number or quote.id})"

    amount = 0
    description = f"Appointment: {event.title}"
    service = (
        db.session.query(Service).filter_by(id=event.service_id, tenant_id=tenant_id).first()
        if event.service_id is not None else None
    )
    product = (
        db.session.query(Product).filter_by(id=event.product_id, tenant_id=tenant_id).first()
        if event.product_id is not None else None
    )
    if service is not None:
        amount += service.price_cents or 0
        description = f"Scheduled service: {service.name}"
    if product is not None:
        amount += product.price_cents or 0
        description = f"{description} + {product.name}" if service is not None else f"Scheduled sale: {product.name}"
    return amount, description


def _event_transactions(tenant_id: int, event_id: int):
    return (
        db.session.query(Transaction)
        .filter_by(tenant_id=tenant_id, event_id=event_id, type="income")
        .order_by(Transaction.id.asc())
    )


def _pending_transaction(tenant_id: int, event_id: int) -> Transaction | None:
    return _event_transactions(tenant_id, event_id).filter(Transaction.status == "pending").first()


def _sync_linked_transaction(
    tenant_id: int,
    user_id: int | None,
    event: AgendaEvent,
    amount_cents: int,
    description: str,
) -> Transaction | None:
    """
    Keep exactly one pending income entry matching the event's expected value.

    Extras are deleted, a zero value deletes the entry, and nothing new is
    booked once the event has a paid entry. Does not commit.
    """
    entries = _event_transactions(tenant_id, event.id).all()
    pending = [tx for tx in entries if tx.status == "pending"]
    has_paid = any(tx.status == "paid" for tx in entries)

    if amount_cents <= 0:
        for tx in pending:
            db.session.delete(tx)
        return None

    keep = pending[0] if pending else None
    for tx in pending[1:]:
        db.session.delete(tx)

    if keep is None:
        if has_paid or event.payment_status == PAYMENT_PAID:
            return None
        keep = Transaction(
            tenant_id=tenant_id,
            created_by_user_id=user_id,
            type="income",
            status="pending",
            event_id=event.id,
        )
        db.session.add(keep)

    keep.description = description
    keep.amount_cents = amount_cents
    keep.date = event.start_date
    keep.competence_date = event.start_date
    keep.customer_id = event.customer_id
    keep.quote_id = event.quote_id

    if event.payment_status is None:
        event.payment_status = PAYMENT_PENDING
    return keep


def _resolve_customer(tenant_id: int, user_id: int | None, data: dict) -> int | None:
    """
    Find or create a customer from a free-text name (match by phone, then
    email, then name). Runs in its own unit of work; failures are recorded
    and the event is created without a customer link.
    """
    name = (data.get("customer_name") or "").strip()
    phone = (data.get("customer_phone") or "").strip() or None
    email = (data.get("customer_email") or "").strip() or None
    if not name:
        return None

    try:
        customer = None
        query = db.session.query(Customer).filter_by(tenant_id=tenant_id)
        if phone:
            customer = query.filter(Customer.phone == phone).first()
        if customer is None and email:
            customer = query.filter(Customer.email == email).first()
        if customer is None:
            customer = query.filter(Customer.name == name).first()

        if customer is not None:
            if not customer.email and email:
                customer.email = email
            if not customer.phone and phone:
                customer.phone = phone
        else:
            customer = Customer(
                tenant_id=tenant_id,
                created_by_user_id=user_id,
                name=name,
                email=email,
                phone=phone,
            )
            db.session.add(customer)
        db.session.commit()
        return customer.id
    except Exception as e:
        db.session.rollback()
        record_recoverable("agenda.resolve_customer", e, tenant_id=tenant_id, customer_name=name)
        return None


def _fail(e: AgendaError) -> Outcome:
    return Outcome.fail(str(e), reason=e.reason or REASON_VALIDATION, details=e.details)


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def create_agenda_event(tenant_id: int | None, user_id: int | None, data: dict) -> Outcome:
    """Create an event and its provisional receivable (approved quotes only)."""
    if not tenant_id:
        return Outcome.unauthorized()

    data = data or {}
    try:
        if data.get("customer_id") in (None, "") and data.get("customer_name"):
            customer_id = _resolve_customer(tenant_id, user_id, data)
            if customer_id is not None:
                data = {**data, "customer_id": customer_id}

        event = AgendaEvent(
            tenant_id=tenant_id,
            created_by_user_id=user_id,
            attendance_status=ATTENDANCE_SCHEDULED,
        )
        _apply_fields(tenant_id, event, data)
        db.session.add(event)
        db.session.flush()

        amount, description = compute_expected_value(tenant_id, event, approved_quotes_only=True)
        _sync_linked_transaction(tenant_id, user_id, event, amount, description)
        db.session.commit()
    except AgendaError as e:
        db.session.rollback()
        return _fail(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create agenda event")
        return Outcome.internal("Failed to create event")

    revalidate(PATH_AGENDA, PATH_TRANSACTIONS, PATH_RECEIVABLES)
    return Outcome.ok(event, event=event.to_dict())


def update_agenda_event(tenant_id: int | None, user_id: int | None, event_id: int, data: dict) -> Outcome:
    """Update an event; recompute its receivable (any quote status counts)."""
    if not tenant_id:
        return Outcome.unauthorized()

    event = _get_event(tenant_id, event_id)
    if event is None:
        return Outcome.not_found("Event not found")

    try:
        _apply_fields(tenant_id, event, data or {})
        amount, description = compute_expected_value(tenant_id, event, approved_quotes_only=False)
        tx = _sync_linked_transaction(tenant_id, user_id, event, amount, description)
        refresh_event_notification(tenant_id, event, tx.amount_cents if tx else None)
        db.session.commit()
    except AgendaError as e:
        db.session.rollback()
        return _fail(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update agenda event %s", event_id)
        return Outcome.internal("Failed to update event")

    revalidate(PATH_AGENDA, PATH_TRANSACTIONS, PATH_RECEIVABLES, PATH_NOTIFICATIONS)
    return Outcome.ok(event, event=event.to_dict())


# =============================================================================
# ATTENDANCE / CONFIRMATION
# =============================================================================

def update_attendance_status(tenant_id: int | None, event_id: int, status: str) -> Outcome:
    """
    Move attendance along the transition table.

    COMPLETED while payment is PENDING raises a payment alert (upsert, so
    completing again refreshes the same alert). CANCELLED marks the reminder
    cancelled if it is still pending.
    """
    if not tenant_id:
        return Outcome.unauthorized()

    target = (status or "").strip().upper()
    if target not in ALLOWED_TRANSITIONS:
        return Outcome.fail(f"Invalid attendance status: {status}")

    event = _get_event(tenant_id, event_id)
    if event is None:
        return Outcome.not_found("Event not found")

    if not can_transition(event.attendance_status, target):
        return Outcome.fail(
            f"Cannot change attendance from {event.attendance_status} to {target}",
            reason=REASON_CONFLICT,
        )

    event.attendance_status = target
    if target == ATTENDANCE_CANCELLED:
        event.notification_status = STATUS_CANCELLED
        event.notification_acted_at = utcnow()
        mark_notification_acted(
            tenant_id, event_key(event.id), STATUS_CANCELLED, only_if_pending=True, commit=False
        )
    db.session.commit()

    outcome = Outcome.ok(event, event=event.to_dict())
    if target == ATTENDANCE_COMPLETED and event.payment_status == PAYMENT_PENDING:
        tx = _pending_transaction(tenant_id, event.id)
        try:
            create_payment_alert(tenant_id, event, tx.amount_cents if tx else None)
        except Exception as e:
            db.session.rollback()
            outcome = outcome.with_warning(
                record_recoverable("agenda.payment_alert", e, tenant_id=tenant_id, event_id=event.id)
            )

    revalidate(PATH_AGENDA, PATH_NOTIFICATIONS)
    return outcome


def confirm_event_attendance(
    tenant_id: int | None,
    event_id: int,
    financial_account_id: int | None = None,
) -> Outcome:
    """
    Settle an event's pending receivable: the entry becomes paid, the event
    PAID and its reminder CONFIRMED.
    """
    if not tenant_id:
        return Outcome.unauthorized()

    event = _get_event(tenant_id, event_id)
    if event is None:
        return Outcome.not_found("Event not found")

    tx = _pending_transaction(tenant_id, event.id)
    if tx is None:
        return Outcome.fail("No pending transaction for this event")

    if financial_account_id is not None:
        account = (
            db.session.query(FinancialAccount)
            .filter_by(id=financial_account_id, tenant_id=tenant_id)
            .first()
        )
        if account is None:
            return Outcome.not_found("Financial account not found")
        tx.financial_account_id = account.id

    now = utcnow()
    tx.status = "paid"
    tx.paid_at = now

    event.payment_status = PAYMENT_PAID
    event.notification_status = STATUS_CONFIRMED
    event.notification_acted_at = now
    if event.attendance_status not in TERMINAL_ATTENDANCE:
        event.attendance_status = ATTENDANCE_COMPLETED

    mark_notification_acted(
        tenant_id, event_key(event.id), STATUS_CONFIRMED, tx.amount_cents, commit=False
    )
    db.session.commit()

    revalidate(PATH_AGENDA, PATH_TRANSACTIONS, PATH_RECEIVABLES, PATH_NOTIFICATIONS)
    return Outcome.ok(event, event=event.to_dict(), transaction=tx.to_dict())


# =============================================================================
# CANCEL / DELETE
# =============================================================================

def cancel_agenda_event(tenant_id: int | None, event_id: int) -> Outcome:
    """
    Cancel and delete an event.

    The CANCELLED history is written first in its own unit of work, so the
    inbox stays consistent even if the event row disappears before the
    delete. A row that vanished mid-flight counts as deleted.
    """
    if not tenant_id:
        return Outcome.unauthorized()

    event = _get_event(tenant_id, event_id)
    if event is None:
        return Outcome.not_found("Event not found")

    outcome = Outcome.ok()
    try:
        event.notification_status = STATUS_CANCELLED
        event.notification_acted_at = utcnow()
        mark_notification_acted(
            tenant_id, event_key(event_id), STATUS_CANCELLED, only_if_pending=True, commit=False
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        outcome = outcome.with_warning(
            record_recoverable("agenda.cancel_history", e, tenant_id=tenant_id, event_id=event_id)
        )

    try:
        (
            db.session.query(Transaction)
            .filter_by(tenant_id=tenant_id, event_id=event_id)
            .delete(synchronize_session=False)
        )
        (
            db.session.query(Sale)
            .filter_by(tenant_id=tenant_id, event_id=event_id)
            .update({Sale.event_id: None}, synchronize_session=False)
        )
        (
            db.session.query(AgendaEvent)
            .filter_by(id=event_id, tenant_id=tenant_id)
            .delete(synchronize_session=False)
        )
        db.session.commit()
        db.session.expire_all()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete agenda event %s", event_id)
        return Outcome.internal("Failed to delete event")

    revalidate(PATH_AGENDA, PATH_TRANSACTIONS, PATH_RECEIVABLES, PATH_NOTIFICATIONS)
    return outcome


# =============================================================================
# READ / DIGEST
# =============================================================================

def list_agenda_events(
    tenant_id: int | None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[dict]:
    if not tenant_id:
        return []
    query = db.session.query(AgendaEvent).filter_by(tenant_id=tenant_id)
    if start is not None:
        query = query.filter(AgendaEvent.start_date >= start)
    if end is not None:
        query = query.filter(AgendaEvent.start_date <= end)
    return [e.to_dict() for e in query.order_by(AgendaEvent.start_date.asc()).all()]


def get_agenda_event(tenant_id: int | None, event_id: int) -> dict | None:
    if not tenant_id:
        return None
    event = _get_event(tenant_id, event_id)
    if event is None:
        return None
    data = event.to_dict()
    data["customer"] = event.customer.to_dict() if event.customer else None
    data["service"] = event.service.to_dict() if event.service else None
    data["product"] = event.product.to_dict() if event.product else None
    data["quote"] = event.quote.to_dict() if event.quote else None
    data["transactions"] = [tx.to_dict() for tx in _event_transactions(tenant_id, event.id).all()]
    return data


def list_due_events(tenant_id: int | None, now: datetime | None = None) -> list[dict]:
    """
    Due-event digest: every started, still-open event that nobody acted on
    is projected into an AGENDA_EVENT notification.
    """
    if not tenant_id:
        return []

    now = now or utcnow()
    events = (
        db.session.query(AgendaEvent)
        .filter(
            AgendaEvent.tenant_id == tenant_id,
            AgendaEvent.start_date <= now,
            AgendaEvent.attendance_status.in_([ATTENDANCE_SCHEDULED, ATTENDANCE_CONFIRMED]),
        )
        .order_by(AgendaEvent.start_date.asc())
        .all()
    )

    due = []
    for event in events:
        if event.notification_status is not None:
            continue
        tx = _pending_transaction(tenant_id, event.id)
        expected = tx.amount_cents if tx else None
        try:
            notification = upsert_event_notification(tenant_id, event, expected)
        except Exception as e:
            db.session.rollback()
            record_recoverable("agenda.due_notification", e, tenant_id=tenant_id, event_id=event.id)
            continue
        data = event.to_dict()
        data["expected_amount_cents"] = expected
        data["notification"] = notification.to_dict() if notification else None
        due.append(data)
    return due
