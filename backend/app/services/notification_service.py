# Overview: Service-layer operations for the notification inbox.

"""
Notification Inbox

WHY: Notifications are a derived "pending action" projection of agenda,
ledger and stock state. They are upserted when a pending condition is
first detected and moved to a terminal status when the user (or the
reconciler) acts on them.

INVARIANTS:
- One row per (tenant_id, event_id), including synthetic pay_alert_<id> keys
- Upserts refresh metadata only; they never touch status
- Terminal statuses are never moved back to PENDING
- Read paths reconcile before returning data
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import AgendaEvent, Notification
from app.time_utils import day_bounds, utcnow
from .outcome import Outcome, REASON_CONFLICT
from .revalidation import revalidate, PATH_NOTIFICATIONS


class NotificationError(Exception):
    """Raised for notification operation errors."""
    pass


# =============================================================================
# TYPES / STATUSES (CONSTANTS)
# =============================================================================

TYPE_AGENDA_EVENT = "AGENDA_EVENT"
TYPE_PAYMENT_ALERT = "PAYMENT_ALERT"
TYPE_PRICING_NEEDED = "PRICING_NEEDED"
TYPE_PAYMENT_REVIEW = "PAYMENT_REVIEW"

STATUS_PENDING = "PENDING"
STATUS_CONFIRMED = "CONFIRMED"
STATUS_CANCELLED = "CANCELLED"
STATUS_ACTED_PDV = "ACTED_PDV"
STATUS_DISMISSED = "DISMISSED"

TERMINAL_STATUSES = {STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_ACTED_PDV, STATUS_DISMISSED}
VALID_STATUSES = TERMINAL_STATUSES | {STATUS_PENDING}

PAY_ALERT_PREFIX = "pay_alert_"


def pay_alert_key(event_id: int) -> str:
    return f"{PAY_ALERT_PREFIX}{event_id}"


def event_key(event_id: int) -> str:
    return str(event_id)


def parse_event_key(key: str | None) -> int | None:
    """Real agenda event id behind a notification key (plain or synthetic)."""
    if not key:
        return None
    if key.startswith(PAY_ALERT_PREFIX):
        key = key[len(PAY_ALERT_PREFIX):]
    return int(key) if key.isdigit() else None


# =============================================================================
# UPSERTS
# =============================================================================

def _upsert(tenant_id: int, key: str, create_fields: dict, update_fields: dict) -> Notification:
    """
    Insert-or-update by (tenant_id, event_id). Commits its own unit of work.

    A concurrent insert of the same key surfaces as IntegrityError; the
    insert is then retried as an update of the winning row.
    """
    notification = (
        db.session.query(Notification)
        .filter_by(tenant_id=tenant_id, event_id=key)
        .first()
    )
    if notification is None:
        notification = Notification(
            tenant_id=tenant_id,
            event_id=key,
            status=STATUS_PENDING,
            **create_fields,
        )
        db.session.add(notification)
        try:
            db.session.commit()
            return notification
        except IntegrityError:
            db.session.rollback()
            notification = (
                db.session.query(Notification)
                .filter_by(tenant_id=tenant_id, event_id=key)
                .one()
            )

    for field_name, value in update_fields.items():
        setattr(notification, field_name, value)
    db.session.commit()
    return notification


def _event_description(event: AgendaEvent) -> str:
    name = event.customer_name or (event.customer.name if event.customer else None)
    if name:
        return f"Appointment with {name}"
    return "Appointment without a linked customer"


def upsert_event_notification(
    tenant_id: int | None,
    event: AgendaEvent,
    expected_amount_cents: int | None = None,
) -> Notification | None:
    """Project a due agenda event into an AGENDA_EVENT notification."""
    if not tenant_id:
        return None

    customer_name = event.customer_name or (event.customer.name if event.customer else None)
    notification = _upsert(
        tenant_id,
        event_key(event.id),
        create_fields={
            "type": TYPE_AGENDA_EVENT,
            "title": event.title,
            "description": _event_description(event),
            "customer_id": event.customer_id,
            "customer_name": customer_name,
            "expected_amount_cents": expected_amount_cents,
            "due_at": event.start_date,
        },
        update_fields={
            "title": event.title,
            "customer_name": customer_name,
            "expected_amount_cents": expected_amount_cents,
            "due_at": event.start_date,
        },
    )
    revalidate(PATH_NOTIFICATIONS)
    return notification


def refresh_event_notification(
    tenant_id: int,
    event: AgendaEvent,
    expected_amount_cents: int | None,
) -> bool:
    """
    Refresh metadata of an existing AGENDA_EVENT row without creating one.
    Joins the caller's unit of work (no commit).
    """
    notification = (
        db.session.query(Notification)
        .filter_by(tenant_id=tenant_id, event_id=event_key(event.id))
        .first()
    )
    if notification is None:
        return False
    notification.title = event.title
    notification.customer_name = event.customer_name or (event.customer.name if event.customer else None)
    notification.expected_amount_cents = expected_amount_cents
    notification.due_at = event.start_date
    return True


def _alert_description(event: AgendaEvent) -> str:
    name = event.customer_name or (event.customer.name if event.customer else None)
    if name:
        return f"Service completed with {name} but no payment recorded. Bill it at the POS."
    return "Service completed without a recorded payment. Bill it at the POS."


def create_payment_alert(
    tenant_id: int | None,
    event: AgendaEvent,
    expected_amount_cents: int | None = None,
) -> Notification | None:
    """
    Raise a PAYMENT_ALERT for an event completed while payment is pending.

    Keyed by pay_alert_<event id>: completing the event again refreshes the
    existing row instead of creating a second one, and never resets a
    dismissed or resolved alert.
    """
    if not tenant_id:
        return None

    notification = _upsert(
        tenant_id,
        pay_alert_key(event.id),
        create_fields={
            "type": TYPE_PAYMENT_ALERT,
            "title": event.title,
            "description": _alert_description(event),
            "customer_id": event.customer_id,
            "customer_name": event.customer_name or (event.customer.name if event.customer else None),
            "expected_amount_cents": expected_amount_cents,
            "due_at": utcnow(),
        },
        update_fields={
            "description": _alert_description(event),
            "expected_amount_cents": expected_amount_cents,
        },
    )
    revalidate(PATH_NOTIFICATIONS)
    return notification


def create_invoice_notification(
    tenant_id: int,
    *,
    notification_type: str,
    purchase_invoice_id: int,
    title: str,
    description: str,
    target_role: str | None = None,
    expected_amount_cents: int | None = None,
) -> Notification:
    """Invoice-keyed notifications (PRICING_NEEDED, PAYMENT_REVIEW); no event key."""
    notification = Notification(
        tenant_id=tenant_id,
        type=notification_type,
        target_role=target_role,
        title=title,
        description=description,
        purchase_invoice_id=purchase_invoice_id,
        expected_amount_cents=expected_amount_cents,
        status=STATUS_PENDING,
        due_at=utcnow(),
    )
    db.session.add(notification)
    db.session.commit()
    revalidate(PATH_NOTIFICATIONS)
    return notification


# =============================================================================
# ACTIONS
# =============================================================================

def mark_notification_acted(
    tenant_id: int,
    key: str,
    status: str,
    action_amount_cents: int | None = None,
    *,
    only_if_pending: bool = False,
    commit: bool = True,
) -> bool:
    """
    Record the user's action on the notification keyed by `key`.

    A missing row is not an error: the reconciler picks it up later.
    With only_if_pending, a row that already left PENDING is left untouched.
    Returns whether a row was updated.
    """
    if status not in TERMINAL_STATUSES:
        raise NotificationError(f"Invalid notification status: {status}")

    notification = (
        db.session.query(Notification)
        .filter_by(tenant_id=tenant_id, event_id=key)
        .first()
    )
    if notification is None:
        return False
    if only_if_pending and notification.status != STATUS_PENDING:
        return False

    notification.status = status
    notification.action_amount_cents = action_amount_cents
    notification.action_at = utcnow()
    if commit:
        db.session.commit()
        revalidate(PATH_NOTIFICATIONS)
    return True


def dismiss_notification(tenant_id: int | None, notification_id: int) -> Outcome:
    """Dismiss a still-pending notification (explicit user action)."""
    if not tenant_id:
        return Outcome.unauthorized()

    notification = (
        db.session.query(Notification)
        .filter_by(id=notification_id, tenant_id=tenant_id)
        .first()
    )
    if not notification:
        return Outcome.not_found("Notification not found")
    if notification.status != STATUS_PENDING:
        return Outcome.fail(
            f"Notification already {notification.status}",
            reason=REASON_CONFLICT,
        )

    notification.status = STATUS_DISMISSED
    notification.action_at = utcnow()
    db.session.commit()
    revalidate(PATH_NOTIFICATIONS)
    return Outcome.ok(notification, notification=notification.to_dict())


def delete_notification(tenant_id: int | None, notification_id: int) -> Outcome:
    if not tenant_id:
        return Outcome.unauthorized()

    notification = (
        db.session.query(Notification)
        .filter_by(id=notification_id, tenant_id=tenant_id)
        .first()
    )
    if not notification:
        return Outcome.not_found("Notification not found")

    db.session.delete(notification)
    db.session.commit()
    revalidate(PATH_NOTIFICATIONS)
    return Outcome.ok()


# =============================================================================
# READ PATHS (reconcile first)
# =============================================================================

def _reconcile_on_read(tenant_id: int) -> None:
    if has_app_context() and not current_app.config.get("RECONCILE_ON_READ", True):
        return
    from .reconciliation_service import reconcile
    reconcile(tenant_id)


def list_notifications(
    tenant_id: int | None,
    status: str | None = None,
    day: date | datetime | None = None,
) -> list[dict]:
    """Inbox listing, newest due first. status None or "ALL" lists every status."""
    if not tenant_id:
        return []

    _reconcile_on_read(tenant_id)

    query = db.session.query(Notification).filter_by(tenant_id=tenant_id)
    if status and status != "ALL":
        query = query.filter(Notification.status == status)
    if day is not None:
        start, end = day_bounds(day)
        query = query.filter(Notification.due_at >= start, Notification.due_at <= end)

    return [n.to_dict() for n in query.order_by(Notification.due_at.desc()).all()]


def get_payment_alerts(tenant_id: int | None) -> list[dict]:
    """Pending PAYMENT_ALERTs, enriched with the real event's service/product ids."""
    if not tenant_id:
        return []

    _reconcile_on_read(tenant_id)

    alerts = (
        db.session.query(Notification)
        .filter_by(tenant_id=tenant_id, type=TYPE_PAYMENT_ALERT, status=STATUS_PENDING)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )
    if not alerts:
        return []

    real_ids = {parse_event_key(a.event_id) for a in alerts} - {None}
    events = {}
    if real_ids:
        events = {
            e.id: e
            for e in db.session.query(AgendaEvent)
            .filter(AgendaEvent.tenant_id == tenant_id, AgendaEvent.id.in_(real_ids))
            .all()
        }

    result = []
    for alert in alerts:
        real_id = parse_event_key(alert.event_id)
        event = events.get(real_id)
        data = alert.to_dict()
        data["real_event_id"] = real_id
        data["service_id"] = event.service_id if event else None
        data["product_id"] = event.product_id if event else None
        result.append(data)
    return result


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def get_daily_summary(tenant_id: int | None, day: date | datetime | None = None) -> dict | None:
    """
    Per-day digest of the inbox: counts per status, action rate, expected
    vs billed totals and short highlights. None when nothing was due.
    """
    if not tenant_id:
        return None

    _reconcile_on_read(tenant_id)

    target = day or utcnow()
    start, end = day_bounds(target)
    notifications = (
        db.session.query(Notification)
        .filter(
            Notification.tenant_id == tenant_id,
            Notification.due_at >= start,
            Notification.due_at <= end,
        )
        .all()
    )
    if not notifications:
        return None

    by_status: dict[str, list[Notification]] = {s: [] for s in VALID_STATUSES}
    for n in notifications:
        by_status.setdefault(n.status, []).append(n)

    total = len(notifications)
    pending = by_status[STATUS_PENDING]
    confirmed = by_status[STATUS_CONFIRMED]
    acted_pdv = by_status[STATUS_ACTED_PDV]
    cancelled = by_status[STATUS_CANCELLED]
    dismissed = by_status[STATUS_DISMISSED]

    acted = len(confirmed) + len(acted_pdv)
    total_expected = sum(n.expected_amount_cents or 0 for n in notifications)
    total_billed = sum(
        n.action_amount_cents or n.expected_amount_cents or 0
        for n in confirmed + acted_pdv
    )
    action_rate = round(acted / total * 100)

    highlights = []
    if not pending:
        highlights.append("Every appointment due today was acted on")
    else:
        highlights.append(f"{_plural(len(pending), 'appointment')} still awaiting action")
    if cancelled:
        rate = round(len(cancelled) / total * 100)
        highlights.append(f"{_plural(len(cancelled), 'cancellation')} ({rate}% of total)")
    if acted_pdv:
        highlights.append(f"{_plural(len(acted_pdv), 'sale')} closed at the POS")
    if confirmed:
        highlights.append(f"{_plural(len(confirmed), 'appointment')} confirmed and billed")
    if total_billed > 0 and total_expected > 0:
        highlights.append(f"Billing conversion: {round(total_billed / total_expected * 100)}%")
    if dismissed:
        highlights.append(f"{_plural(len(dismissed), 'notification')} dismissed without action")

    return {
        "date": start.date().isoformat(),
        "total": total,
        "pending": len(pending),
        "acted": acted,
        "confirmed": len(confirmed),
        "acted_pdv": len(acted_pdv),
        "cancelled": len(cancelled),
        "dismissed": len(dismissed),
        "action_rate": action_rate,
        "total_expected_cents": total_expected,
        "total_billed_cents": total_billed,
        "highlights": highlights,
        "notifications": [n.to_dict() for n in notifications],
    }
