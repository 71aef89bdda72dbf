# Overview: Idempotent sweep that self-heals PENDING notifications against ledger/agenda/stock state.

"""
Notification Reconciler

WHY: Users act on pending items through several paths (POS checkout, ledger
confirmation, product pricing) that do not all touch the inbox. Instead of
threading notification updates through every path, each read of the inbox
first re-derives PENDING rows from ground truth.

DESIGN:
- PENDING rows for the tenant are loaded once and partitioned by type
- One rule per notification type, behind a common interface:
  applies(notification) -> bool, resolve(tenant_id, notifications, now) -> updates
- The driver applies updates row by row. Each update is guarded on
  status == PENDING, so a terminal row is never reverted and a row already
  resolved by another path is left alone.
- A failed row is rolled back and recorded; the next sweep retries it.

IDEMPOTENCE: a second sweep over unchanged ground truth finds no PENDING row
that any rule resolves, so it applies nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from ..extensions import db
from ..models import AgendaEvent, Notification, Product, StockEntry, Transaction
from app.time_utils import utcnow
from .notification_service import (
    STATUS_ACTED_PDV,
    STATUS_CONFIRMED,
    STATUS_DISMISSED,
    STATUS_PENDING,
    TYPE_AGENDA_EVENT,
    TYPE_PAYMENT_ALERT,
    TYPE_PAYMENT_REVIEW,
    TYPE_PRICING_NEEDED,
    parse_event_key,
)
from .observability import record_recoverable
from .revalidation import revalidate, PATH_NOTIFICATIONS


@dataclass(frozen=True)
class NotificationUpdate:
    notification_id: int
    status: str
    action_amount_cents: int | None
    action_at: datetime


# =============================================================================
# RULES
# =============================================================================

class ReconciliationRule(ABC):
    """Base rule: one notification type, resolved against ground truth."""

    notification_type: str = ""

    def applies(self, notification: Notification) -> bool:
        return notification.type == self.notification_type

    @abstractmethod
    def resolve(
        self,
        tenant_id: int,
        notifications: list[Notification],
        now: datetime,
    ) -> list[NotificationUpdate]:
        """Updates for the PENDING rows of this rule's type that ground truth resolves."""


def _paid_income_by_event(tenant_id: int, event_ids: Iterable[int]) -> dict[int, Transaction]:
    """Latest paid income transaction per agenda event id."""
    ids = set(event_ids)
    if not ids:
        return {}
    rows = (
        db.session.query(Transaction)
        .filter(
            Transaction.tenant_id == tenant_id,
            Transaction.event_id.in_(ids),
            Transaction.type == "income",
            Transaction.status == "paid",
        )
        .order_by(Transaction.id.asc())
        .all()
    )
    return {tx.event_id: tx for tx in rows}


class AgendaEventPaidRule(ReconciliationRule):
    """AGENDA_EVENT -> CONFIRMED once a paid income entry exists for the event."""

    notification_type = TYPE_AGENDA_EVENT

    def resolve(self, tenant_id, notifications, now):
        keyed = [(n, parse_event_key(n.event_id)) for n in notifications]
        paid = _paid_income_by_event(tenant_id, (eid for _, eid in keyed if eid is not None))

        updates = []
        for notification, event_id in keyed:
            tx = paid.get(event_id)
            if tx is None:
                continue
            updates.append(NotificationUpdate(
                notification_id=notification.id,
                status=STATUS_CONFIRMED,
                action_amount_cents=tx.amount_cents,
                action_at=tx.paid_at or now,
            ))
        return updates


class PaymentAlertRule(ReconciliationRule):
    """
    PAYMENT_ALERT -> ACTED_PDV when the event is PAID and the paid amount is
    known from the ledger, else DISMISSED.
    """

    notification_type = TYPE_PAYMENT_ALERT

    def resolve(self, tenant_id, notifications, now):
        keyed = [(n, parse_event_key(n.event_id)) for n in notifications]
        event_ids = {eid for _, eid in keyed if eid is not None}
        if not event_ids:
            return []

        paid_events = {
            e.id
            for e in db.session.query(AgendaEvent.id)
            .filter(
                AgendaEvent.tenant_id == tenant_id,
                AgendaEvent.id.in_(event_ids),
                AgendaEvent.payment_status == "PAID",
            )
            .all()
        }
        paid = _paid_income_by_event(tenant_id, paid_events)

        updates = []
        for notification, event_id in keyed:
            if event_id not in paid_events:
                continue
            tx = paid.get(event_id)
            if tx is not None:
                updates.append(NotificationUpdate(
                    notification_id=notification.id,
                    status=STATUS_ACTED_PDV,
                    action_amount_cents=tx.amount_cents,
                    action_at=now,
                ))
            else:
                updates.append(NotificationUpdate(
                    notification_id=notification.id,
                    status=STATUS_DISMISSED,
                    action_amount_cents=None,
                    action_at=now,
                ))
        return updates


class PricingResolvedRule(ReconciliationRule):
    """
    PRICING_NEEDED -> CONFIRMED when every product received on the invoice
    has a positive price or is an internal-use product.
    """

    notification_type = TYPE_PRICING_NEEDED

    def resolve(self, tenant_id, notifications, now):
        updates = []
        for notification in notifications:
            if not notification.purchase_invoice_id:
                continue
            products = (
                db.session.query(Product)
                .join(StockEntry, StockEntry.product_id == Product.id)
                .filter(
                    StockEntry.tenant_id == tenant_id,
                    StockEntry.purchase_invoice_id == notification.purchase_invoice_id,
                )
                .all()
            )
            if not products:
                continue
            if all((p.price_cents or 0) > 0 or p.product_type == "INTERNO" for p in products):
                updates.append(NotificationUpdate(
                    notification_id=notification.id,
                    status=STATUS_CONFIRMED,
                    action_amount_cents=None,
                    action_at=now,
                ))
        return updates


class PaymentReviewRule(ReconciliationRule):
    """PAYMENT_REVIEW -> CONFIRMED once a paid expense references the invoice."""

    notification_type = TYPE_PAYMENT_REVIEW

    def resolve(self, tenant_id, notifications, now):
        invoice_ids = {n.purchase_invoice_id for n in notifications if n.purchase_invoice_id}
        if not invoice_ids:
            return []

        rows = (
            db.session.query(Transaction)
            .filter(
                Transaction.tenant_id == tenant_id,
                Transaction.purchase_invoice_id.in_(invoice_ids),
                Transaction.type == "expense",
                Transaction.status == "paid",
            )
            .order_by(Transaction.id.asc())
            .all()
        )
        paid = {tx.purchase_invoice_id: tx for tx in rows}

        updates = []
        for notification in notifications:
            tx = paid.get(notification.purchase_invoice_id)
            if tx is None:
                continue
            updates.append(NotificationUpdate(
                notification_id=notification.id,
                status=STATUS_CONFIRMED,
                action_amount_cents=tx.amount_cents,
                action_at=tx.paid_at or now,
            ))
        return updates


RULES: tuple[ReconciliationRule, ...] = (
    AgendaEventPaidRule(),
    PaymentAlertRule(),
    PricingResolvedRule(),
    PaymentReviewRule(),
)


# =============================================================================
# DRIVER
# =============================================================================

def _apply(tenant_id: int, update: NotificationUpdate) -> bool:
    """Guarded single-row update; only PENDING rows move."""
    changed = (
        db.session.query(Notification)
        .filter(
            Notification.id == update.notification_id,
            Notification.tenant_id == tenant_id,
            Notification.status == STATUS_PENDING,
        )
        .update(
            {
                Notification.status: update.status,
                Notification.action_amount_cents: update.action_amount_cents,
                Notification.action_at: update.action_at,
            },
            synchronize_session=False,
        )
    )
    db.session.commit()
    return changed > 0


def reconcile(
    tenant_id: int | None,
    rules: Iterable[ReconciliationRule] = RULES,
    now: datetime | None = None,
) -> int:
    """
    Sweep the tenant's PENDING notifications and move resolved ones forward.
    Returns the number of rows updated.
    """
    if not tenant_id:
        return 0

    now = now or utcnow()
    pending = (
        db.session.query(Notification)
        .filter_by(tenant_id=tenant_id, status=STATUS_PENDING)
        .all()
    )
    if not pending:
        return 0

    applied = 0
    for rule in rules:
        subset = [n for n in pending if rule.applies(n)]
        if not subset:
            continue
        try:
            updates = rule.resolve(tenant_id, subset, now)
        except Exception as e:
            db.session.rollback()
            record_recoverable(
                "reconcile.resolve",
                e,
                tenant_id=tenant_id,
                rule=type(rule).__name__,
            )
            continue

        for update in updates:
            try:
                if _apply(tenant_id, update):
                    applied += 1
            except Exception as e:
                db.session.rollback()
                record_recoverable(
                    "reconcile.apply",
                    e,
                    tenant_id=tenant_id,
                    notification_id=update.notification_id,
                )

    if applied:
        db.session.expire_all()
        revalidate(PATH_NOTIFICATIONS)
    return applied
