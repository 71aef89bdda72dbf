from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Notification(db.Model):
    """
    Pending-action inbox row, derived from ledger/agenda/stock state.

    TYPES:
    - AGENDA_EVENT: due reminder for an agenda event (event_id = "<id>")
    - PAYMENT_ALERT: event completed without payment (event_id = "pay_alert_<id>")
    - PRICING_NEEDED: products received on a purchase invoice lack a price
    - PAYMENT_REVIEW: purchase invoice payable awaiting payment

    LIFECYCLE: PENDING -> CONFIRMED | CANCELLED | ACTED_PDV | DISMISSED.
    Terminal rows are never moved back to PENDING.

    UNIQUENESS: one row per (tenant_id, event_id). Rows without event_id
    (invoice-keyed types) are not constrained.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "event_id", name="uq_notifications_tenant_event"),
        db.Index("ix_notifications_tenant_status", "tenant_id", "status"),
        db.Index("ix_notifications_tenant_due", "tenant_id", "due_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    target_role = db.Column(db.String(32), nullable=True)  # COMERCIAL, FINANCEIRO
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    event_id = db.Column(db.String(64), nullable=True)
    purchase_invoice_id = db.Column(db.Integer, db.ForeignKey("purchase_invoices.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)

    expected_amount_cents = db.Column(db.Integer, nullable=True)
    action_amount_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING")
    due_at = db.Column(db.DateTime(timezone=True), nullable=False)
    action_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "type": self.type,
            "target_role": self.target_role,
            "title": self.title,
            "description": self.description,
            "event_id": self.event_id,
            "purchase_invoice_id": self.purchase_invoice_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "expected_amount_cents": self.expected_amount_cents,
            "action_amount_cents": self.action_amount_cents,
            "status": self.status,
            "due_at": to_utc_z(self.due_at),
            "action_at": to_utc_z(self.action_at),
            "created_at": to_utc_z(self.created_at),
        }
