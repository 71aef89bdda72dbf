from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class AgendaEvent(db.Model):
    """
    Scheduled appointment.

    STATUS AXES (independent):
    - attendance_status: SCHEDULED -> CONFIRMED | COMPLETED | CANCELLED | NO_SHOW
    - payment_status: None -> PENDING -> PAID (never reversed)
    - notification_status / notification_acted_at: source of truth for whether
      the user acted on the due reminder (CONFIRMED, CANCELLED, ACTED_PDV)

    At most one pending income Transaction is linked through event_id.
    """
    __tablename__ = "agenda_events"
    __table_args__ = (
        db.Index("ix_agenda_events_tenant_start", "tenant_id", "start_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    title = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(32), nullable=False, default="SERVICE")
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    is_local = db.Column(db.Boolean, nullable=False, default=True)
    location = db.Column(db.String(255), nullable=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=True)

    attendance_status = db.Column(db.String(16), nullable=False, default="SCHEDULED", index=True)
    payment_status = db.Column(db.String(16), nullable=True)  # None, PENDING, PAID
    notification_status = db.Column(db.String(16), nullable=True)
    notification_acted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer")
    product = db.relationship("Product")
    service = db.relationship("Service")
    quote = db.relationship("Quote")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "title": self.title,
            "type": self.type,
            "start": to_utc_z(self.start_date),
            "end": to_utc_z(self.end_date),
            "is_local": self.is_local,
            "location": self.location,
            "customer_name": self.customer_name or (self.customer.name if self.customer else None),
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "service_id": self.service_id,
            "quote_id": self.quote_id,
            "attendance_status": self.attendance_status,
            "payment_status": self.payment_status,
            "notification_status": self.notification_status,
            "notification_acted_at": to_utc_z(self.notification_acted_at),
        }
