from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z

class Sale(db.Model):
    """
    Completed checkout.

    WHY: The sale is the anchor of everything a checkout books: line items,
    stock decrements, COGS entries, receivables and freight. Deleting it is a
    hard reversal of all of those, not a reversing entry.

    The top-level payment_method/installments fields are the legacy
    single-method shape, kept for backward compatibility; multi-payment
    checkouts are recorded only through their transactions.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_tenant_date", "tenant_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    carrier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    # Freight (all amounts in cents)
    shipping_cost_cents = db.Column(db.Integer, nullable=True)
    shipping_status = db.Column(db.String(16), nullable=True)  # PAID, PENDING
    freight_paid_by = db.Column(db.String(16), nullable=False, default="CLIENTE")  # CLIENTE, EMPRESA

    # Legacy single-method payment fields
    payment_method = db.Column(db.String(16), nullable=True)
    installments = db.Column(db.Integer, nullable=True)
    card_machine_id = db.Column(db.Integer, db.ForeignKey("card_machines.id"), nullable=True)
    financial_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="COMPLETED")
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    # Agenda event this checkout settled, if any
    event_id = db.Column(db.Integer, db.ForeignKey("agenda_events.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    @property
    def short_code(self) -> str:
        return f"{self.id:06d}"[-6:]

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "code": self.short_code,
            "tenant_id": self.tenant_id,
            "created_by_user_id": self.created_by_user_id,
            "customer_id": self.customer_id,
            "carrier_id": self.carrier_id,
            "shipping_cost_cents": self.shipping_cost_cents,
            "shipping_status": self.shipping_status,
            "freight_paid_by": self.freight_paid_by,
            "payment_method": self.payment_method,
            "installments": self.installments,
            "card_machine_id": self.card_machine_id,
            "financial_account_id": self.financial_account_id,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "date": to_utc_z(self.date),
            "event_id": self.event_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data

class SaleItem(db.Model):
    """Line item on a sale: a product OR a service, never both."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint(
            "(product_id IS NULL) <> (service_id IS NULL)",
            name="ck_sale_items_product_xor_service",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_type = db.Column(db.String(16), nullable=False)  # product, service
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")
    service = db.relationship("Service")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_type": self.item_type,
            "product_id": self.product_id,
            "service_id": self.service_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }
