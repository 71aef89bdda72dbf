from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class PurchaseInvoice(db.Model):
    """
    Inbound purchase invoice (stock entry document).

    Freight, other costs and taxes are allocated into each line's unit cost;
    total_cost_cents is the payable booked against the supplier.
    """
    __tablename__ = "purchase_invoices"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    invoice_number = db.Column(db.String(64), nullable=True)
    entry_date = db.Column(db.DateTime(timezone=True), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    freight_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    other_costs_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(8, 6), nullable=False, default=0)  # fraction, 0.15 = 15%
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_status = db.Column(db.String(16), nullable=False, default="PENDING")
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    entries = db.relationship(
        "StockEntry",
        backref="purchase_invoice",
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def label(self) -> str:
        if self.invoice_number:
            return f"NF {self.invoice_number}"
        return f"Entry #{self.id:06d}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "supplier_id": self.supplier_id,
            "invoice_number": self.invoice_number,
            "entry_date": to_utc_z(self.entry_date),
            "subtotal_cents": self.subtotal_cents,
            "freight_cost_cents": self.freight_cost_cents,
            "other_costs_cents": self.other_costs_cents,
            "tax_rate": str(self.tax_rate) if self.tax_rate is not None else None,
            "total_cost_cents": self.total_cost_cents,
            "payment_status": self.payment_status,
            "notes": self.notes,
            "entries": [e.to_dict() for e in self.entries],
            "created_at": to_utc_z(self.created_at),
        }


class StockEntry(db.Model):
    """Received quantity of a product at an allocated unit cost."""
    __tablename__ = "stock_entries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    purchase_invoice_id = db.Column(db.Integer, db.ForeignKey("purchase_invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    remaining_quantity = db.Column(db.Integer, nullable=False)
    raw_unit_cost_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_invoice_id": self.purchase_invoice_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "remaining_quantity": self.remaining_quantity,
            "raw_unit_cost_cents": self.raw_unit_cost_cents,
            "unit_cost_cents": self.unit_cost_cents,
        }
