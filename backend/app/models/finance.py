from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


def _fraction(value) -> str | None:
    return None if value is None else str(value)


class Category(db.Model):
    """
    Chart-of-accounts category for ledger entries.

    System categories (is_system=True) carry a reserved code ("1.1", "2.1", ...)
    and are created lazily by the services that need them.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.Index("ix_categories_tenant_code", "tenant_id", "code"),
        db.Index("ix_categories_tenant_name_type", "tenant_id", "name", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False)  # income, expense
    code = db.Column(db.String(16), nullable=True)
    color = db.Column(db.String(16), nullable=True)
    is_system = db.Column(db.Boolean, nullable=False, default=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "type": self.type,
            "code": self.code,
            "color": self.color,
            "is_system": self.is_system,
            "parent_id": self.parent_id,
        }


class FinancialAccount(db.Model):
    """Bank/cash account that receives or pays ledger entries."""
    __tablename__ = "financial_accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "is_active": self.is_active,
        }


class CardMachine(db.Model):
    """
    Card machine fee schedule.

    SETTLEMENT MODES:
    - PARCELADO: each installment settles on its own maturity date
    - ANTECIPADO: the net of all installments is fronted as one lump entry

    settlement_delay_days is the acquirer's payout delay; installment i of a
    PARCELADO schedule matures at i * delay days.
    """
    __tablename__ = "card_machines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    settlement_delay_days = db.Column(db.Integer, nullable=False, default=30)
    settlement_mode = db.Column(db.String(16), nullable=False, default="PARCELADO")
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    rates = db.relationship(
        "CardMachineRate",
        backref="card_machine",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="CardMachineRate.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "settlement_delay_days": self.settlement_delay_days,
            "settlement_mode": self.settlement_mode,
            "is_active": self.is_active,
            "rates": [r.to_dict() for r in sorted(self.rates, key=lambda r: r.method_code)],
            "created_at": to_utc_z(self.created_at),
        }


class CardMachineRate(db.Model):
    """One (payment method code, fee fraction) row of a card machine."""
    __tablename__ = "card_machine_rates"
    __table_args__ = (
        db.UniqueConstraint("card_machine_id", "method_code", name="uq_card_machine_rates_machine_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    card_machine_id = db.Column(db.Integer, db.ForeignKey("card_machines.id"), nullable=False, index=True)
    method_code = db.Column(db.String(32), nullable=False)  # DEBITO, CREDITO_3X, PIX, ...
    fee_rate = db.Column(db.Numeric(8, 6), nullable=False, default=0)  # fraction, 0.0512 = 5.12%

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "card_machine_id": self.card_machine_id,
            "method_code": self.method_code,
            "fee_rate": _fraction(self.fee_rate),
        }


class Transaction(db.Model):
    """
    Ledger entry: the central financial fact.

    INVARIANTS:
    - status 'paid' always has paid_at set
    - fee_rate is the fee fraction snapshotted at creation (never recomputed)
    - at most one pending income entry is linked to an agenda event at a time

    Links are optional; an entry may originate from a sale, an agenda event,
    a purchase invoice, or manual bookkeeping.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_tenant_type_status", "tenant_id", "type", "status"),
        db.Index("ix_transactions_tenant_date", "tenant_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False)  # income, expense
    status = db.Column(db.String(16), nullable=False, default="pending")  # pending, paid

    date = db.Column(db.DateTime(timezone=True), nullable=False)
    competence_date = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    event_id = db.Column(db.Integer, db.ForeignKey("agenda_events.id"), nullable=True, index=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=True)
    purchase_invoice_id = db.Column(db.Integer, db.ForeignKey("purchase_invoices.id"), nullable=True, index=True)
    financial_account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=True)
    card_machine_id = db.Column(db.Integer, db.ForeignKey("card_machines.id"), nullable=True, index=True)

    installment_number = db.Column(db.Integer, nullable=True)
    installment_total = db.Column(db.Integer, nullable=True)
    fee_rate = db.Column(db.Numeric(8, 6), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    category = db.relationship("Category")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "created_by_user_id": self.created_by_user_id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "type": self.type,
            "status": self.status,
            "date": to_utc_z(self.date),
            "competence_date": to_utc_z(self.competence_date),
            "paid_at": to_utc_z(self.paid_at),
            "category_id": self.category_id,
            "customer_id": self.customer_id,
            "supplier_id": self.supplier_id,
            "sale_id": self.sale_id,
            "event_id": self.event_id,
            "quote_id": self.quote_id,
            "purchase_invoice_id": self.purchase_invoice_id,
            "financial_account_id": self.financial_account_id,
            "card_machine_id": self.card_machine_id,
            "installment_number": self.installment_number,
            "installment_total": self.installment_total,
            "fee_rate": _fraction(self.fee_rate),
            "created_at": to_utc_z(self.created_at),
        }
