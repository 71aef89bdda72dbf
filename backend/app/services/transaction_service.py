# Overview: Service-layer operations for manual ledger entries, receivables and payables.

from __future__ import annotations

from ..extensions import db
from ..models import Category, Customer, FinancialAccount, Supplier, Transaction
from app.time_utils import coerce_datetime, utcnow
from .outcome import Outcome, REASON_CONFLICT, REASON_NOT_FOUND, REASON_VALIDATION
from .revalidation import revalidate, PATH_PAYABLES, PATH_RECEIVABLES, PATH_TRANSACTIONS


class TransactionError(Exception):
    """Raised for ledger operation errors."""
    def __init__(self, message: str, details: dict | None = None, reason: str | None = None):
        super().__init__(message)
        self.details = details or {}
        self.reason = reason


VALID_TYPES = {"income", "expense"}
VALID_STATUSES = {"pending", "paid"}

_LEDGER_PATHS = (PATH_TRANSACTIONS, PATH_RECEIVABLES, PATH_PAYABLES)


def _owned_id(model, tenant_id: int, value, label: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        record_id = int(value)
    except (TypeError, ValueError):
        raise TransactionError(f"{label} id must be an integer")
    if not db.session.query(model).filter_by(id=record_id, tenant_id=tenant_id).first():
        raise TransactionError(f"{label} not found", reason=REASON_NOT_FOUND)
    return record_id


def create_transaction(tenant_id: int | None, user_id: int | None, data: dict) -> Outcome:
    """
    Book a manual ledger entry.

    Paid entries always carry paid_at (given or now).
    """
    if not tenant_id:
        return Outcome.unauthorized()

    data = data or {}
    try:
        description = (data.get("description") or "").strip()
        if not description:
            raise TransactionError("description required")

        tx_type = (data.get("type") or "").strip().lower()
        if tx_type not in VALID_TYPES:
            raise TransactionError(f"Invalid type: {tx_type or '(empty)'}. Must be income or expense")

        status = (data.get("status") or "pending").strip().lower()
        if status not in VALID_STATUSES:
            raise TransactionError(f"Invalid status: {status}. Must be pending or paid")

        try:
            amount = int(data.get("amount_cents"))
        except (TypeError, ValueError):
            raise TransactionError("amount_cents must be an integer")
        if amount <= 0:
            raise TransactionError("amount_cents must be positive")

        try:
            date = coerce_datetime(data.get("date"), default=utcnow())
            competence = coerce_datetime(data.get("competence_date"), default=date)
            paid_at = coerce_datetime(data.get("paid_at"))
        except ValueError:
            raise TransactionError("Invalid date")

        tx = Transaction(
            tenant_id=tenant_id,
            created_by_user_id=user_id,
            description=description,
            amount_cents=amount,
            type=tx_type,
            status=status,
            date=date,
            competence_date=competence,
            paid_at=(paid_at or utcnow()) if status == "paid" else None,
            category_id=_owned_id(Category, tenant_id, data.get("category_id"), "Category"),
            customer_id=_owned_id(Customer, tenant_id, data.get("customer_id"), "Customer"),
            supplier_id=_owned_id(Supplier, tenant_id, data.get("supplier_id"), "Supplier"),
            financial_account_id=_owned_id(
                FinancialAccount, tenant_id, data.get("financial_account_id"), "Financial account"
            ),
        )
        db.session.add(tx)
        db.session.commit()
    except TransactionError as e:
        db.session.rollback()
        return Outcome.fail(str(e), reason=e.reason or REASON_VALIDATION, details=e.details)

    revalidate(*_LEDGER_PATHS)
    return Outcome.ok(tx, transaction=tx.to_dict())


def confirm_payment(
    tenant_id: int | None,
    transaction_id: int,
    financial_account_id: int | None = None,
) -> Outcome:
    """Settle a pending entry (pending -> paid, stamps paid_at)."""
    if not tenant_id:
        return Outcome.unauthorized()

    tx = db.session.query(Transaction).filter_by(id=transaction_id, tenant_id=tenant_id).first()
    if not tx:
        return Outcome.not_found("Transaction not found")
    if tx.status == "paid":
        return Outcome.fail("Transaction already paid", reason=REASON_CONFLICT)

    try:
        account_id = _owned_id(FinancialAccount, tenant_id, financial_account_id, "Financial account")
    except TransactionError as e:
        return Outcome.fail(str(e), reason=e.reason or REASON_VALIDATION)

    tx.status = "paid"
    tx.paid_at = utcnow()
    if account_id is not None:
        tx.financial_account_id = account_id
    db.session.commit()

    revalidate(*_LEDGER_PATHS)
    return Outcome.ok(tx, transaction=tx.to_dict())


def delete_transaction(tenant_id: int | None, transaction_id: int) -> Outcome:
    if not tenant_id:
        return Outcome.unauthorized()

    tx = db.session.query(Transaction).filter_by(id=transaction_id, tenant_id=tenant_id).first()
    if not tx:
        return Outcome.not_found("Transaction not found")

    db.session.delete(tx)
    db.session.commit()
    revalidate(*_LEDGER_PATHS)
    return Outcome.ok()


def _pending(tenant_id: int, tx_type: str) -> list[dict]:
    rows = (
        db.session.query(Transaction)
        .filter_by(tenant_id=tenant_id, type=tx_type, status="pending")
        .order_by(Transaction.date.asc(), Transaction.id.asc())
        .all()
    )
    return [tx.to_dict() for tx in rows]


def list_receivables(tenant_id: int | None) -> list[dict]:
    """Pending income, earliest due first."""
    if not tenant_id:
        return []
    return _pending(tenant_id, "income")


def list_payables(tenant_id: int | None) -> list[dict]:
    """Pending expenses, earliest due first."""
    if not tenant_id:
        return []
    return _pending(tenant_id, "expense")
