# Overview: Settlement scheduling; turns one payment into ledger-entry drafts.

"""
Settlement Scheduler

WHY: A checkout payment is a promise; the ledger needs dated entries net of
card fees. This module decides how many entries, for how much, due when,
and in which status. It has no I/O; the sale processor persists the drafts.

BRANCH TABLE (first match wins):
1. Cash, or check with a single installment
   -> one paid entry at the sale date, fee 0
2. More than one installment on an installable method (CREDITO, CARNE,
   BOLETO, CHEQUE)
   a. machine attached, ANTECIPADO -> one pending entry for the sum of the
      unrounded per-installment nets, due at sale date + delay, 1/1
   b. otherwise -> N pending entries, entry i due at sale date + i * delay
      (delay = 30 without a machine), each rounded on its own
3. Machine attached (code resolved) -> one pending entry net of fee,
   due at sale date + delay, 1/1
4. Fallback -> one paid entry at the sale date, fee 0

ROUNDING: half-up to whole cents, once per entry, when the entry's amount is
finalized. Fees are fractions in [0, 1].
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from app.time_utils import add_days
from .fee_service import (
    METHOD_BOLETO,
    METHOD_CARNE,
    METHOD_CASH,
    METHOD_CHECK,
    METHOD_CREDIT,
    MODE_ANTECIPADO,
    DEFAULT_SETTLEMENT_DELAY_DAYS,
    normalize_installments,
)


INSTALLABLE_METHODS = {METHOD_CREDIT, METHOD_CARNE, METHOD_BOLETO, METHOD_CHECK}

STATUS_PAID = "paid"
STATUS_PENDING = "pending"

_ONE = Decimal("1")


@dataclass(frozen=True)
class SettlementRequest:
    amount_cents: int
    method: str
    installments: int
    sale_date: datetime
    has_machine: bool = False
    fee_rate: Decimal = Decimal("0")
    settlement_delay_days: int = DEFAULT_SETTLEMENT_DELAY_DAYS
    settlement_mode: str | None = None


@dataclass(frozen=True)
class SettlementDraft:
    amount_cents: int
    status: str
    due_date: datetime
    installment_number: int | None
    installment_total: int | None
    fee_rate: Decimal | None


def round_cents(value: Decimal) -> int:
    """Round a Decimal amount of cents half-up to an int."""
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def _paid_now(req: SettlementRequest) -> list[SettlementDraft]:
    return [
        SettlementDraft(
            amount_cents=req.amount_cents,
            status=STATUS_PAID,
            due_date=req.sale_date,
            installment_number=None,
            installment_total=None,
            fee_rate=None,
        )
    ]


def schedule_settlement(req: SettlementRequest) -> list[SettlementDraft]:
    """Ordered ledger-entry drafts for one payment instrument."""
    method = (req.method or "").strip().upper()
    installments = normalize_installments(req.installments)
    gross = Decimal(req.amount_cents)

    if method == METHOD_CASH or (method == METHOD_CHECK and installments == 1):
        return _paid_now(req)

    if installments > 1 and method in INSTALLABLE_METHODS:
        fee = Decimal(req.fee_rate) if req.has_machine else Decimal("0")
        per_installment = gross / Decimal(installments) * (_ONE - fee)
        applied_fee = fee if req.has_machine else None

        if req.has_machine and req.settlement_mode == MODE_ANTECIPADO:
            total = sum((per_installment for _ in range(installments)), Decimal("0"))
            return [
                SettlementDraft(
                    amount_cents=round_cents(total),
                    status=STATUS_PENDING,
                    due_date=add_days(req.sale_date, req.settlement_delay_days),
                    installment_number=1,
                    installment_total=1,
                    fee_rate=applied_fee,
                )
            ]

        delay = req.settlement_delay_days if req.has_machine else DEFAULT_SETTLEMENT_DELAY_DAYS
        return [
            SettlementDraft(
                amount_cents=round_cents(per_installment),
                status=STATUS_PENDING,
                due_date=add_days(req.sale_date, delay * i),
                installment_number=i,
                installment_total=installments,
                fee_rate=applied_fee,
            )
            for i in range(1, installments + 1)
        ]

    if req.has_machine:
        fee = Decimal(req.fee_rate)
        return [
            SettlementDraft(
                amount_cents=round_cents(gross * (_ONE - fee)),
                status=STATUS_PENDING,
                due_date=add_days(req.sale_date, req.settlement_delay_days),
                installment_number=1,
                installment_total=1,
                fee_rate=fee,
            )
        ]

    return _paid_now(req)
