# Overview: Fee resolution for card-machine payments (pure, no I/O).

"""
Fee Resolver

Maps a payment method + installment count to a card-machine rate code and
looks the fee fraction up on a machine's rate table.

PRECEDENCE RULE (rate lookup):
- Rate rows are scanned in ascending row id (creation order).
- The first row whose method_code equals the resolved code wins.
- One row per code is the expected state (enforced by a unique constraint);
  if duplicates ever exist the earliest row is used. This is deliberate and
  must not be "fixed" by picking the lowest or highest fee.

A None code means "no fee, no machine": callers must ignore any machine id
attached to such a payment.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "DINHEIRO"
METHOD_CHECK = "CHEQUE"
METHOD_CREDIT = "CREDITO"
METHOD_DEBIT = "DEBITO"
METHOD_PIX = "PIX"
METHOD_VOUCHER = "VOUCHER"
METHOD_CARNE = "CARNE"
METHOD_BOLETO = "BOLETO"

VALID_METHODS = {
    METHOD_CASH,
    METHOD_CHECK,
    METHOD_CREDIT,
    METHOD_DEBIT,
    METHOD_PIX,
    METHOD_VOUCHER,
    METHOD_CARNE,
    METHOD_BOLETO,
}

# Methods whose code is the method itself
SELF_CODED_METHODS = {METHOD_PIX, METHOD_VOUCHER, METHOD_DEBIT}

MODE_PARCELADO = "PARCELADO"
MODE_ANTECIPADO = "ANTECIPADO"
VALID_MODES = {MODE_PARCELADO, MODE_ANTECIPADO}

DEFAULT_SETTLEMENT_DELAY_DAYS = 30
MAX_CREDIT_INSTALLMENTS = 12

# Rate codes a card machine can carry, in display order
RATE_CODES = (
    ["DEBITO"]
    + [f"CREDITO_{n}X" for n in range(1, MAX_CREDIT_INSTALLMENTS + 1)]
    + ["VOUCHER", "PIX"]
)

# Suggested default fees for new machines (the merchant may change them)
DEFAULT_RATES: dict[str, Decimal] = {
    "DEBITO": Decimal("0.0199"),
    "CREDITO_1X": Decimal("0.0349"),
    **{
        f"CREDITO_{n}X": Decimal("0.0449") + Decimal("0.005") * (n - 2)
        for n in range(2, MAX_CREDIT_INSTALLMENTS + 1)
    },
    "VOUCHER": Decimal("0.0349"),
    "PIX": Decimal("0.0099"),
}


@dataclass(frozen=True)
class FeePolicy:
    """Fee and timing that apply to one payment instrument."""
    method_code: str
    fee_rate: Decimal
    settlement_delay_days: int
    settlement_mode: str


def normalize_installments(installments) -> int:
    """Falsy or non-positive installment counts mean a single installment."""
    try:
        n = int(installments or 1)
    except (TypeError, ValueError):
        return 1
    return n if n > 0 else 1


def resolve_method_code(method: str | None, installments=None) -> str | None:
    """
    Rate code for a payment method.

    PIX, VOUCHER, DEBITO -> themselves
    CREDITO -> CREDITO_{n}X (n defaults to 1 for falsy/zero)
    anything else (cash, check, carne, boleto, unknown) -> None
    """
    method_upper = (method or "").strip().upper()
    if method_upper in SELF_CODED_METHODS:
        return method_upper
    if method_upper == METHOD_CREDIT:
        return f"CREDITO_{normalize_installments(installments)}X"
    return None


def lookup_fee(code: str | None, rates: Iterable) -> Decimal:
    """
    Fee fraction for `code` from rate rows (objects with method_code/fee_rate).

    First match wins (see module docstring); a missing row means fee 0.
    """
    if not code:
        return Decimal("0")
    for rate in sorted(rates, key=lambda r: (r.id is None, r.id or 0)):
        if rate.method_code == code:
            return Decimal(str(rate.fee_rate or 0))
    return Decimal("0")


def resolve_fee_policy(method: str | None, installments, machine) -> FeePolicy | None:
    """
    Compose code resolution and rate lookup for one payment.

    Returns None when no machine is given or the method carries no code.
    """
    if machine is None:
        return None
    code = resolve_method_code(method, installments)
    if code is None:
        return None
    return FeePolicy(
        method_code=code,
        fee_rate=lookup_fee(code, machine.rates),
        settlement_delay_days=int(
            machine.settlement_delay_days
            if machine.settlement_delay_days is not None
            else DEFAULT_SETTLEMENT_DELAY_DAYS
        ),
        settlement_mode=machine.settlement_mode or MODE_PARCELADO,
    )
