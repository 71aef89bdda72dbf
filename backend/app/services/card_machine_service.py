# Overview: Service-layer operations for card machines and their fee schedules.

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CardMachine, CardMachineRate, Transaction
from .fee_service import DEFAULT_RATES, DEFAULT_SETTLEMENT_DELAY_DAYS, MODE_PARCELADO, RATE_CODES, VALID_MODES
from .outcome import Outcome, REASON_CONFLICT
from .revalidation import revalidate, PATH_CARD_MACHINES


class CardMachineError(Exception):
    """Raised for card machine validation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _parse_fee(value, code: str) -> Decimal:
    try:
        fee = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise CardMachineError(f"Invalid fee for {code}")
    if fee < 0 or fee > 1:
        raise CardMachineError(f"Fee for {code} must be a fraction between 0 and 1")
    return fee


def _parse_rates(rates) -> list[tuple[str, Decimal]]:
    parsed = []
    for row in rates or []:
        if not isinstance(row, dict):
            raise CardMachineError("Each rate must be an object")
        code = (row.get("method_code") or "").strip().upper()
        if not code:
            raise CardMachineError("method_code required for every rate")
        if any(code == seen for seen, _ in parsed):
            raise CardMachineError(f"Duplicate rate for {code}", details={"method_code": code})
        parsed.append((code, _parse_fee(row.get("fee_rate", 0), code)))
    return parsed


def _parse_mode(mode) -> str:
    mode = (mode or MODE_PARCELADO).strip().upper()
    if mode not in VALID_MODES:
        raise CardMachineError(f"Invalid settlement_mode: {mode}. Must be one of {sorted(VALID_MODES)}")
    return mode


def _parse_delay(value) -> int:
    try:
        delay = int(value)
    except (TypeError, ValueError):
        raise CardMachineError("settlement_delay_days must be an integer")
    if delay < 0:
        raise CardMachineError("settlement_delay_days cannot be negative")
    return delay


def get_tenant_machine(tenant_id: int, machine_id) -> CardMachine | None:
    if machine_id in (None, ""):
        return None
    return db.session.query(CardMachine).filter_by(id=machine_id, tenant_id=tenant_id).first()


def create_card_machine(tenant_id: int | None, data: dict) -> Outcome:
    """
    Create a card machine. Without explicit rates, the default fee schedule
    is seeded for every known rate code.
    """
    if not tenant_id:
        return Outcome.unauthorized()

    try:
        name = (data.get("name") or "").strip()
        if not name:
            raise CardMachineError("name required")

        delay = data.get("settlement_delay_days")
        machine = CardMachine(
            tenant_id=tenant_id,
            name=name,
            settlement_delay_days=_parse_delay(delay) if delay not in (None, "", 0) else DEFAULT_SETTLEMENT_DELAY_DAYS,
            settlement_mode=_parse_mode(data.get("settlement_mode")),
        )

        if data.get("rates"):
            rows = _parse_rates(data["rates"])
        else:
            rows = [(code, DEFAULT_RATES.get(code, Decimal("0"))) for code in RATE_CODES]
        for code, fee in rows:
            machine.rates.append(CardMachineRate(method_code=code, fee_rate=fee))

        db.session.add(machine)
        db.session.commit()
    except CardMachineError as e:
        db.session.rollback()
        return Outcome.fail(str(e), details=e.details)
    except IntegrityError:
        db.session.rollback()
        return Outcome.fail("Card machine rate already exists", reason=REASON_CONFLICT)

    revalidate(PATH_CARD_MACHINES)
    return Outcome.ok(machine, machine=machine.to_dict())


def list_card_machines(tenant_id: int | None) -> list[dict]:
    if not tenant_id:
        return []
    machines = (
        db.session.query(CardMachine)
        .filter_by(tenant_id=tenant_id)
        .order_by(CardMachine.name.asc())
        .all()
    )
    return [m.to_dict() for m in machines]


def get_card_machine(tenant_id: int | None, machine_id: int) -> dict | None:
    if not tenant_id:
        return None
    machine = get_tenant_machine(tenant_id, machine_id)
    return machine.to_dict() if machine else None


def update_card_machine(tenant_id: int | None, machine_id: int, data: dict) -> Outcome:
    """Update machine fields and upsert rate rows by (machine, method_code)."""
    if not tenant_id:
        return Outcome.unauthorized()

    machine = get_tenant_machine(tenant_id, machine_id)
    if not machine:
        return Outcome.not_found("Card machine not found")

    try:
        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                raise CardMachineError("name cannot be empty")
            machine.name = name
        if "settlement_delay_days" in data:
            machine.settlement_delay_days = _parse_delay(data["settlement_delay_days"])
        if "settlement_mode" in data:
            machine.settlement_mode = _parse_mode(data["settlement_mode"])
        if "is_active" in data:
            machine.is_active = bool(data["is_active"])

        if "rates" in data:
            existing = {r.method_code: r for r in machine.rates}
            for code, fee in _parse_rates(data["rates"]):
                if code in existing:
                    existing[code].fee_rate = fee
                else:
                    machine.rates.append(CardMachineRate(method_code=code, fee_rate=fee))

        db.session.commit()
    except CardMachineError as e:
        db.session.rollback()
        return Outcome.fail(str(e), details=e.details)
    except IntegrityError:
        db.session.rollback()
        return Outcome.fail("Card machine rate already exists", reason=REASON_CONFLICT)

    revalidate(PATH_CARD_MACHINES)
    return Outcome.ok(machine, machine=machine.to_dict())


def delete_card_machine(tenant_id: int | None, machine_id: int) -> Outcome:
    """Delete a machine (rates cascade); refused while transactions reference it."""
    if not tenant_id:
        return Outcome.unauthorized()

    machine = get_tenant_machine(tenant_id, machine_id)
    if not machine:
        return Outcome.not_found("Card machine not found")

    linked = db.session.query(Transaction).filter_by(card_machine_id=machine.id).count()
    if linked > 0:
        return Outcome.fail(
            f"Card machine has {linked} linked transaction(s) and cannot be deleted",
            reason=REASON_CONFLICT,
            details={"linked_transactions": linked},
        )

    db.session.delete(machine)
    db.session.commit()
    revalidate(PATH_CARD_MACHINES)
    return Outcome.ok()
