# Overview: Pytest coverage for card machine fee schedules.

from datetime import datetime
from decimal import Decimal

from app.models import CardMachine, CardMachineRate, Transaction
from app.services import card_machine_service
from app.services.fee_service import RATE_CODES


def _rates(db_session, machine_id):
    rows = db_session.query(CardMachineRate).filter_by(card_machine_id=machine_id).all()
    return {r.method_code: Decimal(r.fee_rate) for r in rows}


class TestCreate:

    def test_seeds_default_schedule(self, db_session, tenant_a):
        outcome = card_machine_service.create_card_machine(tenant_a.id, {"name": "Cielo"})

        assert outcome.success, outcome.error
        machine = outcome.value
        assert machine.settlement_delay_days == 30
        assert machine.settlement_mode == "PARCELADO"
        rates = _rates(db_session, machine.id)
        assert set(rates) == set(RATE_CODES)
        assert rates["DEBITO"] == Decimal("0.0199")
        assert rates["PIX"] == Decimal("0.0099")

    def test_explicit_rates(self, db_session, tenant_a):
        outcome = card_machine_service.create_card_machine(tenant_a.id, {
            "name": "Rede",
            "settlement_delay_days": 2,
            "settlement_mode": "antecipado",
            "rates": [{"method_code": "debito", "fee_rate": "0.015"}],
        })
        assert outcome.success
        assert outcome.value.settlement_mode == "ANTECIPADO"
        assert _rates(db_session, outcome.value.id) == {"DEBITO": Decimal("0.015")}
        assert outcome.payload["machine"]["rates"][0]["method_code"] == "DEBITO"

    def test_rejects_bad_input(self, db_session, tenant_a):
        assert card_machine_service.create_card_machine(tenant_a.id, {}).error == "name required"
        outcome = card_machine_service.create_card_machine(tenant_a.id, {"name": "X", "settlement_mode": "WEEKLY"})
        assert outcome.http_status == 400
        outcome = card_machine_service.create_card_machine(tenant_a.id, {
            "name": "X", "rates": [{"method_code": "PIX", "fee_rate": "1.5"}],
        })
        assert outcome.http_status == 400
        assert db_session.query(CardMachine).count() == 0

    def test_rejects_repeated_rate_codes(self, db_session, tenant_a):
        outcome = card_machine_service.create_card_machine(tenant_a.id, {
            "name": "Dup",
            "rates": [
                {"method_code": "PIX", "fee_rate": "0.01"},
                {"method_code": "pix", "fee_rate": "0.02"},
            ],
        })

        assert outcome.http_status == 400
        assert outcome.details == {"method_code": "PIX"}
        assert db_session.query(CardMachine).count() == 0
        assert db_session.query(CardMachineRate).count() == 0

    def test_unique_rate_violation_is_a_conflict(self, db_session, tenant_a, monkeypatch):
        monkeypatch.setattr(
            card_machine_service,
            "_parse_rates",
            lambda rates: [("PIX", Decimal("0.01")), ("PIX", Decimal("0.02"))],
        )
        outcome = card_machine_service.create_card_machine(tenant_a.id, {
            "name": "Race",
            "rates": [{"method_code": "PIX", "fee_rate": "0.01"}],
        })

        assert outcome.http_status == 409
        assert db_session.query(CardMachine).count() == 0


class TestUpdate:

    def test_upserts_rates(self, db_session, tenant_a, machine_a):
        outcome = card_machine_service.update_card_machine(tenant_a.id, machine_a.id, {
            "settlement_delay_days": 14,
            "rates": [
                {"method_code": "CREDITO_3X", "fee_rate": "0.06"},
                {"method_code": "VOUCHER", "fee_rate": "0.03"},
            ],
        })

        assert outcome.success, outcome.error
        assert outcome.value.settlement_delay_days == 14
        assert _rates(db_session, machine_a.id) == {
            "DEBITO": Decimal("0.02"),
            "CREDITO_3X": Decimal("0.06"),
            "PIX": Decimal("0.01"),
            "VOUCHER": Decimal("0.03"),
        }

    def test_rejects_repeated_rate_codes(self, db_session, tenant_a, machine_a):
        outcome = card_machine_service.update_card_machine(tenant_a.id, machine_a.id, {
            "name": "Renamed",
            "rates": [
                {"method_code": "VOUCHER", "fee_rate": "0.03"},
                {"method_code": "VOUCHER", "fee_rate": "0.04"},
            ],
        })

        assert outcome.http_status == 400
        machine = db_session.get(CardMachine, machine_a.id)
        db_session.refresh(machine)
        assert machine.name == "Stone"
        assert "VOUCHER" not in _rates(db_session, machine_a.id)

    def test_other_tenant_sees_nothing(self, db_session, tenant_b, machine_a):
        assert card_machine_service.get_card_machine(tenant_b.id, machine_a.id) is None
        outcome = card_machine_service.update_card_machine(tenant_b.id, machine_a.id, {"name": "Mine"})
        assert outcome.http_status == 404


class TestDelete:

    def test_refused_while_referenced(self, db_session, tenant_a, machine_a):
        db_session.add(Transaction(
            tenant_id=tenant_a.id,
            description="Sale #000001",
            amount_cents=100,
            type="income",
            status="pending",
            date=datetime(2026, 1, 10),
            card_machine_id=machine_a.id,
        ))
        db_session.commit()

        outcome = card_machine_service.delete_card_machine(tenant_a.id, machine_a.id)
        assert outcome.http_status == 409
        assert outcome.details == {"linked_transactions": 1}

    def test_deletes_machine_and_rates(self, db_session, tenant_a, machine_a):
        machine_id = machine_a.id
        assert card_machine_service.delete_card_machine(tenant_a.id, machine_id).success
        assert db_session.query(CardMachine).count() == 0
        assert db_session.query(CardMachineRate).filter_by(card_machine_id=machine_id).count() == 0


def test_list_is_tenant_scoped(db_session, tenant_a, tenant_b, machine_a):
    assert [m["name"] for m in card_machine_service.list_card_machines(tenant_a.id)] == ["Stone"]
    assert card_machine_service.list_card_machines(tenant_b.id) == []
