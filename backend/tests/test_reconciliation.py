# Overview: Pytest coverage for the notification self-healing sweep.

"""
Reconciliation Tests

Each rule moves PENDING rows forward from ledger/agenda/stock state, never
reverts a terminal row, and a second sweep over unchanged state is a no-op.
"""

from datetime import datetime

import pytest

from app.models import AgendaEvent, Notification, Product, Transaction
from app.services import agenda_service, notification_service, purchase_invoice_service
from app.services.reconciliation_service import (
    RULES,
    AgendaEventPaidRule,
    ReconciliationRule,
    reconcile,
)
from app.services.transaction_service import confirm_payment


START = "2026-01-10T09:00:00"


def _status(db_session, key):
    return db_session.query(Notification).filter_by(event_id=key).one().status


def _booked_event(tenant, service):
    event = agenda_service.create_agenda_event(tenant.id, None, {
        "title": "Massage",
        "start_date": START,
        "service_id": service.id,
    }).value
    notification_service.upsert_event_notification(tenant.id, event, 5000)
    return event


def _pending_entry(db_session, event_id):
    return db_session.query(Transaction).filter_by(event_id=event_id, status="pending").one()


class TestAgendaEventRule:

    def test_paid_entry_confirms_reminder(self, db_session, tenant_a, service_a):
        event = _booked_event(tenant_a, service_a)
        key = str(event.id)
        confirm_payment(tenant_a.id, _pending_entry(db_session, event.id).id)

        assert reconcile(tenant_a.id) == 1

        row = db_session.query(Notification).filter_by(event_id=key).one()
        assert row.status == "CONFIRMED"
        assert row.action_amount_cents == 5000
        assert row.action_at is not None

    def test_second_sweep_is_a_no_op(self, db_session, tenant_a, service_a):
        event = _booked_event(tenant_a, service_a)
        confirm_payment(tenant_a.id, _pending_entry(db_session, event.id).id)

        assert reconcile(tenant_a.id) == 1
        assert reconcile(tenant_a.id) == 0

    def test_unpaid_event_stays_pending(self, db_session, tenant_a, service_a):
        event = _booked_event(tenant_a, service_a)
        assert reconcile(tenant_a.id) == 0
        assert _status(db_session, str(event.id)) == "PENDING"

    def test_terminal_row_is_never_reverted(self, db_session, tenant_a, service_a):
        event = _booked_event(tenant_a, service_a)
        notification_service.mark_notification_acted(tenant_a.id, str(event.id), "CANCELLED")
        confirm_payment(tenant_a.id, _pending_entry(db_session, event.id).id)

        assert reconcile(tenant_a.id) == 0
        assert _status(db_session, str(event.id)) == "CANCELLED"


class TestPaymentAlertRule:

    def test_paid_with_entry_is_acted_at_pos(self, db_session, tenant_a, service_a):
        event = _booked_event(tenant_a, service_a)
        agenda_service.update_attendance_status(tenant_a.id, event.id, "COMPLETED")
        event_id = event.id
        tx = _pending_entry(db_session, event_id)
        tx.status = "paid"
        tx.paid_at = datetime(2026, 1, 10, 18, 0, 0)
        db_session.get(AgendaEvent, event_id).payment_status = "PAID"
        db_session.commit()

        reconcile(tenant_a.id)

        alert = db_session.query(Notification).filter_by(event_id=f"pay_alert_{event_id}").one()
        assert alert.status == "ACTED_PDV"
        assert alert.action_amount_cents == 5000

    def test_paid_without_entry_is_dismissed(self, db_session, tenant_a, service_a):
        event = _booked_event(tenant_a, service_a)
        agenda_service.update_attendance_status(tenant_a.id, event.id, "COMPLETED")
        event_id = event.id
        db_session.query(Transaction).filter_by(event_id=event_id).delete()
        db_session.get(AgendaEvent, event_id).payment_status = "PAID"
        db_session.commit()

        reconcile(tenant_a.id)

        assert _status(db_session, f"pay_alert_{event_id}") == "DISMISSED"

    def test_unpaid_alert_stays_pending(self, db_session, tenant_a, service_a):
        event = _booked_event(tenant_a, service_a)
        agenda_service.update_attendance_status(tenant_a.id, event.id, "COMPLETED")
        reconcile(tenant_a.id)
        assert _status(db_session, f"pay_alert_{event.id}") == "PENDING"


class TestInvoiceRules:

    def _receive(self, tenant):
        outcome = purchase_invoice_service.create_purchase_invoice(tenant.id, None, {
            "invoice_number": "555",
            "items": [{"new_product": {"name": "Shampoo"}, "quantity": 4, "raw_unit_cost_cents": 900}],
        })
        assert outcome.success, outcome.error
        return outcome.value

    def _by_type(self, db_session, invoice_id, notification_type):
        return (
            db_session.query(Notification)
            .filter_by(purchase_invoice_id=invoice_id, type=notification_type)
            .one()
        )

    def test_pricing_resolved_once_every_product_priced(self, db_session, tenant_a):
        invoice = self._receive(tenant_a)
        invoice_id = invoice.id

        reconcile(tenant_a.id)
        assert self._by_type(db_session, invoice_id, "PRICING_NEEDED").status == "PENDING"

        product = db_session.query(Product).filter_by(tenant_id=tenant_a.id, name="Shampoo").one()
        product.price_cents = 2500
        db_session.commit()

        reconcile(tenant_a.id)
        assert self._by_type(db_session, invoice_id, "PRICING_NEEDED").status == "CONFIRMED"

    def test_internal_products_need_no_price(self, db_session, tenant_a):
        invoice = self._receive(tenant_a)
        invoice_id = invoice.id
        product = db_session.query(Product).filter_by(tenant_id=tenant_a.id, name="Shampoo").one()
        product.product_type = "INTERNO"
        db_session.commit()

        reconcile(tenant_a.id)
        assert self._by_type(db_session, invoice_id, "PRICING_NEEDED").status == "CONFIRMED"

    def test_payment_review_confirmed_by_paid_payable(self, db_session, tenant_a):
        invoice = self._receive(tenant_a)
        invoice_id = invoice.id
        payable = db_session.query(Transaction).filter_by(purchase_invoice_id=invoice_id).one()

        reconcile(tenant_a.id)
        assert self._by_type(db_session, invoice_id, "PAYMENT_REVIEW").status == "PENDING"

        confirm_payment(tenant_a.id, payable.id)
        reconcile(tenant_a.id)

        review = self._by_type(db_session, invoice_id, "PAYMENT_REVIEW")
        assert review.status == "CONFIRMED"
        assert review.action_amount_cents == 3600


class TestDriver:

    def test_failing_rule_does_not_stop_the_sweep(self, db_session, tenant_a, service_a):
        class BrokenRule(ReconciliationRule):
            notification_type = "AGENDA_EVENT"

            def resolve(self, tenant_id, notifications, now):
                raise RuntimeError("ground truth unavailable")

        event = _booked_event(tenant_a, service_a)
        confirm_payment(tenant_a.id, _pending_entry(db_session, event.id).id)

        assert reconcile(tenant_a.id, rules=(BrokenRule(), AgendaEventPaidRule())) == 1
        assert _status(db_session, str(event.id)) == "CONFIRMED"

    def test_no_tenant(self, db_session):
        assert reconcile(None) == 0

    def test_other_tenants_untouched(self, db_session, tenant_a, tenant_b, service_a):
        event = _booked_event(tenant_a, service_a)
        confirm_payment(tenant_a.id, _pending_entry(db_session, event.id).id)

        assert reconcile(tenant_b.id) == 0
        assert _status(db_session, str(event.id)) == "PENDING"

    def test_default_rules_cover_every_type(self):
        assert {rule.notification_type for rule in RULES} == {
            "AGENDA_EVENT", "PAYMENT_ALERT", "PRICING_NEEDED", "PAYMENT_REVIEW",
        }

    def test_rule_must_implement_resolve(self):
        class IncompleteRule(ReconciliationRule):
            notification_type = "AGENDA_EVENT"

        with pytest.raises(TypeError):
            ReconciliationRule()
        with pytest.raises(TypeError):
            IncompleteRule()
