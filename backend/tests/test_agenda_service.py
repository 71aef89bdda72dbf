# Overview: Pytest coverage for the agenda event lifecycle and its provisional receivable.

from datetime import datetime

import pytest

from app.models import AgendaEvent, Customer, Notification, Quote, Sale, Service, Transaction
from app.services import agenda_service, notification_service
from app.services.agenda_service import (
    can_transition,
    cancel_agenda_event,
    confirm_event_attendance,
    create_agenda_event,
    list_due_events,
    update_agenda_event,
    update_attendance_status,
)


START = "2026-01-10T09:00:00"


def _event_entries(db_session, event_id):
    return (
        db_session.query(Transaction)
        .filter_by(event_id=event_id)
        .order_by(Transaction.id.asc())
        .all()
    )


@pytest.fixture
def service_event(db_session, tenant_a, service_a):
    outcome = create_agenda_event(tenant_a.id, None, {
        "title": "Haircut with Bia",
        "start_date": START,
        "service_id": service_a.id,
        "customer_name": "Bia",
        "customer_phone": "5511999990000",
    })
    assert outcome.success, outcome.error
    return outcome.value


class TestTransitions:

    @pytest.mark.parametrize("current, target, allowed", [
        ("SCHEDULED", "CONFIRMED", True),
        ("SCHEDULED", "COMPLETED", True),
        ("CONFIRMED", "NO_SHOW", True),
        ("CONFIRMED", "SCHEDULED", False),
        ("COMPLETED", "COMPLETED", True),
        ("COMPLETED", "CANCELLED", False),
        ("CANCELLED", "SCHEDULED", False),
        ("NO_SHOW", "COMPLETED", False),
    ])
    def test_table(self, current, target, allowed):
        assert can_transition(current, target) is allowed


class TestCreate:

    def test_books_one_pending_receivable(self, db_session, service_event):
        entries = _event_entries(db_session, service_event.id)
        assert len(entries) == 1
        assert entries[0].amount_cents == 5000
        assert entries[0].status == "pending"
        assert entries[0].type == "income"
        assert entries[0].description == "Scheduled service: Haircut"
        assert entries[0].date == datetime(2026, 1, 10, 9, 0, 0)
        assert service_event.payment_status == "PENDING"
        assert service_event.attendance_status == "SCHEDULED"

    def test_end_defaults_to_one_hour(self, service_event):
        assert service_event.end_date == datetime(2026, 1, 10, 10, 0, 0)

    def test_customer_resolved_from_name(self, db_session, tenant_a, service_event):
        customer = db_session.query(Customer).filter_by(tenant_id=tenant_a.id).one()
        assert customer.name == "Bia"
        assert customer.phone == "5511999990000"
        assert service_event.customer_id == customer.id

        again = create_agenda_event(tenant_a.id, None, {
            "title": "Follow-up",
            "start_date": START,
            "customer_name": "Beatriz",
            "customer_phone": "5511999990000",
        }).value
        assert again.customer_id == customer.id
        assert db_session.query(Customer).count() == 1

    def test_event_without_value_books_nothing(self, db_session, tenant_a):
        event = create_agenda_event(tenant_a.id, None, {"title": "Team meeting", "start_date": START}).value
        assert _event_entries(db_session, event.id) == []
        assert event.payment_status is None

    def test_validation(self, db_session, tenant_a):
        outcome = create_agenda_event(tenant_a.id, None, {"start_date": START})
        assert not outcome.success
        assert outcome.http_status == 400

        outcome = create_agenda_event(tenant_a.id, None, {"title": "No date"})
        assert outcome.error == "start_date required"

    def test_foreign_service_not_found(self, db_session, tenant_a, tenant_b):
        foreign = Service(tenant_id=tenant_b.id, name="Foreign", price_cents=100)
        db_session.add(foreign)
        db_session.commit()

        outcome = create_agenda_event(tenant_a.id, None, {
            "title": "X", "start_date": START, "service_id": foreign.id,
        })
        assert outcome.http_status == 404


class TestQuotes:

    def test_create_uses_only_approved_quotes_update_uses_any(self, db_session, tenant_a, service_a):
        quote = Quote(tenant_id=tenant_a.id, number=42, status="DRAFT", total_amount_cents=8000)
        db_session.add(quote)
        db_session.commit()

        payload = {
            "title": "Quoted job",
            "start_date": START,
            "service_id": service_a.id,
            "quote_id": quote.id,
        }
        event = create_agenda_event(tenant_a.id, None, payload).value
        assert [tx.amount_cents for tx in _event_entries(db_session, event.id)] == [5000]

        outcome = update_agenda_event(tenant_a.id, None, event.id, payload)
        assert outcome.success
        entries = _event_entries(db_session, event.id)
        assert [tx.amount_cents for tx in entries] == [8000]
        assert entries[0].description == "Quoted appointment: Quoted job (#42)"
        assert entries[0].quote_id == quote.id


class TestUpdate:

    def test_recomputes_single_entry(self, db_session, tenant_a, product_a, service_event):
        outcome = update_agenda_event(tenant_a.id, None, service_event.id, {
            "title": "Product pickup",
            "start_date": "2026-01-11T09:00:00",
            "product_id": product_a.id,
        })

        assert outcome.success, outcome.error
        entries = _event_entries(db_session, service_event.id)
        assert len(entries) == 1
        assert entries[0].amount_cents == 1000
        assert entries[0].description == "Scheduled sale: Widget"
        assert entries[0].date == datetime(2026, 1, 11, 9, 0, 0)

    def test_service_plus_product(self, db_session, tenant_a, product_a, service_a, service_event):
        update_agenda_event(tenant_a.id, None, service_event.id, {
            "title": "Combo",
            "start_date": START,
            "service_id": service_a.id,
            "product_id": product_a.id,
        })
        entries = _event_entries(db_session, service_event.id)
        assert [tx.amount_cents for tx in entries] == [6000]
        assert entries[0].description == "Scheduled service: Haircut + Widget"

    def test_zero_value_removes_entry(self, db_session, tenant_a, service_event):
        update_agenda_event(tenant_a.id, None, service_event.id, {"title": "Free chat", "start_date": START})
        assert _event_entries(db_session, service_event.id) == []

    def test_refreshes_existing_reminder(self, db_session, tenant_a, product_a, service_event):
        notification_service.upsert_event_notification(tenant_a.id, service_event, 5000)
        update_agenda_event(tenant_a.id, None, service_event.id, {
            "title": "Renamed",
            "start_date": START,
            "product_id": product_a.id,
        })
        reminder = db_session.query(Notification).filter_by(event_id=str(service_event.id)).one()
        assert reminder.title == "Renamed"
        assert reminder.expected_amount_cents == 1000
        assert reminder.status == "PENDING"

    def test_missing_event(self, db_session, tenant_a):
        outcome = update_agenda_event(tenant_a.id, None, 999999, {"title": "x", "start_date": START})
        assert outcome.http_status == 404


class TestAttendance:

    def _alerts(self, db_session, event_id):
        return db_session.query(Notification).filter_by(event_id=f"pay_alert_{event_id}").all()

    def test_completed_with_pending_payment_raises_one_alert(self, db_session, tenant_a, service_event):
        outcome = update_attendance_status(tenant_a.id, service_event.id, "COMPLETED")
        assert outcome.success

        alerts = self._alerts(db_session, service_event.id)
        assert len(alerts) == 1
        assert alerts[0].type == "PAYMENT_ALERT"
        assert alerts[0].status == "PENDING"
        assert alerts[0].expected_amount_cents == 5000

        update_attendance_status(tenant_a.id, service_event.id, "COMPLETED")
        assert len(self._alerts(db_session, service_event.id)) == 1

    def test_dismissed_alert_is_not_reopened(self, db_session, tenant_a, service_event):
        update_attendance_status(tenant_a.id, service_event.id, "COMPLETED")
        alert = self._alerts(db_session, service_event.id)[0]
        notification_service.dismiss_notification(tenant_a.id, alert.id)

        update_attendance_status(tenant_a.id, service_event.id, "COMPLETED")
        alerts = self._alerts(db_session, service_event.id)
        assert len(alerts) == 1
        assert alerts[0].status == "DISMISSED"

    def test_disallowed_transition_is_conflict(self, db_session, tenant_a, service_event):
        update_attendance_status(tenant_a.id, service_event.id, "COMPLETED")
        outcome = update_attendance_status(tenant_a.id, service_event.id, "SCHEDULED")
        assert outcome.http_status == 409

    def test_unknown_status(self, db_session, tenant_a, service_event):
        outcome = update_attendance_status(tenant_a.id, service_event.id, "LATE")
        assert outcome.http_status == 400

    def test_cancel_marks_pending_reminder(self, db_session, tenant_a, service_event):
        notification_service.upsert_event_notification(tenant_a.id, service_event, 5000)
        outcome = update_attendance_status(tenant_a.id, service_event.id, "CANCELLED")
        assert outcome.success

        event = db_session.get(AgendaEvent, service_event.id)
        assert event.attendance_status == "CANCELLED"
        assert event.notification_status == "CANCELLED"
        reminder = db_session.query(Notification).filter_by(event_id=str(service_event.id)).one()
        assert reminder.status == "CANCELLED"

    def test_no_show_leaves_inbox_alone(self, db_session, tenant_a, service_event):
        notification_service.upsert_event_notification(tenant_a.id, service_event, 5000)
        update_attendance_status(tenant_a.id, service_event.id, "NO_SHOW")
        reminder = db_session.query(Notification).filter_by(event_id=str(service_event.id)).one()
        assert reminder.status == "PENDING"
        assert self._alerts(db_session, service_event.id) == []


class TestConfirm:

    def test_settles_pending_entry(self, db_session, tenant_a, account_a, service_event):
        notification_service.upsert_event_notification(tenant_a.id, service_event, 5000)

        outcome = confirm_event_attendance(tenant_a.id, service_event.id, account_a.id)

        assert outcome.success, outcome.error
        entries = _event_entries(db_session, service_event.id)
        assert len(entries) == 1
        assert entries[0].status == "paid"
        assert entries[0].paid_at is not None
        assert entries[0].financial_account_id == account_a.id

        event = db_session.get(AgendaEvent, service_event.id)
        assert event.payment_status == "PAID"
        assert event.attendance_status == "COMPLETED"
        assert event.notification_status == "CONFIRMED"

        reminder = db_session.query(Notification).filter_by(event_id=str(service_event.id)).one()
        assert reminder.status == "CONFIRMED"
        assert reminder.action_amount_cents == 5000

    def test_second_confirm_fails(self, db_session, tenant_a, service_event):
        confirm_event_attendance(tenant_a.id, service_event.id)
        outcome = confirm_event_attendance(tenant_a.id, service_event.id)
        assert not outcome.success
        assert outcome.error == "No pending transaction for this event"

    def test_paid_event_books_no_new_entry_on_update(self, db_session, tenant_a, service_a, service_event):
        confirm_event_attendance(tenant_a.id, service_event.id)
        update_agenda_event(tenant_a.id, None, service_event.id, {
            "title": "Haircut", "start_date": START, "service_id": service_a.id,
        })
        entries = _event_entries(db_session, service_event.id)
        assert [(tx.status, tx.amount_cents) for tx in entries] == [("paid", 5000)]

    def test_preserves_terminal_attendance(self, db_session, tenant_a, service_event):
        update_attendance_status(tenant_a.id, service_event.id, "NO_SHOW")
        confirm_event_attendance(tenant_a.id, service_event.id)
        assert db_session.get(AgendaEvent, service_event.id).attendance_status == "NO_SHOW"


class TestCancelEvent:

    def test_deletes_event_and_entries(self, db_session, tenant_a, service_event):
        event_id = service_event.id
        notification_service.upsert_event_notification(tenant_a.id, service_event, 5000)
        sale = Sale(tenant_id=tenant_a.id, total_amount_cents=5000, date=datetime(2026, 1, 10), event_id=event_id)
        db_session.add(sale)
        db_session.commit()
        sale_id = sale.id

        outcome = cancel_agenda_event(tenant_a.id, event_id)

        assert outcome.success
        assert db_session.query(AgendaEvent).filter_by(id=event_id).first() is None
        assert db_session.query(Transaction).filter_by(event_id=event_id).count() == 0
        assert db_session.get(Sale, sale_id).event_id is None
        reminder = db_session.query(Notification).filter_by(event_id=str(event_id)).one()
        assert reminder.status == "CANCELLED"

    def test_missing_event(self, db_session, tenant_a):
        assert cancel_agenda_event(tenant_a.id, 123456).http_status == 404


class TestDueEvents:

    def test_projects_due_events_once(self, db_session, tenant_a, service_event):
        create_agenda_event(tenant_a.id, None, {"title": "Later", "start_date": "2026-02-01T09:00:00"})
        now = datetime(2026, 1, 10, 12, 0, 0)

        due = list_due_events(tenant_a.id, now=now)
        assert [row["id"] for row in due] == [service_event.id]
        assert due[0]["expected_amount_cents"] == 5000
        assert due[0]["notification"]["type"] == "AGENDA_EVENT"

        list_due_events(tenant_a.id, now=now)
        assert db_session.query(Notification).filter_by(tenant_id=tenant_a.id).count() == 1

    def test_acted_events_are_skipped(self, db_session, tenant_a, service_event):
        confirm_event_attendance(tenant_a.id, service_event.id)
        assert list_due_events(tenant_a.id, now=datetime(2026, 1, 10, 12, 0, 0)) == []

    def test_get_event_detail(self, db_session, tenant_a, service_event):
        detail = agenda_service.get_agenda_event(tenant_a.id, service_event.id)
        assert detail["service"]["name"] == "Haircut"
        assert detail["customer"]["name"] == "Bia"
        assert len(detail["transactions"]) == 1
        assert agenda_service.get_agenda_event(tenant_a.id + 1000, service_event.id) is None
