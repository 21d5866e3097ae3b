"""Tests for single-event registration and its admin follow-ups."""

from sqlalchemy.exc import OperationalError

from extensions import db
from models import Event, Registration
from services.stores import SQLAlchemyRegistrationStore

URL = "/api/registrations"


def register(client, headers, event_id, **extra):
    return client.post(URL, json={"registrationData": {"eventId": event_id, **extra}}, headers=headers)


class TestRegisterForEvent:
    def test_pending_with_payment(self, client, payments, make_profile, make_event, auth_headers):
        student = make_profile()
        event = make_event(price="120")

        response = register(client, auth_headers(student), event.id, pickup="Station")

        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "pending"
        assert body["clientSecret"] == "secret_1"
        assert payments.calls[0]["amount"] == 12000
        assert payments.calls[0]["metadata"]["registrationId"] == body["registrationId"]

        registration = db.session.get(Registration, body["registrationId"])
        assert registration.pickup == "Station"
        assert registration.user_name == "Noa Levi"
        assert registration.payment_intent_id == "pi_1"
        assert db.session.get(Event, event.id).reserved_seats == 1

    def test_full_event_goes_to_waitlist(self, client, payments, make_profile, make_event, fill_event, auth_headers):
        event = make_event(capacity=1)
        fill_event(event)

        body = register(client, auth_headers(make_profile()), event.id).get_json()

        assert body["status"] == "waitlist"
        assert body["clientSecret"] is None
        assert payments.calls == []
        assert db.session.get(Event, event.id).reserved_seats == 1

    def test_free_event_skips_payment(self, client, payments, make_profile, make_event, auth_headers):
        event = make_event(price="0")
        body = register(client, auth_headers(make_profile()), event.id).get_json()
        assert body["status"] == "pending"
        assert body["clientSecret"] is None
        assert payments.calls == []

    def test_duplicate_registration(self, client, make_profile, make_event, auth_headers):
        student = make_profile()
        event = make_event()
        register(client, auth_headers(student), event.id)

        response = register(client, auth_headers(student), event.id)

        assert response.status_code == 400
        assert response.get_json()["message"] == "Already registered for this event"

    def test_closed_event(self, client, make_profile, make_event, auth_headers):
        event = make_event(days_ahead=-1)
        response = register(client, auth_headers(make_profile()), event.id)
        assert response.status_code == 400
        assert response.get_json()["message"] == "Event is not open for registration (pastDate)"

    def test_unpublished_event(self, client, make_profile, make_event, auth_headers):
        event = make_event(publish=False)
        response = register(client, auth_headers(make_profile()), event.id)
        assert response.status_code == 400
        assert response.get_json()["message"] == "Event not available"

    def test_unknown_event(self, client, make_profile, auth_headers):
        response = register(client, auth_headers(make_profile()), "missing")
        assert response.status_code == 404

    def test_requires_token(self, client, make_event):
        response = client.post(URL, json={"registrationData": {"eventId": make_event().id}})
        assert response.status_code == 400
        assert response.get_json()["message"] == "Token required"

    def test_confirmation_email(self, client, mailer, make_profile, make_event, auth_headers):
        student = make_profile(email="dana@example.com")
        register(client, auth_headers(student), make_event(title="Night march").id)
        assert mailer.recipients() == ["dana@example.com"]
        assert mailer.sent[0][1].subject == "אישור הרשמה - Night march"

    def test_database_error_returns_error_details(self, client, make_profile, make_event, auth_headers, monkeypatch):
        event = make_event()

        def broken(self, event_ids):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(SQLAlchemyRegistrationStore, "get_events", broken)
        response = register(client, auth_headers(make_profile()), event.id)

        assert response.status_code == 500
        body = response.get_json()
        assert body["error"] == "Database operation failed"
        assert "connection lost" in body["details"]


class TestRegistrationAdmin:
    def test_mark_paid(self, client, admin, make_profile, make_event, auth_headers):
        event = make_event(price="120")
        body = register(client, auth_headers(make_profile()), event.id).get_json()

        response = client.put(
            f"{URL}/{body['registrationId']}/payment",
            json={"paymentStatus": "paid"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        registration = response.get_json()["registration"]
        assert registration["status"] == "paid"
        assert registration["paymentStatus"] == "paid"
        assert registration["amountPaid"] == 120.0
        assert registration["paymentDate"] is not None

    def test_payment_requires_admin(self, client, make_profile, make_event, auth_headers):
        student = make_profile()
        body = register(client, auth_headers(student), make_event().id).get_json()
        response = client.put(
            f"{URL}/{body['registrationId']}/payment",
            json={"paymentStatus": "paid"},
            headers=auth_headers(student),
        )
        assert response.status_code == 403

    def test_cancel_releases_seat_and_reactivate_claims_it(self, client, admin, make_profile, make_event, auth_headers):
        event = make_event(capacity=1)
        body = register(client, auth_headers(make_profile()), event.id).get_json()
        url = f"{URL}/{body['registrationId']}/status"

        client.put(url, json={"status": "cancelled"}, headers=auth_headers(admin))
        assert db.session.get(Event, event.id).reserved_seats == 0

        other = register(client, auth_headers(make_profile()), event.id).get_json()
        assert other["status"] == "pending"

        response = client.put(url, json={"status": "pending"}, headers=auth_headers(admin))
        assert response.status_code == 400
        assert response.get_json()["message"] == "Event is full"

    def test_check_in_by_assigned_trainer(self, client, make_profile, make_event, auth_headers):
        trainer = make_profile(role="trainer")
        event = make_event(assigned_trainers=[trainer.uid])
        body = register(client, auth_headers(make_profile()), event.id).get_json()
        url = f"{URL}/{body['registrationId']}/check-in"

        checked = client.post(url, headers=auth_headers(trainer)).get_json()["registration"]
        assert checked["checkedIn"] is True
        assert checked["checkedInBy"] == trainer.uid

        undone = client.delete(url, headers=auth_headers(trainer)).get_json()["registration"]
        assert undone["checkedIn"] is False
        assert undone["checkedInAt"] is None

    def test_check_in_by_unassigned_trainer(self, client, make_profile, make_event, auth_headers):
        trainer = make_profile(role="trainer")
        event = make_event()
        body = register(client, auth_headers(make_profile()), event.id).get_json()

        response = client.post(f"{URL}/{body['registrationId']}/check-in", headers=auth_headers(trainer))

        assert response.status_code == 403

    def test_my_registrations(self, client, make_profile, make_event, auth_headers):
        student = make_profile()
        register(client, auth_headers(student), make_event().id)
        register(client, auth_headers(make_profile()), make_event().id)

        registrations = client.get(f"{URL}/mine", headers=auth_headers(student)).get_json()["registrations"]

        assert len(registrations) == 1
        assert registrations[0]["uid"] == student.uid
