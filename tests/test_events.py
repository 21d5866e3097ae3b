"""Tests for the events namespace."""

import pytest

from extensions import db
from models import Event, Registration

URL = "/api/events"


@pytest.fixture(autouse=True)
def no_geocoding(monkeypatch):
    calls = []

    def fake_geocode(location_name, url=None, country=None, timeout=3):
        calls.append(location_name)
        return 32.0853, 34.7818

    monkeypatch.setattr("routes.events.geocode_address", fake_geocode)
    return calls


class TestEventList:
    def test_only_published_and_visible(self, client, make_profile, make_event, auth_headers):
        public = make_event("Public")
        make_event("Hidden", publish=False)
        make_event("Group B", groups=["ב"])
        group_a = make_event("Group A", groups=["א"])

        anonymous = [e["title"] for e in client.get(URL).get_json()["events"]]
        member = client.get(URL, headers=auth_headers(make_profile(groups=["א"]))).get_json()["events"]

        assert anonymous == ["Public"]
        assert {e["id"] for e in member} == {public.id, group_a.id}

    def test_admin_sees_everything_with_all(self, client, admin, make_event, auth_headers):
        make_event("Public")
        make_event("Hidden", publish=False)
        events = client.get(f"{URL}?all=1", headers=auth_headers(admin)).get_json()["events"]
        assert {e["title"] for e in events} == {"Public", "Hidden"}

    def test_registered_count(self, client, make_event, fill_event):
        event = make_event(capacity=5)
        fill_event(event, 3)
        fill_event(event, 2, status="cancelled")
        events = client.get(URL).get_json()["events"]
        assert events[0]["registeredCount"] == 3

    def test_get_by_slug(self, client, make_event):
        event = make_event(slug="night-march")
        body = client.get(f"{URL}/night-march").get_json()
        assert body["event"]["id"] == event.id

    def test_unpublished_is_hidden_from_students(self, client, make_profile, make_event, auth_headers):
        event = make_event(publish=False)
        response = client.get(f"{URL}/{event.id}", headers=auth_headers(make_profile()))
        assert response.status_code == 404


class TestEventAdmin:
    def test_create_geocodes_location(self, client, admin, auth_headers, no_geocoding):
        response = client.post(
            URL,
            json={
                "title": "Beach run",
                "startAt": "2030-05-01T05:30:00Z",
                "locationName": "חוף גורדון, תל אביב (ליד המציל)",
                "maxParticipants": 15,
                "priceNis": 90,
                "groups": ["א", "ALL"],
            },
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        event = response.get_json()["event"]
        assert event["startAt"] == "2030-05-01T05:30:00"
        assert event["lat"] == 32.0853
        assert event["groups"] == ["ALL"]
        assert event["publish"] is False
        assert no_geocoding == ["חוף גורדון, תל אביב (ליד המציל)"]

    def test_create_with_coordinates_skips_geocoding(self, client, admin, auth_headers, no_geocoding):
        client.post(
            URL,
            json={"title": "Hill", "startAt": "2030-05-01T05:30:00Z", "locationName": "Hill", "lat": 1.0, "lng": 2.0},
            headers=auth_headers(admin),
        )
        assert no_geocoding == []

    def test_create_requires_admin(self, client, make_profile, auth_headers):
        response = client.post(URL, json={"title": "x", "startAt": "2030-01-01"}, headers=auth_headers(make_profile()))
        assert response.status_code == 403
        assert response.get_json()["message"] == "Admin access required"

    def test_create_rejects_bad_date(self, client, admin, auth_headers):
        response = client.post(URL, json={"title": "x", "startAt": "soon"}, headers=auth_headers(admin))
        assert response.status_code == 400

    def test_delete_cascades_registrations(self, client, admin, make_event, fill_event, auth_headers):
        event = make_event()
        fill_event(event, 3)
        event_id = event.id

        response = client.delete(f"{URL}/{event_id}", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.get_json()["deletedRegistrations"] == 3
        assert db.session.get(Event, event_id) is None
        assert Registration.query.filter_by(event_id=event_id).count() == 0

    def test_complete_stamps_time(self, client, admin, make_event, auth_headers):
        event = make_event()
        client.post(f"{URL}/{event.id}/status", json={"status": "completed"}, headers=auth_headers(admin))
        assert db.session.get(Event, event.id).completed_at is not None

    def test_assign_trainers_and_list_assigned(self, client, admin, make_profile, make_event, auth_headers):
        trainer = make_profile(role="trainer")
        event = make_event()

        client.put(f"{URL}/{event.id}/trainers", json={"trainerIds": [trainer.uid]}, headers=auth_headers(admin))
        assigned = client.get(f"{URL}/assigned", headers=auth_headers(trainer)).get_json()["events"]

        assert [e["id"] for e in assigned] == [event.id]

    def test_export_csv(self, client, admin, make_event, auth_headers):
        event = make_event()
        db.session.add(Registration(event_id=event.id, uid="u1", user_name="Noa Levi", user_email="noa@example.com"))
        db.session.commit()

        response = client.get(f"{URL}/{event.id}/export-csv", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        text = response.get_data(as_text=True)
        assert text.startswith("\ufeffName,Email")
        assert "Noa Levi,noa@example.com" in text

    def test_registrations_hidden_from_students(self, client, make_profile, make_event, auth_headers):
        event = make_event()
        response = client.get(f"{URL}/{event.id}/registrations", headers=auth_headers(make_profile()))
        assert response.status_code == 403


class TestGeocodeEndpoint:
    def test_geocode(self, client):
        body = client.post(f"{URL}/geocode", json={"address": "תל אביב"}).get_json()
        assert body == {"latitude": 32.0853, "longitude": 34.7818}

    def test_geocode_requires_address(self, client):
        assert client.post(f"{URL}/geocode", json={}).status_code == 400
