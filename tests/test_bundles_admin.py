"""Tests for bundle administration: CRUD, cancellation and cascade delete."""

from datetime import timedelta

from extensions import db
from models import Bundle, BundleRegistration, Event, Registration, utcnow

URL = "/api/bundles"


def buy(client, token_for, purchaser, bundle):
    return client.post(
        f"{URL}/register", json={"token": token_for(purchaser), "bundleId": bundle.id}
    ).get_json()


class TestBundleCatalog:
    def test_lists_only_purchasable(self, client, make_event, make_bundle):
        event = make_event()
        make_bundle([event], title="Open")
        make_bundle([event], title="Draft", publish=False)
        make_bundle([event], title="Old", valid_until=utcnow() - timedelta(days=1))

        titles = [b["title"] for b in client.get(URL).get_json()["bundles"]]

        assert titles == ["Open"]

    def test_create(self, client, admin, make_event, auth_headers):
        e1, e2 = make_event("E1"), make_event("E2")
        response = client.post(
            URL,
            json={
                "title": "Winter prep",
                "priceNis": 399,
                "eventIds": [e1.id, e1.id],
                "replacementEventIds": [e2.id],
                "publish": True,
                "validUntil": "2031-01-01T00:00:00Z",
            },
            headers=auth_headers(admin),
        )

        assert response.status_code == 201
        bundle = response.get_json()["bundle"]
        assert bundle["eventIds"] == [e1.id]
        assert bundle["replacementEventIds"] == [e2.id]
        assert bundle["priceNis"] == 399.0
        assert bundle["createdBy"] == admin.uid

    def test_create_rejects_unknown_events(self, client, admin, auth_headers):
        response = client.post(
            URL, json={"title": "Broken", "priceNis": 10, "eventIds": ["nope"]}, headers=auth_headers(admin)
        )
        assert response.status_code == 400
        assert "nope" in response.get_json()["message"]

    def test_update_cannot_empty_events(self, client, admin, make_event, make_bundle, auth_headers):
        bundle = make_bundle([make_event()])
        response = client.put(f"{URL}/{bundle.id}", json={"eventIds": []}, headers=auth_headers(admin))
        assert response.status_code == 400


class TestBundleRegistrationAdmin:
    def test_cancel_releases_seats_and_allows_rebuy(self, client, admin, make_profile, make_event, make_bundle, auth_headers, token_for):
        purchaser = make_profile()
        event = make_event(capacity=3)
        bundle = make_bundle([event])
        body = buy(client, token_for, purchaser, bundle)

        response = client.post(
            f"{URL}/registrations/{body['bundleRegistrationId']}/cancel", headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.get_json()["cancelledRegistrations"] == 1
        row = db.session.get(BundleRegistration, body["bundleRegistrationId"])
        assert row.status == "cancelled"
        assert row.active_key is None
        assert db.session.get(Event, event.id).reserved_seats == 0
        assert Registration.query.filter_by(uid=purchaser.uid, status="cancelled").count() == 1

        again = client.post(
            f"{URL}/register", json={"token": token_for(purchaser), "bundleId": bundle.id}
        )
        assert again.status_code == 200

    def test_cancel_twice(self, client, admin, make_profile, make_event, make_bundle, auth_headers, token_for):
        body = buy(client, token_for, make_profile(), make_bundle([make_event()]))
        url = f"{URL}/registrations/{body['bundleRegistrationId']}/cancel"
        client.post(url, headers=auth_headers(admin))
        assert client.post(url, headers=auth_headers(admin)).status_code == 400

    def test_list_registrations_for_bundle(self, client, admin, make_profile, make_event, make_bundle, auth_headers, token_for):
        event = make_event()
        first = make_bundle([event], title="First")
        second = make_bundle([make_event()], title="Second")
        buy(client, token_for, make_profile(), first)
        buy(client, token_for, make_profile(), second)

        rows = client.get(
            f"{URL}/registrations?bundleId={first.id}", headers=auth_headers(admin)
        ).get_json()["bundleRegistrations"]

        assert [r["bundleTitle"] for r in rows] == ["First"]

    def test_delete_cascades(self, client, admin, make_profile, make_event, make_bundle, auth_headers, token_for):
        event = make_event()
        bundle = make_bundle([event])
        bundle_id = bundle.id
        buy(client, token_for, make_profile(), bundle)
        buy(client, token_for, make_profile(), bundle)

        response = client.delete(f"{URL}/{bundle_id}", headers=auth_headers(admin))

        assert response.status_code == 200
        body = response.get_json()
        assert body["deletedBundleRegistrations"] == 2
        assert body["deletedRegistrations"] == 2
        assert db.session.get(Bundle, bundle_id) is None
        assert Registration.query.filter_by(bundle_id=bundle_id).count() == 0
        assert db.session.get(Event, event.id).reserved_seats == 0

    def test_mine(self, client, make_profile, make_event, make_bundle, auth_headers, token_for):
        purchaser = make_profile()
        buy(client, token_for, purchaser, make_bundle([make_event()]))
        rows = client.get(f"{URL}/registrations/mine", headers=auth_headers(purchaser)).get_json()
        assert len(rows["bundleRegistrations"]) == 1
