"""Tests for the memorial, media and email diagnostic namespaces."""


class TestMemorial:
    def test_ordered_list_and_get_by_slug(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        client.post("/api/lizchram", json={"name": "Yoni Cohen", "hebrewName": "יוני כהן", "order": 2}, headers=headers)
        client.post("/api/lizchram", json={"name": "Avi Levi", "hebrewName": "אבי לוי", "order": 1}, headers=headers)

        soldiers = client.get("/api/lizchram").get_json()["soldiers"]
        assert [s["slug"] for s in soldiers] == ["avi-levi", "yoni-cohen"]

        soldier = client.get("/api/lizchram/yoni-cohen").get_json()["soldier"]
        assert soldier["hebrewName"] == "יוני כהן"

    def test_duplicate_slug(self, client, admin, auth_headers):
        payload = {"name": "Yoni Cohen", "hebrewName": "יוני כהן"}
        client.post("/api/lizchram", json=payload, headers=auth_headers(admin))
        response = client.post("/api/lizchram", json=payload, headers=auth_headers(admin))
        assert response.status_code == 409

    def test_unknown_slug(self, client):
        assert client.get("/api/lizchram/nobody").status_code == 404


class TestMedia:
    def test_filter_by_category(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        client.post("/api/media", json={"srcUrl": "https://cdn.test/1.jpg", "category": "gallery"}, headers=headers)
        client.post("/api/media", json={"srcUrl": "https://youtu.be/x", "type": "youtube", "category": "videos"}, headers=headers)

        media = client.get("/api/media?category=videos").get_json()["media"]

        assert [m["type"] for m in media] == ["youtube"]

    def test_src_required(self, client, admin, auth_headers):
        assert client.post("/api/media", json={"title": "x"}, headers=auth_headers(admin)).status_code == 400


class TestEmailDiagnostics:
    def test_config(self, client, admin, auth_headers):
        body = client.get("/api/email/config", headers=auth_headers(admin)).get_json()
        assert body["configured"] is True
        assert body["mode"] == "mailjet"

    def test_send_test_email_to_caller(self, client, mailer, admin, auth_headers):
        response = client.post("/api/email/test", json={}, headers=auth_headers(admin))
        assert response.status_code == 200
        assert mailer.recipients() == ["admin@example.com"]
