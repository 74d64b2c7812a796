"""Tests for the token admin API (POST/DELETE on the token post path)."""

from __future__ import annotations

import logging

import pytest

ADMIN_PATH = "/token_poster/"

RECORD = {"domain": "example.com", "token": "abc", "validation": "abc.thumbprint"}


class TestSetToken:
    def test_post_stores_record(self, send_token, probe, registry):
        resp = send_token("POST", RECORD)
        assert resp.status_code == 200
        assert resp.data == b""
        assert registry.get("example.com").token == "abc"
        assert probe("example.com", "abc").data == b"abc.thumbprint"

    def test_post_overwrites(self, send_token, registry):
        send_token("POST", RECORD)
        send_token("POST", {**RECORD, "token": "xyz", "validation": "xyz.t"})
        assert registry.get("example.com").token == "xyz"

    @pytest.mark.parametrize("field", ["domain", "token", "validation"])
    def test_empty_field_is_400(self, send_token, registry, field):
        resp = send_token("POST", {**RECORD, field: ""})
        assert resp.status_code == 400
        assert registry.get("example.com") is None
        assert registry.get("") is None

    @pytest.mark.parametrize("field", ["domain", "token", "validation"])
    def test_missing_field_is_400(self, send_token, field):
        payload = {k: v for k, v in RECORD.items() if k != field}
        assert send_token("POST", payload).status_code == 400

    def test_set_is_logged(self, send_token, caplog):
        with caplog.at_level(logging.INFO, logger="certbot_proxy"):
            send_token("POST", RECORD)
        assert any(
            "Set token for example.com from 192.168.1.1" in r.getMessage()
            for r in caplog.records
        )


class TestDeleteToken:
    def test_delete_forgets_domain(self, send_token, probe, registry):
        send_token("POST", RECORD)
        resp = send_token("DELETE", {"domain": "example.com"})
        assert resp.status_code == 200
        assert registry.get("example.com") is None
        assert probe("example.com", "abc").status_code == 404

    def test_delete_unknown_domain_is_200(self, send_token):
        assert send_token("DELETE", {"domain": "never.example.com"}).status_code == 200

    def test_delete_ignores_other_fields(self, send_token, registry):
        send_token("POST", RECORD)
        assert send_token("DELETE", RECORD).status_code == 200
        assert registry.get("example.com") is None


class TestBadRequests:
    def test_get_without_body_is_400(self, client):
        resp = client.get(ADMIN_PATH)
        assert resp.status_code == 400
        assert resp.get_data(as_text=True) == "Bad json request\n"

    def test_invalid_json_is_400(self, send_token):
        resp = send_token("POST", "{not json")
        assert resp.status_code == 400
        assert resp.get_data(as_text=True) == "Bad json request\n"

    def test_non_object_json_is_400(self, send_token):
        resp = send_token("POST", "[1, 2, 3]")
        assert resp.status_code == 400
        assert resp.get_data(as_text=True) == "Bad json request\n"

    def test_wrong_field_type_is_400(self, send_token):
        resp = send_token("POST", {**RECORD, "token": 42})
        assert resp.status_code == 400

    def test_deeply_nested_json_is_400(self, send_token, registry):
        resp = send_token("POST", "[" * 200000 + "]" * 200000)
        assert resp.status_code == 400
        assert resp.get_data(as_text=True) == "Bad json request\n"
        assert registry.get("example.com") is None

    def test_oversized_body_is_400(self, make_app):
        app = make_app({"upload.max_file_bytes": 512, "upload.max_request_bytes": 1024})
        resp = app.test_client().post(
            ADMIN_PATH,
            json={**RECORD, "validation": "x" * 4096},
        )
        assert resp.status_code == 400
        assert resp.get_data(as_text=True) == "Bad json request\n"
        assert app.extensions["container"].registry.get("example.com") is None

    def test_bad_json_wins_over_method(self, send_token):
        assert send_token("PUT", "garbage").status_code == 400

    @pytest.mark.parametrize("method", ["GET", "PUT", "PATCH"])
    def test_other_methods_are_405(self, send_token, registry, method):
        resp = send_token(method, RECORD)
        assert resp.status_code == 405
        assert resp.get_data(as_text=True) == "Method not allowed\n"
        assert registry.get("example.com") is None


class TestCapacity:
    def test_advisory_reports_507_but_stores(self, make_app):
        app = make_app({"registry.max_tokens": 2})
        client = app.test_client()
        registry = app.extensions["container"].registry

        for i in range(2):
            resp = client.post(ADMIN_PATH, json={**RECORD, "domain": f"h{i}.example.com"})
            assert resp.status_code == 200
        resp = client.post(ADMIN_PATH, json={**RECORD, "domain": "h2.example.com"})

        assert resp.status_code == 507
        assert registry.get("h2.example.com") is not None

    def test_strict_reports_507_and_refuses(self, make_app):
        app = make_app({"registry.max_tokens": 2, "registry.capacity_policy": "strict"})
        client = app.test_client()
        registry = app.extensions["container"].registry

        for i in range(2):
            client.post(ADMIN_PATH, json={**RECORD, "domain": f"h{i}.example.com"})
        resp = client.post(ADMIN_PATH, json={**RECORD, "domain": "h2.example.com"})

        assert resp.status_code == 507
        assert registry.get("h2.example.com") is None

    def test_strict_allows_refresh_of_known_domain(self, make_app):
        app = make_app({"registry.max_tokens": 1, "registry.capacity_policy": "strict"})
        client = app.test_client()

        client.post(ADMIN_PATH, json=RECORD)
        resp = client.post(ADMIN_PATH, json={**RECORD, "token": "new"})

        assert resp.status_code == 200
        assert app.extensions["container"].registry.get("example.com").token == "new"

    def test_limit_emits_security_event(self, make_app, caplog):
        app = make_app({"registry.max_tokens": 1})
        client = app.test_client()
        client.post(ADMIN_PATH, json=RECORD)

        with caplog.at_level(logging.WARNING, logger="certbot_proxy.security"):
            client.post(
                ADMIN_PATH,
                json={**RECORD, "domain": "flood.example.com"},
                headers={"X-Forwarded-For": "10.9.9.9"},
            )

        events = [r for r in caplog.records if r.name == "certbot_proxy.security"]
        assert len(events) == 1
        assert events[0].event_id == "certbot_proxy.security.token_limit_reached"
        assert events[0].source == "10.9.9.9"
        assert events[0].rejected is False
        assert "Hit token limit of 1" in events[0].getMessage()


class TestCustomAdminPath:
    def test_routes_follow_configured_path(self, make_app):
        app = make_app({"admin.path": "/secret/tokens/"})
        client = app.test_client()

        assert client.post("/secret/tokens/", json=RECORD).status_code == 200
        assert client.post(ADMIN_PATH, json=RECORD).status_code == 404
