"""
HTTP-level tests: redirects, cookie-bound state, callbacks and webhook.
"""

import base64
import hashlib

import pytest
from fastapi.testclient import TestClient

from api.routes import STATE_COOKIE
from api.signing import sign_value, unsign_value
from fakes import FITBIT_USER, query_params
from main import create_app


@pytest.fixture
def client(settings, services):
    with TestClient(create_app(settings, services)) as test_client:
        yield test_client


def _authorize_discord(client) -> str:
    resp = client.get("/verified-role", follow_redirects=False)
    assert resp.status_code == 302
    return query_params(resp.headers["location"])["state"]


class TestSigning:
    def test_round_trip(self):
        assert unsign_value(sign_value("S1", "secret"), "secret") == "S1"

    @pytest.mark.parametrize("signed", [None, "", "S1", "S1.deadbeef", ".abc"])
    def test_rejects_unsigned_or_tampered(self, signed):
        assert unsign_value(signed, "secret") is None

    def test_rejects_other_secret(self):
        assert unsign_value(sign_value("S1", "secret"), "other") is None


class TestIndex:
    def test_health(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.headers["X-Process-Time"]


class TestOAuthRoutes:
    def test_verified_role_sets_signed_cookie(self, client, settings):
        resp = client.get("/verified-role", follow_redirects=False)

        location = resp.headers["location"]
        assert location.startswith("https://discord.com/api/oauth2/authorize?")
        state = query_params(location)["state"]
        assert unsign_value(client.cookies[STATE_COOKIE], settings.cookie_secret) == state

    def test_end_to_end_link_and_webhook(self, client, services, fake):
        s1 = _authorize_discord(client)

        resp = client.get(
            "/discord-oauth-callback", params={"code": "C1", "state": s1}, follow_redirects=False
        )
        assert resp.status_code == 302
        fitbit_params = query_params(resp.headers["location"])
        assert resp.headers["location"].startswith("https://www.fitbit.com/oauth2/authorize?")

        resp = client.get(
            "/fitbit-oauth-callback", params={"code": "C2", "state": fitbit_params["state"]}
        )
        assert resp.status_code == 200
        assert "go back to Discord" in resp.text

        verifier = fake.code_grants["fitbit"]["code_verifier"]
        challenge = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest()).rstrip(b"=")
        assert fitbit_params["code_challenge"] == challenge.decode()

        resp = client.post("/fitbit-webhook", json=[{"ownerId": FITBIT_USER, "collectionType": "body"}])
        assert resp.status_code == 204
        assert len(fake.pushed) == 2
        assert fake.pushed[-1]["metadata"] == {
            "averagedailysteps": 9120,
            "ambassador": False,
            "membersince": "2016-03-01",
            "iscoach": True,
        }

    def test_forged_discord_state_is_forbidden(self, client, fake):
        _authorize_discord(client)
        resp = client.get(
            "/discord-oauth-callback", params={"code": "C1", "state": "forged"}, follow_redirects=False
        )
        assert resp.status_code == 403
        assert fake.network_calls() == 0

    def test_missing_cookie_is_forbidden(self, client):
        s1 = _authorize_discord(client)
        client.cookies.clear()
        resp = client.get(
            "/discord-oauth-callback", params={"code": "C1", "state": s1}, follow_redirects=False
        )
        assert resp.status_code == 403

    def test_replayed_fitbit_callback_is_forbidden(self, client):
        s1 = _authorize_discord(client)
        resp = client.get(
            "/discord-oauth-callback", params={"code": "C1", "state": s1}, follow_redirects=False
        )
        s2 = query_params(resp.headers["location"])["state"]

        assert client.get("/fitbit-oauth-callback", params={"code": "C2", "state": s2}).status_code == 200
        assert client.get("/fitbit-oauth-callback", params={"code": "C2", "state": s2}).status_code == 403

    def test_rejected_code_is_server_error(self, client):
        s1 = _authorize_discord(client)
        resp = client.get(
            "/discord-oauth-callback", params={"code": "bad-code", "state": s1}, follow_redirects=False
        )
        assert resp.status_code == 500


class TestWebhookRoutes:
    def test_verification_handshake(self, client):
        assert client.get("/fitbit-webhook", params={"verify": "verify-me"}).status_code == 204
        assert client.get("/fitbit-webhook", params={"verify": "wrong"}).status_code == 404
        assert client.get("/fitbit-webhook").status_code == 404

    def test_unlinked_owner_acknowledged(self, client, fake):
        resp = client.post("/fitbit-webhook", json={"ownerId": "B-stranger"})
        assert resp.status_code == 204
        assert fake.pushed == []

    @pytest.mark.parametrize("body", [b"not json", b"42", b"[]", b'{"collectionType": "body"}'])
    def test_malformed_payload(self, client, body):
        resp = client.post(
            "/fitbit-webhook", content=body, headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 400

    def test_push_failure_is_server_error(self, client, fake):
        s1 = _authorize_discord(client)
        resp = client.get(
            "/discord-oauth-callback", params={"code": "C1", "state": s1}, follow_redirects=False
        )
        s2 = query_params(resp.headers["location"])["state"]
        client.get("/fitbit-oauth-callback", params={"code": "C2", "state": s2})
        fake.push_status = 500

        resp = client.post("/fitbit-webhook", json=[{"ownerId": FITBIT_USER}])
        assert resp.status_code == 500
