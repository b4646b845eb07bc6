from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.schemas.disable import DisableReason
from app.services.nlu import NLUError

from tests.conftest import CUSTOMER, CUSTOMER_CHAT, MONDAY_NOON, nlu_returning

ADMIN_HEADERS = {"X-Admin-Token": "admin-secret"}


@pytest.fixture
def client(runtime):
    app.state.runtime = runtime
    yield TestClient(app)
    app.state.runtime = None


class TestWebhook:
    def test_inbound_message_gets_reply(self, client, runtime, transport):
        response = client.post("/webhook", json={"chatId": CUSTOMER_CHAT, "message": "hola"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["action"] == "replied"
        assert transport.sent[0] == (CUSTOMER_CHAT, runtime.catalog.text("welcome"))

    def test_wrapped_payload(self, client):
        response = client.post("/webhook", json={"data": {"remoteJid": CUSTOMER_CHAT, "body": "hola"}})
        assert response.json()["action"] == "replied"

    def test_from_me_registers_manual_intervention(self, client, runtime):
        response = client.post(
            "/webhook",
            json={"chat_id": CUSTOMER_CHAT, "text": "Te llamo en 5 minutos", "fromMe": True, "id": "h-1"},
        )

        assert response.json()["action"] == "manual_intervention"
        assert runtime.registry.status_detail(CUSTOMER_CHAT)[0] == DisableReason.MANUAL_INTERVENTION

    def test_nlu_error_reported(self, client, runtime):
        runtime.conversation.nlu = nlu_returning("lenguaje")
        runtime.conversation.nlu.detect_intent.side_effect = NLUError("down")

        data = client.post("/webhook", json={"chatId": CUSTOMER_CHAT, "text": "hola"}).json()
        assert data["success"] is False
        assert data["action"] == "error"

    def test_missing_chat_id(self, client):
        assert client.post("/webhook", json={"text": "hola"}).status_code == 422

    def test_invalid_json(self, client):
        response = client.post("/webhook", content=b"not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400


class TestCredentialChallenge:
    def test_challenge_then_qr(self, client, runtime, clock):
        response = client.post("/webhook/credential-challenge", json={"data": "2@abc,def"})
        assert response.status_code == 200

        qr = client.get("/qr", auth=("admin", "qr-secret"))
        assert qr.status_code == 200
        assert qr.json()["data"] == "2@abc,def"
        assert qr.json()["image"].startswith("data:image/png;base64,iVBORw0KGgo")

        status = client.get("/qr/status").json()
        assert status["has_challenge"] is True
        assert status["valid"] is True

        clock.set_mock_now(MONDAY_NOON + timedelta(seconds=61))
        assert client.get("/qr", auth=("admin", "qr-secret")).status_code == 404

    def test_qr_requires_credentials(self, client):
        client.post("/webhook/credential-challenge", json={"data": "2@abc"})
        assert client.get("/qr", auth=("admin", "wrong")).status_code == 401
        assert client.get("/qr").status_code == 401

    def test_qr_disabled_without_password(self, client, runtime):
        runtime.settings.qr_api_password = None
        assert client.get("/qr", auth=("admin", "x")).status_code == 503

    def test_connection_status_clears_challenge(self, client, runtime):
        client.post("/webhook/credential-challenge", json={"data": "2@abc"})
        client.post("/webhook/connection-status", json={"connected": True})

        status = client.get("/qr/status").json()
        assert status["has_challenge"] is False
        assert status["connected"] is True


class TestAdmin:
    def test_requires_token(self, client):
        assert client.get("/admin/status").status_code == 401
        assert client.get("/admin/status", headers={"X-Admin-Token": "nope"}).status_code == 401

    def test_status(self, client, runtime):
        runtime.registry.mark_completed(CUSTOMER_CHAT)
        runtime.sessions.get(CUSTOMER)

        data = client.get("/admin/status", headers=ADMIN_HEADERS).json()

        assert data["business_hours"]["open"] is True
        assert data["business_hours"]["next_closing"].startswith("2025-01-06T17:00")
        assert data["disabled_chats"]["completed_chats"] == 1
        assert data["sessions"]["total_users"] == 1
        assert data["reactivation"]["running"] is False

    def test_flush(self, client, runtime, tmp_path):
        runtime.sessions.sessions.clear()
        response = client.post("/admin/flush", headers=ADMIN_HEADERS)
        assert response.json() == {"success": True}
        assert (tmp_path / "data" / "states.json").exists()

    def test_backup_and_restore(self, client, runtime):
        runtime.sessions.get(CUSTOMER)
        created = client.post("/admin/backups", json={"name": "manual"}, headers=ADMIN_HEADERS).json()
        runtime.sessions.delete(CUSTOMER)

        restored = client.post("/admin/backups/restore", json={"name": created["file"]}, headers=ADMIN_HEADERS)

        assert restored.status_code == 200
        assert CUSTOMER in runtime.sessions
        names = [item["name"] for item in client.get("/admin/backups", headers=ADMIN_HEADERS).json()["backups"]]
        assert created["file"] in names

    def test_restore_missing_backup(self, client):
        response = client.post("/admin/backups/restore", json={"name": "nope.json"}, headers=ADMIN_HEADERS)
        assert response.status_code == 404


class TestHealth:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["business_open"] is True
