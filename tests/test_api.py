import asyncio
import json
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from sahayak.main import app
from sahayak.database import build_engine, create_db_and_tables, get_session
from sahayak.application.services.application_tracker import WebhookResult
from sahayak.deps import get_application_tracker, get_otp_sender, get_rate_limiter, get_signature_verifier, get_portal_client
from sahayak.infrastructure.portal.hmac_verifier import HmacSignatureVerifier, sign_body
from sahayak.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter

PHONE = "9876543210"
PORTAL = "government_portal"
SECRET = "portal-secret"


class CapturingSender:
    def __init__(self):
        self.codes = []

    def send(self, phone, code, purpose):
        self.codes.append(code)


@pytest.fixture()
def sender():
    return CapturingSender()


@pytest.fixture()
def client(sender):
    engine = build_engine("sqlite://")
    create_db_and_tables(bind=engine)

    def session_override():
        with Session(engine) as session:
            yield session

    limiter = InMemoryRateLimiter()
    app.dependency_overrides[get_session] = session_override
    app.dependency_overrides[get_otp_sender] = lambda: sender
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_signature_verifier] = lambda: HmacSignatureVerifier({PORTAL: SECRET})
    app.dependency_overrides[get_portal_client] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def assert_error(res, status, code):
    assert res.status_code == status
    body = res.json()
    assert body["success"] is False
    assert body["error"]["code"] == code
    assert body["error"]["message"]


def login(client, sender):
    res = client.post("/auth/send-otp", json={"phone": PHONE, "purpose": "registration"})
    session_id = res.json()["data"]["sessionId"]
    client.post("/auth/verify-otp", json={"sessionId": session_id, "otp": sender.codes[-1]})
    res = client.post("/auth/register", json={"sessionId": session_id, "name": "Meera Devi"})
    return res.json()["data"]


def test_registration_flow_then_login(client, sender):
    res = client.post("/auth/send-otp", json={"phone": PHONE, "purpose": "registration"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["sessionId"] and data["expiresAt"]

    res = client.post("/auth/verify-otp", json={"sessionId": data["sessionId"], "otp": sender.codes[-1]})
    assert res.status_code == 200
    assert res.json() == {
        "success": True,
        "requiresRegistration": True,
        "message": "OTP verified. Please complete registration.",
    }

    res = client.post("/auth/register", json={"sessionId": data["sessionId"], "name": "Meera Devi", "preferredLanguage": "hi"})
    assert res.status_code == 201
    registered = res.json()["data"]
    assert registered["token"] and registered["refreshToken"]

    # a registered phone logs straight in
    res = client.post("/auth/send-otp", json={"phone": PHONE})
    session_id = res.json()["data"]["sessionId"]
    res = client.post("/auth/verify-otp", json={"sessionId": session_id, "otp": sender.codes[-1]})
    assert res.status_code == 200
    assert res.json()["data"]["artisanId"] == registered["artisanId"]
    assert res.json()["data"]["expiresIn"] == 24 * 60 * 60


def test_me_refresh_and_logout(client, sender):
    tokens = login(client, sender)
    headers = {"Authorization": f"Bearer {tokens['token']}"}

    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["data"]["artisanId"] == tokens["artisanId"]
    assert me.json()["data"]["role"] == "artisan"

    refreshed = client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert refreshed.status_code == 200
    new_headers = {"Authorization": f"Bearer {refreshed.json()['data']['token']}"}

    assert_error(client.get("/auth/me", headers=headers), 401, "INVALID_TOKEN")
    assert client.post("/auth/logout", headers=new_headers).json()["data"] == {"loggedOut": True}
    assert_error(client.get("/auth/me", headers=new_headers), 401, "INVALID_TOKEN")
    assert_error(client.get("/auth/me"), 401, "INVALID_TOKEN")


def test_send_otp_errors(client, sender):
    assert_error(client.post("/auth/send-otp", json={}), 400, "MISSING_PHONE")
    assert_error(client.post("/auth/send-otp", json={"phone": "12345"}), 400, "INVALID_PHONE_FORMAT")
    assert_error(client.post("/auth/send-otp", json={"phone": PHONE, "purpose": "signup"}), 400, "INVALID_PURPOSE")
    assert sender.codes == []


def test_send_otp_rate_limited(client):
    for _ in range(3):
        assert client.post("/auth/send-otp", json={"phone": PHONE}).status_code == 200
    assert_error(client.post("/auth/send-otp", json={"phone": PHONE}), 429, "RATE_LIMITED")


def test_verify_otp_errors(client, sender):
    session_id = client.post("/auth/send-otp", json={"phone": PHONE}).json()["data"]["sessionId"]
    code = sender.codes[-1]
    wrong = "000000" if code != "000000" else "111111"

    assert_error(client.post("/auth/verify-otp", json={"sessionId": "nope", "otp": code}), 400, "INVALID_SESSION")
    for _ in range(3):
        assert_error(client.post("/auth/verify-otp", json={"sessionId": session_id, "otp": wrong}), 400, "INVALID_OTP")
    assert_error(client.post("/auth/verify-otp", json={"sessionId": session_id, "otp": code}), 429, "MAX_ATTEMPTS_EXCEEDED")


def submit(client, **overrides):
    body = {"artisanId": "artisan-1", "schemeId": "pm-vishwakarma", "formData": {"craft": "pottery"}}
    body.update(overrides)
    return client.post("/applications", json=body)


def signed_post(client, payload):
    raw = json.dumps(payload).encode()
    return client.post(
        "/webhooks/application-status",
        content=raw,
        headers={"Content-Type": "application/json", "X-Webhook-Signature": sign_body(SECRET, raw)},
    )


def test_submit_and_track_application(client):
    res = submit(client)
    assert res.status_code == 201
    app_data = res.json()["data"]
    assert app_data["status"] == "submitted"
    app_id = app_data["applicationId"]

    res = client.get(f"/applications/{app_id}")
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "submitted"
    assert res.json()["data"]["progress"] == 25
    view = res.json()["data"]
    assert view["currentStage"] == "Document Verification"
    assert view["nextActions"] == ["Wait for document verification", "Check status regularly"]
    submitted_at = datetime.fromisoformat(view["submittedAt"])
    assert datetime.fromisoformat(view["estimatedCompletion"]) - submitted_at == timedelta(days=30)

    timeline = client.get(f"/applications/{app_id}/timeline").json()["data"]
    assert [e["status"] for e in timeline["entries"]] == ["submitted"]


def test_submit_validation_error_shape(client):
    assert_error(submit(client, formData={}), 400, "VALIDATION_ERROR")
    assert_error(submit(client, schemeId=None), 400, "VALIDATION_ERROR")
    assert_error(submit(client, formData="pottery"), 400, "VALIDATION_ERROR")


def test_unknown_application_is_404(client):
    assert_error(client.get("/applications/app_missing"), 404, "NOT_FOUND")
    assert_error(client.get("/applications/app_missing/timeline"), 404, "NOT_FOUND")
    assert_error(client.get("/no-such-route"), 404, "NOT_FOUND")


def test_sync_endpoint(client):
    submit(client)
    submit(client, schemeId="mudra")
    res = client.get("/applications", params={"artisanId": "artisan-1"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert (data["total"], data["succeeded"], data["failed"]) == (2, 2, 0)
    assert data["lastSyncTime"] and data["nextSyncTime"]
    assert_error(client.get("/applications"), 400, "VALIDATION_ERROR")


def test_signed_webhook_updates_status_once(client):
    app_id = submit(client).json()["data"]["applicationId"]
    payload = {
        "event": "application.status_changed",
        "portalName": PORTAL,
        "timestamp": "2099-01-01T00:00:00Z",
        "data": {"applicationId": app_id, "status": "UnderReview", "eventId": "evt-9"},
    }

    first = signed_post(client, payload)
    assert first.status_code == 200
    assert first.json() == {"success": True, "processed": True, "message": "Status updated to under_review"}
    replay = signed_post(client, payload)
    assert replay.json()["message"] == "Duplicate event ignored"

    entries = client.get(f"/applications/{app_id}/timeline").json()["data"]["entries"]
    assert [e["status"] for e in entries] == ["submitted", "under_review"]
    assert entries[1]["source"] == "webhook"


def test_webhook_rejects_bad_signature(client):
    app_id = submit(client).json()["data"]["applicationId"]
    payload = {"event": "application.approved", "portalName": PORTAL, "data": {"applicationId": app_id}}
    res = client.post(
        "/webhooks/application-status",
        json=payload,
        headers={"X-Webhook-Signature": sign_body("guess", json.dumps(payload).encode())},
    )
    assert_error(res, 401, "INVALID_SIGNATURE")
    assert client.get(f"/applications/{app_id}").json()["data"]["status"] == "submitted"


def test_webhook_unknown_application_is_acknowledged_unprocessed(client):
    payload = {"event": "application.approved", "portalName": PORTAL, "data": {"applicationId": "app_missing"}}
    res = signed_post(client, payload)
    assert res.status_code == 200
    assert res.json()["processed"] is False


def test_webhook_tracker_runs_off_the_event_loop(client):
    calls = []

    class LoopCheckingTracker:
        def handle_webhook(self, payload, signature, raw_body=None):
            try:
                asyncio.get_running_loop()
                calls.append("event loop")
            except RuntimeError:
                calls.append("worker thread")
            return WebhookResult(processed=True, message="ok")

    app.dependency_overrides[get_application_tracker] = lambda: LoopCheckingTracker()
    res = signed_post(client, {"event": "application.approved", "portalName": PORTAL, "data": {"applicationId": "app_1"}})
    assert res.json() == {"success": True, "processed": True, "message": "ok"}
    assert calls == ["worker thread"]


def test_webhook_invalid_json(client):
    res = client.post("/webhooks/application-status", content=b"{not json", headers={"Content-Type": "application/json"})
    assert_error(res, 400, "VALIDATION_ERROR")


def test_webhook_challenge_echo(client):
    res = client.get("/webhooks/application-status", params={"challenge": "abc123"})
    assert res.json() == {"challenge": "abc123"}
    assert_error(client.get("/webhooks/application-status"), 400, "VALIDATION_ERROR")


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"
    assert res.headers["X-Content-Type-Options"] == "nosniff"
