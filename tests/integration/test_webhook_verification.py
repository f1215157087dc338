import hashlib
import hmac
import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from outreach.features.inbox.api import router as inbox_router
from outreach.features.inbox.domain import EmailDirection, EmailRecord
from outreach.features.inbox.services.ingestion_service import IngestResult, InboxIngestionService


def _make_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _body(**overrides) -> bytes:
    payload = {
        "from": "owner@acmevet.com",
        "to": "me@outreach.app",
        "subject": "Quote",
        "text": "Hello",
        "headers": [{"name": "Message-ID", "value": "<m1@acmevet.com>"}],
    }
    payload.update(overrides)
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(inbox_router.router)
    return TestClient(app)


@pytest.fixture
def ingest(monkeypatch):
    monkeypatch.setattr("outreach.features.inbox.api.router.settings.INBOUND_OWNER_USER_ID", "owner-1")
    monkeypatch.setattr("outreach.features.inbox.api.router.settings.INBOUND_WEBHOOK_SECRET", "test-secret")
    email = EmailRecord(
        id="<m1@acmevet.com>",
        sender="owner@acmevet.com",
        recipient="me@outreach.app",
        subject="Quote",
        text="Hello",
        timestamp=datetime(2024, 5, 1, tzinfo=UTC),
        direction=EmailDirection.RECEIVED,
        business_id="acme",
    )
    result = IngestResult(email=email, business_id="acme", strategy="sender", duplicate=False)
    mock = AsyncMock(return_value=result)
    monkeypatch.setattr(InboxIngestionService, "ingest", mock)
    return mock


def test_webhook_valid_signature(client, ingest):
    raw = _body()

    response = client.post(
        "/api/email/inbound",
        content=raw,
        headers={"x-webhook-signature": _make_signature("test-secret", raw), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert (data["email_id"], data["business_id"], data["strategy"]) == ("<m1@acmevet.com>", "acme", "sender")
    payload = ingest.await_args.args[0]
    assert payload["from"] == "owner@acmevet.com"
    assert payload["headers"] == [{"name": "Message-ID", "value": "<m1@acmevet.com>"}]


def test_webhook_accepts_prefixed_signature(client, ingest):
    raw = _body()

    response = client.post(
        "/api/email/inbound",
        content=raw,
        headers={"x-webhook-signature": "sha256=" + _make_signature("test-secret", raw)},
    )

    assert response.status_code == 200


def test_webhook_invalid_signature(client, ingest):
    response = client.post(
        "/api/email/inbound",
        content=_body(),
        headers={"x-webhook-signature": "bad", "Content-Type": "application/json"},
    )

    assert response.status_code == 401
    ingest.assert_not_awaited()


def test_webhook_missing_signature(client, ingest):
    response = client.post("/api/email/inbound", content=_body())

    assert response.status_code == 401


def test_webhook_without_secret_skips_verification(client, ingest, monkeypatch):
    monkeypatch.setattr("outreach.features.inbox.api.router.settings.INBOUND_WEBHOOK_SECRET", None)

    response = client.post("/api/email/inbound", content=_body())

    assert response.status_code == 200
    ingest.assert_awaited_once()


def test_webhook_without_owner_is_unavailable(client, ingest, monkeypatch):
    monkeypatch.setattr("outreach.features.inbox.api.router.settings.INBOUND_OWNER_USER_ID", None)

    response = client.post("/api/email/inbound", content=_body())

    assert response.status_code == 503


def test_webhook_rejects_malformed_body(client, ingest):
    raw = b"{not json"

    response = client.post(
        "/api/email/inbound",
        content=raw,
        headers={"x-webhook-signature": _make_signature("test-secret", raw)},
    )

    assert response.status_code == 400
    ingest.assert_not_awaited()
