from types import SimpleNamespace

import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.testclient import TestClient

from outreach.auth import verify
from outreach.middleware import RequestContextMiddleware


def _app():
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/whoami")
    async def whoami(request: Request):
        return {"request_id": request.state.request_id}

    return app


def test_request_id_generated_and_returned():
    response = TestClient(_app()).get("/whoami")

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == response.json()["request_id"]


def test_incoming_request_id_is_kept():
    response = TestClient(_app()).get("/whoami", headers={"X-Request-ID": "req-42"})

    assert response.json() == {"request_id": "req-42"}
    assert response.headers["X-Request-ID"] == "req-42"


def test_unverifiable_token_is_401(monkeypatch):
    def broken(token):
        raise ValueError("bad key")

    monkeypatch.setattr(verify._jwk_client, "get_signing_key_from_jwt", broken)

    with pytest.raises(HTTPException) as exc:
        verify.verify_jwt("not-a-token")

    assert exc.value.status_code == 401


def test_token_without_subject_is_401(monkeypatch):
    monkeypatch.setattr(
        verify._jwk_client, "get_signing_key_from_jwt", lambda token: SimpleNamespace(key="k")
    )
    monkeypatch.setattr(verify.jwt, "decode", lambda *args, **kwargs: {"aud": "authenticated"})

    with pytest.raises(HTTPException) as exc:
        verify.verify_jwt("token")

    assert exc.value.detail == "Authentication token has no subject"


def test_bearer_token_takes_precedence_over_device(monkeypatch):
    from outreach.main import app

    def broken(token):
        raise ValueError("bad key")

    monkeypatch.setattr(verify._jwk_client, "get_signing_key_from_jwt", broken)

    response = TestClient(app).get(
        "/pipeline/stages", headers={"Authorization": "Bearer junk", "X-Device-ID": "device-1"}
    )

    assert response.status_code == 401
