from __future__ import annotations

from fastapi.testclient import TestClient

from credential_service.services import token_service

EMAIL = "registrar@example.edu"
PASSWORD = "correct-horse-battery"


def _register(client: TestClient, **overrides):
    body = {"name": "Registrar", "email": EMAIL, "password": PASSWORD}
    body.update(overrides)
    return client.post("/auth/register", json=body)


def test_register_returns_token_for_email_subject(client: TestClient) -> None:
    resp = _register(client, email="  Registrar@Example.edu ")
    assert resp.status_code == 201
    data = resp.json()
    assert data["user"]["email"] == EMAIL
    assert data["user"]["name"] == "Registrar"

    claims = token_service.verify_token(data["accessToken"])
    assert claims["sub"] == EMAIL
    assert claims["name"] == "Registrar"


def test_register_duplicate_is_409(client: TestClient) -> None:
    assert _register(client).status_code == 201
    assert _register(client).status_code == 409


def test_register_validation(client: TestClient) -> None:
    assert _register(client, email="not-an-email").status_code == 422
    assert _register(client, name="   ").status_code == 422
    assert _register(client, password="short").status_code == 422


def test_login_success(client: TestClient) -> None:
    _register(client)
    resp = client.post("/auth/login", json={"email": EMAIL, "password": PASSWORD})
    assert resp.status_code == 200
    assert token_service.verify_token(resp.json()["accessToken"])["sub"] == EMAIL


def test_login_wrong_password_is_401(client: TestClient) -> None:
    _register(client)
    resp = client.post("/auth/login", json={"email": EMAIL, "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json()["detail"]["message"] == "Invalid email or password"


def test_login_unknown_email_is_401(client: TestClient) -> None:
    resp = client.post("/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert resp.status_code == 401


def test_login_token_authorizes_issuance(client: TestClient) -> None:
    from tests.conftest import HOLDER_ADDRESS, future

    token = _register(client).json()["accessToken"]
    resp = client.post(
        "/v1/credentials/issue",
        json={
            "holder_address": HOLDER_ADDRESS,
            "type": "certificate",
            "name": "First Aid",
            "expiry": future(30).isoformat(),
            "metadata": {"provider": "Red Cross"},
        },
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 201
