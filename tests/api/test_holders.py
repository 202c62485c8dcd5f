from __future__ import annotations

from fastapi.testclient import TestClient

from credential_service.services.ledger import ledger_client
from tests.conftest import HOLDER_ADDRESS, auth_headers, future

HOLDER_EMAIL = "ada@example.com"


def _register(client: TestClient, email: str = HOLDER_EMAIL, token_email: str = HOLDER_EMAIL):
    return client.post(
        "/v1/holders/register",
        json={"address": HOLDER_ADDRESS, "name": "Ada Lovelace", "email": email},
        headers=auth_headers(token_email),
    )


def test_register_and_fetch_holder(client: TestClient) -> None:
    resp = _register(client)
    assert resp.status_code == 201
    receipt = resp.json()
    assert receipt["status"] == "confirmed"
    assert receipt["address"] == HOLDER_ADDRESS
    assert receipt["tx_hash"].startswith("0x")

    resp = client.get(f"/v1/holders/{HOLDER_ADDRESS}")
    assert resp.status_code == 200
    holder = resp.json()
    assert holder["name"] == "Ada Lovelace"
    assert holder["email"] == HOLDER_EMAIL
    assert holder["content_address"] == receipt["content_address"]
    assert holder["credential_count"] == 0
    assert holder["credential_ids"] == []


def test_register_requires_token(client: TestClient) -> None:
    resp = client.post(
        "/v1/holders/register",
        json={"address": HOLDER_ADDRESS, "name": "Ada", "email": HOLDER_EMAIL},
    )
    assert resp.status_code == 401


def test_register_for_another_email_is_403(client: TestClient) -> None:
    resp = _register(client, token_email="mallory@example.com")
    assert resp.status_code == 403
    assert resp.json()["detail"]["step"] == "authorize"


def test_pending_registration_resolves_by_polling(client: TestClient) -> None:
    ledger_client.auto_mine = False  # type: ignore[union-attr]

    resp = client.post(
        "/v1/holders/register",
        json={
            "address": HOLDER_ADDRESS,
            "name": "Ada Lovelace",
            "email": HOLDER_EMAIL,
            "confirm_timeout": 0,
        },
        headers=auth_headers(HOLDER_EMAIL),
    )
    assert resp.status_code == 202
    pending = resp.json()

    ledger_client.mine()  # type: ignore[union-attr]

    resp = client.get(f"/v1/credentials/transactions/{pending['tx_hash']}")
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "confirmed"
    assert data["kind"] == "register_holder"
    assert data["id"] == HOLDER_ADDRESS
    assert data["content_address"] == pending["content_address"]

    assert client.get(f"/v1/holders/{HOLDER_ADDRESS}").status_code == 200


def test_register_twice_is_409(client: TestClient) -> None:
    assert _register(client).status_code == 201
    resp = _register(client)
    assert resp.status_code == 409
    assert resp.json()["detail"]["message"] == "holder already registered"


def test_register_invalid_address_is_422(client: TestClient) -> None:
    resp = client.post(
        "/v1/holders/register",
        json={"address": "0x12", "name": "Ada", "email": HOLDER_EMAIL},
        headers=auth_headers(HOLDER_EMAIL),
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "address"


def test_unknown_holder_is_404(client: TestClient) -> None:
    resp = client.get(f"/v1/holders/{HOLDER_ADDRESS}")
    assert resp.status_code == 404


def test_holder_credentials_listed_with_verification(client: TestClient) -> None:
    _register(client)
    ids = []
    for school in ("X", "Y"):
        resp = client.post(
            "/v1/credentials/issue",
            json={
                "holder_address": HOLDER_ADDRESS,
                "type": "degree",
                "name": f"Degree from {school}",
                "expiry": future().isoformat(),
                "metadata": {"school": school},
            },
            headers=auth_headers(),
        )
        ids.append(resp.json()["id"])

    holder = client.get(f"/v1/holders/{HOLDER_ADDRESS}").json()
    assert holder["credential_count"] == 2
    assert holder["credential_ids"] == ids

    listed = client.get(f"/v1/holders/{HOLDER_ADDRESS}/credentials").json()
    assert [c["credential"]["id"] for c in listed] == ids
    assert [c["content"] for c in listed] == [{"school": "X"}, {"school": "Y"}]
    assert all(c["valid"] for c in listed)


def test_credentials_of_unknown_address_is_empty(client: TestClient) -> None:
    resp = client.get("/v1/holders/0x" + "99" * 20 + "/credentials")
    assert resp.status_code == 200
    assert resp.json() == []


def test_credentials_of_malformed_address_is_422(client: TestClient) -> None:
    resp = client.get("/v1/holders/nobody/credentials")
    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "address"
