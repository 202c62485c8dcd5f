from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from credential_service.core.errors import LedgerUnavailable
from credential_service.services.ledger import ledger_client


def test_health_reports_backends(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["checks"]["redis"] == "not_configured"
    assert data["backends"] == {
        "ledger": "InMemoryLedger",
        "content_store": "InMemoryContentStore",
    }


def test_ready_when_ledger_answers(client: TestClient) -> None:
    assert client.get("/ready").status_code == 200


def test_not_ready_when_ledger_unreachable(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _down(credential_id):
        raise LedgerUnavailable("ledger unreachable during verifyCredential: ConnectError")

    monkeypatch.setattr(ledger_client, "verify_credential", _down)
    assert client.get("/ready").status_code == 503
