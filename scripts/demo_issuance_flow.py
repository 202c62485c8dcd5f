"""Demo: walk register -> issue -> verify -> revoke using FastAPI TestClient.

Runs against the in-memory ledger and content store, so no gateway or
pinning service is needed.

Run with:
    python scripts/demo_issuance_flow.py
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient

from credential_service.main import app

ISSUER_EMAIL = "registrar@example.edu"
HOLDER_EMAIL = "ada@example.com"
HOLDER_ADDRESS = "0x" + "ab" * 20
PASSWORD = "demo-password"


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    client = TestClient(app)

    # ── Step 1: accounts ────────────────────────────────────────────
    issuer = client.post(
        "/auth/register",
        json={"name": "Registrar", "email": ISSUER_EMAIL, "password": PASSWORD},
    ).json()["accessToken"]
    holder = client.post(
        "/auth/register",
        json={"name": "Ada Lovelace", "email": HOLDER_EMAIL, "password": PASSWORD},
    ).json()["accessToken"]
    print("1. POST /auth/register (x2)            → tokens issued")

    # ── Step 2: holder registers their address ──────────────────────
    r = client.post(
        "/v1/holders/register",
        json={"address": HOLDER_ADDRESS, "name": "Ada Lovelace", "email": HOLDER_EMAIL},
        headers=_bearer(holder),
    )
    print(f"2. POST /v1/holders/register           → {r.status_code}  {r.json()['status']}")

    # ── Step 3: issuer issues a degree ──────────────────────────────
    r = client.post(
        "/v1/credentials/issue",
        json={
            "holder_address": HOLDER_ADDRESS,
            "type": "degree",
            "name": "BSc Mathematics",
            "expiry": (datetime.now(UTC) + timedelta(days=365 * 5)).isoformat(),
            "metadata": {"school": "X", "classification": "First"},
        },
        headers=_bearer(issuer),
    )
    receipt = r.json()
    credential_id = receipt["id"]
    print(f"3. POST /v1/credentials/issue          → {r.status_code}  {receipt['status']}")
    print(f"   id:      {credential_id}")
    print(f"   content: {receipt['content_address']}")

    # ── Step 4: anyone verifies ─────────────────────────────────────
    r = client.get(f"/v1/credentials/{credential_id}/verify")
    data = r.json()
    print(f"4. GET  /v1/credentials/{{id}}/verify    → valid={data['valid']}  content={data['content']}")

    # ── Step 5: revoke, then verify again ───────────────────────────
    r = client.post(f"/v1/credentials/{credential_id}/revoke", headers=_bearer(issuer))
    print(f"5. POST /v1/credentials/{{id}}/revoke    → {r.status_code}  {r.json()['status']}")

    r = client.get(f"/v1/credentials/{credential_id}/verify")
    data = r.json()
    print(f"6. GET  /v1/credentials/{{id}}/verify    → valid={data['valid']}  reason={data['reason']}")

    r = client.get(f"/v1/holders/{HOLDER_ADDRESS}")
    print(f"7. GET  /v1/holders/{{address}}          → credential_count={r.json()['credential_count']}")


if __name__ == "__main__":
    main()
