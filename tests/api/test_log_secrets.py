"""Assert that passwords and bearer tokens never appear in log output."""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from tests.conftest import HOLDER_ADDRESS, future, mint_token

TEST_EMAIL = "secrets-test@example.com"
TEST_PASSWORD = "super-s3cret-p@ssw0rd!"


def test_register_does_not_log_password_or_token(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG):
        resp = client.post(
            "/auth/register",
            json={"name": "Secrets", "email": TEST_EMAIL, "password": TEST_PASSWORD},
        )

    all_log_text = " ".join(caplog.messages)
    assert TEST_PASSWORD not in all_log_text, "Password found in log output!"
    assert resp.json()["accessToken"] not in all_log_text, "Token found in log output!"


def test_failed_login_does_not_log_password(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG):
        client.post("/auth/login", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})

    assert TEST_PASSWORD not in " ".join(caplog.messages), "Password found in log output!"


def test_rejected_token_is_not_logged(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    forged = mint_token(TEST_EMAIL)[:-4] + "AAAA"
    with caplog.at_level(logging.DEBUG):
        resp = client.post(
            "/v1/credentials/revoke-me/revoke",
            headers={"Authorization": f"Bearer {forged}"},
        )

    assert resp.status_code == 401
    assert forged not in " ".join(caplog.messages), "Token found in log output!"


def test_issuance_does_not_log_bearer_token(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    token = mint_token(TEST_EMAIL)
    with caplog.at_level(logging.DEBUG):
        resp = client.post(
            "/v1/credentials/issue",
            json={
                "holder_address": HOLDER_ADDRESS,
                "type": "degree",
                "name": "BSc",
                "expiry": future().isoformat(),
                "metadata": {"school": "X"},
            },
            headers={"Authorization": f"Bearer {token}"},
        )

    assert resp.status_code == 201
    assert token not in " ".join(caplog.messages), "Token found in log output!"
