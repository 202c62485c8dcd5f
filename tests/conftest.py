from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from credential_service.api.auth import account_repo
from credential_service.main import app
from credential_service.services import token_service
from credential_service.services.cache import cache_service
from credential_service.services.content_store import content_store
from credential_service.services.ledger import ledger_client

ISSUER_EMAIL = "registrar@example.edu"
HOLDER_ADDRESS = "0x" + "ab" * 20


@pytest.fixture(autouse=True)
def reset_ledger() -> None:
    """Fresh chain per test; submissions mine immediately unless a test says otherwise."""
    ledger_client.reset()  # type: ignore[union-attr]
    ledger_client.auto_mine = True  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_content_store() -> None:
    content_store.inner._blobs.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_accounts() -> None:
    account_repo._by_email.clear()
    account_repo._by_id.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(email: str = ISSUER_EMAIL, name: str | None = None) -> str:
    """Create a valid ES256 session token for testing."""
    return token_service.issue_token(email, {"name": name} if name else None)


def auth_headers(email: str = ISSUER_EMAIL) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(email)}"}


def future(days: int = 365) -> datetime:
    return datetime.now(UTC) + timedelta(days=days)


@pytest.fixture
def token() -> str:
    return mint_token()
