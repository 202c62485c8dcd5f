from __future__ import annotations

import pytest

from credential_service.api.errors import http_error
from credential_service.core.errors import (
    ContentNotFound,
    ContentStoreFailure,
    CredentialServiceError,
    InvalidToken,
    IssuanceRejected,
    LedgerRejected,
    LedgerSubmitFailure,
    LedgerUnavailable,
    MissingToken,
    PermissionDenied,
    RecordNotFound,
    StoreUnavailable,
    ValidationError,
)


@pytest.mark.parametrize(
    ("exc", "status"),
    [
        (ValidationError("bad", field="expiry"), 422),
        (MissingToken(), 401),
        (InvalidToken("Token expired"), 401),
        (PermissionDenied("not you"), 403),
        (RecordNotFound("0xabc"), 404),
        (ContentNotFound("bxyz"), 404),
        (LedgerRejected("credential already revoked"), 409),
        (IssuanceRejected("issuer not authorized"), 409),
        (ContentStoreFailure("content upload failed"), 502),
        (LedgerSubmitFailure("ledger unreachable"), 502),
        (StoreUnavailable("gateway down"), 503),
        (LedgerUnavailable("ledger unreachable"), 503),
        (CredentialServiceError("unexpected"), 500),
    ],
)
def test_status_mapping(exc: CredentialServiceError, status: int) -> None:
    assert http_error(exc).status_code == status


def test_detail_carries_step_and_field() -> None:
    err = http_error(ValidationError("Expiry must be in the future", field="expiry"))
    assert err.detail == {
        "message": "Expiry must be in the future",
        "step": "validate",
        "field": "expiry",
    }


def test_auth_errors_advertise_bearer_scheme() -> None:
    assert http_error(MissingToken()).headers == {"WWW-Authenticate": "Bearer"}
    assert http_error(PermissionDenied("no")).headers is None
