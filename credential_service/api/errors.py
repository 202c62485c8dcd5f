"""Domain exception -> HTTPException translation.

Routers catch CredentialServiceError around each service call and
re-raise `http_error(e)`.  The body is always
`{"detail": {"message": ..., "step": ...}}` (plus `field` for
validation failures), so clients can tell where a workflow stopped.

    ValidationError                          422
    AuthError (MissingToken, InvalidToken)   401  + WWW-Authenticate
    PermissionDenied                         403
    NotFound                                 404
    LedgerRejected, IssuanceRejected         409
    ContentStoreFailure, LedgerSubmitFailure 502
    StoreUnavailable, LedgerUnavailable      503
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from credential_service.core.errors import (
    AuthError,
    ContentStoreFailure,
    CredentialServiceError,
    LedgerRejected,
    LedgerSubmitFailure,
    LedgerUnavailable,
    NotFound,
    PermissionDenied,
    StoreUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS: tuple[tuple[type[CredentialServiceError], int], ...] = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (LedgerRejected, status.HTTP_409_CONFLICT),
    (ContentStoreFailure, status.HTTP_502_BAD_GATEWAY),
    (LedgerSubmitFailure, status.HTTP_502_BAD_GATEWAY),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (LedgerUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(exc: CredentialServiceError) -> int:
    for exc_type, code in _STATUS:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def http_error(exc: CredentialServiceError) -> HTTPException:
    code = status_for(exc)
    detail: dict[str, str | None] = {"message": exc.message, "step": exc.step}
    if isinstance(exc, ValidationError) and exc.field:
        detail["field"] = exc.field

    headers = None
    if isinstance(exc, AuthError):
        headers = {"WWW-Authenticate": "Bearer"}

    if code >= 500:
        logger.error("Request failed at step=%s: %s", exc.step, exc.message)
    return HTTPException(status_code=code, detail=detail, headers=headers)
