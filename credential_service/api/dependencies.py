from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from credential_service.api.errors import http_error
from credential_service.core.errors import AuthError
from credential_service.models.principal import Principal
from credential_service.services import token_service

logger = logging.getLogger(__name__)

# auto_error=False: a missing header reaches require_principal, which
# answers 401 with the same body shape as every other auth failure.
bearer_scheme = HTTPBearer(auto_error=False)


def require_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Principal:
    """Validate the bearer token and return the Principal it names.

    Used as a FastAPI dependency on every mutating endpoint.
    """
    raw_token = credentials.credentials if credentials is not None else None
    try:
        claims = token_service.verify_token(raw_token)
    except AuthError as e:
        logger.warning("Bearer token rejected: %s", e.message)
        raise http_error(e) from None

    principal = Principal(email=claims["sub"], name=claims.get("name"), claims=claims)
    logger.debug("Token validated for subject=%s", principal.email)
    return principal
