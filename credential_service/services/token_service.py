"""Bearer token issuance and verification (ES256 JWT).

A token binds an email identity to a seven-day session.  Nothing about
the session is stored server-side: the signed claim set is the session,
and expiry is enforced by the `exp` claim alone.

    issue_token(subject, claims) -> token
    verify_token(token)          -> claims, or MissingToken / InvalidToken
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from credential_service.core.config import SETTINGS
from credential_service.core.errors import InvalidToken, MissingToken

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------
# TOKEN_PRIVATE_KEY_PEM set: every instance shares one P-256 key.
# Unset (dev/test): an ephemeral key is generated on import, so tokens
# do not survive a restart and are not accepted by sibling processes.


def _load_private_key() -> ec.EllipticCurvePrivateKey:
    if SETTINGS.token_private_key_pem:
        key = serialization.load_pem_private_key(
            SETTINGS.token_private_key_pem.encode(), password=None
        )
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise ValueError("TOKEN_PRIVATE_KEY_PEM must be an EC private key")
        return key
    if SETTINGS.is_prod:
        logger.warning("TOKEN_PRIVATE_KEY_PEM not set; using an ephemeral signing key")
    return ec.generate_private_key(ec.SECP256R1())


_private_key = _load_private_key()
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "credential-service"
AUDIENCE = "credential-service"
SESSION_TTL_DAYS = 7

# Claims callers may not override through `claims`.
_RESERVED = frozenset({"sub", "iss", "aud", "exp", "iat", "jti"})


def issue_token(subject: str, claims: dict[str, Any] | None = None) -> str:
    """Build and sign a session token for `subject` (an email address)."""
    now = datetime.now(UTC)
    extra = {k: v for k, v in (claims or {}).items() if k not in _RESERVED}
    payload = {
        **extra,
        "sub": subject.strip().lower(),
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": now,
        "exp": now + timedelta(days=SESSION_TTL_DAYS),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def verify_token(token: str | None) -> dict[str, Any]:
    """Verify signature and claims and return the payload.

    Pins the algorithm to ES256 (no alg:none / alg switching) and checks
    exp, iss and aud.  Every failure mode other than "no token at all"
    is an InvalidToken; the message says which, for logs and 401 bodies.
    """
    if not token:
        raise MissingToken()
    try:
        return jwt.decode(
            token,
            _public_key,
            algorithms=[ALGORITHM],
            issuer=ISSUER,
            audience=AUDIENCE,
            options={"require": ["sub", "exp", "iat", "jti"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidToken("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.debug("Token rejected: %s", type(e).__name__)
        raise InvalidToken("Invalid token") from None
