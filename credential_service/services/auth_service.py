from __future__ import annotations

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from credential_service.models.account import Account
from credential_service.repos.account_repo import AccountRepo

logger = logging.getLogger(__name__)

_ph = PasswordHasher()


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    # Argon2 embeds salt and parameters in the encoded string.
    return _ph.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def authenticate(repo: AccountRepo, email: str, password: str) -> Account | None:
    account = repo.get_by_email(email)
    if account is None or not account.is_active:
        return None
    if not verify_password(password, account.password_hash):
        return None

    # Upgrade the stored hash when the hasher's parameters have moved on.
    try:
        if _ph.check_needs_rehash(account.password_hash):
            repo.update_password_hash(account.id, _ph.hash(password))
            logger.info("Rehashed password for account=%s", account.id)
    except InvalidHash:
        return None

    return account
