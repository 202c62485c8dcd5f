from __future__ import annotations

import re

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_CREDENTIAL_ID_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_address(value: str) -> bool:
    """20-byte account address, 0x-prefixed hex (checksum case ignored)."""
    return bool(_ADDRESS_RE.match(value or ""))


def normalize_address(value: str) -> str:
    return value.strip().lower()


def is_credential_id(value: str) -> bool:
    """32-byte credential id, 0x-prefixed hex."""
    return bool(_CREDENTIAL_ID_RE.match(value or ""))


def normalize_credential_id(value: str) -> str:
    return value.strip().lower()


def is_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value or ""))
