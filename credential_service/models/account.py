from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Account:
    """Login identity for someone allowed to call mutating endpoints."""

    id: UUID
    email: str
    name: str
    password_hash: str
    is_active: bool = True

    @staticmethod
    def new(*, email: str, name: str, password_hash: str) -> Account:
        return Account(
            id=uuid4(),
            email=email,
            name=name,
            password_hash=password_hash,
            is_active=True,
        )
