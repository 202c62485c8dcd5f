from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from credential_service.models.account import Account


class AccountRepo(Protocol):
    def get_by_email(self, email: str) -> Account | None: ...
    def add(self, account: Account) -> None: ...
    def update_password_hash(self, account_id: UUID, password_hash: str) -> None: ...


class InMemoryAccountRepo:
    def __init__(self) -> None:
        self._by_email: dict[str, Account] = {}
        self._by_id: dict[UUID, Account] = {}

    def get_by_email(self, email: str) -> Account | None:
        return self._by_email.get(email.strip().lower())

    def add(self, account: Account) -> None:
        if account.email in self._by_email:
            raise ValueError("email already exists")
        self._by_email[account.email] = account
        self._by_id[account.id] = account

    def update_password_hash(self, account_id: UUID, password_hash: str) -> None:
        a = self._by_id.get(account_id)
        if a is None:
            raise KeyError("account not found")

        updated = replace(a, password_hash=password_hash)
        self._by_id[account_id] = updated
        self._by_email[updated.email] = updated
