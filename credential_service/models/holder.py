from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Holder:
    """Ledger identity record for a credential holder.

    Append-only on the ledger: created once by registration, and
    `credential_count` only ever grows when an issuance is confirmed.
    `content_address` points at the profile blob uploaded before the
    registration transaction was submitted.
    """

    address: str
    name: str
    email: str
    content_address: str
    member_since: datetime
    credential_count: int = 0


@dataclass(frozen=True, slots=True)
class HolderReceipt:
    status: str  # confirmed|pending
    address: str
    content_address: str
    tx_hash: str
    block_reference: str | None = None
