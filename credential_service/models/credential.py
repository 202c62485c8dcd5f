from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

ReceiptStatus = Literal["confirmed", "pending", "already_issued"]
TxKind = Literal["register_holder", "issue_credential", "revoke_credential", "authorize_issuer"]


@dataclass(frozen=True, slots=True)
class CredentialRecord:
    """Confirmed on-ledger credential.

    Everything except `revoked` is fixed at confirmation; `revoked`
    only moves from False to True.
    """

    id: str
    issuer: str
    holder: str
    type: str
    name: str
    description: str
    issuance_time: datetime
    expiry_time: datetime
    content_address: str
    revoked: bool = False


@dataclass(frozen=True, slots=True)
class TxHandle:
    """Opaque reference to a submitted, not-yet-final ledger write.

    `tx_hash` alone is enough to resume confirmation later; the other
    fields are hints the submitter already knew.
    """

    tx_hash: str
    kind: TxKind | None = None
    content_address: str | None = None


@dataclass(frozen=True, slots=True)
class Confirmation:
    block_reference: str
    committed_id: str | None = None
    kind: TxKind | None = None


@dataclass(frozen=True, slots=True)
class IssuanceReceipt:
    """Result of an issuance request.

    confirmed:       the ledger committed `id` in `block_reference`.
    pending:         confirmation did not arrive in time; poll with `handle`.
    already_issued:  identical inputs were committed earlier under `id`.
    """

    status: ReceiptStatus
    id: str | None = None
    content_address: str | None = None
    block_reference: str | None = None
    handle: TxHandle | None = None


@dataclass(frozen=True, slots=True)
class RevocationReceipt:
    status: Literal["confirmed", "pending"]
    id: str
    block_reference: str | None = None
    handle: TxHandle | None = None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    valid: bool
    reason: str
    record: CredentialRecord | None = None
    content: dict[str, Any] | None = None
    content_unavailable: bool = False


@dataclass(frozen=True, slots=True)
class TransactionReceipt:
    """Result of polling a previously submitted write of any kind.

    `id` is the credential id for issuances and revocations and the
    holder address for registrations.  `kind` is None only while a
    gateway-backed transaction is still unmined.
    """

    status: ReceiptStatus
    tx_hash: str
    kind: TxKind | None = None
    id: str | None = None
    content_address: str | None = None
    block_reference: str | None = None
