"""Credential issuance, revocation and verification endpoints.

- POST /v1/credentials/issue                    issue (bearer)
- GET  /v1/credentials/transactions/{tx_hash}   resume any pending write
- POST /v1/credentials/{credential_id}/revoke   revoke (bearer)
- GET  /v1/credentials/{credential_id}/verify   public verification

Issuance answers with the receipt status encoded in the HTTP status:

  201 Created   confirmed: the record exists on the ledger now
  202 Accepted  pending: submitted, not final yet; poll with `tx_hash`
  200 OK        already_issued: identical inputs were committed earlier

A pending answer is not an invitation to resubmit.  The transaction may
still be mined; polling the returned tx_hash is how the caller learns
its fate.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from credential_service.api.dependencies import require_principal
from credential_service.api.errors import http_error
from credential_service.core.errors import CredentialServiceError
from credential_service.models.credential import (
    CredentialRecord,
    IssuanceReceipt,
    TransactionReceipt,
    TxHandle,
    VerificationResult,
)
from credential_service.models.principal import Principal
from credential_service.services.issuance import issuance_coordinator
from credential_service.services.verification import verification_resolver

router = APIRouter(prefix="/v1/credentials", tags=["credentials"])


# --- Request / Response schemas -------------------------------------------


class CredentialIssueIn(BaseModel):
    holder_address: str
    type: str
    name: str
    description: str = ""
    expiry: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)
    confirm_timeout: float | None = Field(default=None, ge=0)


class IssuanceOut(BaseModel):
    status: str
    id: str | None = None
    content_address: str | None = None
    block_reference: str | None = None
    tx_hash: str | None = None


class TransactionOut(BaseModel):
    status: str
    kind: str | None = None
    id: str | None = None
    content_address: str | None = None
    block_reference: str | None = None
    tx_hash: str


class RevocationIn(BaseModel):
    confirm_timeout: float | None = Field(default=None, ge=0)


class RevocationOut(BaseModel):
    status: str
    id: str
    block_reference: str | None = None
    tx_hash: str | None = None


class CredentialOut(BaseModel):
    id: str
    issuer: str
    holder: str
    type: str
    name: str
    description: str
    issued_at: datetime
    expires_at: datetime
    content_address: str
    revoked: bool


class VerificationOut(BaseModel):
    valid: bool
    reason: str
    credential: CredentialOut | None = None
    content: dict[str, Any] | None = None
    content_unavailable: bool = False


# --- mapping helpers --------------------------------------------------------

_ISSUANCE_STATUS = {
    "confirmed": status.HTTP_201_CREATED,
    "pending": status.HTTP_202_ACCEPTED,
    "already_issued": status.HTTP_200_OK,
}

# Writes that create a ledger record answer 201 once confirmed.
_CREATING_KINDS = frozenset({"issue_credential", "register_holder"})


def _issuance_out(receipt: IssuanceReceipt) -> IssuanceOut:
    return IssuanceOut(
        status=receipt.status,
        id=receipt.id,
        content_address=receipt.content_address,
        block_reference=receipt.block_reference,
        tx_hash=receipt.handle.tx_hash if receipt.handle else None,
    )


def credential_out(record: CredentialRecord) -> CredentialOut:
    return CredentialOut(
        id=record.id,
        issuer=record.issuer,
        holder=record.holder,
        type=record.type,
        name=record.name,
        description=record.description,
        issued_at=record.issuance_time,
        expires_at=record.expiry_time,
        content_address=record.content_address,
        revoked=record.revoked,
    )


def verification_out(result: VerificationResult) -> VerificationOut:
    return VerificationOut(
        valid=result.valid,
        reason=result.reason,
        credential=credential_out(result.record) if result.record else None,
        content=result.content,
        content_unavailable=result.content_unavailable,
    )


# --- POST /v1/credentials/issue ---------------------------------------------


@router.post("/issue", response_model=IssuanceOut, status_code=status.HTTP_201_CREATED)
async def issue_credential(
    body: CredentialIssueIn,
    response: Response,
    principal: Annotated[Principal, Depends(require_principal)],
) -> IssuanceOut:
    try:
        receipt = await issuance_coordinator.issue(
            holder_address=body.holder_address,
            type=body.type,
            name=body.name,
            description=body.description,
            expiry=body.expiry,
            metadata=body.metadata,
            principal=principal,
            confirm_timeout=body.confirm_timeout,
        )
    except CredentialServiceError as e:
        raise http_error(e) from None

    response.status_code = _ISSUANCE_STATUS[receipt.status]
    return _issuance_out(receipt)


# --- GET /v1/credentials/transactions/{tx_hash} ---------------------------


def _transaction_status(receipt: TransactionReceipt) -> int:
    if receipt.status == "confirmed" and receipt.kind not in _CREATING_KINDS:
        return status.HTTP_200_OK
    return _ISSUANCE_STATUS[receipt.status]


@router.get("/transactions/{tx_hash}", response_model=TransactionOut)
async def poll_transaction(
    tx_hash: str,
    response: Response,
    confirm_timeout: Annotated[float | None, Query(ge=0)] = None,
) -> TransactionOut:
    """Re-check a pending issuance, revocation or holder registration.

    Issuances answer with the same status codes as /issue; a confirmed
    registration is 201 and a confirmed revocation 200.
    """
    try:
        receipt = await issuance_coordinator.poll(
            TxHandle(tx_hash=tx_hash.lower()), confirm_timeout=confirm_timeout
        )
    except CredentialServiceError as e:
        raise http_error(e) from None

    response.status_code = _transaction_status(receipt)
    return TransactionOut(
        status=receipt.status,
        kind=receipt.kind,
        id=receipt.id,
        content_address=receipt.content_address,
        block_reference=receipt.block_reference,
        tx_hash=receipt.tx_hash,
    )


# --- POST /v1/credentials/{credential_id}/revoke --------------------------


@router.post("/{credential_id}/revoke", response_model=RevocationOut)
async def revoke_credential(
    credential_id: str,
    response: Response,
    principal: Annotated[Principal, Depends(require_principal)],
    body: RevocationIn | None = None,
) -> RevocationOut:
    try:
        receipt = await issuance_coordinator.revoke(
            credential_id,
            principal=principal,
            confirm_timeout=body.confirm_timeout if body else None,
        )
    except CredentialServiceError as e:
        raise http_error(e) from None

    if receipt.status == "pending":
        response.status_code = status.HTTP_202_ACCEPTED
    return RevocationOut(
        status=receipt.status,
        id=receipt.id,
        block_reference=receipt.block_reference,
        tx_hash=receipt.handle.tx_hash if receipt.handle else None,
    )


# --- GET /v1/credentials/{credential_id}/verify ---------------------------


@router.get("/{credential_id}/verify", response_model=VerificationOut)
async def verify_credential(credential_id: str) -> VerificationOut:
    """Public: anyone holding an id may check it."""
    try:
        result = await verification_resolver.verify(credential_id)
    except CredentialServiceError as e:
        raise http_error(e) from None
    return verification_out(result)
