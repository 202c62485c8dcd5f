"""Holder registration and lookup.

- POST /v1/holders/register                 register (bearer, self only)
- GET  /v1/holders/{address}                profile + credential ids
- GET  /v1/holders/{address}/credentials    every credential, verified
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from credential_service.api.credentials import VerificationOut, verification_out
from credential_service.api.dependencies import require_principal
from credential_service.api.errors import http_error
from credential_service.core.errors import CredentialServiceError
from credential_service.models.principal import Principal
from credential_service.services.issuance import issuance_coordinator
from credential_service.services.verification import verification_resolver

router = APIRouter(prefix="/v1/holders", tags=["holders"])


class HolderRegisterIn(BaseModel):
    address: str
    name: str
    email: str
    confirm_timeout: float | None = Field(default=None, ge=0)


class HolderReceiptOut(BaseModel):
    status: str
    address: str
    content_address: str
    tx_hash: str
    block_reference: str | None = None


class HolderOut(BaseModel):
    address: str
    name: str
    email: str
    content_address: str
    member_since: datetime
    credential_count: int
    credential_ids: list[str]


@router.post(
    "/register",
    response_model=HolderReceiptOut,
    status_code=status.HTTP_201_CREATED,
)
async def register_holder(
    body: HolderRegisterIn,
    response: Response,
    principal: Annotated[Principal, Depends(require_principal)],
) -> HolderReceiptOut:
    try:
        receipt = await issuance_coordinator.register_holder(
            address=body.address,
            name=body.name,
            email=body.email,
            principal=principal,
            confirm_timeout=body.confirm_timeout,
        )
    except CredentialServiceError as e:
        raise http_error(e) from None

    if receipt.status == "pending":
        response.status_code = status.HTTP_202_ACCEPTED
    return HolderReceiptOut(
        status=receipt.status,
        address=receipt.address,
        content_address=receipt.content_address,
        tx_hash=receipt.tx_hash,
        block_reference=receipt.block_reference,
    )


@router.get("/{address}", response_model=HolderOut)
async def get_holder(address: str) -> HolderOut:
    try:
        holder, credential_ids = await verification_resolver.get_holder(address)
    except CredentialServiceError as e:
        raise http_error(e) from None

    return HolderOut(
        address=holder.address,
        name=holder.name,
        email=holder.email,
        content_address=holder.content_address,
        member_since=holder.member_since,
        credential_count=holder.credential_count,
        credential_ids=credential_ids,
    )


@router.get("/{address}/credentials", response_model=list[VerificationOut])
async def list_holder_credentials(address: str) -> list[VerificationOut]:
    try:
        results = await verification_resolver.list_holder_credentials(address)
    except CredentialServiceError as e:
        raise http_error(e) from None
    return [verification_out(r) for r in results]
