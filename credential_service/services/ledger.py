"""Ledger client: typed calls against the credential registry contract.

The ledger is an external service with an asynchronous commit model.
Every write is two-phase:

    handle = await ledger.issue_credential(...)   # submit, returns at once
    confirmation = await ledger.confirm(handle)   # wait for finality

`confirm` polls for a receipt until the ledger reports the transaction
final or the wait budget runs out:

    receipt status ok       -> Confirmation(block_reference, committed_id)
    receipt status reverted -> TxReverted(reason)
                               AlreadyIssued(id) when the reason is the
                               contract's duplicate-id revert
    no receipt in time      -> TxTimeout(handle)

A TxTimeout says nothing about the transaction's fate: it may still be
mined.  Callers keep the handle and call `confirm` again later instead
of resubmitting.

Credential ids are derived by the contract from the issuance inputs
(issuer, holder, type, name, description, expiry, content address) with
no timestamp or nonce mixed in, so identical inputs always collide and
the second submission reverts with "credential already exists".

Timestamps cross this boundary as integer epoch seconds and are turned
into timezone-aware UTC datetimes here.

Implementations
---------------
  InMemoryLedger    simulated contract with explicit block production
  RpcLedgerClient   JSON-RPC 2.0 over httpx to a ledger gateway
"""

from __future__ import annotations

import asyncio
import hashlib
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

import httpx

from credential_service.core.config import SETTINGS
from credential_service.core.errors import (
    ALREADY_EXISTS_REASON,
    AlreadyIssued,
    LedgerSubmitFailure,
    LedgerUnavailable,
    RecordNotFound,
    TxReverted,
    TxTimeout,
)
from credential_service.core.metrics import LEDGER_CONFIRM_DURATION
from credential_service.models.credential import (
    Confirmation,
    CredentialRecord,
    TxHandle,
    TxKind,
)
from credential_service.models.holder import Holder

logger = logging.getLogger(__name__)

REASON_VALID = "valid"
REASON_REVOKED = "revoked"
REASON_EXPIRED = "expired"
REASON_NOT_FOUND = "not found"


def to_datetime(epoch_seconds: int) -> datetime:
    return datetime.fromtimestamp(int(epoch_seconds), UTC)


def to_epoch(moment: datetime) -> int:
    return int(moment.timestamp())


def derive_credential_id(
    *,
    issuer: str,
    holder: str,
    type: str,
    name: str,
    description: str,
    expiry: int,
    content_address: str,
) -> str:
    """32-byte id over the length-prefixed issuance inputs."""
    h = hashlib.sha256()
    for part in (issuer.lower(), holder.lower(), type, name, description, str(expiry), content_address):
        encoded = part.encode("utf-8")
        h.update(len(encoded).to_bytes(4, "big"))
        h.update(encoded)
    return "0x" + h.hexdigest()


@dataclass(frozen=True, slots=True)
class TxReceipt:
    tx_hash: str
    succeeded: bool
    block_reference: str
    committed_id: str | None = None
    revert_reason: str | None = None
    kind: TxKind | None = None


@runtime_checkable
class LedgerClient(Protocol):
    async def register_holder(
        self, address: str, name: str, email: str, content_address: str
    ) -> TxHandle: ...

    async def issue_credential(
        self,
        holder: str,
        type: str,
        name: str,
        description: str,
        expiry: datetime,
        content_address: str,
    ) -> TxHandle: ...

    async def revoke_credential(self, credential_id: str) -> TxHandle: ...
    async def authorize_issuer(self, issuer: str) -> TxHandle: ...
    async def confirm(self, handle: TxHandle, timeout: float | None = None) -> Confirmation: ...
    async def get_credential(self, credential_id: str) -> CredentialRecord: ...
    async def get_holder(self, address: str) -> Holder: ...
    async def get_holder_credentials(self, holder: str) -> list[str]: ...
    async def verify_credential(self, credential_id: str) -> tuple[bool, str]: ...
    async def aclose(self) -> None: ...


async def wait_for_receipt(
    fetch: Callable[[str], Awaitable[TxReceipt | None]],
    handle: TxHandle,
    *,
    timeout: float,
    poll_interval: float,
) -> Confirmation:
    """Poll `fetch` until a receipt appears or `timeout` seconds pass.

    Transport errors while polling are not failures of the transaction;
    they are logged and polling continues until the deadline.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    deadline = started + timeout

    while True:
        try:
            receipt = await fetch(handle.tx_hash)
        except LedgerUnavailable as e:
            logger.warning(
                "Receipt poll failed, will retry: %s",
                e.message,
                extra={"tx_hash": handle.tx_hash, "step": "ledger_confirm"},
            )
            receipt = None

        if receipt is not None:
            elapsed = loop.time() - started
            if receipt.succeeded:
                LEDGER_CONFIRM_DURATION.labels(result="confirmed").observe(elapsed)
                return Confirmation(
                    block_reference=receipt.block_reference,
                    committed_id=receipt.committed_id,
                    kind=receipt.kind,
                )
            LEDGER_CONFIRM_DURATION.labels(result="reverted").observe(elapsed)
            reason = receipt.revert_reason or "reverted"
            if reason == ALREADY_EXISTS_REASON and receipt.committed_id:
                raise AlreadyIssued(receipt.committed_id, block_reference=receipt.block_reference)
            raise TxReverted(reason, block_reference=receipt.block_reference, kind=receipt.kind)

        now = loop.time()
        if now >= deadline:
            LEDGER_CONFIRM_DURATION.labels(result="timeout").observe(now - started)
            raise TxTimeout(handle, now - started)
        await asyncio.sleep(min(poll_interval, deadline - now))


# ---------------------------------------------------------------------------
# In-memory ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _PendingTx:
    tx_hash: str
    kind: TxKind
    sender: str
    args: dict[str, Any]


class InMemoryLedger:
    """Simulated credential registry for dev and tests.

    Transactions queue in a mempool and take effect when a block is
    produced.  With `auto_mine=True` (the default) every submission is
    mined immediately; with `auto_mine=False` nothing is final until the
    test calls `mine()`, which is how pending/timeout paths are exercised.

    State transitions mirror the deployed contract: only the owner may
    authorize issuers, only authorized issuers may issue, only the
    original issuer may revoke, and revocation is one-way.
    """

    def __init__(
        self,
        *,
        signer: str,
        auto_mine: bool = True,
        confirm_timeout: float = 30.0,
        poll_interval: float = 0.01,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.signer = signer.lower()
        self.owner = self.signer
        self.auto_mine = auto_mine
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._clock = clock or (lambda: datetime.now(UTC))
        self.reset()

    def reset(self) -> None:
        """Drop all chain state; the signer stays owner and issuer."""
        self._issuers: set[str] = {self.owner}
        self._holders: dict[str, Holder] = {}
        self._credentials: dict[str, CredentialRecord] = {}
        self._holder_credentials: dict[str, list[str]] = {}
        self._mempool: list[_PendingTx] = []
        self._receipts: dict[str, TxReceipt] = {}
        self._block_number = 0
        self._nonce = itertools.count()

    # -- block production --------------------------------------------------

    def _now_epoch(self) -> int:
        return to_epoch(self._clock())

    def mine(self) -> str:
        """Produce a block containing every pending transaction."""
        self._block_number += 1
        block_hash = "0x" + hashlib.sha256(
            f"block:{self._block_number}:{len(self._mempool)}".encode()
        ).hexdigest()
        now = self._now_epoch()

        pending, self._mempool = self._mempool, []
        for tx in pending:
            committed_id, revert_reason = self._apply(tx, now)
            self._receipts[tx.tx_hash] = TxReceipt(
                tx_hash=tx.tx_hash,
                succeeded=revert_reason is None,
                block_reference=block_hash,
                committed_id=committed_id,
                revert_reason=revert_reason,
                kind=tx.kind,
            )
        return block_hash

    def _submit(self, kind: TxKind, args: dict[str, Any], content_address: str | None = None) -> TxHandle:
        tx_hash = "0x" + hashlib.sha256(
            f"{self.signer}:{next(self._nonce)}:{kind}".encode()
        ).hexdigest()
        self._mempool.append(_PendingTx(tx_hash=tx_hash, kind=kind, sender=self.signer, args=args))
        if self.auto_mine:
            self.mine()
        return TxHandle(tx_hash=tx_hash, kind=kind, content_address=content_address)

    def _apply(self, tx: _PendingTx, now: int) -> tuple[str | None, str | None]:
        """Run one transaction; returns (committed_id, revert_reason)."""
        a = tx.args

        if tx.kind == "authorize_issuer":
            if tx.sender != self.owner:
                return None, "only owner can authorize issuers"
            self._issuers.add(a["issuer"])
            return None, None

        if tx.kind == "register_holder":
            if a["address"] in self._holders:
                return None, "holder already registered"
            self._holders[a["address"]] = Holder(
                address=a["address"],
                name=a["name"],
                email=a["email"],
                content_address=a["content_address"],
                member_since=to_datetime(now),
            )
            return a["address"], None

        if tx.kind == "issue_credential":
            if tx.sender not in self._issuers:
                return None, "issuer not authorized"
            if a["expiry"] <= now:
                return None, "expiry must be in the future"
            credential_id = derive_credential_id(
                issuer=tx.sender,
                holder=a["holder"],
                type=a["type"],
                name=a["name"],
                description=a["description"],
                expiry=a["expiry"],
                content_address=a["content_address"],
            )
            if credential_id in self._credentials:
                return credential_id, ALREADY_EXISTS_REASON
            self._credentials[credential_id] = CredentialRecord(
                id=credential_id,
                issuer=tx.sender,
                holder=a["holder"],
                type=a["type"],
                name=a["name"],
                description=a["description"],
                issuance_time=to_datetime(now),
                expiry_time=to_datetime(a["expiry"]),
                content_address=a["content_address"],
            )
            self._holder_credentials.setdefault(a["holder"], []).append(credential_id)
            holder = self._holders.get(a["holder"])
            if holder is not None:
                self._holders[a["holder"]] = replace(
                    holder, credential_count=holder.credential_count + 1
                )
            return credential_id, None

        if tx.kind == "revoke_credential":
            record = self._credentials.get(a["credential_id"])
            if record is None:
                return None, "credential does not exist"
            if record.issuer != tx.sender:
                return None, "only issuer can revoke"
            if record.revoked:
                return record.id, "credential already revoked"
            self._credentials[record.id] = replace(record, revoked=True)
            return record.id, None

        return None, f"unknown transaction kind {tx.kind}"

    # -- writes --------------------------------------------------------------

    async def register_holder(
        self, address: str, name: str, email: str, content_address: str
    ) -> TxHandle:
        return self._submit(
            "register_holder",
            {"address": address.lower(), "name": name, "email": email, "content_address": content_address},
            content_address,
        )

    async def issue_credential(
        self,
        holder: str,
        type: str,
        name: str,
        description: str,
        expiry: datetime,
        content_address: str,
    ) -> TxHandle:
        return self._submit(
            "issue_credential",
            {
                "holder": holder.lower(),
                "type": type,
                "name": name,
                "description": description,
                "expiry": to_epoch(expiry),
                "content_address": content_address,
            },
            content_address,
        )

    async def revoke_credential(self, credential_id: str) -> TxHandle:
        return self._submit("revoke_credential", {"credential_id": credential_id.lower()})

    async def authorize_issuer(self, issuer: str) -> TxHandle:
        return self._submit("authorize_issuer", {"issuer": issuer.lower()})

    def _kind_of(self, tx_hash: str) -> TxKind | None:
        receipt = self._receipts.get(tx_hash)
        if receipt is not None:
            return receipt.kind
        for tx in self._mempool:
            if tx.tx_hash == tx_hash:
                return tx.kind
        return None

    async def _fetch_receipt(self, tx_hash: str) -> TxReceipt | None:
        return self._receipts.get(tx_hash)

    async def confirm(self, handle: TxHandle, timeout: float | None = None) -> Confirmation:
        kind = self._kind_of(handle.tx_hash)
        if kind is None:
            raise RecordNotFound(handle.tx_hash)
        if handle.kind is None:
            handle = replace(handle, kind=kind)
        return await wait_for_receipt(
            self._fetch_receipt,
            handle,
            timeout=self.confirm_timeout if timeout is None else timeout,
            poll_interval=self.poll_interval,
        )

    # -- reads ---------------------------------------------------------------

    async def get_credential(self, credential_id: str) -> CredentialRecord:
        record = self._credentials.get(credential_id.lower())
        if record is None:
            raise RecordNotFound(credential_id)
        return record

    async def get_holder(self, address: str) -> Holder:
        holder = self._holders.get(address.lower())
        if holder is None:
            raise RecordNotFound(address)
        return holder

    async def get_holder_credentials(self, holder: str) -> list[str]:
        return list(self._holder_credentials.get(holder.lower(), []))

    async def verify_credential(self, credential_id: str) -> tuple[bool, str]:
        record = self._credentials.get(credential_id.lower())
        if record is None:
            return False, REASON_NOT_FOUND
        if record.revoked:
            return False, REASON_REVOKED
        if to_epoch(record.expiry_time) <= self._now_epoch():
            return False, REASON_EXPIRED
        return True, REASON_VALID

    async def aclose(self) -> None:
        return None


# ---------------------------------------------------------------------------
# JSON-RPC ledger gateway client
# ---------------------------------------------------------------------------

# JSON-RPC error code the gateway uses for "execution reverted" at submit time.
_EXECUTION_REVERTED = 3

# Contract function named in a receipt's `method` field.
_METHOD_KINDS: dict[str, TxKind] = {
    "registerHolder": "register_holder",
    "issueCredential": "issue_credential",
    "revokeCredential": "revoke_credential",
    "authorizeIssuer": "authorize_issuer",
}


class RpcLedgerClient:
    """Async JSON-RPC client for a ledger gateway fronting the contract.

    Method names match the contract functions.  Write methods return
    `{"txHash": ...}` as soon as the node accepts the transaction;
    `getTransactionReceipt` returns null until it is mined, then names the
    contract function it executed in `method`.

    No call is retried here.  Reads surface LedgerUnavailable and writes
    LedgerSubmitFailure on transport errors; a write the node refuses
    during simulation raises TxReverted immediately.
    """

    def __init__(
        self,
        *,
        url: str,
        auth_token: str = "",
        timeout: float = 15.0,
        confirm_timeout: float = 30.0,
        poll_interval: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._ids = itertools.count(1)

        headers = {}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        self._http = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, params: dict[str, Any], *, write: bool = False) -> Any:
        failure = LedgerSubmitFailure if write else LedgerUnavailable
        request_id = next(self._ids)
        start = time.monotonic()

        try:
            response = await self._http.post(
                "",
                json={"jsonrpc": "2.0", "id": request_id, "method": method, "params": params},
            )
        except httpx.HTTPError as e:
            logger.warning("Ledger %s failed: %s", method, type(e).__name__)
            raise failure(f"ledger unreachable during {method}: {type(e).__name__}") from e

        if response.status_code >= 400:
            raise failure(f"ledger gateway returned {response.status_code} for {method}")

        try:
            body = response.json()
        except ValueError:
            raise failure(f"ledger gateway returned a non-JSON body for {method}") from None

        error = body.get("error")
        if error:
            code = error.get("code")
            message = error.get("message", "")
            data = error.get("data") or {}
            if write and code == _EXECUTION_REVERTED:
                reason = data.get("reason") or message
                if reason == ALREADY_EXISTS_REASON and data.get("credentialId"):
                    raise AlreadyIssued(data["credentialId"])
                raise TxReverted(reason)
            raise failure(f"ledger error {code} during {method}: {message}")

        logger.debug("Ledger %s ok in %.1fms", method, (time.monotonic() - start) * 1000)
        return body.get("result")

    async def _submit(
        self, method: str, params: dict[str, Any], kind: TxKind, content_address: str | None = None
    ) -> TxHandle:
        result = await self._call(method, params, write=True)
        try:
            tx_hash = result["txHash"]
        except (KeyError, TypeError):
            raise LedgerSubmitFailure(f"ledger response to {method} missing txHash") from None
        logger.info("Ledger %s submitted", method, extra={"tx_hash": tx_hash})
        return TxHandle(tx_hash=tx_hash, kind=kind, content_address=content_address)

    # -- writes --------------------------------------------------------------

    async def register_holder(
        self, address: str, name: str, email: str, content_address: str
    ) -> TxHandle:
        return await self._submit(
            "registerHolder",
            {"holder": address, "name": name, "email": email, "profileIpfsHash": content_address},
            "register_holder",
            content_address,
        )

    async def issue_credential(
        self,
        holder: str,
        type: str,
        name: str,
        description: str,
        expiry: datetime,
        content_address: str,
    ) -> TxHandle:
        return await self._submit(
            "issueCredential",
            {
                "holder": holder,
                "credentialType": type,
                "credentialName": name,
                "description": description,
                "expiryDate": to_epoch(expiry),
                "ipfsHash": content_address,
            },
            "issue_credential",
            content_address,
        )

    async def revoke_credential(self, credential_id: str) -> TxHandle:
        return await self._submit(
            "revokeCredential", {"credentialId": credential_id}, "revoke_credential"
        )

    async def authorize_issuer(self, issuer: str) -> TxHandle:
        return await self._submit("authorizeIssuer", {"issuer": issuer}, "authorize_issuer")

    async def _fetch_receipt(self, tx_hash: str) -> TxReceipt | None:
        result = await self._call("getTransactionReceipt", {"txHash": tx_hash})
        if result is None:
            return None
        return TxReceipt(
            tx_hash=tx_hash,
            succeeded=int(result.get("status", 0)) == 1,
            block_reference=str(result.get("blockHash") or result.get("blockNumber")),
            committed_id=result.get("credentialId"),
            revert_reason=result.get("revertReason"),
            kind=_METHOD_KINDS.get(result.get("method", "")),
        )

    async def confirm(self, handle: TxHandle, timeout: float | None = None) -> Confirmation:
        return await wait_for_receipt(
            self._fetch_receipt,
            handle,
            timeout=self.confirm_timeout if timeout is None else timeout,
            poll_interval=self.poll_interval,
        )

    # -- reads ---------------------------------------------------------------

    async def get_credential(self, credential_id: str) -> CredentialRecord:
        result = await self._call("getCredential", {"credentialId": credential_id})
        if not result:
            raise RecordNotFound(credential_id)
        return CredentialRecord(
            id=result["id"].lower(),
            issuer=result["issuer"].lower(),
            holder=result["holder"].lower(),
            type=result["credentialType"],
            name=result["credentialName"],
            description=result["description"],
            issuance_time=to_datetime(result["issuanceDate"]),
            expiry_time=to_datetime(result["expiryDate"]),
            content_address=result["ipfsHash"],
            revoked=bool(result["revoked"]),
        )

    async def get_holder(self, address: str) -> Holder:
        result = await self._call("getHolderProfile", {"holder": address})
        if not result:
            raise RecordNotFound(address)
        return Holder(
            address=result["holderAddress"].lower(),
            name=result["name"],
            email=result["email"],
            content_address=result["profileIpfsHash"],
            member_since=to_datetime(result["memberSince"]),
            credential_count=int(result["credentialCount"]),
        )

    async def get_holder_credentials(self, holder: str) -> list[str]:
        result = await self._call("getHolderCredentials", {"holder": holder})
        return [str(i).lower() for i in result or []]

    async def verify_credential(self, credential_id: str) -> tuple[bool, str]:
        result = await self._call("verifyCredential", {"credentialId": credential_id})
        # The contract returns the tuple (bool, string).
        if not isinstance(result, list) or len(result) != 2:
            raise LedgerUnavailable("ledger response to verifyCredential malformed")
        valid, reason = result
        return bool(valid), str(reason)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------


def build_ledger_client() -> LedgerClient:
    if SETTINGS.ledger_rpc_url:
        return RpcLedgerClient(
            url=SETTINGS.ledger_rpc_url,
            auth_token=SETTINGS.ledger_rpc_token,
            confirm_timeout=SETTINGS.ledger_confirm_timeout,
            poll_interval=SETTINGS.ledger_poll_interval,
        )
    return InMemoryLedger(
        signer=SETTINGS.ledger_signer_address,
        confirm_timeout=SETTINGS.ledger_confirm_timeout,
        poll_interval=min(SETTINGS.ledger_poll_interval, 0.05),
    )


ledger_client = build_ledger_client()
