"""Issuance coordination: content store first, ledger second.

The ledger and the content store fail independently, and neither can
take part in a transaction with the other.  The coordinator keeps them
consistent with one ordering rule and one retry rule.

STORE, THEN LINK
----------------
The payload is uploaded before any ledger transaction is submitted, so
a confirmed record always points at content that already exists.  The
reverse order could commit an id whose content never arrives.

    validate ──✗──> ValidationError        (nothing has happened)
        │
    store.put ──✗──> ContentStoreFailure   (no ledger call is made)
        │
    ledger.submit ──✗──> LedgerSubmitFailure   (blob is an orphan)
        │
    ledger.confirm
        ├── confirmed  -> receipt(status=confirmed)
        ├── duplicate  -> receipt(status=already_issued, id=existing)
        ├── timeout    -> receipt(status=pending, handle)
        └── reverted   -> IssuanceRejected(reason)  (blob is an orphan)

NEVER RETRY A WRITE
-------------------
An orphan blob is unreferenced content: harmless, and collectable by
the store's own retention policy.  A blind resubmission is not harmless.
After a timeout the first transaction may still be mined, and a second
upload of a payload that differs in any byte lands at a different
address, which derives a different id: two ledger records for one
credential.  So the coordinator returns a pending receipt with the
handle and lets the caller `poll` it.  Any resubmission is an explicit
new request from the caller.

Duplicate requests with identical inputs are not deduplicated here.
The ledger derives the same id for them and reverts the second with
"credential already exists", which comes back as `already_issued`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from credential_service.core.config import SETTINGS
from credential_service.core.errors import (
    AlreadyIssued,
    ContentStoreFailure,
    IssuanceRejected,
    LedgerRejected,
    LedgerSubmitFailure,
    MissingToken,
    PermissionDenied,
    StoreRejected,
    StoreUnavailable,
    TxReverted,
    TxTimeout,
    ValidationError,
)
from credential_service.core.metrics import ISSUANCE_OUTCOMES
from credential_service.models.credential import (
    IssuanceReceipt,
    RevocationReceipt,
    TransactionReceipt,
    TxHandle,
)
from credential_service.models.holder import HolderReceipt
from credential_service.models.identifiers import (
    is_address,
    is_credential_id,
    is_email,
    normalize_address,
    normalize_credential_id,
)
from credential_service.models.principal import Principal
from credential_service.services.content_store import (
    ContentStore,
    canonical_json,
    content_store,
)
from credential_service.services.ledger import LedgerClient, ledger_client

logger = logging.getLogger(__name__)


def _as_utc(moment: datetime) -> datetime:
    # Naive datetimes from clients are taken to be UTC.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


class IssuanceCoordinator:
    def __init__(
        self,
        store: ContentStore,
        ledger: LedgerClient,
        *,
        confirm_timeout: float = 30.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._confirm_timeout = confirm_timeout
        self._clock = clock or (lambda: datetime.now(UTC))

    def _wait_budget(self, confirm_timeout: float | None) -> float:
        # A caller deadline can shorten the wait, never extend it.
        if confirm_timeout is None:
            return self._confirm_timeout
        return max(0.0, min(confirm_timeout, self._confirm_timeout))

    async def _upload(self, payload: dict[str, Any]) -> str:
        try:
            return await self._store.put(payload)
        except (StoreUnavailable, StoreRejected) as e:
            logger.warning(
                "Content upload failed; no ledger call made: %s",
                e.message,
                extra={"step": "content_upload"},
            )
            raise ContentStoreFailure(f"content upload failed: {e.message}") from e

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def issue(
        self,
        *,
        holder_address: str,
        type: str,
        name: str,
        description: str,
        expiry: datetime,
        metadata: dict[str, Any],
        principal: Principal | None,
        confirm_timeout: float | None = None,
    ) -> IssuanceReceipt:
        """Upload `metadata`, record the credential on the ledger, wait for it.

        `metadata` is stored exactly as given, so verifying the returned
        id yields the same object back.
        """
        if principal is None:
            raise MissingToken()

        # Step 1: validate; no side effects before this passes.
        try:
            holder, expiry = self._validate_issue(holder_address, type, name, expiry, metadata)
        except ValidationError:
            ISSUANCE_OUTCOMES.labels(outcome="validation_error").inc()
            raise

        # Step 2: store.
        try:
            content_address = await self._upload(metadata)
        except ContentStoreFailure:
            ISSUANCE_OUTCOMES.labels(outcome="content_store_failure").inc()
            raise
        logger.info(
            "Credential content stored  issuer=%s",
            principal.email,
            extra={"content_address": content_address, "step": "content_upload"},
        )

        # Step 3: link.
        try:
            handle = await self._ledger.issue_credential(
                holder, type.strip(), name.strip(), description, expiry, content_address
            )
        except LedgerSubmitFailure:
            ISSUANCE_OUTCOMES.labels(outcome="ledger_submit_failure").inc()
            logger.warning(
                "Ledger submission failed; content left unreferenced",
                extra={"content_address": content_address, "step": "ledger_submit"},
            )
            raise
        except AlreadyIssued as e:
            ISSUANCE_OUTCOMES.labels(outcome="already_issued").inc()
            return IssuanceReceipt(
                status="already_issued", id=e.credential_id, content_address=content_address
            )
        except TxReverted as e:
            ISSUANCE_OUTCOMES.labels(outcome="rejected").inc()
            raise IssuanceRejected(e.reason, step="ledger_submit") from e

        # Steps 4-5: confirm.
        return await self._settle(handle, content_address, self._wait_budget(confirm_timeout))

    def _validate_issue(
        self,
        holder_address: str,
        type: str,
        name: str,
        expiry: datetime,
        metadata: Any,
    ) -> tuple[str, datetime]:
        if not is_address(holder_address):
            raise ValidationError("Invalid holder address", field="holder_address")
        if not type or not type.strip():
            raise ValidationError("Credential type is required", field="type")
        if not name or not name.strip():
            raise ValidationError("Credential name is required", field="name")

        expiry = _as_utc(expiry)
        if expiry <= self._clock():
            raise ValidationError("Expiry must be in the future", field="expiry")

        try:
            canonical_json(metadata)
        except StoreRejected as e:
            raise ValidationError(e.message, field="metadata") from None

        return normalize_address(holder_address), expiry

    async def _settle(
        self, handle: TxHandle, content_address: str, timeout: float
    ) -> IssuanceReceipt:
        try:
            confirmation = await self._ledger.confirm(handle, timeout=timeout)
        except TxTimeout:
            ISSUANCE_OUTCOMES.labels(outcome="pending").inc()
            logger.info(
                "Issuance not final within %.1fs; returning pending receipt",
                timeout,
                extra={"tx_hash": handle.tx_hash, "step": "ledger_confirm"},
            )
            return IssuanceReceipt(
                status="pending", content_address=content_address, handle=handle
            )
        except AlreadyIssued as e:
            ISSUANCE_OUTCOMES.labels(outcome="already_issued").inc()
            logger.info(
                "Credential already on ledger",
                extra={"credential_id": e.credential_id, "tx_hash": handle.tx_hash},
            )
            return IssuanceReceipt(
                status="already_issued",
                id=e.credential_id,
                content_address=content_address,
                block_reference=e.block_reference,
            )
        except TxReverted as e:
            ISSUANCE_OUTCOMES.labels(outcome="rejected").inc()
            logger.warning(
                "Issuance reverted: %s",
                e.reason,
                extra={"tx_hash": handle.tx_hash, "step": "ledger_confirm"},
            )
            raise IssuanceRejected(e.reason) from e

        credential_id = confirmation.committed_id
        ISSUANCE_OUTCOMES.labels(outcome="confirmed").inc()
        logger.info(
            "Credential issued",
            extra={
                "credential_id": credential_id,
                "tx_hash": handle.tx_hash,
                "content_address": content_address,
            },
        )
        return IssuanceReceipt(
            status="confirmed",
            id=credential_id,
            content_address=content_address,
            block_reference=confirmation.block_reference,
            handle=handle,
        )

    async def poll(
        self, handle: TxHandle, confirm_timeout: float | None = None
    ) -> TransactionReceipt:
        """Resume confirmation of a previously pending write of any kind.

        The ledger receipt names the kind of write the hash settled, and the
        answer is built for that kind: a registration reports the holder
        address, a revocation the revoked id.  Only issuances read the
        credential record and count toward issuance outcomes.

        A short default wait keeps polling requests snappy; the caller can
        pass a longer `confirm_timeout` (still capped by the configured one).
        """
        timeout = self._wait_budget(0.0 if confirm_timeout is None else confirm_timeout)
        try:
            confirmation = await self._ledger.confirm(handle, timeout=timeout)
        except TxTimeout as e:
            kind = e.handle.kind or handle.kind
            if kind == "issue_credential":
                ISSUANCE_OUTCOMES.labels(outcome="pending").inc()
            logger.info(
                "Transaction still pending  kind=%s",
                kind,
                extra={"tx_hash": handle.tx_hash, "step": "ledger_confirm"},
            )
            return TransactionReceipt(
                status="pending",
                tx_hash=handle.tx_hash,
                kind=kind,
                content_address=handle.content_address,
            )
        except AlreadyIssued as e:
            ISSUANCE_OUTCOMES.labels(outcome="already_issued").inc()
            return TransactionReceipt(
                status="already_issued",
                tx_hash=handle.tx_hash,
                kind="issue_credential",
                id=e.credential_id,
                content_address=handle.content_address,
                block_reference=e.block_reference,
            )
        except TxReverted as e:
            logger.warning(
                "Transaction reverted: %s",
                e.reason,
                extra={"tx_hash": handle.tx_hash, "step": "ledger_confirm"},
            )
            if e.kind == "issue_credential":
                ISSUANCE_OUTCOMES.labels(outcome="rejected").inc()
                raise IssuanceRejected(e.reason) from e
            raise LedgerRejected(e.reason) from e

        kind = confirmation.kind or handle.kind
        committed_id = confirmation.committed_id
        content_address = handle.content_address
        if kind == "issue_credential" and committed_id is not None:
            if content_address is None:
                record = await self._ledger.get_credential(committed_id)
                content_address = record.content_address
            ISSUANCE_OUTCOMES.labels(outcome="confirmed").inc()
        elif kind == "register_holder" and committed_id is not None and content_address is None:
            holder = await self._ledger.get_holder(committed_id)
            content_address = holder.content_address

        logger.info(
            "Transaction confirmed  kind=%s",
            kind,
            extra={"tx_hash": handle.tx_hash, "content_address": content_address},
        )
        return TransactionReceipt(
            status="confirmed",
            tx_hash=handle.tx_hash,
            kind=kind,
            id=committed_id,
            content_address=content_address,
            block_reference=confirmation.block_reference,
        )

    async def revoke(
        self,
        credential_id: str,
        *,
        principal: Principal | None,
        confirm_timeout: float | None = None,
    ) -> RevocationReceipt:
        if principal is None:
            raise MissingToken()
        if not is_credential_id(credential_id):
            raise ValidationError("Invalid credential id", field="credential_id")
        credential_id = normalize_credential_id(credential_id)

        try:
            handle = await self._ledger.revoke_credential(credential_id)
        except TxReverted as e:
            raise LedgerRejected(e.reason, step="ledger_submit") from e

        timeout = self._wait_budget(confirm_timeout)
        try:
            confirmation = await self._ledger.confirm(handle, timeout=timeout)
        except TxTimeout:
            return RevocationReceipt(status="pending", id=credential_id, handle=handle)
        except TxReverted as e:
            logger.warning(
                "Revocation reverted: %s", e.reason, extra={"credential_id": credential_id}
            )
            raise LedgerRejected(e.reason) from e

        logger.info(
            "Credential revoked  by=%s", principal.email, extra={"credential_id": credential_id}
        )
        return RevocationReceipt(
            status="confirmed",
            id=credential_id,
            block_reference=confirmation.block_reference,
            handle=handle,
        )

    # ------------------------------------------------------------------
    # Holders
    # ------------------------------------------------------------------

    async def register_holder(
        self,
        *,
        address: str,
        name: str,
        email: str,
        principal: Principal | None,
        confirm_timeout: float | None = None,
    ) -> HolderReceipt:
        """Store the holder profile, then record the holder on the ledger.

        Only the person the profile describes may register it: the token
        subject must equal `email`.
        """
        if principal is None:
            raise MissingToken()
        if not is_address(address):
            raise ValidationError("Invalid address", field="address")
        email = email.strip().lower()
        if not is_email(email):
            raise ValidationError("Invalid email address", field="email")
        name = name.strip()
        if not name:
            raise ValidationError("Name is required", field="name")
        if not principal.is_subject(email):
            logger.warning("Holder registration denied  subject=%s", principal.email)
            raise PermissionDenied("Token subject does not match holder email")

        address = normalize_address(address)
        profile = {
            "name": name,
            "email": email,
            "registeredAt": self._clock().isoformat(),
        }
        content_address = await self._upload(profile)

        try:
            handle = await self._ledger.register_holder(address, name, email, content_address)
        except LedgerSubmitFailure:
            logger.warning(
                "Holder registration submit failed; profile left unreferenced",
                extra={"content_address": content_address, "step": "ledger_submit"},
            )
            raise
        except TxReverted as e:
            raise LedgerRejected(e.reason, step="ledger_submit") from e

        try:
            confirmation = await self._ledger.confirm(
                handle, timeout=self._wait_budget(confirm_timeout)
            )
        except TxTimeout:
            return HolderReceipt(
                status="pending",
                address=address,
                content_address=content_address,
                tx_hash=handle.tx_hash,
            )
        except TxReverted as e:
            raise LedgerRejected(e.reason) from e

        logger.info("Holder registered  address=%s", address, extra={"tx_hash": handle.tx_hash})
        return HolderReceipt(
            status="confirmed",
            address=address,
            content_address=content_address,
            tx_hash=handle.tx_hash,
            block_reference=confirmation.block_reference,
        )


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

issuance_coordinator = IssuanceCoordinator(
    content_store,
    ledger_client,
    confirm_timeout=SETTINGS.ledger_confirm_timeout,
)
