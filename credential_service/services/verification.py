"""Public credential verification.

The ledger is the authority on whether a credential is valid; the
content store only adds what the credential says.  So verification
degrades instead of failing:

    ledger has no record       -> valid=False, reason="not found"
                                  (content store is not contacted)
    record, content fetched    -> ledger valid/reason + content
    record, content missing or
    store unreachable          -> ledger valid/reason unchanged,
                                  content=None, content_unavailable=True

The validity check and the record read are independent and run
concurrently; the content fetch needs the record's address and runs
after.  Ledger transport failures (LedgerUnavailable) do propagate:
without the ledger there is no answer to give.
"""

from __future__ import annotations

import asyncio
import logging

from credential_service.core.errors import (
    ContentNotFound,
    RecordNotFound,
    StoreUnavailable,
    ValidationError,
)
from credential_service.core.metrics import VERIFICATION_RESULTS
from credential_service.models.credential import CredentialRecord, VerificationResult
from credential_service.models.holder import Holder
from credential_service.models.identifiers import (
    is_address,
    is_credential_id,
    normalize_address,
    normalize_credential_id,
)
from credential_service.services.content_store import ContentStore, content_store
from credential_service.services.ledger import (
    REASON_NOT_FOUND,
    LedgerClient,
    ledger_client,
)

logger = logging.getLogger(__name__)


class VerificationResolver:
    def __init__(self, store: ContentStore, ledger: LedgerClient) -> None:
        self._store = store
        self._ledger = ledger

    async def _record_or_none(self, credential_id: str) -> CredentialRecord | None:
        try:
            return await self._ledger.get_credential(credential_id)
        except RecordNotFound:
            return None

    async def verify(self, credential_id: str) -> VerificationResult:
        if not is_credential_id(credential_id):
            VERIFICATION_RESULTS.labels(result="not_found").inc()
            return VerificationResult(valid=False, reason=REASON_NOT_FOUND)
        credential_id = normalize_credential_id(credential_id)

        (valid, reason), record = await asyncio.gather(
            self._ledger.verify_credential(credential_id),
            self._record_or_none(credential_id),
        )

        if record is None:
            VERIFICATION_RESULTS.labels(result="not_found").inc()
            return VerificationResult(valid=False, reason=REASON_NOT_FOUND)

        try:
            content = await self._store.get(record.content_address)
        except (ContentNotFound, StoreUnavailable) as e:
            # A confirmed id without resolvable content: report, don't fail.
            VERIFICATION_RESULTS.labels(result="content_unavailable").inc()
            logger.warning(
                "Credential content unavailable: %s",
                e.message,
                extra={
                    "credential_id": credential_id,
                    "content_address": record.content_address,
                    "step": "content_fetch",
                },
            )
            return VerificationResult(
                valid=valid, reason=reason, record=record, content_unavailable=True
            )

        VERIFICATION_RESULTS.labels(result="valid" if valid else "invalid").inc()
        return VerificationResult(valid=valid, reason=reason, record=record, content=content)

    async def list_holder_credentials(self, holder: str) -> list[VerificationResult]:
        """Verify every credential the ledger lists for `holder`, in ledger order."""
        if not is_address(holder):
            raise ValidationError("Invalid address", field="address")
        ids = await self._ledger.get_holder_credentials(normalize_address(holder))
        return list(await asyncio.gather(*(self.verify(i) for i in ids)))

    async def get_holder(self, address: str) -> tuple[Holder, list[str]]:
        """Holder profile plus credential ids.  Raises NotFound for unknown holders."""
        if not is_address(address):
            raise RecordNotFound(address)
        address = normalize_address(address)
        holder, ids = await asyncio.gather(
            self._ledger.get_holder(address),
            self._ledger.get_holder_credentials(address),
        )
        return holder, ids


verification_resolver = VerificationResolver(content_store, ledger_client)
