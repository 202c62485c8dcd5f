"""Exception taxonomy shared by every component.

Each exception names the boundary it came from and, where it matters to
the caller, the workflow step that failed (`step`).  Routers translate
these into HTTP responses in one place (api/errors.py); services never
catch and discard them.

    CredentialServiceError
    ├── ValidationError              bad input, nothing happened yet
    ├── NotFound
    │   ├── ContentNotFound          unknown content address
    │   └── RecordNotFound           unknown ledger id / holder
    ├── StoreUnavailable             content store transport failure
    ├── StoreRejected                content store refused the payload
    ├── ContentStoreFailure          issuance aborted at the upload step
    ├── LedgerSubmitFailure          transaction never reached the ledger
    ├── LedgerUnavailable            ledger read transport failure
    ├── TxTimeout                    no finality within the wait budget
    ├── TxReverted                   ledger rejected the transaction
    │   └── AlreadyIssued            revert meaning "id already exists"
    ├── LedgerRejected               business rejection surfaced to callers
    │   └── IssuanceRejected
    ├── PermissionDenied             token subject is not the actor
    └── AuthError
        ├── MissingToken
        └── InvalidToken
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from credential_service.models.credential import TxHandle, TxKind


class CredentialServiceError(Exception):
    """Base class; `step` identifies where in a workflow the error arose."""

    def __init__(self, message: str, *, step: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.step = step


class ValidationError(CredentialServiceError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message, step="validate")
        self.field = field


# --- content store ---------------------------------------------------------


class NotFound(CredentialServiceError):
    pass


class ContentNotFound(NotFound):
    def __init__(self, content_address: str) -> None:
        super().__init__(f"content not found: {content_address}", step="content_fetch")
        self.content_address = content_address


class RecordNotFound(NotFound):
    def __init__(self, key: str) -> None:
        super().__init__(f"ledger record not found: {key}", step="ledger_read")
        self.key = key


class StoreUnavailable(CredentialServiceError):
    pass


class StoreRejected(CredentialServiceError):
    pass


class ContentStoreFailure(CredentialServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, step="content_upload")


# --- ledger ----------------------------------------------------------------


class LedgerSubmitFailure(CredentialServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, step="ledger_submit")


class LedgerUnavailable(CredentialServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, step="ledger_read")


class TxTimeout(CredentialServiceError):
    def __init__(self, handle: TxHandle, waited: float) -> None:
        super().__init__(
            f"transaction {handle.tx_hash} not final after {waited:.1f}s",
            step="ledger_confirm",
        )
        self.handle = handle
        self.waited = waited


class TxReverted(CredentialServiceError):
    def __init__(
        self,
        reason: str,
        *,
        block_reference: str | None = None,
        kind: TxKind | None = None,
    ) -> None:
        super().__init__(f"transaction reverted: {reason}", step="ledger_confirm")
        self.reason = reason
        self.block_reference = block_reference
        self.kind = kind


class AlreadyIssued(TxReverted):
    def __init__(self, credential_id: str, *, block_reference: str | None = None) -> None:
        super().__init__(
            ALREADY_EXISTS_REASON, block_reference=block_reference, kind="issue_credential"
        )
        self.credential_id = credential_id


class LedgerRejected(CredentialServiceError):
    def __init__(self, reason: str, *, step: str = "ledger_confirm") -> None:
        super().__init__(reason, step=step)
        self.reason = reason


class IssuanceRejected(LedgerRejected):
    pass


# --- auth ------------------------------------------------------------------


class PermissionDenied(CredentialServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, step="authorize")


class AuthError(CredentialServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, step="authenticate")


class MissingToken(AuthError):
    def __init__(self) -> None:
        super().__init__("Not authenticated")


class InvalidToken(AuthError):
    pass


# Revert reason the contract uses for a duplicate credential id.
ALREADY_EXISTS_REASON = "credential already exists"
