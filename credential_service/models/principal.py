from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated bearer token.

    Carried through the request via FastAPI's dependency system and
    passed explicitly into every mutating workflow, which compares it
    against the identity the request acts on.

        email: token subject
        name:  display name claim, when the token carries one
        claims: the full verified claim set
    """

    email: str
    name: str | None = None
    claims: dict = field(default_factory=dict, compare=False)

    def is_subject(self, email: str) -> bool:
        return self.email == email.strip().lower()
