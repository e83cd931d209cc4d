"""Schema definitions for claims.

A claim is one actor's report of a problem in one category. It maps 1:1
to the ``claims`` table.
"""

import enum
from dataclasses import dataclass
from datetime import datetime

# Incident categories an actor can report
KNOWN_CATEGORIES: tuple[str, ...] = (
    "login",
    "instance",
    "api",
    "auth",
    "download",
    "other",
)


class ClaimState(str, enum.Enum):
    """Claim lifecycle.

    Only ``active`` is ever written. ``counted`` and ``expired`` are
    reserved states with no transitions into them yet.
    """

    ACTIVE = "active"
    COUNTED = "counted"
    EXPIRED = "expired"


@dataclass
class Claim:
    """A stored claim.

    Attributes:
        actor_id: Who reported.
        category: One of KNOWN_CATEGORIES.
        created_at: Submission time (UTC).
        scope_id: Community the claim was made in, if any.
        content: Optional free-text detail.
        state: Lifecycle state.
        id: Store-assigned id; None until inserted.
    """

    actor_id: str
    category: str
    created_at: datetime
    scope_id: str | None = None
    content: str | None = None
    state: str = ClaimState.ACTIVE.value
    id: int | None = None


@dataclass
class ClaimAccepted:
    claim: Claim


@dataclass
class ClaimRejected:
    """The actor already holds an active claim inside the cooldown."""

    conflicting: Claim
    retry_after: datetime


ClaimResult = ClaimAccepted | ClaimRejected


class InvalidClaimError(ValueError):
    """Claim input failed validation."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class NotRegisteredError(Exception):
    """The scope or actor is not an enabled subscriber."""

    def __init__(self, kind: str, subject_id: str):
        super().__init__(f"{kind} {subject_id!r} is not registered")
        self.kind = kind
        self.subject_id = subject_id
