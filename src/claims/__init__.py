"""Claims: per-actor cooldown guard, storage and schemas.

The submission service lives in ``src.claims.service``; it depends on the
alert dispatcher, which in turn reads claims through this package.
"""

from src.claims.config import ClaimsConfig
from src.claims.cooldown import CooldownGuard
from src.claims.repository import ClaimRepository
from src.claims.schemas import (
    KNOWN_CATEGORIES,
    Claim,
    ClaimAccepted,
    ClaimRejected,
    ClaimResult,
    ClaimState,
    InvalidClaimError,
    NotRegisteredError,
)

__all__ = [
    "KNOWN_CATEGORIES",
    "Claim",
    "ClaimAccepted",
    "ClaimRejected",
    "ClaimRepository",
    "ClaimResult",
    "ClaimState",
    "ClaimsConfig",
    "CooldownGuard",
    "InvalidClaimError",
    "NotRegisteredError",
]
