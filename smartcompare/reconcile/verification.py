"""Verification lifecycle for competitor listings.

A listing moves ``unverified -> searching -> verified | failed``. A failed
listing can only become verified again through the repair step, and the
state it lands in carries ``is_alternative=True``. The alternative flag is
part of the state value, so it can never be set on a non-verified listing.
"""

from dataclasses import dataclass
from enum import Enum

from smartcompare.errors import InvalidTransitionError


class VerificationStatus(str, Enum):
    """Verification tags exposed to consumers."""

    UNVERIFIED = "unverified"
    SEARCHING = "searching"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class VerificationState:
    """Tagged verification state of a single listing."""

    status: VerificationStatus = VerificationStatus.UNVERIFIED
    is_alternative: bool = False

    def __post_init__(self):
        if self.is_alternative and self.status != VerificationStatus.VERIFIED:
            raise ValueError("Only verified listings can be alternatives")

    @property
    def is_verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    @property
    def is_failed(self) -> bool:
        return self.status == VerificationStatus.FAILED

    def __str__(self) -> str:
        if self.is_alternative:
            return f"{self.status.value} (alternative)"
        return self.status.value


UNVERIFIED = VerificationState(VerificationStatus.UNVERIFIED)
SEARCHING = VerificationState(VerificationStatus.SEARCHING)
VERIFIED = VerificationState(VerificationStatus.VERIFIED)
REPAIRED = VerificationState(VerificationStatus.VERIFIED, is_alternative=True)
FAILED = VerificationState(VerificationStatus.FAILED)


def begin_search(state: VerificationState) -> VerificationState:
    """Start a verification pass. Allowed from every state."""
    return SEARCHING


def confirm(state: VerificationState) -> VerificationState:
    """Primary match found: the listing's own offer is live."""
    if state.is_failed:
        raise InvalidTransitionError(
            str(state), str(VERIFIED), "failed listings are verified only through repair"
        )
    return VERIFIED


def fail(state: VerificationState) -> VerificationState:
    """No primary match. Provisional until the repair step has run."""
    if state.is_verified:
        raise InvalidTransitionError(str(state), str(FAILED), "begin a new search first")
    return FAILED


def repair(state: VerificationState) -> VerificationState:
    """Replace a failed listing's offer with an unclaimed deal."""
    if not state.is_failed:
        raise InvalidTransitionError(str(state), str(REPAIRED), "only failed listings are repaired")
    return REPAIRED


def from_status(status: str, is_alternative: bool = False) -> VerificationState:
    """Build a state from its wire representation."""
    return VerificationState(VerificationStatus(status.lower()), is_alternative)
