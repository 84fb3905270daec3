"""Tests for the verification state machine."""

import pytest

from smartcompare.errors import InvalidTransitionError
from smartcompare.reconcile import verification
from smartcompare.reconcile.verification import VerificationState, VerificationStatus


class TestVerificationState:
    def test_alternative_requires_verified(self):
        with pytest.raises(ValueError):
            VerificationState(VerificationStatus.FAILED, is_alternative=True)

    def test_from_status(self):
        assert verification.from_status("Verified", True) == verification.REPAIRED
        assert verification.from_status("failed") == verification.FAILED

    def test_str(self):
        assert str(verification.REPAIRED) == "verified (alternative)"
        assert str(verification.SEARCHING) == "searching"


class TestTransitions:
    def test_happy_path(self):
        state = verification.begin_search(verification.UNVERIFIED)
        assert state == verification.SEARCHING
        assert verification.confirm(state) == verification.VERIFIED

    def test_failed_then_repaired(self):
        state = verification.fail(verification.SEARCHING)
        repaired = verification.repair(state)
        assert repaired.is_verified
        assert repaired.is_alternative

    def test_failed_cannot_be_confirmed_directly(self):
        with pytest.raises(InvalidTransitionError):
            verification.confirm(verification.FAILED)

    def test_only_failed_listings_are_repaired(self):
        with pytest.raises(InvalidTransitionError):
            verification.repair(verification.SEARCHING)
        with pytest.raises(InvalidTransitionError):
            verification.repair(verification.VERIFIED)

    def test_verified_must_search_before_failing(self):
        with pytest.raises(InvalidTransitionError):
            verification.fail(verification.VERIFIED)
        assert verification.fail(verification.begin_search(verification.REPAIRED)) == verification.FAILED

    def test_failed_listing_can_be_searched_again(self):
        state = verification.begin_search(verification.FAILED)
        assert verification.confirm(state) == verification.VERIFIED
