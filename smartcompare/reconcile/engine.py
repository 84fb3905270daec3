"""Competitor reconciliation: merge live deal candidates into a competitor set.

The merge runs in three greedy stages:

1. Primary match. Each existing listing claims the first unclaimed deal
   (in deal order) whose platform or vendor lines up with it.
2. Repair. Listings left without a match take the next unclaimed deal as a
   replacement offer, flagged as an alternative.
3. Discovery. Deals still unclaimed become brand-new listings.

The scan order decides every tie; there is no backtracking and no attempt
at a globally optimal assignment.
"""

import logging
from collections import Counter, deque
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence
from uuid import uuid4

from smartcompare import metrics
from smartcompare.config import settings
from smartcompare.errors import DuplicateListingError
from smartcompare.models import CandidateDeal, Condition, Listing, Platform
from smartcompare.platform import map_domain_to_platform
from smartcompare.reconcile import verification

logger = logging.getLogger(__name__)


def _new_discovery_id() -> str:
    return f"new-discovery-{uuid4().hex[:12]}"


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation run."""

    listings: list[Listing]
    matched_ids: list[str] = field(default_factory=list)
    repaired_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)
    discovered_ids: list[str] = field(default_factory=list)

    @property
    def displayable(self) -> list[Listing]:
        """Listings to show; failed ones are kept in ``listings`` but hidden."""
        return displayable(self.listings)

    @property
    def verified(self) -> list[Listing]:
        return [listing for listing in self.listings if listing.verification.is_verified]


def displayable(listings: Iterable[Listing]) -> list[Listing]:
    """Drop listings whose verification failed and could not be repaired."""
    return [listing for listing in listings if not listing.verification.is_failed]


def deal_platform_label(deal: CandidateDeal) -> Optional[str]:
    """Platform of a deal from its URL host, else its free-text vendor."""
    platform = map_domain_to_platform(deal.url)
    if platform:
        return platform.value
    return deal.vendor


def deal_matches(listing: Listing, deal: CandidateDeal) -> bool:
    """
    Check whether a deal is the live offer for an existing listing.

    A deal matches when its platform equals the listing's platform, or when
    either vendor name contains the other (both case-insensitive).
    """
    label = deal_platform_label(deal)
    if label and listing.platform and label.lower() == listing.platform.value.lower():
        return True

    if listing.vendor and deal.vendor:
        existing_vendor = listing.vendor.lower()
        deal_vendor = deal.vendor.lower()
        return deal_vendor in existing_vendor or existing_vendor in deal_vendor

    return False


def mark_searching(listings: Iterable[Listing]) -> list[Listing]:
    """Copies of the listings with a verification pass started."""
    return [
        replace(listing, verification=verification.begin_search(listing.verification))
        for listing in listings
    ]


class ReconciliationEngine:
    """
    Turns {existing competitors, candidate deals} into a new competitor set.

    Inputs are never mutated; every returned listing is a copy.
    """

    def __init__(
        self,
        repair_trust_score: Optional[int] = None,
        discovery_trust_score: Optional[int] = None,
        placeholder_shipping: Optional[str] = None,
        id_factory: Callable[[], str] = _new_discovery_id,
    ):
        """
        Initialize reconciliation engine.

        Args:
            repair_trust_score: Trust score given to repaired listings
            discovery_trust_score: Trust score given to discovered listings
            placeholder_shipping: Shipping note for listings built from deals
            id_factory: Generates identifiers for discovered listings
        """
        self.repair_trust_score = (
            repair_trust_score if repair_trust_score is not None else settings.repair_trust_score
        )
        self.discovery_trust_score = (
            discovery_trust_score if discovery_trust_score is not None else settings.discovery_trust_score
        )
        self.placeholder_shipping = placeholder_shipping or settings.placeholder_shipping
        self.id_factory = id_factory

    def _match(self, listing: Listing, deal: CandidateDeal) -> Listing:
        return replace(
            listing,
            url=deal.url or "",
            price=deal.price if deal.price else listing.price,
            verification=verification.confirm(listing.verification),
        )

    def _repair(self, listing: Listing, deal: CandidateDeal) -> Listing:
        platform = map_domain_to_platform(deal.url)
        vendor = deal.vendor or (platform.value if platform else None) or Platform.DIRECT.value
        # TODO: a missing price becomes 0 here; decide whether it should mean "unknown" instead
        return replace(
            listing,
            title=f"{deal.vendor} Offer" if deal.vendor else listing.title,
            vendor=vendor,
            price=deal.price or Decimal("0"),
            url=deal.url or "",
            platform=platform or Platform.DIRECT,
            condition=Condition.parse(deal.condition) or Condition.NEW,
            verification=verification.repair(listing.verification),
            seller_trust_score=self.repair_trust_score,
            shipping=self.placeholder_shipping,
        )

    def _discover(self, deal: CandidateDeal, reference: Optional[Listing], taken: set[str]) -> Listing:
        listing_id = self.id_factory()
        while listing_id in taken:
            listing_id = self.id_factory()
        taken.add(listing_id)

        vendor = deal.vendor or "Unknown"
        return Listing(
            id=listing_id,
            title=f"{vendor} Offer",
            price=deal.price or Decimal("0"),
            vendor=vendor,
            platform=map_domain_to_platform(deal.url) or Platform.DIRECT,
            condition=Condition.parse(deal.condition) or Condition.NEW,
            url=deal.url or "",
            currency=reference.currency if reference else settings.default_currency,
            image=reference.image if reference else "",
            rating=0.0,
            review_count=0,
            shipping=self.placeholder_shipping,
            seller_trust_score=self.discovery_trust_score,
            verification=verification.VERIFIED,
        )

    def reconcile(
        self,
        existing: Sequence[Listing],
        deals: Sequence[CandidateDeal],
        reference: Optional[Listing] = None,
    ) -> ReconciliationResult:
        """
        Merge candidate deals into the existing competitor set.

        Args:
            existing: Current competitors, in display order
            deals: Candidate deals from discovery, in returned order
            reference: Product being compared (discoveries inherit its image)

        Returns:
            ReconciliationResult with existing listings (original order)
            followed by new discoveries (deal order)

        Raises:
            DuplicateListingError: If two existing listings share an id
        """
        id_counts = Counter(listing.id for listing in existing)
        duplicates = sorted(listing_id for listing_id, count in id_counts.items() if count > 1)
        if duplicates:
            raise DuplicateListingError(duplicates)

        result = ReconciliationResult(listings=[])
        claimed: set[int] = set()

        # Stage 1: primary match
        staged: list[Listing] = []
        for listing in mark_searching(existing):
            match_index = next(
                (
                    idx for idx, deal in enumerate(deals)
                    if idx not in claimed and deal_matches(listing, deal)
                ),
                None,
            )
            if match_index is None:
                staged.append(replace(listing, verification=verification.fail(listing.verification)))
                continue

            claimed.add(match_index)
            staged.append(self._match(listing, deals[match_index]))
            result.matched_ids.append(listing.id)

        # Stage 2: repair failed listings from the unclaimed pool, first come first served
        pool = deque(deal for idx, deal in enumerate(deals) if idx not in claimed)
        for listing in staged:
            if listing.verification.is_failed and pool:
                listing = self._repair(listing, pool.popleft())
                result.repaired_ids.append(listing.id)
            elif listing.verification.is_failed:
                result.failed_ids.append(listing.id)
            result.listings.append(listing)

        # Stage 3: leftover deals are new competitors
        taken = {listing.id for listing in result.listings}
        for deal in pool:
            discovered = self._discover(deal, reference, taken)
            result.listings.append(discovered)
            result.discovered_ids.append(discovered.id)

        metrics.record_reconciliation(
            deal_count=len(deals),
            matched=len(result.matched_ids),
            repaired=len(result.repaired_ids),
            failed=len(result.failed_ids),
            discovered=len(result.discovered_ids),
        )
        logger.info(
            f"Reconciled {len(existing)} listing(s) against {len(deals)} deal(s): "
            f"{len(result.matched_ids)} matched, {len(result.repaired_ids)} repaired, "
            f"{len(result.failed_ids)} failed, {len(result.discovered_ids)} discovered"
        )
        return result


# Global reconciliation engine instance
reconciliation_engine = ReconciliationEngine()


def reconcile(
    existing: Sequence[Listing],
    deals: Sequence[CandidateDeal],
    reference: Optional[Listing] = None,
) -> ReconciliationResult:
    """Reconcile with the default engine."""
    return reconciliation_engine.reconcile(existing, deals, reference)
