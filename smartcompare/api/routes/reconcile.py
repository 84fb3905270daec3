"""Competitor reconciliation and link resolution routes."""

import logging
from collections import Counter
from typing import List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, model_validator

from smartcompare.api.schemas import DealIn, ListingIn
from smartcompare.models import Listing, Platform
from smartcompare.platform import map_domain_to_platform, resolve_canonical_url, sanitize_url
from smartcompare.reconcile.engine import reconciliation_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["reconcile"])


class ReconcileRequest(BaseModel):
    existing: List[ListingIn]
    deals: List[DealIn] = []
    reference: Optional[ListingIn] = None

    @model_validator(mode="after")
    def check_unique_ids(self) -> "ReconcileRequest":
        id_counts = Counter(item.id for item in self.existing)
        duplicates = sorted(listing_id for listing_id, count in id_counts.items() if count > 1)
        if duplicates:
            raise ValueError(f"Duplicate listing id(s) in existing: {', '.join(duplicates)}")
        return self


class ReconcileResponse(BaseModel):
    listings: List[dict]
    displayable_ids: List[str]
    matched_ids: List[str]
    repaired_ids: List[str]
    failed_ids: List[str]
    discovered_ids: List[str]


class ResolvedLink(BaseModel):
    url: str
    platform: Optional[str]


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_listings(request: ReconcileRequest):
    """
    Merge candidate deals into an existing competitor set.

    Failed listings stay in ``listings`` but are left out of
    ``displayable_ids``.
    """
    result = reconciliation_engine.reconcile(
        [item.to_listing() for item in request.existing],
        [deal.to_deal() for deal in request.deals],
        reference=request.reference.to_listing() if request.reference else None,
    )
    return ReconcileResponse(
        listings=[listing.to_dict() for listing in result.listings],
        displayable_ids=[listing.id for listing in result.displayable],
        matched_ids=result.matched_ids,
        repaired_ids=result.repaired_ids,
        failed_ids=result.failed_ids,
        discovered_ids=result.discovered_ids,
    )


@router.post("/links/resolve", response_model=ResolvedLink)
async def resolve_link(listing: ListingIn):
    """Canonical outbound link for a listing (empty when none is usable)."""
    url = resolve_canonical_url(listing.to_listing())
    return ResolvedLink(url=sanitize_url(url), platform=listing.platform)


@router.get("/links/platform", response_model=ResolvedLink)
async def detect_platform(url: str = Query(..., description="Absolute product URL")):
    """Detect the retail platform a URL belongs to."""
    platform: Optional[Platform] = map_domain_to_platform(url)
    return ResolvedLink(url=url, platform=platform.value if platform else None)
