"""Comparison session: the validate / refresh / analyze flow around one product.

The session is the single logical writer for its product's competitor set
and price series. Validation and refresh are serialized by an in-flight
guard; a second call made while one is still running is rejected.
"""

import json
import random
from contextlib import contextmanager
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from smartcompare.ai.assistant import ShoppingAssistant, shopping_assistant
from smartcompare.config import settings
from smartcompare.errors import RefreshInProgressError
from smartcompare.history.stats import CENT, TimeWindow, classify_trend
from smartcompare.history.store import PriceHistoryStore
from smartcompare.logging_config import get_logger
from smartcompare.models import AnalysisResult, Listing, Review
from smartcompare.reconcile.engine import (
    ReconciliationEngine,
    displayable,
    mark_searching,
    reconciliation_engine,
)


class ComparisonSession:
    """
    Tracks one reference product and its competitors.

    Features:
    - Validate-and-discover pass (deal discovery + reconciliation)
    - Manual price refresh with history recording
    - Analysis trigger with verified-competitor selection
    """

    def __init__(
        self,
        reference: Listing,
        competitors: Sequence[Listing],
        history: PriceHistoryStore,
        reviews: Sequence[Review] = (),
        assistant: Optional[ShoppingAssistant] = None,
        engine: Optional[ReconciliationEngine] = None,
        rng: Optional[random.Random] = None,
    ):
        self.reference = reference
        self.competitors: list[Listing] = list(competitors)
        self.history = history
        self.reviews = list(reviews)
        self.assistant = assistant or shopping_assistant
        self.engine = engine or reconciliation_engine
        self.rng = rng or random.Random()
        self.analysis: Optional[AnalysisResult] = None
        self.has_validated = False
        self._in_flight: Optional[str] = None
        self.log = get_logger(__name__, product_id=reference.id)

    @property
    def is_busy(self) -> bool:
        return self._in_flight is not None

    @property
    def visible_competitors(self) -> list[Listing]:
        return displayable(self.competitors)

    @contextmanager
    def _guard(self, operation: str):
        if self._in_flight is not None:
            self.log.bind(operation=operation).warning(f"Rejected: {self._in_flight} still running")
            raise RefreshInProgressError(operation)
        self._in_flight = operation
        try:
            yield
        finally:
            self._in_flight = None

    def seed_history(self) -> list[str]:
        """Backfill history for the reference product."""
        return self.history.seed([self.reference])

    async def validate_and_discover(self, force: bool = False) -> list[Listing]:
        """
        Verify competitors against live deals and pick up new offers.

        Runs once per session unless forced. Without an API key the pass is
        skipped and the competitor set is left as-is (demo mode).

        Args:
            force: Re-run even if the session has already validated

        Returns:
            The updated competitor set
        """
        if self.has_validated and not force:
            return self.competitors

        with self._guard("validation"):
            if not self.assistant.llm.is_configured:
                self.log.warning("API key missing: skipping validation, running in demo mode")
                self.has_validated = True
                return self.competitors

            self.competitors = mark_searching(self.competitors)
            deals = await self.assistant.find_live_deals(self.reference.title)
            result = self.engine.reconcile(self.competitors, deals, reference=self.reference)
            self.competitors = result.listings
            self.has_validated = True

        return self.competitors

    def _analysis_candidates(self, competitors: Sequence[Listing]) -> list[Listing]:
        verified = [c for c in competitors if c.verification.is_verified]
        return verified or list(competitors)

    async def analyze(self) -> AnalysisResult:
        """Run comparison analysis on verified competitors (or all, if none are)."""
        self.analysis = await self.assistant.analyze_comparison(
            self.reference,
            self._analysis_candidates(self.competitors),
            self.reviews,
        )
        return self.analysis

    def _perturb(self, listing: Listing) -> Listing:
        factor = self.rng.uniform(settings.refresh_min_factor, settings.refresh_max_factor)
        new_price = (listing.price * Decimal(str(factor))).quantize(CENT, rounding=ROUND_HALF_UP)
        return replace(
            listing,
            price=new_price,
            price_trend=classify_trend(new_price, listing.price),
        )

    def _with_average(self, listing: Listing, now: Optional[int]) -> Listing:
        average = self.history.summarize(listing.id, TimeWindow.MONTH, now).average
        if average is None:
            return listing
        return replace(listing, average_price=average)

    async def refresh_prices(self, now: Optional[int] = None) -> list[Listing]:
        """
        Re-price every competitor and record the observations.

        Prices move by a uniform random factor, verified competitors and the
        reference product get a history point, then analysis is re-run.

        Args:
            now: Observation time in epoch ms (defaults to current time)

        Returns:
            The re-priced competitor set
        """
        with self._guard("refresh"):
            updated = [self._perturb(c) for c in self.competitors]

            recorded = 0
            for listing in updated:
                if listing.verification.is_verified:
                    recorded += self.history.add_point(listing.id, listing.price, listing.vendor, now=now)
            self.history.add_point(self.reference.id, self.reference.price, self.reference.vendor, now=now)

            self.competitors = [self._with_average(c, now) for c in updated]
            self.log.info(f"Refreshed {len(updated)} competitor price(s), recorded {recorded} point(s)")

            await self.analyze()

        return self.competitors

    def chat_context(self) -> str:
        """Serialized comparison context for the shopper chat."""
        return json.dumps({
            "currentProduct": self.reference.to_dict(),
            "competitors": [c.to_dict() for c in self.visible_competitors],
            "analysis": self.analysis.model_dump(by_alias=True) if self.analysis else None,
        })

    async def ask(self, message: str, history: Sequence[dict] = ()) -> str:
        """Forward a shopper question with the current comparison as context."""
        return await self.assistant.chat_with_shopper(history, message, self.chat_context())
