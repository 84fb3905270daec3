"""Per-product price history backed by a key-value store.

All series live in a single JSON document (product id -> list of points)
stored under one key. Reads that hit a missing or unparsable document see an
empty history; they never raise. Unreadable points are skipped one by one,
and writes are refused while the document as a whole cannot be parsed.
"""

import json
import logging
import random
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from smartcompare import metrics
from smartcompare.config import settings
from smartcompare.history.backends import StorageBackend, create_backend
from smartcompare.history.stats import (
    CENT,
    DAY_MS,
    SeriesSummary,
    TimeWindow,
    filter_window,
    summarize,
)
from smartcompare.models import Listing, PricePoint

logger = logging.getLogger(__name__)


class HistoryUnavailableError(Exception):
    """The stored history could not be read or parsed."""


def now_ms() -> int:
    """Current time as Unix epoch milliseconds."""
    return int(time.time() * 1000)


class PriceHistoryStore:
    """
    Append-only price series keyed by product id.

    Features:
    - Dedup by recency (points closer than the dedupe window are dropped)
    - Series kept sorted by timestamp
    - Seed generator for products without real history
    - Window summaries (min / max / average)
    """

    def __init__(
        self,
        backend: Optional[StorageBackend] = None,
        storage_key: Optional[str] = None,
        dedupe_seconds: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize history store.

        Args:
            backend: Storage backend (defaults to the configured one)
            storage_key: Key holding the history document
            dedupe_seconds: Minimum spacing between stored points
            rng: Random source for seeding
        """
        self.backend = backend or create_backend()
        self.storage_key = storage_key or settings.history_storage_key
        self.dedupe_ms = (
            dedupe_seconds if dedupe_seconds is not None else settings.history_dedupe_seconds
        ) * 1000
        self.rng = rng or random.Random()

    def _load(self) -> dict[str, list[PricePoint]]:
        """Read and parse the whole history document."""
        try:
            raw = self.backend.get(self.storage_key)
        except Exception as e:
            logger.error(f"Failed to read price history from backend: {e}")
            raise HistoryUnavailableError(str(e)) from e

        if not raw:
            return {}

        try:
            document = json.loads(raw)
        except ValueError:
            document = None
        if not isinstance(document, dict):
            # Writes are refused until the document parses again
            logger.error(f"Stored price history is malformed, refusing writes: {raw[:200]!r}")
            metrics.history_load_errors_total.inc()
            raise HistoryUnavailableError("malformed history document")

        return {
            str(product_id): self._parse_series(str(product_id), points)
            for product_id, points in document.items()
        }

    def _parse_series(self, product_id: str, records) -> list[PricePoint]:
        """Parse one product's records, skipping the ones that are unreadable."""
        if not isinstance(records, list):
            logger.error(f"Dropping malformed price series for {product_id}: {records!r:.200}")
            metrics.history_load_errors_total.inc()
            return []

        series = []
        for record in records:
            try:
                series.append(PricePoint.from_dict(record))
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error(f"Dropping malformed price point for {product_id}: {e}")
                metrics.history_load_errors_total.inc()
        series.sort(key=lambda p: p.timestamp)
        return series

    def _save(self, history: dict[str, list[PricePoint]]) -> None:
        document = {
            product_id: [p.to_dict() for p in points]
            for product_id, points in history.items()
        }
        self.backend.set(self.storage_key, json.dumps(document))

    def get_series(self, product_id: str) -> list[PricePoint]:
        """
        Get the price series for a product.

        Args:
            product_id: Product identifier

        Returns:
            Points ordered by timestamp (empty if none recorded)
        """
        try:
            return list(self._load().get(product_id, []))
        except HistoryUnavailableError:
            return []

    def get_window(
        self,
        product_id: str,
        window: TimeWindow = TimeWindow.MONTH,
        now: Optional[int] = None,
    ) -> list[PricePoint]:
        """Get the part of a product's series inside a time window."""
        return filter_window(self.get_series(product_id), window, now if now is not None else now_ms())

    def summarize(
        self,
        product_id: str,
        window: TimeWindow = TimeWindow.MONTH,
        now: Optional[int] = None,
    ) -> SeriesSummary:
        """Min / max / average for a product over a time window."""
        return summarize(self.get_window(product_id, window, now))

    def add_point(
        self,
        product_id: str,
        price: Decimal,
        vendor: str,
        now: Optional[int] = None,
    ) -> bool:
        """
        Record an observed price.

        The call is a no-op when the latest stored point for the product is
        younger than the dedupe window.

        Args:
            product_id: Product identifier
            price: Observed price
            vendor: Vendor the price was seen at
            now: Observation time in epoch ms (defaults to current time)

        Returns:
            True if the point was stored
        """
        timestamp = now if now is not None else now_ms()
        try:
            history = self._load()
        except HistoryUnavailableError:
            return False

        series = history.get(product_id, [])
        if series and timestamp - series[-1].timestamp < self.dedupe_ms:
            logger.debug(f"Skipping price point for {product_id}: last point is under the dedupe window")
            metrics.record_history_point(stored=False)
            return False

        series.append(PricePoint(timestamp=timestamp, price=Decimal(str(price)), vendor=vendor))
        series.sort(key=lambda p: p.timestamp)
        history[product_id] = series

        try:
            self._save(history)
        except Exception as e:
            logger.error(f"Failed to save price point for {product_id}: {e}")
            return False

        metrics.record_history_point(stored=True)
        logger.debug(f"Recorded price ${price} from {vendor} for {product_id}")
        return True

    def _generate_series(self, listing: Listing, now: int) -> list[PricePoint]:
        """Random walk backwards from the listing's current price."""
        days = settings.history_seed_days
        current = Decimal(str(listing.price))
        swing = float(current) * settings.history_seed_volatility / 2
        floor = float(current) * settings.history_seed_floor

        points = [PricePoint(timestamp=now, price=current, vendor=listing.vendor)]
        simulated = float(current)
        for i in range(1, days + 1):
            simulated = max(simulated + self.rng.uniform(-swing, swing), floor)
            price = Decimal(str(simulated)).quantize(CENT, rounding=ROUND_HALF_UP)
            points.append(PricePoint(timestamp=now - i * DAY_MS, price=price, vendor=listing.vendor))

        points.reverse()
        return points

    def seed(self, listings: Iterable[Listing], now: Optional[int] = None) -> list[str]:
        """
        Backfill synthetic history for products with too few points.

        Products whose series already has at least
        ``settings.history_seed_min_points`` points are left untouched, so
        repeated calls never overwrite real history.

        Args:
            listings: Products to seed (id, price and vendor are used)
            now: End of the seeded span in epoch ms

        Returns:
            Ids of the products that were seeded
        """
        timestamp = now if now is not None else now_ms()
        try:
            history = self._load()
        except HistoryUnavailableError:
            return []

        seeded = []
        for listing in listings:
            if len(history.get(listing.id, [])) >= settings.history_seed_min_points:
                continue
            history[listing.id] = self._generate_series(listing, timestamp)
            seeded.append(listing.id)

        if seeded:
            try:
                self._save(history)
            except Exception as e:
                logger.error(f"Failed to save seeded price history: {e}")
                return []
            metrics.history_series_seeded_total.inc(len(seeded))
            logger.info(f"Seeded price history for {len(seeded)} product(s)")

        return seeded

    def close(self) -> None:
        self.backend.close()
