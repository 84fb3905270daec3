"""Derived statistics over price series.

Everything here is a pure function of its inputs; the store computes
summaries on read instead of persisting them.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Sequence

from smartcompare.config import settings
from smartcompare.models import PricePoint, PriceTrend

DAY_MS = 86_400_000
CENT = Decimal("0.01")


class TimeWindow(str, Enum):
    """Selectable history windows."""

    WEEK = "7d"
    MONTH = "30d"
    ALL = "all"

    @property
    def days(self) -> Optional[int]:
        return {TimeWindow.WEEK: 7, TimeWindow.MONTH: 30}.get(self)


class PriceVerdict(str, Enum):
    """Where a price sits relative to its window average."""

    BELOW_AVERAGE = "below_average"
    STANDARD = "standard"
    ABOVE_AVERAGE = "above_average"


@dataclass
class SeriesSummary:
    """Statistical summary of a price window."""

    count: int
    min_price: Optional[Decimal]
    max_price: Optional[Decimal]
    average: Optional[Decimal]
    first: Optional[PricePoint] = None
    last: Optional[PricePoint] = None

    @property
    def price_range(self) -> Optional[Decimal]:
        if self.min_price is None or self.max_price is None:
            return None
        return self.max_price - self.min_price

    def position_of(self, price: Decimal) -> float:
        """Place a price on the min..max meter, 0-100 (50 when flat)."""
        if not self.price_range:
            return 50.0
        position = float((price - self.min_price) / self.price_range * 100)
        return max(0.0, min(100.0, position))


def filter_window(
    series: Sequence[PricePoint],
    window: TimeWindow,
    now: int,
) -> list[PricePoint]:
    """
    Keep the points inside a time window.

    Args:
        series: Points ordered by timestamp
        window: 7d, 30d or all
        now: Window end in epoch ms

    Returns:
        Points with timestamp >= cutoff
    """
    cutoff = now - window.days * DAY_MS if window.days else 0
    return [p for p in series if p.timestamp >= cutoff]


def summarize(series: Sequence[PricePoint]) -> SeriesSummary:
    """Compute min, max and arithmetic mean of a series."""
    if not series:
        return SeriesSummary(count=0, min_price=None, max_price=None, average=None)

    prices = [p.price for p in series]
    average = (sum(prices, Decimal("0")) / len(prices)).quantize(CENT, rounding=ROUND_HALF_UP)
    return SeriesSummary(
        count=len(prices),
        min_price=min(prices),
        max_price=max(prices),
        average=average,
        first=series[0],
        last=series[-1],
    )


def classify_trend(
    new_price: Decimal,
    old_price: Decimal,
    epsilon: Optional[float] = None,
) -> PriceTrend:
    """
    Classify a price move.

    Args:
        new_price: Latest price
        old_price: Reference price
        epsilon: Relative band treated as stable (defaults to settings.trend_epsilon)

    Returns:
        PriceTrend.UP, DOWN or STABLE
    """
    epsilon = settings.trend_epsilon if epsilon is None else epsilon
    band = abs(Decimal(str(old_price))) * Decimal(str(epsilon))
    delta = Decimal(str(new_price)) - Decimal(str(old_price))
    if abs(delta) <= band:
        return PriceTrend.STABLE
    return PriceTrend.UP if delta > 0 else PriceTrend.DOWN


def nearest_point(series: Sequence[PricePoint], timestamp: int) -> Optional[PricePoint]:
    """
    Find the point closest in time to a timestamp.

    Exact ties go to the earliest point.
    """
    closest = None
    for point in series:
        if closest is None:
            closest = point
            continue
        distance = abs(point.timestamp - timestamp)
        best = abs(closest.timestamp - timestamp)
        if distance < best or (distance == best and point.timestamp < closest.timestamp):
            closest = point
    return closest


def percent_change(series: Sequence[PricePoint]) -> Optional[float]:
    """Change from the first to the last point, in percent."""
    if len(series) < 2 or series[0].price == 0:
        return None
    first, last = series[0].price, series[-1].price
    return round(float((last - first) / first * 100), 1)


def price_verdict(
    current_price: Decimal,
    average: Optional[Decimal],
    threshold_percent: float = 5.0,
) -> PriceVerdict:
    """Compare a price against its window average."""
    if not average:
        return PriceVerdict.STANDARD
    diff = float((Decimal(str(current_price)) - average) / average * 100)
    if diff <= -threshold_percent:
        return PriceVerdict.BELOW_AVERAGE
    if diff >= threshold_percent:
        return PriceVerdict.ABOVE_AVERAGE
    return PriceVerdict.STANDARD
