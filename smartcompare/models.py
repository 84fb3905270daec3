"""Domain models: listings, candidate deals, price points and analysis results."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from smartcompare.config import settings
from smartcompare.reconcile.verification import (
    UNVERIFIED,
    VerificationState,
    VerificationStatus,
)

logger = logging.getLogger(__name__)


class Platform(str, Enum):
    """Retail platforms the engine knows how to link to."""

    AMAZON = "Amazon"
    EBAY = "eBay"
    BESTBUY = "BestBuy"
    WALMART = "Walmart"
    DIRECT = "Direct"

    @classmethod
    def parse(cls, value: Any) -> Optional["Platform"]:
        """Case-insensitive lookup, ``None`` for unknown values."""
        if isinstance(value, cls):
            return value
        if not value:
            return None
        lowered = str(value).strip().lower()
        for platform in cls:
            if platform.value.lower() == lowered:
                return platform
        return None


class Condition(str, Enum):
    """Item condition of an offer."""

    NEW = "New"
    REFURBISHED = "Refurbished"
    USED = "Used"

    @classmethod
    def parse(cls, value: Any) -> Optional["Condition"]:
        if isinstance(value, cls):
            return value
        if not value:
            return None
        lowered = str(value).strip().lower()
        for condition in cls:
            if condition.value.lower() == lowered:
                return condition
        return None


class PriceTrend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert loosely typed numbers (LLM output, JSON floats) to Decimal.

    NaN, infinities and negative amounts are not prices and become ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip().lstrip("$").replace(",", ""))
        except (InvalidOperation, ValueError):
            logger.debug(f"Ignoring non-numeric price value: {value!r}")
            return None
    if not amount.is_finite() or amount < 0:
        logger.debug(f"Ignoring out-of-range price value: {value!r}")
        return None
    return amount


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class Listing:
    """A competitor or reference product offer."""

    id: str
    title: str
    price: Decimal
    vendor: str
    platform: Optional[Platform] = None
    condition: Condition = Condition.NEW
    url: str = ""
    external_id: Optional[str] = None
    currency: str = field(default_factory=lambda: settings.default_currency)
    image: str = ""
    rating: float = 0.0
    review_count: int = 0
    shipping: str = ""
    seller_trust_score: int = 0
    verification: VerificationState = UNVERIFIED
    price_trend: Optional[PriceTrend] = None
    average_price: Optional[Decimal] = None

    def __post_init__(self):
        price = to_decimal(self.price)
        self.price = price if price is not None else Decimal("0")
        if not 0 <= self.seller_trust_score <= 100:
            raise ValueError(f"Seller trust score out of range: {self.seller_trust_score}")

    @property
    def status(self) -> VerificationStatus:
        return self.verification.status

    @property
    def is_alternative(self) -> bool:
        return self.verification.is_alternative

    def to_dict(self) -> dict:
        """Wire representation (camelCase, prices as floats)."""
        return {
            "id": self.id,
            "externalId": self.external_id,
            "title": self.title,
            "price": float(self.price),
            "currency": self.currency,
            "vendor": self.vendor,
            "platform": self.platform.value if self.platform else None,
            "condition": self.condition.value,
            "url": self.url,
            "image": self.image,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "shipping": self.shipping,
            "sellerTrustScore": self.seller_trust_score,
            "verificationStatus": self.status.value,
            "isAlternative": self.is_alternative,
            "priceTrend": self.price_trend.value if self.price_trend else None,
            "averagePrice": float(self.average_price) if self.average_price is not None else None,
        }


@dataclass(frozen=True)
class CandidateDeal:
    """An unverified offer returned by deal discovery.

    Candidates carry no identifier; the reconciliation engine matches them
    by content.
    """

    vendor: Optional[str] = None
    price: Optional[Decimal] = None
    url: Optional[str] = None
    condition: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CandidateDeal":
        """Build a candidate from a loosely typed record, dropping junk values."""
        return cls(
            vendor=_clean_text(data.get("vendor")),
            price=to_decimal(data.get("price")),
            url=_clean_text(data.get("url")),
            condition=_clean_text(data.get("condition")),
        )


@dataclass(frozen=True)
class PricePoint:
    """One observation of a product's price."""

    timestamp: int  # Unix epoch milliseconds
    price: Decimal
    vendor: str

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "price": float(self.price), "vendor": self.vendor}

    @classmethod
    def from_dict(cls, data: dict) -> "PricePoint":
        price = to_decimal(data["price"])
        if price is None:
            raise ValueError(f"Invalid price in stored point: {data['price']!r}")
        return cls(
            timestamp=int(data["timestamp"]),
            price=price,
            vendor=str(data.get("vendor", "")),
        )


class Review(BaseModel):
    """A customer review passed to comparison analysis."""

    id: str
    user: str
    rating: float
    text: str
    date: str


class Alternative(BaseModel):
    """A different model or brand suggested by analysis."""

    title: str
    price: float
    reason: str


class AnalysisResult(BaseModel):
    """Structured comparison verdict returned by the analysis collaborator."""

    best_price_id: str = Field(alias="bestPriceId")
    best_value_id: str = Field(alias="bestValueId")
    trust_warning_id: Optional[str] = Field(default=None, alias="trustWarningId")
    summary: str
    recommendation: str
    pros: list[str] = []
    cons: list[str] = []
    alternatives: list[Alternative] = []

    model_config = {"populate_by_name": True}
