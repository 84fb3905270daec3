"""Shared fixtures."""

import random
from decimal import Decimal

import pytest

from smartcompare.history.backends import InMemoryBackend
from smartcompare.history.store import PriceHistoryStore
from smartcompare.models import Listing, Platform


def make_listing(listing_id: str = "p1", **overrides) -> Listing:
    """Build a listing with sensible defaults."""
    fields = {
        "id": listing_id,
        "title": "Sony WH-1000XM5 Headphones",
        "price": Decimal("399.99"),
        "vendor": "Amazon",
        "platform": Platform.AMAZON,
        "image": "https://example.com/xm5.jpg",
        "seller_trust_score": 95,
    }
    fields.update(overrides)
    return Listing(**fields)


@pytest.fixture
def history_store():
    """In-memory history store with a seeded random source."""
    return PriceHistoryStore(backend=InMemoryBackend(), rng=random.Random(42))
