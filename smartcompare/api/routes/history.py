"""Price history routes."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from smartcompare.api.deps import get_history_store
from smartcompare.api.schemas import ListingIn, PricePointOut
from smartcompare.history.stats import (
    TimeWindow,
    nearest_point,
    percent_change,
    price_verdict,
    summarize,
)
from smartcompare.history.store import PriceHistoryStore, now_ms

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/history", tags=["history"])


class HistoryResponse(BaseModel):
    product_id: str
    window: TimeWindow
    points: List[PricePointOut]
    min_price: Optional[float]
    max_price: Optional[float]
    average: Optional[float]
    percent_change: Optional[float]
    verdict: Optional[str]


class PricePointCreate(BaseModel):
    price: float = Field(..., ge=0)
    vendor: str


class SeedRequest(BaseModel):
    listings: List[ListingIn]


class SeedResponse(BaseModel):
    seeded: List[str]


def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None


@router.get("/{product_id}", response_model=HistoryResponse)
async def get_history(
    product_id: str,
    window: TimeWindow = Query(TimeWindow.MONTH),
    store: PriceHistoryStore = Depends(get_history_store),
):
    """Price series for a product inside a time window, with summary stats."""
    points = store.get_window(product_id, window, now_ms())
    summary = summarize(points) if points else None
    verdict = None
    if summary and summary.last:
        verdict = price_verdict(summary.last.price, summary.average).value

    return HistoryResponse(
        product_id=product_id,
        window=window,
        points=[PricePointOut.from_point(p) for p in points],
        min_price=_as_float(summary.min_price) if summary else None,
        max_price=_as_float(summary.max_price) if summary else None,
        average=_as_float(summary.average) if summary else None,
        percent_change=percent_change(points),
        verdict=verdict,
    )


@router.post("/{product_id}/points", response_model=List[PricePointOut])
async def add_price_point(
    product_id: str,
    point: PricePointCreate,
    response: Response,
    store: PriceHistoryStore = Depends(get_history_store),
):
    """
    Record a price observation.

    Returns 201 when stored, 200 when the dedupe window dropped it.
    """
    stored = store.add_point(product_id, point.price, point.vendor)
    response.status_code = 201 if stored else 200
    return [PricePointOut.from_point(p) for p in store.get_series(product_id)]


@router.get("/{product_id}/nearest", response_model=PricePointOut)
async def get_nearest_point(
    product_id: str,
    timestamp: int = Query(..., description="Epoch milliseconds"),
    window: TimeWindow = Query(TimeWindow.ALL),
    store: PriceHistoryStore = Depends(get_history_store),
):
    """Point closest in time to a timestamp."""
    point = nearest_point(store.get_window(product_id, window, now_ms()), timestamp)
    if point is None:
        raise HTTPException(status_code=404, detail="No price history for product")
    return PricePointOut.from_point(point)


@router.post("/seed", response_model=SeedResponse)
async def seed_history(
    request: SeedRequest,
    store: PriceHistoryStore = Depends(get_history_store),
):
    """Backfill synthetic history for products with fewer than five points."""
    seeded = store.seed([item.to_listing() for item in request.listings])
    return SeedResponse(seeded=seeded)
