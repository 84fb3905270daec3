"""Tests for the comparison session flow."""

import asyncio
import json
import random
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_listing
from smartcompare.ai.assistant import fallback_analysis
from smartcompare.errors import RefreshInProgressError
from smartcompare.models import CandidateDeal, Platform
from smartcompare.reconcile import verification
from smartcompare.reconcile.verification import VerificationStatus
from smartcompare.session import ComparisonSession

NOW = 1_700_000_000_000


def make_fake_assistant(deals=(), configured=True):
    assistant = MagicMock()
    assistant.llm.is_configured = configured
    assistant.find_live_deals = AsyncMock(return_value=list(deals))
    assistant.analyze_comparison = AsyncMock(
        side_effect=lambda reference, competitors, reviews: fallback_analysis(reference, competitors)
    )
    assistant.chat_with_shopper = AsyncMock(return_value="Go with Walmart.")
    return assistant


@pytest.fixture
def reference():
    return make_listing("ref", vendor="Sony Store", platform=Platform.DIRECT)


@pytest.fixture
def competitors():
    return [
        make_listing("a1"),
        make_listing("w1", vendor="Walmart", platform=Platform.WALMART, price=Decimal("379.00")),
    ]


def make_session(reference, competitors, history_store, assistant):
    return ComparisonSession(
        reference,
        competitors,
        history_store,
        assistant=assistant,
        rng=random.Random(3),
    )


class TestValidateAndDiscover:
    @pytest.mark.asyncio
    async def test_demo_mode_skips_validation(self, reference, competitors, history_store):
        assistant = make_fake_assistant(configured=False)
        session = make_session(reference, competitors, history_store, assistant)

        result = await session.validate_and_discover()

        assert result == competitors
        assert session.has_validated
        assistant.find_live_deals.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reconciles_live_deals(self, reference, competitors, history_store):
        deals = [
            CandidateDeal(vendor="Walmart", price=Decimal("369.00"), url="https://www.walmart.com/ip/1"),
            CandidateDeal(vendor="Target", price=Decimal("389.00"), url="https://target.com/z"),
        ]
        assistant = make_fake_assistant(deals)
        session = make_session(reference, competitors, history_store, assistant)

        result = await session.validate_and_discover()

        assistant.find_live_deals.assert_awaited_once_with(reference.title)
        amazon, walmart = result
        assert walmart.status == VerificationStatus.VERIFIED
        assert walmart.price == Decimal("369.00")
        assert amazon.is_alternative
        assert amazon.vendor == "Target"

    @pytest.mark.asyncio
    async def test_runs_once_unless_forced(self, reference, competitors, history_store):
        assistant = make_fake_assistant([CandidateDeal(vendor="Amazon")])
        session = make_session(reference, competitors, history_store, assistant)

        await session.validate_and_discover()
        await session.validate_and_discover()
        assert assistant.find_live_deals.await_count == 1

        await session.validate_and_discover(force=True)
        assert assistant.find_live_deals.await_count == 2

    @pytest.mark.asyncio
    async def test_no_deals_hides_everything(self, reference, competitors, history_store):
        session = make_session(reference, competitors, history_store, make_fake_assistant([]))

        result = await session.validate_and_discover()

        assert [c.status for c in result] == [VerificationStatus.FAILED, VerificationStatus.FAILED]
        assert session.visible_competitors == []


class TestRefreshPrices:
    @pytest.mark.asyncio
    async def test_records_verified_points(self, reference, history_store):
        competitors = [
            make_listing("a1", verification=verification.VERIFIED),
            make_listing("u1", vendor="eBay", platform=Platform.EBAY),
        ]
        session = make_session(reference, competitors, history_store, make_fake_assistant())

        refreshed = await session.refresh_prices(now=NOW)

        assert len(history_store.get_series("a1")) == 1
        assert history_store.get_series("u1") == []
        assert history_store.get_series("ref")[0].price == reference.price

        verified, unverified = refreshed
        assert Decimal("359.99") <= verified.price <= Decimal("439.99")
        assert verified.price == verified.price.quantize(Decimal("0.01"))
        assert verified.price_trend is not None
        assert verified.average_price == verified.price
        assert unverified.average_price is None

    @pytest.mark.asyncio
    async def test_reanalyzes_verified_only(self, reference, history_store):
        competitors = [
            make_listing("a1", verification=verification.VERIFIED),
            make_listing("f1", verification=verification.FAILED),
        ]
        assistant = make_fake_assistant()
        session = make_session(reference, competitors, history_store, assistant)

        await session.refresh_prices(now=NOW)

        passed = assistant.analyze_comparison.call_args.args[1]
        assert [c.id for c in passed] == ["a1"]
        assert session.analysis.best_price_id == "a1"

    @pytest.mark.asyncio
    async def test_analysis_falls_back_to_all_competitors(self, reference, competitors, history_store):
        assistant = make_fake_assistant()
        session = make_session(reference, competitors, history_store, assistant)

        await session.analyze()

        passed = assistant.analyze_comparison.call_args.args[1]
        assert [c.id for c in passed] == ["a1", "w1"]


class TestInFlightGuard:
    @pytest.mark.asyncio
    async def test_refresh_during_validation_is_rejected(self, reference, competitors, history_store):
        release = asyncio.Event()

        async def slow_discovery(title):
            await release.wait()
            return []

        assistant = make_fake_assistant()
        assistant.find_live_deals = AsyncMock(side_effect=slow_discovery)
        session = make_session(reference, competitors, history_store, assistant)

        task = asyncio.create_task(session.validate_and_discover())
        await asyncio.sleep(0)
        assert session.is_busy

        with pytest.raises(RefreshInProgressError):
            await session.refresh_prices(now=NOW)
        with pytest.raises(RefreshInProgressError):
            await session.validate_and_discover(force=True)

        release.set()
        await task
        assert not session.is_busy
        assert history_store.get_series("ref") == []

    @pytest.mark.asyncio
    async def test_guard_is_released_after_failure(self, reference, competitors, history_store):
        assistant = make_fake_assistant()
        assistant.analyze_comparison = AsyncMock(side_effect=RuntimeError("analysis crashed"))
        session = make_session(reference, competitors, history_store, assistant)

        with pytest.raises(RuntimeError):
            await session.refresh_prices(now=NOW)
        assert not session.is_busy


@pytest.mark.asyncio
async def test_ask_sends_visible_context(reference, history_store):
    competitors = [
        make_listing("ok", verification=verification.VERIFIED),
        make_listing("gone", verification=verification.FAILED),
    ]
    assistant = make_fake_assistant()
    session = make_session(reference, competitors, history_store, assistant)

    reply = await session.ask("Which one?", history=[{"role": "user", "text": "Hi"}])

    assert reply == "Go with Walmart."
    history, message, context = assistant.chat_with_shopper.call_args.args
    assert message == "Which one?"
    assert [c["id"] for c in json.loads(context)["competitors"]] == ["ok"]


def test_seed_history_backfills_reference(reference, competitors, history_store):
    session = make_session(reference, competitors, history_store, make_fake_assistant())

    assert session.seed_history() == ["ref"]
    assert len(history_store.get_series("ref")) == 31
    assert session.seed_history() == []


@pytest.mark.asyncio
async def test_refresh_after_nan_deal_price(reference, history_store):
    deal = CandidateDeal.from_dict({"vendor": "Amazon", "price": "NaN", "url": "https://www.amazon.com/dp/1"})
    session = make_session(reference, [make_listing("c1")], history_store, make_fake_assistant([deal]))

    await session.validate_and_discover()
    refreshed = await session.refresh_prices(now=NOW)

    assert refreshed[0].price.is_finite()
    assert refreshed[0].average_price == refreshed[0].price


@pytest.mark.asyncio
async def test_refresh_keeps_supplied_average_without_history(reference, history_store):
    competitors = [
        make_listing("f1", verification=verification.FAILED, average_price=Decimal("410.00")),
        make_listing("u1", vendor="eBay", platform=Platform.EBAY),
    ]
    session = make_session(reference, competitors, history_store, make_fake_assistant())

    failed, unseen = await session.refresh_prices(now=NOW)

    assert failed.average_price == Decimal("410.00")
    assert unseen.average_price is None
