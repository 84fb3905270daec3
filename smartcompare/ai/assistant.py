"""Shopping assistant collaborators: deal discovery, comparison analysis and chat.

Every call here degrades to a safe default instead of raising: discovery
returns no deals, analysis returns a deterministic fallback verdict and chat
returns an apology.
"""

import logging
import time
from typing import Optional, Sequence

from smartcompare import metrics
from smartcompare.ai.llm_service import LLMService, llm_service
from smartcompare.ai.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    COMPARISON_ANALYSIS_SCHEMA,
    DEAL_DISCOVERY_SCHEMA,
    ComparisonAnalysisPrompt,
    DealDiscoveryPrompt,
    ShopperChatPrompt,
)
from smartcompare.config import settings
from smartcompare.models import AnalysisResult, CandidateDeal, Listing, Review

logger = logging.getLogger(__name__)

CHAT_FALLBACK_REPLY = "Sorry, I can't answer right now. Please try again in a moment."


def fallback_analysis(reference: Listing, competitors: Sequence[Listing]) -> AnalysisResult:
    """Deterministic verdict used when the analysis call fails."""
    return AnalysisResult(
        best_price_id=competitors[0].id if competitors else reference.id,
        best_value_id=reference.id,
        trust_warning_id=None,
        summary="Comparison temporarily unavailable.",
        recommendation="Check back later.",
        pros=[],
        cons=[],
        alternatives=[],
    )


class ShoppingAssistant:
    """LLM-backed collaborators consumed by the comparison session."""

    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm or llm_service

    async def find_live_deals(self, product_title: str) -> list[CandidateDeal]:
        """
        Discover live offers for a product.

        Args:
            product_title: Title of the product being compared

        Returns:
            Candidate deals in the order the model returned them, or an
            empty list on any failure
        """
        if not settings.ai_deal_discovery_enabled:
            return []

        started = time.monotonic()
        try:
            payload = await self.llm.call_llm_structured(
                prompt=DealDiscoveryPrompt(product_title=product_title).to_prompt(),
                response_schema=DEAL_DISCOVERY_SCHEMA,
            )
            if isinstance(payload, dict):
                # Some models wrap the array in an object
                payload = next((v for v in payload.values() if isinstance(v, list)), [])
            if not isinstance(payload, list):
                raise ValueError(f"expected a list of deals, got {type(payload).__name__}")
            deals = [CandidateDeal.from_dict(item) for item in payload if isinstance(item, dict)]
        except Exception as e:
            logger.error(f"Live deal discovery failed for '{product_title}': {e}")
            metrics.record_ai_call("discovery", False, time.monotonic() - started)
            return []

        metrics.record_ai_call("discovery", True, time.monotonic() - started)
        logger.info(f"Discovered {len(deals)} live deal(s) for '{product_title}'")
        return deals

    async def analyze_comparison(
        self,
        reference: Listing,
        competitors: Sequence[Listing],
        reviews: Sequence[Review] = (),
    ) -> AnalysisResult:
        """
        Compare the reference product against its competitors.

        Args:
            reference: Product being viewed
            competitors: Competitor listings to weigh against it
            reviews: Recent customer reviews

        Returns:
            AnalysisResult (the deterministic fallback when the call fails)
        """
        if not settings.ai_analysis_enabled:
            return fallback_analysis(reference, competitors)

        prompt = ComparisonAnalysisPrompt(
            current_product=reference.to_dict(),
            competitors=[c.to_dict() for c in competitors],
            reviews=[r.text for r in reviews],
        )
        started = time.monotonic()
        try:
            payload = await self.llm.call_llm_structured(
                prompt=prompt.to_prompt(),
                response_schema=COMPARISON_ANALYSIS_SCHEMA,
                system_prompt=ANALYSIS_SYSTEM_PROMPT,
            )
            result = AnalysisResult.model_validate(payload)
        except Exception as e:
            logger.error(f"Comparison analysis failed for {reference.id}: {e}")
            metrics.record_ai_call("analysis", False, time.monotonic() - started)
            return fallback_analysis(reference, competitors)

        metrics.record_ai_call("analysis", True, time.monotonic() - started)
        return result

    async def chat_with_shopper(
        self,
        history: Sequence[dict],
        message: str,
        context: str,
    ) -> str:
        """
        Answer a shopper's question about the current comparison.

        Args:
            history: Previous turns as {"role": "user" | "model", "text": ...}
            message: New question
            context: Serialized product/competitor context

        Returns:
            Assistant reply, or a fixed apology on failure
        """
        messages = [{"role": "system", "content": ShopperChatPrompt(context=context).to_prompt()}]
        for turn in history:
            role = "assistant" if turn.get("role") == "model" else "user"
            messages.append({"role": role, "content": turn.get("text", "")})
        messages.append({"role": "user", "content": message})

        started = time.monotonic()
        try:
            reply = await self.llm.complete(messages, use_cache=False)
        except Exception as e:
            logger.error(f"Shopper chat failed: {e}")
            metrics.record_ai_call("chat", False, time.monotonic() - started)
            return CHAT_FALLBACK_REPLY

        metrics.record_ai_call("chat", True, time.monotonic() - started)
        return reply or CHAT_FALLBACK_REPLY


# Global assistant instance
shopping_assistant = ShoppingAssistant()
