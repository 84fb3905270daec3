"""Centralized prompt templates for LLM interactions."""

import json
from typing import Optional

from pydantic import BaseModel


class DealDiscoveryPrompt(BaseModel):
    """Prompt schema for finding live offers of a product."""

    product_title: str
    retailers: list[str] = ["Amazon", "eBay", "Best Buy", "Walmart", "B&H", "Target"]

    def to_prompt(self) -> str:
        """Convert to prompt text."""
        return f"""Find valid, active product detail pages for buying "{self.product_title}" online.
Search on major trusted retailers like {', '.join(self.retailers)}.

Return a JSON array of found buying options. For each, provide:
- vendor: The name of the store (e.g. "Best Buy").
- price: The current price number (estimate if necessary).
- url: The direct link to the product page.
- condition: "New", "Used", or "Refurbished".

Only include results where the product is actually available.
Ignore generic search result pages; look for specific item pages."""


class ComparisonAnalysisPrompt(BaseModel):
    """Prompt schema for comparing the viewed product against competitors."""

    current_product: dict
    competitors: list[dict]
    reviews: list[str] = []

    def to_prompt(self) -> str:
        """Convert to prompt text."""
        return f"""Analyze the current product being viewed vs its competitors.

Current Product: {json.dumps(self.current_product, default=str)}
Competitors: {json.dumps(self.competitors, default=str)}
Recent Reviews: {json.dumps(self.reviews)}

Task:
1. Identify the 'bestPriceId' (lowest total cost).
2. Identify the 'bestValueId' (balance of price, condition, trust).
3. Identify any 'trustWarningId' if a seller has a low trust score (< 70).
4. Write a concise 'summary' (max 2 sentences).
5. Provide a direct 'recommendation'.
6. List 3 'pros' and 3 'cons'.
7. Suggest 2 'alternatives' (different models/brands) with title, price, reason.

Return JSON."""


class ShopperChatPrompt(BaseModel):
    """System prompt for the shopping assistant chat."""

    context: str
    max_words: int = 50
    assistant_name: Optional[str] = "SmartCompare"

    def to_prompt(self) -> str:
        return (
            f"You are {self.assistant_name}, a helpful shopping assistant. "
            f"You have context about the product the user is viewing and its competitors: {self.context}. "
            f"Answer questions briefly (under {self.max_words} words) and objectively. "
            "Focus on value and safety."
        )


ANALYSIS_SYSTEM_PROMPT = "You are an expert e-commerce shopping assistant."

# Response schemas for structured output
DEAL_DISCOVERY_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "vendor": {"type": "string"},
            "price": {"type": "number"},
            "url": {"type": "string"},
            "condition": {"type": "string"},
        },
    },
}

COMPARISON_ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "bestPriceId": {"type": "string"},
        "bestValueId": {"type": "string"},
        "trustWarningId": {"type": ["string", "null"]},
        "summary": {"type": "string"},
        "recommendation": {"type": "string"},
        "pros": {"type": "array", "items": {"type": "string"}},
        "cons": {"type": "array", "items": {"type": "string"}},
        "alternatives": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "price": {"type": "number"},
                    "reason": {"type": "string"},
                },
            },
        },
    },
    "required": ["bestPriceId", "bestValueId", "summary", "recommendation", "pros", "cons", "alternatives"],
}
