"""Tests for LLM service."""

import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from smartcompare.ai.llm_service import LLMNotConfiguredError, LLMService, llm_service, parse_json_response
from smartcompare.config import settings


def fake_client(content):
    """OpenAI client stub returning a single choice."""
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


class TestParseJsonResponse:
    def test_plain_json(self):
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert parse_json_response('```json\n[{"vendor": "Walmart"}]\n```') == [{"vendor": "Walmart"}]

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_json_response("Sorry, I can't help with that.")


@pytest.mark.asyncio
async def test_missing_key_raises(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "")
    service = LLMService()

    assert service.is_configured is False
    with pytest.raises(LLMNotConfiguredError):
        await service.call_llm(prompt="hello", use_cache=False)
    assert service.get_stats()["error_count"] == 1


@pytest.mark.asyncio
async def test_structured_call_with_stub_client():
    service = LLMService()
    client = fake_client('```json\n{"brand": "Sony"}\n```')
    service._client = client

    result = await service.call_llm_structured(
        prompt="Extract the brand from: 'Sony WH-1000XM5'",
        response_schema={"type": "object", "properties": {"brand": {"type": "string"}}},
        system_prompt="You extract brands.",
    )

    assert result == {"brand": "Sony"}
    messages = client.chat.completions.create.call_args.kwargs["messages"]
    assert messages[0]["role"] == "system"
    assert "Respond with valid JSON" in messages[0]["content"]
    assert service.get_stats()["call_count"] == 1


@pytest.mark.asyncio
async def test_empty_content_becomes_empty_string():
    service = LLMService()
    service._client = fake_client(None)
    assert await service.complete([{"role": "user", "content": "hi"}], use_cache=False) == ""


@pytest.mark.asyncio
async def test_call_llm_basic():
    """Test basic LLM call (requires API key)."""
    if not os.getenv("OPENAI_API_KEY"):
        pytest.skip("OpenAI API key not configured")

    response = await llm_service.call_llm(prompt="What is 2+2? Respond with only the number.")

    assert response is not None
    assert len(response) > 0


def test_get_stats():
    """Test getting LLM service statistics."""
    stats = llm_service.get_stats()

    assert isinstance(stats, dict)
    assert "call_count" in stats
    assert "configured" in stats
