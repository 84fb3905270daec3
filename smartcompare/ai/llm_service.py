"""LLM service wrapping the OpenAI API."""

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional

import redis.asyncio as redis
from openai import AsyncOpenAI

from smartcompare.config import settings

logger = logging.getLogger(__name__)


class LLMNotConfiguredError(RuntimeError):
    """No API key is configured, so the engine runs in demo mode."""


class LLMService:
    """
    Service for LLM interactions with OpenAI.

    Features:
    - Plain text, structured JSON and multi-turn chat calls
    - Optional Redis response cache
    - Call statistics
    """

    def __init__(self):
        self._client: Optional[AsyncOpenAI] = None
        self._redis: Optional[redis.Redis] = None
        self._call_count: int = 0
        self._error_count: int = 0

    @property
    def is_configured(self) -> bool:
        return bool(settings.openai_api_key)

    async def _get_client(self) -> AsyncOpenAI:
        """Get or create OpenAI client."""
        if self._client is None:
            if not settings.openai_api_key:
                raise LLMNotConfiguredError("OpenAI API key not configured")
            self._client = AsyncOpenAI(api_key=settings.openai_api_key)
        return self._client

    async def _get_redis(self) -> Optional[redis.Redis]:
        """Get or create Redis connection for caching."""
        if not settings.llm_cache_enabled:
            return None

        if self._redis is None:
            try:
                self._redis = await redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
            except Exception as e:
                logger.warning(f"Failed to connect to Redis for LLM cache: {e}")
                return None
        return self._redis

    def _get_cache_key(self, messages: List[Dict[str, str]], model: str) -> str:
        combined = json.dumps({"messages": messages, "model": model}, sort_keys=True)
        key_hash = hashlib.sha256(combined.encode('utf-8')).hexdigest()
        return f"llm_cache:{key_hash}"

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        use_cache: bool = True,
    ) -> str:
        """
        Send a chat completion request.

        Args:
            messages: OpenAI-style role/content messages
            temperature: Temperature (defaults to settings.llm_temperature)
            model: Model name (defaults to settings.llm_model)
            use_cache: Whether to use the response cache

        Returns:
            Response text (empty string if the model returned no content)
        """
        model = model or settings.llm_model
        temperature = temperature if temperature is not None else settings.llm_temperature

        redis_client = await self._get_redis() if use_cache else None
        cache_key = self._get_cache_key(messages, model)
        if redis_client:
            cached = await redis_client.get(cache_key)
            if cached:
                logger.debug("LLM cache hit")
                self._call_count += 1
                return cached

        try:
            client = await self._get_client()
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=settings.llm_max_tokens,
                timeout=settings.llm_timeout_seconds,
            )
        except Exception as e:
            self._error_count += 1
            logger.error(f"LLM API call failed: {e}")
            raise

        result = response.choices[0].message.content or ""
        self._call_count += 1

        if redis_client and result:
            await redis_client.setex(cache_key, settings.llm_cache_ttl_seconds, result)

        return result

    async def call_llm(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        use_cache: bool = True,
    ) -> str:
        """Call LLM with a single prompt and return text response."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return await self.complete(messages, temperature=temperature, model=model, use_cache=use_cache)

    async def call_llm_structured(
        self,
        prompt: str,
        response_schema: Dict[str, Any],
        system_prompt: str = "",
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> Any:
        """
        Call LLM with structured JSON output.

        Args:
            prompt: User prompt
            response_schema: JSON schema describing expected response structure
            system_prompt: System prompt/instructions
            temperature: Temperature
            model: Model name

        Returns:
            Parsed JSON response

        Raises:
            ValueError: If the response is not valid JSON
        """
        enhanced_system = system_prompt
        if enhanced_system:
            enhanced_system += "\n\n"
        enhanced_system += (
            f"Respond with valid JSON matching this schema: {json.dumps(response_schema, indent=2)}\n"
            "Return only the JSON, no additional text."
        )

        response_text = await self.call_llm(
            prompt=prompt,
            system_prompt=enhanced_system,
            temperature=temperature,
            model=model,
        )
        return parse_json_response(response_text)

    def get_stats(self) -> Dict[str, Any]:
        """Get LLM service statistics."""
        return {
            "call_count": self._call_count,
            "error_count": self._error_count,
            "configured": self.is_configured,
            "cache_enabled": settings.llm_cache_enabled,
        }

    async def close(self):
        """Close connections."""
        if self._redis:
            await self._redis.close()
            self._redis = None
        if self._client:
            await self._client.close()
            self._client = None


def parse_json_response(response_text: str) -> Any:
    """Parse a JSON reply, tolerating markdown code fences around it."""
    text = response_text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM JSON response: {e}\nResponse: {text[:200]}")
        raise ValueError(f"Invalid JSON response from LLM: {e}") from e


# Global LLM service instance
llm_service = LLMService()
