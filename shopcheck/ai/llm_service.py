"""LLM service for OpenAI integration."""

import hashlib
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

import redis.asyncio as redis
from openai import AsyncOpenAI

from shopcheck.config import settings
from shopcheck.exceptions import LLMCostLimitError

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class LLMService:
    """
    Service for LLM interactions with OpenAI.

    Features:
    - OpenAI chat completions
    - Forced JSON output mode
    - Caching (Redis-based, opt-in)
    - Cost tracking with a daily ceiling
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._client: Optional[AsyncOpenAI] = client
        self._redis: Optional[redis.Redis] = None
        self._today = today or _utc_today
        self._stats_date: date = self._today()
        self._daily_cost: float = 0.0
        self._call_count: int = 0

    async def _get_client(self) -> AsyncOpenAI:
        """Get or create OpenAI client."""
        if self._client is None:
            if not settings.openai_api_key:
                raise ValueError("OpenAI API key not configured")
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.llm_timeout_seconds,
            )
        return self._client

    async def _get_redis(self) -> Optional[redis.Redis]:
        """Get or create Redis connection for caching."""
        if not settings.llm_cache_enabled:
            return None

        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
            except Exception as e:
                logger.warning(f"Failed to connect to Redis for LLM cache: {e}")
                return None
        return self._redis

    def _get_cache_key(self, prompt: str, system_prompt: str, model: str) -> str:
        """Generate cache key for prompt."""
        combined = f"{system_prompt}:{prompt}:{model}"
        key_hash = hashlib.sha256(combined.encode('utf-8')).hexdigest()
        return f"llm_cache:{key_hash}"

    def _roll_over_day(self) -> None:
        """Reset daily stats once the UTC date changes."""
        today = self._today()
        if today != self._stats_date:
            self.reset_daily_stats()
            self._stats_date = today

    def _check_cost_limit(self) -> None:
        """Raise if the daily cost limit is exceeded."""
        self._roll_over_day()
        if not settings.track_llm_costs:
            return

        if self._daily_cost >= settings.llm_cost_limit_per_day:
            raise LLMCostLimitError(
                f"Daily LLM cost limit reached: ${self._daily_cost:.2f} >= "
                f"${settings.llm_cost_limit_per_day:.2f}"
            )

    def _estimate_cost(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        """
        Estimate cost for LLM call.

        Pricing (approximate, per 1K tokens):
        - gpt-4o: $0.0025 input, $0.01 output
        - gpt-4-turbo: $0.01 input, $0.03 output
        - others: $0.0015 input, $0.002 output
        """
        model_lower = model.lower()
        if "gpt-4o" in model_lower:
            input_rate, output_rate = 0.0025, 0.01
        elif "gpt-4" in model_lower:
            input_rate, output_rate = 0.01, 0.03
        else:
            input_rate, output_rate = 0.0015, 0.002

        return (prompt_tokens / 1000) * input_rate + (completion_tokens / 1000) * output_rate

    async def _cache_get(self, cache_key: str) -> Optional[str]:
        redis_client = await self._get_redis()
        if not redis_client:
            return None
        try:
            return await redis_client.get(cache_key)
        except Exception as e:
            logger.warning(f"LLM cache read failed: {e}")
            return None

    async def _cache_set(self, cache_key: str, value: str) -> None:
        redis_client = await self._get_redis()
        if not redis_client:
            return
        try:
            await redis_client.setex(cache_key, settings.llm_cache_ttl_seconds, value)
        except Exception as e:
            logger.warning(f"LLM cache write failed: {e}")

    async def call_llm(
        self,
        prompt: str,
        system_prompt: str = "",
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        force_json: bool = False,
        use_cache: bool = True,
    ) -> str:
        """
        Call LLM with a prompt and return text response.

        Args:
            prompt: User prompt
            system_prompt: System prompt/instructions
            temperature: Temperature (defaults to settings.llm_temperature)
            model: Model name (defaults to settings.llm_model)
            max_tokens: Completion token limit (defaults to settings.llm_max_tokens)
            force_json: Request a JSON object response format
            use_cache: Whether to use cache

        Returns:
            LLM response text (empty string when the model returned nothing)
        """
        model = model or settings.llm_model
        temperature = temperature if temperature is not None else settings.llm_temperature
        max_tokens = max_tokens or settings.llm_max_tokens

        self._check_cost_limit()

        cache_key = self._get_cache_key(prompt, system_prompt, model)
        if use_cache:
            cached = await self._cache_get(cache_key)
            if cached:
                logger.debug(f"LLM cache hit for prompt: {prompt[:50]}...")
                self._call_count += 1
                return cached

        client = await self._get_client()

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if force_json:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await client.chat.completions.create(**request)
        except Exception as e:
            logger.error(f"LLM API call failed: {e}")
            raise

        result = response.choices[0].message.content if response.choices else None
        if result is None:
            result = ""

        if settings.track_llm_costs and response.usage is not None:
            prompt_tokens = response.usage.prompt_tokens
            completion_tokens = response.usage.completion_tokens
            cost = self._estimate_cost(model, prompt_tokens, completion_tokens)
            self._daily_cost += cost
            logger.debug(
                f"LLM call cost: ${cost:.4f} "
                f"(tokens: {prompt_tokens}+{completion_tokens}, total: ${self._daily_cost:.2f})"
            )

        self._call_count += 1

        if use_cache and result:
            await self._cache_set(cache_key, result)

        return result

    def get_stats(self) -> Dict[str, Any]:
        """
        Get LLM service statistics.

        Returns:
            Dictionary with call count, daily cost, etc.
        """
        self._roll_over_day()
        return {
            "call_count": self._call_count,
            "daily_cost": self._daily_cost,
            "cost_limit": settings.llm_cost_limit_per_day,
            "cache_enabled": settings.llm_cache_enabled,
        }

    def reset_daily_stats(self):
        """Reset daily cost and call count (done automatically on a new UTC day)."""
        self._daily_cost = 0.0
        self._call_count = 0
        logger.info("LLM daily stats reset")

    async def close(self):
        """Close connections."""
        if self._redis:
            await self._redis.close()
            self._redis = None
        if self._client:
            await self._client.close()
            self._client = None


# Global LLM service instance
llm_service = LLMService()
