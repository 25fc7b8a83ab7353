"""
Async Gemini client using Gemini's OpenAI-compatible endpoint.
Lightweight wrapper over the OpenAI SDK, no Google SDK required.
"""

import logging
from typing import Optional

from openai import AsyncOpenAI
from openai import APIError, RateLimitError, APITimeoutError

from focusflow.config import GEMINI_OPENAI_BASE_URL

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Gemini completion provider.

    Design principles:
    - Single attempt per call: fallback lives in the gateway, not here
    - Bounded: every request carries a timeout
    - Observable: token usage logged per call
    """

    name = "gemini"

    # Classification output plus an inline flashcard/script fits well under this
    MAX_OUTPUT_TOKENS = 900

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-1.5-pro",
        base_url: str = GEMINI_OPENAI_BASE_URL,
        timeout: float = 12.0,
        temperature: float = 0.2,
    ):
        """
        Initialize the Gemini provider.

        Args:
            api_key: Gemini API key; the provider reports itself unconfigured without one
            model: Gemini model name
            base_url: OpenAI-compatible Gemini endpoint
            timeout: Per-request timeout in seconds
            temperature: Sampling temperature (low, JSON output)
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.client = AsyncOpenAI(base_url=base_url, api_key=api_key) if api_key else None

        logger.info(f"LLMClient (gemini) initialized with model: {model}, configured={self.is_configured}")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def complete(self, prompt: str, system_instruction: str) -> str:
        """
        Run one chat completion.

        Args:
            prompt: User prompt
            system_instruction: System message

        Returns:
            Raw response text (stripped)

        Raises:
            RuntimeError: On any provider failure
        """
        if not self.client:
            raise RuntimeError("gemini_missing_api_key")

        messages = [
            {"role": "system", "content": system_instruction},
            {"role": "user", "content": prompt},
        ]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.MAX_OUTPUT_TOKENS,
                timeout=self.timeout,
            )
        except RateLimitError as e:
            logger.warning(f"Gemini rate limit hit: {e}")
            raise RuntimeError("gemini rate limit exceeded")
        except APITimeoutError as e:
            logger.warning(f"Gemini timeout: {e}")
            raise RuntimeError("gemini request timed out")
        except APIError as e:
            logger.error(f"Gemini API error: {e}")
            raise RuntimeError(f"gemini api error: {str(e)[:300]}")

        content = response.choices[0].message.content or ""

        usage = response.usage
        if usage:
            logger.info(
                f"Gemini completion successful - Tokens: {usage.prompt_tokens} in, "
                f"{usage.completion_tokens} out, {usage.total_tokens} total"
            )

        return content.strip()
