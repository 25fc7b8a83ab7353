"""
Async Groq client using the Groq SDK.
Fast LPU inference; preferred provider for flashcard and mascot generation.
"""

import logging
from typing import Optional

from groq import AsyncGroq
from groq import APIError, APIStatusError, RateLimitError, APITimeoutError

logger = logging.getLogger(__name__)


class LLMClientGroq:
    """
    Groq completion provider.

    Popular Groq models:
    - llama-3.1-8b-instant: Fastest, good enough for short JSON payloads
    - llama-3.3-70b-versatile: Better for nuanced dialogue
    """

    name = "groq"

    MAX_OUTPUT_TOKENS = 900

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "llama-3.1-8b-instant",
        timeout: float = 12.0,
        temperature: float = 0.2,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        # max_retries=0: the gateway owns fallback, a provider is tried once
        self.client = AsyncGroq(api_key=api_key, max_retries=0) if api_key else None

        logger.info(f"LLMClientGroq initialized with model: {model}, configured={self.is_configured}")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def complete(self, prompt: str, system_instruction: str) -> str:
        """
        Run one chat completion against Groq.

        Raises:
            RuntimeError: On any provider failure, with the HTTP status when known
        """
        if not self.client:
            raise RuntimeError("groq_missing_api_key")

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
            logger.warning(f"Groq rate limit hit: {e}")
            raise RuntimeError("groq rate limit exceeded")
        except APITimeoutError as e:
            logger.warning(f"Groq timeout: {e}")
            raise RuntimeError("groq request timed out")
        except APIStatusError as e:
            logger.error(f"Groq HTTP error {e.status_code}: {e}")
            raise RuntimeError(f"groq_http_{e.status_code}:{str(e)[:300]}")
        except APIError as e:
            logger.error(f"Groq API error: {e}")
            raise RuntimeError(f"groq api error: {str(e)[:300]}")

        content = response.choices[0].message.content or ""

        usage = response.usage
        if usage:
            logger.info(
                f"Groq completion successful - Tokens: {usage.prompt_tokens} in, "
                f"{usage.completion_tokens} out, {usage.total_tokens} total"
            )

        return content.strip()
