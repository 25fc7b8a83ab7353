"""
LLM provider gateway.

Holds an ordered set of interchangeable completion providers and runs a
JSON prompt against them, preferred provider first, returning the first
success. Also owns the decode step that turns raw model text into a
tagged result.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

JSON_SYSTEM_INSTRUCTION = "Return only valid JSON. No markdown fences. No extra prose."

_LEADING_JSON_FENCE = re.compile(r"^```json\s*", re.IGNORECASE)
_LEADING_FENCE = re.compile(r"^```")
_TRAILING_FENCE = re.compile(r"```$")


class LLMProvider(Protocol):
    name: str

    @property
    def is_configured(self) -> bool: ...

    async def complete(self, prompt: str, system_instruction: str) -> str: ...


class NoProviderConfigured(RuntimeError):
    """No provider has credentials configured"""

    def __init__(self):
        super().__init__("no_llm_provider_configured")


class ProviderChainError(RuntimeError):
    """Every configured provider failed; carries each provider's error"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(" | ".join(self.errors))


@dataclass(frozen=True)
class JsonResult:
    """Tagged decode result: ok with data, or not ok with an error reason"""
    ok: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, data: Dict[str, Any]) -> "JsonResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, reason: str) -> "JsonResult":
        return cls(ok=False, error=reason)


def strip_code_fences(text: str) -> str:
    """Drop ```json / ``` wrappers models add despite being told not to"""
    cleaned = (text or "").strip()
    cleaned = _LEADING_JSON_FENCE.sub("", cleaned)
    cleaned = _LEADING_FENCE.sub("", cleaned)
    cleaned = _TRAILING_FENCE.sub("", cleaned)
    return cleaned.strip()


def decode_json_object(raw: str) -> JsonResult:
    """
    Decode model output into a JSON object.

    Returns:
        JsonResult.success(dict) or JsonResult.failure(reason) for empty
        output, invalid JSON, or JSON that is not an object
    """
    if not raw or not raw.strip():
        return JsonResult.failure("empty_response")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        return JsonResult.failure(f"invalid_json: {e.msg}")
    if not isinstance(parsed, dict):
        return JsonResult.failure(f"expected_object_got_{type(parsed).__name__}")
    return JsonResult.success(parsed)


class LLMGateway:
    """
    Ordered provider chain with early return on success.

    Providers without credentials are skipped. A failing provider is
    recorded and the next one tried; nothing is retried within one call.
    """

    def __init__(self, providers: Sequence[LLMProvider]):
        self.providers = list(providers)

    @property
    def is_configured(self) -> bool:
        return any(p.is_configured for p in self.providers)

    def provider_order(self, preferred: Optional[str]) -> List[LLMProvider]:
        preferred_first = [p for p in self.providers if p.name == preferred]
        rest = [p for p in self.providers if p.name != preferred]
        return preferred_first + rest

    async def run_json_prompt(self, prompt: str, preferred_provider: Optional[str] = "gemini") -> str:
        """
        Run a prompt that must answer with raw JSON.

        Args:
            prompt: User prompt
            preferred_provider: Name of the provider to try first

        Returns:
            Response text with any code fences stripped

        Raises:
            NoProviderConfigured: If no provider has credentials
            ProviderChainError: If every configured provider failed
        """
        errors: List[str] = []

        for provider in self.provider_order(preferred_provider):
            if not provider.is_configured:
                continue
            try:
                text = await provider.complete(prompt, JSON_SYSTEM_INSTRUCTION)
                return strip_code_fences(text)
            except Exception as e:
                logger.warning(f"Provider {provider.name} failed: {e}", extra={"provider": provider.name})
                errors.append(f"{provider.name}:{str(e) or 'unknown'}")

        if not errors:
            raise NoProviderConfigured()
        raise ProviderChainError(errors)

    async def run_json_object(self, prompt: str, preferred_provider: Optional[str] = "gemini") -> JsonResult:
        """run_json_prompt followed by decode_json_object; provider errors still raise"""
        raw = await self.run_json_prompt(prompt, preferred_provider)
        return decode_json_object(raw)
