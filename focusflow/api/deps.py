"""
Service wiring for the API layer.

Singletons are built lazily from Settings and handed to endpoints through
FastAPI dependencies, so tests can swap them with dependency_overrides.
"""

import logging
from functools import lru_cache

from ..config import Settings, get_settings
from ..services.ai_orchestrator import DecisionEngine, LLMClient, LLMClientGroq, LLMGateway
from ..services.behavior_engine import SessionContextStore
from ..services.event_log import EventLog

logger = logging.getLogger(__name__)


def build_gateway(settings: Settings) -> LLMGateway:
    """Gemini first, Groq second; order is only the default preference"""
    return LLMGateway([
        LLMClient(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.llm_timeout_seconds,
        ),
        LLMClientGroq(
            api_key=settings.groq_api_key,
            model=settings.groq_model,
            timeout=settings.llm_timeout_seconds,
        ),
    ])


@lru_cache()
def get_decision_engine() -> DecisionEngine:
    settings = get_settings()
    gateway = build_gateway(settings)
    if not gateway.is_configured:
        logger.warning("No LLM provider configured; decisions will use the heuristic fallback")
    return DecisionEngine(gateway=gateway, store=SessionContextStore())


@lru_cache()
def get_event_log() -> EventLog:
    return EventLog(get_settings().events_file)
