"""
AI Orchestrator Module - focus classification and intervention content.

Classifies focus state through an LLM provider chain and generates
flashcards or devil/angel dialogue for distracted learners.
"""

from .decision_engine import DecisionEngine
from .gateway import LLMGateway, NoProviderConfigured, ProviderChainError
from .generation import ContentGenerator
from .llm_client import LLMClient
from .llm_client_groq import LLMClientGroq

__all__ = [
    "DecisionEngine",
    "LLMGateway",
    "NoProviderConfigured",
    "ProviderChainError",
    "ContentGenerator",
    "LLMClient",
    "LLMClientGroq",
]
