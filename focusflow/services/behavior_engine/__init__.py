"""
Behavior Engine - turns raw extension telemetry into model-ready snapshots,
topic relevance profiles and rolling per-session context.
"""

from .snapshot import BehavioralSnapshot, summarize_payload
from .session_context import SessionContextBucket, SessionContextStore
from .topic_relevance import TopicProfile, compute_topic_relevance

__all__ = [
    "BehavioralSnapshot",
    "summarize_payload",
    "SessionContextBucket",
    "SessionContextStore",
    "TopicProfile",
    "compute_topic_relevance",
]
