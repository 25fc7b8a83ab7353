"""
Event log service for raw extension payloads.
"""

from .event_log import EventLog

__all__ = ["EventLog"]
