"""
Models package for the securityspy client.
"""

from .event import (
    Event,
    EventType,
    ParseError,
    TriggerReason,
    describe_reasons,
    UNKNOWN_EVENT_TEXT,
    UNKNOWN_REASON_TEXT,
)

__all__ = [
    "Event",
    "EventType",
    "ParseError",
    "TriggerReason",
    "describe_reasons",
    "UNKNOWN_EVENT_TEXT",
    "UNKNOWN_REASON_TEXT",
]
