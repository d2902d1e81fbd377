"""
Event model for the SecuritySpy event stream.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntFlag
from typing import Any, List, Optional

UNKNOWN_EVENT_TEXT = "Unknown Event"
UNKNOWN_REASON_TEXT = "Unknown Reason"

# Sequence IDs for events that did not come off the wire.
BAD_ID = -1
CONNECTED_ID = -9999
REFRESHED_ID = -9998
REFRESH_FAILED_ID = -9997
DISCONNECTED_ID = -10000
CUSTOM_ID = -11000


class EventType(str, Enum):
    """
    Kinds of events. Subscribers bind against these.

    The first group comes from the server. The second group belongs to this
    library: link health, refresh results, custom events and the two
    wildcard kinds ALL and UNKNOWN.
    """

    ARM_CONTINUOUS = "ARM_C"
    DISARM_CONTINUOUS = "DISARM_C"
    ARM_MOTION = "ARM_M"
    DISARM_MOTION = "DISARM_M"
    ARM_ACTIONS = "ARM_A"
    DISARM_ACTIONS = "DISARM_A"
    SERVER_ERROR = "ERROR"
    CONFIG_CHANGE = "CONFIGCHANGE"
    MOTION = "MOTION"  # legacy (v4)
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    CLASSIFY = "CLASSIFY"
    TRIGGER_MOTION = "TRIGGER_M"
    TRIGGER_ACTION = "TRIGGER_A"
    FILE_WRITTEN = "FILE"
    KEEP_ALIVE = "NULL"

    STREAM_CONNECTED = "CONNECTED"
    STREAM_DISCONNECTED = "DISCONNECTED"
    REFRESHED = "REFRESH"
    REFRESH_FAILED = "REFRESHFAIL"
    CUSTOM = "CUSTOM"
    UNKNOWN = "UNKNOWN"
    ALL = "ALL"

    def __str__(self) -> str:
        return self.value

    @property
    def description(self) -> str:
        """Human readable name of the event kind."""
        return _DESCRIPTIONS.get(self, UNKNOWN_EVENT_TEXT)

    @property
    def is_synthetic(self) -> bool:
        """True for kinds the library makes up itself."""
        return self in _SYNTHETIC

    @classmethod
    def from_token(cls, token: str) -> Optional["EventType"]:
        """Map a wire token to a server event kind, or None if it is not one."""
        try:
            kind = cls(token)
        except ValueError:
            return None
        if kind.is_synthetic or kind in (cls.UNKNOWN, cls.ALL):
            return None
        return kind


_SYNTHETIC = frozenset(
    {
        EventType.STREAM_CONNECTED,
        EventType.STREAM_DISCONNECTED,
        EventType.REFRESHED,
        EventType.REFRESH_FAILED,
        EventType.CUSTOM,
    }
)

_DESCRIPTIONS = {
    EventType.ARM_CONTINUOUS: "Continuous Capture Armed",
    EventType.DISARM_CONTINUOUS: "Continuous Capture Disarmed",
    EventType.ARM_MOTION: "Motion Capture Armed",
    EventType.DISARM_MOTION: "Motion Capture Disarmed",
    EventType.ARM_ACTIONS: "Actions Armed",
    EventType.DISARM_ACTIONS: "Actions Disarmed",
    EventType.SERVER_ERROR: "SecuritySpy Error",
    EventType.CONFIG_CHANGE: "Configuration Change",
    EventType.MOTION: "Motion Detected",
    EventType.ONLINE: "Camera Online",
    EventType.OFFLINE: "Camera Offline",
    EventType.CLASSIFY: "Classification",
    EventType.TRIGGER_MOTION: "Triggered Motion",
    EventType.TRIGGER_ACTION: "Triggered Action",
    EventType.FILE_WRITTEN: "File Written",
    EventType.KEEP_ALIVE: "Stream Keep Alive",
    EventType.STREAM_CONNECTED: "Event Stream Connected",
    EventType.STREAM_DISCONNECTED: "Event Stream Disconnected",
    EventType.REFRESHED: "SystemInfo Refresh Success",
    EventType.REFRESH_FAILED: "SystemInfo Refresh Failure",
    EventType.CUSTOM: "Custom Event",
    EventType.UNKNOWN: UNKNOWN_EVENT_TEXT,
    EventType.ALL: "Any Event",
}


class ParseError(Enum):
    """Markers recorded on an Event for each field that failed to parse."""

    TIMESTAMP_PARSE_FAILED = "timestamp parse failed"
    SEQUENCE_ID_PARSE_FAILED = "sequence ID parse failed"
    CAMERA_MISSING = "camera number missing"
    CAMERA_PARSE_FAILED = "camera parse failed"
    UNKNOWN_EVENT = "unknown event"

    def __str__(self) -> str:
        return self.value


class TriggerReason(IntFlag):
    """Why a TRIGGER_M / TRIGGER_A event fired. Sent as a bitmask."""

    MOTION = 1
    AUDIO = 2
    SCRIPT = 4
    CAMERA_EVENT = 8
    WEB_SERVER = 16
    OTHER_CAMERA = 32
    MANUAL = 64
    HUMAN = 128
    VEHICLE = 256


TRIGGER_REASON_TEXT = {
    TriggerReason.MOTION: "Motion Detected",
    TriggerReason.AUDIO: "Audio Detected",
    TriggerReason.SCRIPT: "AppleScript",
    TriggerReason.CAMERA_EVENT: "Camera Event",
    TriggerReason.WEB_SERVER: "Web Server",
    TriggerReason.OTHER_CAMERA: "Other Camera",
    TriggerReason.MANUAL: "Manual",
    TriggerReason.HUMAN: "Human Detected",
    TriggerReason.VEHICLE: "Vehicle Detected",
}


def describe_reasons(mask: int) -> str:
    """Turn a trigger bitmask into a comma separated list of reasons."""
    reasons = [text for flag, text in TRIGGER_REASON_TEXT.items() if mask & flag]
    return ", ".join(reasons) if reasons else UNKNOWN_REASON_TEXT


@dataclass
class Event:
    """One occurrence from the event stream, or one made up by the watcher."""

    timestamp: datetime
    sequence_id: int
    kind: EventType
    message: str = ""
    camera: Optional[Any] = None
    parse_errors: List[ParseError] = field(default_factory=list)
    received: datetime = field(default_factory=lambda: datetime.now().astimezone())

    def __str__(self) -> str:
        return self.kind.description

    @property
    def description(self) -> str:
        return self.kind.description

    @property
    def camera_number(self) -> Optional[int]:
        return self.camera.number if self.camera is not None else None

    def copy(self) -> "Event":
        """Shallow copy with its own parse_errors list. The camera is shared."""
        return replace(self, parse_errors=list(self.parse_errors))

    def add_error(self, error: ParseError) -> None:
        """Record a parse failure once, keeping the order they happened in."""
        if error not in self.parse_errors:
            self.parse_errors.append(error)

    def to_dict(self):
        """Serialize the event, e.g. for logging or forwarding as JSON."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "received": self.received.isoformat(),
            "sequence_id": self.sequence_id,
            "kind": self.kind.value,
            "camera": self.camera_number,
            "message": self.message,
            "parse_errors": [e.value for e in self.parse_errors],
        }
