"""
Turn one raw event-stream record into an Event.

Record layout (one per \\r-terminated line):

    [TIME] [SEQUENCE] [CAMERA] [EVENT] [rest of message]

    20190114200911 104519 CAM2 MOTION
    20190114201139 104524 CAM0 ERROR 10,835 Error communicating with the network device "Porch".
    20190927092026 4 3 TRIGGER_M 9
    20190927092040 5 X NULL

Version 5 servers may send the camera as a bare number, or X for none. Only
CAM<n> is read as a camera; anything else is reported as CAMERA_MISSING and
the event is still parsed.

TIME is always 14 digits, YYYYMMDDHHMMSS, in the server's local time without
an offset. It is read in this process's local zone, which is only correct when
both machines share a zone.
"""

import logging
import re
from datetime import datetime
from typing import Any, Callable, Optional

from securityspy.models.event import (
    BAD_ID,
    Event,
    EventType,
    ParseError,
    describe_reasons,
)

logger = logging.getLogger(__name__)

EVENT_TIME_FORMAT = "%Y%m%d%H%M%S"
CAMERA_PREFIX = "CAM"

_CAMERA_TOKEN = re.compile(rf"^{CAMERA_PREFIX}\d")

CameraLookup = Callable[[int], Optional[Any]]


def parse_timestamp(text: str) -> Optional[datetime]:
    """Parse a 14 digit event time in the local zone. None if it is not one."""
    if len(text) != 14 or not text.isdigit():
        return None
    try:
        return datetime.strptime(text, EVENT_TIME_FORMAT).astimezone()
    except ValueError:
        return None


def _lookup_camera(camera_lookup: Optional[CameraLookup], number: int):
    if camera_lookup is None:
        return None
    try:
        return camera_lookup(number)
    except Exception as e:
        logger.warning(f"Camera lookup for {number} failed: {e}")
        return None


def parse_event(raw: str, camera_lookup: Optional[CameraLookup] = None) -> Event:
    """
    Parse a record into an Event. Never raises.

    Fields that fail to parse get a sentinel value and a ParseError marker on
    the returned event; the event is still returned so it can be delivered.

    Args:
        raw: One record from the event stream, without its terminator
        camera_lookup: Callable returning the camera for a number, or None

    Returns:
        The parsed Event
    """
    parts = raw.split(None, 3)
    while len(parts) < 4:
        parts.append("")
    time_text, id_text, camera_text, message = parts

    event = Event(
        timestamp=datetime.now().astimezone(),
        sequence_id=BAD_ID,
        kind=EventType.UNKNOWN,
        message=message,
    )

    timestamp = parse_timestamp(time_text)
    if timestamp is None:
        event.add_error(ParseError.TIMESTAMP_PARSE_FAILED)
    else:
        event.timestamp = timestamp

    try:
        event.sequence_id = int(id_text)
    except ValueError:
        event.add_error(ParseError.SEQUENCE_ID_PARSE_FAILED)

    if _CAMERA_TOKEN.match(camera_text):
        try:
            number = int(camera_text[len(CAMERA_PREFIX):])
        except ValueError:
            event.add_error(ParseError.CAMERA_PARSE_FAILED)
        else:
            event.camera = _lookup_camera(camera_lookup, number)
            if event.camera is None:
                event.add_error(ParseError.CAMERA_PARSE_FAILED)
    else:
        event.add_error(ParseError.CAMERA_MISSING)
        # No camera column: the token we took for one is the event kind.
        if EventType.from_token(camera_text) is not None:
            event.message = f"{camera_text} {message}".rstrip()

    words = event.message.split()
    kind = EventType.from_token(words[0]) if words else None
    if kind is None:
        event.add_error(ParseError.UNKNOWN_EVENT)
    else:
        event.kind = kind

    if kind in (EventType.TRIGGER_MOTION, EventType.TRIGGER_ACTION) and len(words) == 2:
        try:
            mask = int(words[1])
        except ValueError:
            mask = 0
        event.message += " - Reasons: " + describe_reasons(mask)

    if event.parse_errors:
        logger.debug(
            f"Parsed event with errors {[str(e) for e in event.parse_errors]}: {raw!r}"
        )
    return event
