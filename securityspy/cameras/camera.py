import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"1", "true", "yes", "armed", "active", "enabled"}


def yes_no(text: Optional[str]) -> bool:
    """Convert the server's yes/no, armed/disarmed, active/inactive or 1/0 to a bool."""
    return (text or "").strip().lower() in _TRUE_WORDS


def _int(text: Optional[str], default: int = 0) -> int:
    try:
        return int((text or "").strip())
    except ValueError:
        return default


@dataclass
class Camera:
    """A camera as reported by ++systemInfo. Only the fields the client uses."""

    number: int
    name: str = ""
    connected: bool = False
    mode_continuous: bool = False
    mode_motion: bool = False
    mode_actions: bool = False
    device_name: str = ""
    device_type: str = ""
    address: str = ""
    width: int = 0
    height: int = 0
    has_audio: bool = False

    @classmethod
    def from_xml(cls, element: ET.Element) -> "Camera":
        """Build a camera from a <camera> element of the systemInfo document."""

        def text(tag):
            return element.findtext(tag, default="")

        return cls(
            number=_int(text("number"), -1),
            name=text("name"),
            connected=yes_no(text("connected")),
            mode_continuous=yes_no(text("mode-c")),
            mode_motion=yes_no(text("mode-m")),
            mode_actions=yes_no(text("mode-a")),
            device_name=text("devicename"),
            device_type=text("devicetype"),
            address=text("address"),
            width=_int(text("width")),
            height=_int(text("height")),
            has_audio=yes_no(text("hasaudio")),
        )


class Cameras:
    """
    Camera registry. Replaced wholesale by every refresh, so a reference held
    by an event keeps pointing at the camera as it was when the event parsed.
    """

    def __init__(self, cameras: Iterable[Camera] = ()):
        self._cameras: List[Camera] = list(cameras)

    def __len__(self):
        return len(self._cameras)

    def __iter__(self):
        return iter(self._cameras)

    def all(self) -> List[Camera]:
        return list(self._cameras)

    def by_num(self, number: int) -> Optional[Camera]:
        for camera in self._cameras:
            if camera.number == number:
                return camera
        return None

    def by_name(self, name: str) -> Optional[Camera]:
        for camera in self._cameras:
            if camera.name == name:
                return camera
        return None

    @property
    def numbers(self) -> List[int]:
        return [c.number for c in self._cameras]

    @property
    def names(self) -> List[str]:
        return [c.name for c in self._cameras]

    @classmethod
    def from_xml(cls, root: ET.Element) -> "Cameras":
        """Collect every camera under <cameralist> of a systemInfo document."""
        cameras = []
        for element in root.iterfind("./cameralist/camera"):
            camera = Camera.from_xml(element)
            if camera.number < 0:
                logger.warning(f"Skipping camera without a number: {camera.name!r}")
                continue
            cameras.append(camera)
        return cls(cameras)
