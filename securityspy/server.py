"""
HTTP client for a SecuritySpy server.

All requests are GETs against the server's ``++`` endpoints with the
credentials passed as a base64 ``auth`` query parameter. XML endpoints also
get ``format=xml``.
"""

import base64
import logging
import os
import xml.etree.ElementTree as ET
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional

import aiofiles
import httpx

from securityspy.cameras import Cameras, yes_no
from securityspy.events.watcher import EventWatcher
from securityspy.exceptions import CommandNotOKError, RequestError
from securityspy.utils.config import ServerConfig
from securityspy.version import USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
# Endpoints that return media or streams rather than XML.
NON_XML_PREFIXES = ("++getfile", "++event", "++image", "++audio", "++stream", "++video")


@dataclass
class ServerInfo:
    """The <server> block of ++systemInfo."""

    name: str = ""
    version: str = ""
    uuid: str = ""
    event_stream_count: int = 0
    ip1: str = ""
    ip2: str = ""
    http_enabled: bool = False
    http_port: int = 0
    https_enabled: bool = False
    https_port: int = 0
    current_time: str = ""
    gmt_offset: int = 0  # seconds
    date_format: str = ""
    time_format: str = ""
    refreshed: Optional[datetime] = None
    schedules: Dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_xml(cls, root: ET.Element) -> "ServerInfo":
        server = root.find("server")
        if server is None:
            server = ET.Element("server")

        def text(tag):
            return server.findtext(tag, default="").strip()

        def number(tag):
            try:
                return int(text(tag))
            except ValueError:
                return 0

        schedules = {}
        for item in root.iterfind("./schedulelist/schedule"):
            try:
                schedules[int(item.findtext("id", default=""))] = item.findtext("name", default="")
            except ValueError:
                continue

        return cls(
            name=text("name"),
            version=text("version"),
            uuid=text("uuid"),
            event_stream_count=number("eventstreamcount"),
            ip1=text("ip1"),
            ip2=text("ip2"),
            http_enabled=yes_no(text("http-enabled")),
            http_port=number("http-port"),
            https_enabled=yes_no(text("https-enabled")),
            https_port=number("https-port"),
            current_time=text("current-local-time"),
            gmt_offset=number("seconds-from-gmt"),
            date_format=text("date-format"),
            time_format=text("time-format"),
            refreshed=datetime.now(),
            schedules=schedules,
        )


class Server:
    """
    Connection to one SecuritySpy server.

    Holds the shared httpx client, the latest server info and camera
    registry, and the event watcher (``server.events``).
    """

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_ssl: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        http_log_dir: Optional[str] = None,
    ):
        self.url = url if url.endswith("/") else url + "/"
        self.username = username
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.auth = ""
        if username and password:
            self.auth = base64.urlsafe_b64encode(
                f"{username}:{password}".encode()
            ).decode()

        if client is not None:
            self._client = client
            self._owns_client = False
        else:
            self._client = httpx.AsyncClient(
                verify=verify_ssl,
                timeout=timeout,
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_client = True

        self._log_dir = http_log_dir
        if self._log_dir:
            os.makedirs(self._log_dir, exist_ok=True)

        self.info = ServerInfo()
        self.cameras = Cameras()
        self.events = EventWatcher(self)

    @classmethod
    def from_config(cls, config: ServerConfig, client: Optional[httpx.AsyncClient] = None) -> "Server":
        return cls(
            url=config.url,
            username=config.username,
            password=config.password,
            verify_ssl=config.verify_ssl,
            timeout=config.timeout,
            client=client,
            http_log_dir=config.http_log_dir,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        """Stop the event watcher and close the HTTP client if we created it."""
        await self.events.stop()
        if self._owns_client:
            await self._client.aclose()

    def _build(self, api_path: str, params: Optional[dict]):
        query = dict(params or {})
        headers = {}
        if self.auth:
            query["auth"] = self.auth
        if not api_path.startswith(NON_XML_PREFIXES):
            query["format"] = "xml"
            headers["Accept"] = "application/xml"
        return self.url + api_path, query, headers

    def _redact(self, text: str) -> str:
        return text.replace(self.auth, "***") if self.auth else text

    async def _log_http_call(self, name: str, request: httpx.Request, response: httpx.Response = None, error: Exception = None, stream_response: bool = False):
        """Logs the details of an HTTP request and its response to files if LOG_LEVEL is 'debug'."""
        if not self._log_dir or os.environ.get("LOG_LEVEL", "").lower() != "debug":
            return

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        name = name.strip("+").replace("/", "_")

        req_filename = os.path.join(self._log_dir, f"{timestamp}_{name}_request.log")
        async with aiofiles.open(req_filename, 'w') as f:
            await f.write(f"URL: {request.method} {self._redact(str(request.url))}\n")
            await f.write("Headers:\n")
            for key, value in request.headers.items():
                await f.write(f"  {key}: {value}\n")

        res_filename = os.path.join(self._log_dir, f"{timestamp}_{name}_response.log")
        async with aiofiles.open(res_filename, 'w') as f:
            if response is not None:
                await f.write(f"Status Code: {response.status_code}\n")
                await f.write("Headers:\n")
                for key, value in response.headers.items():
                    await f.write(f"  {key}: {value}\n")
                await f.write("\nBody:\n")
                if stream_response:
                    await f.write("[Streamed content not logged]")
                else:
                    await f.write(response.text)
            elif error is not None:
                await f.write(f"Error: {type(error).__name__}\n")
                await f.write(str(error))

    async def get(self, api_path: str, params: Optional[dict] = None, timeout: Optional[float] = None) -> httpx.Response:
        """
        Make a GET request and return the complete response.

        Args:
            api_path: Endpoint below the server URL, e.g. "++systemInfo"
            params: Extra query parameters
            timeout: Seconds before giving up, defaults to the server timeout

        Raises:
            RequestError: On transport failure or a non-200 status
        """
        url, query, headers = self._build(api_path, params)
        try:
            response = await self._client.get(
                url,
                params=query,
                headers=headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"Request to {self.url}{api_path} failed: {e}")
            raise RequestError(f"{api_path}: {e}") from e

        await self._log_http_call(api_path, response.request, response)

        if response.status_code != 200:
            raise RequestError(
                f"request failed ({self.username}): {self.url}{api_path} "
                f"(status: {response.status_code}/{response.reason_phrase})",
                status_code=response.status_code,
            )
        return response

    @asynccontextmanager
    async def stream(self, api_path: str, params: Optional[dict] = None) -> AsyncIterator[httpx.Response]:
        """
        Open a streaming GET with no timeout. The response is closed on exit.

        Raises:
            RequestError: On transport failure or a non-200 status
        """
        url, query, headers = self._build(api_path, params)
        try:
            async with self._client.stream(
                "GET", url, params=query, headers=headers, timeout=None
            ) as response:
                await self._log_http_call(api_path, response.request, response, stream_response=True)
                if response.status_code != 200:
                    raise RequestError(
                        f"stream failed ({self.username}): {self.url}{api_path} "
                        f"(status: {response.status_code}/{response.reason_phrase})",
                        status_code=response.status_code,
                    )
                yield response
        except httpx.HTTPError as e:
            raise RequestError(f"{api_path}: {e}") from e

    async def get_xml(self, api_path: str, params: Optional[dict] = None) -> ET.Element:
        """GET an XML endpoint and return the parsed document root."""
        response = await self.get(api_path, params)
        try:
            return ET.fromstring(response.content)
        except ET.ParseError as e:
            raise RequestError(f"xml parse failed ({api_path}): {e}") from e

    async def simple_request(self, api_path: str, params: Optional[dict] = None, camera_num: int = -1) -> None:
        """
        Send a command that replies with plain text ending in OK.

        Raises:
            CommandNotOKError: If the reply does not end with OK
        """
        params = dict(params or {})
        if camera_num >= 0:
            params["cameraNum"] = str(camera_num)
        response = await self.get(api_path, params)
        if not response.text.strip().endswith("OK"):
            raise CommandNotOKError(f"command unsuccessful: {api_path}")

    async def refresh(self) -> None:
        """
        Reload server info and the camera registry from ++systemInfo.

        The registry is swapped in one step, so events parsing at the same time
        see either the old or the new cameras.

        Raises:
            RequestError: If the request or the XML fails
        """
        root = await self.get_xml("++systemInfo")
        info = ServerInfo.from_xml(root)
        cameras = Cameras.from_xml(root)
        self.info = info
        self.cameras = cameras
        logger.info(
            f"Refreshed {info.name or 'server'} {info.version}: {len(cameras)} cameras"
        )

    async def _get_names(self, api_path: str) -> List[str]:
        root = await self.get_xml(api_path)
        return [(n.text or "").strip() for n in root.iter("name")]

    async def get_scripts(self) -> List[str]:
        """Names of the AppleScripts available for camera actions."""
        return await self._get_names("++scripts")

    async def get_sounds(self) -> List[str]:
        """Names of the sounds available for camera actions."""
        return await self._get_names("++sounds")
