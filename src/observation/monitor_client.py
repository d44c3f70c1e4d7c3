"""
HTTP client for the detector monitor interface (SIMPLON API).

Wraps a single requests.Session that is reused for every call. Calls are
never concurrent, so one session per client is enough.

URL layout:
    http://<host>:<port>/<url_prefix><module>/api/<version>/<task>/<parameter>
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Tuple

import requests

from models.errors import TransportError

MIME_JSON = "application/json; charset=utf-8"
MIME_TIFF = "application/tiff"
MIME_HDF5 = "application/hdf5"
MIME_HTML = "text/html"

TIFF_MAGIC = (b"\x49\x49\x2a\x00", b"\x4d\x4d\x00\x2a")
HDF5_MAGIC = b"\x89\x48\x44\x46\x0d\x0a\x1a\x0a"

# Bodies the monitor returns instead of an image when its buffer is empty
NO_DATA_BODIES = (b"Image not available", b"data not available")

_DEFAULT_TIMEOUT = object()


def guess_mime_type(data: bytes) -> Optional[str]:
    """Determine the MIME type of a payload from its magic bytes."""
    if data.startswith(TIFF_MAGIC):
        return MIME_TIFF
    if data.startswith(HDF5_MAGIC):
        return MIME_HDF5
    return None


def prepare_data(data: Any, data_type: Optional[str] = "native") -> Tuple[bytes, str]:
    """
    Encode a PUT payload and pick its content type.

    Args:
        data: Value or raw bytes to send.
        data_type: "native" (JSON value), "tif", "hdf5", or None to sniff
            the payload's magic bytes.

    Returns:
        Tuple of (body, mime_type).
    """
    if data is None or (isinstance(data, (bytes, str)) and len(data) == 0):
        return b"", MIME_HTML

    if data_type is None and isinstance(data, bytes):
        mime_type = guess_mime_type(data)
        if mime_type:
            logging.debug(f"Determined mimetype: {mime_type}")
            return data, mime_type
    elif data_type == "tif":
        return bytes(data), MIME_TIFF
    elif data_type == "hdf5":
        return bytes(data), MIME_HDF5

    if isinstance(data, bytes):
        return data, MIME_JSON
    return json.dumps({"value": data}).encode("utf-8"), MIME_JSON


class MonitorClient:
    """
    Client for the detector monitor endpoint.

    Example:
        with MonitorClient("10.0.0.5") as client:
            client.enable_monitor()
            tiff = client.fetch_latest()
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 80,
        api_version: str = "1.8.0",
        url_prefix: str = "",
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = 10.0,
        verbose: bool = False,
        session: Optional[requests.Session] = None,
    ):
        if not host:
            raise ValueError("Detector host must not be empty")
        self.host = host
        self.port = port
        self.api_version = api_version
        self.url_prefix = url_prefix
        self.timeout = timeout
        self.verbose = verbose
        self._session = session or requests.Session()
        if username:
            self._session.auth = (username, password or "")

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def url(self, module: str, task: str, parameter: str = "") -> str:
        """Build the full URL for a module/task/parameter triple."""
        return (
            f"{self.base_url}/{self.url_prefix}{module}/api/"
            f"{self.api_version}/{task}/{parameter}"
        )

    def monitor_images(self, param: str = "") -> bytes:
        """
        Fetch from the monitor images endpoint.

        Args:
            param: "" for the image list, "monitor" for the latest image,
                "next" for the next image (blocks server side) or
                "<series>/<image>" for a specific image.

        Returns:
            Raw response body; empty when no image is available.
        """
        timeout = self.timeout
        if param in ("", "monitor"):
            url = self.url("monitor", "images", param)
        elif param == "next":
            url = self.url("monitor", "images", param)
            timeout = None
        else:
            series_id, image_id = self._parse_image_id(param)
            url = self.url("monitor", "images", f"{series_id}/{image_id}")

        response = self._request(
            "GET", url, headers={"Accept": MIME_TIFF}, timeout=timeout, allow_not_found=True
        )
        if response.status_code in (204, 404):
            return b""
        content = response.content
        if content.strip() in NO_DATA_BODIES:
            return b""
        return content

    def fetch_latest(self) -> bytes:
        """Most recent monitor image, or b"" when none is buffered."""
        return self.monitor_images("monitor")

    def fetch_next(self) -> bytes:
        """Block until the detector produces a new monitor image."""
        return self.monitor_images("next")

    def fetch_image(self, series_id: int, image_id: int) -> bytes:
        return self.monitor_images(f"{int(series_id)}/{int(image_id)}")

    def list_images(self) -> list:
        """List the [series, image] pairs currently held by the monitor."""
        url = self.url("monitor", "images")
        response = self._request("GET", url, headers={"Accept": MIME_JSON})
        if not response.content:
            return []
        return self._json(response)

    def clear_images(self) -> None:
        """Drop every image held in the monitor buffer."""
        self._request("DELETE", self.url("monitor", "images"))

    def get_config(self, key: str) -> Any:
        response = self._request(
            "GET", self.url("monitor", "config", key), headers={"Accept": MIME_JSON}
        )
        payload = self._json(response)
        if isinstance(payload, dict) and "value" in payload:
            return payload["value"]
        return payload

    def set_config(self, key: str, value: Any, data_type: Optional[str] = "native") -> requests.Response:
        """Change a monitor configuration value (e.g. mode, buffer_size)."""
        url = self.url("monitor", "config", key)
        logging.info(f"Setting monitor config on {url}")
        body, mime_type = prepare_data(value, data_type)
        return self._request("PUT", url, data=body, headers={"Content-Type": mime_type})

    def enable_monitor(self) -> requests.Response:
        return self.set_config("mode", "enabled")

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "MonitorClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(
        self,
        method: str,
        url: str,
        timeout: Any = _DEFAULT_TIMEOUT,
        allow_not_found: bool = False,
        **kwargs,
    ) -> requests.Response:
        if timeout is _DEFAULT_TIMEOUT:
            timeout = self.timeout
        if self.verbose:
            logging.debug(f"{method} {url}")
        try:
            response = self._session.request(method, url, timeout=timeout, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"Failed to connect to host {self.host}:{self.port}: {e}") from e

        if response.status_code == 404 and allow_not_found:
            return response
        if not response.ok:
            raise TransportError(
                f"{method} {url} failed with HTTP {response.status_code}: {response.reason}"
            )
        return response

    @staticmethod
    def _parse_image_id(param: str) -> Tuple[int, int]:
        series, sep, image = param.partition("/")
        if not sep:
            raise ValueError(f"Invalid parameter: {param}")
        try:
            return int(series), int(image)
        except ValueError as e:
            raise ValueError(f"Invalid parameter: {param}") from e

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {response.url}: {e}") from e
