"""
Detector monitor observation source.

Polls the detector monitor endpoint through a MonitorClient and hands the
encoded TIFF payloads to the pipeline.

Modes:
- "monitor": latest buffered image (the same image repeats until a new
  acquisition happens)
- "next": blocks server side until a new image is available
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.config import DetectorConfig
from models.frame import EncodedImage
from .base import ObservationSource, ObservationConfig
from .monitor_client import MonitorClient

MODES = ("monitor", "next")


@dataclass
class MonitorSourceConfig(ObservationConfig):
    """
    Configuration for the detector monitor source.

    Attributes:
        host: Detector control host.
        port: Detector HTTP port.
        api_version: SIMPLON API version in URLs.
        url_prefix: Optional prefix before the module name.
        mode: "monitor" (latest image) or "next" (wait for new image).
        timeout: HTTP timeout in seconds for non-blocking calls.
        username: Basic-auth user.
        password: Basic-auth password.
    """
    host: str = "127.0.0.1"
    port: int = 80
    api_version: str = "1.8.0"
    url_prefix: str = ""
    mode: str = "monitor"
    timeout: float = 10.0
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_detector_config(cls, detector: DetectorConfig) -> "MonitorSourceConfig":
        """Adapter: Create MonitorSourceConfig from the detector config section."""
        return cls(
            source_id=detector.source_id,
            host=detector.host,
            port=detector.port,
            api_version=detector.api_version,
            url_prefix=detector.url_prefix,
            mode=detector.mode,
            timeout=detector.timeout,
            username=detector.username,
            password=detector.password,
        )


class MonitorSource(ObservationSource):
    """
    Observation source backed by the detector monitor interface.

    Example:
        config = MonitorSourceConfig(source_id="eiger", host="10.0.0.5")
        with MonitorSource(config) as source:
            image = source.read()
    """

    def __init__(self, config: MonitorSourceConfig, client: Optional[MonitorClient] = None):
        super().__init__(config)
        if config.mode not in MODES:
            raise ValueError(f"Unknown monitor mode: {config.mode}")
        self._monitor_config = config
        self._client = client

    @property
    def client(self) -> Optional[MonitorClient]:
        return self._client

    @property
    def mode(self) -> str:
        return self._monitor_config.mode

    def open(self) -> None:
        """Create the HTTP client (one session for the source lifetime)."""
        if self._is_open:
            return

        if self._client is None:
            cfg = self._monitor_config
            self._client = MonitorClient(
                host=cfg.host,
                port=cfg.port,
                api_version=cfg.api_version,
                url_prefix=cfg.url_prefix,
                username=cfg.username,
                password=cfg.password,
                timeout=cfg.timeout,
            )

        self._is_open = True
        self._read_count = 0
        logging.info(
            f"MonitorSource opened: source_id={self.source_id}, "
            f"url={self._client.base_url}, mode={self.mode}"
        )

    def read(self) -> Optional[EncodedImage]:
        """Fetch one encoded image; None when the monitor has nothing yet."""
        if not self._is_open or self._client is None:
            return None

        if self.mode == "next":
            data = self._client.fetch_next()
        else:
            data = self._client.fetch_latest()

        if not data:
            return None

        self._read_count += 1
        return EncodedImage(
            data=data,
            timestamp=time.time(),
            index=self._read_count,
            source=self.source_id,
        )

    def enable_monitor(self) -> None:
        """Switch the detector monitor interface on."""
        if self._client is None:
            raise RuntimeError("Source must be open before enabling the monitor")
        logging.info(f"Enabling monitor on {self._monitor_config.host}")
        self._client.enable_monitor()
        logging.info(f"Monitor on {self._monitor_config.host}:{self._monitor_config.port} enabled")

    def clear(self) -> None:
        """Drop images buffered by the monitor."""
        if self._client is not None:
            self._client.clear_images()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._is_open = False
        logging.info(f"MonitorSource closed: source_id={self.source_id}")

    def get_source_info(self) -> Dict[str, Any]:
        cfg = self._monitor_config
        return {
            "source_id": self.source_id,
            "host": cfg.host,
            "port": cfg.port,
            "api_version": cfg.api_version,
            "mode": cfg.mode,
            "images_read": self._read_count,
        }
