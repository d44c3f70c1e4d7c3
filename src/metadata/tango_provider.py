"""
Tango-based metadata provider.

Reads beam center, detector distance and incident energy from the detector
Tango device.

Requirements:
  - PyTango: pip install pytango (or the `tango` extra of this project)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from models.errors import MetadataError
from .base import MetadataProvider


class TangoMetadataProvider(MetadataProvider):
    """
    Metadata from a Tango DeviceProxy.

    The proxy is created on first use and kept for the provider lifetime.

    Example:
        provider = TangoMetadataProvider("p11/eiger/e4m")
        metadata = provider.read()
    """

    def __init__(
        self,
        device: str,
        timeout_ms: int = 3000,
        attributes: Optional[Dict[str, str]] = None,
    ):
        super().__init__(attributes)
        if not device:
            raise ValueError("Tango device name must not be empty")
        self.device = device
        self.timeout_ms = timeout_ms
        self._proxy: Any = None

    def _get_proxy(self) -> Any:
        if self._proxy is not None:
            return self._proxy

        try:
            import tango  # type: ignore
        except ImportError as e:
            raise ImportError(
                "PyTango is not available. Install with `pip install pytango` "
                "or use metadata backend 'static'."
            ) from e

        try:
            proxy = tango.DeviceProxy(self.device)
            proxy.set_timeout_millis(self.timeout_ms)
        except tango.DevFailed as e:
            raise MetadataError(f"Unable to connect to Tango device {self.device}: {e}") from e

        logging.info(f"Connected to Tango device {self.device}")
        self._proxy = proxy
        return proxy

    def read_attribute(self, name: str) -> float:
        reply = self._get_proxy().read_attribute(name)
        return float(reply.value)

    def close(self) -> None:
        self._proxy = None
