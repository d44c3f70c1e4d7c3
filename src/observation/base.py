"""
ObservationSource interface for encoded monitor images.

This defines the contract the poll loop uses to pull encoded images,
so the loop never talks HTTP directly:
- Detector monitor endpoint (latest image or next image)
- Test doubles serving canned payloads
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from models.frame import EncodedImage


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "EIGER_10.0.0.5_80").
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    metadata: Dict[str, Any] = field(default_factory=dict)


class ObservationSource(ABC):
    """
    Abstract base class for observation sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to initialize the source
        3. Call read() repeatedly to get encoded images
        4. Call close() to release resources

    Can also be used as a context manager:
        with MonitorSource(config) as source:
            image = source.read()
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._read_count = 0

    @property
    def source_id(self) -> str:
        """Unique identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready to read."""
        return self._is_open

    @property
    def read_count(self) -> int:
        """Number of images read since open."""
        return self._read_count

    @abstractmethod
    def open(self) -> None:
        """
        Open/initialize the observation source.

        Must be called before read().
        """
        pass

    @abstractmethod
    def read(self) -> Optional[EncodedImage]:
        """
        Read the next encoded image from the source.

        Returns:
            EncodedImage, or None if the source has no data right now.

        Raises:
            TransportError: If the source cannot be reached.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Close/release the observation source.

        Safe to call multiple times.
        """
        pass

    def __enter__(self) -> "ObservationSource":
        """Context manager entry - opens the source."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - closes the source."""
        self.close()

    def __iter__(self) -> Iterator[EncodedImage]:
        """
        Iterate over images from the source.

        Yields EncodedImage objects until the source returns no data.
        The source must be open before iterating.
        """
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while True:
            image = self.read()
            if image is None:
                break
            yield image
