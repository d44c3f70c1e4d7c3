"""
Frame models for monitor images.

EncodedImage is the raw payload fetched from the detector monitor endpoint.
Frame is the decoded image: dimensions, pixel resolution and a flat,
row-major buffer of little-endian uint32 samples.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

# Byte layout of every published pixel buffer
PIXEL_DTYPE = np.dtype("<u4")


@dataclass
class EncodedImage:
    """
    Encoded image as returned by the monitor endpoint.

    Attributes:
        data: Raw encoded bytes (TIFF container).
        timestamp: Unix timestamp when the payload was received.
        index: Sequential fetch number since the source was opened.
        source: Identifier of the detector source.
    """
    data: bytes
    timestamp: float
    index: int = 0
    source: Optional[str] = None

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return (
            f"EncodedImage(index={self.index}, bytes={len(self.data)}, "
            f"source={self.source!r})"
        )


@dataclass
class Frame:
    """
    Decoded monitor image.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        pixels: Flat row-major buffer of width*height uint32 samples.
        pixel_resolution_x: Horizontal resolution tag (0.0 when unset).
        pixel_resolution_y: Vertical resolution tag (0.0 when unset).
        timestamp: Unix timestamp of the fetch this frame came from.
        index: Fetch index this frame came from.
        source: Identifier of the detector source.
    """
    width: int
    height: int
    pixels: np.ndarray
    pixel_resolution_x: float = 0.0
    pixel_resolution_y: float = 0.0
    timestamp: float = 0.0
    index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_array(
        cls,
        image: np.ndarray,
        pixel_resolution_x: float = 0.0,
        pixel_resolution_y: float = 0.0,
        timestamp: float = 0.0,
    ) -> "Frame":
        """Create a Frame from a 2-D (height, width) array."""
        h, w = image.shape[:2]
        return cls(
            width=w,
            height=h,
            pixels=np.ascontiguousarray(image, dtype=PIXEL_DTYPE).reshape(-1),
            pixel_resolution_x=pixel_resolution_x,
            pixel_resolution_y=pixel_resolution_y,
            timestamp=timestamp,
        )

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def is_valid(self) -> bool:
        """A frame is publishable only if the buffer matches its dimensions."""
        return (
            self.width > 0
            and self.height > 0
            and self.pixels.ndim == 1
            and self.pixels.size == self.width * self.height
        )

    @property
    def nbytes(self) -> int:
        return self.pixels.size * PIXEL_DTYPE.itemsize

    def as_image(self) -> np.ndarray:
        """View the buffer as a (height, width) array."""
        return self.pixels.reshape(self.height, self.width)

    def to_bytes(self) -> bytes:
        """Raw little-endian pixel bytes, row-major, no padding."""
        return self.pixels.astype(PIXEL_DTYPE, copy=False).tobytes()

    def __repr__(self) -> str:
        return (
            f"Frame(width={self.width}, height={self.height}, "
            f"resolution=({self.pixel_resolution_x}, {self.pixel_resolution_y}), "
            f"index={self.index})"
        )
