"""
Strip decoder for monitor TIFF images.

The detector returns each monitor image as a single-page TIFF of uint32
samples stored in strips. This module is the only place that opens the
container: it reads dimensions and resolution tags, then reassembles the
strips into one flat little-endian pixel buffer.

Strips are copied by absolute byte offset (strip_index * strip_size), so
a failure part way leaves a correctly sized but incomplete buffer that is
never returned to the caller.
"""

from __future__ import annotations

import io
import logging
import math
import time
from typing import Any, Optional, Tuple

import numpy as np
import tifffile

from models.errors import DecodeError
from models.frame import Frame, PIXEL_DTYPE

BYTES_PER_SAMPLE = PIXEL_DTYPE.itemsize
COMPRESSION_NONE = 1


def _rational(tag: Any) -> float:
    """Resolution tags are rationals; absent or zero denominator gives 0.0."""
    if tag is None:
        return 0.0
    value = tag.value
    if isinstance(value, (tuple, list)):
        if len(value) != 2 or not value[1]:
            return 0.0
        return float(value[0]) / float(value[1])
    return float(value)


def _tag_value(page: Any, name: str, default: Any = None) -> Any:
    tag = page.tags.get(name)
    return default if tag is None else tag.value


class StripDecoder:
    """
    Decodes strip-organised TIFF payloads into Frames.

    Example:
        decoder = StripDecoder()
        frame = decoder.decode(tiff_bytes)
        image = frame.as_image()
    """

    def __init__(self, source: Optional[str] = None):
        self.source = source

    def decode(self, data: bytes, timestamp: Optional[float] = None, index: int = 0) -> Frame:
        """
        Decode an encoded image into a Frame.

        Args:
            data: Raw TIFF bytes.
            timestamp: Fetch timestamp to carry on the frame.
            index: Fetch index to carry on the frame.

        Returns:
            Frame with width*height little-endian uint32 samples.

        Raises:
            DecodeError: If the container cannot be opened, a strip fails to
                decode, or the strips do not exactly cover the image.
        """
        if not data:
            raise DecodeError("Empty image buffer")

        try:
            with tifffile.TiffFile(io.BytesIO(data)) as tif:
                page = tif.pages[0]
                byteorder = tif.byteorder
                frame = self._decode_page(page, data, byteorder)
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"Unable to open TIFF container: {e}") from e

        frame.timestamp = time.time() if timestamp is None else timestamp
        frame.index = index
        frame.source = self.source
        return frame

    def _decode_page(self, page: Any, data: bytes, byteorder: str) -> Frame:
        width = int(page.imagewidth)
        height = int(page.imagelength)
        if width <= 0 or height <= 0:
            raise DecodeError(f"Invalid image dimensions {width}x{height}")
        if page.is_tiled:
            raise DecodeError("Tiled TIFF images are not supported")
        if int(page.samplesperpixel) != 1:
            raise DecodeError(f"Expected 1 sample per pixel, got {page.samplesperpixel}")
        if int(page.bitspersample) != BYTES_PER_SAMPLE * 8:
            raise DecodeError(f"Expected 32-bit samples, got {page.bitspersample}")

        resolution_x = _rational(page.tags.get("XResolution"))
        resolution_y = _rational(page.tags.get("YResolution"))

        rows_per_strip = min(int(_tag_value(page, "RowsPerStrip", height)), height)
        strip_size, strip_count = self.strip_layout(width, height, rows_per_strip)

        offsets = tuple(page.dataoffsets)
        byte_counts = tuple(page.databytecounts)
        if len(offsets) != strip_count or len(byte_counts) != strip_count:
            raise DecodeError(
                f"Expected {strip_count} strips for {height} rows "
                f"({rows_per_strip} rows/strip), found {len(offsets)}"
            )

        total_bytes = width * height * BYTES_PER_SAMPLE
        compressed = int(page.compression) != COMPRESSION_NONE
        # Reject dimensions the payload cannot hold before allocating for them
        if not compressed:
            if total_bytes > len(data):
                raise DecodeError(
                    f"Image {width}x{height} needs {total_bytes} bytes, payload has {len(data)}"
                )
            if sum(byte_counts) != total_bytes:
                raise DecodeError(
                    f"Strips hold {sum(byte_counts)} bytes, image {width}x{height} needs {total_bytes}"
                )

        pixels = np.zeros(width * height, dtype=PIXEL_DTYPE)
        buffer = pixels.view(np.uint8)
        copied = 0

        for strip in range(strip_count):
            offset = strip * strip_size
            expected = min(strip_size, total_bytes - offset)
            raw = data[offsets[strip]:offsets[strip] + byte_counts[strip]]
            if len(raw) != byte_counts[strip]:
                raise DecodeError(
                    f"Failed to read strip {strip}: expected {byte_counts[strip]} bytes, "
                    f"got {len(raw)}"
                )

            if compressed:
                samples = self._decompress_strip(page, raw, strip)
            else:
                if len(raw) % BYTES_PER_SAMPLE:
                    raise DecodeError(f"Failed to read strip {strip}: partial sample")
                samples = np.frombuffer(raw, dtype=np.dtype(byteorder + "u4"))

            strip_bytes = samples.astype(PIXEL_DTYPE, copy=False).view(np.uint8)
            if strip_bytes.size != expected:
                raise DecodeError(
                    f"Failed to read strip {strip}: decoded {strip_bytes.size} bytes, "
                    f"expected {expected}"
                )
            buffer[offset:offset + expected] = strip_bytes
            copied += expected

        if copied != total_bytes:
            raise DecodeError(f"Decoded {copied} bytes, image needs {total_bytes}")

        logging.debug(
            f"Decoded {width}x{height} image from {strip_count} strips "
            f"(compression={page.compression}, byteorder={byteorder})"
        )
        return Frame(
            width=width,
            height=height,
            pixels=pixels,
            pixel_resolution_x=resolution_x,
            pixel_resolution_y=resolution_y,
        )

    @staticmethod
    def strip_layout(width: int, height: int, rows_per_strip: int) -> Tuple[int, int]:
        """Return (strip_size_bytes, strip_count) for an image."""
        if rows_per_strip <= 0:
            raise DecodeError(f"Invalid RowsPerStrip {rows_per_strip}")
        strip_size = rows_per_strip * width * BYTES_PER_SAMPLE
        return strip_size, math.ceil(height / rows_per_strip)

    @staticmethod
    def _decompress_strip(page: Any, raw: bytes, strip: int) -> np.ndarray:
        try:
            segment = page.decode(raw, strip)[0]
        except Exception as e:
            raise DecodeError(f"Failed to decode strip {strip}: {e}") from e
        if segment is None:
            raise DecodeError(f"Failed to decode strip {strip}: no data")
        return np.asarray(segment).reshape(-1)


def decode_image(data: bytes, source: Optional[str] = None) -> Frame:
    """Convenience wrapper: decode TIFF bytes into a Frame."""
    return StripDecoder(source=source).decode(data)
