"""
Header synthesis for published monitor images.

The viewer reads a fixed 512 byte ASCII header (SMV style key=value; lines
inside braces, space padded) followed directly by the pixel data.
"""

from __future__ import annotations

import math
from typing import List, Tuple, Union

from models.errors import HeaderOverflowError, MetadataError
from models.frame import Frame
from models.metadata import AcquisitionMetadata

HEADER_BYTES = 512

Number = Union[int, float]


def format_number(value: Number) -> str:
    """Stable decimal text: integers as-is, floats as shortest round-trip repr."""
    if isinstance(value, bool):
        raise TypeError("Boolean is not a header value")
    if isinstance(value, int):
        return str(value)
    return repr(float(value))


def header_fields(
    width: int,
    height: int,
    pixel_size_x: float,
    pixel_size_y: float,
    beam_center_x: float,
    beam_center_y: float,
    distance: float,
    wavelength: float,
) -> List[Tuple[str, str]]:
    """
    Ordered header key/value pairs.

    Beam center is converted from pixels to physical units and the distance
    from meters to millimeters.
    """
    numeric = {
        "PIXEL_SIZE": pixel_size_x,
        "BEAM_CENTER_X": beam_center_x * pixel_size_x,
        "BEAM_CENTER_Y": beam_center_y * pixel_size_y,
        "DISTANCE": distance * 1000,
        "WAVELENGTH": wavelength,
    }
    for key, value in numeric.items():
        if not math.isfinite(value):
            raise MetadataError(f"Non-finite header value {key}={value!r}")

    return [
        ("HEADER_BYTES", format_number(HEADER_BYTES)),
        ("DIM", "2"),
        ("BYTE_ORDER", "little_endian"),
        ("TYPE", "unsigned_int"),
        ("SIZE1", format_number(int(width))),
        ("SIZE2", format_number(int(height))),
    ] + [(key, format_number(value)) for key, value in numeric.items()]


def build_header(
    width: int,
    height: int,
    pixel_size_x: float,
    pixel_size_y: float,
    beam_center_x: float,
    beam_center_y: float,
    distance: float,
    wavelength: float,
) -> bytes:
    """
    Render the header, space padded to exactly HEADER_BYTES.

    Raises:
        HeaderOverflowError: If the rendered text is longer than HEADER_BYTES.
    """
    fields = header_fields(
        width, height, pixel_size_x, pixel_size_y,
        beam_center_x, beam_center_y, distance, wavelength,
    )
    text = "{\n" + "".join(f"{key}={value};\n" for key, value in fields) + "}\n"
    encoded = text.encode("ascii")
    if len(encoded) > HEADER_BYTES:
        raise HeaderOverflowError(
            f"Header needs {len(encoded)} bytes, only {HEADER_BYTES} available"
        )
    return encoded.ljust(HEADER_BYTES, b" ")


def header_for(frame: Frame, metadata: AcquisitionMetadata) -> bytes:
    """Build the header for a decoded frame and its acquisition metadata."""
    return build_header(
        width=frame.width,
        height=frame.height,
        pixel_size_x=frame.pixel_resolution_x,
        pixel_size_y=frame.pixel_resolution_y,
        beam_center_x=metadata.beam_center_x,
        beam_center_y=metadata.beam_center_y,
        distance=metadata.detector_distance,
        wavelength=metadata.wavelength,
    )


def parse_header(header: bytes) -> dict:
    """Parse a rendered header back into a key -> text value dict."""
    text = header[:HEADER_BYTES].decode("ascii").strip().strip("{}")
    values = {}
    for line in text.splitlines():
        line = line.strip().rstrip(";")
        if "=" in line:
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip()
    return values
