"""
Pytest configuration and shared fixtures.
"""

import math
import os
import struct
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

# TIFF field types
_SHORT = 3
_LONG = 4
_RATIONAL = 5


def build_strip_tiff(image, rows_per_strip=None, byteorder="<", resolution=(75, 1000),
                     claimed_size=None):
    """
    Build an uncompressed, single-sample uint32 TIFF with an explicit strip layout.

    Args:
        image: (height, width) array of sample values.
        rows_per_strip: Rows per strip (default: whole image in one strip).
        byteorder: "<" little-endian (II) or ">" big-endian (MM).
        resolution: (numerator, denominator) for both resolution tags,
            None to omit the tags.
        claimed_size: (width, height) written to the dimension tags instead
            of the real size, as one strip covering the claimed rows.
    """
    image = np.asarray(image)
    height, width = image.shape
    rps = rows_per_strip or height
    strip_count = math.ceil(height / rps)
    strip_size = rps * width * 4

    data = image.astype(byteorder + "u4").tobytes()
    strips = [data[i * strip_size:(i + 1) * strip_size] for i in range(strip_count)]

    tag_width, tag_height = claimed_size or (width, height)
    entries = [
        (256, _LONG, [tag_width]),
        (257, _LONG, [tag_height]),
        (258, _SHORT, [32]),
        (259, _SHORT, [1]),
        (262, _SHORT, [1]),
        (273, _LONG, None),  # strip offsets, filled in below
        (277, _SHORT, [1]),
        (278, _LONG, [tag_height if claimed_size else rps]),
        (279, _LONG, [len(s) for s in strips]),
    ]
    if resolution is not None:
        entries.append((282, _RATIONAL, [resolution]))
        entries.append((283, _RATIONAL, [resolution]))
    entries.append((339, _SHORT, [1]))

    ifd_size = 2 + 12 * len(entries) + 4
    extra_start = 8 + ifd_size

    def value_bytes(field_type, values):
        if field_type == _SHORT:
            return b"".join(struct.pack(byteorder + "H", v) for v in values)
        if field_type == _LONG:
            return b"".join(struct.pack(byteorder + "I", v) for v in values)
        return b"".join(struct.pack(byteorder + "II", *v) for v in values)

    # Out-of-line values size; strip offsets have the same size as byte counts
    extra_len = 0
    for tag, field_type, values in entries:
        size = len(value_bytes(field_type, values if values is not None else [0] * strip_count))
        if size > 4:
            extra_len += size
    data_start = extra_start + extra_len

    offsets = []
    pos = data_start
    for s in strips:
        offsets.append(pos)
        pos += len(s)
    entries[5] = (273, _LONG, offsets)

    ifd = struct.pack(byteorder + "H", len(entries))
    extra = b""
    for tag, field_type, values in entries:
        raw = value_bytes(field_type, values)
        ifd += struct.pack(byteorder + "HHI", tag, field_type, len(values))
        if len(raw) <= 4:
            ifd += raw.ljust(4, b"\x00")
        else:
            ifd += struct.pack(byteorder + "I", extra_start + len(extra))
            extra += raw
    ifd += struct.pack(byteorder + "I", 0)

    magic = b"II*\x00" if byteorder == "<" else b"MM\x00*"
    header = magic + struct.pack(byteorder + "I", 8)
    return header + ifd + extra + b"".join(strips)


@pytest.fixture
def strip_tiff():
    """Factory fixture building strip-encoded TIFF bytes."""
    return build_strip_tiff


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
detector:
  host: "127.0.0.1"
  port: 80
  api_version: "1.8.0"
  mode: "monitor"

metadata:
  backend: "static"
  values:
    BeamCenterX: 2070.0
    BeamCenterY: 2190.0
    DetectorDistance: 0.15
    IncidentEnergy: 12400.0

publish:
  image_path: "/tmp/eiger_monitor"
  beam_center_path: "/tmp/.adxv_beam_center"

viewer:
  port: 8100
  autostart: false

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config(tmp_path):
    """Return a valid configuration dictionary."""
    return {
        "detector": {
            "host": "10.0.0.5",
            "port": 80,
            "api_version": "1.8.0",
            "mode": "monitor",
            "timeout": 5.0,
        },
        "metadata": {
            "backend": "static",
            "values": {
                "BeamCenterX": 2070.0,
                "BeamCenterY": 2190.0,
                "DetectorDistance": 0.15,
                "IncidentEnergy": 12400.0,
            },
        },
        "publish": {
            "image_path": str(tmp_path / "eiger_monitor"),
            "beam_center_path": str(tmp_path / ".adxv_beam_center"),
            "atomic": True,
        },
        "viewer": {
            "host": "127.0.0.1",
            "port": 8100,
            "autostart": False,
        },
        "pipeline": {
            "poll_interval": 0.0,
            "error_backoff": 0.0,
        },
        "log_path": str(tmp_path / "logs" / "test.log"),
        "log_level": "INFO",
    }
