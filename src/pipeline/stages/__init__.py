"""
Pipeline stages for the monitor bridge.

Each stage handles one step between decode and notify:
- change: duplicate frame detection
- header: fixed-size header synthesis
- publish: image file and beam center side-file output
"""

from .change import is_changed, pixels_differ
from .header import HEADER_BYTES, build_header, header_for, parse_header
from .publish import Publisher, PublishedFile, beam_center_line

__all__ = [
    "is_changed",
    "pixels_differ",
    "HEADER_BYTES",
    "build_header",
    "header_for",
    "parse_header",
    "Publisher",
    "PublishedFile",
    "beam_center_line",
]
