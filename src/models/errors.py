"""
Error taxonomy for the monitor pipeline.

Every failure a poll cycle can hit is a MonitorError subclass tagged with
the stage it came from, so the poll loop handles all of them the same way.
"""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for recoverable per-cycle failures."""
    stage = "unknown"


class TransportError(MonitorError):
    """Network or HTTP failure talking to the detector."""
    stage = "fetch"


class DecodeError(MonitorError):
    """Malformed or incomplete encoded image."""
    stage = "decode"


class MetadataError(MonitorError):
    """Device attribute read failed or returned unusable values."""
    stage = "metadata"


class HeaderOverflowError(MonitorError):
    """Synthesized header text does not fit the fixed header size."""
    stage = "header"


class PublishIOError(MonitorError):
    """Image file or beam center file could not be written."""
    stage = "publish"


class NotifyError(MonitorError):
    """Viewer could not be reached or did not receive the full command."""
    stage = "notify"
