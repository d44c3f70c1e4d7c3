"""
Observation layer for encoded detector images.

This layer abstracts where encoded monitor images come from (detector HTTP
interface, test doubles) from the processing pipeline. Each source
implements the ObservationSource interface and returns EncodedImage objects.
"""

from models.config import DetectorConfig

from .base import ObservationSource, ObservationConfig
from .monitor_client import MonitorClient, guess_mime_type, prepare_data
from .monitor_source import MonitorSource, MonitorSourceConfig
from .credentials import inject_detector_credentials


def create_source_from_config(detector: DetectorConfig) -> MonitorSource:
    """Build the monitor source for the configured detector."""
    return MonitorSource(MonitorSourceConfig.from_detector_config(detector))


__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "MonitorClient",
    "MonitorSource",
    "MonitorSourceConfig",
    "guess_mime_type",
    "prepare_data",
    "inject_detector_credentials",
    "create_source_from_config",
]
