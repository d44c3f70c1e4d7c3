"""
Typed models for the Eiger monitor viewer bridge.

These models provide strong typing and validation for frames, metadata,
errors and configuration.
"""

from .frame import EncodedImage, Frame, PIXEL_DTYPE
from .metadata import AcquisitionMetadata, energy_to_wavelength
from .errors import (
    MonitorError,
    TransportError,
    DecodeError,
    MetadataError,
    HeaderOverflowError,
    PublishIOError,
    NotifyError,
)
from .config import (
    Config,
    DetectorConfig,
    MetadataConfig,
    PublishConfig,
    ViewerConfig,
    PipelineSettings,
)

__all__ = [
    # Frame
    "EncodedImage",
    "Frame",
    "PIXEL_DTYPE",
    # Metadata
    "AcquisitionMetadata",
    "energy_to_wavelength",
    # Errors
    "MonitorError",
    "TransportError",
    "DecodeError",
    "MetadataError",
    "HeaderOverflowError",
    "PublishIOError",
    "NotifyError",
    # Config
    "Config",
    "DetectorConfig",
    "MetadataConfig",
    "PublishConfig",
    "ViewerConfig",
    "PipelineSettings",
]
