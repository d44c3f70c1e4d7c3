"""
Metadata providers for beam center, detector distance and incident energy.
"""

from models.config import MetadataConfig

from .base import MetadataProvider
from .static_provider import StaticMetadataProvider
from .tango_provider import TangoMetadataProvider


def create_metadata_provider(config: MetadataConfig) -> MetadataProvider:
    """Select the metadata backend named in the config."""
    if config.backend == "static":
        return StaticMetadataProvider(config.values, attributes=config.attributes)
    if config.backend == "tango":
        return TangoMetadataProvider(
            config.device,
            timeout_ms=config.timeout_ms,
            attributes=config.attributes,
        )
    raise ValueError(f"Unknown metadata backend: {config.backend}")


__all__ = [
    "MetadataProvider",
    "StaticMetadataProvider",
    "TangoMetadataProvider",
    "create_metadata_provider",
]
