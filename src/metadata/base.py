"""
MetadataProvider interface for beam and geometry values.

Backends only implement read_attribute(); read() turns the four attribute
reads into an AcquisitionMetadata and applies the shared validation.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Dict, Optional

from models.config import DEFAULT_ATTRIBUTES
from models.errors import MetadataError
from models.metadata import AcquisitionMetadata, energy_to_wavelength


class MetadataProvider(ABC):
    """
    Abstract source of acquisition metadata.

    Attribute names default to the detector device names (BeamCenterX,
    BeamCenterY, DetectorDistance, IncidentEnergy) and can be remapped.
    """

    def __init__(self, attributes: Optional[Dict[str, str]] = None):
        self.attributes = dict(DEFAULT_ATTRIBUTES)
        self.attributes.update(attributes or {})

    @abstractmethod
    def read_attribute(self, name: str) -> float:
        """Read one scalar attribute by its device name."""
        pass

    def read(self) -> AcquisitionMetadata:
        """
        Sample all metadata for one publish decision.

        Raises:
            MetadataError: If any read fails, a value is not finite, or the
                incident energy cannot be turned into a wavelength.
        """
        values = {}
        for field_name, attribute in self.attributes.items():
            try:
                value = float(self.read_attribute(attribute))
            except MetadataError:
                raise
            except Exception as e:
                raise MetadataError(f"Failed to read attribute {attribute}: {e}") from e
            if not math.isfinite(value):
                raise MetadataError(f"Attribute {attribute} is not finite: {value!r}")
            values[field_name] = value

        metadata = AcquisitionMetadata.from_dict(values)
        energy_to_wavelength(metadata.incident_energy)
        return metadata

    def close(self) -> None:
        """Release backend resources. Safe to call multiple times."""
        pass
