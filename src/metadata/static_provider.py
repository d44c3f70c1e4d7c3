"""
Static metadata provider for bench setups without a control system.
"""

from __future__ import annotations

from typing import Dict, Optional

from models.errors import MetadataError
from .base import MetadataProvider


class StaticMetadataProvider(MetadataProvider):
    """Returns fixed attribute values, keyed by device attribute name."""

    def __init__(self, values: Dict[str, float], attributes: Optional[Dict[str, str]] = None):
        super().__init__(attributes)
        self.values = dict(values)

    @classmethod
    def from_fields(
        cls,
        beam_center_x: float,
        beam_center_y: float,
        detector_distance: float,
        incident_energy: float,
    ) -> "StaticMetadataProvider":
        """Build from field values using the default attribute names."""
        provider = cls({})
        fields = {
            "beam_center_x": beam_center_x,
            "beam_center_y": beam_center_y,
            "detector_distance": detector_distance,
            "incident_energy": incident_energy,
        }
        provider.values = {provider.attributes[k]: v for k, v in fields.items()}
        return provider

    def read_attribute(self, name: str) -> float:
        if name not in self.values:
            raise MetadataError(f"No static value for attribute {name}")
        return float(self.values[name])
