"""
Acquisition metadata sampled from the detector control system.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict

from .errors import MetadataError

# hc in eV*Angstrom, as used by the beamline tools
ENERGY_TO_WAVELENGTH = 12400.0


def energy_to_wavelength(energy_ev: float) -> float:
    """
    Convert incident energy (eV) to wavelength (Angstrom).

    Raises:
        MetadataError: If the energy is zero, negative or not finite.
    """
    if not math.isfinite(energy_ev) or energy_ev <= 0:
        raise MetadataError(f"Cannot derive wavelength from incident energy {energy_ev!r} eV")
    return ENERGY_TO_WAVELENGTH / energy_ev


@dataclass(frozen=True)
class AcquisitionMetadata:
    """
    Beam and geometry values for one publish decision.

    Attributes:
        beam_center_x: Beam center X in pixels.
        beam_center_y: Beam center Y in pixels.
        detector_distance: Sample to detector distance in meters.
        incident_energy: Incident photon energy in eV.
    """
    beam_center_x: float
    beam_center_y: float
    detector_distance: float
    incident_energy: float

    @property
    def wavelength(self) -> float:
        """Incident wavelength in Angstrom."""
        return energy_to_wavelength(self.incident_energy)

    @property
    def beam_center(self) -> tuple:
        return (self.beam_center_x, self.beam_center_y)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AcquisitionMetadata":
        return cls(
            beam_center_x=float(d.get("beam_center_x", 0.0)),
            beam_center_y=float(d.get("beam_center_y", 0.0)),
            detector_distance=float(d.get("detector_distance", 0.0)),
            incident_energy=float(d.get("incident_energy", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "beam_center_x": self.beam_center_x,
            "beam_center_y": self.beam_center_y,
            "detector_distance": self.detector_distance,
            "incident_energy": self.incident_energy,
        }
