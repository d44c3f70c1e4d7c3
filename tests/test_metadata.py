"""
Tests for metadata providers.
"""

import math
import sys
import types
from unittest.mock import MagicMock

import pytest

from metadata import StaticMetadataProvider, TangoMetadataProvider, create_metadata_provider
from models.config import MetadataConfig
from models.errors import MetadataError

VALUES = {
    "BeamCenterX": 2070.0,
    "BeamCenterY": 2190.0,
    "DetectorDistance": 0.15,
    "IncidentEnergy": 12400.0,
}


class TestStaticProvider:

    def test_read(self):
        metadata = StaticMetadataProvider(VALUES).read()

        assert metadata.beam_center == (2070.0, 2190.0)
        assert metadata.detector_distance == 0.15
        assert metadata.wavelength == 1.0

    def test_from_fields(self):
        provider = StaticMetadataProvider.from_fields(1.0, 2.0, 0.3, 6200.0)

        assert provider.read().wavelength == 2.0

    def test_missing_value_raises(self):
        values = dict(VALUES)
        del values["DetectorDistance"]

        with pytest.raises(MetadataError):
            StaticMetadataProvider(values).read()

    def test_zero_energy_raises(self):
        with pytest.raises(MetadataError):
            StaticMetadataProvider(dict(VALUES, IncidentEnergy=0.0)).read()

    def test_non_finite_value_raises(self):
        with pytest.raises(MetadataError):
            StaticMetadataProvider(dict(VALUES, BeamCenterX=math.nan)).read()

    def test_attribute_mapping(self):
        values = dict(VALUES)
        values["Energy"] = values.pop("IncidentEnergy")

        provider = StaticMetadataProvider(values, attributes={"incident_energy": "Energy"})

        assert provider.read().incident_energy == 12400.0


@pytest.fixture
def fake_tango(monkeypatch):
    """Install a stand-in `tango` module with a mocked DeviceProxy."""
    module = types.ModuleType("tango")

    class DevFailed(Exception):
        pass

    proxy = MagicMock()
    proxy.read_attribute.side_effect = lambda name: MagicMock(value=VALUES[name])
    module.DevFailed = DevFailed
    module.DeviceProxy = MagicMock(return_value=proxy)
    monkeypatch.setitem(sys.modules, "tango", module)
    return module


class TestTangoProvider:

    def test_reads_attributes(self, fake_tango):
        provider = TangoMetadataProvider("p11/eiger/e4m", timeout_ms=1500)

        metadata = provider.read()

        fake_tango.DeviceProxy.assert_called_once_with("p11/eiger/e4m")
        proxy = fake_tango.DeviceProxy.return_value
        proxy.set_timeout_millis.assert_called_once_with(1500)
        assert metadata.beam_center_x == 2070.0
        assert metadata.wavelength == 1.0

    def test_proxy_reused(self, fake_tango):
        provider = TangoMetadataProvider("p11/eiger/e4m")

        provider.read()
        provider.read()

        assert fake_tango.DeviceProxy.call_count == 1

    def test_read_failure_becomes_metadata_error(self, fake_tango):
        proxy = fake_tango.DeviceProxy.return_value
        proxy.read_attribute.side_effect = fake_tango.DevFailed("timeout")

        with pytest.raises(MetadataError, match="BeamCenterX"):
            TangoMetadataProvider("p11/eiger/e4m").read()

    def test_connect_failure_becomes_metadata_error(self, fake_tango):
        fake_tango.DeviceProxy.side_effect = fake_tango.DevFailed("no device")

        with pytest.raises(MetadataError):
            TangoMetadataProvider("p11/eiger/e4m").read()

    def test_empty_device_rejected(self):
        with pytest.raises(ValueError):
            TangoMetadataProvider("")


class TestFactory:

    def test_static(self):
        provider = create_metadata_provider(MetadataConfig(backend="static", values=VALUES))

        assert isinstance(provider, StaticMetadataProvider)

    def test_tango(self):
        provider = create_metadata_provider(MetadataConfig(backend="tango", device="p11/eiger/e4m", timeout_ms=500))

        assert isinstance(provider, TangoMetadataProvider)
        assert provider.timeout_ms == 500

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_metadata_provider(MetadataConfig(backend="epics"))
