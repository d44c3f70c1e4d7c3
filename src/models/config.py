"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_ATTRIBUTES = {
    "beam_center_x": "BeamCenterX",
    "beam_center_y": "BeamCenterY",
    "detector_distance": "DetectorDistance",
    "incident_energy": "IncidentEnergy",
}

DEFAULT_VIEWER_COMMAND = ["/opt/xray/bin/adxv", "-socket", "-rings"]


@dataclass
class DetectorConfig:
    """Detector monitor endpoint configuration."""
    host: str = "127.0.0.1"
    port: int = 80
    api_version: str = "1.8.0"
    url_prefix: str = ""
    mode: str = "monitor"
    timeout: float = 10.0
    enable_monitor: bool = False
    secrets_file: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def source_id(self) -> str:
        return f"EIGER_{self.host}_{self.port}"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectorConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            host=d.get("host", "127.0.0.1"),
            port=int(d.get("port", 80)),
            api_version=str(d.get("api_version", "1.8.0")),
            url_prefix=d.get("url_prefix", "") or "",
            mode=d.get("mode", "monitor"),
            timeout=float(d.get("timeout", 10.0)),
            enable_monitor=bool(d.get("enable_monitor", False)),
            secrets_file=d.get("secrets_file"),
            username=d.get("username"),
            password=d.get("password"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "host": self.host,
            "port": self.port,
            "api_version": self.api_version,
            "url_prefix": self.url_prefix,
            "mode": self.mode,
            "timeout": self.timeout,
            "enable_monitor": self.enable_monitor,
        }
        if self.secrets_file is not None:
            d["secrets_file"] = self.secrets_file
        if self.username is not None:
            d["username"] = self.username
        return d


@dataclass
class MetadataConfig:
    """Beam/geometry metadata source configuration."""
    backend: str = "tango"
    device: str = ""
    timeout_ms: int = 3000
    attributes: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ATTRIBUTES))
    values: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MetadataConfig":
        attributes = dict(DEFAULT_ATTRIBUTES)
        attributes.update(d.get("attributes") or {})
        return cls(
            backend=d.get("backend", "tango"),
            device=d.get("device", "") or "",
            timeout_ms=int(d.get("timeout_ms", 3000)),
            attributes=attributes,
            values=dict(d.get("values") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "backend": self.backend,
            "device": self.device,
            "timeout_ms": self.timeout_ms,
            "attributes": dict(self.attributes),
        }
        if self.values:
            d["values"] = dict(self.values)
        return d


@dataclass
class PublishConfig:
    """Published file locations."""
    image_path: str = "/tmp/eiger_monitor"
    beam_center_path: str = "/tmp/.adxv_beam_center"
    atomic: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PublishConfig":
        return cls(
            image_path=d.get("image_path", "/tmp/eiger_monitor"),
            beam_center_path=d.get("beam_center_path", "/tmp/.adxv_beam_center"),
            atomic=bool(d.get("atomic", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image_path": self.image_path,
            "beam_center_path": self.beam_center_path,
            "atomic": self.atomic,
        }


@dataclass
class ViewerConfig:
    """External viewer (adxv) configuration."""
    host: str = "127.0.0.1"
    port: int = 8100
    timeout: float = 2.0
    autostart: bool = True
    process_name: str = "adxv"
    command: List[str] = field(default_factory=lambda: list(DEFAULT_VIEWER_COMMAND))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ViewerConfig":
        command = d.get("command") or DEFAULT_VIEWER_COMMAND
        if isinstance(command, str):
            command = command.split()
        return cls(
            host=d.get("host", "127.0.0.1"),
            port=int(d.get("port", 8100)),
            timeout=float(d.get("timeout", 2.0)),
            autostart=bool(d.get("autostart", True)),
            process_name=d.get("process_name", "adxv"),
            command=list(command),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "timeout": self.timeout,
            "autostart": self.autostart,
            "process_name": self.process_name,
            "command": list(self.command),
        }


@dataclass
class PipelineSettings:
    """Poll loop pacing."""
    poll_interval: float = 0.0
    error_backoff: float = 0.0
    max_error_backoff: float = 30.0
    stats_log_interval: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineSettings":
        return cls(
            poll_interval=float(d.get("poll_interval", 0.0)),
            error_backoff=float(d.get("error_backoff", 0.0)),
            max_error_backoff=float(d.get("max_error_backoff", 30.0)),
            stats_log_interval=float(d.get("stats_log_interval", 60.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poll_interval": self.poll_interval,
            "error_backoff": self.error_backoff,
            "max_error_backoff": self.max_error_backoff,
            "stats_log_interval": self.stats_log_interval,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    viewer: ViewerConfig = field(default_factory=ViewerConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    log_path: str = "logs/eiger_monitor.log"
    log_level: str = "INFO"
    pid_file: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            detector=DetectorConfig.from_dict(d.get("detector", {}) or {}),
            metadata=MetadataConfig.from_dict(d.get("metadata", {}) or {}),
            publish=PublishConfig.from_dict(d.get("publish", {}) or {}),
            viewer=ViewerConfig.from_dict(d.get("viewer", {}) or {}),
            pipeline=PipelineSettings.from_dict(d.get("pipeline", {}) or {}),
            log_path=d.get("log_path", "logs/eiger_monitor.log"),
            log_level=d.get("log_level", "INFO"),
            pid_file=d.get("pid_file"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        d: Dict[str, Any] = {
            "detector": self.detector.to_dict(),
            "metadata": self.metadata.to_dict(),
            "publish": self.publish.to_dict(),
            "viewer": self.viewer.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
        if self.pid_file:
            d["pid_file"] = self.pid_file
        return d
