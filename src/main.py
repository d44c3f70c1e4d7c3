"""
Eiger monitor bridge for the adxv viewer.

Polls the detector monitor interface for the latest image, converts new
frames into an adxv readable file (512 byte header + uint32 pixels), writes
the beam center side-file and tells adxv to load the result.

Usage:
    python src/main.py 10.0.0.5
    python src/main.py --config config/config.yaml --once

Arguments:
    host: Detector address (overrides detector.host)
    --config: Path to configuration file
    --port: Detector HTTP port (overrides detector.port)
    --once: Run a single poll cycle and exit
    --max-polls: Stop after this many poll cycles
    --no-viewer: Do not start the viewer process
    --kill-existing: Replace an instance already serving this detector
    --stop: Stop the instance serving this detector and exit
"""

import os
import sys
import argparse
import logging
import signal
from typing import Dict, Any, Tuple, Optional

import yaml

from metadata import create_metadata_provider
from models.config import DEFAULT_ATTRIBUTES, Config
from observation import create_source_from_config, inject_detector_credentials
from ops.logging import setup_logging
from ops.process import (
    default_pid_file,
    ensure_single_instance,
    ensure_viewer_running,
    stop_existing_instance,
)
from pipeline.engine import create_engine_from_config
from runtime.context import RuntimeContext

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not one of the layered files
        explicit = os.path.abspath(config_path)
        if (
            os.path.exists(config_path)
            and explicit != os.path.abspath(local_overrides_path)
            and explicit != os.path.abspath(base_path)
        ):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_port(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value < 65536


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    # Required top-level sections
    required_sections = ['detector', 'metadata', 'publish', 'viewer', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Validate detector settings
    detector = config.get('detector') or {}
    if not isinstance(detector.get('host'), str) or not detector.get('host'):
        return False, "detector.host must be a non-empty string"
    if 'port' in detector and not _is_port(detector['port']):
        return False, "detector.port must be an integer between 1 and 65535"
    if detector.get('mode', 'monitor') not in ('monitor', 'next'):
        return False, "detector.mode must be one of: monitor, next"
    if 'api_version' in detector and not isinstance(detector['api_version'], str):
        return False, "detector.api_version must be a string"
    if 'timeout' in detector and (not _is_number(detector['timeout']) or detector['timeout'] <= 0):
        return False, "detector.timeout must be a positive number"

    # Validate metadata settings
    metadata = config.get('metadata') or {}
    backend = metadata.get('backend', 'tango')
    if backend not in ('tango', 'static'):
        return False, "metadata.backend must be one of: tango, static"
    if backend == 'tango':
        if not isinstance(metadata.get('device'), str) or not metadata.get('device'):
            return False, "metadata.device is required when metadata.backend is 'tango'"
    if backend == 'static':
        values = metadata.get('values') or {}
        attributes = {**DEFAULT_ATTRIBUTES, **(metadata.get('attributes') or {})}
        for attribute in attributes.values():
            if not _is_number(values.get(attribute)):
                return False, f"metadata.values.{attribute} must be a number for the static backend"

    # Validate publish settings
    publish = config.get('publish') or {}
    for key in ('image_path', 'beam_center_path'):
        if not isinstance(publish.get(key), str) or not publish.get(key):
            return False, f"publish.{key} must be a non-empty string"
    if publish['image_path'] == publish['beam_center_path']:
        return False, "publish.image_path and publish.beam_center_path must differ"

    # Validate viewer settings
    viewer = config.get('viewer') or {}
    if 'port' in viewer and not _is_port(viewer['port']):
        return False, "viewer.port must be an integer between 1 and 65535"
    if 'command' in viewer and not isinstance(viewer['command'], (list, str)):
        return False, "viewer.command must be a list or a string"

    # Optional pipeline pacing
    pipeline = config.get('pipeline') or {}
    for key in ('poll_interval', 'error_backoff', 'max_error_backoff', 'stats_log_interval'):
        if key in pipeline and (not _is_number(pipeline[key]) or pipeline[key] < 0):
            return False, f"pipeline.{key} must be a non-negative number"

    # Validate log settings
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Eiger monitor bridge for the adxv viewer')
    parser.add_argument('host', nargs='?', default=None,
                        help='Detector address (overrides detector.host)')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--port', type=int, default=None,
                        help='Detector HTTP port (overrides detector.port)')
    parser.add_argument('--once', action='store_true',
                        help='Run a single poll cycle and exit')
    parser.add_argument('--max-polls', type=int, default=None,
                        help='Stop after this many poll cycles')
    parser.add_argument('--no-viewer', action='store_true',
                        help='Do not start the viewer process')
    parser.add_argument('--kill-existing', action='store_true',
                        help='Kill an instance already serving this detector')
    parser.add_argument('--stop', action='store_true',
                        help='Stop the instance serving this detector and exit')
    return parser


def apply_cli_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    detector = config.setdefault('detector', {}) or {}
    config['detector'] = detector
    if args.host:
        detector['host'] = args.host
    if args.port is not None:
        detector['port'] = args.port
    if args.no_viewer:
        config.setdefault('viewer', {})['autostart'] = False
    return config


def _release(source, metadata) -> None:
    """Close whatever was built before pipeline construction failed."""
    for resource in (source, metadata):
        if resource is None:
            continue
        try:
            resource.close()
        except Exception as e:
            logging.warning(f"Error closing {type(resource).__name__}: {e}")


def main(argv=None):
    """Main application function."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load configuration
    config = apply_cli_overrides(load_config(args.config), args)

    # Handle detector credentials if secrets_file is provided
    try:
        inject_detector_credentials(config['detector'])
    except Exception as e:
        logging.error(f"Error loading detector secrets: {e}")

    # Validate configuration
    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    cfg = Config.from_dict(config)
    pid_file = cfg.pid_file or default_pid_file(cfg.detector.host, cfg.detector.port)

    if args.stop:
        sys.exit(0 if stop_existing_instance(pid_file) else 1)

    # Setup logging
    setup_logging(cfg.log_path, cfg.log_level)

    if not ensure_single_instance(pid_file, kill_existing=args.kill_existing):
        sys.exit(1)

    logging.info(f"Starting Eiger monitor bridge for {cfg.detector.host}:{cfg.detector.port}")

    if cfg.viewer.autostart:
        ensure_viewer_running(cfg.viewer.process_name, cfg.viewer.command)

    source = None
    metadata = None
    try:
        source = create_source_from_config(cfg.detector)
        source.open()
        metadata = create_metadata_provider(cfg.metadata)
        ctx = RuntimeContext.build(cfg, metadata)
        max_polls = 1 if args.once else args.max_polls
        engine = create_engine_from_config(cfg, ctx, source=source, max_polls=max_polls)
    except Exception as e:
        logging.error(f"Failed to initialize pipeline: {e}")
        _release(source, metadata)
        sys.exit(1)

    if cfg.detector.enable_monitor:
        try:
            source.enable_monitor()
        except Exception as e:
            logging.error(f"Failed to enable monitor on {cfg.detector.host}: {e}")

    def _handle_signal(signum, frame):
        logging.info(f"Received signal {signum}, stopping")
        engine.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    engine.run()
    logging.info("Eiger monitor bridge stopped")


if __name__ == "__main__":
    main()
