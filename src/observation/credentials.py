"""
Detector credential injection utilities.

Loads HTTP basic-auth credentials from a separate secrets file so they do
not have to live in the checked-in configuration.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

import yaml


def inject_detector_credentials(detector_cfg: Dict[str, Any]) -> None:
    """
    Inject basic-auth credentials from a secrets file into the detector config.

    Args:
        detector_cfg: Detector configuration dict (modified in-place).
            Expected keys:
            - secrets_file: Path to YAML file with username/password
            - username/password: Explicit credentials, which take priority

    The secrets file should contain:
        username: <user>
        password: <password>
    """
    secrets_file = detector_cfg.get("secrets_file")
    if not secrets_file:
        return

    if not os.path.exists(secrets_file):
        logging.warning(f"Secrets file not found: {secrets_file}")
        return

    if detector_cfg.get("username"):
        logging.info("Explicit detector credentials configured, ignoring secrets file")
        return

    with open(secrets_file, "r") as f:
        secrets = yaml.safe_load(f) or {}

    username = secrets.get("username")
    password = secrets.get("password")
    if username:
        detector_cfg["username"] = username
        detector_cfg["password"] = password or ""
        logging.info("Detector credentials loaded from secrets file")

