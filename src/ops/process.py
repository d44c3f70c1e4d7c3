"""
Process management utilities for single-instance enforcement and the viewer.

This module provides:
- PID file management (write on start, check for existing, cleanup)
- Graceful shutdown support
- Stale process detection and cleanup
- Viewer bootstrap (start adxv detached when it is not running)
"""

from __future__ import annotations

import atexit
import logging
import os
import shutil
import signal
import subprocess
import time
from pathlib import Path
from typing import List, Optional, Sequence

# PID file location template, one instance per detector
DEFAULT_PID_FILE = "/tmp/eiger_monitor_{host}_{port}.pid"


def default_pid_file(host: str, port: int) -> str:
    """PID file path for the instance serving one detector."""
    safe_host = host.replace("/", "_").replace(":", "_")
    return DEFAULT_PID_FILE.format(host=safe_host, port=port)


def get_pid_file_path(pid_file: Optional[str] = None) -> Path:
    """Get the PID file path."""
    return Path(pid_file or default_pid_file("localhost", 80))


def read_pid_file(pid_file: Optional[str] = None) -> Optional[int]:
    """
    Read the PID from the PID file.

    Returns:
        The PID if file exists and is valid, None otherwise.
    """
    path = get_pid_file_path(pid_file)
    if not path.exists():
        return None

    try:
        return int(path.read_text().strip())
    except (ValueError, OSError):
        return None


def is_process_running(pid: int) -> bool:
    """Check if a process with the given PID is running (signal 0 probe)."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    return True


def kill_process(pid: int, force: bool = False) -> bool:
    """
    Kill a process by PID.

    Args:
        pid: Process ID to kill.
        force: If True, use SIGKILL instead of SIGTERM.

    Returns:
        True if process was signalled or doesn't exist, False on error.
    """
    if pid <= 0 or not is_process_running(pid):
        return True

    try:
        os.kill(pid, signal.SIGKILL if force else signal.SIGTERM)
        return True
    except OSError as e:
        logging.warning(f"Failed to kill process {pid}: {e}")
        return False


def write_pid_file(pid_file: Optional[str] = None) -> None:
    """
    Write the current process PID to the PID file.

    Also registers cleanup on exit.
    """
    path = get_pid_file_path(pid_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(os.getpid()))
    logging.debug(f"Wrote PID {os.getpid()} to {path}")

    atexit.register(remove_pid_file, pid_file)


def remove_pid_file(pid_file: Optional[str] = None) -> None:
    """Remove the PID file."""
    path = get_pid_file_path(pid_file)
    try:
        if path.exists():
            path.unlink()
            logging.debug(f"Removed PID file: {path}")
    except OSError as e:
        logging.warning(f"Failed to remove PID file: {e}")


def ensure_single_instance(pid_file: Optional[str] = None, kill_existing: bool = False) -> bool:
    """
    Ensure only one bridge instance runs for this detector.

    Args:
        pid_file: Path to PID file.
        kill_existing: If True, kill any existing instance before starting.

    Returns:
        True if we can proceed (no other instance or killed it).
        False if another instance is running and kill_existing is False.

    Side effects:
        - Writes PID file for current process.
        - Registers cleanup on exit.
    """
    existing_pid = read_pid_file(pid_file)

    if existing_pid is not None and existing_pid != os.getpid():
        if is_process_running(existing_pid):
            if not kill_existing:
                logging.error(
                    f"Another instance is already running (PID {existing_pid}). "
                    f"Use --kill-existing to replace it, or --stop to stop it."
                )
                return False

            logging.info(f"Killing existing instance (PID {existing_pid})...")
            if not kill_process(existing_pid):
                logging.error(f"Failed to kill existing instance (PID {existing_pid})")
                return False
            _wait_for_exit(existing_pid, timeout=5.0)
            logging.info(f"Killed existing instance (PID {existing_pid})")
        else:
            logging.info(f"Removing stale PID file (PID {existing_pid} not running)")
            remove_pid_file(pid_file)

    write_pid_file(pid_file)
    return True


def stop_existing_instance(pid_file: Optional[str] = None) -> bool:
    """
    Stop any existing instance of the bridge.

    Returns:
        True if no instance running or successfully stopped.
        False if failed to stop.
    """
    existing_pid = read_pid_file(pid_file)

    if existing_pid is None:
        print("No PID file found - no instance to stop.")
        return True

    if not is_process_running(existing_pid):
        print(f"PID file exists but process {existing_pid} is not running. Cleaning up.")
        remove_pid_file(pid_file)
        return True

    print(f"Stopping instance (PID {existing_pid})...")
    if not kill_process(existing_pid):
        print(f"Failed to stop instance (PID {existing_pid})")
        return False

    if not _wait_for_exit(existing_pid, timeout=5.0):
        print(f"Process {existing_pid} didn't stop gracefully, force killing...")
        kill_process(existing_pid, force=True)
        time.sleep(0.5)

    remove_pid_file(pid_file)
    print(f"Instance stopped (PID {existing_pid})")
    return True


def _wait_for_exit(pid: int, timeout: float) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if not is_process_running(pid):
            return True
        time.sleep(0.1)
    return not is_process_running(pid)


def is_process_running_by_name(name: str) -> bool:
    """
    Check for a process with exactly this name via `pgrep -x`.

    Returns False when pgrep itself is unavailable.
    """
    if shutil.which("pgrep") is None:
        logging.warning("pgrep not found, cannot check for running processes")
        return False
    result = subprocess.run(
        ["pgrep", "-x", name],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        check=False,
    )
    return result.returncode == 0


def launch_detached(command: Sequence[str]) -> subprocess.Popen:
    """Start `command` in its own session with output discarded."""
    return subprocess.Popen(
        list(command),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
        close_fds=True,
    )


def ensure_viewer_running(process_name: str, command: List[str]) -> bool:
    """
    Start the viewer if no process called `process_name` is running.

    Returns:
        True if the viewer was already running or was started,
        False if it could not be started.
    """
    if is_process_running_by_name(process_name):
        logging.debug(f"Viewer '{process_name}' already running")
        return True

    if not command:
        logging.error("No viewer command configured")
        return False

    try:
        proc = launch_detached(command)
    except OSError as e:
        logging.error(f"Failed to start viewer {' '.join(command)}: {e}")
        return False

    logging.info(f"Started viewer: {' '.join(command)} (PID {proc.pid})")
    return True
