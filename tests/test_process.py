"""
Tests for single-instance PID handling and viewer bootstrap.
"""

import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from ops import process
from ops.process import (
    default_pid_file,
    ensure_single_instance,
    ensure_viewer_running,
    is_process_running,
    read_pid_file,
    remove_pid_file,
    stop_existing_instance,
)


@pytest.fixture
def pid_file(tmp_path):
    path = str(tmp_path / "run" / "eiger_monitor.pid")
    yield path
    remove_pid_file(path)


class TestPidFile:

    def test_default_pid_file_per_detector(self):
        assert default_pid_file("10.0.0.5", 80) == "/tmp/eiger_monitor_10.0.0.5_80.pid"

    def test_first_instance_writes_pid(self, pid_file):
        assert ensure_single_instance(pid_file) is True

        assert read_pid_file(pid_file) == os.getpid()

    def test_stale_pid_file_is_replaced(self, pid_file):
        os.makedirs(os.path.dirname(pid_file))
        with open(pid_file, "w") as f:
            f.write("999999")

        with patch.object(process, "is_process_running", return_value=False):
            assert ensure_single_instance(pid_file) is True

        assert read_pid_file(pid_file) == os.getpid()

    def test_live_instance_blocks_start(self, pid_file):
        os.makedirs(os.path.dirname(pid_file))
        with open(pid_file, "w") as f:
            f.write("999999")

        with patch.object(process, "is_process_running", return_value=True):
            assert ensure_single_instance(pid_file) is False

        assert read_pid_file(pid_file) == 999999

    def test_kill_existing_replaces_instance(self, pid_file):
        os.makedirs(os.path.dirname(pid_file))
        with open(pid_file, "w") as f:
            f.write("999999")
        running = iter([True, False])

        with patch.object(process, "is_process_running", side_effect=lambda pid: next(running, False)), \
                patch.object(process, "kill_process", return_value=True) as kill:
            assert ensure_single_instance(pid_file, kill_existing=True) is True

        kill.assert_called_once_with(999999)
        assert read_pid_file(pid_file) == os.getpid()

    def test_garbage_pid_file(self, pid_file):
        os.makedirs(os.path.dirname(pid_file))
        with open(pid_file, "w") as f:
            f.write("not a pid")

        assert read_pid_file(pid_file) is None

    def test_stop_without_instance(self, pid_file):
        assert stop_existing_instance(pid_file) is True


def test_is_process_running():
    assert is_process_running(os.getpid()) is True
    assert is_process_running(0) is False


class TestViewerBootstrap:

    def test_running_viewer_not_restarted(self):
        with patch.object(process, "is_process_running_by_name", return_value=True), \
                patch.object(process, "launch_detached") as launch:
            assert ensure_viewer_running("adxv", ["/opt/xray/bin/adxv", "-socket"]) is True

        launch.assert_not_called()

    def test_missing_viewer_started(self):
        with patch.object(process, "is_process_running_by_name", return_value=False), \
                patch.object(process, "launch_detached", return_value=MagicMock(pid=4321)) as launch:
            assert ensure_viewer_running("adxv", ["/opt/xray/bin/adxv", "-socket", "-rings"]) is True

        launch.assert_called_once_with(["/opt/xray/bin/adxv", "-socket", "-rings"])

    def test_launch_failure_reported(self):
        with patch.object(process, "is_process_running_by_name", return_value=False), \
                patch.object(process, "launch_detached", side_effect=FileNotFoundError("adxv")):
            assert ensure_viewer_running("adxv", ["/opt/xray/bin/adxv"]) is False

    def test_pgrep_exact_name(self):
        completed = subprocess.CompletedProcess(args=[], returncode=1)
        with patch.object(process.shutil, "which", return_value="/usr/bin/pgrep"), \
                patch.object(process.subprocess, "run", return_value=completed) as run:
            assert process.is_process_running_by_name("adxv") is False

        assert run.call_args[0][0] == ["pgrep", "-x", "adxv"]
