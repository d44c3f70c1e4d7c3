"""
Tests for the viewer socket notifier.
"""

import socket
import threading
import time

import pytest

from models.errors import NotifyError
from viewer.notifier import ViewerNotifier, load_image_command


@pytest.fixture
def listener():
    """Local TCP listener that records everything each client sends."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(5)
    server.settimeout(0.1)
    received = []
    stop = threading.Event()

    def serve():
        while not stop.is_set():
            try:
                conn, _ = server.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(2.0)
                chunks = []
                while True:
                    chunk = conn.recv(4096)
                    if not chunk:
                        break
                    chunks.append(chunk)
                received.append(b"".join(chunks))

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield server.getsockname()[1], received
    stop.set()
    thread.join(timeout=2)
    server.close()


def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def wait_for(received, count, timeout=2.0):
    deadline = time.time() + timeout
    while len(received) < count and time.time() < deadline:
        time.sleep(0.01)


class TestViewerNotifier:

    def test_sends_load_image_line(self, listener):
        port, received = listener

        ViewerNotifier("127.0.0.1", port).notify("/tmp/eiger_monitor")

        wait_for(received, 1)
        assert received == [b"load_image /tmp/eiger_monitor\n"]

    def test_one_connection_per_notification(self, listener):
        port, received = listener
        notifier = ViewerNotifier("127.0.0.1", port)

        notifier.notify("/tmp/a")
        notifier.notify("/tmp/b")

        wait_for(received, 2)
        assert received == [b"load_image /tmp/a\n", b"load_image /tmp/b\n"]
        assert notifier.sent_count == 2

    def test_unreachable_viewer_raises(self):
        notifier = ViewerNotifier("127.0.0.1", free_port(), timeout=0.5)

        with pytest.raises(NotifyError):
            notifier.notify("/tmp/eiger_monitor")

        assert notifier.sent_count == 0


def test_load_image_command():
    assert load_image_command("/tmp/eiger_monitor") == b"load_image /tmp/eiger_monitor\n"

    with pytest.raises(ValueError):
        load_image_command("/tmp/a\nexit")
