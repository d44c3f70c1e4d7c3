"""
Viewer notification over the adxv command socket.

adxv started with `-socket` listens on a TCP port and accepts newline
terminated commands. After each publish the bridge sends one
`load_image <path>` line and closes the connection.
"""

from __future__ import annotations

import logging
import socket

from models.errors import NotifyError

DEFAULT_VIEWER_HOST = "127.0.0.1"
DEFAULT_VIEWER_PORT = 8100


def load_image_command(path: str) -> bytes:
    """Encode the load command for one published image path."""
    if not path or "\n" in path:
        raise ValueError(f"Invalid image path for viewer command: {path!r}")
    return f"load_image {path}\n".encode("ascii")


class ViewerNotifier:
    """
    Sends load commands to a running viewer.

    A fresh connection is made per notification so a viewer restart between
    frames is picked up without any reconnect logic.
    """

    def __init__(
        self,
        host: str = DEFAULT_VIEWER_HOST,
        port: int = DEFAULT_VIEWER_PORT,
        timeout: float = 2.0,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.sent_count = 0

    @property
    def address(self) -> tuple:
        return (self.host, self.port)

    def notify(self, path: str) -> None:
        """
        Tell the viewer to load `path`.

        Raises:
            NotifyError: If the connection fails or the command is not fully sent.
        """
        command = load_image_command(path)
        try:
            with socket.create_connection(self.address, timeout=self.timeout) as sock:
                sock.sendall(command)
        except OSError as e:
            raise NotifyError(f"Viewer at {self.host}:{self.port} not reachable: {e}") from e

        self.sent_count += 1
        logging.debug(f"Viewer notified: {command.decode('ascii').strip()}")
