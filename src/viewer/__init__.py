"""
Viewer integration: command socket notification.
"""

from .notifier import ViewerNotifier, load_image_command

__all__ = ["ViewerNotifier", "load_image_command"]
