"""
Change detection between consecutive monitor frames.

The monitor endpoint keeps returning the last image until a new
acquisition happens; these checks keep duplicates from being re-published.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from models.frame import Frame


def pixels_differ(previous: np.ndarray, current: np.ndarray) -> bool:
    """
    Compare two pixel buffers over their common prefix.

    An empty previous buffer always counts as different.
    """
    if previous is None or previous.size == 0:
        return True
    n = min(previous.size, current.size)
    return not np.array_equal(previous[:n], current[:n])


def is_changed(previous: Optional[Frame], current: Frame) -> bool:
    """
    Decide whether `current` must be published.

    True when there is no previous frame, when the dimensions differ, or
    when any sample differs.
    """
    if previous is None:
        return True
    if previous.size != current.size or previous.pixels.size != current.pixels.size:
        return True
    return pixels_differ(previous.pixels, current.pixels)
