"""
Live preview surfaces.

``OpenCVPreview`` shows frames in a HighGUI window and reads the keyboard
through ``cv2.waitKey``. ``HeadlessPreview`` is used when no display is
available; it never reports a key press, so a headless run is stopped with
Ctrl+C or SIGTERM.
"""

from __future__ import annotations

import time

import cv2
import numpy as np

NO_KEY = -1
WINDOW_NAME = "Frame Window (Press 'Enter' to quit)"


class OpenCVPreview:
    """Preview window backed by OpenCV HighGUI."""

    def __init__(self, window_name: str = WINDOW_NAME) -> None:
        self.window_name = window_name

    def show(self, image: np.ndarray) -> None:
        cv2.imshow(self.window_name, image)

    def poll_key(self, wait_ms: int) -> int:
        """Wait up to ``wait_ms`` for a key press and return its code, or -1."""
        return cv2.waitKey(max(1, wait_ms))

    def close(self) -> None:
        cv2.destroyAllWindows()


class HeadlessPreview:
    """Preview that displays nothing and never sees a key."""

    def show(self, image: np.ndarray) -> None:
        pass

    def poll_key(self, wait_ms: int) -> int:
        time.sleep(wait_ms / 1000.0)
        return NO_KEY

    def close(self) -> None:
        pass
