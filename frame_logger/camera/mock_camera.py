"""
Mock camera backend for development and testing on machines without a physical camera.

This implementation renders synthetic 8-bit grayscale frames using the Pillow
library. Each frame is a vertical gradient annotated with its sequence
number, and is stamped with a monotonic nanosecond timestamp. Named features
are kept in an in-memory table seeded with the feature names of an Allied
Vision GigE camera, so the parameter setup sequence behaves as on hardware.

Usage:

```python
from frame_logger.camera.mock_camera import MockCamera
cam = MockCamera(image_width=640, image_height=480)
cam.startup()
cam.open(cam.enumerate()[0])
frame = cam.acquire_frame(timeout_ms=50)
```
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from PIL import Image, ImageDraw, ImageFont

from .base import (
    CameraBackend,
    CaptureTimeout,
    OpenError,
    ParameterError,
    RawFrame,
    StartupError,
    StreamError,
)

DEFAULT_FEATURES: Dict[str, float] = {
    'ExposureTimeAbs': 10000.0,
    'Gain': 6.0,
    'BlackLevel': 4.0,
    'AcquisitionFrameRateAbs': 30.0,
    'AcquisitionFrameRateLimit': 286.0,
}

# Features the device reports but does not accept writes for.
READ_ONLY_FEATURES = ('AcquisitionFrameRateLimit',)


class MockFrame(RawFrame):
    """A fully populated synthetic frame."""

    def __init__(self, height: int, width: int, data: bytes, timestamp_ns: int) -> None:
        self._height = height
        self._width = width
        self._data = data
        self._timestamp_ns = timestamp_ns

    def get_height(self) -> int:
        return self._height

    def get_width(self) -> int:
        return self._width

    def get_image(self) -> bytes:
        return self._data

    def get_timestamp(self) -> int:
        return self._timestamp_ns


class MockCamera(CameraBackend):
    """Mock camera backend that generates synthetic frames."""

    def __init__(self, image_width: int = 640, image_height: int = 480, device_count: int = 1) -> None:
        self.image_width = image_width
        self.image_height = image_height
        self.device_count = device_count
        self.features: Dict[str, float] = dict(DEFAULT_FEATURES)
        self.started = False
        self._open_device: Optional[str] = None
        self._sequence = 0
        # Try to load a default font for annotation; fallback gracefully.
        try:
            self.font = ImageFont.load_default()
        except OSError:
            self.font = None

    @property
    def device_id(self) -> Optional[str]:
        return self._open_device

    def startup(self) -> None:
        self.started = True

    def enumerate(self) -> List[str]:
        if not self.started:
            raise StartupError('Mock camera system is not started')
        return [f'DEV_MOCK{idx:04d}' for idx in range(self.device_count)]

    def open(self, device_id: str, access_mode: str = 'full') -> None:
        if device_id not in self.enumerate():
            raise OpenError(f'Unknown device {device_id}')
        self._open_device = device_id

    def resolve_streams(self) -> List[Any]:
        if self._open_device is None:
            raise StreamError('No device is open')
        return [f'{self._open_device}/stream0']

    def get_value(self, name: str) -> float:
        try:
            return self.features[name]
        except KeyError:
            raise ParameterError(f'Feature {name} not found') from None

    def set_value(self, name: str, value: float) -> None:
        if name not in self.features:
            raise ParameterError(f'Feature {name} not found')
        if name in READ_ONLY_FEATURES:
            raise ParameterError(f'Feature {name} is read-only')
        self.features[name] = float(value)

    def _render(self, index: int) -> Image.Image:
        """Draw a grayscale gradient annotated with the frame index."""
        img = Image.linear_gradient('L').resize((self.image_width, self.image_height))
        if self.font:
            draw = ImageDraw.Draw(img)
            draw.text((10, 10), f'Frame {index}', fill=255, font=self.font)
        return img

    def acquire_frame(self, timeout_ms: int) -> MockFrame:
        if self._open_device is None:
            raise CaptureTimeout('No device is open')
        img = self._render(self._sequence)
        self._sequence += 1
        return MockFrame(
            height=self.image_height,
            width=self.image_width,
            data=img.tobytes(),
            timestamp_ns=time.monotonic_ns(),
        )

    def close(self) -> None:
        self._open_device = None

    def shutdown(self) -> None:
        self.started = False
