"""Shared pytest configuration and fixtures for the Frame Logger test suite."""

import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from frame_logger.camera.base import (  # noqa: E402
    CameraBackend,
    CaptureTimeout,
    FrameError,
    OpenError,
    ParameterError,
    RawFrame,
    StartupError,
    StreamError,
)
from frame_logger.config import Config  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "hardware: mark test as requiring a physical camera"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require a physical camera",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless --run-hardware is specified."""
    if config.getoption("--run-hardware"):
        return

    skip_hardware = pytest.mark.skip(reason="Need --run-hardware option to run")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


# =============================================================================
# Test doubles
# =============================================================================

def make_pixels(height: int, width: int) -> bytes:
    return bytes(i % 256 for i in range(height * width))


class ScriptedFrame(RawFrame):
    """Frame whose fields can be made to fail one by one."""

    def __init__(self, height=480, width=640, timestamp=0, data=None, fail=()):
        self.height = height
        self.width = width
        self.timestamp = timestamp
        self.data = data if data is not None else make_pixels(height, width)
        self.fail = set(fail)

    def _get(self, name, value):
        if name in self.fail:
            raise FrameError(f"{name} unavailable")
        return value

    def get_height(self):
        return self._get("height", self.height)

    def get_width(self):
        return self._get("width", self.width)

    def get_image(self):
        return self._get("image", self.data)

    def get_timestamp(self):
        return self._get("timestamp", self.timestamp)


TIMEOUT = object()


class ScriptedCamera(CameraBackend):
    """Camera that replays a fixed list of frames and timeouts.

    Each entry of ``script`` is a :class:`ScriptedFrame` or ``TIMEOUT``. Once the
    script is exhausted every capture times out.
    """

    def __init__(
        self,
        script: Optional[list] = None,
        devices: Optional[List[str]] = None,
        features: Optional[Dict[str, float]] = None,
        fail_on: tuple = (),
    ) -> None:
        self.script = list(script or [])
        self.devices = ["DEV_0001"] if devices is None else list(devices)
        self.features = dict(features) if features is not None else {
            "ExposureTimeAbs": 5000.0,
            "Gain": 3.0,
            "BlackLevel": 4.0,
            "AcquisitionFrameRateAbs": 30.0,
            "AcquisitionFrameRateLimit": 250.0,
        }
        self.fail_on = set(fail_on)
        self.calls: List[str] = []
        self.opened_with = None
        self.captures = 0
        self.timeouts: List[int] = []

    def startup(self):
        self.calls.append("startup")
        if "startup" in self.fail_on:
            raise StartupError("Could not start the API.")

    def enumerate(self):
        self.calls.append("enumerate")
        return list(self.devices)

    def open(self, device_id, access_mode="full"):
        self.calls.append("open")
        if "open" in self.fail_on:
            raise OpenError("Cannot access the cameras.")
        self.opened_with = (device_id, access_mode)

    def resolve_streams(self):
        self.calls.append("resolve_streams")
        if "streams" in self.fail_on:
            raise StreamError("Not able to stream.")
        return ["stream0"]

    def get_value(self, name):
        if name not in self.features:
            raise ParameterError(f"{name} not found")
        return self.features[name]

    def set_value(self, name, value):
        if name not in self.features or name in self.fail_on:
            raise ParameterError(f"{name} rejected")
        self.features[name] = float(value)

    def acquire_frame(self, timeout_ms):
        self.captures += 1
        self.timeouts.append(timeout_ms)
        if not self.script:
            raise CaptureTimeout(f"no frame within {timeout_ms} ms")
        item = self.script.pop(0)
        if item is TIMEOUT:
            raise CaptureTimeout(f"no frame within {timeout_ms} ms")
        return item

    def close(self):
        self.calls.append("close")

    def shutdown(self):
        self.calls.append("shutdown")


class FakePreview:
    """Preview that records shown images and replays key presses."""

    def __init__(self, keys=None, default_key=-1):
        self.keys = list(keys or [])
        self.default_key = default_key
        self.shown = []
        self.polls = 0
        self.waits = []
        self.closed = False

    def show(self, image):
        self.shown.append(image.shape)

    def poll_key(self, wait_ms):
        self.polls += 1
        self.waits.append(wait_ms)
        if self.keys:
            return self.keys.pop(0)
        return self.default_key

    def close(self):
        self.closed = True


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def scripted_camera():
    return ScriptedCamera()


@pytest.fixture
def fake_preview():
    return FakePreview()


@pytest.fixture
def run_config(tmp_path) -> Config:
    """Config that writes everything under a temporary directory."""
    return Config(
        camera_backend="mock",
        image_root=str(tmp_path / "images"),
        timestamp_root=str(tmp_path / "timestamps"),
        log_file=str(tmp_path / "logs" / "frame_logger.log"),
        preview=False,
    )
