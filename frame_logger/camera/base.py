"""
Camera backend abstractions for Frame Logger.

This module defines the interface that all camera backends must implement.
A camera backend wraps a vendor SDK session: it starts the SDK, enumerates
attached devices, opens one of them, exposes its named numeric features, and
hands out single frames on request with a bounded wait.

Implementations may use synthetic data for development/testing or talk to
real hardware (e.g., Allied Vision cameras through ``vmbpy``).

Errors raised by backends are translated into the exception types below so
that the rest of the package never depends on a specific SDK's types.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional


class CameraError(Exception):
    """Base class for every camera related failure."""


class DeviceError(CameraError):
    """A setup step failed and acquisition cannot start."""


class StartupError(DeviceError):
    """The imaging subsystem could not be started."""


class NoCameraError(DeviceError):
    """No camera is attached."""


class OpenError(DeviceError):
    """The camera could not be opened with the requested access mode."""


class StreamError(DeviceError):
    """The camera's data stream could not be resolved."""


class ParameterError(CameraError):
    """A named feature could not be read or written."""


class CaptureTimeout(CameraError):
    """No frame arrived within the bounded wait."""


class FrameError(CameraError):
    """A field of a captured frame could not be extracted."""


class AcquisitionError(CameraError):
    """Too many consecutive capture failures."""


@dataclass
class Frame:
    """A captured frame with every field extracted."""

    sequence: int
    height: int
    width: int
    buffer: Any
    timestamp_ns: int


class RawFrame:
    """A frame as returned by a backend, before extraction.

    Each accessor may fail on its own with :class:`FrameError`; callers
    extract the fields one at a time.
    """

    def get_height(self) -> int:
        raise NotImplementedError('get_height must be implemented by subclasses')

    def get_width(self) -> int:
        raise NotImplementedError('get_width must be implemented by subclasses')

    def get_image(self) -> Any:
        """Return the raw 8-bit pixel buffer (bytes-like, row-major)."""
        raise NotImplementedError('get_image must be implemented by subclasses')

    def get_timestamp(self) -> int:
        """Return the hardware timestamp in nanoseconds."""
        raise NotImplementedError('get_timestamp must be implemented by subclasses')


class CameraBackend:
    """Abstract base class for camera backends."""

    def startup(self) -> None:
        """Start the imaging subsystem.

        Raises:
            StartupError: if the SDK cannot be started.
        """
        raise NotImplementedError('startup must be implemented by subclasses')

    def enumerate(self) -> List[str]:
        """Return identifiers of all attached devices (may be empty)."""
        raise NotImplementedError('enumerate must be implemented by subclasses')

    def open(self, device_id: str, access_mode: str = 'full') -> None:
        """Open a device.

        Raises:
            OpenError: if the device cannot be opened.
        """
        raise NotImplementedError('open must be implemented by subclasses')

    def resolve_streams(self) -> List[Any]:
        """Return the data streams of the open device.

        Raises:
            StreamError: if the streams cannot be resolved.
        """
        raise NotImplementedError('resolve_streams must be implemented by subclasses')

    def get_value(self, name: str) -> float:
        """Read a named numeric feature.

        Raises:
            ParameterError: if the feature is missing or unreadable.
        """
        raise NotImplementedError('get_value must be implemented by subclasses')

    def set_value(self, name: str, value: float) -> None:
        """Write a named numeric feature.

        Raises:
            ParameterError: if the feature is missing or rejects the value.
        """
        raise NotImplementedError('set_value must be implemented by subclasses')

    def acquire_frame(self, timeout_ms: int) -> RawFrame:
        """Capture a single frame, waiting at most ``timeout_ms``.

        The returned frame's buffer is only valid until the next call.

        Raises:
            CaptureTimeout: if no frame is delivered in time.
        """
        raise NotImplementedError('acquire_frame must be implemented by subclasses')

    def close(self) -> None:
        raise NotImplementedError('close must be implemented by subclasses')

    def shutdown(self) -> None:
        raise NotImplementedError('shutdown must be implemented by subclasses')

    @property
    def device_id(self) -> Optional[str]:
        """Identifier of the open device, if any."""
        return None
