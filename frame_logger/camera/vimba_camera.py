"""
Allied Vision camera backend.

This backend drives GigE/USB3 cameras through Vimba X using its Python API,
``vmbpy``. The SDK session and the opened camera are both context managers in
``vmbpy``; they are entered and exited through an :class:`contextlib.ExitStack`
so that ``startup``/``open`` and ``close``/``shutdown`` can be called as
separate steps.

Note: To use this backend, install Vimba X and the ``vmbpy`` wheel shipped
with it (``pip install .[vimba]``). ``vmbpy`` is imported when the backend is
constructed; if it is not available this module raises ``NotImplementedError``.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, List, Optional

from .base import (
    CameraBackend,
    CaptureTimeout,
    FrameError,
    OpenError,
    ParameterError,
    RawFrame,
    StartupError,
    StreamError,
)

logger = logging.getLogger(__name__)


class VimbaFrame(RawFrame):
    """Adapter around ``vmbpy.Frame``."""

    def __init__(self, frame: Any) -> None:
        self._frame = frame

    def _field(self, label: str, getter):
        try:
            value = getter()
        except Exception as exc:
            raise FrameError(f'Failed to get frame {label}: {exc}') from exc
        if value is None:
            raise FrameError(f'Frame has no {label}')
        return value

    def get_height(self) -> int:
        return int(self._field('height', self._frame.get_height))

    def get_width(self) -> int:
        return int(self._field('width', self._frame.get_width))

    def get_image(self) -> Any:
        return self._field('image data', self._frame.get_buffer)

    def get_timestamp(self) -> int:
        return int(self._field('timestamp', self._frame.get_timestamp))


class VimbaCamera(CameraBackend):
    """Camera backend using Vimba X through ``vmbpy``."""

    def __init__(self) -> None:
        try:
            import vmbpy
        except ImportError:
            raise NotImplementedError('vmbpy is not available on this system')
        self._vmbpy = vmbpy
        self._system = vmbpy.VmbSystem.get_instance()
        self._system_stack = contextlib.ExitStack()
        self._camera_stack = contextlib.ExitStack()
        self._cameras: tuple = ()
        self._camera = None

    @property
    def device_id(self) -> Optional[str]:
        return self._camera.get_id() if self._camera is not None else None

    def startup(self) -> None:
        try:
            self._system_stack.enter_context(self._system)
        except self._vmbpy.VmbSystemError as exc:
            raise StartupError(f'Could not start the API: {exc}') from exc
        logger.info('Vimba X %s started', self._system.get_version())

    def enumerate(self) -> List[str]:
        self._cameras = tuple(self._system.get_all_cameras())
        return [cam.get_id() for cam in self._cameras]

    def open(self, device_id: str, access_mode: str = 'full') -> None:
        vmbpy = self._vmbpy
        modes = {
            'full': vmbpy.AccessMode.Full,
            'read': vmbpy.AccessMode.Read,
        }
        try:
            camera = next(cam for cam in self._cameras if cam.get_id() == device_id)
        except StopIteration:
            raise OpenError(f'Camera {device_id} is not attached') from None
        try:
            camera.set_access_mode(modes[access_mode])
            self._camera_stack.enter_context(camera)
        except (KeyError, vmbpy.VmbCameraError) as exc:
            raise OpenError(f'Cannot access camera {device_id}: {exc}') from exc
        self._camera = camera

    def resolve_streams(self) -> List[Any]:
        if self._camera is None:
            raise StreamError('No camera is open')
        try:
            return list(self._camera.get_streams())
        except self._vmbpy.VmbCameraError as exc:
            raise StreamError(f'Not able to stream: {exc}') from exc

    def _feature(self, name: str):
        if self._camera is None:
            raise ParameterError('No camera is open')
        try:
            return self._camera.get_feature_by_name(name)
        except self._vmbpy.VmbFeatureError as exc:
            raise ParameterError(f'Feature {name} not found: {exc}') from exc

    def get_value(self, name: str) -> float:
        feature = self._feature(name)
        try:
            return float(feature.get())
        except self._vmbpy.VmbFeatureError as exc:
            raise ParameterError(f'Cannot read {name}: {exc}') from exc

    def set_value(self, name: str, value: float) -> None:
        feature = self._feature(name)
        try:
            feature.set(value)
        except self._vmbpy.VmbFeatureError as exc:
            raise ParameterError(f'Cannot write {name}={value}: {exc}') from exc

    def acquire_frame(self, timeout_ms: int) -> VimbaFrame:
        vmbpy = self._vmbpy
        if self._camera is None:
            raise CaptureTimeout('No camera is open')
        try:
            frame = self._camera.get_frame(timeout_ms=timeout_ms)
        except vmbpy.VmbTimeout as exc:
            raise CaptureTimeout(str(exc)) from exc
        except (vmbpy.VmbCameraError, vmbpy.VmbFrameError) as exc:
            raise CaptureTimeout(f'Capture failed: {exc}') from exc
        return VimbaFrame(frame)

    def close(self) -> None:
        self._camera_stack.close()
        self._camera = None

    def shutdown(self) -> None:
        self._cameras = ()
        self._system_stack.close()
