"""
Device session.

Brings a camera backend from cold to streaming-ready: start the SDK,
enumerate, open the first device with full access and resolve its streams.
Any failure along the way is fatal and raised as a :class:`DeviceError`
subclass. Whatever was acquired before the failure is released by ``stop``,
which is also what ``__exit__`` calls, so every exit path cleans up.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from .camera.base import (
    CameraBackend,
    NoCameraError,
    StreamError,
)

logger = logging.getLogger(__name__)


class DeviceSession:
    """Owns the SDK session and the single opened device."""

    def __init__(self, camera: CameraBackend) -> None:
        self.camera = camera
        self.device_id: Optional[str] = None
        self.streams: List[Any] = []
        self._started = False
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    def start(self) -> None:
        """Start the SDK and open the first attached camera.

        Raises:
            StartupError: the SDK did not start.
            NoCameraError: no camera is attached.
            OpenError: the first camera could not be opened.
            StreamError: the camera's streams could not be resolved.
        """
        self.camera.startup()
        self._started = True

        devices = self.camera.enumerate()
        if not devices:
            raise NoCameraError('No cameras found.')
        logger.info('Found %d camera(s): %s', len(devices), ', '.join(devices))
        if len(devices) > 1:
            logger.info('Using the first camera only')

        device_id = devices[0]
        self.camera.open(device_id, access_mode='full')
        self._opened = True
        self.device_id = device_id
        logger.info('Opened camera %s with full access', device_id)

        streams = self.camera.resolve_streams()
        if not streams:
            raise StreamError(f'Camera {device_id} has no streams')
        self.streams = list(streams)
        logger.debug('Camera %s exposes %d stream(s)', device_id, len(self.streams))

    def stop(self) -> None:
        """Close the device, then shut the SDK down. Idempotent."""
        try:
            if self._opened:
                self._opened = False
                self.camera.close()
                logger.info('Closed camera %s', self.device_id)
        finally:
            if self._started:
                self._started = False
                self.camera.shutdown()
                logger.info('Camera system shut down')

    def __enter__(self) -> 'DeviceSession':
        # __exit__ is not called when __enter__ raises, so release here.
        try:
            self.start()
        except BaseException:
            self.stop()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
