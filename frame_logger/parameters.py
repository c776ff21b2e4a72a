"""
Camera parameter setup.

``ParameterController`` reads and writes named numeric features of the open
camera. ``configure_camera`` runs the fixed setup sequence before acquisition:
exposure and gain are read and overwritten, the black level is only read, the
frame rate is read and overwritten, and the frame-rate ceiling is only read.

A missing or rejected feature never stops the sequence; it is logged and the
remaining features are still applied. Values reported after a write are read
back from the camera, so they show what the device actually accepted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .camera.base import CameraBackend, ParameterError

logger = logging.getLogger(__name__)

EXPOSURE_TIME = 'ExposureTimeAbs'
GAIN = 'Gain'
BLACK_LEVEL = 'BlackLevel'
FRAME_RATE = 'AcquisitionFrameRateAbs'
FRAME_RATE_LIMIT = 'AcquisitionFrameRateLimit'

LABEL_WIDTH = 27


class ParameterController:
    """Get/set-by-name access to camera features."""

    def __init__(self, camera: CameraBackend) -> None:
        self.camera = camera

    def get_value(self, name: str) -> float:
        return self.camera.get_value(name)

    def set_value(self, name: str, value: float) -> None:
        self.camera.set_value(name, value)

    def try_get(self, name: str) -> Optional[float]:
        """Read ``name``, logging and returning None on failure."""
        try:
            return self.get_value(name)
        except ParameterError as exc:
            logger.warning('Could not read %s: %s', name, exc)
            return None

    def write_and_read_back(self, name: str, value: float) -> Optional[float]:
        """Write ``value`` to ``name`` and return what the camera reports afterwards.

        Falls back to ``value`` when the read-back fails after a successful write.
        """
        written = True
        try:
            self.set_value(name, value)
        except ParameterError as exc:
            written = False
            logger.warning('Could not write %s=%s: %s', name, value, exc)
        try:
            return self.get_value(name)
        except ParameterError as exc:
            logger.warning('Could not read back %s: %s', name, exc)
            return value if written else None


@dataclass
class CameraSettings:
    """Targets requested for a run and the values the camera reported."""

    exposure_time: float
    gain: float
    frame_rate: float
    exposure_time_before: Optional[float] = None
    exposure_time_after: Optional[float] = None
    gain_before: Optional[float] = None
    gain_after: Optional[float] = None
    black_level: Optional[float] = None
    frame_rate_before: Optional[float] = None
    frame_rate_after: Optional[float] = None
    max_frame_rate: Optional[float] = None


def _report(label: str, value: Optional[float], unit: str = '') -> None:
    shown = 'n/a' if value is None else f'{value:g}'
    suffix = f' {unit}' if unit and value is not None else ''
    logger.info('/// %s:        %s%s', label.ljust(LABEL_WIDTH), shown, suffix)


def configure_camera(
    controller: ParameterController,
    exposure_time: float = 150.0,
    gain: float = 0.0,
    frame_rate: float = 200.0,
) -> CameraSettings:
    """Apply the target exposure, gain and frame rate and log every value."""
    settings = CameraSettings(exposure_time=exposure_time, gain=gain, frame_rate=frame_rate)

    logger.info('///////////////////////////////')
    logger.info('//// Printing general info ////')
    logger.info('///////////////////////////////')

    settings.exposure_time_before = controller.try_get(EXPOSURE_TIME)
    _report('Exposure Time (Before)', settings.exposure_time_before, 'us')
    settings.exposure_time_after = controller.write_and_read_back(EXPOSURE_TIME, exposure_time)
    if settings.exposure_time_after is None:
        settings.exposure_time_after = settings.exposure_time_before
    _report('Exposure Time (After)', settings.exposure_time_after, 'us')

    settings.gain_before = controller.try_get(GAIN)
    _report('Gain (Before)', settings.gain_before)
    settings.gain_after = controller.write_and_read_back(GAIN, gain)
    if settings.gain_after is None:
        settings.gain_after = settings.gain_before
    _report('Gain (After)', settings.gain_after)

    settings.black_level = controller.try_get(BLACK_LEVEL)
    _report('Black Level', settings.black_level)

    settings.frame_rate_before = controller.try_get(FRAME_RATE)
    _report('Frame Rate (Before)', settings.frame_rate_before, 'fps')
    settings.frame_rate_after = controller.write_and_read_back(FRAME_RATE, frame_rate)
    if settings.frame_rate_after is None:
        settings.frame_rate_after = settings.frame_rate_before
    _report('Frame Rate (After)', settings.frame_rate_after, 'fps')

    settings.max_frame_rate = controller.try_get(FRAME_RATE_LIMIT)
    _report('Max. Possible Frame Rate', settings.max_frame_rate, 'fps')

    logger.info('///////////////////////////////')
    logger.info('///////////// Done ////////////')
    logger.info('///////////////////////////////')
    return settings
