"""
Acquisition loop.

Pulls one frame at a time from the open camera, writes it as
``frame_<n>.png``, records its hardware timestamp in the ledger at row
``n + 1``, shows it in the preview, and polls the keyboard. The loop ends when
the terminate key (Enter by default) is seen or when ``stop`` is called from a
signal handler.

Capture timeouts and extraction failures are soft: they are logged and the
next frame is requested immediately. A frame is only counted once its PNG and
its ledger row have both been written, so ledger rows always match frame
file numbers.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from .camera.base import (
    AcquisitionError,
    CameraBackend,
    CaptureTimeout,
    Frame,
    FrameError,
    RawFrame,
)
from .display.preview import NO_KEY
from .storage.ledger import TimestampLedger

logger = logging.getLogger(__name__)

ENTER_KEY_CODE = 13


class AcquisitionLoop:
    """Single-threaded capture, persist and display loop."""

    def __init__(
        self,
        camera: CameraBackend,
        ledger: TimestampLedger,
        image_dir: Union[str, Path],
        preview,
        timeout_ms: int = 50,
        key_wait_ms: int = 1,
        terminate_key: int = ENTER_KEY_CODE,
        max_consecutive_failures: int = 0,
    ) -> None:
        self.camera = camera
        self.ledger = ledger
        self.image_dir = Path(image_dir)
        self.preview = preview
        self.timeout_ms = timeout_ms
        self.key_wait_ms = key_wait_ms
        self.terminate_key = terminate_key
        self.max_consecutive_failures = max_consecutive_failures
        self.frame_count = 0
        self.consecutive_failures = 0
        self.show_preview = True
        self._stop_event = threading.Event()

    def stop(self) -> None:
        """Ask the loop to exit after the current iteration."""
        self._stop_event.set()

    def frame_path(self, sequence: int) -> Path:
        return self.image_dir / f'frame_{sequence}.png'

    def extract(self, raw: RawFrame) -> Optional[Frame]:
        """Pull every field out of ``raw``; each failure is logged on its own.

        Returns None if any field is missing.
        """
        height = width = buffer = timestamp = None
        try:
            height = raw.get_height()
        except FrameError as exc:
            logger.warning('Failed to get frame height: %s', exc)
        try:
            width = raw.get_width()
        except FrameError as exc:
            logger.warning('Failed to get frame width: %s', exc)
        try:
            buffer = raw.get_image()
        except FrameError as exc:
            logger.warning('Failed to acquire image data: %s', exc)
        try:
            timestamp = raw.get_timestamp()
        except FrameError as exc:
            logger.warning('Failed to acquire timestamp: %s', exc)

        if height is None or width is None or buffer is None or timestamp is None:
            return None
        return Frame(
            sequence=self.frame_count,
            height=height,
            width=width,
            buffer=buffer,
            timestamp_ns=timestamp,
        )

    @staticmethod
    def to_image(frame: Frame) -> np.ndarray:
        """View the frame buffer as a ``(height, width)`` 8-bit image without copying.

        Raises:
            FrameError: if the buffer is smaller than ``height * width`` bytes.
        """
        pixels = np.frombuffer(frame.buffer, dtype=np.uint8)
        expected = frame.height * frame.width
        if pixels.size < expected:
            raise FrameError(
                f'Buffer holds {pixels.size} bytes, {frame.height}x{frame.width} needs {expected}'
            )
        return pixels[:expected].reshape(frame.height, frame.width)

    def persist(self, frame: Frame) -> bool:
        """Write the PNG, show it, and append the ledger row."""
        try:
            image = self.to_image(frame)
        except FrameError as exc:
            logger.warning('Dropping frame: %s', exc)
            return False

        if self.ledger.is_full(frame.sequence + 1):
            raise AcquisitionError(
                f'Timestamp ledger {self.ledger.path} is full after {self.frame_count} frames'
            )

        path = self.frame_path(frame.sequence)
        try:
            written = cv2.imwrite(str(path), image)
        except cv2.error as exc:
            logger.warning('Failed to encode %s: %s', path, exc)
            return False
        if not written:
            logger.warning('Failed to write %s', path)
            return False

        if self.show_preview:
            try:
                self.preview.show(image)
            except cv2.error as exc:
                # The PNG is on disk, so the frame is still recorded.
                logger.warning('Preview disabled, cannot display frames: %s', exc)
                self.show_preview = False
        self.ledger.append_row(frame.sequence + 1, frame.timestamp_ns)
        self.frame_count += 1
        logger.debug('Saved %s (timestamp %d ns)', path, frame.timestamp_ns)
        return True

    def _record_failure(self) -> None:
        self.consecutive_failures += 1
        limit = self.max_consecutive_failures
        if limit and self.consecutive_failures >= limit:
            raise AcquisitionError(f'{self.consecutive_failures} consecutive capture failures')

    def step(self) -> bool:
        """Run one iteration. Returns False when the terminate key was pressed."""
        try:
            raw = self.camera.acquire_frame(self.timeout_ms)
        except CaptureTimeout as exc:
            logger.debug('No frame within %d ms: %s', self.timeout_ms, exc)
            self._record_failure()
        else:
            frame = self.extract(raw)
            if frame is not None and self.persist(frame):
                self.consecutive_failures = 0
            else:
                self._record_failure()

        key = self.preview.poll_key(self.key_wait_ms)
        return not (key != NO_KEY and (key & 0xFF) == self.terminate_key)

    def run(self) -> int:
        """Loop until the terminate key or ``stop``. Returns the number of saved frames."""
        logger.info('Acquiring into %s (press Enter in the preview window to stop)', self.image_dir)
        while not self._stop_event.is_set():
            if not self.step():
                logger.info('Terminate key pressed')
                break
        logger.info('Acquisition finished: %d frames saved', self.frame_count)
        return self.frame_count
