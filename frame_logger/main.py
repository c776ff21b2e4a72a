"""
Main orchestration for Frame Logger.

This script opens the first attached camera, applies the configured exposure,
gain and frame rate, and then records frames until Enter is pressed in the
preview window. Every frame is written as a PNG under the image tree and its
hardware timestamp is appended to an ``.xlsx`` ledger under the timestamp tree
(see :mod:`frame_logger.storage.layout`). Settings come from an optional YAML
configuration file (see :mod:`frame_logger.config`).

Usage:

```bash
python -m frame_logger.main --config config/lab.yaml
```
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Optional

import cv2
from xlsxwriter.exceptions import FileCreateError

from .config import Config
from .acquisition import AcquisitionLoop
from .camera.base import AcquisitionError, CameraBackend, DeviceError
from .camera.mock_camera import MockCamera
from .display.preview import HeadlessPreview, OpenCVPreview
from .parameters import ParameterController, configure_camera
from .session import DeviceSession
from .storage.layout import build_paths, ensure_directory
from .storage.ledger import TimestampLedger
# Note: the Vimba backend is imported lazily inside _init_camera so that
# development machines without vmbpy can still run the mock backend.

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class FrameLogger:
    """Main controller for a Frame Logger run."""

    def __init__(self, config: Config, camera: Optional[CameraBackend] = None, preview=None) -> None:
        self.config = config
        # Ensure the log directory exists
        config.ensure_paths()

        # Initialize logging
        self._setup_logging()

        # Initialize hardware backends
        self.camera: CameraBackend = camera if camera is not None else self._init_camera()
        self.preview = preview if preview is not None else self._init_preview()
        self.loop: Optional[AcquisitionLoop] = None
        self.ledger: Optional[TimestampLedger] = None
        self._stop_requested = False

    def _setup_logging(self) -> None:
        """Configure logging to file and console."""
        logger = logging.getLogger()
        logger.setLevel(getattr(logging, self.config.log_level, logging.INFO))
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
        )
        # File handler
        fh = logging.FileHandler(self.config.log_file)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
        # Console handler
        ch = logging.StreamHandler(sys.stdout)
        ch.setFormatter(formatter)
        logger.addHandler(ch)
        self._handlers = [fh, ch]

    def _teardown_logging(self) -> None:
        logger = logging.getLogger()
        for handler in self._handlers:
            logger.removeHandler(handler)
            handler.close()
        self._handlers = []

    def _init_camera(self) -> CameraBackend:
        """Instantiate the camera backend based on configuration."""
        if self.config.camera_backend == 'mock':
            extra = self.config.extra
            return MockCamera(
                image_width=int(extra.get('mock_width', 640)),
                image_height=int(extra.get('mock_height', 480)),
                device_count=int(extra.get('mock_device_count', 1)),
            )
        elif self.config.camera_backend == 'vimba':
            from .camera.vimba_camera import VimbaCamera
            return VimbaCamera()
        else:
            raise ValueError(f'Unknown camera backend: {self.config.camera_backend}')

    def _init_preview(self):
        """Instantiate the preview window, or a headless stand-in."""
        if self.config.preview:
            return OpenCVPreview()
        return HeadlessPreview()

    def stop(self) -> None:
        """Request the acquisition loop to finish."""
        self._stop_requested = True
        if self.loop is not None:
            self.loop.stop()

    def _acquire(self, session: DeviceSession) -> int:
        """Configure the open camera and record frames until stopped."""
        cfg = self.config
        settings = configure_camera(
            ParameterController(session.camera),
            exposure_time=cfg.exposure_time,
            gain=cfg.gain,
            frame_rate=cfg.frame_rate,
        )

        image_dir, timestamp_dir = build_paths(
            settings.gain,
            settings.exposure_time,
            cfg.movement_label,
            cfg.experiment_label,
            image_root=cfg.image_root,
            timestamp_root=cfg.timestamp_root,
        )
        # Create folders in order to save images and their timestamps
        ensure_directory(image_dir)
        ensure_directory(timestamp_dir)

        # Closed by run() once the camera has been released.
        self.ledger = TimestampLedger(timestamp_dir / cfg.ledger_name)
        self.ledger.write_header()
        self.loop = AcquisitionLoop(
            session.camera,
            self.ledger,
            image_dir,
            self.preview,
            timeout_ms=cfg.capture_timeout_ms,
            key_wait_ms=cfg.key_wait_ms,
            terminate_key=cfg.terminate_key,
            max_consecutive_failures=cfg.max_consecutive_failures,
        )
        if self._stop_requested:
            self.loop.stop()
        try:
            return self.loop.run()
        finally:
            self.preview.close()

    def run(self) -> int:
        """Run one acquisition session and return the process exit status."""
        try:
            try:
                with DeviceSession(self.camera) as session:
                    frames = self._acquire(session)
            finally:
                # Release order: preview, device, SDK, then the ledger.
                if self.ledger is not None:
                    self.ledger.close()
        except DeviceError as exc:
            logging.error('Camera setup failed: %s', exc)
            return EXIT_FAILURE
        except AcquisitionError as exc:
            logging.error('Acquisition aborted: %s', exc)
            return EXIT_FAILURE
        except (OSError, FileCreateError) as exc:
            logging.error('Could not write output files: %s', exc)
            return EXIT_FAILURE
        except cv2.error as exc:
            logging.error('Preview window failed: %s', exc)
            return EXIT_FAILURE
        finally:
            self.loop = None
            self.ledger = None
        logging.info(f'Recorded {frames} frames')
        return EXIT_SUCCESS

    def close(self) -> None:
        """Detach this run's log handlers."""
        self._teardown_logging()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Frame Logger acquisition')
    parser.add_argument('--config', '-c', type=str, default=None, help='Path to YAML configuration file')
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    config = Config.from_yaml(args.config) if args.config else Config()
    try:
        service = FrameLogger(config)
    except NotImplementedError as exc:
        logging.error('Camera backend unavailable: %s', exc)
        sys.exit(EXIT_FAILURE)

    def handle_sigterm(signum, frame):
        logging.info('Shutting down...')
        service.stop()

    signal.signal(signal.SIGINT, handle_sigterm)
    signal.signal(signal.SIGTERM, handle_sigterm)
    try:
        status = service.run()
    finally:
        service.close()
    sys.exit(status)

if __name__ == '__main__':
    main()
