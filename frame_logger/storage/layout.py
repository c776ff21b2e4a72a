"""
Output directory layout.

Images and timestamp ledgers are stored in two parallel trees that share the
same suffix, so a run can be found by its camera settings and labels::

    <image_root>/Gain_<g>_ExposureTime_<e>/<movement>/<experiment>/frame_<n>.png
    <timestamp_root>/Gain_<g>_ExposureTime_<e>/<movement>/<experiment>/timestamps.xlsx
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Tuple, Union

logger = logging.getLogger(__name__)

BANNER = '/' * 71


def settings_folder_name(gain: float, exposure_time: float) -> str:
    """Return the ``Gain_<g>_ExposureTime_<e>`` segment (values truncated toward zero)."""
    return f'Gain_{int(gain)}_ExposureTime_{int(exposure_time)}'


def build_paths(
    gain: float,
    exposure_time: float,
    movement_label: str,
    experiment_label: str,
    image_root: Union[str, Path] = '../images',
    timestamp_root: Union[str, Path] = '../timestamps',
) -> Tuple[Path, Path]:
    """Derive the image and timestamp directories for a run.

    Returns:
        ``(image_dir, timestamp_dir)``.
    """
    suffix = Path(settings_folder_name(gain, exposure_time)) / movement_label / experiment_label
    return Path(image_root) / suffix, Path(timestamp_root) / suffix


def ensure_directory(path: Union[str, Path]) -> bool:
    """Create ``path`` and its parents unless something already exists there.

    Returns:
        True if the directory was created, False if the path already existed.

    Raises:
        OSError: if the directory cannot be created.
    """
    if os.path.exists(path):
        logger.info('%s', BANNER)
        logger.info('/// Folder exists at          :       %s', path)
        logger.info('%s', BANNER)
        return False

    logger.info('%s', BANNER)
    logger.info('/// Creating folder at        :       %s', path)
    logger.info('%s', BANNER)
    os.makedirs(path, exist_ok=True)
    return True
