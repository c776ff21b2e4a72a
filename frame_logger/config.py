"""
Configuration management for Frame Logger.

This module defines a dataclass ``Config`` that holds the acquisition settings:
which camera backend to use, the target exposure/gain/frame rate written to the
camera, the labels and roots that make up the output directory layout, loop
timing, and logging. It can be loaded from a YAML file or constructed manually.
Every field has a default, so an empty YAML file (or none at all) yields the
stock acquisition setup.

Example YAML configuration (config/lab.yaml):

```yaml
camera_backend: "vimba"     # "mock" on development machines
movement_label: "X03_Y03_TopRight"
experiment_label: "LaserDia_9mm"
image_root: "../images"
timestamp_root: "../timestamps"
exposure_time: 150.0        # microseconds
gain: 0.0
frame_rate: 200.0           # frames per second
capture_timeout_ms: 50
preview: true
log_file: "./frame_logger.log"
```

Using the ``Config.from_yaml`` method simplifies loading configuration:

```python
from frame_logger.config import Config
config = Config.from_yaml('config/lab.yaml')
```
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Dict, Any
import yaml

CAMERA_BACKENDS = ('vimba', 'mock')


@dataclass
class Config:
    """Configuration settings for the Frame Logger."""

    camera_backend: str = 'vimba'
    movement_label: str = 'X03_Y03_TopRight'
    experiment_label: str = 'LaserDia_9mm'
    image_root: str = '../images'
    timestamp_root: str = '../timestamps'
    ledger_name: str = 'timestamps.xlsx'
    exposure_time: float = 150.0  # microseconds
    gain: float = 0.0
    frame_rate: float = 200.0  # frames per second
    capture_timeout_ms: int = 50
    key_wait_ms: int = 1
    terminate_key: int = 13  # Enter
    preview: bool = True
    max_consecutive_failures: int = 0  # 0 disables the limit
    log_file: str = './frame_logger.log'
    log_level: str = 'INFO'

    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.camera_backend not in CAMERA_BACKENDS:
            raise ValueError(f'Unknown camera backend: {self.camera_backend}')

    @classmethod
    def from_yaml(cls, path: str) -> 'Config':
        """Load configuration from a YAML file.

        Missing keys take their defaults; unknown keys are kept in ``extra``.

        Raises:
            FileNotFoundError: if the YAML file cannot be found.
            yaml.YAMLError: if the YAML file is invalid.
            ValueError: if the file is not a mapping or names an unknown backend.
        """
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f'Configuration root must be a mapping, got {type(data).__name__}')

        known = {f.name for f in fields(cls)} - {'extra'}
        return cls(
            camera_backend=str(data.get('camera_backend', 'vimba')).lower(),
            movement_label=str(data.get('movement_label', 'X03_Y03_TopRight')),
            experiment_label=str(data.get('experiment_label', 'LaserDia_9mm')),
            image_root=data.get('image_root', '../images'),
            timestamp_root=data.get('timestamp_root', '../timestamps'),
            ledger_name=data.get('ledger_name', 'timestamps.xlsx'),
            exposure_time=float(data.get('exposure_time', 150.0)),
            gain=float(data.get('gain', 0.0)),
            frame_rate=float(data.get('frame_rate', 200.0)),
            capture_timeout_ms=int(data.get('capture_timeout_ms', 50)),
            key_wait_ms=int(data.get('key_wait_ms', 1)),
            terminate_key=int(data.get('terminate_key', 13)),
            preview=bool(data.get('preview', True)),
            max_consecutive_failures=int(data.get('max_consecutive_failures', 0)),
            log_file=data.get('log_file', './frame_logger.log'),
            log_level=str(data.get('log_level', 'INFO')).upper(),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def ensure_paths(self) -> None:
        """Ensure that the directory holding the log file exists.

        This method is idempotent. The image and timestamp trees are created
        later, once the camera settings that name them are known.
        """
        log_dir = os.path.dirname(self.log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)
