"""Frame Logger: camera frame and hardware timestamp recorder."""

__version__ = "0.1.0"
