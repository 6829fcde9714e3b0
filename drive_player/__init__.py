"""
DrivePlayer - Minimal music player backed by Google Drive.

Plays audio files from a single Drive folder through the local audio device.
"""

__version__ = "0.1.0"

from .app import DrivePlayer
from .config import Config, ConfigError, load_config

__all__ = [
    "__version__",
    "DrivePlayer",
    "Config",
    "load_config",
    "ConfigError",
]
