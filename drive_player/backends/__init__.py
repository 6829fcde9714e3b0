"""
Audio outputs module.

Provides the abstract output interface, the local and silent outputs, and
a factory that builds one from configuration.
"""

from .base import (
    AudioOutput,
    DurationResolvedCallback,
    PlaybackErrorCallback,
    PositionUpdateCallback,
    TrackEndedCallback,
)
from .factory import OutputFactory, OutputNotFoundError, OutputRegistry
from .local import LocalAudioOutput
from .null import NullAudioOutput
from .types import OutputInfo

__all__ = [
    # Types
    "OutputInfo",
    # Base class
    "AudioOutput",
    # Callback types
    "DurationResolvedCallback",
    "PlaybackErrorCallback",
    "PositionUpdateCallback",
    "TrackEndedCallback",
    # Factory
    "OutputFactory",
    "OutputNotFoundError",
    "OutputRegistry",
    # Implementations
    "LocalAudioOutput",
    "NullAudioOutput",
]
