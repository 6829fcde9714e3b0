"""Playback, queue and transport control module."""

from .buffer import ActiveBuffer, decode_audio
from .controller import PlayerController, describe_error
from .engine import PlaybackEngine
from .queue import (
    QueueStep,
    RepeatMode,
    build_queue,
    cycle_repeat,
    index_of,
    next_index,
    prev_index,
)
from .transport import PlayerStatus, TransportState

__all__ = [
    # Queue
    "QueueStep",
    "RepeatMode",
    "build_queue",
    "cycle_repeat",
    "index_of",
    "next_index",
    "prev_index",
    # Engine
    "ActiveBuffer",
    "PlaybackEngine",
    "decode_audio",
    # Controller
    "PlayerController",
    "PlayerStatus",
    "TransportState",
    "describe_error",
]
