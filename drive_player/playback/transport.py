"""Transport state snapshot published by the controller."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from drive_player.library.types import TrackMeta
from .queue import RepeatMode


class PlayerStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class TransportState:
    """
    Immutable snapshot of playback state.

    active_track is the track whose buffer is bound (or was, after a natural
    end of queue). loading_track is the target of an in-flight load; the
    active track keeps playing until that load completes.
    """

    active_track: Optional[TrackMeta] = None
    playing: bool = False
    position_seconds: float = 0.0
    duration_seconds: Optional[float] = None
    volume: float = 0.5
    repeat_mode: RepeatMode = RepeatMode.OFF
    shuffle_on: bool = False
    loading_track: Optional[TrackMeta] = None

    @property
    def status(self) -> PlayerStatus:
        if self.loading_track is not None:
            return PlayerStatus.LOADING
        if self.active_track is None:
            return PlayerStatus.IDLE
        return PlayerStatus.PLAYING if self.playing else PlayerStatus.PAUSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "active_track": self.active_track.to_dict() if self.active_track else None,
            "loading_track": self.loading_track.to_dict() if self.loading_track else None,
            "playing": self.playing,
            "position_seconds": self.position_seconds,
            "duration_seconds": self.duration_seconds,
            "volume": self.volume,
            "repeat_mode": self.repeat_mode.value,
            "shuffle_on": self.shuffle_on,
        }
