"""
Abstract audio output interface.

Defines the contract for the single, process-wide audio device. Only the
playback engine talks to it; everything else goes through the controller.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

from .types import OutputInfo

if TYPE_CHECKING:
    from drive_player.playback.buffer import ActiveBuffer

logger = logging.getLogger(__name__)

# Event callback types
PositionUpdateCallback = Callable[[float], None]  # position in seconds
DurationResolvedCallback = Callable[[float], None]  # duration in seconds
TrackEndedCallback = Callable[[], None]
PlaybackErrorCallback = Callable[[str], None]  # error_message


class AudioOutput(ABC):
    """
    Abstract base class for audio outputs.

    Transport controls are synchronous and take effect immediately. Events
    are pushed through registered callbacks and always delivered on the
    event loop thread. Events from a source that has since been replaced
    are never delivered, and track-ended fires at most once per source.
    """

    def __init__(self, name: str = "AudioOutput"):
        """Initialize output."""
        self.name = name
        self._volume: float = 0.5  # 0.0 - 1.0
        self._is_connected: bool = False

        # Event callbacks
        self._on_position_update: Optional[PositionUpdateCallback] = None
        self._on_duration_resolved: Optional[DurationResolvedCallback] = None
        self._on_track_ended: Optional[TrackEndedCallback] = None
        self._on_playback_error: Optional[PlaybackErrorCallback] = None

    # =========================================================================
    # Source and Transport - Required
    # =========================================================================

    @abstractmethod
    def set_source(self, buffer: Optional["ActiveBuffer"]) -> None:
        """Bind a buffer, paused at position 0. None detaches the source."""
        pass

    @abstractmethod
    def play(self) -> None:
        """Start or resume output of the bound source."""
        pass

    @abstractmethod
    def pause(self) -> None:
        """Pause output, keeping the position."""
        pass

    @abstractmethod
    def seek(self, position_s: float) -> None:
        """Move the read position of the bound source."""
        pass

    @abstractmethod
    def get_position(self) -> float:
        """Current position in seconds."""
        pass

    def set_volume(self, level: float) -> None:
        """Set output volume (0.0-1.0)."""
        self._volume = max(0.0, min(1.0, level))

    def get_volume(self) -> float:
        return self._volume

    # =========================================================================
    # Lifecycle - Required
    # =========================================================================

    @abstractmethod
    async def connect(self) -> bool:
        """Open the device. Returns True if successful."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the device and release resources."""
        pass

    def is_connected(self) -> bool:
        return self._is_connected

    # =========================================================================
    # Event Callbacks
    # =========================================================================

    def on_position_update(self, callback: Optional[PositionUpdateCallback]) -> None:
        """Register callback for periodic position updates."""
        self._on_position_update = callback

    def on_duration_resolved(self, callback: Optional[DurationResolvedCallback]) -> None:
        """Register callback for when the source duration becomes known."""
        self._on_duration_resolved = callback

    def on_track_ended(self, callback: Optional[TrackEndedCallback]) -> None:
        """Register callback for natural end of the source (not pause/detach)."""
        self._on_track_ended = callback

    def on_playback_error(self, callback: Optional[PlaybackErrorCallback]) -> None:
        """Register callback for device errors."""
        self._on_playback_error = callback

    # =========================================================================
    # Event Notification Helpers
    # =========================================================================

    def _notify_position_update(self, position_s: float) -> None:
        if self._on_position_update:
            try:
                self._on_position_update(position_s)
            except Exception as e:
                logger.error(f"Position update callback error: {e}")

    def _notify_duration_resolved(self, duration_s: float) -> None:
        if self._on_duration_resolved:
            try:
                self._on_duration_resolved(duration_s)
            except Exception as e:
                logger.error(f"Duration callback error: {e}")

    def _notify_track_ended(self) -> None:
        if self._on_track_ended:
            try:
                self._on_track_ended()
            except Exception as e:
                logger.error(f"Track ended callback error: {e}")

    def _notify_playback_error(self, message: str) -> None:
        if self._on_playback_error:
            try:
                self._on_playback_error(message)
            except Exception as e:
                logger.error(f"Playback error callback error: {e}")

    # =========================================================================
    # Info
    # =========================================================================

    def get_info(self) -> OutputInfo:
        return OutputInfo(output_type="unknown", name=self.name, device_id="")
