"""
Playback engine.

Owns the single audio output and the ActiveBuffer bound to it. The engine
fetches and decodes tracks, swaps buffers in and out of the output, and
relays device events to whoever registered for them (the controller).
"""

import asyncio
import logging
from typing import Callable, Optional

from drive_player.backends.base import AudioOutput
from drive_player.library.store import RemoteLibraryStore
from drive_player.library.types import TrackMeta
from .buffer import ActiveBuffer, decode_audio

logger = logging.getLogger(__name__)

Decoder = Callable[[TrackMeta, bytes], ActiveBuffer]

PositionChangedCallback = Callable[[float], None]
DurationResolvedCallback = Callable[[float], None]
EndedCallback = Callable[[], None]
ErrorCallback = Callable[[str], None]


class PlaybackEngine:
    """
    Single-output playback engine.

    At most one unreleased ActiveBuffer is bound at any time. Loading is split
    into prepare() (fetch + decode, may be superseded) and activate() (swap
    the buffer into the output) so a caller can discard stale results without
    touching what is currently playing.
    """

    def __init__(
        self,
        store: RemoteLibraryStore,
        output: AudioOutput,
        decoder: Decoder = decode_audio,
    ):
        self.store = store
        self.output = output
        self._decoder = decoder

        self._buffer: Optional[ActiveBuffer] = None
        self._playing = False

        self._on_position_changed: Optional[PositionChangedCallback] = None
        self._on_duration_resolved: Optional[DurationResolvedCallback] = None
        self._on_ended: Optional[EndedCallback] = None
        self._on_error: Optional[ErrorCallback] = None

        self.output.on_position_update(self._handle_position)
        self.output.on_duration_resolved(self._handle_duration)
        self.output.on_track_ended(self._handle_ended)
        self.output.on_playback_error(self._handle_error)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def active_buffer(self) -> Optional[ActiveBuffer]:
        return self._buffer

    @property
    def loaded_track_id(self) -> Optional[str]:
        """Id of the track whose buffer is bound, or None."""
        return self._buffer.track.id if self._buffer else None

    @property
    def duration_seconds(self) -> Optional[float]:
        return self._buffer.duration_seconds if self._buffer else None

    @property
    def is_playing(self) -> bool:
        return self._playing

    # =========================================================================
    # Loading
    # =========================================================================

    async def prepare(self, track: TrackMeta) -> ActiveBuffer:
        """
        Fetch and decode a track without touching the output.

        Raises:
            FetchError: Network failure or credential rejected
            DecodeError: Bytes are not a supported audio format
        """
        logger.debug(f"Fetching {track.display_name} ({track.id})")
        data = await self.store.fetch_bytes(track.id)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._decoder, track, data)

    def activate(self, buffer: ActiveBuffer) -> None:
        """Bind a prepared buffer, paused at position 0."""
        previous = self._buffer
        self._playing = False
        if previous is not None and previous is not buffer:
            previous.release()
        self._buffer = buffer
        self.output.set_source(buffer)
        logger.info(f"Loaded: {buffer.track.display_name}")

    async def load(self, track: TrackMeta) -> None:
        """Fetch, decode and bind a track."""
        buffer = await self.prepare(track)
        self.activate(buffer)

    def release(self) -> None:
        """Drop the bound buffer and detach the output source."""
        buffer = self._buffer
        self._buffer = None
        self._playing = False
        self.output.set_source(None)
        if buffer is not None:
            buffer.release()

    # =========================================================================
    # Transport
    # =========================================================================

    def play(self) -> None:
        if self._buffer is None or self._playing:
            return
        self._playing = True
        self.output.play()

    def pause(self) -> None:
        if not self._playing:
            return
        self._playing = False
        self.output.pause()

    def seek(self, position_s: float) -> float:
        """Seek within the bound buffer. Returns the clamped position."""
        if self._buffer is None:
            return 0.0
        position_s = max(0.0, min(position_s, self._buffer.duration_seconds))
        self.output.seek(position_s)
        return position_s

    def set_volume(self, level: float) -> float:
        """Set output volume. Returns the clamped level."""
        level = max(0.0, min(1.0, level))
        self.output.set_volume(level)
        return level

    def get_position(self) -> float:
        return self.output.get_position() if self._buffer else 0.0

    async def close(self) -> None:
        self.release()
        await self.output.disconnect()

    # =========================================================================
    # Event Registration
    # =========================================================================

    def on_position_changed(self, callback: Optional[PositionChangedCallback]) -> None:
        self._on_position_changed = callback

    def on_duration_resolved(self, callback: Optional[DurationResolvedCallback]) -> None:
        self._on_duration_resolved = callback

    def on_ended(self, callback: Optional[EndedCallback]) -> None:
        """Register callback for natural end of the bound buffer."""
        self._on_ended = callback

    def on_error(self, callback: Optional[ErrorCallback]) -> None:
        self._on_error = callback

    # =========================================================================
    # Output Events
    # =========================================================================

    def _handle_position(self, position_s: float) -> None:
        if self._buffer is not None and self._on_position_changed:
            self._on_position_changed(position_s)

    def _handle_duration(self, duration_s: float) -> None:
        if self._buffer is not None and self._on_duration_resolved:
            self._on_duration_resolved(duration_s)

    def _handle_ended(self) -> None:
        if self._buffer is None:
            return
        self._playing = False
        logger.debug(f"Track ended: {self._buffer.track.display_name}")
        if self._on_ended:
            self._on_ended()

    def _handle_error(self, message: str) -> None:
        logger.error(f"Output error: {message}")
        self._playing = False
        if self._on_error:
            self._on_error(message)
