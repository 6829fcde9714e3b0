"""
Player controller.

Binds user intents and engine events to the queue model and the playback
engine. The controller is the only writer of TransportState; observers get
immutable snapshots through on_state_change.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Callable, Optional, Sequence

from drive_player.errors import AuthError, DecodeError, NotFoundError, PlayerError
from drive_player.library.store import RemoteLibraryStore
from drive_player.library.types import TrackMeta
from .engine import PlaybackEngine
from .queue import (
    RepeatMode,
    build_queue,
    cycle_repeat,
    index_of,
    next_index,
    prev_index,
)
from .transport import TransportState

logger = logging.getLogger(__name__)

# Default position (seconds) above which prev() restarts the current track
RESTART_THRESHOLD_SECONDS = 3.0

StateChangeCallback = Callable[[TransportState], None]
ErrorCallback = Callable[[str], None]


def describe_error(error: Exception, track: Optional[TrackMeta] = None) -> str:
    """User-facing message for a failed operation."""
    name = f"'{track.display_name}'" if track else "track"
    if isinstance(error, AuthError):
        return f"Sign in again: {error}"
    if isinstance(error, NotFoundError):
        return f"{name} is no longer available"
    if isinstance(error, DecodeError):
        return f"Cannot play {name}: unsupported audio format"
    return f"Could not load {name}: {error}"


class PlayerController:
    """
    Playback/queue state machine.

    States (see TransportState.status):
        IDLE -> LOADING (select, next, prev)
        LOADING -> PLAYING (load succeeded)
        LOADING -> prior state (load failed, error reported)
        PLAYING <-> PAUSED (toggle)
        PLAYING -> LOADING (track ended, queue advanced)
        PLAYING -> PAUSED at end (track ended, end of queue)

    Loads are superseded, never cancelled: each load takes a generation
    number and its result is dropped (and its buffer released) if a newer
    request was made before it completed.
    """

    def __init__(
        self,
        store: RemoteLibraryStore,
        engine: PlaybackEngine,
        folder_id: str = "",
        restart_threshold_seconds: float = RESTART_THRESHOLD_SECONDS,
        volume: float = 0.5,
        repeat_mode: RepeatMode = RepeatMode.OFF,
        shuffle_on: bool = False,
    ):
        self.store = store
        self.engine = engine
        self.folder_id = folder_id
        self.restart_threshold_seconds = restart_threshold_seconds

        self._library: list[TrackMeta] = []
        self._queue: list[TrackMeta] = []
        self._state = TransportState(
            volume=engine.set_volume(volume),
            repeat_mode=repeat_mode,
            shuffle_on=shuffle_on,
        )

        # Supersession of in-flight loads
        self._generation: int = 0
        self._desired_track_id: Optional[str] = None

        self._last_error: Optional[str] = None
        self._tasks: set[asyncio.Task] = set()

        self._on_state_change: Optional[StateChangeCallback] = None
        self._on_error: Optional[ErrorCallback] = None

        self.engine.on_position_changed(self._on_position_changed)
        self.engine.on_duration_resolved(self._on_duration_resolved)
        self.engine.on_ended(self._on_track_ended)
        self.engine.on_error(self._on_output_error)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def library(self) -> list[TrackMeta]:
        return list(self._library)

    @property
    def queue(self) -> list[TrackMeta]:
        return list(self._queue)

    @property
    def desired_track_id(self) -> Optional[str]:
        """Track the user most recently asked for."""
        return self._desired_track_id

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    # =========================================================================
    # Observers
    # =========================================================================

    def on_state_change(self, callback: Optional[StateChangeCallback]) -> None:
        """Register callback receiving each new TransportState snapshot."""
        self._on_state_change = callback

    def on_error(self, callback: Optional[ErrorCallback]) -> None:
        """Register callback receiving user-facing error messages."""
        self._on_error = callback

    def _update(self, **changes) -> None:
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return
        self._state = new_state
        if self._on_state_change:
            try:
                self._on_state_change(new_state)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

    def _report(self, message: str) -> None:
        self._last_error = message
        logger.warning(message)
        if self._on_error:
            try:
                self._on_error(message)
            except Exception as e:
                logger.error(f"Error callback error: {e}")

    # =========================================================================
    # Library
    # =========================================================================

    async def refresh_library(self) -> bool:
        """
        Relist the library folder and rebuild the queue.

        Tracks that disappeared are not reconciled here; they fail with
        NotFoundError on their next fetch or as "not in queue" on navigation.
        """
        try:
            tracks = await self.store.list_tracks(self.folder_id)
        except PlayerError as e:
            self._report(f"Could not refresh library: {e}")
            return False
        self.set_library(tracks)
        return True

    def set_library(self, tracks: Sequence[TrackMeta]) -> None:
        """Replace the library and recompute the queue."""
        self._library = list(tracks)
        self._queue = build_queue(self._library, self._state.shuffle_on)
        logger.info(f"Library: {len(self._library)} tracks")

    def _drop_track(self, track: TrackMeta) -> None:
        self.set_library([t for t in self._library if t.id != track.id])
        active = self._state.active_track
        if active is not None and active.id == track.id:
            self._go_idle()

    def _go_idle(self) -> None:
        self._generation += 1
        self._desired_track_id = None
        self.engine.release()
        self._update(
            active_track=None,
            loading_track=None,
            playing=False,
            position_seconds=0.0,
            duration_seconds=None,
        )

    def _track_unavailable(self, track: TrackMeta) -> None:
        logger.info(f"{track.display_name} is not in the queue")
        self._go_idle()
        self._report(f"'{track.display_name}' is no longer available")

    # =========================================================================
    # Intents
    # =========================================================================

    async def select_track(self, track_id: str) -> None:
        """
        Select a track by id.

        Selecting the active track toggles play/pause without re-fetching.
        Selecting any other track loads it.
        """
        track = next((t for t in self._library if t.id == track_id), None)
        if track is None:
            self._report(f"Unknown track: {track_id}")
            return

        loading = self._state.loading_track
        if loading is not None and loading.id == track_id:
            return

        active = self._state.active_track
        if active is not None and active.id == track_id:
            if loading is not None:
                # Keep the active track as it is, drop the pending load
                self._supersede(active)
            elif self.engine.loaded_track_id == track_id:
                self._toggle_resident()
            else:
                await self._load_and_play(track)
            return

        await self._load_and_play(track)

    async def toggle_play_pause(self) -> None:
        active = self._state.active_track
        if active is None:
            if self._state.loading_track is not None or not self._queue:
                return
            await self._load_and_play(self._queue[0])
            return

        if self.engine.loaded_track_id == active.id:
            self._toggle_resident()
        elif self._state.loading_track is None:
            # Buffer was released at end of queue
            await self._load_and_play(active)

    async def next(self) -> None:
        await self._navigate(forward=True)

    async def prev(self) -> None:
        """Previous track, or restart the current one past the threshold."""
        active = self._state.active_track
        if (
            active is not None
            and self._state.loading_track is None
            and self.engine.loaded_track_id == active.id
            and self._state.position_seconds > self.restart_threshold_seconds
        ):
            self._restart()
            return
        await self._navigate(forward=False)

    def seek(self, position_s: float) -> None:
        if self._state.active_track is None or self.engine.loaded_track_id is None:
            return
        self._update(position_seconds=self.engine.seek(position_s))

    def set_volume(self, level: float) -> None:
        self._update(volume=self.engine.set_volume(level))

    def toggle_mute(self) -> None:
        self.set_volume(0.0 if self._state.volume > 0 else 1.0)

    def toggle_shuffle(self) -> None:
        shuffle_on = not self._state.shuffle_on
        self._queue = build_queue(self._library, shuffle_on)
        self._update(shuffle_on=shuffle_on)
        logger.info(f"Shuffle {'on' if shuffle_on else 'off'}")

    def cycle_repeat(self) -> None:
        mode = cycle_repeat(self._state.repeat_mode)
        self._update(repeat_mode=mode)
        logger.info(f"Repeat: {mode.value}")

    # =========================================================================
    # Loading and Navigation
    # =========================================================================

    async def _load_and_play(self, track: TrackMeta) -> None:
        self._generation += 1
        generation = self._generation
        self._desired_track_id = track.id
        self._update(loading_track=track)
        logger.info(f"Loading: {track.display_name}")

        try:
            buffer = await self.engine.prepare(track)
        except Exception as e:
            if generation != self._generation:
                logger.debug(f"Ignoring failure of superseded load: {track.display_name}")
                return
            active = self._state.active_track
            self._desired_track_id = active.id if active else None
            self._update(loading_track=None)
            if isinstance(e, NotFoundError):
                self._drop_track(track)
            if not isinstance(e, PlayerError):
                logger.error(f"Unexpected error loading {track.display_name}: {e}", exc_info=True)
            self._report(describe_error(e, track))
            return

        if generation != self._generation:
            logger.debug(f"Discarding superseded load: {track.display_name}")
            buffer.release()
            return

        self.engine.activate(buffer)
        self.engine.play()
        self._update(
            active_track=track,
            loading_track=None,
            playing=True,
            position_seconds=0.0,
            duration_seconds=None,
        )

    def _supersede(self, track: TrackMeta) -> None:
        self._generation += 1
        self._desired_track_id = track.id
        self._update(loading_track=None)

    def _toggle_resident(self) -> None:
        if self.engine.is_playing:
            self.engine.pause()
            self._update(playing=False)
        else:
            self.engine.play()
            self._update(playing=True)

    def _restart(self) -> None:
        self.engine.seek(0.0)
        self.engine.play()
        self._update(position_seconds=0.0, playing=True)

    async def _navigate(self, forward: bool) -> None:
        """Skip-button navigation relative to the loading or active track."""
        if not self._queue:
            return

        reference = self._state.loading_track or self._state.active_track
        if reference is None:
            await self._navigate_to(self._queue[0] if forward else self._queue[-1])
            return

        index = index_of(self._queue, reference.id)
        if index is None:
            self._track_unavailable(reference)
            return

        if not forward:
            await self._navigate_to(self._queue[prev_index(self._queue, index)])
            return

        # Repeat ONE only applies to natural track end
        repeat = self._state.repeat_mode
        if repeat == RepeatMode.ONE:
            repeat = RepeatMode.OFF
        step = next_index(self._queue, index, repeat)
        if step is None:
            if self._state.loading_track is None:
                self.engine.pause()
                self._update(playing=False)
            return
        await self._navigate_to(self._queue[step.index])

    async def _navigate_to(self, track: TrackMeta) -> None:
        active = self._state.active_track
        if active is not None and active.id == track.id and self.engine.loaded_track_id == track.id:
            if self._state.loading_track is not None:
                self._supersede(track)
            self._restart()
            return
        await self._load_and_play(track)

    def _stop_at_end(self) -> None:
        """End of queue: keep the last track selected but free its buffer."""
        logger.info("End of queue")
        self.engine.release()
        self._update(playing=False)

    # =========================================================================
    # Engine Events
    # =========================================================================

    async def handle_track_ended(self) -> None:
        """Advance after the active track played to completion."""
        if self._state.loading_track is not None:
            # The pending load decides what plays next
            self._update(playing=False)
            return

        if self._state.repeat_mode == RepeatMode.ONE:
            self._restart()
            return

        self._update(playing=False)
        active = self._state.active_track
        if active is None:
            return

        index = index_of(self._queue, active.id)
        if index is None:
            self._track_unavailable(active)
            return

        step = next_index(self._queue, index, self._state.repeat_mode)
        if step is None:
            self._stop_at_end()
            return
        await self._navigate_to(self._queue[step.index])

    def _on_track_ended(self) -> None:
        task = asyncio.create_task(self.handle_track_ended())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_position_changed(self, position_s: float) -> None:
        self._update(position_seconds=position_s)

    def _on_duration_resolved(self, duration_s: float) -> None:
        self._update(duration_seconds=duration_s)

    def _on_output_error(self, message: str) -> None:
        self._update(playing=False)
        self._report(f"Audio output error: {message}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        """Cancel pending event handling and release the engine."""
        for task in list(self._tasks):
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.engine.close()
