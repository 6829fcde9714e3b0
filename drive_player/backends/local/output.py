"""
Local audio output.

Plays the bound ActiveBuffer through a local audio device via PortAudio.
The read cursor advances on the audio thread; position and end-of-track
events are marshalled back onto the event loop.
"""

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Optional

import numpy as np

from drive_player.backends.base import AudioOutput
from drive_player.backends.types import OutputInfo
from .device import AudioDeviceInfo, resolve_device
from .stream import AudioOutputStream

if TYPE_CHECKING:
    from drive_player.playback.buffer import ActiveBuffer

logger = logging.getLogger(__name__)

POSITION_INTERVAL_S = 0.25  # Granularity of position events


class LocalAudioOutput(AudioOutput):
    """Local audio output using sounddevice/PortAudio."""

    def __init__(
        self,
        device: str = "default",
        buffer_size: int = 2048,
        name: str = "Local Audio",
    ):
        super().__init__(name)
        self._device_config = device
        self._buffer_size = buffer_size

        # Initialized in connect()
        self._device_info: Optional[AudioDeviceInfo] = None
        self._stream: Optional[AudioOutputStream] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Shared with the audio thread, guarded by _lock
        self._source: Optional["ActiveBuffer"] = None
        self._cursor: int = 0
        self._playing = False
        self._ended = False
        self._last_report: int = 0
        self._seek_epoch: int = 0  # Bumped on seek; older position reports are dropped
        self._lock = threading.Lock()

    # =========================================================================
    # Source and Transport
    # =========================================================================

    def set_source(self, buffer: Optional["ActiveBuffer"]) -> None:
        with self._lock:
            self._source = buffer
            self._cursor = 0
            self._playing = False
            self._ended = False
            self._last_report = 0

        if self._stream is None:
            return
        self._stream.pause()

        if buffer is None:
            self._stream.set_reader(None)
            return

        try:
            self._stream.open(buffer.sample_rate, buffer.channels)
        except Exception as e:
            logger.error(f"Failed to open audio stream: {e}")
            self._notify_playback_error(str(e))
            return

        self._stream.set_reader(self._read_frames)
        asyncio.get_running_loop().call_soon(self._report_duration, buffer)

    def play(self) -> None:
        with self._lock:
            if self._source is None or self._playing:
                return
            self._playing = True
            self._ended = False
        if self._stream:
            self._stream.resume()

    def pause(self) -> None:
        with self._lock:
            self._playing = False
        if self._stream:
            self._stream.pause()

    def seek(self, position_s: float) -> None:
        with self._lock:
            if self._source is None:
                return
            target = int(position_s * self._source.sample_rate)
            self._cursor = max(0, min(target, self._source.frames))
            self._last_report = self._cursor
            self._ended = False
            self._seek_epoch += 1

    def get_position(self) -> float:
        with self._lock:
            if self._source is None or self._source.sample_rate <= 0:
                return 0.0
            return self._cursor / self._source.sample_rate

    def set_volume(self, level: float) -> None:
        super().set_volume(level)
        if self._stream:
            self._stream.set_volume(self._volume)

    # =========================================================================
    # Audio Thread
    # =========================================================================

    def _read_frames(self, frames: int) -> np.ndarray:
        """Stream reader, called from the PortAudio thread."""
        with self._lock:
            source = self._source
            if source is None or not self._playing:
                channels = source.channels if source else 1
                return np.zeros((frames, channels), dtype=np.float32)

            start = self._cursor
            self._cursor = min(start + frames, source.frames)
            reached_end = self._cursor >= source.frames and not self._ended
            if reached_end:
                self._ended = True
                self._playing = False

            interval = int(POSITION_INTERVAL_S * source.sample_rate)
            report = reached_end or self._cursor - self._last_report >= interval
            if report:
                self._last_report = self._cursor
            position = self._cursor / source.sample_rate
            epoch = self._seek_epoch

        data = source.read(start, frames)

        if self._loop is not None:
            if report:
                self._loop.call_soon_threadsafe(
                    self._report_position, source, epoch, position
                )
            if reached_end:
                self._loop.call_soon_threadsafe(self._report_ended, source)
        return data

    # =========================================================================
    # Event Loop Side
    # =========================================================================

    def _report_duration(self, source: "ActiveBuffer") -> None:
        if source is self._source:
            self._notify_duration_resolved(source.duration_seconds)

    def _report_position(self, source: "ActiveBuffer", epoch: int, position_s: float) -> None:
        if source is self._source and epoch == self._seek_epoch:
            self._notify_position_update(position_s)

    def _report_ended(self, source: "ActiveBuffer") -> None:
        if source is not self._source:
            return
        if self._stream:
            self._stream.pause()
        self._notify_track_ended()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> bool:
        """Resolve the device and create the (not yet opened) stream."""
        try:
            self._loop = asyncio.get_running_loop()
            self._device_info = resolve_device(self._device_config)
            self.name = f"Local: {self._device_info.name}"
            self._stream = AudioOutputStream(
                device_index=self._device_info.index,
                blocksize=self._buffer_size,
            )
            self._stream.set_volume(self._volume)
            self._is_connected = True
            logger.info(
                f"Audio output device: {self._device_info.name} "
                f"({int(self._device_info.default_samplerate)} Hz, "
                f"{self._device_info.channels}ch)"
            )
            return True
        except (ValueError, ImportError) as e:
            logger.error(f"Failed to initialize audio device: {e}")
            return False

    async def disconnect(self) -> None:
        with self._lock:
            self._source = None
            self._playing = False
        if self._stream:
            self._stream.close()
            self._stream = None
        self._is_connected = False

    def get_info(self) -> OutputInfo:
        return OutputInfo(
            output_type="local",
            name=self.name,
            device_id=f"local-{self._device_config}",
            sample_rate=self._stream.sample_rate if self._stream else None,
        )
