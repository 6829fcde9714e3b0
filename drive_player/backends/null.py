"""
Silent audio output.

Plays nothing but advances position in real time and reports events like a
real device. Used on headless machines and for dry runs.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from .base import AudioOutput
from .types import OutputInfo

if TYPE_CHECKING:
    from drive_player.playback.buffer import ActiveBuffer

logger = logging.getLogger(__name__)

POSITION_INTERVAL_S = 0.25


class NullAudioOutput(AudioOutput):
    """Clock-driven output with no audio device."""

    def __init__(self, name: str = "Null Output"):
        super().__init__(name)
        self._source: Optional["ActiveBuffer"] = None
        self._position: float = 0.0
        self._playing = False
        self._clock_task: Optional[asyncio.Task] = None

    def set_source(self, buffer: Optional["ActiveBuffer"]) -> None:
        self._stop_clock()
        self._source = buffer
        self._position = 0.0
        self._playing = False
        if buffer is not None:
            asyncio.get_running_loop().call_soon(self._resolve_duration, buffer)

    def _resolve_duration(self, buffer: "ActiveBuffer") -> None:
        if buffer is self._source:
            self._notify_duration_resolved(buffer.duration_seconds)

    def play(self) -> None:
        if self._source is None or self._playing:
            return
        self._playing = True
        self._clock_task = asyncio.get_running_loop().create_task(
            self._clock_loop(self._source)
        )

    def pause(self) -> None:
        self._playing = False
        self._stop_clock()

    def seek(self, position_s: float) -> None:
        if self._source is None:
            return
        self._position = max(0.0, min(position_s, self._source.duration_seconds))

    def get_position(self) -> float:
        return self._position

    def _stop_clock(self) -> None:
        if self._clock_task and not self._clock_task.done():
            self._clock_task.cancel()
        self._clock_task = None

    async def _clock_loop(self, source: "ActiveBuffer") -> None:
        """Advance position while playing; report end of source once."""
        loop = asyncio.get_running_loop()
        last = loop.time()
        try:
            while self._playing and source is self._source:
                await asyncio.sleep(POSITION_INTERVAL_S)
                if not self._playing or source is not self._source:
                    return
                now = loop.time()
                self._position += now - last
                last = now

                if self._position >= source.duration_seconds:
                    self._position = source.duration_seconds
                    self._playing = False
                    self._clock_task = None
                    self._notify_position_update(self._position)
                    self._notify_track_ended()
                    return

                self._notify_position_update(self._position)
        except asyncio.CancelledError:
            pass

    async def connect(self) -> bool:
        self._is_connected = True
        logger.info("Using silent output (no audio device)")
        return True

    async def disconnect(self) -> None:
        self._stop_clock()
        self._source = None
        self._is_connected = False

    def get_info(self) -> OutputInfo:
        return OutputInfo(output_type="null", name=self.name, device_id="null")
