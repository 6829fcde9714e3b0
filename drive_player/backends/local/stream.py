"""
Audio output stream wrapper.

Manages a sounddevice OutputStream whose callback pulls frames from a
reader function and applies volume.
"""

import logging
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Returns exactly `frames` rows of float32 samples
FrameReader = Callable[[int], np.ndarray]


class AudioOutputStream:
    """
    Wraps sounddevice.OutputStream.

    The audio callback runs on the PortAudio thread. It outputs silence when
    paused or when no reader is attached.
    """

    def __init__(self, device_index: int, blocksize: int = 2048):
        self._device_index = device_index
        self._blocksize = blocksize
        self._stream = None  # sd.OutputStream
        self._reader: Optional[FrameReader] = None
        self._sample_rate: int = 0
        self._channels: int = 0
        self._volume: float = 0.5
        self._paused = True

    def open(self, sample_rate: int, channels: int) -> None:
        """
        Open the stream for a format, reusing it if the format is unchanged.
        """
        from .device import _import_sounddevice

        if self._stream is not None:
            if self._sample_rate == sample_rate and self._channels == channels:
                return
            self.close()

        sd = _import_sounddevice()
        self._sample_rate = sample_rate
        self._channels = channels
        self._stream = sd.OutputStream(
            device=self._device_index,
            samplerate=sample_rate,
            channels=channels,
            dtype="float32",
            blocksize=self._blocksize,
            callback=self._audio_callback,
        )
        self._stream.start()
        logger.debug(
            f"Audio stream opened: {sample_rate}Hz, {channels}ch, "
            f"blocksize={self._blocksize}"
        )

    def close(self) -> None:
        """Stop and release the stream."""
        if self._stream:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.warning(f"Error closing audio stream: {e}")
            self._stream = None
            self._sample_rate = 0
            self._channels = 0

    def set_reader(self, reader: Optional[FrameReader]) -> None:
        self._reader = reader

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def set_volume(self, level: float) -> None:
        """Set volume level (0.0-1.0)."""
        self._volume = max(0.0, min(1.0, level))

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def _audio_callback(self, outdata: np.ndarray, frames: int, time_info, status) -> None:
        """PortAudio callback, called from the audio thread."""
        if status:
            logger.debug(f"Audio callback status: {status}")

        reader = self._reader
        if self._paused or reader is None:
            outdata[:] = 0
            return

        data = reader(frames)
        if self._volume < 1.0:
            outdata[:] = data * self._volume
        else:
            outdata[:] = data
