"""
Active buffer: decoded, playable samples of the loaded track.

The playback engine owns at most one bound ActiveBuffer. Releasing a buffer
drops its sample array so the memory is freed even if a stale reference
(e.g. from the audio thread) survives.
"""

import io
import logging
import threading
from typing import Optional

import numpy as np
import soundfile as sf

from drive_player.errors import DecodeError
from drive_player.library.types import TrackMeta

logger = logging.getLogger(__name__)


class ActiveBuffer:
    """Decoded float32 samples for one track, shape (frames, channels)."""

    def __init__(self, track: TrackMeta, samples: np.ndarray, sample_rate: int):
        if samples.ndim == 1:
            samples = samples.reshape(-1, 1)
        self.track = track
        self.sample_rate = sample_rate
        self.channels = samples.shape[1]
        self.frames = len(samples)
        self._samples: Optional[np.ndarray] = samples
        self._lock = threading.Lock()

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / self.sample_rate

    @property
    def released(self) -> bool:
        return self._samples is None

    def read(self, start_frame: int, frames: int) -> np.ndarray:
        """
        Read frames starting at start_frame.

        Always returns exactly `frames` rows, zero-padded past the end of the
        track or after release.
        """
        output = np.zeros((frames, self.channels), dtype=np.float32)
        with self._lock:
            if self._samples is None or start_frame >= self.frames:
                return output
            end = min(start_frame + frames, self.frames)
            output[: end - start_frame] = self._samples[start_frame:end]
        return output

    def release(self) -> None:
        """Drop the sample data. Safe to call more than once."""
        with self._lock:
            if self._samples is None:
                return
            self._samples = None
        logger.debug(f"Released buffer for track {self.track.id}")

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.duration_seconds:.1f}s"
        return f"<ActiveBuffer {self.track.id} {state}>"


def decode_audio(track: TrackMeta, data: bytes) -> ActiveBuffer:
    """
    Decode fetched bytes into an ActiveBuffer.

    Blocking; run it in an executor.

    Raises:
        DecodeError: If the bytes are not a supported audio format
    """
    if not data:
        raise DecodeError(f"Empty audio data for track {track.id}")

    try:
        samples, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
    except (RuntimeError, ValueError, TypeError) as e:
        raise DecodeError(f"Unsupported audio format for {track.display_name}: {e}")

    if len(samples) == 0:
        raise DecodeError(f"No audio frames in {track.display_name}")

    logger.debug(
        f"Decoded {track.display_name}: {len(samples)} frames, "
        f"{samples.shape[1]}ch, {sample_rate}Hz"
    )
    return ActiveBuffer(track, samples, sample_rate)
