"""Shared fakes for playback tests: an in-memory store and a scripted output."""

import asyncio
from typing import Callable, Optional

import numpy as np
import pytest

from drive_player.backends.base import AudioOutput
from drive_player.backends.types import OutputInfo
from drive_player.library.store import RemoteLibraryStore
from drive_player.library.types import TrackMeta
from drive_player.playback.buffer import ActiveBuffer
from drive_player.playback.controller import PlayerController
from drive_player.playback.engine import PlaybackEngine

FAKE_SAMPLE_RATE = 1000
FAKE_DURATION_S = 10


class FakeStore(RemoteLibraryStore):
    """In-memory library. Fetches can be held open with gates or made to fail."""

    def __init__(self, tracks: list[TrackMeta]):
        self.tracks = list(tracks)
        self.fetch_calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.errors: dict[str, Exception] = {}
        self.uploads: list[tuple[str, bytes, str, str]] = []
        self.list_error: Optional[Exception] = None

    async def list_tracks(self, folder_id: str) -> list[TrackMeta]:
        if self.list_error:
            raise self.list_error
        return list(self.tracks)

    async def ensure_folder(self, name: str) -> str:
        return "folder-1"

    async def fetch_bytes(self, track_id: str) -> bytes:
        self.fetch_calls.append(track_id)
        gate = self.gates.get(track_id)
        if gate is not None:
            await gate.wait()
        if track_id in self.errors:
            raise self.errors[track_id]
        return f"audio-{track_id}".encode()

    async def upload(
        self,
        folder_id: str,
        data: bytes,
        file_name: str,
        mime_type: str = "application/octet-stream",
    ) -> TrackMeta:
        self.uploads.append((folder_id, data, file_name, mime_type))
        track = TrackMeta(id=f"up-{len(self.uploads)}", display_name=file_name, byte_size=len(data))
        self.tracks.append(track)
        return track


class FakeOutput(AudioOutput):
    """Output that records commands; tests fire device events explicitly."""

    def __init__(self):
        super().__init__("Fake Output")
        self.source: Optional[ActiveBuffer] = None
        self.sources: list[Optional[ActiveBuffer]] = []
        self.playing = False
        self.position = 0.0
        self.play_calls = 0

    def set_source(self, buffer: Optional[ActiveBuffer]) -> None:
        self.source = buffer
        self.sources.append(buffer)
        self.position = 0.0
        self.playing = False

    def play(self) -> None:
        self.play_calls += 1
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    def seek(self, position_s: float) -> None:
        self.position = position_s

    def get_position(self) -> float:
        return self.position

    async def connect(self) -> bool:
        self._is_connected = True
        return True

    async def disconnect(self) -> None:
        self._is_connected = False

    def get_info(self) -> OutputInfo:
        return OutputInfo(output_type="fake", name=self.name, device_id="fake")

    # Device event simulation

    def advance(self, position_s: float) -> None:
        self.position = position_s
        self._notify_position_update(position_s)

    def resolve_duration(self) -> None:
        if self.source is not None:
            self._notify_duration_resolved(self.source.duration_seconds)

    def finish(self) -> None:
        self.playing = False
        if self.source is not None:
            self.position = self.source.duration_seconds
        self._notify_track_ended()


class BufferLog:
    """Decoder that records every buffer it creates."""

    def __init__(self):
        self.buffers: list[ActiveBuffer] = []

    def __call__(self, track: TrackMeta, data: bytes) -> ActiveBuffer:
        samples = np.zeros((FAKE_SAMPLE_RATE * FAKE_DURATION_S, 2), dtype=np.float32)
        buffer = ActiveBuffer(track, samples, FAKE_SAMPLE_RATE)
        self.buffers.append(buffer)
        return buffer

    def live(self) -> list[ActiveBuffer]:
        return [b for b in self.buffers if not b.released]

    def for_track(self, track_id: str) -> list[ActiveBuffer]:
        return [b for b in self.buffers if b.track.id == track_id]


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true (decode runs in an executor thread)."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.01)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tracks() -> list[TrackMeta]:
    return [
        TrackMeta(id="a", display_name="A.mp3", byte_size=1000),
        TrackMeta(id="b", display_name="B.mp3", byte_size=2000),
        TrackMeta(id="c", display_name="C.mp3", byte_size=3000),
    ]


@pytest.fixture
def store(tracks) -> FakeStore:
    return FakeStore(tracks)


@pytest.fixture
def output() -> FakeOutput:
    return FakeOutput()


@pytest.fixture
def decoder() -> BufferLog:
    return BufferLog()


@pytest.fixture
def engine(store, output, decoder) -> PlaybackEngine:
    return PlaybackEngine(store, output, decoder=decoder)


@pytest.fixture
def controller(store, engine) -> PlayerController:
    c = PlayerController(store, engine, folder_id="folder-1")
    c.set_library(store.tracks)
    return c


@pytest.fixture
def settle():
    """Returns the wait_for helper."""
    return wait_for
