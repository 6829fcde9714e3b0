"""Tests for PlaybackEngine."""

import pytest

from drive_player.errors import DecodeError, FetchError, NotFoundError
from drive_player.library.types import TrackMeta


class TestLoad:
    """Tests for prepare/activate/load."""

    async def test_load_binds_source_paused(self, engine, output, tracks, store) -> None:
        await engine.load(tracks[0])
        assert store.fetch_calls == ["a"]
        assert output.source is engine.active_buffer
        assert engine.loaded_track_id == "a"
        assert engine.duration_seconds == 10.0
        assert not engine.is_playing
        assert not output.playing

    async def test_prepare_does_not_touch_output(self, engine, output, tracks) -> None:
        buffer = await engine.prepare(tracks[0])
        assert output.sources == []
        assert engine.active_buffer is None
        assert buffer.track.id == "a"

    async def test_activate_releases_previous_buffer(self, engine, output, tracks, decoder) -> None:
        await engine.load(tracks[0])
        first = engine.active_buffer
        await engine.load(tracks[1])
        assert first.released
        assert output.source is engine.active_buffer
        assert decoder.live() == [engine.active_buffer]

    async def test_previous_buffer_kept_until_new_one_ready(self, engine, store, tracks) -> None:
        await engine.load(tracks[0])
        first = engine.active_buffer
        store.errors["b"] = FetchError("boom")
        with pytest.raises(FetchError):
            await engine.load(tracks[1])
        assert not first.released
        assert engine.loaded_track_id == "a"

    async def test_many_loads_leave_one_buffer(self, engine, tracks, decoder) -> None:
        for track in tracks * 3:
            await engine.load(track)
        assert len(decoder.live()) == 1

    async def test_fetch_errors_propagate(self, engine, store, tracks) -> None:
        store.errors["a"] = NotFoundError("gone", status=404)
        with pytest.raises(NotFoundError):
            await engine.load(tracks[0])
        assert engine.active_buffer is None

    async def test_decode_error_propagates(self, store, output) -> None:
        from drive_player.playback.engine import PlaybackEngine

        def bad_decoder(track, data):
            raise DecodeError("not audio")

        engine = PlaybackEngine(store, output, decoder=bad_decoder)
        with pytest.raises(DecodeError):
            await engine.load(TrackMeta(id="x", display_name="x.txt"))

    async def test_release(self, engine, output, tracks) -> None:
        await engine.load(tracks[0])
        buffer = engine.active_buffer
        engine.release()
        assert buffer.released
        assert engine.active_buffer is None
        assert output.source is None


class TestTransport:
    """Tests for play/pause/seek/volume."""

    async def test_play_pause_idempotent(self, engine, output, tracks) -> None:
        await engine.load(tracks[0])
        engine.play()
        engine.play()
        assert output.play_calls == 1
        assert engine.is_playing
        engine.pause()
        engine.pause()
        assert not engine.is_playing
        assert not output.playing

    def test_play_without_buffer_is_noop(self, engine, output) -> None:
        engine.play()
        assert not engine.is_playing
        assert output.play_calls == 0

    async def test_seek_clamps(self, engine, output, tracks) -> None:
        await engine.load(tracks[0])
        assert engine.seek(4.5) == 4.5
        assert output.position == 4.5
        assert engine.seek(-3) == 0.0
        assert engine.seek(99) == 10.0
        assert output.position == 10.0

    def test_seek_without_buffer(self, engine) -> None:
        assert engine.seek(5) == 0.0

    def test_volume_clamps(self, engine, output) -> None:
        assert engine.set_volume(0.3) == 0.3
        assert output.get_volume() == 0.3
        assert engine.set_volume(2.0) == 1.0
        assert engine.set_volume(-1.0) == 0.0


class TestEvents:
    """Tests for event forwarding."""

    async def test_events_forwarded(self, engine, output, tracks) -> None:
        positions, durations, ended = [], [], []
        engine.on_position_changed(positions.append)
        engine.on_duration_resolved(durations.append)
        engine.on_ended(lambda: ended.append(True))

        await engine.load(tracks[0])
        engine.play()
        output.resolve_duration()
        output.advance(1.5)
        output.finish()

        assert durations == [10.0]
        assert positions == [1.5]
        assert ended == [True]
        assert not engine.is_playing

    def test_events_without_buffer_dropped(self, engine, output) -> None:
        ended = []
        engine.on_ended(lambda: ended.append(True))
        output.finish()
        assert ended == []

    async def test_output_error_stops_playing(self, engine, output, tracks) -> None:
        errors = []
        engine.on_error(errors.append)
        await engine.load(tracks[0])
        engine.play()
        output._notify_playback_error("device lost")
        assert errors == ["device lost"]
        assert not engine.is_playing

    async def test_close_disconnects(self, engine, output, tracks) -> None:
        await output.connect()
        await engine.load(tracks[0])
        await engine.close()
        assert engine.active_buffer is None
        assert not output.is_connected()
