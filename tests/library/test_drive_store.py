"""Tests for DriveLibraryStore against a mocked aiohttp session."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from drive_player.auth import StaticTokenProvider
from drive_player.errors import AuthError, FetchError, NotFoundError
from drive_player.library.drive_store import FOLDER_MIME_TYPE, DriveLibraryStore
from drive_player.library.types import TrackMeta, format_size, format_time


def _mock_response(status: int = 200, json_data=None, body: bytes = b"", text: str = ""):
    """Create a mock aiohttp response usable as an async context manager."""
    resp = AsyncMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data if json_data is not None else {})
    resp.read = AsyncMock(return_value=body)
    resp.text = AsyncMock(return_value=text)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


def _store_with(*responses) -> tuple[DriveLibraryStore, MagicMock]:
    """Store whose session returns the given responses in order."""
    credentials = StaticTokenProvider("tok-123")
    store = DriveLibraryStore(credentials, timeout=5.0)
    session = MagicMock()
    session.request = MagicMock(side_effect=list(responses))
    session.close = AsyncMock()
    store._session = session
    return store, session


def _file(file_id: str, name: str, size: str = "1024") -> dict:
    return {
        "id": file_id,
        "name": name,
        "size": size,
        "mimeType": "audio/mpeg",
        "createdTime": "2024-01-01T00:00:00.000Z",
    }


class TestListTracks:
    """Tests for list_tracks."""

    async def test_single_page(self) -> None:
        store, session = _store_with(
            _mock_response(json_data={"files": [_file("1", "a.mp3"), _file("2", "b.mp3")]})
        )

        tracks = await store.list_tracks("folder-1")

        assert [t.id for t in tracks] == ["1", "2"]
        assert tracks[0].display_name == "a.mp3"
        assert tracks[0].byte_size == 1024

        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "GET"
        assert url.endswith("/drive/v3/files")
        assert "'folder-1' in parents" in kwargs["params"]["q"]
        assert "mimeType contains 'audio/'" in kwargs["params"]["q"]
        assert "trashed=false" in kwargs["params"]["q"]
        assert kwargs["params"]["orderBy"] == "createdTime"
        assert kwargs["headers"]["Authorization"] == "Bearer tok-123"

    async def test_follows_page_tokens(self) -> None:
        store, session = _store_with(
            _mock_response(json_data={"files": [_file("1", "a.mp3")], "nextPageToken": "p2"}),
            _mock_response(json_data={"files": [_file("2", "b.mp3")]}),
        )

        tracks = await store.list_tracks("folder-1")

        assert [t.id for t in tracks] == ["1", "2"]
        assert session.request.call_count == 2
        second = session.request.call_args_list[1].kwargs["params"]
        assert second["pageToken"] == "p2"

    async def test_malformed_json_is_fetch_error(self) -> None:
        resp = _mock_response()
        resp.json = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", "<html>", 0))
        store, _ = _store_with(resp)

        with pytest.raises(FetchError, match="Invalid response"):
            await store.list_tracks("folder-1")

    async def test_empty_folder(self) -> None:
        store, _ = _store_with(_mock_response(json_data={}))
        assert await store.list_tracks("folder-1") == []

    async def test_folder_id_is_escaped(self) -> None:
        store, session = _store_with(_mock_response(json_data={"files": []}))
        await store.list_tracks("it's")
        assert "'it\\'s' in parents" in session.request.call_args.kwargs["params"]["q"]


class TestEnsureFolder:
    """Tests for ensure_folder."""

    async def test_existing_folder(self) -> None:
        store, session = _store_with(
            _mock_response(json_data={"files": [{"id": "f1", "name": "SchoolMusic"}]})
        )
        assert await store.ensure_folder("SchoolMusic") == "f1"
        assert session.request.call_count == 1

    async def test_creates_missing_folder(self) -> None:
        store, session = _store_with(
            _mock_response(json_data={"files": []}),
            _mock_response(json_data={"id": "new-folder"}),
        )

        assert await store.ensure_folder("SchoolMusic") == "new-folder"

        create = session.request.call_args_list[1]
        assert create.args[0] == "POST"
        assert create.kwargs["json"] == {"name": "SchoolMusic", "mimeType": FOLDER_MIME_TYPE}


class TestFetchBytes:
    """Tests for fetch_bytes and error mapping."""

    async def test_returns_bytes(self) -> None:
        store, session = _store_with(_mock_response(body=b"ID3-data"))
        assert await store.fetch_bytes("t1") == b"ID3-data"
        kwargs = session.request.call_args.kwargs
        assert kwargs["params"] == {"alt": "media"}
        assert session.request.call_args.args[1].endswith("/files/t1")

    async def test_401_is_auth_error_and_invalidates(self) -> None:
        store, _ = _store_with(_mock_response(status=401))
        with pytest.raises(AuthError) as exc_info:
            await store.fetch_bytes("t1")
        assert exc_info.value.status == 401
        # Static token was dropped; the next call fails before any request
        with pytest.raises(AuthError):
            await store._credentials.get_token()

    async def test_403_is_auth_error(self) -> None:
        store, _ = _store_with(_mock_response(status=403))
        with pytest.raises(AuthError):
            await store.fetch_bytes("t1")

    async def test_404_is_not_found(self) -> None:
        store, _ = _store_with(_mock_response(status=404))
        with pytest.raises(NotFoundError) as exc_info:
            await store.fetch_bytes("gone")
        assert isinstance(exc_info.value, FetchError)

    async def test_500_is_fetch_error(self) -> None:
        store, _ = _store_with(_mock_response(status=500, text="backend error"))
        with pytest.raises(FetchError) as exc_info:
            await store.fetch_bytes("t1")
        assert exc_info.value.status == 500
        assert not isinstance(exc_info.value, (AuthError, NotFoundError))

    async def test_network_error_is_fetch_error(self) -> None:
        store, _ = _store_with(aiohttp.ClientConnectionError("reset"))
        with pytest.raises(FetchError):
            await store.fetch_bytes("t1")

    async def test_timeout_is_fetch_error(self) -> None:
        store, _ = _store_with(asyncio.TimeoutError())
        with pytest.raises(FetchError, match="TimeoutError"):
            await store.fetch_bytes("t1")


class TestUpload:
    """Tests for upload."""

    async def test_multipart_upload(self) -> None:
        store, session = _store_with(
            _mock_response(json_data=_file("new", "song.mp3", size="3"))
        )

        track = await store.upload("folder-1", b"abc", "song.mp3", "audio/mpeg")

        assert track.id == "new"
        assert track.display_name == "song.mp3"
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "POST"
        assert url.startswith("https://www.googleapis.com/upload/drive/v3/files")
        assert kwargs["params"]["uploadType"] == "multipart"
        assert isinstance(kwargs["data"], aiohttp.MultipartWriter)


class TestSession:
    """Tests for session lifecycle."""

    async def test_context_manager_opens_and_closes(self) -> None:
        async with DriveLibraryStore(StaticTokenProvider("t")) as store:
            assert store._session is not None
            session = store._session
        assert store._session is None
        assert session.closed


class TestTrackMeta:
    """Tests for TrackMeta parsing and formatting helpers."""

    def test_from_drive_file(self) -> None:
        track = TrackMeta.from_drive_file(_file("1", "a.mp3", size="2048"))
        assert track == TrackMeta(
            id="1",
            display_name="a.mp3",
            byte_size=2048,
            mime_type="audio/mpeg",
            created_time="2024-01-01T00:00:00.000Z",
        )

    def test_missing_or_bad_size(self) -> None:
        assert TrackMeta.from_drive_file({"id": "1", "name": "x"}).byte_size == 0
        assert TrackMeta.from_drive_file({"id": "1", "size": "abc"}).byte_size == 0
        assert TrackMeta.from_drive_file({"id": "1", "size": "-5"}).byte_size == 0

    def test_immutable(self) -> None:
        track = TrackMeta(id="1", display_name="a")
        with pytest.raises(AttributeError):
            track.display_name = "b"

    def test_to_dict(self) -> None:
        data = TrackMeta(id="1", display_name="a.mp3", byte_size=5).to_dict()
        assert data["id"] == "1"
        assert data["name"] == "a.mp3"
        assert data["size"] == 5

    def test_format_size(self) -> None:
        assert format_size(0) == "0.0 MB"
        assert format_size(3 * 1024 * 1024 + 512 * 1024) == "3.5 MB"

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0:00"), (59.9, "0:59"), (61, "1:01"), (3600, "60:00"), (None, "0:00"), (-1, "0:00")],
    )
    def test_format_time(self, seconds, expected) -> None:
        assert format_time(seconds) == expected

    def test_format_time_nan(self) -> None:
        assert format_time(float("nan")) == "0:00"
