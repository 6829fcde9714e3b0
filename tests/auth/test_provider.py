"""Tests for credential providers."""

import asyncio
import json
import stat
import time
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from drive_player.auth import (
    AccessToken,
    AuthError,
    OAuthTokenProvider,
    StaticTokenProvider,
    StoredCredentials,
)
from drive_player.errors import FetchError

_SESSION_PATCH = "drive_player.auth.provider.aiohttp.ClientSession"


def _mock_aiohttp_session(status: int = 200, data=None):
    """Create a mock aiohttp.ClientSession context manager for token requests."""
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=data or {})
    mock_response.text = AsyncMock(return_value="error body")
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=False)

    mock_session = AsyncMock()
    mock_session.post = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=False)
    return mock_session


def _write_cache(path, **values) -> None:
    path.write_text(json.dumps(StoredCredentials(**values).to_dict()))


def _provider(tmp_path, consent_handler=None) -> OAuthTokenProvider:
    return OAuthTokenProvider(
        client_id="client-1",
        client_secret="secret-1",
        cache_path=tmp_path / "token.json",
        consent_handler=consent_handler,
    )


class TestAccessToken:
    """Tests for AccessToken."""

    def test_empty_is_expired(self) -> None:
        assert AccessToken().is_expired()

    def test_no_expiry_is_valid(self) -> None:
        assert not AccessToken(token="t").is_expired()

    def test_expiry_buffer(self) -> None:
        token = AccessToken(token="t", expires_at=time.time() + 30)
        assert token.is_expired(buffer_s=60)
        assert not token.is_expired(buffer_s=10)

    def test_from_token_response(self) -> None:
        token = AccessToken.from_token_response({"access_token": "abc", "expires_in": 3600})
        assert token.token == "abc"
        assert token.expires_at > time.time() + 3500


class TestStaticTokenProvider:
    """Tests for StaticTokenProvider."""

    async def test_returns_token(self) -> None:
        assert await StaticTokenProvider("abc").get_token() == "abc"

    async def test_empty_token(self) -> None:
        with pytest.raises(AuthError):
            await StaticTokenProvider("").get_token()

    async def test_invalidate(self) -> None:
        provider = StaticTokenProvider("abc")
        provider.invalidate()
        with pytest.raises(AuthError):
            await provider.get_token()


class TestOAuthTokenProvider:
    """Tests for OAuthTokenProvider."""

    async def test_reuses_cached_access_token(self, tmp_path) -> None:
        _write_cache(
            tmp_path / "token.json",
            refresh_token="r1",
            access_token="cached",
            expires_at=time.time() + 3600,
        )
        provider = _provider(tmp_path)

        with patch(_SESSION_PATCH) as session_cls:
            assert await provider.get_token() == "cached"
            session_cls.assert_not_called()

    async def test_refreshes_expired_token(self, tmp_path) -> None:
        cache = tmp_path / "token.json"
        _write_cache(cache, refresh_token="r1", access_token="old", expires_at=time.time() - 10)
        provider = _provider(tmp_path)
        session = _mock_aiohttp_session(data={"access_token": "fresh", "expires_in": 3600})

        with patch(_SESSION_PATCH, return_value=session):
            assert await provider.get_token() == "fresh"
            # Second call reuses the token
            assert await provider.get_token() == "fresh"

        assert session.post.call_count == 1
        form = session.post.call_args.kwargs["data"]
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "r1"
        assert form["client_id"] == "client-1"

        saved = json.loads(cache.read_text())
        assert saved["access_token"] == "fresh"
        assert saved["refresh_token"] == "r1"
        assert stat.S_IMODE(cache.stat().st_mode) == 0o600

    async def test_concurrent_calls_refresh_once(self, tmp_path) -> None:
        _write_cache(tmp_path / "token.json", refresh_token="r1")
        provider = _provider(tmp_path)
        session = _mock_aiohttp_session(data={"access_token": "fresh", "expires_in": 3600})

        with patch(_SESSION_PATCH, return_value=session):
            tokens = await asyncio.gather(*(provider.get_token() for _ in range(5)))

        assert tokens == ["fresh"] * 5
        assert session.post.call_count == 1

    async def test_first_use_runs_consent(self, tmp_path) -> None:
        consent = AsyncMock(return_value=" code-42 \n")
        provider = _provider(tmp_path, consent_handler=consent)
        session = _mock_aiohttp_session(
            data={"access_token": "new", "refresh_token": "r-new", "expires_in": 3600}
        )

        with patch(_SESSION_PATCH, return_value=session):
            assert await provider.get_token() == "new"

        url = consent.call_args.args[0]
        assert "client_id=client-1" in url
        assert "drive.file" in url
        form = session.post.call_args.kwargs["data"]
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "code-42"

        saved = json.loads((tmp_path / "token.json").read_text())
        assert saved["refresh_token"] == "r-new"

    async def test_no_credentials_and_no_consent_handler(self, tmp_path) -> None:
        with pytest.raises(AuthError, match="Sign-in required"):
            await _provider(tmp_path).get_token()

    async def test_empty_consent_code(self, tmp_path) -> None:
        provider = _provider(tmp_path, consent_handler=AsyncMock(return_value=""))
        with pytest.raises(AuthError, match="cancelled"):
            await provider.get_token()

    async def test_rejected_refresh_clears_cache(self, tmp_path) -> None:
        cache = tmp_path / "token.json"
        _write_cache(cache, refresh_token="revoked")
        provider = _provider(tmp_path)
        session = _mock_aiohttp_session(status=400)

        with patch(_SESSION_PATCH, return_value=session):
            with pytest.raises(AuthError):
                await provider.get_token()

        assert json.loads(cache.read_text())["refresh_token"] == ""

    async def test_network_error_keeps_refresh_token(self, tmp_path) -> None:
        cache = tmp_path / "token.json"
        _write_cache(cache, refresh_token="r1")
        provider = _provider(tmp_path)
        session = _mock_aiohttp_session()
        session.post = MagicMock(side_effect=aiohttp.ClientConnectionError("dns failure"))

        with patch(_SESSION_PATCH, return_value=session):
            with pytest.raises(FetchError) as exc_info:
                await provider.get_token()

        assert not isinstance(exc_info.value, AuthError)
        assert json.loads(cache.read_text())["refresh_token"] == "r1"

    async def test_server_error_keeps_refresh_token(self, tmp_path) -> None:
        cache = tmp_path / "token.json"
        _write_cache(cache, refresh_token="r1")
        provider = _provider(tmp_path)
        session = _mock_aiohttp_session(status=503)

        with patch(_SESSION_PATCH, return_value=session):
            with pytest.raises(FetchError) as exc_info:
                await provider.get_token()

        assert exc_info.value.status == 503
        assert not isinstance(exc_info.value, AuthError)
        assert json.loads(cache.read_text())["refresh_token"] == "r1"

    async def test_retry_after_transient_failure(self, tmp_path) -> None:
        _write_cache(tmp_path / "token.json", refresh_token="r1")
        provider = _provider(tmp_path)
        failing = _mock_aiohttp_session(status=503)
        working = _mock_aiohttp_session(data={"access_token": "fresh", "expires_in": 3600})

        with patch(_SESSION_PATCH, side_effect=[failing, working]):
            with pytest.raises(FetchError):
                await provider.get_token()
            assert await provider.get_token() == "fresh"

        assert working.post.call_args.kwargs["data"]["refresh_token"] == "r1"

    async def test_invalidate_forces_refresh(self, tmp_path) -> None:
        _write_cache(
            tmp_path / "token.json",
            refresh_token="r1",
            access_token="cached",
            expires_at=time.time() + 3600,
        )
        provider = _provider(tmp_path)
        assert await provider.get_token() == "cached"

        provider.invalidate()
        session = _mock_aiohttp_session(data={"access_token": "fresh"})
        with patch(_SESSION_PATCH, return_value=session):
            assert await provider.get_token() == "fresh"

    async def test_corrupt_cache_ignored(self, tmp_path) -> None:
        (tmp_path / "token.json").write_text("{not json")
        with pytest.raises(AuthError, match="Sign-in required"):
            await _provider(tmp_path).get_token()
