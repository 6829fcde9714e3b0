"""
Credential providers.

A credential provider hands out a bearer token on demand. The store calls
get_token() before every request and invalidate() when the server rejects
the token. How the token was originally obtained is opaque to the core.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Awaitable, Callable, Optional
from urllib.parse import urlencode

import aiohttp

from drive_player.errors import AuthError, FetchError
from .tokens import AccessToken, StoredCredentials

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.file"
DEFAULT_REDIRECT_URI = "http://localhost"

# Receives the consent URL, returns the authorization code
ConsentHandler = Callable[[str], Awaitable[str]]


class CredentialProvider(ABC):
    """Supplies bearer tokens for the remote library store."""

    @abstractmethod
    async def get_token(self) -> str:
        """
        Get a valid bearer token.

        Raises:
            AuthError: If no valid credential can be produced
            FetchError: If the token endpoint cannot be reached
        """
        pass

    def invalidate(self) -> None:
        """Forget the current access token (server rejected it)."""
        pass


class StaticTokenProvider(CredentialProvider):
    """Provider for a token obtained outside the player (config or env)."""

    def __init__(self, token: str):
        self._token = token

    async def get_token(self) -> str:
        if not self._token:
            raise AuthError("No access token configured")
        return self._token

    def invalidate(self) -> None:
        logger.warning("Configured access token was rejected")
        self._token = ""


class OAuthTokenProvider(CredentialProvider):
    """
    OAuth2 provider backed by a cached refresh token.

    On first use (no cached refresh token) the consent handler is asked for
    an authorization code, which is exchanged for tokens and cached. Later
    calls reuse the access token silently and refresh it when it expires.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        cache_path: Path,
        consent_handler: Optional[ConsentHandler] = None,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        timeout: float = 30.0,
    ):
        """
        Initialize provider.

        Args:
            client_id: OAuth2 client ID
            client_secret: OAuth2 client secret
            cache_path: JSON file holding the refresh token
            consent_handler: Async callable turning a consent URL into an auth code
            redirect_uri: Redirect URI registered for the client
            timeout: Token endpoint timeout in seconds
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.cache_path = cache_path
        self.redirect_uri = redirect_uri
        self._consent_handler = consent_handler
        self._timeout = timeout
        self._access = AccessToken()
        self._stored: Optional[StoredCredentials] = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        async with self._lock:
            if not self._access.is_expired():
                return self._access.token

            if self._stored is None:
                self._stored = self._load_cache()
                if self._stored.access_token:
                    self._access = AccessToken(
                        token=self._stored.access_token,
                        expires_at=self._stored.expires_at,
                    )
                    if not self._access.is_expired():
                        logger.debug("Reusing cached access token")
                        return self._access.token

            if self._stored.refresh_token:
                await self._refresh()
            else:
                await self._consent()

            return self._access.token

    def invalidate(self) -> None:
        self._access = AccessToken()
        if self._stored:
            self._stored.access_token = ""
            self._stored.expires_at = 0.0

    def consent_url(self) -> str:
        """Build the URL the user must visit to grant access."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": DRIVE_SCOPE,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def _consent(self) -> None:
        """Run interactive consent and exchange the code for tokens."""
        if not self._consent_handler:
            raise AuthError("Sign-in required: no cached credentials")

        logger.info("Requesting user consent for Drive access")
        code = (await self._consent_handler(self.consent_url())).strip()
        if not code:
            raise AuthError("Sign-in cancelled")

        data = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        refresh_token = data.get("refresh_token", "")
        if not refresh_token:
            logger.warning("Token response did not include a refresh token")
        self._stored = StoredCredentials(refresh_token=refresh_token)
        self._apply(data)
        logger.info("Signed in")

    async def _refresh(self) -> None:
        """Exchange the refresh token for a new access token."""
        assert self._stored is not None
        logger.debug("Refreshing access token")
        try:
            data = await self._token_request(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": self._stored.refresh_token,
                }
            )
        except AuthError:
            # Refresh token revoked or expired; next call starts over with consent
            self._stored = StoredCredentials()
            self._save_cache()
            raise
        self._apply(data)

    def _apply(self, data: dict) -> None:
        """Adopt a token endpoint response and persist it."""
        assert self._stored is not None
        self._access = AccessToken.from_token_response(data)
        if not self._access.token:
            raise AuthError("Token response did not include an access token")
        self._stored.access_token = self._access.token
        self._stored.expires_at = self._access.expires_at
        if data.get("refresh_token"):
            self._stored.refresh_token = data["refresh_token"]
        self._save_cache()

    async def _token_request(self, params: dict[str, str]) -> dict:
        """
        POST to the token endpoint.

        Raises:
            AuthError: The grant or client was rejected (400/401)
            FetchError: Network failure, timeout or server error
        """
        form = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            **params,
        }
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(TOKEN_URL, data=form, timeout=timeout) as resp:
                    if resp.status == 200:
                        result: dict = await resp.json()
                        return result
                    body = await resp.text()
                    logger.error(f"Token request failed: {resp.status} {body[:200]}")
                    # invalid_grant / invalid_client: the credential itself is bad
                    if resp.status in (400, 401):
                        raise AuthError(f"Token request rejected ({resp.status})", resp.status)
                    raise FetchError(f"Token endpoint error ({resp.status})", resp.status)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise FetchError(f"Token request failed: {e!r}")

    def _load_cache(self) -> StoredCredentials:
        """Load stored credentials from the cache file."""
        try:
            if self.cache_path.exists():
                with open(self.cache_path) as f:
                    stored = StoredCredentials.from_dict(json.load(f))
                    logger.debug(f"Loaded cached credentials from {self.cache_path}")
                    return stored
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load cached credentials: {e}")
        return StoredCredentials()

    def _save_cache(self) -> None:
        """Persist stored credentials to the cache file."""
        if self._stored is None:
            return
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_path, "w") as f:
                json.dump(self._stored.to_dict(), f, indent=2)
            self.cache_path.chmod(0o600)
            logger.debug(f"Cached credentials to {self.cache_path}")
        except OSError as e:
            logger.error(f"Failed to cache credentials: {e}")
