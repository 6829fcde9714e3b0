"""
Google Drive library store.

Lists, fetches and uploads audio files in a single Drive folder over the
Drive v3 REST API.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from drive_player.auth import CredentialProvider
from drive_player.errors import AuthError, FetchError, NotFoundError
from .store import RemoteLibraryStore
from .types import TrackMeta

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "id, name, size, mimeType, createdTime"


def _quote(value: str) -> str:
    """Escape a value for use inside a Drive query string literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveLibraryStore(RemoteLibraryStore):
    """Drive v3 client scoped to audio files in one folder."""

    API_BASE = "https://www.googleapis.com/drive/v3"
    UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"
    PAGE_SIZE = 1000

    def __init__(self, credentials: CredentialProvider, timeout: float = 30.0):
        """
        Initialize store.

        Args:
            credentials: Provider for bearer tokens
            timeout: Total request timeout in seconds
        """
        self._credentials = credentials
        self._timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "DriveLibraryStore":
        """Async context manager entry."""
        self._session = aiohttp.ClientSession(headers={"User-Agent": "drive-player"})
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Library Operations
    # =========================================================================

    async def list_tracks(self, folder_id: str) -> list[TrackMeta]:
        query = (
            f"'{_quote(folder_id)}' in parents and mimeType contains 'audio/' "
            f"and trashed=false"
        )
        tracks: list[TrackMeta] = []
        page_token: Optional[str] = None

        while True:
            params = {
                "q": query,
                "fields": f"nextPageToken, files({FILE_FIELDS})",
                "orderBy": "createdTime",
                "pageSize": str(self.PAGE_SIZE),
                "spaces": "drive",
            }
            if page_token:
                params["pageToken"] = page_token

            data = await self._request("GET", f"{self.API_BASE}/files", params=params)
            for item in data.get("files", []):
                tracks.append(TrackMeta.from_drive_file(item))

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.info(f"Listed {len(tracks)} tracks in folder {folder_id}")
        return tracks

    async def ensure_folder(self, name: str) -> str:
        query = (
            f"mimeType='{FOLDER_MIME_TYPE}' and name='{_quote(name)}' and trashed=false"
        )
        data = await self._request(
            "GET",
            f"{self.API_BASE}/files",
            params={"q": query, "fields": "files(id, name)", "spaces": "drive"},
        )
        files = data.get("files", [])
        if files:
            folder_id = str(files[0]["id"])
            logger.debug(f"Found folder '{name}': {folder_id}")
            return folder_id

        created = await self._request(
            "POST",
            f"{self.API_BASE}/files",
            params={"fields": "id"},
            json={"name": name, "mimeType": FOLDER_MIME_TYPE},
        )
        folder_id = str(created["id"])
        logger.info(f"Created folder '{name}': {folder_id}")
        return folder_id

    async def fetch_bytes(self, track_id: str) -> bytes:
        logger.debug(f"Fetching bytes for track {track_id}")
        data: bytes = await self._request(
            "GET",
            f"{self.API_BASE}/files/{track_id}",
            params={"alt": "media"},
            raw=True,
        )
        logger.debug(f"Fetched {len(data)} bytes for track {track_id}")
        return data

    async def upload(
        self,
        folder_id: str,
        data: bytes,
        file_name: str,
        mime_type: str = "application/octet-stream",
    ) -> TrackMeta:
        with aiohttp.MultipartWriter("related") as writer:
            writer.append_json({"name": file_name, "parents": [folder_id]})
            writer.append(data, {"Content-Type": mime_type})

        result = await self._request(
            "POST",
            f"{self.UPLOAD_BASE}/files",
            params={"uploadType": "multipart", "fields": FILE_FIELDS},
            body=writer,
        )
        track = TrackMeta.from_drive_file(result)
        logger.info(f"Uploaded {file_name} ({len(data)} bytes) as {track.id}")
        return track

    # =========================================================================
    # HTTP
    # =========================================================================

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
        body: Any = None,
        raw: bool = False,
    ) -> Any:
        """
        Make an authenticated API request.

        Raises:
            AuthError: Token unavailable or rejected (401/403)
            NotFoundError: Resource does not exist (404)
            FetchError: Any other network or HTTP failure
        """
        token = await self._credentials.get_token()
        headers = {"Authorization": f"Bearer {token}"}

        session = self._session
        close_session = False
        if session is None:
            session = aiohttp.ClientSession(headers={"User-Agent": "drive-player"})
            close_session = True

        timeout = aiohttp.ClientTimeout(total=self._timeout)
        try:
            async with session.request(
                method,
                url,
                params=params,
                json=json,
                data=body,
                headers=headers,
                timeout=timeout,
            ) as resp:
                if resp.status in (401, 403):
                    if resp.status == 401:
                        self._credentials.invalidate()
                    raise AuthError(f"Request not authorized ({resp.status})", resp.status)
                if resp.status == 404:
                    raise NotFoundError(f"Not found: {url}", resp.status)
                if resp.status >= 400:
                    text = await resp.text()
                    logger.debug(f"API request failed: {resp.status} {text[:200]}")
                    raise FetchError(f"Request failed ({resp.status})", resp.status)

                if raw:
                    return await resp.read()
                return await resp.json()

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Network error: {e!r}")
        except ValueError as e:
            # Body was not valid JSON
            raise FetchError(f"Invalid response from {url}: {e}")
        finally:
            if close_session:
                await session.close()
