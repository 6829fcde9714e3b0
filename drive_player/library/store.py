"""
Abstract remote library store interface.

Defines the contract the controller and engine rely on. Implementations
raise AuthError, NotFoundError or FetchError from drive_player.errors.
"""

from abc import ABC, abstractmethod

from .types import TrackMeta


class RemoteLibraryStore(ABC):
    """Folder-scoped remote object store holding audio tracks."""

    @abstractmethod
    async def list_tracks(self, folder_id: str) -> list[TrackMeta]:
        """List audio items in a folder, excluding trashed items, in store order."""
        pass

    @abstractmethod
    async def ensure_folder(self, name: str) -> str:
        """Return the id of the folder with this name, creating it if missing."""
        pass

    @abstractmethod
    async def fetch_bytes(self, track_id: str) -> bytes:
        """Download the full content of a track."""
        pass

    @abstractmethod
    async def upload(
        self,
        folder_id: str,
        data: bytes,
        file_name: str,
        mime_type: str = "application/octet-stream",
    ) -> TrackMeta:
        """Upload a file into a folder."""
        pass
