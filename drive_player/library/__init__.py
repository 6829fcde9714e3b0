"""Remote library module."""

from .drive_store import DriveLibraryStore
from .store import RemoteLibraryStore
from .types import TrackMeta, format_size, format_time

__all__ = [
    "DriveLibraryStore",
    "RemoteLibraryStore",
    "TrackMeta",
    "format_size",
    "format_time",
]
