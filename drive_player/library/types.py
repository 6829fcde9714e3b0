"""
Remote library types.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TrackMeta:
    """
    One playable item in the remote library.

    Instances are immutable once listed. A fresh listing replaces the
    whole set rather than patching individual entries.

    Attributes:
        id: Remote identity (opaque, unique, stable)
        display_name: Name shown to the user (usually the file name)
        byte_size: Size of the remote object in bytes
        mime_type: Content type reported by the store
        created_time: Creation timestamp reported by the store (RFC 3339)
    """

    id: str
    display_name: str
    byte_size: int = 0
    mime_type: str = ""
    created_time: str = ""

    @classmethod
    def from_drive_file(cls, data: dict[str, Any]) -> "TrackMeta":
        """Build from a Drive v3 file resource."""
        try:
            size = max(0, int(data.get("size") or 0))
        except (TypeError, ValueError):
            size = 0
        return cls(
            id=str(data["id"]),
            display_name=data.get("name", ""),
            byte_size=size,
            mime_type=data.get("mimeType", ""),
            created_time=data.get("createdTime", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "id": self.id,
            "name": self.display_name,
            "size": self.byte_size,
            "mime_type": self.mime_type,
            "created_time": self.created_time,
        }


def format_size(byte_size: int) -> str:
    """Format a byte count as megabytes, e.g. '3.4 MB'."""
    return f"{byte_size / (1024 * 1024):.1f} MB"


def format_time(seconds: float) -> str:
    """Format seconds as m:ss."""
    if seconds is None or seconds != seconds or seconds < 0:
        return "0:00"
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"
