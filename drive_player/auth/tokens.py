"""
Token management for Drive authentication.
"""

import time
from dataclasses import dataclass
from typing import Any


@dataclass
class AccessToken:
    """OAuth2 bearer token with expiration."""

    token: str = ""
    expires_at: float = 0.0  # Epoch seconds, 0 = no known expiry

    def is_expired(self, buffer_s: int = 60) -> bool:
        """Check if token is missing or will expire within buffer."""
        if not self.token:
            return True
        if not self.expires_at:
            return False
        return time.time() + buffer_s >= self.expires_at

    @classmethod
    def from_token_response(cls, data: dict[str, Any]) -> "AccessToken":
        """Create from an OAuth2 token endpoint response."""
        expires_in = int(data.get("expires_in", 0) or 0)
        return cls(
            token=data.get("access_token", ""),
            expires_at=time.time() + expires_in if expires_in else 0.0,
        )


@dataclass
class StoredCredentials:
    """Long-lived OAuth2 credentials persisted in the token cache."""

    refresh_token: str = ""
    access_token: str = ""
    expires_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "refresh_token": self.refresh_token,
            "access_token": self.access_token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredCredentials":
        return cls(
            refresh_token=data.get("refresh_token", ""),
            access_token=data.get("access_token", ""),
            expires_at=float(data.get("expires_at", 0) or 0),
        )
