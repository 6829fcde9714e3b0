"""
Drive authentication module.

Credential providers and token management.
"""

from drive_player.errors import AuthError
from .provider import (
    ConsentHandler,
    CredentialProvider,
    OAuthTokenProvider,
    StaticTokenProvider,
)
from .tokens import AccessToken, StoredCredentials

__all__ = [
    "AccessToken",
    "AuthError",
    "ConsentHandler",
    "CredentialProvider",
    "OAuthTokenProvider",
    "StaticTokenProvider",
    "StoredCredentials",
]
