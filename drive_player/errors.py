"""
Error taxonomy shared by the store, the engine and the controller.

Only the store and the engine raise these. The controller catches every
PlayerError at its boundary and turns it into a state transition.
"""


class PlayerError(Exception):
    """Base class for recoverable player errors."""

    pass


class FetchError(PlayerError):
    """Network or storage failure while talking to the remote library."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class AuthError(FetchError):
    """Credential missing, invalid or expired. User must sign in again."""

    pass


class NotFoundError(FetchError):
    """Track id is no longer present in the remote library."""

    pass


class DecodeError(PlayerError):
    """Fetched bytes are not a supported audio format."""

    pass
