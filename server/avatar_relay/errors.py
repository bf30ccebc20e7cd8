"""Error taxonomy shared by the relay server and the session client."""
from __future__ import annotations

from typing import Iterable, Optional


class AvatarRelayError(Exception):
    """Base class for every failure surfaced by this package."""


class MissingConfiguration(AvatarRelayError):
    """Required environment variables are not set."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required environment variables: {', '.join(self.missing)}")


class ValidationError(AvatarRelayError):
    """A required field is missing or malformed; never reaches the provider."""


class ProviderError(AvatarRelayError):
    """The provider (or the relay in front of it) answered with a non-success status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProviderUnreachable(AvatarRelayError):
    """No response arrived: network failure or timeout."""


class NoActiveSession(AvatarRelayError):
    """An operation needs a session created by a successful connect()."""

    def __init__(self, message: str = "No active session"):
        super().__init__(message)


class NegotiationFailure(AvatarRelayError):
    """A step of the WebRTC offer/answer/ICE setup failed."""
