"""
Provider error taxonomy.

Every failure a provider operation can surface to the host is one of these.
"""

from typing import Optional


class ProviderError(Exception):
    """Base class for provider errors."""

    pass


class InvalidPath(ProviderError):
    """A remote path could not be built or is not a valid item path."""

    pass


class NotFound(ProviderError):
    """Album or track is unknown to the catalog, or the backend reports it missing."""

    pass


class AuthError(ProviderError):
    """Credential exchange failed (revoked refresh token, network failure, bad response)."""

    pass


class BackendError(ProviderError):
    """Transport or protocol failure talking to the backend."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class DecodeError(ProviderError):
    """Embedded or queried audio duration could not be extracted."""

    pass
